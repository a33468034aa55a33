"""
Access control application.

Provides:
- Server-side role verification (master, tenant admin)
- Static capability policy per user level
- Profile resolution with the cached user level
- Session state and route guard decisions for the SPA
"""
