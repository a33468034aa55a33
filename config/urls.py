"""
URL configuration for Vox CRM access control.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),  # Health

    # Authentication and access control endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # Register, login, logout, password reset, me, permissions, route-check, roles

    # Role administration
    path('v1/', include('apps.rbac.urls')),

    # Tenants and master panel
    path('v1/', include('apps.tenants.urls')),
]
