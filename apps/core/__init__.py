"""
Core building blocks shared by the Vox CRM apps.

Base model, exception hierarchy, structured logging and the DRF glue
used by the access-control layer.
"""
