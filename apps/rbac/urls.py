"""
RBAC API URLs.
"""
from django.urls import path
from apps.rbac.views import UserRoleView

app_name = 'rbac'

urlpatterns = [
    path('users/<uuid:user_id>/role', UserRoleView.as_view(), name='user-role'),
]
