"""
URL routing for authentication endpoints.
"""
from django.urls import path
from apps.rbac.views import PermissionsView, RouteCheckView, RolesView
from apps.rbac.views_auth import (
    SignUpView, SignInView, SignOutView, ForgotPasswordView,
    ResetPasswordView, MeView,
)

app_name = 'auth'

urlpatterns = [
    # Registration and login
    path('register', SignUpView.as_view(), name='register'),
    path('login', SignInView.as_view(), name='login'),
    path('logout', SignOutView.as_view(), name='logout'),

    # Password reset
    path('forgot-password', ForgotPasswordView.as_view(), name='forgot-password'),
    path('reset-password', ResetPasswordView.as_view(), name='reset-password'),

    # Own profile (GET and PATCH on same endpoint)
    path('me', MeView.as_view(), name='me'),

    # Access control
    path('permissions', PermissionsView.as_view(), name='permissions'),
    path('route-check', RouteCheckView.as_view(), name='route-check'),
    path('roles', RolesView.as_view(), name='roles'),
]
