"""
Tenant API URLs.
"""
from django.urls import path
from apps.tenants import views

app_name = 'tenants'

urlpatterns = [
    # Tenant-scoped screens
    path('tenants/<slug:slug>', views.TenantDetailView.as_view(), name='tenant-detail'),
    path('tenants/<slug:slug>/admin-check', views.TenantAdminCheckView.as_view(), name='tenant-admin-check'),
    path('tenants/<slug:slug>/members', views.TenantMemberView.as_view(), name='tenant-members'),

    # Master panel
    path('master/tenants', views.MasterTenantListView.as_view(), name='master-tenant-list'),
    path('master/tenants/<slug:slug>/suspend', views.MasterTenantSuspendView.as_view(), name='master-tenant-suspend'),
    path('master/tenants/<slug:slug>/activate', views.MasterTenantActivateView.as_view(), name='master-tenant-activate'),
    path('master/users', views.MasterUserListView.as_view(), name='master-user-list'),
    path('master/metrics', views.MasterMetricsView.as_view(), name='master-metrics'),
]
