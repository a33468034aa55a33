"""
Signals for tenant membership events.
"""
import logging
from django.db.models import F
from django.db.models.functions import Greatest
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from apps.tenants.models import Tenant, TenantMember

logger = logging.getLogger(__name__)


@receiver(post_save, sender=TenantMember)
def count_member_on_save(sender, instance, created, **kwargs):
    """
    Keep Tenant.current_users in step with membership rows.

    A new row adds one. A soft delete (a save that sets deleted_at) removes
    one.
    """
    if kwargs.get('raw'):
        return

    update_fields = kwargs.get('update_fields') or ()
    if created:
        delta = 1
    elif 'deleted_at' in update_fields:
        delta = -1 if instance.deleted_at else 1
    else:
        return

    _adjust_member_count(instance.tenant_id, delta)


@receiver(post_delete, sender=TenantMember)
def count_member_on_delete(sender, instance, **kwargs):
    if instance.deleted_at is None:
        _adjust_member_count(instance.tenant_id, -1)


def _adjust_member_count(tenant_id, delta):
    Tenant.objects_with_deleted.filter(id=tenant_id).update(
        current_users=Greatest(F('current_users') + delta, 0)
    )
    logger.debug(
        f"Adjusted member count by {delta}",
        extra={'tenant_id': str(tenant_id)}
    )
