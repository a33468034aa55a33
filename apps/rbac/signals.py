"""
RBAC signals keeping the cached Profile.user_level in step with RoleGrant.

RoleGrant is authoritative. Any save (including the soft delete done by
BaseModel.delete) or hard delete of a grant recomputes the owner's cached
level. Bulk queryset updates bypass signals; reconcile_profile_levels
repairs whatever drift they leave.
"""
import logging
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='rbac.RoleGrant')
def sync_profile_level_on_grant_save(sender, instance, **kwargs):
    from apps.rbac.services import ProfileService

    if kwargs.get('raw'):
        return

    ProfileService.sync_level(instance.user)
    logger.debug(
        f"Profile level synced after grant change for {instance.user_id}",
        extra={'role': instance.role}
    )


@receiver(post_delete, sender='rbac.RoleGrant')
def sync_profile_level_on_grant_delete(sender, instance, **kwargs):
    """
    Hard deletes also happen while the user itself is being deleted, so
    only existing profiles are touched here.
    """
    from apps.rbac.models import Profile, RoleGrant
    from apps.rbac.policy import highest_level

    level = highest_level(RoleGrant.objects.roles_for(instance.user_id))
    Profile.objects_with_deleted.filter(user_id=instance.user_id).update(user_level=level)
