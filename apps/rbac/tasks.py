"""
Celery tasks for RBAC maintenance.
"""
import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name='apps.rbac.tasks.reconcile_profile_levels')
def reconcile_profile_levels(batch_size=500):
    """
    Repair drift between RoleGrant and the cached Profile.user_level.

    Returns the number of profiles that were corrected.
    """
    from apps.rbac.models import Profile, RoleGrant
    from apps.rbac.policy import highest_level

    roles_by_user = {}
    for user_id, role in RoleGrant.objects.values_list('user_id', 'role').iterator(chunk_size=batch_size):
        roles_by_user.setdefault(user_id, []).append(role)

    corrected = 0
    for profile in Profile.objects.only('user_level').iterator(chunk_size=batch_size):
        expected = highest_level(roles_by_user.get(profile.pk, ()))
        if profile.user_level != expected:
            logger.warning(
                f"Profile level drift for {profile.pk}: {profile.user_level} -> {expected}"
            )
            Profile.objects.filter(pk=profile.pk).update(user_level=expected)
            corrected += 1

    logger.info(f"Reconciled profile levels, corrected {corrected}")
    return corrected
