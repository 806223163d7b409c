from django.db.models.signals import post_migrate
from django.contrib.auth.models import Group
from django.dispatch import receiver

from .models import ROLE_GROUPS

ADMIN_GROUP = 'admin'


@receiver(post_migrate)
def create_role_groups(sender, **kwargs):
    """One auth group per role, plus the admin group used for provisioning."""
    for group_name in [ADMIN_GROUP, *ROLE_GROUPS.values()]:
        Group.objects.get_or_create(name=group_name)
