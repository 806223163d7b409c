from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from permit_management.store import PermissionStore


class Command(BaseCommand):
    help = 'Delete SUBMITTED permission requests nobody acted on within the expiry threshold'

    def handle(self, *args, **options):
        try:
            deleted = PermissionStore().sweep_expired()
        except DatabaseError as e:
            raise CommandError(f"Sweep failed: {e}")
        self.stdout.write(self.style.SUCCESS(f"Removed {deleted} expired permission request(s)."))
