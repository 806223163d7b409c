"""
Durable collection of permission requests.

Every read goes through the expiry sweep first. Failures of the database are
reported through `StoreResult` instead of escaping as exceptions: writes fail
loudly, reads fall back to the last snapshot served for the same scope and say
so through `degraded`.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError
from django.utils import timezone

from . import lifecycle
from .models import PermissionRequest, PermissionStatus

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The permission store could not be reached."""


class StaleStateError(Exception):
    """The record changed (or vanished) since it was read."""

    def __init__(self, record, current=None):
        super().__init__(f"Permission request {record.id} is no longer {PermissionStatus.SUBMITTED}.")
        self.record = record
        self.current = current


@dataclass
class StoreResult:
    ok: bool
    value: Any = None
    error: Optional[StorageError] = None
    degraded: bool = False

    @classmethod
    def success(cls, value=None, degraded=False):
        return cls(ok=True, value=value, degraded=degraded)

    @classmethod
    def failure(cls, error):
        return cls(ok=False, error=error)


def _snapshot_key(scope):
    return 'permissions:all' if scope is None else f"permissions:{lifecycle.Scope(*scope)}"


class PermissionStore:

    def sweep_expired(self, now=None):
        """
        Delete SUBMITTED requests older than the expiry threshold.
        Decided requests are kept whatever their age.
        """
        now = now or timezone.now()
        cutoff = now - lifecycle.expiry_threshold()
        deleted, _ = PermissionRequest.objects.filter(
            status=PermissionStatus.SUBMITTED,
            created_at__lte=cutoff,
        ).delete()
        if deleted:
            logger.info(f"Auto-deleted {deleted} expired permission(s).")
        return deleted

    def list_permissions(self, scope=None, now=None):
        """
        Return every live request, optionally narrowed to one class.
        `scope` is a (department, year, section) triple.
        """
        now = now or timezone.now()
        key = _snapshot_key(scope)
        try:
            self.sweep_expired(now)
            queryset = PermissionRequest.objects.all()
            if scope is not None:
                department, year, section = scope
                queryset = queryset.filter(department=department, year=year, section=section)
            records = lifecycle.live_records(queryset, now)
        except DatabaseError as e:
            logger.error(f"Permission store unavailable while listing {key}: {e}")
            snapshot = cache.get(key)
            if snapshot is None:
                return StoreResult.failure(StorageError(str(e)))
            # the snapshot may hold requests that expired since it was taken
            return StoreResult.success(lifecycle.live_records(snapshot, now), degraded=True)

        cache.set(key, records, settings.PERMISSION_SNAPSHOT_SECONDS)
        return StoreResult.success(records)

    def get_permission(self, pk, now=None):
        """A live request by id; `value` is None when it does not exist or has expired."""
        try:
            record = PermissionRequest.objects.select_related('student').filter(pk=pk).first()
        except DatabaseError as e:
            logger.error(f"Permission store unavailable while reading {pk}: {e}")
            return StoreResult.failure(StorageError(str(e)))
        if record is not None and lifecycle.is_expired(record, now):
            record = None
        return StoreResult.success(record)

    def upsert_permission(self, record):
        """Insert or overwrite a whole request."""
        try:
            record.save()
        except DatabaseError as e:
            logger.error(f"Failed to save permission request {record.id}: {e}")
            return StoreResult.failure(StorageError(str(e)))
        return StoreResult.success(record)

    def transition(self, record, now=None):
        """
        Persist a decision taken on `record`, but only if the stored row is still
        SUBMITTED. The first decision wins; a later one raises StaleStateError
        carrying the row as it is now.
        """
        now = now or timezone.now()
        try:
            updated = PermissionRequest.objects.filter(
                pk=record.pk,
                status=PermissionStatus.SUBMITTED,
            ).update(
                status=record.status,
                approved_by=record.approved_by,
                approved_at=record.approved_at,
                permission_date=record.permission_date,
                start_time=record.start_time,
                end_time=record.end_time,
                updated_at=now,
            )
            if not updated:
                current = PermissionRequest.objects.filter(pk=record.pk).first()
                raise StaleStateError(record, current)
        except DatabaseError as e:
            logger.error(f"Failed to record decision on permission request {record.id}: {e}")
            return StoreResult.failure(StorageError(str(e)))
        logger.info(f"Permission request {record.id} {record.status} by {record.approved_by}")
        return StoreResult.success(record)
