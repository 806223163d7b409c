"""
Decision logic for permission requests.

Nothing in here touches the database or the request: every function works on
plain record objects (model instances or anything with the same attributes)
and an explicit `now`, so it can be called from views, management commands
and tests alike.
"""
from collections import namedtuple
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from users.models import UserRole

SUBMITTED = 'SUBMITTED'
APPROVED = 'APPROVED'
REJECTED = 'REJECTED'
EXPIRED = 'EXPIRED'

ACTIVE_LABEL = 'Active'
UPCOMING_LABEL = 'Upcoming'
COMPLETED_LABEL = 'Completed'


class Scope(namedtuple('Scope', ['department', 'year', 'section'])):
    """A class, identified by department, year and section."""

    @classmethod
    def of(cls, obj):
        return cls(obj.department, obj.year, obj.section)

    def __str__(self):
        return f"{self.department}-{self.year}-{self.section}"


class LifecycleError(Exception):
    pass


class AuthorizationError(LifecycleError):
    """The viewer may not act on this record."""


class InvalidTransitionError(LifecycleError):
    """The record is no longer SUBMITTED."""

    def __init__(self, record):
        super().__init__(f"Permission request {record.id} is already {record.status}.")
        self.record = record


def expiry_threshold():
    return timedelta(hours=settings.PERMISSION_EXPIRY_HOURS)


def is_expired(record, now=None):
    """
    A SUBMITTED record nobody acted on within the threshold is treated as gone.
    Decided records never expire.
    """
    if record.status != SUBMITTED:
        return False
    now = now or timezone.now()
    return now - record.created_at >= expiry_threshold()


def live_records(records, now=None):
    now = now or timezone.now()
    return [r for r in records if not is_expired(r, now)]


def _minutes(value):
    return value.hour * 60 + value.minute


def is_active(record, now=None):
    """True while an approved permission's window covers the local wall clock."""
    if record.status != APPROVED:
        return False
    if not (record.permission_date and record.start_time and record.end_time):
        return False
    local_now = timezone.localtime(now or timezone.now())
    if record.permission_date != local_now.date():
        return False
    return _minutes(record.start_time) <= _minutes(local_now) <= _minutes(record.end_time)


def window_label(record, now=None):
    """Presentation label for an approved record: Active, Upcoming or Completed."""
    if record.status != APPROVED or not record.permission_date:
        return None
    local_now = timezone.localtime(now or timezone.now())
    today = local_now.date()
    if record.permission_date > today:
        return UPCOMING_LABEL
    if record.permission_date < today:
        return COMPLETED_LABEL
    if is_active(record, now):
        return ACTIVE_LABEL
    if record.start_time and _minutes(local_now) < _minutes(record.start_time):
        return UPCOMING_LABEL
    return COMPLETED_LABEL


def _by_created(records, newest_first=False):
    return sorted(records, key=lambda r: r.created_at, reverse=newest_first)


def _by_roll_number(records):
    return sorted(records, key=lambda r: r.roll_number or '')


class Authority:
    """
    What a signed in user may see and do with permission requests.

    Subclasses only say how their role differs; the filters themselves are
    written once here.
    """
    approves = False
    label_suffix = ''

    def __init__(self, user):
        self.user = user
        self.scope = Scope.of(user)

    @property
    def approval_label(self):
        return f"{self.user.name}{self.label_suffix}"

    def in_scope(self, record):
        return Scope.of(record) == self.scope

    def owns(self, record):
        return str(record.student_id) == str(self.user.pk)

    def can_approve(self, record):
        return self.approves and self.in_scope(record)

    def pending(self, records):
        """Oldest first, so requests are reviewed in the order they came in."""
        queue = [r for r in records if r.status == SUBMITTED and self.can_approve(r)]
        return _by_created(queue)

    def history(self, records):
        decided = [r for r in records if r.status != SUBMITTED and self.in_scope(r)]
        return _by_created(decided, newest_first=True)

    def own_history(self, records):
        return _by_created([r for r in records if self.owns(r)], newest_first=True)

    def todays_board(self, records, now=None):
        return []

    def lookup(self, records, scope):
        """Approved records of any class, for staff."""
        scope = Scope(*scope)
        approved = [r for r in records if r.status == APPROVED and Scope.of(r) == scope]
        return _by_roll_number(approved)

    def list_visible(self, records):
        visible = {r.pk: r for r in self.own_history(records)}
        if self.approves:
            for r in self.pending(records) + self.history(records):
                visible[r.pk] = r
        return _by_created(visible.values(), newest_first=True)

    def can_view(self, record):
        return self.owns(record) or (self.approves and self.in_scope(record))


class StudentCapability(Authority):
    pass


class GeneralTeacherCapability(Authority):
    def can_view(self, record):
        return super().can_view(record) or record.status == APPROVED


class ClassTeacherAuthority(Authority):
    approves = True


class ClassRepresentativeAuthority(Authority):
    approves = True
    label_suffix = ' (CR)'

    def can_approve(self, record):
        # a CR is also a student of the section and never decides its own request
        return super().can_approve(record) and not self.owns(record)

    def todays_board(self, records, now=None):
        today = timezone.localtime(now or timezone.now()).date()
        board = [
            r for r in records
            if self.in_scope(r) and r.status == APPROVED and r.permission_date == today
        ]
        return _by_roll_number(board)


AUTHORITY_CLASSES = {
    UserRole.STUDENT: StudentCapability,
    UserRole.CLASS_TEACHER: ClassTeacherAuthority,
    UserRole.CR: ClassRepresentativeAuthority,
    UserRole.TEACHER: GeneralTeacherCapability,
}


def authority_for(user):
    return AUTHORITY_CLASSES.get(user.role, StudentCapability)(user)


def authorize_transition(authority, record):
    """Raise AuthorizationError unless `authority` may decide `record`."""
    if not authority.approves:
        raise AuthorizationError('Only class teachers and CRs can approve or reject requests.')
    if not authority.in_scope(record):
        raise AuthorizationError(f"This request belongs to {Scope.of(record)}, not {authority.scope}.")
    if authority.owns(record):
        raise AuthorizationError('You cannot approve or reject your own request.')


def approve(record, authority, confirmed_date=None, confirmed_start=None, confirmed_end=None, now=None):
    """
    Move a SUBMITTED record to APPROVED and fix its permission window.
    Omitted window values fall back to what the student asked for.
    """
    if record.status != SUBMITTED:
        raise InvalidTransitionError(record)
    record.status = APPROVED
    record.approved_by = authority.approval_label
    record.approved_at = now or timezone.now()
    record.permission_date = confirmed_date or record.requested_date
    record.start_time = confirmed_start or record.requested_start_time
    record.end_time = confirmed_end or record.requested_end_time
    return record


def reject(record, authority, now=None):
    if record.status != SUBMITTED:
        raise InvalidTransitionError(record)
    record.status = REJECTED
    record.approved_by = authority.approval_label
    record.approved_at = now or timezone.now()
    return record
