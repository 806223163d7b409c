import uuid
from django.db import models
from django.utils import timezone
from users.models import CustomUser
from .lifecycle import Scope


class PermissionStatus(models.TextChoices):
    SUBMITTED = 'SUBMITTED', 'Submitted'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'
    # never stored, SUBMITTED records past the expiry threshold are swept instead
    EXPIRED = 'EXPIRED', 'Expired'


class PermissionRequest(models.Model):
    # ForeignKey from Notification - related_name: notifications
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student = models.ForeignKey(
        CustomUser,  # <-- ForeignKey to CustomUser (users.models)
        on_delete=models.CASCADE, related_name='permission_requests'
    )  # Each permission request is submitted by a student
    # entered by the student on the form, not copied from the account
    student_name = models.CharField(max_length=150, blank=True)
    roll_number = models.CharField(max_length=20, blank=True)
    department = models.CharField(max_length=20)
    year = models.CharField(max_length=4)
    section = models.CharField(max_length=4)
    reason = models.TextField()
    letter_image_base64 = models.TextField()
    status = models.CharField(max_length=10, choices=PermissionStatus.choices, default=PermissionStatus.SUBMITTED)

    # what the student asked for
    requested_date = models.DateField()
    requested_start_time = models.TimeField()
    requested_end_time = models.TimeField()

    ai_verification = models.JSONField(blank=True, null=True)

    approved_by = models.CharField(max_length=180, blank=True, null=True)
    approved_at = models.DateTimeField(blank=True, null=True)

    # what the authority confirmed, set on approval
    permission_date = models.DateField(blank=True, null=True)
    start_time = models.TimeField(blank=True, null=True)
    end_time = models.TimeField(blank=True, null=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['department', 'year', 'section', 'status'], name='permission_scope_status_idx'),
            models.Index(fields=['status', 'created_at'], name='permission_status_created_idx'),
        ]

    @property
    def scope(self):
        return Scope.of(self)

    def __str__(self):
        return f"{self.student_name or self.student} - {self.scope} ({self.status})"
