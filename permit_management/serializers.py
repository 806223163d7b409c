from rest_framework import serializers
from django.utils import timezone
from datetime import time
from users.models import CustomUser
from .models import PermissionRequest
from . import lifecycle

TIME_FORMAT = '%H:%M'
TIME_INPUT_FORMATS = ['%H:%M', '%H:%M:%S']

# requested window used when the student leaves it blank
DEFAULT_START_TIME = time(10, 0)
DEFAULT_END_TIME = time(17, 0)


def hhmm(**kwargs):
    return serializers.TimeField(format=TIME_FORMAT, input_formats=TIME_INPUT_FORMATS, **kwargs)


def check_window(start, end, field='endTime'):
    if start and end and start > end:
        raise serializers.ValidationError({field: 'End time must not be before start time.'})


class PermissionRequestSerializer(serializers.ModelSerializer):
    """
    Wire representation of a permission request, field names are camelCase
    for compatibility with existing clients.
    """
    id = serializers.UUIDField(required=False)
    studentId = serializers.PrimaryKeyRelatedField(source='student', queryset=CustomUser.objects.all())
    studentName = serializers.CharField(source='student_name', allow_blank=True, required=False)
    rollNumber = serializers.CharField(source='roll_number', allow_blank=True, required=False)
    letterImageBase64 = serializers.CharField(source='letter_image_base64')
    requestedDate = serializers.DateField(source='requested_date')
    requestedStartTime = hhmm(source='requested_start_time')
    requestedEndTime = hhmm(source='requested_end_time')
    aiVerification = serializers.JSONField(source='ai_verification', required=False, allow_null=True)
    approvedBy = serializers.CharField(source='approved_by', required=False, allow_null=True, allow_blank=True)
    approvedAt = serializers.DateTimeField(source='approved_at', required=False, allow_null=True)
    permissionDate = serializers.DateField(source='permission_date', required=False, allow_null=True)
    startTime = hhmm(source='start_time', required=False, allow_null=True)
    endTime = hhmm(source='end_time', required=False, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', required=False)
    isActive = serializers.SerializerMethodField()
    windowLabel = serializers.SerializerMethodField()

    class Meta:
        model = PermissionRequest
        fields = [
            'id', 'studentId', 'studentName', 'rollNumber',
            'department', 'year', 'section', 'reason', 'letterImageBase64', 'status',
            'requestedDate', 'requestedStartTime', 'requestedEndTime',
            'aiVerification', 'approvedBy', 'approvedAt',
            'permissionDate', 'startTime', 'endTime', 'createdAt',
            'isActive', 'windowLabel',
        ]

    def to_representation(self, instance):
        representation = super().to_representation(instance)
        representation['studentId'] = str(instance.student_id)
        return representation

    def _now(self):
        return self.context.get('now') or timezone.now()

    def get_isActive(self, obj):
        return lifecycle.is_active(obj, self._now())

    def get_windowLabel(self, obj):
        return lifecycle.window_label(obj, self._now())


class PermissionSubmissionSerializer(serializers.Serializer):
    """
    What a student fills in. Scope, reason and the letter are mandatory;
    nothing is stored unless all of them are present.
    """
    studentName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    rollNumber = serializers.CharField(required=False, allow_blank=True, max_length=20)
    department = serializers.CharField(max_length=20)
    year = serializers.CharField(max_length=4)
    section = serializers.CharField(max_length=4)
    reason = serializers.CharField()
    letterImageBase64 = serializers.CharField()
    requestedDate = serializers.DateField(required=False)
    requestedStartTime = hhmm(required=False)
    requestedEndTime = hhmm(required=False)

    def validate(self, attrs):
        check_window(attrs.get('requestedStartTime', DEFAULT_START_TIME), attrs.get('requestedEndTime', DEFAULT_END_TIME),
                     field='requestedEndTime')
        return attrs

    def build(self, student, now=None):
        """An unsaved SUBMITTED PermissionRequest for `student`."""
        data = self.validated_data
        now = now or timezone.now()
        return PermissionRequest(
            student=student,
            student_name=data.get('studentName') or student.name,
            roll_number=data.get('rollNumber') or student.roll_number or '',
            department=data['department'],
            year=data['year'],
            section=data['section'],
            reason=data['reason'],
            letter_image_base64=data['letterImageBase64'],
            requested_date=data.get('requestedDate') or timezone.localtime(now).date(),
            requested_start_time=data.get('requestedStartTime') or DEFAULT_START_TIME,
            requested_end_time=data.get('requestedEndTime') or DEFAULT_END_TIME,
            created_at=now,
        )


class ApprovalSerializer(serializers.Serializer):
    """Confirmed window; anything left out defaults to what was requested."""
    permissionDate = serializers.DateField(required=False, allow_null=True)
    startTime = hhmm(required=False, allow_null=True)
    endTime = hhmm(required=False, allow_null=True)

    def validate(self, attrs):
        record = self.context['record']
        check_window(
            attrs.get('startTime') or record.requested_start_time,
            attrs.get('endTime') or record.requested_end_time,
        )
        return attrs


class LookupSerializer(serializers.Serializer):
    department = serializers.CharField()
    year = serializers.CharField()
    section = serializers.CharField()
