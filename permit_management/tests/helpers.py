from datetime import time

from django.utils import timezone

from users.models import CustomUser, UserRole
from ..models import PermissionRequest

LETTER = 'data:image/png;base64,iVBORw0KGgo='


def make_account(email, role=UserRole.STUDENT, section='A', **extra):
    extra.setdefault('department', 'CAI')
    extra.setdefault('year', '3')
    return CustomUser.objects.create_user(email=email, role=role, section=section, **extra)


def make_request(student, created_at=None, section=None, **extra):
    fields = dict(
        student=student,
        student_name=student.name,
        roll_number=student.roll_number or '',
        department='CAI',
        year='3',
        section=section or student.section or 'A',
        reason='Medical appointment',
        letter_image_base64=LETTER,
        requested_date=timezone.localdate(),
        requested_start_time=time(10),
        requested_end_time=time(17),
        created_at=created_at or timezone.now(),
    )
    fields.update(extra)
    return PermissionRequest.objects.create(**fields)
