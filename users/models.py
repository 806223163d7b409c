from django.db import models
from django.contrib.auth.models import AbstractUser
from django.core.validators import validate_email
from django.contrib.auth.base_user import BaseUserManager
from django.contrib.auth.models import Group
# Create your models here.


class UserRole(models.TextChoices):
    STUDENT = 'STUDENT', 'Student'
    CLASS_TEACHER = 'CLASS_TEACHER', 'Class Teacher'
    CR = 'CR', 'Class Representative'
    TEACHER = 'TEACHER', 'General Teacher'


# auth group backing each role, used by core.permissions
ROLE_GROUPS = {
    UserRole.STUDENT: 'student',
    UserRole.CLASS_TEACHER: 'class-teacher',
    UserRole.CR: 'cr',
    UserRole.TEACHER: 'teacher',
}

# roles whose scope is fixed when the account is provisioned
PROVISIONED_ROLES = (UserRole.CLASS_TEACHER, UserRole.CR)


class CustomUserManager(BaseUserManager):
    """Custom user model manager where email is the unique identifier"""

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a User with the given email.
        Accounts created without a password get an unusable one and can only
        sign in through the college mail login.
        """
        if not email:
            raise ValueError('The Email must be set')
        email = self.normalize_email(email).lower()
        extra_fields.setdefault('role', UserRole.STUDENT)
        groups = extra_fields.pop('groups', None) or [ROLE_GROUPS[extra_fields['role']]]
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save()
        group_objs = Group.objects.filter(name__in=groups)
        user.groups.set(group_objs)
        return user

    def create_superuser(self, email, password, **extra_fields):
        """Create and save a SuperUser with the given email and password."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('groups', ['admin'])

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')
        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    # ForeignKey from PermissionRequest - related_name: permission_requests
    # ForeignKey from Notification - related_name: notifications
    username = None
    email = models.EmailField(unique=True, validators=[validate_email])
    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.STUDENT)
    department = models.CharField(max_length=20, blank=True)
    year = models.CharField(max_length=4, blank=True)
    section = models.CharField(max_length=4, blank=True)
    roll_number = models.CharField(max_length=20, blank=True, null=True)
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = CustomUserManager()  # Use the custom manager

    class Meta:
        indexes = [
            models.Index(fields=['department', 'year', 'section'], name='user_scope_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.email})"

    @property
    def scope(self):
        from permit_management.lifecycle import Scope  # Import here to avoid circular import
        return Scope(self.department, self.year, self.section)

    @property
    def is_provisioned(self):
        return self.role in PROVISIONED_ROLES

    def delete(self, using=None, keep_parents=False):
        self.groups.clear()
        super().delete(using, keep_parents)

    def save(self, *args, **kwargs):
        self.name = self.name or self.email.split('@')[0]
        super().save(*args, **kwargs)
