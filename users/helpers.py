import logging
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from .models import UserRole

logger = logging.getLogger(__name__)

User = get_user_model()


class LoginError(Exception):
    """
    A refused login. Carries the message shown to the user and the HTTP
    status the login endpoint answers with.
    """
    def __init__(self, message, status_code=status.HTTP_400_BAD_REQUEST):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _find_user(email):
    return User.objects.filter(email__iexact=email).first()


def login_with_password(email, password):
    """
    Password login, reserved for provisioned accounts (class teachers and CRs).
    Accounts without a password must use the college mail login instead.
    """
    normalized_email = (email or '').strip().lower()
    user = _find_user(normalized_email)
    if user is None:
        raise LoginError('User not found.', status.HTTP_404_NOT_FOUND)
    if not user.has_usable_password():
        raise LoginError('Please use "Sign in with Google" for this account.', status.HTTP_400_BAD_REQUEST)
    if not user.check_password(password or ''):
        raise LoginError('Invalid password.', status.HTTP_401_UNAUTHORIZED)
    if not user.is_active:
        raise LoginError('This account has been deactivated.', status.HTTP_403_FORBIDDEN)
    logger.info(f"Password login for {user.email} ({user.role})")
    return user


def login_with_college_mail(email):
    """
    Federated login with a domain-verified college mail id.

    Administrative accounts that have a password are refused. Unknown addresses
    are registered on first sight: addresses containing "staff" become general
    teachers with the default staff scope, everything else becomes a student
    whose roll number is the upper-cased local part.
    """
    normalized_email = (email or '').strip().lower()
    domain = settings.COLLEGE_EMAIL_DOMAIN.lower()
    if not normalized_email.endswith(domain):
        raise LoginError(f'Access restricted to {domain} domain.', status.HTTP_403_FORBIDDEN)

    user = _find_user(normalized_email)
    if user is not None:
        if user.has_usable_password():
            raise LoginError('This administrative account must login with a Password.', status.HTTP_403_FORBIDDEN)
        if not user.is_active:
            raise LoginError('This account has been deactivated.', status.HTTP_403_FORBIDDEN)
        return user

    local_part = normalized_email.split('@')[0]
    id_part = local_part.upper()
    if 'staff' in local_part:
        department, year, section = settings.DEFAULT_STAFF_SCOPE
        user = User.objects.create_user(
            email=normalized_email,
            name=f"Staff {id_part}",
            role=UserRole.TEACHER,
            department=department,
            year=year,
            section=section,
            roll_number=None,
        )
    else:
        user = User.objects.create_user(
            email=normalized_email,
            name=f"Student {id_part}",
            role=UserRole.STUDENT,
            roll_number=id_part,
        )
    logger.info(f"Registered {user.role} account {user.email} on first login")
    return user


def issue_tokens(user):
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }
