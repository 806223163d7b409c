from rest_framework.permissions import BasePermission


class BaseIsUserOrAbove(BasePermission):
    """
    Base user or above class that can be expanding by adding below
    """
    required_groups = []

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated
            and request.user.is_active
            and request.user.groups.filter(name__in=self.required_groups).exists()
        )


class IsAdminUser(BaseIsUserOrAbove):
    """
    Check if user belongs to admin group.
    """
    required_groups = ['admin']


class IsClassRepresentativeUser(BaseIsUserOrAbove):
    """
    Check if user is the elected class representative of a section.
    """
    required_groups = ['cr']


class IsApproverUser(BaseIsUserOrAbove):
    """
    Check if user can approve or reject requests (class teacher or CR).
    """
    required_groups = ['class-teacher', 'cr']


class IsStaffOrAboveUser(BaseIsUserOrAbove):
    """
    Check if user belongs to a staff role (class teacher, CR or general teacher).
    """
    required_groups = ['admin', 'class-teacher', 'cr', 'teacher']


class IsSubmitterUser(BaseIsUserOrAbove):
    """
    Check if user may submit permission letters (students, CRs included).
    """
    required_groups = ['student', 'cr']


class IsCampusUser(BaseIsUserOrAbove):
    """
    Check if user belongs to any role group.
    """
    required_groups = ['admin', 'class-teacher', 'cr', 'teacher', 'student']
