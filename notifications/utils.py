import logging
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from users.models import CustomUser, UserRole
from .consumers import user_group
from .models import Notification

logger = logging.getLogger(__name__)


def send_and_save_notification(user, title, message, permission_request=None):
    """
    Utility function to send a WebSocket notification and save it to the database.

    Args:
        user: The user to send the notification to
        title: The notification title
        message: The notification message body
        permission_request: Optional PermissionRequest the notification is about
    """
    notification = Notification.objects.create(
        user=user,
        title=title,
        message=message,
        permission_request=permission_request,
    )

    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured, notification saved but not pushed.")
        return notification

    request_id = str(permission_request.pk) if permission_request is not None else None
    async_to_sync(channel_layer.group_send)(user_group(user.id), {
        "type": "permission.notice",
        "notice": {"id": notification.id, "title": title, "body": message, "permission_request_id": request_id},
    })
    logger.info(f"Sent notification to {user.email}: {title}")
    return notification


def notify_class_authorities(permission_request):
    """Tell the class teacher and CR of the request's class that a letter is waiting."""
    authorities = CustomUser.objects.filter(
        role__in=[UserRole.CLASS_TEACHER, UserRole.CR],
        department=permission_request.department,
        year=permission_request.year,
        section=permission_request.section,
        is_active=True,
    ).exclude(pk=permission_request.student_id)

    message = (
        f"{permission_request.student_name or permission_request.student.name} "
        f"({permission_request.roll_number or 'no roll number'}) has requested permission for "
        f"{permission_request.requested_date.strftime('%d %b, %Y')} "
        f"{permission_request.requested_start_time.strftime('%H:%M')}-"
        f"{permission_request.requested_end_time.strftime('%H:%M')}. "
        f"Reason: {permission_request.reason}"
    )
    for authority in authorities:
        send_and_save_notification(
            user=authority,
            title="New Permission Request",
            message=message,
            permission_request=permission_request,
        )


def notify_student_of_decision(permission_request):
    if permission_request.status == 'APPROVED':
        title = "Permission Request Approved"
        message = (
            f"Your permission request has been approved by {permission_request.approved_by}. "
            f"Authorized time: {permission_request.permission_date.strftime('%d %b, %Y')} "
            f"{permission_request.start_time.strftime('%H:%M')}-{permission_request.end_time.strftime('%H:%M')}."
        )
    else:
        title = "Permission Request Rejected"
        message = (
            f"Your permission request has been rejected by {permission_request.approved_by}. "
            f"Please contact your class teacher for more information."
        )
    send_and_save_notification(
        user=permission_request.student,
        title=title,
        message=message,
        permission_request=permission_request,
    )
