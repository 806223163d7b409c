from unittest import mock

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from users.models import CustomUser, UserRole
from .models import Notification
from .utils import send_and_save_notification


class NotificationTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = CustomUser.objects.create_user(email='23691a3101@mits.ac.in', roll_number='23691A3101')
        self.other = CustomUser.objects.create_user(
            email='teachera@mits.ac.in', password='TSECA', role=UserRole.CLASS_TEACHER,
            department='CAI', year='3', section='A',
        )
        self.client.force_authenticate(user=self.user)

    @mock.patch('notifications.utils.get_channel_layer')
    def test_notification_is_saved_and_pushed(self, mock_get_layer):
        layer = mock.Mock()
        layer.group_send = mock.AsyncMock()
        mock_get_layer.return_value = layer

        notification = send_and_save_notification(self.user, 'Permission Request Approved', 'See you at 10:00.')

        self.assertEqual(Notification.objects.get().pk, notification.pk)
        layer.group_send.assert_awaited_once_with(f"user_{self.user.id}", {
            "type": "permission.notice",
            "notice": {
                "id": notification.pk,
                "title": "Permission Request Approved",
                "body": "See you at 10:00.",
                "permission_request_id": None,
            },
        })

    def test_user_only_sees_own_notifications(self):
        send_and_save_notification(self.user, 'Mine', 'body')
        send_and_save_notification(self.other, 'Theirs', 'body')
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.data], ['Mine'])

    def test_mark_as_read(self):
        first = send_and_save_notification(self.user, 'First', 'body')
        send_and_save_notification(self.user, 'Second', 'body')

        response = self.client.post(f'/api/v1/notifications/{first.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get('/api/v1/notifications/unread/')
        self.assertEqual([n['title'] for n in response.data], ['Second'])

        response = self.client.post("/api/v1/notifications/read-all/")
        self.assertEqual(response.data, {"marked": 1})
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())

    def test_cannot_mark_someone_elses_notification(self):
        theirs = send_and_save_notification(self.other, 'Theirs', 'body')
        response = self.client.post(f'/api/v1/notifications/{theirs.pk}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
