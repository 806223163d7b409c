from datetime import timedelta
from unittest import mock

from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from notifications.models import Notification
from users.models import UserRole
from ..models import PermissionRequest, PermissionStatus
from ..store import PermissionStore, StoreResult, StorageError
from ..verification import fallback_result
from .helpers import LETTER, make_account, make_request

ANALYZE = 'permit_management.views.permission_request_views.analyze_permission_letter'

VERDICT = {
    "extractedName": "Asha Rao",
    "extractedReason": "Hospital visit",
    "hasSignature": True,
    "riskScore": 12,
    "summary": "Signed letter from parent.",
    "isLegitimate": True,
}


class PermissionRequestAPITestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.student = make_account('23691a3101@mits.ac.in', name='Asha Rao', roll_number='23691A3101')
        self.other_student = make_account('23691a3102@mits.ac.in', name='Kiran', roll_number='23691A3102')
        self.class_teacher = make_account('teachera@mits.ac.in', role=UserRole.CLASS_TEACHER, name='Meena')
        self.teacher_b = make_account('teacherb@mits.ac.in', role=UserRole.CLASS_TEACHER, section='B', name='Suresh')
        self.cr = make_account('cra@mits.ac.in', role=UserRole.CR, name='Ravi', roll_number='23691A31CRA')
        self.staff = make_account('staff.ai@mits.ac.in', role=UserRole.TEACHER, section='C', name='Staff AI')
        self.list_url = reverse('permissionrequest-list')

    def submission(self, **overrides):
        data = {
            'department': 'CAI',
            'year': '3',
            'section': 'A',
            'reason': 'Hospital visit',
            'letterImageBase64': LETTER,
        }
        data.update(overrides)
        return data


class SubmitPermissionTests(PermissionRequestAPITestCase):

    @mock.patch(ANALYZE, return_value=VERDICT)
    def test_student_submits_request(self, mock_analyze):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(self.list_url, self.submission(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], PermissionStatus.SUBMITTED)
        self.assertEqual(response.data['studentId'], str(self.student.pk))
        self.assertEqual(response.data['studentName'], 'Asha Rao')
        self.assertEqual(response.data['rollNumber'], '23691A3101')
        self.assertEqual(response.data['requestedStartTime'], '10:00')
        self.assertEqual(response.data['requestedEndTime'], '17:00')
        self.assertEqual(response.data['requestedDate'], str(timezone.localdate()))
        self.assertEqual(response.data['aiVerification'], VERDICT)
        self.assertIsNone(response.data['approvedBy'])
        mock_analyze.assert_called_once_with(LETTER)

        # class teacher and CR of section A are told, nobody else
        notified = set(Notification.objects.values_list('user__email', flat=True))
        self.assertEqual(notified, {'teachera@mits.ac.in', 'cra@mits.ac.in'})

    @mock.patch(ANALYZE, return_value=fallback_result())
    def test_submission_survives_failed_analysis(self, mock_analyze):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(self.list_url, self.submission(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['aiVerification']['summary'], 'AI analysis failed. Please verify manually.')

    @mock.patch(ANALYZE, return_value=VERDICT)
    def test_missing_fields_are_rejected(self, mock_analyze):
        self.client.force_authenticate(user=self.student)
        for field in ('department', 'year', 'section', 'reason', 'letterImageBase64'):
            data = self.submission()
            del data[field]
            response = self.client.post(self.list_url, data, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn(field, response.data)
        self.assertEqual(PermissionRequest.objects.count(), 0)
        mock_analyze.assert_not_called()

    @mock.patch(ANALYZE, return_value=VERDICT)
    def test_requested_window_must_be_ordered(self, mock_analyze):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(
            self.list_url,
            self.submission(requestedStartTime='15:00', requestedEndTime='11:00'),
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('requestedEndTime', response.data)

    @mock.patch(ANALYZE, return_value=VERDICT)
    def test_teachers_cannot_submit(self, mock_analyze):
        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.post(self.list_url, self.submission(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @mock.patch(ANALYZE, return_value=VERDICT)
    @mock.patch.object(PermissionStore, 'upsert_permission', return_value=StoreResult.failure(StorageError('database is locked')))
    def test_store_failure_is_reported(self, mock_upsert, mock_analyze):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(self.list_url, self.submission(), format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error'], 'Permission store unavailable')
        self.assertFalse(Notification.objects.exists())

    @mock.patch(ANALYZE, return_value=VERDICT)
    @mock.patch('notifications.utils.Notification.objects.create', side_effect=DatabaseError('database is locked'))
    def test_submission_stands_when_notifying_fails(self, mock_create, mock_analyze):
        self.client.force_authenticate(user=self.student)
        response = self.client.post(self.list_url, self.submission(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(PermissionRequest.objects.count(), 1)
        self.assertTrue(mock_create.called)

    def test_anonymous_is_refused(self):
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class DecisionTests(PermissionRequestAPITestCase):
    def setUp(self):
        super().setUp()
        self.record = make_request(self.student)
        self.approve_url = reverse('permissionrequest-approve', args=[self.record.pk])
        self.reject_url = reverse('permissionrequest-reject', args=[self.record.pk])

    def test_pending_queue(self):
        older = make_request(self.other_student, created_at=timezone.now() - timedelta(hours=2))
        make_request(self.cr)
        make_request(self.other_student, section='B')

        self.client.force_authenticate(user=self.cr)
        response = self.client.get(reverse('permissionrequest-pending'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data], [str(older.pk), str(self.record.pk)])

        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.get(reverse('permissionrequest-pending'))
        self.assertEqual(len(response.data), 3)

    def test_students_have_no_queue(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(reverse('permissionrequest-pending'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_class_teacher_approves_with_window(self):
        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.post(self.approve_url, {'startTime': '09:00', 'endTime': '10:00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Request approved successfully')
        self.assertEqual(response.data['object']['approvedBy'], 'Meena')
        self.assertEqual(response.data['object']['startTime'], '09:00')
        self.assertEqual(response.data['object']['permissionDate'], str(self.record.requested_date))

        self.record.refresh_from_db()
        self.assertEqual(self.record.status, PermissionStatus.APPROVED)
        self.assertIsNotNone(self.record.approved_at)
        self.assertTrue(Notification.objects.filter(user=self.student, title='Permission Request Approved').exists())

    def test_cr_rejects(self):
        self.client.force_authenticate(user=self.cr)
        response = self.client.post(self.reject_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Request rejected successfully')
        self.assertEqual(response.data['object']['approvedBy'], 'Ravi (CR)')
        self.assertIsNone(response.data['object']['permissionDate'])
        self.assertTrue(Notification.objects.filter(user=self.student, title='Permission Request Rejected').exists())

    def test_other_section_cannot_decide(self):
        self.client.force_authenticate(user=self.teacher_b)
        response = self.client.post(self.approve_url, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.record.refresh_from_db()
        self.assertEqual(self.record.status, PermissionStatus.SUBMITTED)

    def test_cr_cannot_decide_own_request(self):
        own = make_request(self.cr)
        self.client.force_authenticate(user=self.cr)
        response = self.client.post(reverse('permissionrequest-approve', args=[own.pk]), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_decision_stands_when_notifying_fails(self):
        self.client.force_authenticate(user=self.class_teacher)
        with mock.patch('notifications.utils.Notification.objects.create', side_effect=DatabaseError('database is locked')):
            response = self.client.post(self.approve_url, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['object']['status'], PermissionStatus.APPROVED)
        self.record.refresh_from_db()
        self.assertEqual(self.record.status, PermissionStatus.APPROVED)

    def test_second_decision_conflicts(self):
        self.client.force_authenticate(user=self.class_teacher)
        self.client.post(self.approve_url, format='json')

        self.client.force_authenticate(user=self.cr)
        response = self.client.post(self.reject_url, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['object']['status'], PermissionStatus.APPROVED)
        self.record.refresh_from_db()
        self.assertEqual(self.record.approved_by, 'Meena')

    def test_invalid_window_is_rejected(self):
        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.post(self.approve_url, {'startTime': '12:00', 'endTime': '09:00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.record.refresh_from_db()
        self.assertEqual(self.record.status, PermissionStatus.SUBMITTED)

    def test_expired_request_cannot_be_decided(self):
        expired = make_request(self.other_student, created_at=timezone.now() - timedelta(hours=25))
        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.post(reverse('permissionrequest-approve', args=[expired.pk]), format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_history_lists_decided_requests(self):
        self.client.force_authenticate(user=self.class_teacher)
        self.client.post(self.approve_url, format='json')
        response = self.client.get(reverse('permissionrequest-history'))
        self.assertEqual([r['id'] for r in response.data], [str(self.record.pk)])


class ViewingTests(PermissionRequestAPITestCase):
    def setUp(self):
        super().setUp()
        now = timezone.now()
        self.approved = make_request(
            self.student,
            status=PermissionStatus.APPROVED,
            approved_by='Meena',
            approved_at=now,
            permission_date=timezone.localdate(),
            start_time=self.time_of(now - timedelta(hours=1)),
            end_time=self.time_of(now + timedelta(hours=1)),
        )
        self.pending = make_request(self.other_student)

    @staticmethod
    def time_of(moment):
        return timezone.localtime(moment).time().replace(second=0, microsecond=0)

    def test_mine_only_returns_own(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(reverse('permissionrequest-mine'))
        self.assertEqual([r['id'] for r in response.data], [str(self.approved.pk)])

    def test_student_cannot_read_others(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(reverse('permissionrequest-detail', args=[self.pending.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unknown_id_is_not_found(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'{self.list_url}not-a-uuid/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_todays_board(self):
        self.client.force_authenticate(user=self.cr)
        response = self.client.get(reverse('permissionrequest-today'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data], [str(self.approved.pk)])

    def test_todays_board_is_cr_only(self):
        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.get(reverse('permissionrequest-today'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_lookup(self):
        self.client.force_authenticate(user=self.staff)
        response = self.client.get(reverse('permissionrequest-lookup'), {'department': 'CAI', 'year': '3', 'section': 'A'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data], [str(self.approved.pk)])

    def test_lookup_needs_full_scope(self):
        self.client.force_authenticate(user=self.staff)
        response = self.client.get(reverse('permissionrequest-lookup'), {'department': 'CAI'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_degraded_when_store_fails(self):
        self.client.force_authenticate(user=self.class_teacher)
        response = self.client.get(self.list_url)
        self.assertEqual(len(response.data), 2)
        self.assertNotIn('X-Store-Degraded', response)

        with mock.patch.object(PermissionStore, 'sweep_expired', side_effect=DatabaseError('connection refused')):
            response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['X-Store-Degraded'], '1')
        self.assertEqual(len(response.data), 2)

    def test_list_fails_without_snapshot(self):
        self.client.force_authenticate(user=self.class_teacher)
        with mock.patch.object(PermissionStore, 'sweep_expired', side_effect=DatabaseError('connection refused')):
            response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
