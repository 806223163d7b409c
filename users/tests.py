from django.test import TestCase, override_settings
from django.core.management import call_command
from django.contrib.auth import get_user_model
from io import StringIO
from rest_framework.test import APIClient
from rest_framework import status

from .models import UserRole

CustomUser = get_user_model()

LOGIN_URL = '/api/v1/accounts/login/'


@override_settings(COLLEGE_EMAIL_DOMAIN='@mits.ac.in', DEFAULT_STAFF_SCOPE=('CAI', '3', 'A'))
class LoginTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.class_teacher = CustomUser.objects.create_user(
            email='teachera@mits.ac.in',
            password='TSECA',
            name='Class Teacher (Sec A)',
            role=UserRole.CLASS_TEACHER,
            department='CAI', year='3', section='A',
        )

    def test_password_login_returns_tokens(self):
        response = self.client.post(LOGIN_URL, {'email': 'TeacherA@mits.ac.in', 'password': 'TSECA'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['user']['role'], UserRole.CLASS_TEACHER)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_password_login_wrong_password(self):
        response = self.client.post(LOGIN_URL, {'email': 'teachera@mits.ac.in', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data, {'success': False, 'error': 'Invalid password.'})

    def test_password_login_unknown_user(self):
        response = self.client.post(LOGIN_URL, {'email': 'ghost@mits.ac.in', 'password': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'User not found.')

    def test_password_login_requires_password(self):
        response = self.client.post(LOGIN_URL, {'email': 'teachera@mits.ac.in'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_password_login_refused_for_federated_account(self):
        CustomUser.objects.create_user(email='23691a3101@mits.ac.in', role=UserRole.STUDENT)
        response = self.client.post(LOGIN_URL, {'email': '23691a3101@mits.ac.in', 'password': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Please use "Sign in with Google" for this account.')

    def test_federated_login_refused_for_password_account(self):
        response = self.client.post(LOGIN_URL, {'email': 'teachera@mits.ac.in', 'federated': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'This administrative account must login with a Password.')

    def test_federated_login_outside_domain(self):
        response = self.client.post(LOGIN_URL, {'email': 'someone@gmail.com', 'federated': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Access restricted to @mits.ac.in domain.')
        self.assertFalse(CustomUser.objects.filter(email='someone@gmail.com').exists())

    def test_federated_first_login_creates_staff_teacher(self):
        response = self.client.post(LOGIN_URL, {'email': 'staff.alice@mits.ac.in', 'federated': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user = CustomUser.objects.get(email='staff.alice@mits.ac.in')
        self.assertEqual(user.role, UserRole.TEACHER)
        self.assertEqual((user.department, user.year, user.section), ('CAI', '3', 'A'))
        self.assertIsNone(user.roll_number)
        self.assertFalse(user.has_usable_password())
        self.assertTrue(user.groups.filter(name='teacher').exists())

    def test_federated_first_login_creates_student(self):
        response = self.client.post(LOGIN_URL, {'email': '23xxxxA3101@mits.ac.in', 'federated': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['rollNumber'], '23XXXXA3101')
        user = CustomUser.objects.get(email='23xxxxa3101@mits.ac.in')
        self.assertEqual(user.role, UserRole.STUDENT)
        self.assertEqual((user.department, user.year, user.section), ('', '', ''))
        self.assertTrue(user.groups.filter(name='student').exists())

    def test_federated_flag_alone_issues_working_tokens(self):
        # nothing beyond the flag and the domain is checked
        response = self.client.post(LOGIN_URL, {'email': '23691a3199@mits.ac.in', 'federated': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = self.client.get('/api/v1/accounts/users/me/')
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['email'], '23691a3199@mits.ac.in')

    def test_federated_second_login_reuses_account(self):
        self.client.post(LOGIN_URL, {'email': '23691a3101@mits.ac.in', 'federated': True}, format='json')
        response = self.client.post(LOGIN_URL, {'email': '23691a3101@mits.ac.in', 'federated': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(CustomUser.objects.filter(email='23691a3101@mits.ac.in').count(), 1)

    def test_deactivated_account_cannot_login(self):
        self.class_teacher.is_active = False
        self.class_teacher.save()
        response = self.client.post(LOGIN_URL, {'email': 'teachera@mits.ac.in', 'password': 'TSECA'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UserProvisioningTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin_user = CustomUser.objects.create_superuser(email='admin@mits.ac.in', password='adminpass123')
        self.student = CustomUser.objects.create_user(email='23691a3101@mits.ac.in', roll_number='23691A3101')
        self.url = '/api/v1/accounts/users/'

    def test_admin_provisions_cr(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(self.url, {
            'name': 'CR (Sec B)',
            'email': 'crb@mits.ac.in',
            'password': 'Roll-23691A31CRB',
            'role': UserRole.CR,
            'department': 'CAI', 'year': '3', 'section': 'B',
            'rollNumber': '23691A31CRB',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = CustomUser.objects.get(email='crb@mits.ac.in')
        self.assertTrue(user.check_password('Roll-23691A31CRB'))
        self.assertEqual(list(user.groups.values_list('name', flat=True)), ['cr'])

    def test_cr_needs_roll_number(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(self.url, {
            'email': 'crc@mits.ac.in',
            'password': 'Roll-23691A31CRC',
            'role': UserRole.CR,
            'department': 'CAI', 'year': '3', 'section': 'C',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('rollNumber', response.data)

    def test_students_are_not_provisioned(self):
        self.client.force_authenticate(user=self.admin_user)
        response = self.client.post(self.url, {
            'email': 'someone@mits.ac.in',
            'password': 'Str0ng-pass-123',
            'role': UserRole.STUDENT,
            'department': 'CAI', 'year': '3', 'section': 'A',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)

    def test_only_admin_can_list_users(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_me_returns_own_profile(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'{self.url}me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], '23691a3101@mits.ac.in')
        self.assertEqual(response.data['rollNumber'], '23691A3101')


class SeedAccountsCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command('seed_accounts', stdout=StringIO())
        call_command('seed_accounts', stdout=StringIO())
        self.assertEqual(CustomUser.objects.filter(role=UserRole.CLASS_TEACHER).count(), 3)
        self.assertEqual(CustomUser.objects.filter(role=UserRole.CR).count(), 3)

        cr = CustomUser.objects.get(email='cra@mits.ac.in')
        self.assertTrue(cr.check_password('23691A31CRA'))
        self.assertEqual(cr.roll_number, '23691A31CRA')
        self.assertTrue(cr.groups.filter(name='cr').exists())

        staff = CustomUser.objects.get(email='staff.ai@mits.ac.in')
        self.assertEqual(staff.role, UserRole.TEACHER)
        self.assertFalse(staff.has_usable_password())
