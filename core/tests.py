from asgiref.sync import async_to_sync
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from users.models import CustomUser
from .middleware import token_from_scope, user_for_token


class HealthCheckTests(TestCase):
    def test_health_is_public(self):
        response = APIClient().get('/api/v1/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'online')
        self.assertEqual(response.data['database'], 'sqlite')


class TokenFromScopeTests(SimpleTestCase):
    def test_query_string_wins(self):
        scope = {
            'query_string': b'token=abc',
            'headers': [(b'authorization', b'Bearer xyz')],
        }
        self.assertEqual(token_from_scope(scope), 'abc')

    def test_bearer_header(self):
        self.assertEqual(token_from_scope({'headers': [(b'authorization', b'Bearer xyz')]}), 'xyz')

    def test_no_token(self):
        self.assertIsNone(token_from_scope({'headers': [(b'authorization', b'Basic xyz')]}))
        self.assertIsNone(token_from_scope({}))


class UserForTokenTests(TransactionTestCase):
    def setUp(self):
        self.user = CustomUser.objects.create_user(email='23691a3101@mits.ac.in')

    def test_valid_token_resolves_user(self):
        token = str(AccessToken.for_user(self.user))
        self.assertEqual(async_to_sync(user_for_token)(token), self.user)

    def test_garbage_token_is_anonymous(self):
        self.assertIsInstance(async_to_sync(user_for_token)('not-a-jwt'), AnonymousUser)

    def test_deactivated_user_is_anonymous(self):
        token = str(AccessToken.for_user(self.user))
        self.user.is_active = False
        self.user.save()
        self.assertIsInstance(async_to_sync(user_for_token)(token), AnonymousUser)
