"""
Test suite for accounts: registration, login, verification, password reset,
addresses and super admin user management
"""
from datetime import timedelta
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from storefront.core.models import User, UserAddress, VerificationToken, AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.discounts.models import Voucher


class RegistrationTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_returns_tokens_and_sends_verification(self):
        response = self.client.post('/api/v1/auth/register', {
            'email': 'New.Shopper@Test.com',
            'password': 'Str0ngPass!23',
            'fullName': 'New Shopper',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertIn('accessToken', data)
        self.assertIn('refreshToken', data)
        self.assertEqual(data['user']['email'], 'new.shopper@test.com')
        self.assertFalse(data['user']['isVerified'])
        self.assertTrue(data['user']['referralCode'].startswith('REF-'))

        user = User.objects.get(email='new.shopper@test.com')
        self.assertEqual(user.role, User.ROLE_USER)
        self.assertTrue(VerificationToken.objects.filter(
            user=user, purpose=VerificationToken.PURPOSE_EMAIL_VERIFY).exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('/verify-email?token=', mail.outbox[0].body)

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@test.com')
        response = self.client.post('/api/v1/auth/register', {
            'email': 'TAKEN@test.com',
            'password': 'Str0ngPass!23',
            'fullName': 'Someone',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data['errors'])

    def test_register_with_referral_code_issues_vouchers(self):
        referrer = TestDataFactory.create_user()
        code = referrer.ensure_referral_code()
        response = self.client.post('/api/v1/auth/register', {
            'email': 'friend@test.com',
            'password': 'Str0ngPass!23',
            'fullName': 'Friend',
            'referralCode': code,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        friend = User.objects.get(email='friend@test.com')
        self.assertEqual(friend.referred_by, referrer)
        self.assertEqual(Voucher.objects.filter(user=friend, source=Voucher.SOURCE_REFERRAL).count(), 1)
        self.assertEqual(Voucher.objects.filter(user=referrer, source=Voucher.SOURCE_REFERRAL_REWARD).count(), 1)

    def test_register_unknown_referral_code(self):
        response = self.client.post('/api/v1/auth/register', {
            'email': 'friend@test.com',
            'password': 'Str0ngPass!23',
            'fullName': 'Friend',
            'referralCode': 'REF-NOPE',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(email='friend@test.com').exists())


class LoginTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(email='login@test.com', password='testpass123')

    def test_login_success(self):
        response = self.client.post('/api/v1/auth/login', {'email': 'LOGIN@test.com', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['user']['id'], self.user.id)
        self.assertIn('accessToken', response.data['data'])

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login', {'email': 'login@test.com', 'password': 'wrong'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        login = self.client.post('/api/v1/auth/login', {'email': 'login@test.com', 'password': 'testpass123'})
        response = self.client.post('/api/v1/auth/refresh', {'refreshToken': login.data['data']['refreshToken']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('accessToken', response.data['data'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['email'], 'login@test.com')


class VerificationAndPasswordTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(is_verified=False)

    def test_activate_marks_user_verified(self):
        self.client.authenticate_user(self.user)
        self.client.post('/api/v1/auth/profile/request-verification')
        token = VerificationToken.objects.get(user=self.user, used_at__isnull=True)

        response = self.client.get(f'/api/v1/auth/activate/{token.token}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_verified)

        # Tokens are single use
        response = self.client.get(f'/api/v1/auth/activate/{token.token}')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_expired_token_rejected(self):
        token = VerificationToken.objects.create(
            user=self.user, token='expired-token', purpose=VerificationToken.PURPOSE_EMAIL_VERIFY,
            expires_at=timezone.now() - timedelta(minutes=1))
        response = self.client.get(f'/api/v1/auth/activate/{token.token}')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_new_token_invalidates_previous(self):
        self.client.post('/api/v1/auth/resend-verification', {'email': self.user.email})
        first = VerificationToken.objects.get(user=self.user)
        self.client.post('/api/v1/auth/resend-verification', {'email': self.user.email})
        first.refresh_from_db()
        self.assertIsNotNone(first.used_at)
        self.assertEqual(VerificationToken.objects.filter(user=self.user, used_at__isnull=True).count(), 1)

    def test_resend_for_unknown_email_is_silent(self):
        response = self.client.post('/api/v1/auth/resend-verification', {'email': 'ghost@test.com'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)

    def test_password_reset_flow(self):
        response = self.client.post('/api/v1/auth/request-password-reset', {'email': self.user.email})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = VerificationToken.objects.get(user=self.user, purpose=VerificationToken.PURPOSE_PASSWORD_RESET)

        response = self.client.post('/api/v1/auth/verify-reset-token', {'token': token.token})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['email'], self.user.email)

        response = self.client.post('/api/v1/auth/reset-password', {'token': token.token, 'password': 'Brand-New-Pass9'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Brand-New-Pass9'))

    def test_set_password_checks_current_password(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/set-password', {
            'currentPassword': 'wrong', 'password': 'Brand-New-Pass9'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/auth/set-password', {
            'currentPassword': 'testpass123', 'password': 'Brand-New-Pass9'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_email_change_requires_new_verification(self):
        verified = TestDataFactory.create_user()
        self.client.authenticate_user(verified)
        response = self.client.patch('/api/v1/auth/profile', {'email': 'changed@test.com', 'fullName': 'Changed'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        verified.refresh_from_db()
        self.assertEqual(verified.email, 'changed@test.com')
        self.assertFalse(verified.is_verified)
        self.assertEqual(len(mail.outbox), 1)


class AddressTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _payload(self, **overrides):
        data = {
            'label': 'Home',
            'fullAddress': 'Jl. Sudirman 1',
            'latitude': -6.2,
            'longitude': 106.8,
            'recipientName': 'Test User',
        }
        data.update(overrides)
        return data

    def test_first_address_becomes_main(self):
        response = self.client.post('/api/v1/auth/profile/address', self._payload())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['data']['isMain'])

    def test_only_one_main_address(self):
        first = TestDataFactory.create_address(self.user)
        response = self.client.post('/api/v1/auth/profile/address', self._payload(label='Office', isMain=True))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        first.refresh_from_db()
        self.assertFalse(first.is_main)
        self.assertEqual(UserAddress.objects.filter(user=self.user, is_main=True).count(), 1)

    def test_deleting_main_promotes_another(self):
        main = TestDataFactory.create_address(self.user, is_main=True)
        other = TestDataFactory.create_address(self.user, is_main=False, label='Office')
        response = self.client.delete(f'/api/v1/auth/profile/addresses/{main.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        other.refresh_from_db()
        self.assertTrue(other.is_main)

    def test_cannot_touch_other_users_address(self):
        stranger = TestDataFactory.create_user()
        address = TestDataFactory.create_address(stranger)
        response = self.client.patch(f'/api/v1/auth/profile/addresses/{address.id}', {'label': 'Mine'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_invalid_latitude(self):
        response = self.client.post('/api/v1/auth/profile/address', self._payload(latitude=123))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AdminUserManagementTests(TestCase):

    def setUp(self):
        self.super_admin = TestDataFactory.create_super_admin()
        self.store = TestDataFactory.create_store()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.super_admin)

    def test_create_store_admin(self):
        response = self.client.post('/api/v1/admin/store-admins', {
            'email': 'manager@test.com',
            'password': 'Str0ngPass!23',
            'fullName': 'Manager',
            'storeId': self.store.id,
            'role': User.ROLE_SUPER_ADMIN,
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        manager = User.objects.get(email='manager@test.com')
        self.assertEqual(manager.role, User.ROLE_STORE_ADMIN)
        self.assertEqual(manager.store, self.store)
        self.assertTrue(manager.is_verified)
        self.assertTrue(AuditLog.objects.filter(model_name='User', object_id=str(manager.id), action='create').exists())

    def test_user_list_is_paginated(self):
        for _ in range(3):
            TestDataFactory.create_user()
        response = self.client.get('/api/v1/admin/users', {'role': User.ROLE_USER, 'limit': 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(len(data['users']), 2)
        self.assertEqual(data['total'], 3)
        self.assertEqual(data['totalPages'], 2)

    def test_delete_requires_confirmation(self):
        user = TestDataFactory.create_user()
        response = self.client.delete(f'/api/v1/admin/users/{user.id}')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(f'/api/v1/admin/users/{user.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertFalse(user.is_active)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/admin/users/{self.super_admin.id}?confirm=yes')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_regular_user_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/admin/users')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_log_list(self):
        AuditLog.objects.create(user=self.super_admin, action='create', model_name='Store', object_id='1')
        response = self.client.get('/api/v1/admin/audit-logs', {'modelName': 'Store'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['total'], 1)
        self.assertEqual(response.data['data']['logs'][0]['userEmail'], self.super_admin.email)


class CreateSuperAdminCommandTests(TestCase):

    def test_creates_super_admin(self):
        out = StringIO()
        call_command('create_super_admin', 'root@test.com', '--password', 'Str0ngPass!23', stdout=out)
        user = User.objects.get(email='root@test.com')
        self.assertEqual(user.role, User.ROLE_SUPER_ADMIN)
        self.assertTrue(user.is_verified)
        self.assertTrue(user.check_password('Str0ngPass!23'))
