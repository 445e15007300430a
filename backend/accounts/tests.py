import hashlib
from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.db import IntegrityError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from kombu.exceptions import OperationalError
from rest_framework import status
from rest_framework.test import APITestCase

from backend.context import ServiceContext
from backend.exceptions import EnqueueError, Forbidden, NotAllowed, NotFound, RateLimited
from .mail import ConfirmEmailMailer
from .models import EmailVerification, FilterableType, FilterType, Profile, UserFilter
from .services import apply_filter, confirm_verification, request_verification

User = get_user_model()


def make_context(mailer=None):
    return ServiceContext(
        redis=mock.MagicMock(),
        cache=cache,
        mailer=mailer or mock.MagicMock(),
        queue=mock.MagicMock(),
    )


class ProfileSignalTests(TestCase):
    def test_profile_created_with_user(self):
        """Creating a user creates its profile with the same username."""
        user = User.objects.create_user(username='alice', email='alice@example.com', password='pass12345')
        self.assertTrue(Profile.objects.filter(user=user, username='alice').exists())
        self.assertEqual(user.profile.username, 'alice')


class ApplyFilterTests(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(username='alice', email='alice@example.com', password='pass12345').profile
        self.bob = User.objects.create_user(username='bob', email='bob@example.com', password='pass12345').profile

    def test_mute_creates_filter(self):
        user_filter, created = apply_filter(self.alice, 'mute', 'user', self.bob.pk)

        self.assertTrue(created)
        self.assertEqual(user_filter.profile, self.alice)
        self.assertEqual(user_filter.filterable_id, self.bob.pk)
        self.assertEqual(user_filter.filterable_type, FilterableType.PROFILE)
        self.assertEqual(user_filter.filter_type, FilterType.MUTE)

    def test_same_filter_twice_keeps_one_row(self):
        apply_filter(self.alice, 'block', 'user', self.bob.pk)
        _, created = apply_filter(self.alice, 'block', 'user', self.bob.pk)

        self.assertFalse(created)
        self.assertEqual(UserFilter.objects.filter(profile=self.alice).count(), 1)

    def test_mute_and_block_are_separate_rows(self):
        apply_filter(self.alice, 'mute', 'user', self.bob.pk)
        apply_filter(self.alice, 'block', 'user', self.bob.pk)

        self.assertEqual(UserFilter.objects.filter(profile=self.alice).count(), 2)

    def test_mute_self_is_forbidden(self):
        with self.assertRaises(Forbidden):
            apply_filter(self.alice, 'mute', 'user', self.alice.pk)
        self.assertFalse(UserFilter.objects.exists())

    def test_block_self_is_allowed(self):
        _, created = apply_filter(self.alice, 'block', 'user', self.alice.pk)
        self.assertTrue(created)

    def test_unknown_target_type_not_allowed(self):
        with self.assertRaises(NotAllowed):
            apply_filter(self.alice, 'mute', 'post', self.bob.pk)

    def test_missing_target_not_found(self):
        with self.assertRaises(NotFound):
            apply_filter(self.alice, 'mute', 'user', self.bob.pk + 1000)

    def test_concurrent_insert_returns_existing_row(self):
        """An IntegrityError from a racing insert resolves to the existing row."""
        existing = UserFilter.objects.create(
            profile=self.alice,
            filterable_id=self.bob.pk,
            filterable_type=FilterableType.PROFILE,
            filter_type=FilterType.MUTE,
        )
        with mock.patch.object(UserFilter.objects, 'get_or_create', side_effect=IntegrityError):
            user_filter, created = apply_filter(self.alice, 'mute', 'user', self.bob.pk)

        self.assertFalse(created)
        self.assertEqual(user_filter.pk, existing.pk)


class EmailVerificationServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@example.com', password='pass12345')
        self.other = User.objects.create_user(username='bob', email='bob@example.com', password='pass12345')
        self.ctx = make_context()

    def test_request_issues_verification(self):
        verification = request_verification(self.user, self.ctx)

        self.assertEqual(verification.email, 'alice@example.com')
        self.assertEqual(verification.user_token, hashlib.sha512(str(self.user.pk).encode()).hexdigest())
        self.assertEqual(len(verification.random_token), 40)
        self.ctx.mailer.send_confirmation.assert_called_once_with(verification)

    def test_second_request_within_a_day_is_rate_limited(self):
        request_verification(self.user, self.ctx)

        with self.assertRaises(RateLimited):
            request_verification(self.user, self.ctx)
        self.assertEqual(EmailVerification.objects.filter(user=self.user).count(), 1)
        self.assertEqual(self.ctx.mailer.send_confirmation.call_count, 1)

    def test_stale_verification_is_replaced(self):
        stale = request_verification(self.user, self.ctx)
        EmailVerification.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(days=2))

        fresh = request_verification(self.user, self.ctx)

        self.assertNotEqual(fresh.pk, stale.pk)
        self.assertFalse(EmailVerification.objects.filter(pk=stale.pk).exists())
        self.assertEqual(EmailVerification.objects.filter(user=self.user).count(), 1)

    def test_broker_outage_leaves_no_verification_behind(self):
        with mock.patch('accounts.tasks.send_confirmation_email.delay', side_effect=OperationalError('down')):
            with self.assertRaises(EnqueueError):
                request_verification(self.user, make_context(mailer=ConfirmEmailMailer()))
        self.assertFalse(EmailVerification.objects.filter(user=self.user).exists())

        verification = request_verification(self.user, self.ctx)

        self.ctx.mailer.send_confirmation.assert_called_once_with(verification)
        self.assertEqual(EmailVerification.objects.filter(user=self.user).count(), 1)

    def test_verified_user_is_not_reissued(self):
        User.objects.filter(pk=self.user.pk).update(email_verified_at=timezone.now())

        with self.assertRaises(NotFound):
            request_verification(self.user, self.ctx)
        self.ctx.mailer.send_confirmation.assert_not_called()

    def test_confirm_by_owner_stamps_user(self):
        verification = request_verification(self.user, self.ctx)

        self.assertTrue(confirm_verification(verification.user_token, verification.random_token, self.user))
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.email_verified_at)

    def test_confirm_by_other_user_changes_nothing(self):
        verification = request_verification(self.user, self.ctx)

        self.assertFalse(confirm_verification(verification.user_token, verification.random_token, self.other))
        self.user.refresh_from_db()
        self.other.refresh_from_db()
        self.assertIsNone(self.user.email_verified_at)
        self.assertIsNone(self.other.email_verified_at)

    def test_confirm_with_wrong_token_not_found(self):
        verification = request_verification(self.user, self.ctx)

        with self.assertRaises(NotFound):
            confirm_verification(verification.user_token, 'x' * 40, self.user)


class AccountAPITests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username='alice', email='alice@example.com', password='pass12345')
        self.other = User.objects.create_user(username='bob', email='bob@example.com', password='pass12345')
        self.client.force_authenticate(user=self.user)

    def test_login_returns_usable_token(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(reverse('login'), {'username': 'alice', 'password': 'pass12345'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['token']}")
        me = self.client.get(reverse('current-user'))
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['profile']['id'], self.user.profile.id)
        self.assertFalse(me.data['is_email_verified'])

    def test_login_with_bad_password(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(reverse('login'), {'username': 'alice', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_endpoints_require_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(reverse('mute'), {'type': 'user', 'item': self.other.profile.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_mute_endpoint(self):
        response = self.client.post(reverse('mute'), {'type': 'user', 'item': self.other.profile.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['msg'], 'success')
        self.assertTrue(UserFilter.objects.filter(profile=self.user.profile, filter_type='mute').exists())

    def test_mute_self_returns_403(self):
        response = self.client.post(reverse('mute'), {'type': 'user', 'item': self.user.profile.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_block_self_succeeds(self):
        response = self.client.post(reverse('block'), {'type': 'user', 'item': self.user.profile.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unknown_type_returns_406(self):
        response = self.client.post(reverse('block'), {'type': 'post', 'item': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_406_NOT_ACCEPTABLE)

    def test_missing_target_returns_404(self):
        response = self.client.post(reverse('block'), {'type': 'user', 'item': 99999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_invalid_item_returns_422(self):
        response = self.client.post(reverse('mute'), {'type': 'user', 'item': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_verify_email_sends_mail_then_rate_limits(self):
        ctx = make_context(mailer=ConfirmEmailMailer())
        with mock.patch('accounts.views.get_context', return_value=ctx):
            first = self.client.post(reverse('verify-email'))
            second = self.client.post(reverse('verify-email'))

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data['status'], 'Verification email sent!')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['alice@example.com'])

        verification = EmailVerification.objects.get(user=self.user)
        self.assertIn(verification.random_token, mail.outbox[0].body)

        self.assertEqual(second.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertIn('already been sent recently', str(second.data['detail']))

    def test_verify_email_broker_outage_returns_503(self):
        ctx = make_context(mailer=ConfirmEmailMailer())
        with mock.patch('accounts.views.get_context', return_value=ctx):
            with mock.patch('accounts.tasks.send_confirmation_email.delay', side_effect=OperationalError('down')):
                failed = self.client.post(reverse('verify-email'))
            retried = self.client.post(reverse('verify-email'))

        self.assertEqual(failed.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(retried.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)

    def test_confirm_endpoint(self):
        verification = request_verification(self.user, make_context())
        url = reverse('verify-email-confirm', kwargs={
            'user_token': verification.user_token,
            'random_token': verification.random_token,
        })

        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.email_verified_at)

    def test_confirm_endpoint_for_other_user_is_silent(self):
        verification = request_verification(self.other, make_context())
        url = reverse('verify-email-confirm', kwargs={
            'user_token': verification.user_token,
            'random_token': verification.random_token,
        })

        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.other.refresh_from_db()
        self.assertIsNone(self.other.email_verified_at)

    def test_confirm_endpoint_unknown_tokens(self):
        url = reverse('verify-email-confirm', kwargs={'user_token': 'nope', 'random_token': 'nope'})
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
