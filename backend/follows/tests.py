from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse
from kombu.exceptions import OperationalError
from rest_framework import status
from rest_framework.test import APITestCase

from backend.context import ServiceContext
from backend.exceptions import EnqueueError, NotFound
from notifications.feed import feed_key, payload_key
from notifications.models import Notification
from .models import Follower, FollowRequest
from .queue import CeleryJobQueue, FollowEvent
from .services import accept_request, pending_requests, reject_request
from .tasks import follow_pipeline

User = get_user_model()


class RecordingQueue:
    """Captures enqueued events along with what the database looked like at that moment."""

    def __init__(self):
        self.events = []
        self.snapshots = []

    def enqueue(self, event):
        self.events.append(event)
        self.snapshots.append({
            'edge_exists': Follower.objects.filter(pk=event.edge_id).exists(),
            'request_exists': FollowRequest.objects.filter(
                follower_id=event.profile_id, following_id=event.following_id,
            ).exists(),
        })
        return f"job-{len(self.events)}"


def make_context(queue=None):
    return ServiceContext(
        redis=mock.MagicMock(),
        cache=cache,
        mailer=mock.MagicMock(),
        queue=queue or RecordingQueue(),
    )


def make_profile(username):
    return User.objects.create_user(username=username, email=f"{username}@example.com", password='pass12345').profile


class FollowRequestServiceTests(TestCase):
    def setUp(self):
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.request = FollowRequest.objects.create(follower=self.bob, following=self.alice)
        self.ctx = make_context()

    def test_accept_creates_edge_and_deletes_request(self):
        edge = accept_request(self.request.pk, self.alice.pk, self.ctx)

        self.assertEqual(edge.profile, self.bob)
        self.assertEqual(edge.following, self.alice)
        self.assertTrue(Follower.objects.filter(profile=self.bob, following=self.alice).exists())
        self.assertFalse(FollowRequest.objects.filter(pk=self.request.pk).exists())
        self.assertEqual(self.ctx.queue.events, [FollowEvent(edge.pk, self.bob.pk, self.alice.pk)])

    def test_edge_exists_before_enqueue_and_request_deleted_after(self):
        accept_request(self.request.pk, self.alice.pk, self.ctx)

        self.assertEqual(self.ctx.queue.snapshots, [{'edge_exists': True, 'request_exists': True}])

    def test_repeated_accept_is_not_found_and_enqueues_once(self):
        accept_request(self.request.pk, self.alice.pk, self.ctx)

        with self.assertRaises(NotFound):
            accept_request(self.request.pk, self.alice.pk, self.ctx)
        self.assertEqual(Follower.objects.count(), 1)
        self.assertEqual(len(self.ctx.queue.events), 1)

    def test_accept_with_existing_edge_still_dispatches(self):
        """A pending request is dispatched even when its edge was already committed."""
        existing = Follower.objects.create(profile=self.bob, following=self.alice)

        edge = accept_request(self.request.pk, self.alice.pk, self.ctx)

        self.assertEqual(Follower.objects.count(), 1)
        self.assertEqual(edge.pk, existing.pk)
        self.assertEqual(self.ctx.queue.events, [FollowEvent(existing.pk, self.bob.pk, self.alice.pk)])
        self.assertFalse(FollowRequest.objects.filter(pk=self.request.pk).exists())

    def test_accept_by_other_profile_not_found(self):
        carol = make_profile('carol')

        with self.assertRaises(NotFound):
            accept_request(self.request.pk, carol.pk, self.ctx)
        self.assertTrue(FollowRequest.objects.filter(pk=self.request.pk).exists())
        self.assertFalse(Follower.objects.exists())

    def test_enqueue_failure_keeps_request_and_retry_dispatches_once(self):
        failing = mock.MagicMock()
        failing.enqueue.side_effect = EnqueueError()

        with self.assertRaises(EnqueueError):
            accept_request(self.request.pk, self.alice.pk, make_context(queue=failing))
        self.assertTrue(Follower.objects.filter(profile=self.bob, following=self.alice).exists())
        self.assertTrue(FollowRequest.objects.filter(pk=self.request.pk).exists())

        edge = accept_request(self.request.pk, self.alice.pk, self.ctx)

        self.assertEqual(Follower.objects.count(), 1)
        self.assertEqual(self.ctx.queue.events, [FollowEvent(edge.pk, self.bob.pk, self.alice.pk)])
        self.assertFalse(FollowRequest.objects.filter(pk=self.request.pk).exists())

        with self.assertRaises(NotFound):
            accept_request(self.request.pk, self.alice.pk, self.ctx)
        self.assertEqual(len(self.ctx.queue.events), 1)

    def test_reject_marks_request(self):
        reject_request(self.request.pk, self.alice.pk)

        self.request.refresh_from_db()
        self.assertTrue(self.request.is_rejected)
        self.assertFalse(Follower.objects.exists())

    def test_reject_twice_succeeds(self):
        reject_request(self.request.pk, self.alice.pk)
        follow_request = reject_request(self.request.pk, self.alice.pk)

        self.assertTrue(follow_request.is_rejected)

    def test_accept_after_reject_not_found(self):
        reject_request(self.request.pk, self.alice.pk)

        with self.assertRaises(NotFound):
            accept_request(self.request.pk, self.alice.pk, self.ctx)
        self.assertFalse(Follower.objects.exists())
        self.assertEqual(self.ctx.queue.events, [])

    def test_reject_by_other_profile_not_found(self):
        with self.assertRaises(NotFound):
            reject_request(self.request.pk, self.bob.pk)

    def test_pending_requests_excludes_rejected(self):
        carol = make_profile('carol')
        dave = make_profile('dave')
        rejected = FollowRequest.objects.create(follower=carol, following=self.alice)
        newest = FollowRequest.objects.create(follower=dave, following=self.alice)
        reject_request(rejected.pk, self.alice.pk)

        self.assertEqual(list(pending_requests(self.alice.pk)), [newest, self.request])


class CeleryJobQueueTests(TestCase):
    def setUp(self):
        self.event = FollowEvent(edge_id=7, profile_id=1, following_id=2)

    def test_enqueue_returns_job_id(self):
        with mock.patch('follows.tasks.follow_pipeline.delay') as delay:
            delay.return_value.id = 'abc-123'
            job_id = CeleryJobQueue().enqueue(self.event)

        delay.assert_called_once_with(7)
        self.assertEqual(job_id, 'abc-123')

    def test_broker_failure_raises_enqueue_error(self):
        with mock.patch('follows.tasks.follow_pipeline.delay', side_effect=OperationalError('down')):
            with self.assertRaises(EnqueueError):
                CeleryJobQueue().enqueue(self.event)


@override_settings(NOTIFICATION_FEED_MAX_LENGTH=50)
class FollowPipelineTests(TestCase):
    def setUp(self):
        cache.clear()
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.edge = Follower.objects.create(profile=self.bob, following=self.alice)
        self.ctx = make_context()

    def run_pipeline(self):
        with mock.patch('follows.tasks.get_context', return_value=self.ctx):
            return follow_pipeline(self.edge.pk)

    def test_pipeline_records_and_indexes_notification(self):
        result = self.run_pipeline()

        notification = Notification.objects.get(profile=self.alice)
        self.assertEqual(result['status'], 'ok')
        self.assertEqual(notification.actor, self.bob)
        self.assertEqual(notification.action, 'follow')
        self.assertEqual(notification.item_id, self.edge.pk)
        self.assertEqual(cache.get(payload_key(notification.pk)), notification)
        self.ctx.redis.lpush.assert_called_once_with(feed_key(self.alice.pk), notification.pk)
        self.ctx.redis.ltrim.assert_called_once_with(feed_key(self.alice.pk), 0, 49)

    def test_rerun_does_not_duplicate_notification(self):
        self.run_pipeline()
        self.run_pipeline()

        self.assertEqual(Notification.objects.filter(profile=self.alice).count(), 1)

    def test_missing_edge_is_skipped(self):
        self.edge.delete()

        result = self.run_pipeline()

        self.assertEqual(result['status'], 'error')
        self.assertFalse(Notification.objects.exists())


class FollowRequestAPITests(APITestCase):
    def setUp(self):
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.request = FollowRequest.objects.create(follower=self.bob, following=self.alice)
        self.ctx = make_context()
        self.client.force_authenticate(user=self.alice.user)
        self.url = reverse('follow-requests')

    def post(self, data):
        with mock.patch('follows.views.get_context', return_value=self.ctx):
            return self.client.post(self.url, data, format='json')

    def test_list_pending_requests(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data['results']], [self.request.pk])
        self.assertEqual(response.data['results'][0]['follower']['username'], 'bob')

    def test_list_is_paged_by_ten(self):
        for i in range(12):
            FollowRequest.objects.create(follower=make_profile(f"user{i}"), following=self.alice)

        first = self.client.get(self.url)
        second = self.client.get(self.url, {'page': 2})

        self.assertEqual(len(first.data['results']), 10)
        self.assertEqual(len(second.data['results']), 3)

    def test_accept(self):
        response = self.post({'action': 'accept', 'id': self.request.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'msg': 'success'})
        self.assertTrue(Follower.objects.filter(profile=self.bob, following=self.alice).exists())
        self.assertEqual(len(self.ctx.queue.events), 1)

    def test_other_action_rejects(self):
        response = self.post({'action': 'ignore', 'id': self.request.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.request.refresh_from_db()
        self.assertTrue(self.request.is_rejected)

    def test_unknown_request_returns_404(self):
        response = self.post({'action': 'accept', 'id': self.request.pk + 100})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_invalid_params_return_422(self):
        response = self.post({'action': 'accept'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

        response = self.post({'action': 'accept-everything', 'id': self.request.pk})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_broker_outage_returns_503_and_retry_succeeds(self):
        failing = make_context(queue=mock.MagicMock(**{'enqueue.side_effect': EnqueueError()}))
        with mock.patch('follows.views.get_context', return_value=failing):
            response = self.client.post(self.url, {'action': 'accept', 'id': self.request.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

        response = self.post({'action': 'accept', 'id': self.request.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(self.ctx.queue.events), 1)
        self.assertFalse(FollowRequest.objects.filter(pk=self.request.pk).exists())
