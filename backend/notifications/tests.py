import types
from datetime import timedelta
from unittest import mock

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from backend.context import ServiceContext
from follows.models import Follower
from .consumers import NotificationConsumer
from .feed import (
    FALLBACK_LIMIT, NotificationFeed, feed_key, list_following_activity, list_recent, payload_key,
)
from .models import Notification, NotificationAction
from .tasks import deliver_notification, group_name_for

User = get_user_model()


def make_context(redis=None):
    return ServiceContext(
        redis=redis or mock.MagicMock(),
        cache=cache,
        mailer=mock.MagicMock(),
        queue=mock.MagicMock(),
    )


def make_profile(username):
    return User.objects.create_user(username=username, email=f"{username}@example.com", password='pass12345').profile


def notify(profile, actor, action=NotificationAction.COMMENT, age=None):
    notification = Notification.objects.create(
        profile=profile, actor=actor, action=action, message=f"{actor.username} did {action}",
    )
    if age is not None:
        Notification.objects.filter(pk=notification.pk).update(created_at=timezone.now() - age)
    return notification


class NotificationFeedTests(TestCase):
    def setUp(self):
        cache.clear()
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')

    def test_cold_feed_reads_database(self):
        created = [notify(self.alice, self.bob) for _ in range(FALLBACK_LIMIT + 5)]
        notify(self.bob, self.alice)
        ctx = make_context()
        ctx.redis.lrange.return_value = []

        result = list(NotificationFeed(ctx).fetch(self.alice.pk))

        ctx.redis.lrange.assert_called_once_with(feed_key(self.alice.pk), 0, 30)
        self.assertEqual(len(result), FALLBACK_LIMIT)
        self.assertEqual([n.pk for n in result], [n.pk for n in reversed(created)][:FALLBACK_LIMIT])

    def test_warm_feed_reads_cache_in_list_order(self):
        first = notify(self.alice, self.bob)
        second = notify(self.alice, self.bob)
        cache.set(payload_key(first.pk), first)
        cache.set(payload_key(second.pk), second)
        ctx = make_context()
        # redis-py returns bytes unless the pool decodes responses
        ctx.redis.lrange.return_value = [str(second.pk).encode(), '999', str(first.pk)]

        result = list(NotificationFeed(ctx).fetch(self.alice.pk))

        self.assertEqual(result, [second, None, first])

    def test_fetch_is_lazy(self):
        ctx = make_context()
        ctx.redis.lrange.return_value = ['1']

        self.assertIsInstance(NotificationFeed(ctx).fetch(self.alice.pk), types.GeneratorType)

    def test_push_caches_payload_and_trims_list(self):
        notification = notify(self.alice, self.bob)
        ctx = make_context()

        with self.settings(NOTIFICATION_FEED_MAX_LENGTH=5):
            NotificationFeed(ctx).push(notification)

        key = feed_key(self.alice.pk)
        self.assertEqual(cache.get(payload_key(notification.pk)), notification)
        ctx.redis.lpush.assert_called_once_with(key, notification.pk)
        ctx.redis.ltrim.assert_called_once_with(key, 0, 4)


class NotificationQueryTests(TestCase):
    def setUp(self):
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.carol = make_profile('carol')

    def test_recent_excludes_old_notifications(self):
        fresh = notify(self.alice, self.bob)
        notify(self.alice, self.bob, age=timedelta(days=200))

        self.assertEqual(list(list_recent(self.alice)), [fresh])

    def test_recent_action_filter(self):
        comment = notify(self.alice, self.bob, NotificationAction.COMMENT)
        follow = notify(self.alice, self.bob, NotificationAction.FOLLOW)

        self.assertEqual(list(list_recent(self.alice, 'comment')), [comment])
        self.assertEqual(list(list_recent(self.alice, 'follow')), [follow])

    def test_unknown_action_filter_is_ignored(self):
        notify(self.alice, self.bob, NotificationAction.COMMENT)
        notify(self.alice, self.bob, NotificationAction.LIKE)

        self.assertEqual(list_recent(self.alice, 'like').count(), 2)
        self.assertEqual(list_recent(self.alice, 'nonsense').count(), 2)

    def test_following_activity(self):
        Follower.objects.create(profile=self.alice, following=self.bob)
        to_carol = notify(self.carol, self.bob)
        notify(self.alice, self.bob)
        notify(self.carol, self.bob, age=timedelta(days=40))
        notify(self.bob, self.carol)

        self.assertEqual(list(list_following_activity(self.alice)), [to_carol])

    def test_following_activity_action_filter(self):
        Follower.objects.create(profile=self.alice, following=self.bob)
        notify(self.carol, self.bob, NotificationAction.COMMENT)
        mention = notify(self.carol, self.bob, NotificationAction.MENTION)

        self.assertEqual(list(list_following_activity(self.alice, 'mention')), [mention])


class DeliverNotificationTests(TestCase):
    def setUp(self):
        cache.clear()
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.notification = notify(self.alice, self.bob, NotificationAction.FOLLOW)

    def test_pushes_to_feed_and_group(self):
        layer = mock.MagicMock()
        layer.group_send = mock.AsyncMock()
        ctx = make_context()

        with mock.patch('notifications.tasks.get_channel_layer', return_value=layer):
            serialized = deliver_notification(self.notification, ctx)

        self.assertEqual(serialized['id'], self.notification.pk)
        self.assertEqual(serialized['actor']['username'], 'bob')
        ctx.redis.lpush.assert_called_once_with(feed_key(self.alice.pk), self.notification.pk)
        layer.group_send.assert_awaited_once_with(
            group_name_for(self.alice.pk),
            {'type': 'notification.message', 'notification': serialized},
        )

    def test_channel_failure_does_not_fail_delivery(self):
        layer = mock.MagicMock()
        layer.group_send = mock.AsyncMock(side_effect=RuntimeError('layer down'))
        ctx = make_context()

        with mock.patch('notifications.tasks.get_channel_layer', return_value=layer):
            with self.assertLogs('notifications.tasks', level='ERROR'):
                serialized = deliver_notification(self.notification, ctx)

        self.assertEqual(serialized['id'], self.notification.pk)
        self.assertEqual(cache.get(payload_key(self.notification.pk)), self.notification)


class NotificationConsumerTests(SimpleTestCase):
    def communicator(self, user):
        communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), '/ws/notifications/')
        communicator.scope['user'] = user
        return communicator

    def test_anonymous_connection_is_closed(self):
        async def run():
            communicator = self.communicator(AnonymousUser())
            connected, code = await communicator.connect()
            return connected, code

        connected, code = async_to_sync(run)()

        self.assertFalse(connected)
        self.assertEqual(code, 4401)

    @mock.patch('notifications.consumers._profile_id_for', new_callable=mock.AsyncMock, return_value=None)
    def test_user_without_profile_is_closed(self, _):
        async def run():
            communicator = self.communicator(mock.MagicMock(is_anonymous=False))
            return await communicator.connect()

        connected, code = async_to_sync(run)()

        self.assertFalse(connected)
        self.assertEqual(code, 4404)

    @mock.patch('notifications.consumers._profile_id_for', new_callable=mock.AsyncMock, return_value=41)
    def test_group_events_reach_socket(self, _):
        async def run():
            communicator = self.communicator(mock.MagicMock(is_anonymous=False))
            connected, _ = await communicator.connect()

            await communicator.send_json_to({'type': 'ping'})
            pong = await communicator.receive_json_from()

            await get_channel_layer().group_send(
                group_name_for(41),
                {'type': 'notification.message', 'notification': {'id': 3}},
            )
            pushed = await communicator.receive_json_from()
            await communicator.disconnect()
            return connected, pong, pushed

        connected, pong, pushed = async_to_sync(run)()

        self.assertTrue(connected)
        self.assertEqual(pong, {'type': 'pong'})
        self.assertEqual(pushed, {'type': 'notification', 'data': {'id': 3}})


class NotificationAPITests(APITestCase):
    def setUp(self):
        cache.clear()
        self.alice = make_profile('alice')
        self.bob = make_profile('bob')
        self.client.force_authenticate(user=self.alice.user)

    def test_list(self):
        comment = notify(self.alice, self.bob, NotificationAction.COMMENT)
        notify(self.alice, self.bob, NotificationAction.FOLLOW)

        response = self.client.get(reverse('notification-list'), {'a': 'comment'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['id'] for n in response.data['results']], [comment.pk])

    def test_list_pages_are_capped(self):
        response = self.client.get(reverse('notification-list'), {'page': 4})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_malformed_action_returns_422(self):
        response = self.client.get(reverse('notification-list'), {'a': 'bad!'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_following(self):
        carol = make_profile('carol')
        Follower.objects.create(profile=self.alice, following=self.bob)
        activity = notify(carol, self.bob)

        response = self.client.get(reverse('notification-following'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['id'] for n in response.data['results']], [activity.pk])
        self.assertEqual(response.data['results'][0]['profile_id'], carol.pk)

    def test_feed(self):
        notification = notify(self.alice, self.bob)
        cache.set(payload_key(notification.pk), notification)
        ctx = make_context()
        ctx.redis.lrange.return_value = [str(notification.pk), '12345']

        with mock.patch('notifications.views.get_context', return_value=ctx):
            response = self.client.get(reverse('notification-feed'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'][0]['id'], notification.pk)
        self.assertIsNone(response.data['results'][1])

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse('notification-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
