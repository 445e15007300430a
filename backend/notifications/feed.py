"""
Per-profile notification feed.

Recent notification ids live in a Redis list per profile; the notifications
themselves are cached under ``notification.<id>``. Both are an index into the
``Notification`` table, which stays the source of truth: an empty list falls
back to the database.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import Notification, NotificationAction

logger = logging.getLogger(__name__)

PAYLOAD_PREFIX = 'notification.'
# LRANGE bounds are inclusive, so this reads up to 31 ids
FEED_RANGE_END = 30
FALLBACK_LIMIT = 30

FILTERABLE_ACTIONS = frozenset({
    NotificationAction.COMMENT,
    NotificationAction.FOLLOW,
    NotificationAction.MENTION,
})
RECENT_WINDOW = timedelta(days=30 * 6)
FOLLOWING_WINDOW = timedelta(days=30)


def feed_key(profile_id):
    prefix = settings.CACHES['default'].get('KEY_PREFIX', '')
    return f"{prefix}:user.{profile_id}.notifications"


def payload_key(notification_id):
    return f"{PAYLOAD_PREFIX}{notification_id}"


class NotificationFeed:
    def __init__(self, ctx):
        self.redis = ctx.redis
        self.cache = ctx.cache

    def fetch(self, profile_id):
        """
        Most recent notifications for ``profile_id``, newest first.

        Returns a generator meant to be consumed once. Ids whose cached
        payload has expired come back as ``None``.
        """
        ids = self.redis.lrange(feed_key(profile_id), 0, FEED_RANGE_END)
        if not ids:
            logger.debug("Notification feed cold for profile %s, reading database", profile_id)
            return (
                n for n in Notification.objects
                .filter(profile_id=profile_id)
                .select_related('actor')
                .order_by('-id')[:FALLBACK_LIMIT]
            )
        return self._hydrate(ids)

    def _hydrate(self, ids):
        for notification_id in ids:
            if isinstance(notification_id, bytes):
                notification_id = notification_id.decode()
            payload = self.cache.get(payload_key(notification_id))
            if payload is None:
                logger.warning("Cached payload missing for notification %s", notification_id)
            yield payload

    def push(self, notification):
        """Cache ``notification`` and put its id at the head of the recipient's list."""
        self.cache.set(payload_key(notification.pk), notification, timeout=None)
        key = feed_key(notification.profile_id)
        self.redis.lpush(key, notification.pk)
        self.redis.ltrim(key, 0, settings.NOTIFICATION_FEED_MAX_LENGTH - 1)
        logger.debug("Pushed notification %s onto %s", notification.pk, key)


def _apply_action(queryset, action):
    if action and action in FILTERABLE_ACTIONS:
        queryset = queryset.filter(action=action)
    return queryset


def list_recent(profile, action=None):
    """Notifications for ``profile`` from the last six months, newest first."""
    since = timezone.now() - RECENT_WINDOW
    queryset = Notification.objects.filter(profile=profile, created_at__gt=since)
    return _apply_action(queryset, action).select_related('actor').order_by('-id')


def list_following_activity(profile, action=None):
    """Last month's notifications produced by profiles ``profile`` follows."""
    since = timezone.now() - FOLLOWING_WINDOW
    queryset = (
        Notification.objects
        .filter(actor_id__in=profile.following_ids(), created_at__gt=since)
        .exclude(profile=profile)
    )
    return _apply_action(queryset, action).select_related('actor', 'profile').order_by('-id')
