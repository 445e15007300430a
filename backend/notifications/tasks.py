# notifications/tasks.py
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
import logging

from .feed import NotificationFeed
from .serializers import NotificationSerializer

logger = logging.getLogger(__name__)


def group_name_for(profile_id):
    return f"profile_{profile_id}"


def deliver_notification(notification, ctx):
    """
    Index a freshly created Notification in the recipient's feed and push it to
    any websocket the recipient has open.

    Returns the serialized notification.
    """
    NotificationFeed(ctx).push(notification)

    serialized = NotificationSerializer(notification).data

    # Redis and the database already hold the notification; a failed push only
    # means an open client learns about it on its next fetch
    try:
        channel_layer = get_channel_layer()
        if channel_layer is not None:
            async_to_sync(channel_layer.group_send)(
                group_name_for(notification.profile_id),
                {
                    "type": "notification.message",
                    "notification": serialized,
                }
            )
        else:
            logger.debug("Channel layer not configured; skipping push for notification id=%s", notification.pk)
    except Exception as exc:
        logger.exception("Failed to push Notification id=%s via Channels: %s", notification.pk, exc)

    return serialized
