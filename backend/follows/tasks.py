# follows/tasks.py
import logging

from celery import shared_task
from redis.exceptions import ConnectionError as RedisConnectionError

from backend.context import get_context
from notifications.models import Notification, NotificationAction
from notifications.tasks import deliver_notification

from .models import Follower

logger = logging.getLogger(__name__)


@shared_task(bind=True, autoretry_for=(RedisConnectionError,), retry_backoff=True, retry_jitter=True, retry_kwargs={'max_retries': 5})
def follow_pipeline(self, edge_id):
    """
    Fan-out for a new Follower edge: records a ``follow`` notification for the
    followed profile and delivers it to that profile's feed.

    The job may run more than once for the same edge; the notification is
    keyed on the edge so a rerun does not create a second one.
    """
    edge = Follower.objects.select_related('profile', 'following').filter(pk=edge_id).first()
    if edge is None:
        logger.warning("Follow pipeline: edge %s not found", edge_id)
        return {'status': 'error', 'reason': 'edge_not_found', 'edge_id': edge_id}

    notification, created = Notification.objects.get_or_create(
        profile=edge.following,
        actor=edge.profile,
        action=NotificationAction.FOLLOW,
        item_type='follower',
        item_id=edge.pk,
        defaults={'message': f"{edge.profile.username} started following you."},
    )
    if not created:
        logger.info("Follow pipeline: notification %s already recorded for edge %s", notification.pk, edge.pk)

    serialized = deliver_notification(notification, get_context())
    return {'status': 'ok', 'notification': serialized}
