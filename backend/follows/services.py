"""
Follow request state machine: pending -> accepted | rejected.
"""
import logging

from django.db import IntegrityError, transaction

from backend.exceptions import NotFound

from .models import Follower, FollowRequest
from .queue import FollowEvent

logger = logging.getLogger(__name__)


def pending_requests(profile_id):
    return (
        FollowRequest.objects
        .filter(following_id=profile_id, is_rejected=False)
        .select_related('follower')
        .order_by('-id')
    )


def _locked_pending(request_id, profile_id):
    return (
        FollowRequest.objects
        .select_for_update()
        .filter(pk=request_id, following_id=profile_id, is_rejected=False)
        .first()
    )


def accept_request(request_id, profile_id, ctx):
    """
    Accept a pending request addressed to ``profile_id``.

    The Follower edge is committed first. The fan-out job is then queued and
    the request row deleted under the same row lock, so the request only
    disappears once its job was handed to the queue. A failed enqueue leaves
    the request pending and a retry queues the job for the existing edge.
    Once the row is gone further attempts raise NotFound.
    """
    with transaction.atomic():
        follow_request = _locked_pending(request_id, profile_id)
        if follow_request is None:
            raise NotFound('Follow request not found.')

        try:
            with transaction.atomic():
                edge, created = Follower.objects.get_or_create(
                    profile_id=follow_request.follower_id,
                    following_id=profile_id,
                )
        except IntegrityError:
            # another worker created it in the meantime; fetch existing
            edge = Follower.objects.get(profile_id=follow_request.follower_id, following_id=profile_id)
            created = False

    with transaction.atomic():
        # a concurrent accept may have dispatched and deleted it already
        if _locked_pending(request_id, profile_id) is None:
            logger.info("Follow request %s already dispatched, edge %s", request_id, edge.pk)
            return edge

        job_id = ctx.queue.enqueue(FollowEvent.for_edge(edge))
        FollowRequest.objects.filter(pk=request_id).delete()

    logger.info(
        "Follow request %s accepted, edge %s (%s) queued as job %s",
        request_id, edge.pk, 'new' if created else 'existing', job_id,
    )
    return edge


def reject_request(request_id, profile_id):
    """
    Mark the request as rejected. Rejecting an already rejected request saves
    the same flag again.
    """
    with transaction.atomic():
        follow_request = (
            FollowRequest.objects
            .select_for_update()
            .filter(pk=request_id, following_id=profile_id)
            .first()
        )
        if follow_request is None:
            raise NotFound('Follow request not found.')

        follow_request.is_rejected = True
        follow_request.save(update_fields=['is_rejected'])

    logger.info("Follow request %s rejected by profile %s", request_id, profile_id)
    return follow_request
