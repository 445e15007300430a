"""
Fan-out job queue for new follow edges.

``enqueue`` hands the event to Celery and returns the job id without waiting
for the job. Delivery to the pipeline is at-least-once: consumers must
tolerate seeing the same edge twice.
"""
import logging
from dataclasses import dataclass

from kombu.exceptions import OperationalError

from backend.exceptions import EnqueueError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowEvent:
    """A new Follower edge to propagate."""
    edge_id: int
    profile_id: int
    following_id: int

    @classmethod
    def for_edge(cls, edge):
        return cls(edge_id=edge.pk, profile_id=edge.profile_id, following_id=edge.following_id)


class CeleryJobQueue:
    def enqueue(self, event: FollowEvent) -> str:
        from .tasks import follow_pipeline

        try:
            result = follow_pipeline.delay(event.edge_id)
        except OperationalError as exc:
            logger.exception("Failed to queue follow pipeline for edge %s", event.edge_id)
            raise EnqueueError() from exc
        logger.info("Queued follow pipeline job %s for edge %s", result.id, event.edge_id)
        return result.id
