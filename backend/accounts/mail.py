import logging

from kombu.exceptions import OperationalError

from backend.exceptions import EnqueueError

from .tasks import send_confirmation_email

logger = logging.getLogger(__name__)


class ConfirmEmailMailer:
    """Delivers confirmation messages through the mail Celery task."""

    def send_confirmation(self, verification):
        try:
            result = send_confirmation_email.delay(verification.pk)
        except OperationalError as exc:
            logger.exception("Failed to queue confirmation email for verification %s", verification.pk)
            raise EnqueueError() from exc
        logger.debug("Queued confirmation email for verification %s", verification.pk)
        return result
