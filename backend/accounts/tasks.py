# accounts/tasks.py
import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.urls import reverse

from .models import EmailVerification

logger = logging.getLogger(__name__)


def confirmation_url(verification):
    path = reverse(
        'verify-email-confirm',
        kwargs={'user_token': verification.user_token, 'random_token': verification.random_token},
    )
    return f"{settings.SITE_URL.rstrip('/')}{path}"


@shared_task(bind=True, autoretry_for=(ConnectionError,), retry_backoff=True, retry_jitter=True, retry_kwargs={'max_retries': 5})
def send_confirmation_email(self, verification_id):
    """
    Sends the "confirm your email" message for an EmailVerification row.
    A row deleted before the worker picks the task up is skipped.
    """
    verification = EmailVerification.objects.select_related('user').filter(pk=verification_id).first()
    if verification is None:
        logger.warning("Confirmation email task: verification %s no longer exists", verification_id)
        return {'status': 'skipped', 'verification_id': verification_id}

    username = verification.user.username
    url = confirmation_url(verification)
    send_mail(
        subject='Confirm your email address',
        message=f"Hello {username},\n\nPlease confirm your email address by visiting:\n{url}\n",
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[verification.email],
        fail_silently=False,
    )
    logger.info("Confirmation email sent to %s (verification %s)", verification.email, verification_id)
    return {'status': 'ok', 'verification_id': verification_id}
