"""
Account-level operations: mute/block filters and email verification.
"""
import hashlib
import logging
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.crypto import get_random_string

from backend.exceptions import EnqueueError, Forbidden, NotAllowed, NotFound, RateLimited

from .models import EmailVerification, FilterableType, FilterType, Profile, User, UserFilter

logger = logging.getLogger(__name__)

# "<type>.<filter>" combinations a client may request
ALLOWED_FILTERS = frozenset({
    'user.mute',
    'user.block',
})

# request "type" -> stored filterable kind
TARGET_TYPES = {
    'user': FilterableType.PROFILE,
}

# filter types that may not point at the acting profile; blocking yourself is allowed
SELF_FILTER_FORBIDDEN = frozenset({FilterType.MUTE})

VERIFICATION_RESEND_WINDOW = timedelta(days=1)
RANDOM_TOKEN_LENGTH = 40


def _resolve_target(filterable_type, target_id):
    if filterable_type == FilterableType.PROFILE:
        target = Profile.objects.filter(pk=target_id).first()
    else:
        target = None
    if target is None:
        raise NotFound(f"{filterable_type.label} {target_id} not found.")
    return target


def apply_filter(profile, filter_type, target_type, target_id):
    """
    Mute or block ``target_id`` of ``target_type`` for ``profile``.

    Returns ``(user_filter, created)``. Applying the same filter twice returns
    the existing row.
    """
    filter_type = FilterType(filter_type)
    action = f"{target_type}.{filter_type.value}"
    if action not in ALLOWED_FILTERS:
        raise NotAllowed(f"'{action}' is not a supported filter.")

    filterable_type = TARGET_TYPES[target_type]
    target = _resolve_target(filterable_type, target_id)

    if filter_type in SELF_FILTER_FORBIDDEN and target.pk == profile.pk:
        raise Forbidden(f"You cannot {filter_type.value} yourself.")

    lookup = {
        'profile': profile,
        'filterable_id': target.pk,
        'filterable_type': filterable_type,
        'filter_type': filter_type,
    }
    try:
        with transaction.atomic():
            user_filter, created = UserFilter.objects.get_or_create(**lookup)
    except IntegrityError:
        # a concurrent request inserted the same row first
        user_filter, created = UserFilter.objects.get(**lookup), False

    if created:
        logger.info("Profile %s applied %s on %s:%s", profile.pk, filter_type, filterable_type, target.pk)
    return user_filter, created


def user_token_for(user):
    return hashlib.sha512(str(user.pk).encode('utf-8')).hexdigest()


def request_verification(user, ctx):
    """
    Issue a new EmailVerification for ``user`` and hand it to the mailer.

    Raises RateLimited when one was issued within the last day. Older
    unconfirmed rows are deleted before the new one is created.
    """
    since = timezone.now() - VERIFICATION_RESEND_WINDOW
    existing = EmailVerification.objects.filter(user_id=user.pk)
    recent = existing.filter(created_at__gt=since).count()
    total = existing.count()

    if recent and total:
        raise RateLimited(
            'A verification email has already been sent recently. '
            'Please check your email, or try again later.'
        )
    if total:
        deleted, _ = existing.delete()
        logger.info("Deleted %s stale email verification(s) for user %s", deleted, user.pk)

    unverified = User.objects.filter(pk=user.pk).first()
    if unverified is None or unverified.is_email_verified:
        raise NotFound('No unverified account found.')

    # committed before the mail task is queued so the worker can read it
    verification = EmailVerification.objects.create(
        user=unverified,
        email=unverified.email,
        user_token=user_token_for(unverified),
        random_token=get_random_string(RANDOM_TOKEN_LENGTH),
    )
    try:
        ctx.mailer.send_confirmation(verification)
    except EnqueueError:
        # the resend window only counts emails that were queued
        EmailVerification.objects.filter(pk=verification.pk).delete()
        raise
    logger.info("Issued email verification %s for user %s", verification.pk, user.pk)
    return verification


def confirm_verification(user_token, random_token, user):
    """
    Returns True when ``user`` owns the verification and was stamped verified.
    A verification owned by someone else leaves everything untouched and
    returns False.
    """
    verification = EmailVerification.objects.filter(
        user_token=user_token,
        random_token=random_token,
    ).first()
    if verification is None:
        raise NotFound('Verification not found.')

    if verification.user_id != user.pk:
        logger.warning(
            "User %s tried to confirm verification %s owned by user %s",
            user.pk, verification.pk, verification.user_id,
        )
        return False

    User.objects.filter(pk=user.pk).update(email_verified_at=timezone.now())
    logger.info("Email verified for user %s", user.pk)
    return True
