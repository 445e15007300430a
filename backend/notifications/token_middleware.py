# notifications/token_middleware.py
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.conf import settings
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import SlidingToken
import logging

logger = logging.getLogger(__name__)


@database_sync_to_async
def _user_for_token(raw_token):
    try:
        token = SlidingToken(raw_token)
    except TokenError as exc:
        logger.debug("Token auth failed for websocket connection: %s", exc)
        return AnonymousUser()

    claim = settings.SIMPLE_JWT.get("USER_ID_CLAIM", "user_id")
    user = get_user_model().objects.filter(pk=token.get(claim), is_active=True).first()
    if user is None:
        logger.debug("Token valid but user not found: claim=%s", token.get(claim))
        return AnonymousUser()
    return user


class QueryStringTokenAuthMiddleware(BaseMiddleware):
    """
    Authenticates websocket connections from a ``?token=<sliding JWT>`` query
    parameter. Without a token the scope user is left to the inner stack.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        qs = parse_qs(scope.get("query_string", b"").decode())
        if "token" in qs:
            scope["user"] = await _user_for_token(qs["token"][0])
        else:
            scope.setdefault("user", AnonymousUser())
        return await super().__call__(scope, receive, send)
