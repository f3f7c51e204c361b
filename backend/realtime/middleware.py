"""WebSocket authentication middleware for JWT query-string auth."""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()
logger = logging.getLogger(__name__)


@database_sync_to_async
def get_user(user_id):
    try:
        return User.objects.select_related("driver_profile").get(id=user_id)
    except User.DoesNotExist:
        return AnonymousUser()


class JWTQueryAuthMiddleware(BaseMiddleware):
    """
    Authenticate WebSocket connections with a JWT access token in the
    querystring (``?token=...``). Anything else connects as anonymous and is
    closed by the consumer.
    """

    async def __call__(self, scope, receive, send):
        query_string = scope.get("query_string", b"").decode()
        params = parse_qs(query_string)

        scope["user"] = AnonymousUser()

        token_list = params.get("token")
        if token_list:
            try:
                access = AccessToken(token_list[0])
                scope["user"] = await get_user(access["user_id"])
            except (TokenError, KeyError) as e:
                logger.debug("JWT auth failed: %s", e)

        return await super().__call__(scope, receive, send)
