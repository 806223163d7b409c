from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, TokenError


def token_from_scope(scope):
    """Access token of a websocket handshake, `?token=` first, then a Bearer header."""
    params = parse_qs(scope.get("query_string", b"").decode("utf-8"))
    if params.get("token"):
        return params["token"][0]
    headers = dict(scope.get("headers", []))
    prefix, _, token = headers.get(b"authorization", b"").decode("utf-8").partition(" ")
    if prefix == "Bearer" and token:
        return token
    return None


@database_sync_to_async
def user_for_token(raw_token):
    authentication = JWTAuthentication()
    try:
        return authentication.get_user(authentication.get_validated_token(raw_token))
    except (AuthenticationFailed, TokenError):
        # covers InvalidToken, unknown and deactivated users
        return AnonymousUser()


class JWTAuthMiddleware:
    """
    Authenticates websocket connections with the access tokens the REST API
    issues. Anything that does not resolve to an active user connects as
    AnonymousUser and is turned away by the consumer.
    """
    def __init__(self, inner):
        self.inner = inner

    async def __call__(self, scope, receive, send):
        token = token_from_scope(scope)
        scope["user"] = await user_for_token(token) if token else AnonymousUser()
        return await self.inner(scope, receive, send)
