"""
Caller identity.

Resolves a Supabase access token to a user id. Tokens are issued and
refreshed by the console's sign-in flow; this module only asks Supabase
who a token belongs to.
"""

import asyncio
import logging
from typing import Optional

from supabase import Client

from console_sync.errors import NotAuthenticated

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an `Authorization: Bearer ...` header."""
    if not authorization:
        raise NotAuthenticated("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise NotAuthenticated("Authorization header must be 'Bearer <token>'")
    return token.strip()


def _resolve_user_id_sync(client: Client, access_token: str) -> str:
    try:
        response = client.auth.get_user(access_token)
    except Exception as e:
        logger.debug(f"Token rejected by Supabase: {e}")
        raise NotAuthenticated("Session is invalid or expired") from e

    user = getattr(response, "user", None) if response else None
    if not user or not getattr(user, "id", None):
        raise NotAuthenticated("No authenticated user found")
    return str(user.id)


async def resolve_user_id(client: Client, access_token: str) -> str:
    return await asyncio.to_thread(_resolve_user_id_sync, client, access_token)
