"""Bearer token identity resolution."""

import logging
from typing import Optional

import jwt
from bson import ObjectId

from errors import AuthenticationError

logger = logging.getLogger(__name__)


def resolve_user_id(authorization: Optional[str], secret: str) -> Optional[str]:
    """Return the user id carried by an `Authorization: Bearer <jwt>` header.

    No header means a guest (None). A header that is present but malformed,
    badly signed, expired or missing a valid `userId` claim raises
    AuthenticationError.
    """
    raw = (authorization or "").strip()
    if not raw:
        return None

    parts = raw.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _reject("invalid token format")
    if not secret:
        raise _reject("token secret not configured")

    try:
        claims = jwt.decode(parts[1], secret, algorithms=["HS256"])
    except jwt.PyJWTError as exc:
        raise _reject(f"invalid token: {exc}") from exc

    user_id = claims.get("userId")
    if not isinstance(user_id, str) or not user_id.strip():
        raise _reject("userId claim missing")
    if not ObjectId.is_valid(user_id):
        raise _reject("invalid userId")
    return user_id


def _reject(reason: str) -> AuthenticationError:
    logger.warning("Token rejected: %s", reason)
    return AuthenticationError(reason)
