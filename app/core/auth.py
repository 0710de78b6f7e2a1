from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, Request

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def resolve_user_id(sb, authorization: Optional[str]) -> Optional[str]:
    """
    Verify a Supabase access token and return the user id.
    None when the header is missing or the token is rejected.
    """
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        res = sb.auth.get_user(token)
    except Exception as e:
        logger.info("Token rejected: %s", e)
        return None
    user = getattr(res, "user", None)
    return getattr(user, "id", None)


def optional_user_id(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Optional[str]:
    return resolve_user_id(request.state.sb, authorization)
