from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from suite_access.models.decisions import ReasonCode
from suite_access.models.profile import UserIdentity
from suite_access.services import token_service
from suite_access.services.action_guard import get_error_message

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def error_detail(code: ReasonCode, message: str | None = None) -> dict[str, str]:
    """HTTPException detail body: the reason code plus a readable message."""
    return {"code": code.value, "message": message or get_error_message(code)}


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error_detail(ReasonCode.USER_NOT_AUTHENTICATED, message),
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_claims(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> dict:
    """Validate the bearer JWT and return its claims. 401 on any failure."""
    try:
        return token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None


def require_user(
    claims: Annotated[dict, Depends(require_claims)],
) -> UserIdentity:
    user = UserIdentity(
        id=claims["sub"],
        email_verified=bool(claims.get("email_verified", False)),
    )
    logger.debug(
        "Token validated for user=%s email_verified=%s", user.id, user.email_verified
    )
    return user


def get_session_id(
    claims: Annotated[dict, Depends(require_claims)],
    x_session_id: Annotated[str | None, Header()] = None,
) -> str:
    """Profile-load session key: X-Session-ID if sent, else the token's jti."""
    return x_session_id or claims["jti"]


def get_now() -> datetime:
    """Evaluation clock. Overridden in tests to pin time."""
    return datetime.now(UTC)
