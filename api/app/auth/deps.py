"""
Identity resolution for FastAPI routes.

The realtime core does not issue credentials; it only maps an incoming
session to a stable user id. Two sources are accepted:
1. Cookie-based session (web): httpOnly cookie holding the access token
2. Bearer token (API clients and the realtime client package)
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException
from pydantic import BaseModel

from app import repo
from app.auth.security import decode_access_token
from app.config import DEV_MODE

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "campus_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(reason: str, trace_id: str, message: str = "unauthorized", status_code: int = 401) -> HTTPException:
    detail = (
        AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
        if DEV_MODE
        else {"message": message, "trace_id": trace_id}
    )
    return HTTPException(status_code=status_code, detail=detail)


def _log_auth_failure(reason: str, trace_id: str, auth_source: str | None = None, user_id: str | None = None) -> None:
    logger.warning(f"[AUTH_FAILURE] trace_id={trace_id} reason={reason} source={auth_source} user_id={user_id}")


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def _resolve_user(token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, auth_source)
        raise _unauthorized(reason, trace_id)

    user_id = str(payload.get("sub", ""))
    if not user_id:
        _log_auth_failure("token_missing_subject", trace_id, auth_source)
        raise _unauthorized("token_missing_subject", trace_id)
    try:
        user_id = str(uuid.UUID(user_id))
    except ValueError:
        _log_auth_failure("token_subject_invalid", trace_id, auth_source, user_id)
        raise _unauthorized("token_subject_invalid", trace_id)

    user = repo.get_user_by_id(user_id)
    if not user:
        _log_auth_failure("token_user_not_found", trace_id, auth_source, user_id)
        raise _unauthorized("token_user_not_found", trace_id)
    if user.get("disabled_at"):
        _log_auth_failure("account_disabled", trace_id, auth_source, user_id)
        raise _unauthorized("account_disabled", trace_id, message="Account disabled", status_code=403)

    logger.debug(f"[auth] resolved user_id={user_id} source={auth_source}")
    return {
        "id": str(user["id"]),
        "email": user.get("email"),
        "display_name": user.get("display_name"),
        "image_url": user.get("image_url"),
    }


def get_current_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Cookie session first, then bearer token."""
    trace_id = str(uuid.uuid4())

    if session_token:
        return _resolve_user(session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            _log_auth_failure(e.reason, e.trace_id, auth_source="bearer")
            raise _unauthorized(e.reason, e.trace_id, message=e.detail)
        return _resolve_user(token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, auth_source="none")
    raise _unauthorized("missing_token", trace_id, message="Authentication required")
