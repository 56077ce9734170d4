"""Authenticated principal resolution.

Token issuance and route protection live outside this service core. The rate
limiter only needs to know *who* is calling, so this module reads the
principal id either from ``request.state.principal_id`` (set by an upstream
authentication layer) or from an HS256 bearer token.

Design principles:
- Never raises: an absent, malformed or expired token means "unauthenticated".
- Configuration-driven: token verification is skipped without JWT_SECRET.
"""

from __future__ import annotations

import logging

from fastapi import Request
from jwt import PyJWTError, decode as jwt_decode

from six_cities.core.config import AuthSettings, settings

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token part of an ``Authorization: Bearer <token>`` header.

    Examples:
        >>> extract_bearer_token("Bearer abc.def.ghi")
        'abc.def.ghi'
        >>> extract_bearer_token("Basic dXNlcjpwdw==") is None
        True
    """
    if not authorization or not authorization.lower().startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX):].strip()
    return token or None


def decode_principal_id(token: str, auth_settings: AuthSettings | None = None) -> str | None:
    """Verify a bearer token and return its principal id.

    Args:
        token: Encoded JWT.
        auth_settings: Optional override for the global auth settings.

    Returns:
        The ``id`` claim (falling back to ``sub``) or None when the token
        cannot be verified.
    """
    cfg = auth_settings or settings.auth
    if not cfg.secret:
        return None

    try:
        payload = jwt_decode(token, cfg.secret, algorithms=[cfg.algorithm])
    except PyJWTError as exc:
        logger.debug("auth.token_rejected", extra={"error_type": type(exc).__name__})
        return None

    principal = payload.get("id") or payload.get("sub")
    if principal is None:
        return None
    return str(principal)


def resolve_principal_id(request: Request, auth_settings: AuthSettings | None = None) -> str | None:
    """Return the authenticated principal id for the request, if any."""
    principal = getattr(request.state, "principal_id", None)
    if principal:
        return str(principal)

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    return decode_principal_id(token, auth_settings)
