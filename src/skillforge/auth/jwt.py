"""Bearer access tokens.

HS* algorithms sign and verify with ``jwt_secret``. RS*/ES* algorithms read a
PEM key pair from ``jwt_private_key_path`` and ``jwt_public_key_path``. Keys
are loaded once and cached; ``reset_keys`` drops the cache after settings
change.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from skillforge.config import get_settings

ACCESS = "access"

_keys: tuple[str, str] | None = None


def _load_keys() -> tuple[str, str]:
    """(signing key, verification key)"""
    global _keys  # noqa: PLW0603
    if _keys is None:
        settings = get_settings()
        if settings.jwt_algorithm.startswith("HS"):
            _keys = (settings.jwt_secret, settings.jwt_secret)
        else:
            _keys = (
                Path(settings.jwt_private_key_path).read_text(),
                Path(settings.jwt_public_key_path).read_text(),
            )
    return _keys


def reset_keys() -> None:
    global _keys  # noqa: PLW0603
    _keys = None


def create_access_token(user_id: int, email: str) -> str:
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "type": ACCESS,
        "iss": settings.jwt_issuer,
        "iat": issued,
        "exp": issued + timedelta(minutes=settings.jwt_access_token_expire_minutes),
    }
    return jwt.encode(claims, _load_keys()[0], algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = ACCESS) -> dict[str, Any]:
    """Decode a token and check signature, expiry, issuer and ``type``.

    Raises:
        jwt.InvalidTokenError: with a message fit for a 401 response.
    """
    settings = get_settings()
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            _load_keys()[1],
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise jwt.InvalidTokenError("Token has expired") from None

    if claims.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected token type '{expected_type}', got '{claims.get('type')}'")
    return claims
