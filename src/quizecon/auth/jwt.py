"""
Bearer token verification for tokens issued by the identity provider.

This service never issues tokens. It only checks the signature, expiry and
(optionally) audience, and extracts the ``sub`` claim as the opaque user id.
"""

from __future__ import annotations

from typing import Any

import jwt

from quizecon.config import get_settings


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Args:
        token: The encoded JWT string.

    Returns:
        Decoded payload dictionary.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    options: dict[str, Any] = {"require": ["exp", "sub"]}
    if not settings.jwt_audience:
        options["verify_aud"] = False
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        msg = "Token subject must be a non-empty string"
        raise jwt.InvalidTokenError(msg)
    return payload
