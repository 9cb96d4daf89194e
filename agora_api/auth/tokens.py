"""Supabase access token verification.

Pure functions of (credential, secret, clock): they never touch the data
store and never raise on a bad credential. Any verification failure
(signature mismatch, expiry, malformed payload, missing subject) yields None
and the caller turns that into a 401.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import jwt

logger = logging.getLogger(__name__)

ALGORITHMS = ["HS256"]


@dataclass(frozen=True)
class Identity:
    """Claims extracted from a verified access token."""

    subject_id: str
    email: Optional[str] = None
    claimed_role: Optional[str] = None


def bearer_token(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Returns None when the header is absent, has no token part, or the scheme
    is not (case-insensitively) ``bearer``.
    """
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) < 2:
        return None
    scheme, token = parts[0], parts[1]
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def verify(token: str, secret: str, audience: Optional[str] = None) -> Optional[Identity]:
    """Verify a Supabase JWT and return its identity claims.

    Args:
        token: Raw JWT string
        secret: Shared HS256 secret (Supabase JWT secret)
        audience: Expected ``aud`` claim; None skips the audience check

    Returns:
        Identity, or None if the token does not verify
    """
    options: dict[str, Any] = {"require": ["exp", "sub"]}
    if audience is None:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=ALGORITHMS,
            audience=audience,
            options=options,
        )
    except jwt.PyJWTError as e:
        logger.info(
            "auth.token.rejected",
            extra={"reason": type(e).__name__},
        )
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None

    email = payload.get("email")
    role = payload.get("role")
    return Identity(
        subject_id=subject,
        email=email if isinstance(email, str) and email else None,
        claimed_role=role if isinstance(role, str) and role else None,
    )
