"""Token helpers: PKCE pairs, anti-forgery state, and JWT payload decoding.

:func:`decode_jwt_payload` deliberately skips signature verification. The
identity token is only ever decoded right after it was received from the
token endpoint over TLS, so the transport already vouches for it.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import secrets
from typing import Any

from ccauth.exceptions import DecodeError


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


def generate_state() -> str:
    """Return a fresh anti-forgery token for an authorization request."""
    return secrets.token_urlsafe(32)


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """Decode the payload segment of a JWT without verifying its signature.

    Args:
        token: Compact-serialised JWT (``header.payload.signature``).

    Returns:
        The decoded claims.

    Raises:
        DecodeError: If the token is not three segments, the payload is not
            base64url, or it does not decode to a JSON object.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise DecodeError(f"Invalid JWT format: expected 3 parts, got {len(parts)}")

    payload = parts[1]
    payload += "=" * ((4 - len(payload) % 4) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid JWT payload: {exc}") from exc

    if not isinstance(claims, dict):
        raise DecodeError("JWT payload is not a JSON object")
    return claims
