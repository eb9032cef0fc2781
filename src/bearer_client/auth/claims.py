from __future__ import annotations

import base64
import binascii
import json
from typing import Any


def decode_claims(token: str) -> dict[str, Any] | None:
    """Return the unverified payload of a JWT-shaped token, or ``None``.

    Only the payload segment is decoded; signatures are the server's concern.
    """
    parts = token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    padding = "=" * (-len(parts[1]) % 4)
    try:
        payload = base64.urlsafe_b64decode(parts[1] + padding)
        claims = json.loads(payload)
    except (binascii.Error, ValueError):
        return None
    if not isinstance(claims, dict):
        return None
    return claims


def decode_expiry(token: str) -> int | None:
    """Extract the ``exp`` claim as epoch seconds.

    Anything other than a finite number (missing claim, string, boolean,
    undecodable token) yields ``None`` so callers treat it as expired.
    """
    claims = decode_claims(token)
    if claims is None:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    if exp != exp or exp in (float("inf"), float("-inf")):
        return None
    return int(exp)


__all__ = ["decode_claims", "decode_expiry"]
