"""Display hints read from bearer tokens.

The token's signature is NOT verified here.  Whatever comes out of
:func:`unverified_claims` is untrusted and fit only for display (e.g.
greeting the user by email); never base an authorisation decision on it.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional


def unverified_claims(token: str) -> Optional[dict[str, Any]]:
    """Decode the payload segment of a JWT-shaped token, or ``None``."""
    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        return None
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def unverified_email_hint(token: str) -> Optional[str]:
    """The ``email`` claim of *token*, for display only."""
    claims = unverified_claims(token)
    if claims is None:
        return None
    email = claims.get("email")
    return email if isinstance(email, str) and email else None
