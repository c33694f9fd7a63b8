"""Random password generation."""

from __future__ import annotations

import secrets
import string

from .exceptions import InvalidInput

SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def generate_password(
    length: int = 20,
    *,
    lowercase: bool = True,
    uppercase: bool = True,
    digits: bool = True,
    symbols: bool = True,
) -> str:
    """Return a random password drawn from the selected character classes."""
    if length < 1:
        raise InvalidInput("Password length must be at least 1.")

    charset = ""
    if lowercase:
        charset += string.ascii_lowercase
    if uppercase:
        charset += string.ascii_uppercase
    if digits:
        charset += string.digits
    if symbols:
        charset += SYMBOLS
    if not charset:
        raise InvalidInput("At least one character type must be selected.")

    return "".join(secrets.choice(charset) for _ in range(length))
