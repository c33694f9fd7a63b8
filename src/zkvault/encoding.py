"""Canonical byte conversions used on the wire.

Salts and keys travel as lowercase hex, ciphertext and IVs as standard
base64, text as UTF-8.
"""

from __future__ import annotations

import base64
import binascii
import string

from .exceptions import InvalidInput


def bytes_to_hex(data: bytes) -> str:
    return data.hex()


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string; odd length or non-hex digits raise :class:`InvalidInput`."""
    if len(value) % 2 != 0:
        raise InvalidInput("Invalid hex: odd number of digits.")
    if not all(c in string.hexdigits for c in value):
        raise InvalidInput("Invalid hex: non-hex digit in input.")
    return bytes.fromhex(value)


def bytes_to_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64_to_bytes(value: str) -> bytes:
    """Strictly decode standard base64; garbage raises :class:`InvalidInput`."""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Invalid base64 input.") from exc


def utf8_encode(text: str) -> bytes:
    return text.encode("utf-8")


def utf8_decode(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidInput("Invalid UTF-8 byte sequence.") from exc
