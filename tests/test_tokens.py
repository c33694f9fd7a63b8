"""Tests for zkvault.tokens."""

import base64
import json

from zkvault.tokens import unverified_claims, unverified_email_hint


def _token(claims) -> str:
    def seg(obj) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).decode().rstrip("=")

    return f"{seg({'alg': 'HS256', 'typ': 'JWT'})}.{seg(claims)}.signature"


def test_email_hint_from_payload():
    assert unverified_email_hint(_token({"sub": "1", "email": "a@b.com"})) == "a@b.com"


def test_claims_are_returned_unverified():
    assert unverified_claims(_token({"sub": "42"})) == {"sub": "42"}


def test_missing_email_claim():
    assert unverified_email_hint(_token({"sub": "1"})) is None


def test_non_string_email_claim():
    assert unverified_email_hint(_token({"email": 7})) is None


def test_not_a_jwt():
    assert unverified_email_hint("opaque-token") is None
    assert unverified_email_hint("a..c") is None


def test_garbage_payload():
    assert unverified_email_hint("a.!!!!.c") is None
    assert unverified_claims("a." + base64.urlsafe_b64encode(b"[1,2]").decode() + ".c") is None


def test_hints_are_exported_from_package():
    import zkvault

    assert zkvault.unverified_email_hint is unverified_email_hint
    assert zkvault.unverified_claims is unverified_claims
    assert "unverified_email_hint" in zkvault.__all__
