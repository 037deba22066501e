"""Tests for the log sanitizer."""

from resolve_api.utils.sanitize import (
    MAX_STR_LOG,
    payload_hash_bytes,
    sanitize_obj,
    sanitize_str,
)


def test_sanitize_str_redacts_stripe_secrets() -> None:
    out = sanitize_str("key=sk_test_abc123 hook=whsec_xyz789 cs=pi_3Nabc_secret_def456")
    assert "sk_test_abc123" not in out
    assert "whsec_xyz789" not in out
    assert "pi_3Nabc_secret_def456" not in out


def test_sanitize_str_masks_email_addresses() -> None:
    assert sanitize_str("sent to jo.tradie@example.com.au") == "sent to [EMAIL]"


def test_sanitize_str_truncates_oversized_values() -> None:
    out = sanitize_str("x" * (MAX_STR_LOG + 1))
    assert out.startswith("[TRUNCATED len=")


def test_sanitize_obj_redacts_sensitive_keys_recursively() -> None:
    out = sanitize_obj(
        {
            "application": {"full_name": "Jo Tradie", "phone": "0400 000 000", "trade": "plumber"},
            "headers": [{"Authorization": "Bearer abc"}],
        }
    )
    assert out["application"]["full_name"] == "[REDACTED]"
    assert out["application"]["phone"] == "[REDACTED]"
    assert out["application"]["trade"] == "plumber"
    assert out["headers"][0]["Authorization"] == "[REDACTED]"


def test_payload_hash_is_stable_sha256() -> None:
    assert payload_hash_bytes(b"{}") == payload_hash_bytes(b"{}")
    assert len(payload_hash_bytes(b"{}")) == 64


def test_sanitize_str_masks_australian_mobile_numbers() -> None:
    assert sanitize_str("call 0412 345 678 today") == "call [PHONE] today"
    assert sanitize_str("or +61412345678") == "or [PHONE]"
    assert sanitize_str("case CASE-1718000000000-AB12") == "case CASE-1718000000000-AB12"
