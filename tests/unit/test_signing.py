"""Unit tests for signed subscriber links and webhook signatures."""

from __future__ import annotations

import hashlib
import hmac

from newsdesk.core.signing import (
    UNSUBSCRIBE_TOKEN_TTL_SECONDS,
    generate_unsubscribe_token,
    parse_resend_signature,
    token_expiry,
    verify_resend_signature,
    verify_unsubscribe_token,
)

SECRET = "unsubscribe-secret"
WEBHOOK_SECRET = "whsec_test"
NOW = 1_700_000_000.0


def _sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


class TestUnsubscribeToken:
    """Test HMAC tokens embedded in footer links."""

    def test_token_verifies_for_same_email_case_insensitively(self) -> None:
        """Test that the token is bound to the normalized address."""
        # Arrange
        expiry = int(NOW) + 60
        token = generate_unsubscribe_token("Reader@Example.com ", expiry, SECRET)

        # Act
        ok = verify_unsubscribe_token("reader@example.com", token, str(expiry), SECRET, now=NOW)

        # Assert
        assert ok is True

    def test_token_rejected_for_other_email(self) -> None:
        """Test that a token cannot be replayed for a different address."""
        expiry = int(NOW) + 60
        token = generate_unsubscribe_token("reader@example.com", expiry, SECRET)

        assert not verify_unsubscribe_token("other@example.com", token, expiry, SECRET, now=NOW)

    def test_token_rejected_after_expiry(self) -> None:
        """Test that an expired token is refused even with a valid signature."""
        expiry = int(NOW) - 1
        token = generate_unsubscribe_token("reader@example.com", expiry, SECRET)

        assert not verify_unsubscribe_token("reader@example.com", token, expiry, SECRET, now=NOW)

    def test_token_rejected_with_non_numeric_expiry(self) -> None:
        """Test that a tampered expiry is refused."""
        token = generate_unsubscribe_token("reader@example.com", int(NOW) + 60, SECRET)

        assert not verify_unsubscribe_token("reader@example.com", token, "soon", SECRET, now=NOW)

    def test_token_expiry_is_ninety_days_out(self) -> None:
        """Test the default link lifetime."""
        assert token_expiry(NOW) == int(NOW) + UNSUBSCRIBE_TOKEN_TTL_SECONDS


class TestResendSignature:
    """Test webhook signature parsing and verification."""

    def test_parses_combined_header(self) -> None:
        """Test the ``t=<ts>,v1=<sig>`` header form."""
        # Act
        parsed = parse_resend_signature("t=1700000000,v1=abc123")

        # Assert
        assert parsed is not None
        assert parsed.signature == "abc123"
        assert parsed.timestamp_ms == 1_700_000_000_000
        assert parsed.signed_timestamp == "1700000000"

    def test_millisecond_timestamps_are_not_rescaled(self) -> None:
        """Test that a timestamp already in milliseconds is kept."""
        parsed = parse_resend_signature("sig", "1700000000000")

        assert parsed is not None
        assert parsed.timestamp_ms == 1_700_000_000_000

    def test_missing_header_is_reported(self) -> None:
        """Test that no signature yields ``missing_signature``."""
        result = verify_resend_signature("{}", None, None, WEBHOOK_SECRET, now=NOW)

        assert result.ok is False
        assert result.error == "missing_signature"

    def test_valid_signature_with_timestamp(self) -> None:
        """Test a signature computed over ``<timestamp>.<body>``."""
        # Arrange
        body = '{"type":"email.delivered"}'
        timestamp = str(int(NOW))
        header = f"t={timestamp},v1={_sign(f'{timestamp}.{body}')}"

        # Act
        result = verify_resend_signature(body, header, None, WEBHOOK_SECRET, now=NOW)

        # Assert
        assert result.ok is True

    def test_valid_bare_signature_without_timestamp(self) -> None:
        """Test a bare signature over the raw body."""
        body = '{"type":"email.opened"}'

        result = verify_resend_signature(body, _sign(body), None, WEBHOOK_SECRET, now=NOW)

        assert result.ok is True

    def test_stale_timestamp_is_rejected(self) -> None:
        """Test the five minute replay window."""
        # Arrange
        body = "{}"
        timestamp = str(int(NOW) - 301)
        header = f"t={timestamp},v1={_sign(f'{timestamp}.{body}')}"

        # Act
        result = verify_resend_signature(body, header, None, WEBHOOK_SECRET, now=NOW)

        # Assert
        assert result.ok is False
        assert result.error == "timestamp_out_of_range"

    def test_tampered_body_is_rejected(self) -> None:
        """Test that a signature over a different body fails."""
        timestamp = str(int(NOW))
        header = f"t={timestamp},v1={_sign(f'{timestamp}.{{}}')}"

        result = verify_resend_signature('{"x":1}', header, None, WEBHOOK_SECRET, now=NOW)

        assert result.ok is False
        assert result.error == "invalid_signature"
