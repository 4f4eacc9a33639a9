"""Unit tests for the CAN-SPAM footer."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from urllib.parse import parse_qs, unquote

from newsdesk.core.config import settings
from newsdesk.core.signing import verify_unsubscribe_token
from newsdesk.services.email_footer import (
    append_email_footer,
    generate_email_footer,
    validate_email_compliance,
)

NOW = datetime(2025, 3, 4, 12, 0, tzinfo=UTC)


class TestAppendEmailFooter:
    """Test where the footer lands in the message."""

    def test_inserted_before_body_close(self) -> None:
        """Test that the footer sits inside ``<body>``."""
        # Arrange
        html = "<html><body><p>Hello</p></BODY></html>"

        # Act
        result = append_email_footer(html, "reader@example.com", now=NOW)

        # Assert
        assert result.index("CAN-SPAM footer") < result.lower().index("</body>")
        assert result.endswith("</BODY></html>")

    def test_falls_back_to_html_close(self) -> None:
        """Test insertion before ``</html>`` when there is no body tag."""
        result = append_email_footer("<html><p>Hi</p></html>", "reader@example.com", now=NOW)

        assert result.index("CAN-SPAM footer") < result.index("</html>")

    def test_appended_to_fragments(self) -> None:
        """Test that bare fragments get the footer at the end."""
        result = append_email_footer("<p>Hi</p>", "reader@example.com", now=NOW)

        assert result.startswith("<p>Hi</p>")
        assert "CAN-SPAM footer" in result


class TestGenerateEmailFooter:
    """Test footer content."""

    def test_links_carry_a_valid_signed_token(self) -> None:
        """Test that the preferences link verifies for the recipient."""
        # Act
        footer = generate_email_footer("Reader@Example.com", "https://news.example.com", now=NOW)

        # Assert
        match = re.search(r'href="https://news\.example\.com/preferences\?([^"]+)"', footer)
        assert match is not None
        query = parse_qs(match.group(1))
        assert unquote(query["email"][0]) == "reader@example.com"
        assert verify_unsubscribe_token(
            "reader@example.com",
            query["token"][0],
            query["exp"][0],
            settings.signing_secret,
            now=NOW.timestamp(),
        )
        assert "/unsubscribe?" in footer

    def test_broadcast_footer_has_no_personal_links(self) -> None:
        """Test that the shared broadcast footer omits unsubscribe links."""
        footer = generate_email_footer("", include_unsubscribe=False, now=NOW)

        assert "/unsubscribe?" not in footer
        assert f"&copy; 2025 {settings.business_name}" in footer


class TestCompliance:
    """Test the compliance checker."""

    def test_missing_elements_are_listed(self) -> None:
        """Test that a bare message fails both checks."""
        missing = validate_email_compliance("<p>Hello</p>")

        assert "Unsubscribe link" in missing
        assert "Sender identification" in missing

    def test_footer_makes_a_message_compliant(self) -> None:
        """Test that appending the footer satisfies the checker."""
        html = append_email_footer("<p>Hello</p>", "reader@example.com", now=NOW)

        assert validate_email_compliance(html) == []
