"""CAN-SPAM footer injection for every outgoing marketing email."""

from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import quote

from newsdesk.core.config import settings
from newsdesk.core.signing import generate_unsubscribe_token, normalize_email, token_expiry
from newsdesk.db.base import utcnow

_BODY_CLOSE = re.compile(r"</body>", re.IGNORECASE)
_HTML_CLOSE = re.compile(r"</html>", re.IGNORECASE)


def signed_link_query(email: str, now: float | None = None) -> str:
    """``email=..&token=..&exp=..`` for preference and unsubscribe pages."""
    expiry = token_expiry(now)
    token = generate_unsubscribe_token(email, expiry, settings.signing_secret)
    return f"email={quote(normalize_email(email), safe='')}&token={token}&exp={expiry}"


def generate_email_footer(
    email: str,
    origin: str = "",
    include_unsubscribe: bool = True,
    now: datetime | None = None,
) -> str:
    current = now or utcnow()
    business = settings.business_name
    unsubscribe_row = ""
    if include_unsubscribe:
        base_url = origin or settings.public_base_url
        query = signed_link_query(email, current.timestamp())
        unsubscribe_row = f"""
            <tr>
              <td>
                <a href="{base_url}/preferences?{query}" style="color: rgba(13, 13, 13, 0.5); text-decoration: underline; font-size: 12px;">Update preferences</a>
                <span style="color: rgba(13, 13, 13, 0.3); font-size: 12px;">&nbsp;&middot;&nbsp;</span>
                <a href="{base_url}/unsubscribe?{query}" style="color: rgba(13, 13, 13, 0.5); text-decoration: underline; font-size: 12px;">Unsubscribe</a>
              </td>
            </tr>"""  # noqa: E501

    address_row = ""
    if settings.physical_address:
        address_row = f"""
            <tr>
              <td>
                <p style="margin: 0; color: rgba(13, 13, 13, 0.4); font-size: 11px;">{settings.physical_address}</p>
              </td>
            </tr>"""  # noqa: E501

    return f"""
    <!-- CAN-SPAM footer -->
    <table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="margin-top: 40px; border-top: 1px solid rgba(0, 0, 0, 0.06);">
      <tr>
        <td style="padding: 24px 0; text-align: center;">
          <table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="max-width: 480px; margin: 0 auto;">
            <tr>
              <td style="padding-bottom: 8px;">
                <p style="margin: 0; color: rgba(13, 13, 13, 0.5); font-size: 12px; line-height: 1.6;">
                  You are receiving this email because you subscribed to <strong>{business}</strong>.
                </p>
              </td>
            </tr>{unsubscribe_row}{address_row}
            <tr>
              <td style="padding-top: 8px;">
                <p style="margin: 0; color: rgba(13, 13, 13, 0.4); font-size: 11px;">&copy; {current.year} {business}</p>
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>""".strip()  # noqa: E501


def append_email_footer(
    html: str,
    email: str,
    origin: str = "",
    include_unsubscribe: bool = True,
    now: datetime | None = None,
) -> str:
    """Insert the footer before ``</body>``, else ``</html>``, else append it."""
    footer = generate_email_footer(email, origin, include_unsubscribe, now)
    for pattern in (_BODY_CLOSE, _HTML_CLOSE):
        match = pattern.search(html)
        if match:
            return f"{html[: match.start()]}{footer}\n{html[match.start():]}"
    return html + footer


def validate_email_compliance(html: str) -> list[str]:
    """Return the CAN-SPAM elements missing from ``html``."""
    missing: list[str] = []
    lowered = html.lower()
    if "unsubscribe" not in lowered:
        missing.append("Unsubscribe link")
    if settings.business_name.lower() not in lowered:
        missing.append("Sender identification")
    address = settings.physical_address
    if address and address.lower() not in lowered:
        missing.append("Physical address")
    return missing
