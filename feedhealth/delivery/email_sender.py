"""
Email Delivery
==============

Sends the daily report and the paused feed reminders through the Brevo
transactional email API. Every recipient comes from configuration apart
from the owner a reminder is addressed to.
"""

import base64
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from ..config.settings import EmailSettings
from ..models import AggregatedReport, FeedDescriptor
from ..utils.exceptions import DeliveryError, ErrorCode
from ..utils.logging import get_logger_for_component
from .digest_formatter import DigestFormatter


@dataclass
class DeliveryResult:
    """Result of one email delivery."""
    subject: str
    recipients: List[str]
    success: bool
    dry_run: bool = False
    message_id: Optional[str] = None
    error: Optional[str] = None
    delivery_time: Optional[datetime] = None

    def __post_init__(self):
        if not self.delivery_time:
            self.delivery_time = datetime.now(timezone.utc)


def _addresses(emails: List[str]) -> List[Dict[str, str]]:
    # Preserve order, drop blanks and duplicates
    seen = []
    for email in emails:
        if email and email not in seen:
            seen.append(email)
    return [{"email": email} for email in seen]


class BrevoEmailSender:
    """Delivers FeedHealth emails through Brevo."""

    def __init__(self, settings: EmailSettings, formatter: Optional[DigestFormatter] = None,
                 session: Optional[requests.Session] = None, dry_run: bool = False):
        """Initialize email sender.

        Args:
            settings: Email configuration
            formatter: HTML formatter (default one built from settings)
            session: requests session
            dry_run: Log payloads instead of sending them
        """
        self.settings = settings
        self.formatter = formatter or DigestFormatter(sender_name=settings.sender_name)
        self.session = session or requests.Session()
        self.dry_run = dry_run
        self.logger = get_logger_for_component("email_sender")

    def build_payload(self, to: List[str], subject: str, html: str,
                      bcc: Optional[List[str]] = None,
                      attachments: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sender": {"name": self.settings.sender_name, "email": self.settings.sender_email},
            "to": _addresses(to),
            "subject": subject,
            "htmlContent": html,
        }
        if bcc:
            payload["bcc"] = _addresses(bcc)
        if attachments:
            payload["attachment"] = attachments
        return payload

    def send(self, payload: Dict[str, Any]) -> DeliveryResult:
        """Send one email.

        Raises:
            DeliveryError: the request failed or Brevo rejected it
        """
        recipients = [entry["email"] for entry in payload["to"]]
        subject = payload["subject"]

        if not recipients:
            raise DeliveryError(f"No recipients for '{subject}'", recoverable=False)

        if self.dry_run:
            self.logger.info(f"[dry run] Would send '{subject}' to {', '.join(recipients)}")
            return DeliveryResult(subject=subject, recipients=recipients, success=True, dry_run=True)

        try:
            response = self.session.post(
                self.settings.api_url,
                json=payload,
                headers={"api-key": self.settings.api_key or "", "accept": "application/json"},
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            raise DeliveryError(
                f"Sending '{subject}' failed: {e}", recipients=recipients
            ) from e

        if response.status_code // 100 != 2:
            raise DeliveryError(
                f"Brevo rejected '{subject}' with HTTP {response.status_code}: {response.text[:500]}",
                recipients=recipients,
                status=response.status_code,
                error_code=ErrorCode.DELIVERY_REJECTED,
            )

        try:
            message_id = response.json().get("messageId")
        except (ValueError, AttributeError):
            message_id = None

        self.logger.info(f"Sent '{subject}' to {', '.join(recipients)}")
        return DeliveryResult(
            subject=subject, recipients=recipients, success=True, message_id=message_id
        )

    def send_report(self, report: AggregatedReport, csv_text: str, filename: str) -> DeliveryResult:
        """Send the daily report with the CSV attached."""
        attachment = {
            "content": base64.b64encode(csv_text.encode("utf-8")).decode("ascii"),
            "name": filename,
        }
        payload = self.build_payload(
            to=self.settings.report_recipients,
            subject=self.settings.report_subject,
            html=self.formatter.format_report_body(report),
            attachments=[attachment],
        )
        return self.send(payload)

    def send_paused_reminder(self, owner: str, feeds: List[FeedDescriptor]) -> DeliveryResult:
        """Send one owner the list of their paused feeds."""
        payload = self.build_payload(
            to=[owner, *self.settings.reminder_recipients],
            subject=self.settings.reminder_subject,
            html=self.formatter.format_paused_reminder(feeds),
            bcc=self.settings.reminder_bcc,
        )
        return self.send(payload)
