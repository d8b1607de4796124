"""
Transactional email through the Resend HTTP API, with an audit trail.

Every stage of a delivery attempt is appended to the email log as its own
record (``requested`` then one of ``skipped``, ``sent``, ``failed`` or
``error``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from runway.db import Storage
from runway.errors import EmailDeliveryError, StorageError, UpstreamServiceError
from runway.records import utcnow

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT = 30  # seconds

GUIDE_SOURCE = "mobile_landing"
GUIDE_SUBJECT = "Your Runway AI Setup Guide is Here!"
GUIDE_HTML = """
<h1>Welcome to Runway AI!</h1>
<p>Thanks for your interest! We're excited to help you prepare for your next pageant.</p>
<p>For the best experience, please use Runway AI on a <strong>laptop or desktop computer</strong>.</p>
<p><strong>Here's a quick guide to get started:</strong></p>
<ul>
  <li>Ensure you have a stable internet connection.</li>
  <li>Use a modern browser like Chrome or Firefox.</li>
  <li>Allow camera access when prompted.</li>
  <li>Explore runway practice, question practice and your pageant schedule.</li>
</ul>
<p>If you have any questions, don't hesitate to reach out to our support team.</p>
<p>The Runway AI Team</p>
"""


class EmailClient(Protocol):
    """Defines the operation the API needs from an email provider."""

    def send(self, to: str, subject: str, html: str) -> dict:
        ...


@dataclass
class ResendEmailClient:
    api_key: str
    sender: str

    def send(self, to: str, subject: str, html: str) -> dict:
        try:
            response = requests.post(
                RESEND_API_URL,
                json={
                    "from": self.sender,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise UpstreamServiceError(f"Email provider unreachable: {e}") from e
        if not response.ok:
            raise EmailDeliveryError(_error_message(response))
        return response.json()


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    return body.get("message") or f"HTTP {response.status_code}"


def _audit(
    storage: Storage,
    email: str,
    status: str,
    source: str,
    response_data: Optional[dict],
) -> None:
    try:
        storage.save_email_record(
            email=email, status=status, source=source, response_data=response_data
        )
    except StorageError:
        logger.exception("Failed to save %s email record for %s", status, email)


def send_tracked_email(
    storage: Storage,
    client: Optional[EmailClient],
    *,
    email: str,
    subject: str,
    html: str,
    source: str,
    downgrade_errors: bool = False,
) -> str:
    """
    Send one email and log each stage of the attempt.

    Returns the final status. Unless ``downgrade_errors`` is set, a missing
    provider or a failed delivery is raised after it has been logged.
    """
    _audit(storage, email, "requested", source, {"timestamp": utcnow().isoformat()})

    if client is None:
        logger.info("Email sending skipped - provider not configured")
        _audit(
            storage, email, "skipped", source, {"reason": "Email provider not configured"}
        )
        if not downgrade_errors:
            raise UpstreamServiceError("Email provider not configured")
        return "skipped"

    try:
        data = client.send(to=email, subject=subject, html=html)
    except EmailDeliveryError as e:
        logger.error("Email provider rejected message to %s: %s", email, e)
        _audit(storage, email, "failed", source, {"error": str(e)})
        if not downgrade_errors:
            raise
        return "failed"
    except Exception as e:
        logger.exception("Error sending email to %s", email)
        _audit(storage, email, "error", source, {"error": str(e)})
        if not downgrade_errors:
            raise
        return "error"

    _audit(storage, email, "sent", source, data)
    return "sent"
