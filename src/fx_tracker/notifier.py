"""Notification sinks for appreciation alerts.

Email goes out through Gmail SMTP using stdlib smtplib + email.mime.
Credentials come from environment variables:
  GMAIL_ADDRESS       — sender Gmail address
  GMAIL_APP_PASSWORD  — Gmail App Password (not regular password)
"""

from __future__ import annotations

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

from fx_tracker.config import DEFAULT_CONFIG, NotificationConfig

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(self, recipient: str, subject: str, body: str) -> None:
        ...


def build_alert_email(
    from_addr: str,
    to_addr: str,
    subject: str,
    body: str,
) -> MIMEMultipart:
    """Build a plain-text alert email."""
    msg = MIMEMultipart()
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain", "utf-8"))
    return msg


def send_alert_email(
    to_addr: str,
    subject: str,
    body: str,
    gmail_address: Optional[str] = None,
    gmail_app_password: Optional[str] = None,
    config: NotificationConfig = DEFAULT_CONFIG.notification,
) -> None:
    """Send one alert email via Gmail SMTP.

    Raises:
        ValueError: If credentials are missing.
        smtplib.SMTPException: If email delivery fails.
    """
    from_addr = gmail_address or os.environ.get("GMAIL_ADDRESS", "")
    password = gmail_app_password or os.environ.get("GMAIL_APP_PASSWORD", "")

    if not from_addr:
        raise ValueError("GMAIL_ADDRESS not set — cannot send email")
    if not password:
        raise ValueError("GMAIL_APP_PASSWORD not set — cannot send email")

    msg = build_alert_email(from_addr, to_addr, subject, body)

    logger.info(
        "Sending alert email to %s via %s:%d", to_addr, config.smtp_host, config.smtp_port,
    )
    with smtplib.SMTP(
        config.smtp_host, config.smtp_port, timeout=config.smtp_timeout_seconds,
    ) as server:
        server.starttls()
        server.login(from_addr, password)
        server.send_message(msg)

    logger.info("Email sent successfully")


class EmailNotifier:
    def __init__(
        self,
        gmail_address: str,
        gmail_app_password: str,
        config: NotificationConfig = DEFAULT_CONFIG.notification,
    ) -> None:
        self._address = gmail_address
        self._password = gmail_app_password
        self._config = config

    def notify(self, recipient: str, subject: str, body: str) -> None:
        send_alert_email(
            recipient, subject, body,
            gmail_address=self._address,
            gmail_app_password=self._password,
            config=self._config,
        )


class LogNotifier:
    """Stands in for email when SMTP is not configured."""

    def notify(self, recipient: str, subject: str, body: str) -> None:
        logger.info(
            "Alert email sent! SGD appreciation detected — notification for %s: %s",
            recipient, subject,
        )
