"""Email clients: Postmark-style HTTP API and SMTP relay.

Every send either returns ``None`` or raises one of
:class:`~mailroom.core.errors.TransientDeliveryError` /
:class:`~mailroom.core.errors.PermanentDeliveryError`.  Only a rejection of
the recipient itself is permanent; anything that would fail for every
message (credentials, sender setup, payload, quota) is transient so queued
tasks survive until it is fixed.

Safety: recipient addresses are never logged.
"""
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import httpx

from mailroom.core.errors import PermanentDeliveryError, TransientDeliveryError
from mailroom.core.settings import Settings

logger = logging.getLogger(__name__)

# Postmark API error codes that reject the recipient: invalid address, inactive recipient
_RECIPIENT_ERROR_CODES = frozenset({300, 406})


class EmailClient(Protocol):
    def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        ...


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

def _error_code(response: httpx.Response) -> int | None:
    """Return Postmark's ``ErrorCode`` from an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    code = body.get("ErrorCode")
    return code if isinstance(code, int) else None


class HttpEmailClient:
    """Send through a REST email API (``POST {base_url}/email``)."""

    def __init__(
        self,
        base_url: str,
        sender: str,
        authorization_token: str,
        *,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self._authorization_token = authorization_token
        self._http = http_client or httpx.Client(timeout=timeout_s)

    def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        payload = {
            "From": self.sender,
            "To": recipient,
            "Subject": subject,
            "HtmlBody": html_content,
            "TextBody": text_content,
        }
        try:
            response = self._http.post(
                f"{self.base_url}/email",
                json=payload,
                headers={"X-Postmark-Server-Token": self._authorization_token},
            )
        except httpx.TimeoutException as exc:
            raise TransientDeliveryError(f"Email API timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientDeliveryError(f"Email API unreachable: {exc}") from exc

        status = response.status_code
        if status < 400:
            return
        error_code = _error_code(response) if status < 500 else None
        if error_code in _RECIPIENT_ERROR_CODES:
            raise PermanentDeliveryError(
                f"Email API rejected the recipient with HTTP {status} (error code {error_code})"
            )
        raise TransientDeliveryError(f"Email API returned HTTP {status}")

    def close(self) -> None:
        self._http.close()


# ---------------------------------------------------------------------------
# SMTP relay
# ---------------------------------------------------------------------------

class SmtpEmailClient:
    """Send through an SMTP relay as multipart/alternative (text + HTML)."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        *,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout_s: float = 10.0,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.username = username
        self._password = password
        self.use_tls = use_tls
        self.timeout_s = timeout_s

    def _build_message(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = recipient
        # Last part is the preferred rendering.
        msg.attach(MIMEText(text_content, "plain", "utf-8"))
        msg.attach(MIMEText(html_content, "html", "utf-8"))
        return msg

    def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        msg = self._build_message(recipient, subject, html_content, text_content)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout_s) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self._password or "")
                server.sendmail(self.sender, [recipient], msg.as_string())
        except smtplib.SMTPRecipientsRefused as exc:
            codes = sorted(code for code, _ in exc.recipients.values())
            if codes and all(code >= 500 for code in codes):
                raise PermanentDeliveryError(f"SMTP relay refused the recipient: {codes}") from exc
            raise TransientDeliveryError(f"SMTP relay deferred the recipient: {codes}") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise TransientDeliveryError(f"SMTP delivery failed: {exc}") from exc


def build_email_client(settings: Settings) -> EmailClient:
    """Return the transport selected by ``EMAIL_BACKEND``."""
    if settings.email_backend == "smtp":
        logger.info("Using SMTP email transport %s:%d", settings.smtp_host, settings.smtp_port)
        return SmtpEmailClient(
            settings.smtp_host,
            settings.smtp_port,
            sender=settings.email_sender,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout_s=settings.email_timeout_s,
        )
    logger.info("Using HTTP email transport %s", settings.email_base_url)
    return HttpEmailClient(
        settings.email_base_url,
        settings.email_sender,
        settings.email_authorization_token,
        timeout_s=settings.email_timeout_s,
    )
