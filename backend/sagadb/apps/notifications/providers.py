from __future__ import annotations

from email.message import EmailMessage
import os
import smtplib
from typing import Optional, Tuple


class EmailProvider:
    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        raise NotImplementedError


class NoopProvider(EmailProvider):
    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        return None


class SmtpProvider(EmailProvider):
    """Plain-text delivery through an SMTP relay."""

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "noreply@saga.local",
        starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.starttls = starttls
        self.timeout = timeout

    def _build_message(self, *, recipient: str, subject: str, context: dict, correlation_id: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        if correlation_id:
            message["X-Correlation-ID"] = correlation_id
        body = context.get("message") or subject
        link = context.get("link")
        if link:
            body = f"{body}\n\n{link}"
        message.set_content(body)
        return message

    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        message = self._build_message(
            recipient=recipient,
            subject=subject,
            context=context,
            correlation_id=correlation_id,
        )
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as client:
            if self.starttls:
                client.starttls()
            if self.username:
                client.login(self.username, self.password or "")
            client.send_message(message)


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def get_email_provider() -> Tuple[EmailProvider, bool]:
    provider_name = (
        os.getenv("NOTIFICATIONS_EMAIL_PROVIDER")
        or os.getenv("EMAIL_PROVIDER")
        or ""
    ).strip().lower()
    if not provider_name or provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name == "smtp":
        host = os.getenv("SMTP_HOST", "").strip()
        if not host:
            return NoopProvider(), False
        return (
            SmtpProvider(
                host=host,
                port=int(os.getenv("SMTP_PORT", "587")),
                username=os.getenv("SMTP_USER") or None,
                password=os.getenv("SMTP_PASSWORD") or None,
                sender=os.getenv("SMTP_FROM", "noreply@saga.local"),
                starttls=_env_flag("SMTP_STARTTLS"),
            ),
            True,
        )
    raise ValueError(f"Unsupported email provider: {provider_name}")
