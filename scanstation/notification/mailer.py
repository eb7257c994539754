"""Mailer — async SMTP email sending via asyncio.to_thread."""

from __future__ import annotations

import asyncio
import os
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path


class Mailer:
    """Thin async wrapper around smtplib SMTP + STARTTLS.

    Login is skipped when no user is configured (local relays on CI hosts
    usually accept unauthenticated mail).
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        from_addr: str | None = None,
        starttls: bool | None = None,
    ) -> None:
        self.host = host or os.getenv("SCANSTATION_SMTP_HOST", "localhost")
        self.port = port or int(os.getenv("SCANSTATION_SMTP_PORT", "25"))
        self.user = user or os.getenv("SCANSTATION_SMTP_USER", "")
        self.password = password or os.getenv("SCANSTATION_SMTP_PASSWORD", "")
        self.from_addr = (
            from_addr
            or os.getenv("SCANSTATION_SMTP_FROM", "")
            or self.user
            or "scanstation@localhost"
        )
        if starttls is None:
            starttls = os.getenv("SCANSTATION_SMTP_STARTTLS", "") in ("1", "true", "yes")
        self.starttls = starttls

    async def send(
        self,
        to: list[str],
        subject: str,
        body: str,
        subtype: str = "html",
        attachments: list[Path] | None = None,
    ) -> None:
        """Send an email via SMTP in a background thread."""
        await asyncio.to_thread(self._send_sync, to, subject, body, subtype, attachments or [])

    def _send_sync(
        self,
        to: list[str],
        subject: str,
        body: str,
        subtype: str,
        attachments: list[Path],
    ) -> None:
        msg = MIMEMultipart("mixed" if attachments else "alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_addr
        msg["To"] = ", ".join(to)
        msg.attach(MIMEText(body, subtype))
        for path in attachments:
            part = MIMEApplication(path.read_bytes(), Name=path.name)
            part["Content-Disposition"] = f'attachment; filename="{path.name}"'
            msg.attach(part)

        with smtplib.SMTP(self.host, self.port) as server:
            if self.starttls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.sendmail(self.from_addr, to, msg.as_string())
