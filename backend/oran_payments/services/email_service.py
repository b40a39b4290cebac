# backend/oran_payments/services/email_service.py
from __future__ import annotations

import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import settings

log = logging.getLogger("oran.email")


@dataclass(frozen=True)
class SmtpConfig:
    host: Optional[str]
    port: int
    user: Optional[str]
    password: Optional[str]
    from_address: str

    @classmethod
    def from_settings(cls) -> "SmtpConfig":
        return cls(
            host=settings.smtp_host,
            port=int(settings.smtp_port),
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_address=settings.smtp_from,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.user and self.password)


def _base_template(*, title: str, intro: str, body_lines: list[str], action_label: str, action_url: str) -> str:
    lines = "".join(f"<p>{line}</p>" for line in body_lines)
    return (
        f"<h2>{html.escape(title)}</h2>"
        f"<p>{intro}</p>"
        f"{lines}"
        f'<p><a href="{html.escape(action_url, quote=True)}">{html.escape(action_label)}</a></p>'
    )


class EmailService:
    """
    SMTP delivery. Without SMTP settings messages are logged instead of sent.
    send() reports delivery as a bool so callers can record the outcome.
    """

    def __init__(self, cfg: Optional[SmtpConfig] = None) -> None:
        self.cfg = cfg or SmtpConfig.from_settings()
        if not self.cfg.configured:
            log.warning("SMTP not fully configured; emails will be logged instead of sent.")

    def frontend_base_url(self) -> str:
        return settings.frontend_base_url.rstrip("/")

    def send(self, *, to: str, subject: str, html_body: str) -> bool:
        if not to:
            return False

        if not self.cfg.configured:
            log.info("mock email (no SMTP configured): to=%s subject=%s", to, subject)
            return True

        message = EmailMessage()
        message["From"] = self.cfg.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable email client.")
        message.add_alternative(html_body, subtype="html")

        try:
            if self.cfg.port == 465:
                with smtplib.SMTP_SSL(self.cfg.host, self.cfg.port, timeout=10, context=ssl.create_default_context()) as smtp:
                    smtp.login(self.cfg.user, self.cfg.password)
                    smtp.send_message(message)
            else:
                with smtplib.SMTP(self.cfg.host, self.cfg.port, timeout=10) as smtp:
                    smtp.ehlo()
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
                    smtp.login(self.cfg.user, self.cfg.password)
                    smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            log.warning("email delivery failed to=%s subject=%s: %s", to, subject, exc)
            return False
        return True

    def send_visit_scheduled_email(
        self,
        *,
        to: str,
        name: Optional[str],
        project_name: str,
        site_address: Optional[str],
        scheduled_for: datetime,
        dashboard_url: str,
    ) -> bool:
        greeting = html.escape((name or "").strip() or "there")
        # stored naive UTC; customers read site-local time
        local = scheduled_for.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(settings.visit_timezone))
        when = local.strftime("%a, %d %b %Y %I:%M %p")

        body = _base_template(
            title="Your ORAN installation is now in operations",
            intro=f"Hi {greeting}, your payment has been received and your project is moving into the operations phase.",
            body_lines=[
                f"Project: <strong>{html.escape(project_name)}</strong>",
                f"Site address: {html.escape(site_address or 'not provided')}",
                "We have created a tentative site visit in your operations schedule.",
                f"Estimated next technician visit: <strong>{when}</strong>. "
                "Our team will review this within the next 24 hours and update you if the date or time needs to change.",
                "You can always see the latest visit plan and work progress from your ORAN dashboard.",
            ],
            action_label="View operations timeline",
            action_url=dashboard_url,
        )
        return self.send(to=to, subject="ORAN operations schedule created for your project", html_body=body)

    def send_admin_alert(self, *, to: str, title: str, message: str) -> bool:
        body = "<p>" + html.escape(message).replace("\n", "<br />") + "</p>"
        return self.send(to=to, subject=title, html_body=body)
