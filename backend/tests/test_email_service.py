# backend/tests/test_email_service.py
from __future__ import annotations

from datetime import datetime

from oran_payments.services.email_service import EmailService, SmtpConfig
from oran_payments.services.trip_service import follow_up_time


class CapturingEmail(EmailService):
    def __init__(self):
        super().__init__(SmtpConfig(host=None, port=587, user=None, password=None, from_address="test@oran.local"))
        self.sent: list[dict] = []

    def send(self, *, to, subject, html_body):
        self.sent.append({"to": to, "subject": subject, "html": html_body})
        return True


def test_visit_email_shows_lagos_time():
    scheduled = follow_up_time(datetime(2026, 10, 18, 12, 0))
    assert scheduled == datetime(2026, 10, 21, 9, 0)

    mailer = CapturingEmail()
    assert mailer.send_visit_scheduled_email(
        to="ada@test.local",
        name="Ada",
        project_name="Test duplex",
        site_address="1 Test Road, Lagos",
        scheduled_for=scheduled,
        dashboard_url="http://localhost:3000/dashboard/projects/1",
    )

    (msg,) = mailer.sent
    assert msg["subject"] == "ORAN operations schedule created for your project"
    assert "Wed, 21 Oct 2026 10:00 AM" in msg["html"]
    assert "09:00 AM" not in msg["html"]
