"""
Tests for the HTML bodies built by workflowhr/services/email_service.py.
"""
from datetime import date

import pytest

from workflowhr.services.email_service import EmailService


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def capture(to_email, subject, body, is_html=True):
        sent.append({"to": to_email, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(EmailService, "send_email", staticmethod(capture))
    return sent


def test_unconfigured_smtp_reports_not_sent():
    assert EmailService.send_email("someone@example.com", "Hello", "<p>Hi</p>") is False


def test_leave_remarks_are_escaped(outbox):
    EmailService.send_leave_status_email(
        "asha@example.com", "Asha <b>Rao</b>", "Casual Leave", date(2025, 3, 3), date(2025, 3, 4),
        "rejected", '<img src=x onerror="alert(1)">',
    )

    body = outbox[0]["body"]
    assert "<img" not in body
    assert "&lt;img src=x onerror=&#34;alert(1)&#34;&gt;" in body
    assert "Asha &lt;b&gt;Rao&lt;/b&gt;" in body
    assert outbox[0]["subject"] == "Leave request Rejected"


def test_welcome_email_escapes_names(outbox):
    EmailService.send_welcome_email("new@example.com", "Tom & Jerry", "Acme <Labs>", "EMP123", "Temp1234!")

    assert outbox[0]["subject"] == "Welcome to Acme <Labs>"
    body = outbox[0]["body"]
    assert "Tom &amp; Jerry" in body
    assert "Acme &lt;Labs&gt;" in body
    assert "Temp1234!" in body
