"""Tests for decision email delivery."""

import smtplib
import pytest
from unittest.mock import patch

from core.errors import NotificationDeliveryError
from core.integrations.email import EmailService, EmailTemplates


@pytest.fixture
def service():
    return EmailService(
        smtp_host="smtp.test",
        smtp_port=2525,
        smtp_user="mailer",
        smtp_password="pw",
        from_email="admissions@example.com",
        from_name="Admissions",
        event_name="HackNight",
    )


class TestEmailService:

    def test_send_acceptance(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            service.send_acceptance("Ada", "ada@example.com")

        smtp_cls.assert_called_once_with("smtp.test", 2525)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "pw")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "ada@example.com"
        assert "HackNight" in message["Subject"]

    def test_send_rejection(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            service.send_rejection("Alan", "alan@example.com")

        assert server.send_message.call_args.kwargs["to_addrs"] == ["alan@example.com"]

    def test_smtp_failure_raises_delivery_error(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})

            with pytest.raises(NotificationDeliveryError) as exc_info:
                service.send_acceptance("Ada", "ada@example.com")

        assert exc_info.value.recipient == "ada@example.com"

    def test_connection_failure_raises_delivery_error(self, service):
        with patch(
            "core.integrations.email.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ):
            with pytest.raises(NotificationDeliveryError):
                service.send_rejection("Alan", "alan@example.com")

    def test_defaults_from_settings(self):
        with patch("core.integrations.email.settings") as settings:
            settings.smtp_host = "mail.internal"
            settings.smtp_port = 25
            settings.smtp_user = None
            settings.smtp_password = None
            settings.smtp_from_email = "noreply@example.com"
            settings.smtp_from_name = "Team"
            settings.event_name = "Demo Day"
            service = EmailService()

        assert service.smtp_host == "mail.internal"
        assert service.event_name == "Demo Day"


class TestEmailTemplates:

    def test_acceptance_greets_by_first_name(self):
        template = EmailTemplates.acceptance("Ada", "HackNight")
        assert "Congratulations Ada!" in template["body"]
        assert template["html"] is True

    def test_rejection(self):
        template = EmailTemplates.rejection("Alan", "HackNight")
        assert "Hi Alan," in template["body"]
