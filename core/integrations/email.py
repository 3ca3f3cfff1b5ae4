"""Email integration for decision notifications."""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Protocol
import logging

from core.config import settings
from core.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Anything that can tell an applicant about their decision.

    Both methods block and raise NotificationDeliveryError on failure.
    """

    def send_acceptance(self, name: str, email: str) -> None: ...

    def send_rejection(self, name: str, email: str) -> None: ...


class EmailService:
    """Email service for sending decision emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        event_name: Optional[str] = None,
    ):
        """
        Initialize email service. Unset arguments fall back to settings.

        Args:
            smtp_host: SMTP server host
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            from_email: Default sender email
            from_name: Default sender name
            event_name: Event named in decision emails
        """
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.smtp_from_email
        self.from_name = from_name or settings.smtp_from_name
        self.event_name = event_name or settings.event_name

    def send_email(self, to_email: str, subject: str, body: str, html: bool = False) -> None:
        """
        Send a single email.

        Raises:
            NotificationDeliveryError: If the SMTP exchange fails
        """
        msg = MIMEMultipart()
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'html' if html else 'plain'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_email, to_addrs=[to_email])
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")
            raise NotificationDeliveryError(to_email, str(e)) from e

        logger.info(f"Email sent to {to_email}")

    def send_acceptance(self, name: str, email: str) -> None:
        template = EmailTemplates.acceptance(name, self.event_name)
        self.send_email(email, template['subject'], template['body'], html=template['html'])

    def send_rejection(self, name: str, email: str) -> None:
        template = EmailTemplates.rejection(name, self.event_name)
        self.send_email(email, template['subject'], template['body'], html=template['html'])


class EmailTemplates:
    """Decision email templates."""

    @staticmethod
    def acceptance(first_name: str, event_name: str) -> dict:
        return {
            'subject': f"You're in! Welcome to {event_name}",
            'body': f"""
                <html>
                <body>
                    <h2>Congratulations {first_name}!</h2>
                    <p>We're thrilled to let you know your application to {event_name} has been accepted.</p>
                    <p>Watch your inbox for next steps.</p>
                    <p>Best regards,<br>The Organizing Team</p>
                </body>
                </html>
            """,
            'html': True
        }

    @staticmethod
    def rejection(first_name: str, event_name: str) -> dict:
        return {
            'subject': f"Your {event_name} application",
            'body': f"""
                <html>
                <body>
                    <h2>Hi {first_name},</h2>
                    <p>Thank you for applying to {event_name}.</p>
                    <p>Unfortunately we are unable to offer you a spot this time.</p>
                    <p>Best regards,<br>The Organizing Team</p>
                </body>
                </html>
            """,
            'html': True
        }


# Global email service instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create global email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
