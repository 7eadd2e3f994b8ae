# civic_portal/accounts/notifier.py

import logging
import smtplib
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)


class CredentialNotifier:
    """Delivers temporary credentials out of band, never through the HTTP response."""

    def __init__(self, smtp_server=None, smtp_port=587, smtp_user=None,
                 smtp_password=None, sender=None):
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender = sender

    @classmethod
    def from_config(cls, config):
        return cls(
            smtp_server=config.get('SMTP_SERVER'),
            smtp_port=config.get('SMTP_PORT', 587),
            smtp_user=config.get('SMTP_USER'),
            smtp_password=config.get('SMTP_PASSWORD'),
            sender=config.get('SMTP_SENDER'),
        )

    def can_deliver(self, account):
        return bool(self.smtp_server and account.email)

    def send_temporary_credential(self, account, temp_credential):
        """Return True when the credential was handed to a delivery channel."""
        if not self.can_deliver(account):
            logger.warning(f"No delivery channel for account {account.id}; temporary credential not sent")
            return False

        msg = MIMEText(
            f"Hello {account.full_name},\n\n"
            f"Your temporary voter portal password is: {temp_credential}\n"
            "Please log in and change it as soon as possible."
        )
        msg["Subject"] = "Your temporary voter portal password"
        msg["From"] = self.sender
        msg["To"] = account.email

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=10) as server:
                server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to deliver temporary credential to account {account.id}: {e}")
            return False
        logger.info(f"Temporary credential sent to account {account.id}")
        return True
