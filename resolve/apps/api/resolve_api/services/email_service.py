"""Transactional email via AWS SES.

Email is best-effort everywhere: when SES_FROM_EMAIL is unset the message is
logged and skipped, and send failures are logged and reported as False.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from resolve_api.config import env

logger = logging.getLogger(__name__)


class EmailService:
    """SES-backed sender for applicant and customer notifications."""

    def __init__(self, from_email: Optional[str] = None, region: Optional[str] = None):
        """Initialize SES client.

        Args:
            from_email: Verified sender (default from env: SES_FROM_EMAIL)
            region: AWS region (default from env: AWS_REGION)
        """
        self.from_email = from_email or env.get_ses_from_email()
        self.region = region or env.get_aws_region(require_in_prod=False)
        self.client = None

        if self.from_email:
            config = Config(
                region_name=self.region,
                retries={"max_attempts": 3, "mode": "standard"},
                connect_timeout=5,
                read_timeout=15,
            )
            self.client = boto3.client("ses", config=config)
            logger.info(f"EmailService initialized: region={self.region}")
        else:
            logger.warning("EmailService disabled: SES_FROM_EMAIL not set")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def send(self, to: str, subject: str, html: str, text: str, template: str) -> bool:
        """Send one email.

        Returns:
            True if SES accepted the message, False if skipped or failed
        """
        if not self.enabled:
            logger.info(
                "email.skipped",
                extra={"event": "email.skipped", "template": template, "reason": "not_configured"},
            )
            return False

        try:
            response = self.client.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": html, "Charset": "UTF-8"},
                        "Text": {"Data": text, "Charset": "UTF-8"},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "email.failed",
                extra={"event": "email.failed", "template": template, "error_type": type(e).__name__},
            )
            return False

        logger.info(
            "email.sent",
            extra={"event": "email.sent", "template": template, "message_id": response.get("MessageId")},
        )
        return True

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def send_welcome_email(self, to: str, full_name: str, application_id: int) -> bool:
        subject = "Application Received - Project Resolve AI"
        text = (
            f"Hi {full_name},\n\n"
            f"Thanks for submitting your application (reference #{application_id}). "
            "Our team is reviewing the details of your payment dispute and will be in "
            "touch within 1-2 business days with next steps.\n\n"
            "The Resolve team"
        )
        html = (
            f"<h2>Thanks, {full_name}</h2>"
            f"<p>We've received your application (reference <strong>#{application_id}</strong>).</p>"
            "<p>Our team is reviewing the details of your payment dispute and will be in "
            "touch within 1-2 business days with next steps.</p>"
            "<p>The Resolve team</p>"
        )
        return self.send(to, subject, html, text, template="welcome")

    def send_approval_email(self, to: str, full_name: str, application_id: int) -> bool:
        link = f"{env.get_app_base_url()}/application/{application_id}/complete"
        subject = "Your Resolve application has been approved"
        text = (
            f"Hi {full_name},\n\n"
            "Good news: your application has been approved. Complete your payment and "
            f"detailed intake here: {link}\n\n"
            "The Resolve team"
        )
        html = (
            f"<h2>Good news, {full_name}</h2>"
            "<p>Your application has been approved. Complete your payment and detailed intake "
            "to receive your strategy pack.</p>"
            f'<p><a href="{link}">Continue your application</a></p>'
            "<p>The Resolve team</p>"
        )
        return self.send(to, subject, html, text, template="approval")

    def send_rejection_email(self, to: str, full_name: str) -> bool:
        subject = "Update on your Resolve application"
        text = (
            f"Hi {full_name},\n\n"
            "Thank you for applying. After reviewing your details we're unable to take on "
            "this matter. We recommend contacting your state's building authority or a "
            "construction lawyer for further advice.\n\n"
            "The Resolve team"
        )
        html = (
            f"<h2>Hi {full_name}</h2>"
            "<p>Thank you for applying. After reviewing your details we're unable to take on "
            "this matter.</p>"
            "<p>We recommend contacting your state's building authority or a construction "
            "lawyer for further advice.</p>"
            "<p>The Resolve team</p>"
        )
        return self.send(to, subject, html, text, template="rejection")

    def send_document_ready_email(self, to: str, case_title: str, case_id: int) -> bool:
        link = f"{env.get_app_base_url()}/cases/{case_id}"
        subject = "Your Resolve strategy pack is ready"
        text = (
            f"Your strategy pack for \"{case_title}\" is ready to download: {link}\n\n"
            "The Resolve team"
        )
        html = (
            "<h2>Your strategy pack is ready</h2>"
            f"<p>Your strategy pack for <strong>{case_title}</strong> is ready.</p>"
            f'<p><a href="{link}">View your case</a></p>'
        )
        return self.send(to, subject, html, text, template="document_ready")

    def send_admin_new_application_email(self, application_id: int, trade: str, state: str) -> bool:
        admin_email = env.get_admin_email()
        if not admin_email:
            return False
        subject = f"New application #{application_id}"
        text = f"New {trade} application from {state.upper()} (#{application_id})."
        html = f"<p>New <strong>{trade}</strong> application from {state.upper()} (#{application_id}).</p>"
        return self.send(admin_email, subject, html, text, template="admin_new_application")


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get global EmailService instance (singleton)."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
