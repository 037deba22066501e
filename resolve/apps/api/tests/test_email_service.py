"""Tests for the SES email service (boto3 client mocked)."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from resolve_api.services.email_service import EmailService


@pytest.fixture
def ses_client():
    client = MagicMock()
    client.send_email.return_value = {"MessageId": "msg-1"}
    with patch("resolve_api.services.email_service.boto3.client", return_value=client) as factory:
        factory.client = client
        yield client


def test_unconfigured_service_skips_sending():
    service = EmailService()

    assert service.enabled is False
    assert service.send_welcome_email("jo@example.com", "Jo", 1) is False


def test_welcome_email_is_sent_from_configured_sender(ses_client):
    service = EmailService(from_email="hello@resolve.au", region="ap-southeast-2")

    assert service.send_welcome_email("jo@example.com", "Jo Tradie", 42) is True

    kwargs = ses_client.send_email.call_args.kwargs
    assert kwargs["Source"] == "hello@resolve.au"
    assert kwargs["Destination"] == {"ToAddresses": ["jo@example.com"]}
    assert "#42" in kwargs["Message"]["Body"]["Text"]["Data"]


def test_approval_email_links_to_application(ses_client, monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://app.resolve.au/")
    service = EmailService(from_email="hello@resolve.au")

    service.send_approval_email("jo@example.com", "Jo", 7)

    html = ses_client.send_email.call_args.kwargs["Message"]["Body"]["Html"]["Data"]
    assert "https://app.resolve.au/application/7/complete" in html


def test_ses_error_returns_false(ses_client):
    ses_client.send_email.side_effect = ClientError(
        {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
        "SendEmail",
    )
    service = EmailService(from_email="hello@resolve.au")

    assert service.send_rejection_email("jo@example.com", "Jo") is False


def test_admin_alert_requires_admin_email(ses_client, monkeypatch):
    service = EmailService(from_email="hello@resolve.au")

    assert service.send_admin_new_application_email(3, "plumber", "nsw") is False
    ses_client.send_email.assert_not_called()

    monkeypatch.setenv("ADMIN_EMAIL", "ops@resolve.au")
    assert service.send_admin_new_application_email(3, "plumber", "nsw") is True
    assert ses_client.send_email.call_args.kwargs["Destination"] == {"ToAddresses": ["ops@resolve.au"]}
