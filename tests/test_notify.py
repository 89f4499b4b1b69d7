"""
Tests for mail notifications.
"""

from unittest.mock import Mock, patch

import pydantic
import pytest

from storebroker.config import StoreBrokerSettings
from storebroker.notify import MailNotifier


@pytest.fixture
def mail_settings():
    return StoreBrokerSettings(
        resend_api_key="re_test_key",
        mail_from="StoreBroker <storebroker@example.com>",
        mail_retry_count=3,
        mail_retry_delay_seconds=0,
    )


class TestMailNotifier:
    """send_mail never raises."""

    @patch("storebroker.notify.resend")
    def test_sends_message(self, mock_resend, mail_settings):
        mock_resend.Emails.send.return_value = {"id": "email-1"}

        sent = MailNotifier(mail_settings, sleep=Mock()).send_mail(
            "Subject", "Body", ["a@example.com", "b@example.com"]
        )

        assert sent is True
        assert mock_resend.api_key == "re_test_key"
        params = mock_resend.Emails.send.call_args.args[0]
        assert params == {
            "from": "StoreBroker <storebroker@example.com>",
            "to": ["a@example.com", "b@example.com"],
            "subject": "Subject",
            "text": "Body",
        }

    @patch("storebroker.notify.resend")
    def test_retries_then_gives_up(self, mock_resend, mail_settings):
        mock_resend.Emails.send.side_effect = ConnectionError("unreachable")
        sleep = Mock()

        sent = MailNotifier(mail_settings, sleep=sleep).send_mail("S", "B", ["a@example.com"])

        assert sent is False
        assert mock_resend.Emails.send.call_count == 3
        assert sleep.call_count == 2

    @patch("storebroker.notify.resend")
    def test_succeeds_after_transient_failure(self, mock_resend, mail_settings):
        mock_resend.Emails.send.side_effect = [RuntimeError("rate limited"), {"id": "email-2"}]

        sent = MailNotifier(mail_settings, sleep=Mock()).send_mail("S", "B", ["a@example.com"])

        assert sent is True
        assert mock_resend.Emails.send.call_count == 2

    @patch("storebroker.notify.resend")
    def test_disabled_without_api_key(self, mock_resend):
        notifier = MailNotifier(StoreBrokerSettings(resend_api_key=None))

        assert notifier.enabled is False
        assert notifier.send_mail("S", "B", ["a@example.com"]) is False
        mock_resend.Emails.send.assert_not_called()

    @patch("storebroker.notify.resend")
    def test_no_recipients(self, mock_resend, mail_settings):
        assert MailNotifier(mail_settings).send_mail("S", "B", []) is False
        mock_resend.Emails.send.assert_not_called()

    def test_sender_address_required_when_enabled(self):
        with pytest.raises(pydantic.ValidationError, match="mail_from is required"):
            StoreBrokerSettings(resend_api_key="re_test_key", mail_from=None)
