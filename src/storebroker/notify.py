"""
Best-effort email notifications through Resend.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import resend

from .config import StoreBrokerSettings

logger = logging.getLogger(__name__)


class MailNotifier:
    """
    Sends plain-text mail through the Resend API.

    Sending is retried a fixed number of times with a fixed delay. Failures are
    logged and never raised: a missed notification must not interrupt the
    operation that triggered it.
    """

    def __init__(self, settings: Optional[StoreBrokerSettings] = None, sleep=time.sleep):
        self.settings = settings or StoreBrokerSettings()
        self._sleep = sleep
        if self.enabled:
            resend.api_key = self.settings.resend_api_key
            logger.info(f"MailNotifier initialised with from={self.settings.mail_from}")

    @property
    def enabled(self) -> bool:
        return bool(self.settings.resend_api_key)

    def _send_once(self, subject: str, body: str, recipients: List[str]) -> Dict[str, Any]:
        params: resend.Emails.SendParams = {
            "from": self.settings.mail_from,
            "to": recipients,
            "subject": subject,
            "text": body,
        }
        return resend.Emails.send(params)

    def send_mail(self, subject: str, body: str, recipients: List[str]) -> bool:
        """
        Send a message to every recipient.

        Returns:
            True if Resend accepted the message
        """
        if not recipients:
            return False
        if not self.enabled:
            logger.warning(f"send_mail: No Resend API key configured, not sending '{subject}'")
            return False

        attempts = self.settings.mail_retry_count
        for attempt in range(1, attempts + 1):
            try:
                response = self._send_once(subject, body, recipients)
                logger.info(f"send_mail: Sent '{subject}' to {recipients}, response={response}")
                return True
            except Exception as e:
                logger.warning(f"send_mail: Attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    self._sleep(self.settings.mail_retry_delay_seconds)

        logger.error(f"send_mail: Giving up on '{subject}' after {attempts} attempts")
        return False
