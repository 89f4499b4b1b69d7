"""
Polling of a submission's status until it reaches a terminal state.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from .client import StoreBrokerAPI
from .config import StoreBrokerSettings
from .models import StatusDetails, SubmissionStatus, SubmissionTarget, TargetPublishMode
from .notify import MailNotifier
from .submissions import SubmissionAccessor
from .utils import truncate_string

logger = logging.getLogger(__name__)


@dataclass
class StatusChange:
    status: SubmissionStatus
    observed_at: datetime
    details: Optional[StatusDetails] = None


@dataclass
class MonitorResult:
    final_status: SubmissionStatus
    history: List[StatusChange] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.final_status.is_failure


def success_status_for(mode: Optional[TargetPublishMode]) -> SubmissionStatus:
    """
    Last status a submission reaches on its own for the given publish mode.

    Manual and SpecificDate submissions stop at PendingPublication until a
    person (or the calendar) releases them.
    """
    if mode in (TargetPublishMode.MANUAL, TargetPublishMode.SPECIFIC_DATE):
        return SubmissionStatus.PENDING_PUBLICATION
    return SubmissionStatus.PUBLISHED


def is_terminal(status: SubmissionStatus, mode: Optional[TargetPublishMode]) -> bool:
    if status.is_failure or status is SubmissionStatus.PUBLISHED:
        return True
    return status is success_status_for(mode)


class SubmissionMonitor:
    """
    Watches one submission in a blocking loop.

    Only status transitions are logged and mailed. A failed poll ends the
    session by raising; the transport's own retries are the only retries.
    Interrupting the process stops the watch without affecting the submission.
    """

    def __init__(
        self,
        api: StoreBrokerAPI,
        settings: Optional[StoreBrokerSettings] = None,
        notifier: Optional[MailNotifier] = None,
        submissions: Optional[SubmissionAccessor] = None,
        sleep=time.sleep,
    ):
        self.settings = settings or api.settings
        self.notifier = notifier or MailNotifier(self.settings)
        self.submissions = submissions or SubmissionAccessor(api)
        self._sleep = sleep

    def monitor(
        self,
        target: SubmissionTarget,
        submission_id: str,
        poll_interval_seconds: Optional[int] = None,
        notify_recipients: Optional[List[str]] = None,
    ) -> MonitorResult:
        """
        Poll until the submission fails or reaches its publish mode's final state.

        Args:
            target: Product the submission belongs to
            submission_id: Submission to watch
            poll_interval_seconds: Seconds between polls (settings default: 60)
            notify_recipients: Addresses mailed on every status change

        Returns:
            The final status and every status change observed
        """
        interval = poll_interval_seconds or self.settings.poll_interval_seconds
        recipients = notify_recipients or []

        submission = self.submissions.get(target, submission_id)
        mode = submission.target_publish_mode
        logger.info(
            f"monitor: Watching submission {submission_id} for {target} "
            f"(mode {mode}, every {interval}s, until {success_status_for(mode)})"
        )

        history: List[StatusChange] = []
        last_status: Optional[SubmissionStatus] = None
        while True:
            response = self.submissions.get_status(target, submission_id)
            status = response.status

            if status is not last_status:
                change = StatusChange(status, datetime.now(timezone.utc), response.status_details)
                history.append(change)
                logger.info(f"monitor: Submission {submission_id} for {target} is now {status}")
                if recipients:
                    self._notify(target, submission_id, change, recipients)
                last_status = status

            if is_terminal(status, mode):
                break
            self._sleep(interval)

        logger.info(f"monitor: Submission {submission_id} finished as {last_status}")
        return MonitorResult(final_status=last_status, history=history)

    def _notify(
        self,
        target: SubmissionTarget,
        submission_id: str,
        change: StatusChange,
        recipients: List[str],
    ) -> None:
        subject = f"Submission {submission_id} for {target} is now {change.status}"
        lines = [
            subject,
            f"Observed at {change.observed_at.isoformat()}",
        ]
        details = change.details
        if details:
            for label, entries in (("Error", details.errors), ("Warning", details.warnings)):
                for entry in entries:
                    text = f"{entry.get('code', '')}: {entry.get('details', '')}"
                    lines.append(f"{label} {truncate_string(text, 500)}")
            for report in details.certification_reports:
                lines.append(f"Certification report: {report.get('reportUrl', '')}")
        self.notifier.send_mail(subject, "\n".join(lines), recipients)
