"""
Submission accessor: get, clone, replace, remove and commit submissions for
applications, flights and in-app products.
"""

import logging
from typing import Optional

from .client import StoreBrokerAPI
from .exceptions import SubmissionStateError
from .models import (
    Submission,
    SubmissionStatus,
    SubmissionStatusResponse,
    SubmissionTarget,
    parse_model,
)

logger = logging.getLogger(__name__)


class SubmissionAccessor:
    """Thin wrappers over the submission endpoints of one API client."""

    def __init__(self, api: StoreBrokerAPI):
        self.api = api

    def get(self, target: SubmissionTarget, submission_id: str) -> Submission:
        operation = "Get-Submission"
        ids = target.identifiers(submission_id)
        payload = self.api.invoke(
            target.submission_path(submission_id), operation=operation, identifiers=ids
        )
        return parse_model(Submission, payload, operation=operation, identifiers=ids)

    def get_status(self, target: SubmissionTarget, submission_id: str) -> SubmissionStatusResponse:
        operation = "Get-SubmissionStatus"
        ids = target.identifiers(submission_id)
        payload = self.api.invoke(
            f"{target.submission_path(submission_id)}/status",
            operation=operation,
            identifiers=ids,
        )
        return parse_model(
            SubmissionStatusResponse, payload, operation=operation, identifiers=ids
        )

    def new(self, target: SubmissionTarget) -> Submission:
        """Clone the currently published submission into a new PendingCommit one."""
        operation = "New-Submission"
        ids = target.identifiers()
        logger.info(f"new: Cloning the current submission of {target}")
        payload = self.api.invoke(
            target.submissions_path, method="POST", operation=operation, identifiers=ids
        )
        submission = parse_model(Submission, payload, operation=operation, identifiers=ids)
        logger.info(f"new: Created pending submission {submission.id} for {target}")
        return submission

    def set(self, target: SubmissionTarget, submission: Submission) -> Submission:
        """Replace the remote submission wholesale with ``submission``."""
        operation = "Set-Submission"
        ids = target.identifiers(submission.id)
        logger.info(f"set: Replacing content of submission {submission.id} for {target}")
        payload = self.api.invoke(
            target.submission_path(submission.id),
            method="PUT",
            body=submission.to_payload(),
            operation=operation,
            identifiers=ids,
        )
        return parse_model(Submission, payload, operation=operation, identifiers=ids)

    def remove(self, target: SubmissionTarget, submission_id: str) -> None:
        operation = "Remove-Submission"
        logger.info(f"remove: Deleting submission {submission_id} for {target}")
        self.api.invoke(
            target.submission_path(submission_id),
            method="DELETE",
            operation=operation,
            identifiers=target.identifiers(submission_id),
        )

    def commit(self, target: SubmissionTarget, submission_id: str) -> SubmissionStatus:
        """Start certification/publication of a PendingCommit submission."""
        operation = "Commit-Submission"
        ids = target.identifiers(submission_id)
        logger.info(f"commit: Committing submission {submission_id} for {target}")
        payload = self.api.invoke(
            f"{target.submission_path(submission_id)}/commit",
            method="POST",
            operation=operation,
            identifiers=ids,
        )
        if not payload or "status" not in payload:
            return SubmissionStatus.COMMIT_STARTED
        return parse_model(
            SubmissionStatusResponse, payload, operation=operation, identifiers=ids
        ).status

    def get_pending_submission_id(self, target: SubmissionTarget) -> Optional[str]:
        """Id of the product's PendingCommit submission, if one exists."""
        product = self.api.invoke(
            target.product_path,
            operation="Get-Product",
            identifiers=target.identifiers(),
        ) or {}
        pending = product.get(target.pending_field) or {}
        return pending.get("id")

    def ensure_no_pending(self, target: SubmissionTarget, force: bool) -> Optional[str]:
        """
        Make sure the product has no pending submission before a clone.

        The service allows one pending submission per product/flight. An
        existing one is deleted when ``force`` is set; otherwise this raises
        before anything is changed remotely.

        Returns:
            The id of the submission that was deleted, if any

        Raises:
            SubmissionStateError: If a pending submission exists and force is not set
        """
        pending_id = self.get_pending_submission_id(target)
        if not pending_id:
            return None

        if not force:
            raise SubmissionStateError(
                "A pending submission already exists. Commit or remove it, "
                "resume it by passing its submission id, or use force to delete it",
                operation="New-Submission",
                identifiers=target.identifiers(pending_id),
            )

        logger.warning(f"ensure_no_pending: Force set, deleting pending submission {pending_id}")
        self.remove(target, pending_id)
        return pending_id
