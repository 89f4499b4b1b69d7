"""
Clone-patch-commit orchestration of a submission's lifecycle.

``update_submission`` runs strictly in order: validate, clone (or resume),
patch locally, replace the remote content, upload the package, commit. No
step starts before the previous one has returned, and nothing after the
validation step is retried here.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .client import StoreBrokerAPI
from .config import StoreBrokerSettings
from .exceptions import StoreBrokerError, SubmissionStateError, ValidationError
from .models import ProductKind, SubmissionStatus, SubmissionTarget
from .patch import PatchOptions, patch_submission, validate_patch_inputs
from .submissions import SubmissionAccessor
from .uploads import AssetUploadManager

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Outcome of update_submission; enough to finish any skipped step by hand."""

    submission_id: str
    upload_url: Optional[str]
    committed: bool = False


class SubmissionOrchestrator:
    """
    Drives a submission from clone to commit.

    Args:
        api: REST transport (its authenticator is used for the re-auth check)
        settings: Explicit configuration; defaults to the API client's settings
        uploader: Asset upload manager; built from settings when omitted
        submissions: Submission accessor; built from ``api`` when omitted
    """

    def __init__(
        self,
        api: StoreBrokerAPI,
        settings: Optional[StoreBrokerSettings] = None,
        uploader: Optional[AssetUploadManager] = None,
        submissions: Optional[SubmissionAccessor] = None,
    ):
        self.api = api
        self.settings = settings or api.settings
        self.uploader = uploader or AssetUploadManager(self.settings)
        self.submissions = submissions or SubmissionAccessor(api)

    def update_submission(
        self,
        target: SubmissionTarget,
        submission_data: Mapping[str, Any],
        options: PatchOptions,
        package_path: Optional[Union[str, Path]] = None,
        submission_id: Optional[str] = None,
        auto_commit: bool = False,
        force: bool = False,
    ) -> UpdateResult:
        """
        Create (or resume) a pending submission carrying the caller's changes.

        Args:
            target: Application, flight or in-app product to update
            submission_data: Caller-supplied submission document
            options: Which parts of the submission to change
            package_path: Zip of packages/media to upload to the submission's upload URL
            submission_id: Resume this existing PendingCommit submission instead of cloning
            auto_commit: Commit once the content (and package) is in place
            force: Delete an existing pending submission before cloning

        Returns:
            The submission id and upload URL, whether or not upload/commit ran

        Raises:
            ValidationError: If the data belongs to another product or the options conflict
            SubmissionStateError: If the submission to resume is not PendingCommit,
                or a pending submission exists and force is not set
        """
        logger.info(f"update_submission: Starting for {target}")

        # Step 1: everything checkable without the network
        self._check_data_identity(target, submission_data)
        validate_patch_inputs(submission_data, options, target)

        # Step 2: working submission
        if submission_id:
            working = self.submissions.get(target, submission_id)
            if working.status is not SubmissionStatus.PENDING_COMMIT:
                raise SubmissionStateError(
                    f"Submission is {working.status}; only a PendingCommit submission "
                    "can be modified",
                    operation="Update-Submission",
                    identifiers=target.identifiers(submission_id),
                )
            logger.info(f"update_submission: Resuming pending submission {submission_id}")
        else:
            self.submissions.ensure_no_pending(target, force)
            working = self.submissions.new(target)
            logger.info(
                f"update_submission: Clone {working.id} created for {target}; "
                "pass it as submission_id to resume if this run is interrupted"
            )

        # Step 3: local merge
        patched = patch_submission(working, submission_data, options, target)

        # Step 4: replace remote content
        try:
            replaced = self.submissions.set(target, patched)
        except StoreBrokerError as e:
            if not submission_id:
                e.orphaned_submission_id = working.id
                logger.error(
                    f"update_submission: Replacing content of {working.id} failed; "
                    f"that pending submission for {target} was left as cloned"
                )
            raise

        result_id = replaced.id or working.id
        upload_url = replaced.file_upload_url or working.file_upload_url

        # Step 5: package
        if package_path:
            logger.info(f"update_submission: Uploading {package_path} for submission {result_id}")
            self.uploader.upload_asset(package_path, upload_url)
        elif not auto_commit:
            logger.warning(
                f"update_submission: No package was given. Upload it to {upload_url} "
                f"before committing submission {result_id}, or the submission will be invalid"
            )

        # Step 6: commit
        committed = False
        if auto_commit:
            self.commit_submission(target, result_id)
            committed = True

        logger.info(f"update_submission: Completed submission {result_id} for {target}")
        return UpdateResult(submission_id=result_id, upload_url=upload_url, committed=committed)

    def commit_submission(self, target: SubmissionTarget, submission_id: str) -> SubmissionStatus:
        """
        Commit a submission, re-authenticating first if the token may be stale.

        Uploads can outlive the access token, so a token older than its known
        validity window is refreshed before committing. Behind a proxy there
        is no local token to refresh.
        """
        authenticator = self.api.authenticator
        age = authenticator.seconds_since_authentication() if authenticator else 0
        if age > self.settings.token_validity_seconds:
            logger.info(
                f"commit_submission: Token is {age:.0f}s old "
                f"(validity {self.settings.token_validity_seconds}s), re-authenticating"
            )
            authenticator.get_access_token(force_refresh=True)

        status = self.submissions.commit(target, submission_id)
        logger.info(f"commit_submission: Submission {submission_id} for {target} is {status}")
        return status

    def _check_data_identity(self, target: SubmissionTarget, data: Mapping[str, Any]) -> None:
        """Refuse submission data that names a different product."""
        expected = {target.data_id_key: target.data_id_value}
        if target.kind is ProductKind.FLIGHT:
            expected["appId"] = target.product_id

        if data.get(target.data_id_key) is None:
            logger.warning(
                f"_check_data_identity: Submission data has no {target.data_id_key}; "
                f"cannot verify it was generated for {target}"
            )

        for key, value in expected.items():
            found = data.get(key)
            if found is not None and str(found).strip().lower() != value.lower():
                raise ValidationError(
                    f"Submission data is for {key}={found}, not {value}. "
                    "Regenerate the submission data for this product",
                    operation="Update-Submission",
                    identifiers=target.identifiers(),
                )
