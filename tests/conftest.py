"""
Shared fixtures: an in-memory stand-in for the submission service.
"""

import copy
import re

import pytest

from storebroker.auth import StaticTokenAuthenticator
from storebroker.config import StoreBrokerSettings
from storebroker.exceptions import ConflictError, NotFoundError

APP_ID = "0ABCDEF12345"
UPLOAD_URL = "https://upload.example.net/container/blob?sv=2026&sig=abc"


def published_submission():
    return {
        "id": "1152921504621243540",
        "status": "Published",
        "statusDetails": {"errors": [], "warnings": [], "certificationReports": []},
        "targetPublishMode": "Immediate",
        "targetPublishDate": "1601-01-01T00:00:00Z",
        "notesForCertification": "",
        "pricing": {"trialPeriod": "NoFreeTrial", "priceId": "Free"},
        "visibility": "Public",
        "applicationCategory": "Games_Puzzle",
        "applicationPackages": [
            {
                "id": "1152921504606962205",
                "fileName": "pkg0.appxupload",
                "fileStatus": "Uploaded",
                "version": "1.0.0.0",
                "architecture": "x64",
            }
        ],
        "listings": {
            "en-us": {
                "baseListing": {
                    "title": "Sample",
                    "description": "Old description",
                    "images": [
                        {
                            "id": "111",
                            "fileName": "old.png",
                            "fileStatus": "Uploaded",
                            "imageType": "Screenshot",
                        }
                    ],
                },
                "platformOverrides": {},
            }
        },
        "trailers": [],
    }


class FakeStoreService:
    """
    Stand-in for StoreBrokerAPI that models the submission endpoints.

    Records every call as (method, uri_fragment, body) and enforces the
    one-pending-submission rule the real service enforces.
    """

    def __init__(self, app_id=APP_ID, pending_id=None):
        self.settings = StoreBrokerSettings(request_timeout_seconds=1)
        self.authenticator = StaticTokenAuthenticator("token")
        self.app_id = app_id
        self.published = published_submission()
        self.submissions = {}
        self.pending_id = pending_id
        self.next_id = 1152921504621243600
        self.calls = []
        self.fail_on = None
        if pending_id:
            self.submissions[pending_id] = self._pending_from_published(pending_id)

    def _pending_from_published(self, submission_id):
        clone = copy.deepcopy(self.published)
        clone.update(
            {
                "id": submission_id,
                "status": "PendingCommit",
                "fileUploadUrl": UPLOAD_URL,
            }
        )
        return clone

    def methods(self):
        return [(method, path) for method, path, _ in self.calls]

    def invoke(
        self,
        uri_fragment,
        method="GET",
        body=None,
        params=None,
        api_version="1.0",
        operation=None,
        identifiers=None,
    ):
        self.calls.append((method, uri_fragment, copy.deepcopy(body)))
        if self.fail_on == (method, uri_fragment):
            raise ConflictError("injected failure", status_code=409, operation=operation)

        base = f"applications/{self.app_id}"
        if method == "GET" and uri_fragment == base:
            product = {"id": self.app_id}
            if self.pending_id:
                product["pendingApplicationSubmission"] = {"id": self.pending_id}
            return product

        if method == "POST" and uri_fragment == f"{base}/submissions":
            if self.pending_id:
                raise ConflictError("A pending submission already exists", status_code=409)
            submission_id = str(self.next_id)
            self.next_id += 1
            self.submissions[submission_id] = self._pending_from_published(submission_id)
            self.pending_id = submission_id
            return copy.deepcopy(self.submissions[submission_id])

        match = re.match(rf"^{base}/submissions/(\d+)(/commit|/status)?$", uri_fragment)
        if not match:
            raise NotFoundError(f"No route for {method} {uri_fragment}", status_code=404)
        submission_id, suffix = match.groups()
        if submission_id not in self.submissions:
            raise NotFoundError(f"Submission {submission_id} not found", status_code=404)
        stored = self.submissions[submission_id]

        if suffix == "/commit":
            stored["status"] = "CommitStarted"
            return {"status": "CommitStarted"}
        if suffix == "/status":
            return {"status": stored["status"], "statusDetails": stored.get("statusDetails")}
        if method == "GET":
            return copy.deepcopy(stored)
        if method == "PUT":
            replaced = copy.deepcopy(body)
            replaced.update(
                {
                    "id": submission_id,
                    "status": stored["status"],
                    "fileUploadUrl": UPLOAD_URL,
                }
            )
            self.submissions[submission_id] = replaced
            return copy.deepcopy(replaced)
        if method == "DELETE":
            del self.submissions[submission_id]
            if self.pending_id == submission_id:
                self.pending_id = None
            return None

        raise NotFoundError(f"No route for {method} {uri_fragment}", status_code=404)


@pytest.fixture
def fake_service():
    return FakeStoreService()


@pytest.fixture
def settings():
    return StoreBrokerSettings(
        tenant_id="tenant",
        client_id="client",
        client_secret="secret",
        transient_retry_delay_seconds=0,
        mail_retry_delay_seconds=0,
    )
