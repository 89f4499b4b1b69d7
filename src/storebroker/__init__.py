"""
storebroker-client

A Python client for the Store submission API: clone, patch and commit
application, flight and in-app product submissions, upload their assets,
and monitor certification until publication.
"""

from .client import StoreBrokerAPI
from .config import StoreBrokerSettings
from .auth import Authenticator, StaticTokenAuthenticator
from .models import (
    ProductKind,
    Submission,
    SubmissionStatus,
    SubmissionTarget,
    TargetPublishMode,
)
from .patch import PatchOptions, patch_submission
from .orchestrator import SubmissionOrchestrator, UpdateResult
from .submissions import SubmissionAccessor
from .uploads import AssetUploadManager, MediaAsset
from .monitor import SubmissionMonitor, MonitorResult
from .notify import MailNotifier
from .exceptions import (
    StoreBrokerError,
    AuthenticationError,
    ConflictError,
    RateLimitError,
    ValidationError,
    NotFoundError,
    PermissionError,
    ServerError,
    SubmissionStateError,
    UploadError,
)
from . import reports, resources, utils

__version__ = "1.0.0"

__all__ = [
    "StoreBrokerAPI",
    "StoreBrokerSettings",
    "Authenticator",
    "StaticTokenAuthenticator",
    "ProductKind",
    "Submission",
    "SubmissionStatus",
    "SubmissionTarget",
    "TargetPublishMode",
    "PatchOptions",
    "patch_submission",
    "SubmissionOrchestrator",
    "UpdateResult",
    "SubmissionAccessor",
    "AssetUploadManager",
    "MediaAsset",
    "SubmissionMonitor",
    "MonitorResult",
    "MailNotifier",
    "StoreBrokerError",
    "AuthenticationError",
    "ConflictError",
    "RateLimitError",
    "ValidationError",
    "NotFoundError",
    "PermissionError",
    "ServerError",
    "SubmissionStateError",
    "UploadError",
    "reports",
    "resources",
    "utils",
]
