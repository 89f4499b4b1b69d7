"""
Typed records for the Store submission API.

Every model accepts the service's camelCase field names, keeps fields it does
not model (``extra="allow"``) so that a resource read from the service can be
written back without losing data, and validates enum-like values at the
deserialization boundary.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import ValidationError


class _ServiceEnum(str, Enum):
    """Enum whose values are parsed case-insensitively ("immediate" == "Immediate")."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None

    def __str__(self) -> str:
        return self.value


class SubmissionStatus(_ServiceEnum):
    NONE = "None"
    CANCELED = "Canceled"
    PENDING_COMMIT = "PendingCommit"
    COMMIT_STARTED = "CommitStarted"
    COMMIT_FAILED = "CommitFailed"
    PENDING_PUBLICATION = "PendingPublication"
    PUBLISHING = "Publishing"
    PUBLISHED = "Published"
    PUBLISH_FAILED = "PublishFailed"
    PRE_PROCESSING = "PreProcessing"
    PRE_PROCESSING_FAILED = "PreProcessingFailed"
    CERTIFICATION = "Certification"
    CERTIFICATION_FAILED = "CertificationFailed"
    RELEASE = "Release"
    RELEASE_FAILED = "ReleaseFailed"

    @property
    def is_failure(self) -> bool:
        return self is SubmissionStatus.CANCELED or self.value.endswith("Failed")


class TargetPublishMode(_ServiceEnum):
    IMMEDIATE = "Immediate"
    MANUAL = "Manual"
    SPECIFIC_DATE = "SpecificDate"
    DEFAULT = "Default"


class FileStatus(_ServiceEnum):
    NONE = "None"
    PENDING_UPLOAD = "PendingUpload"
    UPLOADED = "Uploaded"
    COMMITTED = "Committed"
    PENDING_DELETE = "PendingDelete"


class ProductKind(_ServiceEnum):
    APPLICATION = "Application"
    FLIGHT = "Flight"
    IN_APP_PRODUCT = "InAppProduct"


class EndpointType(_ServiceEnum):
    PROD = "Prod"
    INT = "Int"


class ServiceModel(BaseModel):
    """Base for all records exchanged with the service."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON document the service expects."""
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


# ===== SUBMISSION RECORDS =====


class PackageReference(ServiceModel):
    id: Optional[str] = None
    file_name: Optional[str] = None
    file_status: Optional[FileStatus] = None
    version: Optional[str] = None
    architecture: Optional[str] = None
    minimum_direct_x_version: Optional[str] = None
    minimum_system_ram: Optional[str] = None


class ImageReference(ServiceModel):
    id: Optional[str] = None
    file_name: Optional[str] = None
    file_status: Optional[FileStatus] = None
    image_type: Optional[str] = None
    description: Optional[str] = None


class BaseListing(ServiceModel):
    title: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[ImageReference]] = None


class SubmissionListing(ServiceModel):
    base_listing: Optional[BaseListing] = None
    platform_overrides: Optional[Dict[str, Any]] = None


class StatusDetails(ServiceModel):
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)
    certification_reports: List[Dict[str, Any]] = Field(default_factory=list)


class Submission(ServiceModel):
    """
    A pending, mutable draft of a future published state of a product.

    Only the fields the client reasons about are typed; listings, pricing,
    properties and every other field the service returns ride along as
    extras and are written back verbatim.
    """

    id: Optional[str] = None
    status: Optional[SubmissionStatus] = None
    status_details: Optional[StatusDetails] = None
    target_publish_mode: Optional[TargetPublishMode] = None
    target_publish_date: Optional[datetime] = None
    file_upload_url: Optional[str] = None
    notes_for_certification: Optional[str] = None
    application_packages: Optional[List[PackageReference]] = None
    flight_packages: Optional[List[PackageReference]] = None
    listings: Optional[Dict[str, SubmissionListing]] = None
    trailers: Optional[List[Dict[str, Any]]] = None


class SubmissionStatusResponse(ServiceModel):
    status: SubmissionStatus
    status_details: Optional[StatusDetails] = None


# ===== VERSIONED RESOURCES =====


class VersionedResource(ServiceModel):
    """A resource guarded by the service's optimistic-concurrency revision token."""

    id: Optional[str] = None
    resource_type: Optional[str] = None
    revision_token: Optional[str] = None


class Listing(VersionedResource):
    language_code: Optional[str] = None
    title: Optional[str] = None
    short_title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    release_notes: Optional[str] = None
    features: Optional[List[str]] = None
    keywords: Optional[List[str]] = None


class ListingImage(VersionedResource):
    image_type: Optional[str] = None
    file_name: Optional[str] = None
    file_sas_uri: Optional[str] = None
    state: Optional[FileStatus] = None
    description: Optional[str] = None
    orientation: Optional[str] = None


class ProductAvailability(VersionedResource):
    audience: Optional[Dict[str, Any]] = None
    visibility: Optional[str] = None


class ProductProperty(VersionedResource):
    category: Optional[str] = None
    subcategory: Optional[str] = None
    is_accessible: Optional[bool] = None


class PackageConfiguration(VersionedResource):
    is_automatic_backup_enabled: Optional[bool] = None
    package_delivery_options: Optional[Dict[str, Any]] = None


class FeatureAvailability(VersionedResource):
    trial: Optional[Dict[str, Any]] = None
    pricing: Optional[Dict[str, Any]] = None
    visibility: Optional[Dict[str, Any]] = None


class Group(VersionedResource):
    name: Optional[str] = None
    type: Optional[str] = None
    members: Optional[List[str]] = None


class Flight(VersionedResource):
    flight_id: Optional[str] = None
    friendly_name: Optional[str] = None
    group_ids: Optional[List[str]] = None
    rank_higher_than: Optional[str] = None


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(
    cls: Type[ModelT],
    payload: Any,
    operation: Optional[str] = None,
    identifiers: Optional[Dict[str, str]] = None,
) -> ModelT:
    """
    Validate a service or caller document into a typed record.

    Raises:
        ValidationError: If the document does not match the record, including
            unknown status / publish-mode values
    """
    if payload is None:
        raise ValidationError(
            f"Expected a {cls.__name__} document but received nothing",
            operation=operation,
            identifiers=identifiers,
        )
    try:
        return cls.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid {cls.__name__} document: {e}",
            operation=operation,
            identifiers=identifiers,
        ) from e


# ===== SUBMISSION TARGETS =====


@dataclass(frozen=True)
class SubmissionTarget:
    """
    The product (app, flight or in-app product) whose submissions are managed.

    Knows the REST paths, the field that points at the pending submission,
    the identifier key that caller-supplied submission data must carry, and
    where packages live in a submission document.
    """

    kind: ProductKind
    product_id: str
    flight_id: Optional[str] = None

    def __post_init__(self):
        if not self.product_id:
            raise ValidationError("Product ID cannot be empty")
        if self.kind is ProductKind.FLIGHT and not self.flight_id:
            raise ValidationError(
                "Flight ID is required for flight submissions",
                identifiers={"product_id": self.product_id},
            )

    @classmethod
    def application(cls, app_id: str) -> "SubmissionTarget":
        return cls(ProductKind.APPLICATION, app_id)

    @classmethod
    def flight(cls, app_id: str, flight_id: str) -> "SubmissionTarget":
        return cls(ProductKind.FLIGHT, app_id, flight_id)

    @classmethod
    def in_app_product(cls, iap_id: str) -> "SubmissionTarget":
        return cls(ProductKind.IN_APP_PRODUCT, iap_id)

    @property
    def product_path(self) -> str:
        if self.kind is ProductKind.FLIGHT:
            return f"applications/{self.product_id}/flights/{self.flight_id}"
        if self.kind is ProductKind.IN_APP_PRODUCT:
            return f"inappproducts/{self.product_id}"
        return f"applications/{self.product_id}"

    @property
    def submissions_path(self) -> str:
        return f"{self.product_path}/submissions"

    def submission_path(self, submission_id: str) -> str:
        return f"{self.submissions_path}/{submission_id}"

    @property
    def pending_field(self) -> str:
        return {
            ProductKind.APPLICATION: "pendingApplicationSubmission",
            ProductKind.FLIGHT: "pendingFlightSubmission",
            ProductKind.IN_APP_PRODUCT: "pendingInAppProductSubmission",
        }[self.kind]

    @property
    def data_id_key(self) -> str:
        """Key under which submission data names the product it belongs to."""
        return {
            ProductKind.APPLICATION: "appId",
            ProductKind.FLIGHT: "flightId",
            ProductKind.IN_APP_PRODUCT: "iapId",
        }[self.kind]

    @property
    def data_id_value(self) -> str:
        return self.flight_id if self.kind is ProductKind.FLIGHT else self.product_id

    @property
    def packages_key(self) -> Optional[str]:
        """Submission field holding packages; in-app products have none."""
        return {
            ProductKind.APPLICATION: "applicationPackages",
            ProductKind.FLIGHT: "flightPackages",
            ProductKind.IN_APP_PRODUCT: None,
        }[self.kind]

    def identifiers(self, submission_id: Optional[str] = None) -> Dict[str, str]:
        ids = {"product_id": self.product_id}
        if self.flight_id:
            ids["flight_id"] = self.flight_id
        if submission_id:
            ids["submission_id"] = submission_id
        return ids

    def __str__(self) -> str:
        if self.flight_id:
            return f"{self.kind} {self.product_id}/{self.flight_id}"
        return f"{self.kind} {self.product_id}"
