"""
Per-resource accessors for the versioned product resources.

Each accessor is a thin get/list/new/set/remove wrapper over the transport.
Updates always echo the revision token obtained from the most recent read of
the same resource; the service rejects stale tokens with a conflict.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from .client import StoreBrokerAPI
from .exceptions import StoreBrokerError, ValidationError
from .models import (
    FeatureAvailability,
    FileStatus,
    Flight,
    Group,
    Listing,
    ListingImage,
    PackageConfiguration,
    ProductAvailability,
    ProductProperty,
    VersionedResource,
    parse_model,
)
from .uploads import AssetUploadManager, BatchUploadResult, MediaAsset

logger = logging.getLogger(__name__)

API_VERSION = "2.0"


class ResourceAccessor:
    """
    Generic CRUD accessor for one kind of versioned resource.

    Subclasses set ``model`` and ``path_template``; the template's fields
    (``product_id``, ``listing_id``...) are supplied as keyword arguments to
    every call.
    """

    model: Type[VersionedResource] = VersionedResource
    path_template: str = ""

    def __init__(self, api: StoreBrokerAPI):
        self.api = api

    @property
    def name(self) -> str:
        return self.model.__name__

    def _collection_path(self, scope: Dict[str, str]) -> str:
        try:
            return self.path_template.format(**scope)
        except KeyError as e:
            raise ValidationError(f"{e.args[0]} is required to address a {self.name}")

    @staticmethod
    def _with_submission(path: str, submission_id: Optional[str]) -> str:
        return f"{path}?submissionId={submission_id}" if submission_id else path

    def _parse(self, payload: Any, operation: str, scope: Dict[str, str]):
        return parse_model(self.model, payload, operation=operation, identifiers=scope)

    def list(self, submission_id: Optional[str] = None, **scope) -> List[VersionedResource]:
        """List every resource of this kind within the scope."""
        operation = f"Get-{self.name}s"
        path = self._with_submission(self._collection_path(scope), submission_id)
        items = self.api.invoke_multiple_page(
            path, api_version=API_VERSION, operation=operation, identifiers=scope
        )
        return [self._parse(item, operation, scope) for item in items]

    def get(self, resource_id: str, submission_id: Optional[str] = None, **scope):
        """Read one resource; the result carries the current revision token."""
        operation = f"Get-{self.name}"
        path = self._with_submission(
            f"{self._collection_path(scope)}/{resource_id}", submission_id
        )
        payload = self.api.invoke(
            path, api_version=API_VERSION, operation=operation, identifiers=scope
        )
        return self._parse(payload, operation, scope)

    def new(self, resource: VersionedResource, submission_id: Optional[str] = None, **scope):
        """Create a resource; the service assigns its id and first revision token."""
        operation = f"New-{self.name}"
        path = self._with_submission(self._collection_path(scope), submission_id)
        payload = self.api.invoke(
            path,
            method="POST",
            body=resource.to_payload(),
            api_version=API_VERSION,
            operation=operation,
            identifiers=scope,
        )
        logger.info(f"new: Created {self.name} in {scope}")
        return self._parse(payload, operation, scope)

    def set(self, resource: VersionedResource, submission_id: Optional[str] = None, **scope):
        """
        Replace a resource.

        Raises:
            ValidationError: If the resource has no id or no revision token. A
                token must come from a prior read and is never made up locally.
            ConflictError: If the service rejects the token as stale
        """
        operation = f"Set-{self.name}"
        if not resource.id:
            raise ValidationError(f"{self.name} has no id", operation=operation, identifiers=scope)
        if not resource.revision_token:
            raise ValidationError(
                f"{self.name} {resource.id} has no revisionToken; "
                "read it from the service before updating",
                operation=operation,
                identifiers=scope,
            )
        path = self._with_submission(
            f"{self._collection_path(scope)}/{resource.id}", submission_id
        )
        payload = self.api.invoke(
            path,
            method="PUT",
            body=resource.to_payload(),
            api_version=API_VERSION,
            operation=operation,
            identifiers=scope,
        )
        logger.info(f"set: Updated {self.name} {resource.id}")
        return self._parse(payload, operation, scope)

    def remove(self, resource_id: str, submission_id: Optional[str] = None, **scope) -> None:
        operation = f"Remove-{self.name}"
        path = self._with_submission(
            f"{self._collection_path(scope)}/{resource_id}", submission_id
        )
        self.api.invoke(
            path,
            method="DELETE",
            api_version=API_VERSION,
            operation=operation,
            identifiers=scope,
        )
        logger.info(f"remove: Removed {self.name} {resource_id}")


class ListingAccessor(ResourceAccessor):
    model = Listing
    path_template = "products/{product_id}/listings"


class ListingImageAccessor(ResourceAccessor):
    model = ListingImage
    path_template = "products/{product_id}/listings/{listing_id}/images"

    def upload_images(
        self,
        assets: List[MediaAsset],
        uploader: AssetUploadManager,
        submission_id: Optional[str] = None,
        **scope,
    ) -> BatchUploadResult:
        """
        Create image records, upload their binaries, then mark them Uploaded.

        Each image is handled on its own: one whose record cannot be created,
        whose binary cannot be uploaded, or whose record cannot be marked
        Uploaded is reported in ``failed`` and the rest still go through.
        """
        created: Dict[str, ListingImage] = {}
        linked: List[MediaAsset] = []
        unlinked: List[MediaAsset] = []
        for asset in assets:
            try:
                image = self.new(
                    ListingImage(
                        file_name=asset.file_name,
                        image_type=asset.image_type,
                        state=FileStatus.PENDING_UPLOAD,
                    ),
                    submission_id=submission_id,
                    **scope,
                )
            except StoreBrokerError as e:
                logger.error(f"upload_images: Could not create a record for {asset.file_name}: {e}")
                unlinked.append(asset)
                continue
            created[image.id] = image
            linked.append(asset.with_sas_uri(image.file_sas_uri, resource_id=image.id))

        result = uploader.upload_asset_batch(linked)
        result.failed = unlinked + result.failed

        marked: List[MediaAsset] = []
        for asset in result.uploaded:
            image = created[asset.resource_id].model_copy(update={"state": FileStatus.UPLOADED})
            try:
                self.set(image, submission_id=submission_id, **scope)
            except StoreBrokerError as e:
                logger.error(
                    f"upload_images: {asset.file_name} was uploaded but image "
                    f"{asset.resource_id} could not be marked Uploaded: {e}"
                )
                result.failed.append(asset)
                continue
            marked.append(asset)
        result.uploaded = marked

        return result


class ProductAvailabilityAccessor(ResourceAccessor):
    model = ProductAvailability
    path_template = "products/{product_id}/productAvailabilities"


class ProductPropertyAccessor(ResourceAccessor):
    model = ProductProperty
    path_template = "products/{product_id}/properties"


class PackageConfigurationAccessor(ResourceAccessor):
    model = PackageConfiguration
    path_template = "products/{product_id}/packageConfigurations"


class FeatureAvailabilityAccessor(ResourceAccessor):
    model = FeatureAvailability
    path_template = "products/{product_id}/featureAvailabilities"


class GroupAccessor(ResourceAccessor):
    model = Group
    path_template = "groups"


class FlightAccessor(ResourceAccessor):
    model = Flight
    path_template = "products/{product_id}/flights"

    def get_by_name(self, friendly_name: str, **scope) -> Optional[Flight]:
        """Find a flight by its friendly name (case-insensitive)."""
        wanted = friendly_name.strip().lower()
        for flight in self.list(**scope):
            if (flight.friendly_name or "").lower() == wanted:
                return flight
        return None
