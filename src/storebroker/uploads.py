"""
Upload of package and media binaries to time-limited SAS URLs.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Union

import requests

from .config import StoreBrokerSettings
from .exceptions import UploadError

logger = logging.getLogger(__name__)

BLOB_HEADERS = {"x-ms-blob-type": "BlockBlob"}


@dataclass(frozen=True)
class MediaAsset:
    """
    A local file and the SAS URL the service linked it to (if any).

    ``resource_id`` is the id of the record the file was linked to; file names
    need not be unique within a batch.
    """

    file_name: str
    local_path: Path
    sas_uri: Optional[str] = None
    image_type: Optional[str] = None
    resource_id: Optional[str] = None

    def with_sas_uri(
        self, sas_uri: Optional[str], resource_id: Optional[str] = None
    ) -> "MediaAsset":
        return replace(self, sas_uri=sas_uri, resource_id=resource_id or self.resource_id)


@dataclass
class BatchUploadResult:
    """Assets of a batch, by outcome."""

    uploaded: List[MediaAsset] = field(default_factory=list)
    skipped: List[MediaAsset] = field(default_factory=list)
    failed: List[MediaAsset] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class AssetUploadManager:
    """
    Uploads binaries directly to blob storage.

    Single uploads (packages) fail loudly. Batch uploads (listing images,
    trailers) log and skip failing items so one broken file does not block
    the rest.
    """

    def __init__(self, settings: Optional[StoreBrokerSettings] = None, sleep=time.sleep):
        self.settings = settings or StoreBrokerSettings()
        self._sleep = sleep

    def upload_asset(self, local_file_path: Union[str, Path], destination_sas_uri: str) -> None:
        """
        Upload one file to a SAS URL.

        Transient failures are retried; anything left after that is raised.

        Raises:
            UploadError: If the file is missing or the upload does not succeed
        """
        path = Path(local_file_path)
        if not destination_sas_uri:
            raise UploadError(f"No upload URL given for {path}", operation="Upload")
        if not path.is_file():
            raise UploadError(f"File not found: {path}", operation="Upload")

        attempts = self.settings.max_transient_retries + 1
        last_error: Optional[str] = None
        for attempt in range(1, attempts + 1):
            logger.info(
                f"upload_asset: Uploading {path} ({path.stat().st_size} bytes), "
                f"attempt {attempt}/{attempts}"
            )
            try:
                with open(path, "rb") as f:
                    response = requests.put(
                        destination_sas_uri,
                        data=f,
                        headers=BLOB_HEADERS,
                        timeout=self.settings.request_timeout_seconds,
                    )
            except requests.exceptions.RequestException as e:
                last_error = f"Request failed: {e}"
            else:
                if response.status_code < 400:
                    logger.info(f"upload_asset: Uploaded {path}")
                    return
                if response.status_code < 500:
                    # Expired or malformed SAS URLs do not improve with retries.
                    raise UploadError(
                        f"Upload of {path} rejected: {response.status_code} {response.text}",
                        status_code=response.status_code,
                        operation="Upload",
                    )
                last_error = f"Server error {response.status_code}: {response.text}"

            logger.warning(f"upload_asset: {last_error}")
            if attempt < attempts:
                self._sleep(self.settings.transient_retry_delay_seconds)

        raise UploadError(f"Upload of {path} failed: {last_error}", operation="Upload")

    def upload_asset_batch(self, assets: List[MediaAsset]) -> BatchUploadResult:
        """
        Upload every asset that has a SAS URL, continuing past failures.

        Returns:
            Which assets were uploaded, skipped (no SAS URL) or failed
        """
        result = BatchUploadResult()
        for asset in assets:
            if not asset.sas_uri:
                logger.debug(f"upload_asset_batch: No SAS URL for {asset.file_name}, skipping")
                result.skipped.append(asset)
                continue
            try:
                self.upload_asset(asset.local_path, asset.sas_uri)
                result.uploaded.append(asset)
            except Exception as e:
                logger.error(f"upload_asset_batch: Failed to upload {asset.file_name}: {e}")
                result.failed.append(asset)

        logger.info(
            f"upload_asset_batch: {len(result.uploaded)} uploaded, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result
