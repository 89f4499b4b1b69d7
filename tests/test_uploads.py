"""
Tests for package and media uploads.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from storebroker.exceptions import UploadError
from storebroker.uploads import AssetUploadManager, MediaAsset

SAS = "https://blob.example.net/c/file?sig=x"


@pytest.fixture
def uploader(settings):
    return AssetUploadManager(settings, sleep=Mock())


@pytest.fixture
def package(tmp_path):
    path = tmp_path / "package.zip"
    path.write_bytes(b"PK\x03\x04")
    return path


def response(status_code, text=""):
    return Mock(status_code=status_code, text=text)


class TestUploadAsset:
    """Single uploads fail loudly."""

    @patch("storebroker.uploads.requests.put")
    def test_upload_success(self, mock_put, uploader, package):
        mock_put.return_value = response(201)

        uploader.upload_asset(package, SAS)

        assert mock_put.call_args.args[0] == SAS
        assert mock_put.call_args.kwargs["headers"] == {"x-ms-blob-type": "BlockBlob"}

    def test_missing_file(self, uploader, tmp_path):
        with pytest.raises(UploadError, match="File not found"):
            uploader.upload_asset(tmp_path / "nope.zip", SAS)

    def test_missing_url(self, uploader, package):
        with pytest.raises(UploadError, match="No upload URL"):
            uploader.upload_asset(package, None)

    @patch("storebroker.uploads.requests.put")
    def test_client_error_not_retried(self, mock_put, uploader, package):
        mock_put.return_value = response(403, "AuthenticationFailed")

        with pytest.raises(UploadError) as exc_info:
            uploader.upload_asset(package, SAS)

        assert exc_info.value.status_code == 403
        assert mock_put.call_count == 1

    @patch("storebroker.uploads.requests.put")
    def test_server_error_retried(self, mock_put, uploader, package):
        mock_put.side_effect = [response(503), requests.exceptions.ConnectionError("reset"), response(201)]

        uploader.upload_asset(package, SAS)

        assert mock_put.call_count == 3
        assert uploader._sleep.call_count == 2

    @patch("storebroker.uploads.requests.put")
    def test_server_error_exhausts_retries(self, mock_put, uploader, package):
        mock_put.return_value = response(500, "InternalError")

        with pytest.raises(UploadError, match="InternalError"):
            uploader.upload_asset(package, SAS)

        assert mock_put.call_count == uploader.settings.max_transient_retries + 1


class TestUploadBatch:
    """Batch uploads continue past failures."""

    def test_failure_in_middle_does_not_stop_batch(self, uploader, tmp_path):
        assets = [
            MediaAsset(f"image{i}.png", tmp_path / f"image{i}.png", sas_uri=f"{SAS}{i}")
            for i in range(5)
        ]
        calls = []

        def fake_upload(path, sas_uri):
            calls.append(sas_uri)
            if sas_uri.endswith("2"):
                raise UploadError("boom")

        with patch.object(uploader, "upload_asset", side_effect=fake_upload):
            result = uploader.upload_asset_batch(assets)

        assert len(calls) == 5
        assert [a.file_name for a in result.failed] == ["image2.png"]
        assert [a.file_name for a in result.uploaded] == ["image0.png", "image1.png", "image3.png", "image4.png"]
        assert result.success is False

    def test_assets_without_sas_uri_are_skipped(self, uploader, tmp_path):
        assets = [
            MediaAsset("a.png", tmp_path / "a.png", sas_uri=SAS),
            MediaAsset("b.png", tmp_path / "b.png"),
        ]

        with patch.object(uploader, "upload_asset") as mock_upload:
            result = uploader.upload_asset_batch(assets)

        mock_upload.assert_called_once_with(tmp_path / "a.png", SAS)
        assert [a.file_name for a in result.skipped] == ["b.png"]
        assert result.success is True

    def test_with_sas_uri_returns_copy(self, tmp_path):
        asset = MediaAsset("a.png", tmp_path / "a.png")
        linked = asset.with_sas_uri(SAS)

        assert asset.sas_uri is None
        assert linked.sas_uri == SAS

    def test_batch_reports_linked_assets(self, uploader, tmp_path):
        assets = [
            MediaAsset("a.png", tmp_path / "en" / "a.png").with_sas_uri(f"{SAS}1", resource_id="img-1"),
            MediaAsset("a.png", tmp_path / "fr" / "a.png").with_sas_uri(f"{SAS}2", resource_id="img-2"),
        ]

        with patch.object(uploader, "upload_asset"):
            result = uploader.upload_asset_batch(assets)

        assert [a.resource_id for a in result.uploaded] == ["img-1", "img-2"]
