"""
Unit tests for the S3 object storage adapter.

Tests:
- Client construction from settings (internal and public endpoints)
- Presigned GET/PUT URL parameters
- Paginated listing
- Retry with backoff on transient errors, no retry on authorization errors
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, call

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from backend.src.config.settings import AppSettings
from backend.src.services.exceptions import StorageError
from backend.src.services.storage_service import ObjectStorage


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "ListObjectsV2")


@pytest.fixture
def no_sleep(mocker):
    return mocker.patch("backend.src.services.storage_service.time.sleep")


class TestFromSettings:
    """Tests for ObjectStorage.from_settings()."""

    def test_builds_internal_and_public_clients(self, mock_s3_client, mocker):
        boto_client = mocker.patch("boto3.client", return_value=mock_s3_client)
        settings = AppSettings(
            S3_ENDPOINT="http://minio:9000",
            S3_PUBLIC_ENDPOINT="https://downloads.example.com",
            S3_BUCKET="releases",
        )

        storage = ObjectStorage.from_settings(settings)

        assert storage.bucket == "releases"
        endpoints = [c.kwargs["endpoint_url"] for c in boto_client.call_args_list]
        assert endpoints == ["http://minio:9000", "https://downloads.example.com"]


class TestPresign:
    """Tests for presigned URL generation."""

    def test_presign_download_sets_disposition(self):
        internal, public = MagicMock(), MagicMock()
        public.generate_presigned_url.return_value = "https://public/url"
        storage = ObjectStorage("releases", internal, public)

        url = storage.presign_download("latest/windows/1.0.0/x-Setup.exe", 600, "Setup.exe")

        assert url == "https://public/url"
        public.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={
                "Bucket": "releases",
                "Key": "latest/windows/1.0.0/x-Setup.exe",
                "ResponseContentDisposition": 'attachment; filename="Setup.exe"',
            },
            ExpiresIn=600,
        )
        internal.generate_presigned_url.assert_not_called()

    def test_presign_upload(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://put/url"
        storage = ObjectStorage("releases", client)

        url = storage.presign_upload("k", "application/octet-stream", 900)

        assert url == "https://put/url"
        client.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={"Bucket": "releases", "Key": "k", "ContentType": "application/octet-stream"},
            ExpiresIn=900,
        )

    def test_presign_failure_raises_storage_error(self):
        client = MagicMock()
        client.generate_presigned_url.side_effect = _client_error("AccessDenied")
        storage = ObjectStorage("releases", client)

        with pytest.raises(StorageError):
            storage.presign_download("k", 60)


class TestListObjects:
    """Tests for ObjectStorage.list_objects()."""

    def test_paginates(self):
        client = MagicMock()
        modified = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        client.list_objects_v2.side_effect = [
            {
                "Contents": [
                    {"Key": "a", "Size": 1, "LastModified": modified},
                    {"Key": "dir/", "Size": 0, "LastModified": modified},
                ],
                "IsTruncated": True,
                "NextContinuationToken": "token-1",
            },
            {
                "Contents": [{"Key": "b", "Size": 2, "LastModified": modified}],
                "IsTruncated": False,
            },
        ]
        storage = ObjectStorage("releases", client)

        objects = storage.list_objects()

        assert [o.key for o in objects] == ["a", "b"]
        assert objects[0].last_modified == datetime(2026, 1, 1, 12, 0)
        assert client.list_objects_v2.call_args_list == [
            call(Bucket="releases", Prefix=""),
            call(Bucket="releases", Prefix="", ContinuationToken="token-1"),
        ]

    def test_empty_bucket(self):
        client = MagicMock()
        client.list_objects_v2.return_value = {"IsTruncated": False}

        assert ObjectStorage("releases", client).list_objects() == []

    def test_retries_transient_errors(self, no_sleep):
        client = MagicMock()
        client.list_objects_v2.side_effect = [
            EndpointConnectionError(endpoint_url="http://minio:9000"),
            _client_error("SlowDown"),
            {"Contents": [{"Key": "a", "Size": 1}], "IsTruncated": False},
        ]
        storage = ObjectStorage("releases", client)

        objects = storage.list_objects()

        assert [o.key for o in objects] == ["a"]
        assert client.list_objects_v2.call_count == 3
        assert [c.args[0] for c in no_sleep.call_args_list] == [1.0, 2.0]

    def test_gives_up_after_max_retries(self, no_sleep):
        client = MagicMock()
        client.list_objects_v2.side_effect = _client_error("InternalError")
        storage = ObjectStorage("releases", client)

        with pytest.raises(StorageError):
            storage.list_objects()

        assert client.list_objects_v2.call_count == ObjectStorage.MAX_RETRIES

    @pytest.mark.parametrize("code", ["AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"])
    def test_no_retry_on_authorization_errors(self, no_sleep, code):
        client = MagicMock()
        client.list_objects_v2.side_effect = _client_error(code)
        storage = ObjectStorage("releases", client)

        with pytest.raises(StorageError):
            storage.list_objects()

        assert client.list_objects_v2.call_count == 1
        no_sleep.assert_not_called()


class TestDeleteObject:
    """Tests for ObjectStorage.delete_object()."""

    def test_delete(self):
        client = MagicMock()
        storage = ObjectStorage("releases", client)

        storage.delete_object("k")

        client.delete_object.assert_called_once_with(Bucket="releases", Key="k")

    def test_delete_failure(self, no_sleep):
        client = MagicMock()
        client.delete_object.side_effect = _client_error("AccessDenied")
        storage = ObjectStorage("releases", client)

        with pytest.raises(StorageError):
            storage.delete_object("k")
