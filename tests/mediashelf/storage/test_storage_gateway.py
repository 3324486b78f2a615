from __future__ import annotations

from pathlib import Path

import pytest

from mediashelf.config_manager import MediaShelfSettings
from mediashelf.storage import (
    MultipartAbortFailure,
    ObjectStorageGateway,
    StorageError,
    StorageUnavailable,
    build_s3_client,
)
from tests.helpers.fake_s3 import FakeS3Client

BUCKET = "media-test"


@pytest.fixture
def s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def gateway(s3: FakeS3Client) -> ObjectStorageGateway:
    return ObjectStorageGateway(s3, bucket=BUCKET, public_url="https://cdn.example/")


def test_unconfigured_gateway_raises_unavailable() -> None:
    gateway = ObjectStorageGateway(None, bucket=BUCKET)

    assert not gateway.configured
    assert gateway.exists("anything") is False
    with pytest.raises(StorageUnavailable):
        gateway.get_object_metadata("anything")
    with pytest.raises(StorageUnavailable):
        gateway.put_object("anything", b"data")


def test_build_client_returns_none_without_credentials() -> None:
    assert build_s3_client(MediaShelfSettings()) is None


def test_put_object_returns_s3_reference(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    reference = gateway.put_object("ebook/dune.epub", b"epub-bytes", "application/epub+zip")

    assert reference == f"s3://{BUCKET}/ebook/dune.epub"
    assert s3.objects[(BUCKET, "ebook/dune.epub")]["data"] == b"epub-bytes"


def test_exists_and_metadata(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    s3.add_object(BUCKET, "audio/track.mp3", b"x" * 42, "audio/mpeg")

    assert gateway.exists("audio/track.mp3")
    assert not gateway.exists("audio/missing.mp3")
    metadata = gateway.get_object_metadata("audio/track.mp3")
    assert metadata is not None
    assert metadata.size == 42
    assert metadata.content_type == "audio/mpeg"
    assert gateway.get_object_metadata("audio/missing.mp3") is None


def test_exists_swallows_remote_errors(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    s3.fail_operations["head_object"] = "InternalError"

    assert gateway.exists("video/clip.mp4") is False


def test_metadata_propagates_remote_errors(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    s3.fail_operations["head_object"] = "AccessDenied"

    with pytest.raises(StorageError) as excinfo:
        gateway.get_object_metadata("video/clip.mp4")
    assert excinfo.value.reason == StorageError.REMOTE_ERROR


def test_range_request_returns_requested_slice(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    payload = bytes(range(256)) * 4
    s3.add_object(BUCKET, "video/clip.mp4", payload, "video/mp4")

    stream = gateway.get_object_range("video/clip.mp4", 100, 199)

    assert b"".join(stream.body) == payload[100:200]
    assert stream.content_range == "bytes 100-199/1024"
    assert stream.total_size == 1024
    assert stream.content_length == 100
    assert s3.calls[-1][1]["Range"] == "bytes=100-199"


def test_ignored_range_is_reported(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    s3.add_object(BUCKET, "video/clip.mp4", b"x" * 1000)
    s3.ignore_range = True

    with pytest.raises(StorageError) as excinfo:
        gateway.get_object_range("video/clip.mp4", 0, 9)
    assert excinfo.value.reason == StorageError.RANGE_NOT_SUPPORTED


def test_missing_object_maps_to_not_found(gateway: ObjectStorageGateway) -> None:
    with pytest.raises(StorageError) as excinfo:
        gateway.get_object_range("video/nope.mp4")
    assert excinfo.value.not_found


def test_download_to_writes_file(gateway: ObjectStorageGateway, s3: FakeS3Client, tmp_path: Path) -> None:
    s3.add_object(BUCKET, "magazine/issue.pdf", b"%PDF-1.7 body")

    target = gateway.download_to("magazine/issue.pdf", tmp_path / "scratch" / "issue.pdf")

    assert target.read_bytes() == b"%PDF-1.7 body"


def test_list_objects_and_delete(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    s3.add_object(BUCKET, "ebook/a.epub", b"a")
    s3.add_object(BUCKET, "ebook/b.epub", b"bb")
    s3.add_object(BUCKET, "audio/c.mp3", b"ccc")

    listed = gateway.list_objects("ebook/")
    assert [entry.key for entry in listed] == ["ebook/a.epub", "ebook/b.epub"]
    assert listed[1].size == 2

    assert gateway.delete_object("ebook/a.epub") is True
    assert not gateway.exists("ebook/a.epub")


def test_presigned_and_public_urls(gateway: ObjectStorageGateway) -> None:
    assert gateway.presigned_url("ebook/a.epub", expires_in=60).endswith("expires=60")
    assert gateway.public_object_url("/ebook/a.epub") == "https://cdn.example/ebook/a.epub"


def test_status_reports_configuration(gateway: ObjectStorageGateway) -> None:
    status = gateway.status()

    assert status["configured"] is True
    assert status["bucket"] == BUCKET


def test_abort_failure_is_typed(gateway: ObjectStorageGateway, s3: FakeS3Client) -> None:
    session = gateway.create_multipart_session("video/big.mp4", total_parts=2)
    s3.fail_operations["abort_multipart_upload"] = "InternalError"

    with pytest.raises(MultipartAbortFailure) as excinfo:
        gateway.abort_multipart(session)
    assert excinfo.value.upload_id == session.upload_id


def test_r2_account_id_derives_endpoint() -> None:
    settings = MediaShelfSettings(storage_account_id="abc123")

    assert settings.resolved_storage_endpoint() == "https://abc123.r2.cloudflarestorage.com"
    assert settings.resolved_storage_region() == "auto"
