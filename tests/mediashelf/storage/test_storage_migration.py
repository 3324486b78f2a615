from __future__ import annotations

from pathlib import Path

from mediashelf.catalog import SourceItem
from mediashelf.storage import MultipartUploader, ObjectStorageGateway
from mediashelf.storage.migration import StorageMigrator, object_key_for
from tests.helpers.catalog_stub import MemoryCatalog
from tests.helpers.fake_s3 import FakeS3Client

BUCKET = "media-test"


def _setup(tmp_path: Path):
    media_root = tmp_path / "media" / "ebooks"
    (media_root / "scifi").mkdir(parents=True)
    first = media_root / "scifi" / "dune.epub"
    first.write_bytes(b"dune")
    second = media_root / "hyperion.epub"
    second.write_bytes(b"hyperion")
    catalog = MemoryCatalog(
        [
            SourceItem(id=1, item_type="ebook", source_path=str(first), title="Dune"),
            SourceItem(id=2, item_type="ebook", source_path=str(second), title="Hyperion"),
            SourceItem(
                id=3,
                item_type="ebook",
                source_path="s3://media-test/ebook/remote.epub",
                title="Remote",
            ),
            SourceItem(
                id=4,
                item_type="ebook",
                source_path=str(media_root / "gone.epub"),
                title="Gone",
            ),
        ]
    )
    s3 = FakeS3Client()
    gateway = ObjectStorageGateway(s3, bucket=BUCKET)
    uploader = MultipartUploader(gateway, part_size_bytes=1024, min_part_size_bytes=1)
    migrator = StorageMigrator(catalog, gateway, uploader, media_roots={"ebook": str(media_root)})
    return catalog, s3, migrator


def test_object_key_is_relative_to_media_root(tmp_path: Path) -> None:
    root = tmp_path / "media"
    item = SourceItem(id=1, item_type="audio", source_path=str(root / "a" / "b.mp3"), title="B")

    assert object_key_for(item, str(root)) == "audio/a/b.mp3"
    assert object_key_for(item) == "audio/b.mp3"


def test_migrate_uploads_and_records_keys(tmp_path: Path) -> None:
    catalog, s3, migrator = _setup(tmp_path)

    report = migrator.migrate("ebook")

    assert report.uploaded == ["ebook/scifi/dune.epub", "ebook/hyperion.epub"]
    assert catalog.item(1).storage_key == "ebook/scifi/dune.epub"
    assert s3.objects[(BUCKET, "ebook/hyperion.epub")]["data"] == b"hyperion"
    assert [entry["id"] for entry in report.failed] == [4]


def test_existing_objects_are_skipped(tmp_path: Path) -> None:
    catalog, s3, migrator = _setup(tmp_path)
    s3.add_object(BUCKET, "ebook/scifi/dune.epub", b"already there")

    report = migrator.migrate("ebook")

    assert report.skipped == ["ebook/scifi/dune.epub"]
    assert s3.objects[(BUCKET, "ebook/scifi/dune.epub")]["data"] == b"already there"
    assert catalog.item(1).storage_key == "ebook/scifi/dune.epub"


def test_dry_run_with_limit_touches_nothing(tmp_path: Path) -> None:
    catalog, s3, migrator = _setup(tmp_path)

    report = migrator.migrate("ebook", limit=1, dry_run=True)

    assert report.planned == ["ebook/scifi/dune.epub"]
    assert s3.calls == []
    assert catalog.item(1).storage_key is None
