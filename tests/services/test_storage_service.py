"""Tests for ObjectStorageService against the in-memory S3 client."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from objectstore.infra.storage.client import (
    Bucket,
    LocalIOError,
    NotFoundError,
    ObjectListing,
    ServiceError,
)
from objectstore.infra.storage.s3_client import StorageOptions
from objectstore.services.storage_service import ObjectStorageService, PageIterator


class _InterruptedBody(io.BytesIO):
    def read(self, *args):
        raise KeyboardInterrupt

    readinto = read


class TestConstruction:
    def test_uses_injected_client(self, fake_s3):
        service = ObjectStorageService(client=fake_s3)
        assert service.client is fake_s3
        assert service.region == "eu-west-1"

    def test_uses_client_from_options(self, fake_s3):
        service = ObjectStorageService(StorageOptions(client=fake_s3, region="us-west-2"))
        assert service.client is fake_s3
        assert service.region == "us-west-2"

    def test_rejects_options_and_client_together(self, fake_s3):
        with pytest.raises(ValueError, match="either options or client"):
            ObjectStorageService(StorageOptions(), client=fake_s3)


class TestBuckets:
    def test_create_then_get_returns_bucket(self, service):
        created = service.create_bucket("b1")

        assert created == Bucket(name="b1", region="eu-west-1")
        fetched = service.get_bucket("b1")
        assert fetched is not None
        assert fetched.name == "b1"

    def test_create_uses_region_constraint(self, service, fake_s3):
        service.create_bucket("b1", "eu-central-1")
        assert fake_s3.buckets["b1"].region == "eu-central-1"

    def test_create_in_us_east_1_omits_constraint(self, service, fake_s3):
        bucket = service.create_bucket("b1", "us-east-1")
        assert bucket.region == "us-east-1"
        assert fake_s3.buckets["b1"].region == "us-east-1"

    def test_create_is_idempotent(self, service, fake_s3):
        first = service.create_bucket("b1")
        second = service.create_bucket("b1")

        assert second.name == first.name
        assert fake_s3.count("CreateBucket") == 1

    def test_existing_bucket_carries_region_and_creation_date(self, service, fake_s3):
        fake_s3.add_bucket("b1")

        bucket = service.create_bucket("b1", "us-west-2")

        assert bucket.region == "eu-west-1"
        assert bucket.creation_date == fake_s3.buckets["b1"].created

    def test_existing_bucket_reports_its_own_region(self, service):
        created = service.create_bucket("b1", "eu-central-1")
        again = service.create_bucket("b1")

        assert created.region == again.region == "eu-central-1"
        assert again.creation_date is not None

    def test_existing_us_east_1_bucket_region(self, service):
        service.create_bucket("b1", "us-east-1")
        assert service.create_bucket("b1").region == "us-east-1"

    def test_create_logs_existing_bucket(self, service, caplog):
        service.create_bucket("b1")
        with caplog.at_level(logging.INFO, logger="objectstore.storage"):
            service.create_bucket("b1")
        assert "bucket_already_exists bucket=b1" in caplog.text

    def test_get_missing_bucket_returns_none(self, service):
        service.create_bucket("b1")
        assert service.get_bucket("missing") is None

    def test_list_buckets(self, service):
        service.create_bucket("b1")
        service.create_bucket("b2")

        names = [bucket.name for bucket in service.list_buckets()]
        assert names == ["b1", "b2"]

    def test_bucket_exists_uses_head_not_listing(self, service, fake_s3):
        fake_s3.add_bucket("b1")

        assert service.bucket_exists("b1") is True
        assert service.bucket_exists("nope") is False
        assert fake_s3.count("ListBuckets") == 0

    def test_log_all_buckets(self, service, fake_s3, caplog):
        fake_s3.add_bucket("b1")
        with caplog.at_level(logging.INFO, logger="objectstore.storage"):
            service.log_all_buckets()
        assert "* b1" in caplog.text


class TestDeleteBucket:
    def test_deletes_empty_bucket(self, service):
        service.create_bucket("b1")
        service.delete_bucket("b1")
        assert service.get_bucket("b1") is None

    def test_drains_objects_across_pages(self, service, fake_s3):
        fake_s3.page_size = 2
        fake_s3.add_bucket("b1")
        for index in range(5):
            fake_s3.add_object("b1", f"key-{index}", b"data")

        service.delete_bucket("b1")

        assert service.get_bucket("b1") is None
        assert fake_s3.count("ListObjectsV2") == 3

    def test_drains_versions_and_delete_markers(self, service, fake_s3):
        fake_s3.page_size = 2
        fake_s3.add_bucket("b1", versioned=True)
        for index in range(3):
            fake_s3.add_object("b1", f"key-{index}", b"v1")
            fake_s3.add_object("b1", f"key-{index}", b"v2")

        service.delete_bucket("b1")

        assert "b1" not in fake_s3.buckets
        assert fake_s3.count("ListObjectVersions") > 1

    def test_removes_objects_before_versions_before_bucket(self, service, fake_s3):
        fake_s3.add_bucket("b1")
        fake_s3.add_object("b1", "a.txt", b"x")

        service.delete_bucket("b1")

        relevant = [
            call
            for call in fake_s3.calls
            if call in {"ListObjectsV2", "ListObjectVersions", "DeleteBucket"}
        ]
        assert relevant == ["ListObjectsV2", "ListObjectVersions", "DeleteBucket"]

    def test_missing_bucket_raises_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.delete_bucket("missing")


class TestObjects:
    @pytest.fixture(autouse=True)
    def buckets(self, fake_s3):
        fake_s3.add_bucket("b1")
        fake_s3.add_bucket("b2")

    def test_put_then_get_round_trip(self, service, make_file):
        source = make_file("report.bin", b"\x00\x01payload\xff")

        key = service.put_object("b1", source)
        stored = service.get_object("b1", key)

        assert key == "report.bin"
        assert stored.content == b"\x00\x01payload\xff"
        assert stored.content_length == len(stored.content)
        assert stored.key == "report.bin"

    def test_put_with_explicit_key_overwrites(self, service, make_file):
        service.put_object("b1", make_file("one.txt", "first"), key="data.txt")
        service.put_object("b1", make_file("two.txt", "second"), key="data.txt")

        assert service.get_object("b1", "data.txt").content == b"second"

    def test_put_sets_content_type_from_extension(self, service, make_file):
        service.put_object("b1", make_file("page.html", "<p>hi</p>"))
        assert service.get_object("b1", "page.html").content_type == "text/html"

    def test_put_missing_file_raises_local_io_error(self, service, tmp_path):
        with pytest.raises(LocalIOError):
            service.put_object("b1", tmp_path / "absent.txt")

    def test_get_missing_key_raises_not_found(self, service):
        with pytest.raises(NotFoundError) as excinfo:
            service.get_object("b1", "absent.txt")
        assert excinfo.value.error_code == "NoSuchKey"
        assert excinfo.value.status_code == 404

    def test_delete_then_get_raises_not_found(self, service, make_file):
        service.put_object("b1", make_file("a.txt", "hello"))

        service.delete_object("b1", "a.txt")

        with pytest.raises(NotFoundError):
            service.get_object("b1", "a.txt")

    def test_delete_objects_removes_exactly_given_keys(self, service, fake_s3, make_file):
        for name in ("k1", "k2", "k3"):
            service.put_object("b1", make_file(name, name))

        service.delete_objects("b1", "k1", "k2")

        assert service.list_objects("b1").keys == ["k3"]
        assert fake_s3.count("DeleteObjects") == 1

    def test_delete_objects_without_keys_is_noop(self, service, fake_s3):
        service.delete_objects("b1")
        assert fake_s3.count("DeleteObjects") == 0

    def test_copy_scenario(self, service, make_file):
        service.put_object("b1", make_file("a.txt", "hello"))

        listing = service.list_objects("b1")
        assert isinstance(listing, ObjectListing)
        assert listing.keys == ["a.txt"]
        assert listing.summaries[0].size == 5

        service.copy_object("a.txt", "b1", "b2")
        assert service.get_object("b2", "a.txt").content == b"hello"

    def test_copy_missing_source_raises_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.copy_object("absent.txt", "b1", "b2")

    def test_list_objects_with_prefix(self, service, fake_s3):
        fake_s3.add_object("b1", "logs/1", b"")
        fake_s3.add_object("b1", "logs/2", b"")
        fake_s3.add_object("b1", "data/1", b"")

        listing = service.list_objects("b1", "logs/")

        assert listing.prefix == "logs/"
        assert listing.keys == ["logs/1", "logs/2"]

    def test_list_objects_returns_single_page(self, service, fake_s3):
        fake_s3.page_size = 2
        for index in range(3):
            fake_s3.add_object("b1", f"key-{index}", b"")

        first = service.list_objects("b1")
        assert first.keys == ["key-0", "key-1"]
        assert first.is_truncated is True
        assert fake_s3.count("ListObjectsV2") == 1

        second = service.list_objects(
            "b1", continuation_token=first.next_continuation_token
        )
        assert second.keys == ["key-2"]
        assert second.is_truncated is False

    def test_list_missing_bucket_raises_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.list_objects("missing")

    def test_log_objects(self, service, fake_s3, caplog):
        fake_s3.add_object("b1", "a.txt", b"")
        with caplog.at_level(logging.INFO, logger="objectstore.storage"):
            service.log_objects("b1")
        assert "* a.txt" in caplog.text


class TestFiles:
    @pytest.fixture(autouse=True)
    def bucket(self, fake_s3):
        fake_s3.add_bucket("b1")
        fake_s3.add_object("b1", "docs/S2.png", b"image-bytes")

    def test_get_object_file_to_target_overwrites(self, service, tmp_path):
        target = tmp_path / "out.png"
        target.write_bytes(b"stale content that is longer")

        result = service.get_object_file("b1", "docs/S2.png", target)

        assert result == target
        assert target.read_bytes() == b"image-bytes"

    def test_get_object_file_generates_temp_file(self, service):
        result = service.get_object_file("b1", "docs/S2.png")
        try:
            assert result.name.startswith("S2_")
            assert result.suffix == ".png"
            assert result.read_bytes() == b"image-bytes"
        finally:
            result.unlink()

    def test_get_object_file_missing_key_removes_temp_file(self, service, monkeypatch, tmp_path):
        generated = tmp_path / "abs_generated.txt"
        generated.touch()
        monkeypatch.setattr(service, "create_temp_file", lambda key: generated)

        with pytest.raises(NotFoundError):
            service.get_object_file("b1", "absent.txt")
        assert not generated.exists()

    def test_get_object_file_interrupted_removes_temp_file(
        self, service, fake_s3, monkeypatch, tmp_path
    ):
        generated = tmp_path / "S2_generated.png"
        generated.touch()
        monkeypatch.setattr(service, "create_temp_file", lambda key: generated)
        monkeypatch.setattr(
            fake_s3, "get_object", lambda **kwargs: {"Body": _InterruptedBody()}
        )

        with pytest.raises(KeyboardInterrupt):
            service.get_object_file("b1", "docs/S2.png")
        assert not generated.exists()

    def test_get_object_file_unwritable_target(self, service, tmp_path):
        with pytest.raises(LocalIOError):
            service.get_object_file("b1", "docs/S2.png", tmp_path / "no" / "dir.png")

    def test_create_temp_file_pads_short_names(self, service):
        short = service.create_temp_file("S2.png")
        longer = service.create_temp_file("S22.png")
        bare = service.create_temp_file("folder/x")
        try:
            assert short.name.startswith("S2_")
            assert short.name.endswith(".png")
            assert longer.name.startswith("S22")
            assert longer.name.endswith(".png")
            assert bare.name.startswith("x__")
            assert bare.suffix == ""
        finally:
            for path in (short, longer, bare):
                path.unlink()

    def test_download_file(self, service, tmp_path):
        target = tmp_path / "download.png"

        result = service.download_file("b1", "docs/S2.png", target)

        assert result == target
        assert target.read_bytes() == b"image-bytes"

    def test_download_missing_key_raises_not_found(self, service, tmp_path):
        with pytest.raises(NotFoundError):
            service.download_file("b1", "absent", tmp_path / "x")

    def test_upload_file(self, service, make_file):
        source = make_file("upload.csv", "a,b\n1,2\n")

        service.upload_file("b1", "tables/upload.csv", source)

        assert service.get_object("b1", "tables/upload.csv").content == b"a,b\n1,2\n"

    def test_upload_to_missing_bucket_raises_service_error(self, service, make_file):
        source = make_file("upload.csv", "a")

        with pytest.raises(ServiceError) as excinfo:
            service.upload_file("missing", "upload.csv", source)
        assert isinstance(excinfo.value, NotFoundError)
        assert excinfo.value.operation == "UploadFile"

    def test_upload_missing_file_raises_local_io_error(self, service, tmp_path):
        with pytest.raises(LocalIOError):
            service.upload_file("b1", "k", Path(tmp_path / "absent.csv"))


class TestPageIterator:
    def test_stops_when_marker_is_none(self):
        pages = {None: ([1, 2], "a"), "a": ([3], "b"), "b": ([], None)}
        iterator = PageIterator(lambda marker: pages[marker])

        assert list(iterator) == [[1, 2], [3], []]

    def test_is_restartable(self):
        calls = []

        def fetch(marker):
            calls.append(marker)
            return ([marker], None if marker else "next")

        iterator = PageIterator(fetch)
        assert list(iterator) == list(iterator)
        assert calls == [None, "next", None, "next"]

    def test_is_lazy(self):
        calls = []

        def fetch(marker):
            calls.append(marker)
            return ([], "more")

        iterator = iter(PageIterator(fetch))
        assert calls == []
        next(iterator)
        assert calls == [None]
