from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from groupdrive.core.exceptions import NotFound, StorageIOError
from groupdrive.repositories.blob_repository import S3BlobStorage, generate_key, sanitize_filename


def test_generate_key_is_unique_and_safe():
    first = generate_key("My Report (final).pdf")
    second = generate_key("My Report (final).pdf")
    assert first != second
    assert first.startswith("files/")
    assert first.endswith("_My_Report__final_.pdf")
    assert sanitize_filename("../etc/passwd") == ".._etc_passwd"


def test_local_storage_round_trip(local_storage, tmp_path):
    local_storage.save_bytes("files/a.txt", b"abc", "text/plain")
    assert b"".join(local_storage.open_stream("files/a.txt", chunk_size=1)) == b"abc"

    source = tmp_path / "assembled"
    source.write_bytes(b"moved")
    local_storage.save_file("files/b.txt", str(source), "text/plain")
    assert not source.exists()
    assert b"".join(local_storage.open_stream("files/b.txt")) == b"moved"

    local_storage.delete("files/a.txt")
    with pytest.raises(NotFound):
        local_storage.open_stream("files/a.txt")
    # Deleting twice is harmless
    local_storage.delete("files/a.txt")


def test_local_storage_rejects_escaping_keys(local_storage):
    with pytest.raises(StorageIOError):
        local_storage.save_bytes("../outside.txt", b"x", "text/plain")


def test_s3_storage_maps_errors():
    client = MagicMock()
    storage = S3BlobStorage(client, "bucket")

    storage.save_bytes("files/a.txt", b"abc", "text/plain")
    client.put_object.assert_called_once_with(Bucket="bucket", Key="files/a.txt", Body=b"abc", ContentType="text/plain")

    client.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
    with pytest.raises(NotFound):
        storage.open_stream("files/missing.txt")

    client.delete_object.side_effect = ClientError({"Error": {"Code": "500"}}, "DeleteObject")
    with pytest.raises(StorageIOError) as exc:
        storage.delete("files/a.txt")
    assert exc.value.retryable is True


def test_s3_storage_streams_body():
    client = MagicMock()
    client.get_object.return_value = {"Body": MagicMock(iter_chunks=MagicMock(return_value=iter([b"a", b"b"])))}
    storage = S3BlobStorage(client, "bucket")
    assert b"".join(storage.open_stream("files/a.txt")) == b"ab"
