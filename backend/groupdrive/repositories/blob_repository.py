import logging
import os
import re
import shutil
import uuid
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from groupdrive.core.config import settings
from groupdrive.core.exceptions import NotFound, StorageIOError

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 1024 * 1024


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


def generate_key(filename: str) -> str:
    return f"files/{uuid.uuid4().hex}_{sanitize_filename(filename)}"


class BlobStorage(ABC):
    """Where finished file bytes live. ``File.path`` holds the key."""

    @abstractmethod
    def save_bytes(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def save_file(self, key: str, source_path: str, content_type: str) -> None:
        """Stores a local file under ``key``. The source file is consumed."""
        raise NotImplementedError

    @abstractmethod
    def open_stream(self, key: str, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if not path.startswith(self.root + os.sep):
            raise StorageIOError(f"Invalid storage key: {key}")
        return path

    def save_bytes(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Failed to write %s: %s", key, e)
            raise StorageIOError(f"Failed to store file: {e}")

    def save_file(self, key: str, source_path: str, content_type: str) -> None:
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            shutil.move(source_path, path)
        except OSError as e:
            logger.error("Failed to move %s into storage: %s", source_path, e)
            raise StorageIOError(f"Failed to store file: {e}")

    def open_stream(self, key: str, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            handle = open(self._path(key), "rb")
        except FileNotFoundError:
            raise NotFound("File not found in storage")
        except OSError as e:
            raise StorageIOError(f"Failed to read file: {e}")

        def _iterate():
            with handle:
                while True:
                    data = handle.read(chunk_size)
                    if not data:
                        break
                    yield data

        return _iterate()

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            logger.warning("File %s already missing from storage", key)
        except OSError as e:
            raise StorageIOError(f"Failed to delete file: {e}")


class S3BlobStorage(BlobStorage):
    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def save_bytes(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to upload %s to S3: %s", key, e)
            raise StorageIOError(f"Failed to upload to S3: {e}")

    def save_file(self, key: str, source_path: str, content_type: str) -> None:
        try:
            self.client.upload_file(source_path, self.bucket, key, ExtraArgs={"ContentType": content_type})
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to upload %s to S3: %s", key, e)
            raise StorageIOError(f"Failed to upload to S3: {e}")
        try:
            os.remove(source_path)
        except OSError as e:
            logger.warning("Could not remove assembled file %s: %s", source_path, e)

    def open_stream(self, key: str, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFound("File not found in storage")
            raise StorageIOError(f"S3 Client Error: {e}")
        except BotoCoreError as e:
            raise StorageIOError(f"S3 Client Error: {e}")
        return response["Body"].iter_chunks(chunk_size=chunk_size)

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(f"Failed to delete from S3: {e}")


def create_s3_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.AWS_S3_ENDPOINT_URL,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
    )


@lru_cache
def get_blob_storage() -> BlobStorage:
    if settings.STORAGE_BACKEND == "s3":
        if not settings.AWS_S3_BUCKET_NAME:
            raise RuntimeError("AWS_S3_BUCKET_NAME must be set when STORAGE_BACKEND is 's3'")
        return S3BlobStorage(create_s3_client(), settings.AWS_S3_BUCKET_NAME)
    return LocalBlobStorage(settings.UPLOAD_DIR)
