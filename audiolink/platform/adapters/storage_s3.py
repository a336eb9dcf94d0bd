import logging
from datetime import datetime, timezone
from typing import Iterator
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from audiolink.core.config import Settings
from audiolink.core.errors import BlobNotFoundError, StorageError
from audiolink.platform.ports.object_storage import ObjectStoragePort, DEFAULT_CHUNK_SIZE

log = logging.getLogger("storage.s3")

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}

def _is_missing(err: ClientError) -> bool:
    return err.response.get("Error", {}).get("Code") in _MISSING_CODES

class S3Storage(ObjectStoragePort):
    def __init__(self, settings: Settings, client=None):
        if client is None:
            session = boto3.session.Session(
                aws_access_key_id=settings.S3_ACCESS_KEY,
                aws_secret_access_key=settings.S3_SECRET_KEY,
                region_name=settings.S3_REGION,
            )
            client = session.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL,
                config=Config(signature_version="s3v4"),
            )
        self.s3 = client
        self.bucket = settings.S3_BUCKET

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            log.error("put failed bucket=%s key=%s: %s", self.bucket, key, e)
            raise StorageError(f"Failed to write s3://{self.bucket}/{key}: {e}") from e

    def get_bytes(self, key: str) -> bytes:
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(f"Blob not found: {key}") from e
            raise StorageError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e

    def iter_bytes(self, key: str, start: int = 0, end: int | None = None, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        byte_range = f"bytes={start}-" if end is None else f"bytes={start}-{end}"
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key, Range=byte_range)
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(f"Blob not found: {key}") from e
            raise StorageError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        return obj["Body"].iter_chunks(chunk_size=chunk_size)

    def _head(self, key: str) -> dict:
        try:
            return self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(f"Blob not found: {key}") from e
            raise StorageError(f"Failed to stat s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat s3://{self.bucket}/{key}: {e}") from e

    def size(self, key: str) -> int:
        return int(self._head(key)["ContentLength"])

    def modified_at(self, key: str) -> datetime:
        last_modified = self._head(key)["LastModified"]
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        return last_modified.astimezone(timezone.utc)

    def exists(self, key: str) -> bool:
        try:
            self.size(key)
        except BlobNotFoundError:
            return False
        return True

    def delete(self, key: str) -> None:
        # S3 DeleteObject already succeeds for missing keys
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return
            raise StorageError(f"Failed to delete s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to delete s3://{self.bucket}/{key}: {e}") from e

    def list_keys(self) -> Iterator[str]:
        paginator = self.s3.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket):
                for item in page.get("Contents", []):
                    yield item["Key"]
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list s3://{self.bucket}: {e}") from e
