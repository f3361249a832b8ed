"""
Object storage for exported CSVs, generated workbooks and the system
config document (S3-compatible bucket).
"""

import logging
from dataclasses import dataclass
from datetime import datetime

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .. import config

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Listing, download, upload or delete failure in object storage."""


@dataclass(frozen=True)
class StoredFile:
    key: str
    size: int
    last_modified: datetime

    @property
    def name(self) -> str:
        return self.key.rsplit("/", 1)[-1]


def make_client(region: str | None = None):
    """S3 client with retry-friendly config."""
    client_config = Config(
        retries={"max_attempts": 5, "mode": "adaptive"},
        read_timeout=config.HTTP_TIMEOUT,
        connect_timeout=10,
    )
    return boto3.client("s3", region_name=region or config.STORAGE_REGION, config=client_config)


class ObjectStore:
    """Thin wrapper over one bucket.

    Every botocore failure surfaces as StorageError; nothing is retried here
    beyond what the client config does.
    """

    def __init__(self, bucket: str | None = None, client=None):
        self.bucket = bucket or config.STORAGE_BUCKET
        self.client = client if client is not None else make_client()

    def list_files(self, prefix: str = "", limit: int = 200) -> list[StoredFile]:
        """Files under prefix, newest first, at most limit entries."""
        files: list[StoredFile] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    if obj["Key"].endswith("/"):
                        continue
                    files.append(StoredFile(obj["Key"], obj.get("Size", 0), obj["LastModified"]))
        except (BotoCoreError, ClientError) as exc:
            logger.error("Listing '%s' failed: %s", prefix, exc)
            raise StorageError(f"Could not list files under '{prefix}': {exc}") from exc

        files.sort(key=lambda f: f.last_modified, reverse=True)
        return files[:limit]

    def download_bytes(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            logger.error("Download of '%s' failed: %s", key, exc)
            raise StorageError(f"Could not download '{key}': {exc}") from exc

    def download_text(self, key: str) -> str:
        return self.download_bytes(key).decode("utf-8-sig")

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"Could not check '{key}': {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Could not check '{key}': {exc}") from exc
        return True

    def upload(
        self,
        key: str,
        data: bytes | str,
        content_type: str = "text/csv",
        overwrite: bool = False,
    ) -> str:
        """Store data under key. Existing keys are refused unless overwrite is set."""
        if not overwrite and self.exists(key):
            raise StorageError(f"'{key}' already exists")
        body = data.encode("utf-8") if isinstance(data, str) else data
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Upload of '%s' failed: %s", key, exc)
            raise StorageError(f"Could not upload '{key}': {exc}") from exc
        logger.info("Uploaded %s (%d bytes)", key, len(body))
        return key

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Delete of '%s' failed: %s", key, exc)
            raise StorageError(f"Could not delete '{key}': {exc}") from exc
        logger.info("Deleted %s", key)

    def find_latest(self, *terms: str, prefix: str = "") -> StoredFile | None:
        """Newest file whose name contains every term (case-insensitive)."""
        lowered = [t.lower() for t in terms if t]
        for stored in self.list_files(prefix):
            name = stored.name.lower()
            if all(term in name for term in lowered):
                return stored
        return None
