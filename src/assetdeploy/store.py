"""
Object stores -- where the assets live once deployed.

Each store knows how to list, read, write and batch-delete objects.
The engine never talks to a transport directly.

S3: Amazon S3 or any S3-compatible endpoint (MinIO, SeaweedFS, R2).
Local: Plain directory used as a bucket. For NAS mounts and tests.
"""

from __future__ import annotations

import logging
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .errors import ObjectNotFoundError
from .models import DeployConfig, StoreType

logger = logging.getLogger("assetdeploy.store")

MAX_DELETE_BATCH = 1000

Body = Union[bytes, IO[bytes]]


@dataclass(frozen=True)
class ObjectMeta:
    """Listing entry for one stored object."""

    key: str
    last_modified: datetime


class ObjectStore(ABC):
    """Abstract object store used by the deploy engine."""

    @abstractmethod
    def list_objects(self) -> Iterator[ObjectMeta]:
        """Yield every object in the store, across all listing pages."""

    @abstractmethod
    def get_object(self, key: str) -> bytes:
        """Read one object.

        Raises:
            ObjectNotFoundError: If ``key`` does not exist.
        """

    @abstractmethod
    def put_object(
        self,
        key: str,
        body: Body,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        **extra,
    ) -> None:
        """Write one object.

        Args:
            key: Destination key.
            body: Raw bytes or a binary file handle.
            content_type: MIME type stored with the object.
            cache_control: Cache-Control header stored with the object.
            **extra: Store-specific request options (e.g. ``ACL``).
        """

    @abstractmethod
    def delete_objects(self, keys: list[str]) -> list[str]:
        """Delete up to ``MAX_DELETE_BATCH`` keys in one request.

        Returns:
            Keys the store reported it could not delete.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store location."""


class S3ObjectStore(ObjectStore):
    """S3-compatible object store backed by boto3."""

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_session_token: Optional[str] = None,
        client=None,
    ):
        self._bucket = bucket_name

        if client is not None:
            self._client = client
            return

        kwargs: dict = {
            "config": Config(
                region_name=region,
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        }
        if aws_access_key_id and aws_secret_access_key:
            kwargs["aws_access_key_id"] = aws_access_key_id
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        if aws_session_token:
            kwargs["aws_session_token"] = aws_session_token
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._client = boto3.client("s3", **kwargs)

    @property
    def name(self) -> str:
        return f"s3://{self._bucket}"

    @property
    def bucket(self) -> str:
        return self._bucket

    def list_objects(self) -> Iterator[ObjectMeta]:
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self._bucket):
            for obj in page.get("Contents", []):
                yield ObjectMeta(key=obj["Key"], last_modified=obj["LastModified"])

    def get_object(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise ObjectNotFoundError(key) from exc
            raise
        return response["Body"].read()

    def put_object(
        self,
        key: str,
        body: Body,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        **extra,
    ) -> None:
        request = {"Bucket": self._bucket, "Key": key, "Body": body}
        if content_type:
            request["ContentType"] = content_type
        if cache_control:
            request["CacheControl"] = cache_control
        request.update(extra)
        self._client.put_object(**request)

    def delete_objects(self, keys: list[str]) -> list[str]:
        if not keys:
            return []
        if len(keys) > MAX_DELETE_BATCH:
            raise ValueError(
                f"Cannot delete {len(keys)} objects in one request (max {MAX_DELETE_BATCH})"
            )
        response = self._client.delete_objects(
            Bucket=self._bucket,
            Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
        )
        failed = []
        for error in response.get("Errors", []):
            logger.error(
                "Failed to delete %s: %s %s",
                error.get("Key"),
                error.get("Code"),
                error.get("Message"),
            )
            failed.append(error.get("Key"))
        return failed


class LocalObjectStore(ObjectStore):
    """A local directory treated as a bucket.

    Keys map to relative paths. ``last_modified`` is the file mtime.
    """

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return f"file://{self.root}"

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes store root: {key}")
        return path

    def list_objects(self) -> Iterator[ObjectMeta]:
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            yield ObjectMeta(
                key=path.relative_to(self.root).as_posix(),
                last_modified=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
            )

    def get_object(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        return path.read_bytes()

    def put_object(
        self,
        key: str,
        body: Body,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        **extra,
    ) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(body, (bytes, bytearray)):
            path.write_bytes(body)
        else:
            with open(path, "wb") as fh:
                shutil.copyfileobj(body, fh)
        logger.debug("Stored %s (%s)", key, content_type or "unknown type")

    def delete_objects(self, keys: list[str]) -> list[str]:
        if len(keys) > MAX_DELETE_BATCH:
            raise ValueError(
                f"Cannot delete {len(keys)} objects in one request (max {MAX_DELETE_BATCH})"
            )
        for key in keys:
            path = self._path_for(key)
            try:
                path.unlink()
            except FileNotFoundError:
                logger.debug("Already gone: %s", key)
        return []


def chunked(keys: Iterable[str], size: int = MAX_DELETE_BATCH) -> Iterator[list[str]]:
    """Split keys into lists of at most ``size`` items."""
    batch: list[str] = []
    for key in keys:
        batch.append(key)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


def create_store(config: DeployConfig) -> ObjectStore:
    """Factory function to create the configured object store.

    Args:
        config: Deploy configuration.

    Returns:
        Instantiated ObjectStore.

    Raises:
        ValueError: If required settings are missing or the type is unsupported.
    """
    if config.store_type == StoreType.S3:
        if not config.bucket:
            raise ValueError("Bucket name required: set 'bucket' or ASSETDEPLOY_BUCKET")
        return S3ObjectStore(
            bucket_name=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            aws_session_token=os.getenv("AWS_SESSION_TOKEN"),
        )
    if config.store_type == StoreType.LOCAL:
        if not config.local_path:
            raise ValueError("Local store requires 'local_path'")
        return LocalObjectStore(config.local_path)

    raise ValueError(f"Unsupported store type: {config.store_type}")
