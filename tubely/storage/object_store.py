from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tubely.core.config import Settings
from tubely.core.errors import StorageError
from tubely.core.logging import get_logger


def join_url(base_url: str, key: str) -> str:
    return f"{base_url.rstrip('/')}/{key.lstrip('/')}"


class ObjectStore(ABC):
    """Durable storage for processed uploads.

    Implementations store the file under exactly the key they are given and
    return a fully qualified URL for it.
    """

    @abstractmethod
    def upload(self, local_path: Path, key: str, content_type: str) -> str: ...

    @abstractmethod
    def url_for(self, key: str) -> str: ...


class LocalObjectStore(ObjectStore):
    """Filesystem-backed object store suitable for development."""

    def __init__(self, base_path: Path, public_base_url: str | None = None):
        self.base_path = Path(base_path)
        self.public_base_url = public_base_url
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(component="local_object_store")

    def _resolve(self, key: str) -> Path:
        target = (self.base_path / key).resolve()
        if not target.is_relative_to(self.base_path.resolve()):
            raise StorageError(f"Key escapes storage root: {key}")
        return target

    def upload(self, local_path: Path, key: str, content_type: str) -> str:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, target)
        except OSError as exc:
            self.logger.error("local_upload_failed", key=key, error=str(exc))
            raise StorageError(f"Could not store object {key}") from exc
        self.logger.info("local_upload_complete", key=key, content_type=content_type)
        return self.url_for(key)

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return join_url(self.public_base_url, key)
        return self._resolve(key).as_uri()


class S3ObjectStore(ObjectStore):
    """Amazon S3 (or S3-compatible) storage through boto3."""

    def __init__(
        self,
        bucket: str,
        region: str,
        *,
        client: Any | None = None,
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ):
        self.bucket = bucket
        self.region = region
        self.public_base_url = public_base_url
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        self.logger = get_logger(component="s3_object_store", bucket=bucket)

    def upload(self, local_path: Path, key: str, content_type: str) -> str:
        try:
            self.client.upload_file(
                str(local_path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            self.logger.error("s3_upload_failed", key=key, error=str(exc))
            raise StorageError(f"Could not upload object {key}") from exc
        self.logger.info("s3_upload_complete", key=key, content_type=content_type)
        return self.url_for(key)

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return join_url(self.public_base_url, key)
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def get_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "local":
        return LocalObjectStore(settings.object_store_root, public_base_url=settings.public_base_url)
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("s3 backend requires a bucket")
        return S3ObjectStore(
            settings.s3_bucket,
            settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            public_base_url=settings.public_base_url,
            access_key_id=settings.secrets.s3_access_key_id,
            secret_access_key=settings.secrets.s3_secret_access_key,
        )
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


__all__ = [
    "ObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "get_object_store",
    "join_url",
]
