"""Storage backends for uploaded documents."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from thats_my_recruiter.core.constants import DOCUMENTS_BUCKET
from thats_my_recruiter.paths import OBJECT_STORE_DIR
from thats_my_recruiter.services.errors import StoreError

LOGGER = logging.getLogger(__name__)


def _normalise_key(path: str) -> str:
    key = PurePosixPath(path.replace("\\", "/").lstrip("/"))
    if not key.parts or ".." in key.parts:
        raise StoreError(f"Invalid object path: {path!r}")
    return str(key)


class ObjectStore:
    """Interface implemented by object storage providers."""

    def upload(self, path: str, data: bytes, *, content_type: Optional[str] = None) -> str:  # pragma: no cover - abstract
        raise NotImplementedError

    def get_public_url(self, path: str) -> str:  # pragma: no cover - abstract
        raise NotImplementedError

    def remove(self, paths: Iterable[str]) -> None:  # pragma: no cover - abstract
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    """Keeps uploads on the local filesystem under ``root/<bucket>``."""

    def __init__(
        self,
        root: Optional[Path] = None,
        *,
        bucket: str = DOCUMENTS_BUCKET,
        public_base_url: Optional[str] = None,
    ) -> None:
        self.root = (Path(root) if root is not None else OBJECT_STORE_DIR) / bucket
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or "").rstrip("/")

    def _target(self, path: str) -> Path:
        return self.root / _normalise_key(path)

    def upload(self, path: str, data: bytes, *, content_type: Optional[str] = None) -> str:
        target = self._target(path)
        if target.exists():
            raise StoreError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StoreError(f"Unable to store {path}: {exc}") from exc
        LOGGER.debug("Stored %d bytes at %s", len(data), target)
        return _normalise_key(path)

    def get_public_url(self, path: str) -> str:
        key = _normalise_key(path)
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self._target(key).resolve().as_uri()

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            target = self._target(path)
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                raise StoreError(f"Unable to remove {path}: {exc}") from exc


class R2ObjectStore(ObjectStore):
    """Cloudflare R2 (S3-compatible) backend for uploaded documents."""

    def __init__(
        self,
        *,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        account_id: Optional[str] = None,
        public_base_url: Optional[str] = None,
        prefix: str = DOCUMENTS_BUCKET,
        url_expiration: int = 3600,
        client=None,
    ) -> None:
        self.bucket = bucket or os.getenv("R2_BUCKET_NAME", "")
        if not self.bucket:
            raise StoreError("R2_BUCKET_NAME is required for the R2 object store")
        self.prefix = prefix.strip("/")
        self.public_base_url = (public_base_url or os.getenv("R2_PUBLIC_BASE_URL", "")).rstrip("/")
        self.url_expiration = url_expiration

        if client is not None:
            self.client = client
            return

        access_key = access_key_id or os.getenv("R2_ACCESS_KEY_ID")
        secret_key = secret_access_key or os.getenv("R2_SECRET_ACCESS_KEY")
        endpoint = endpoint_url or os.getenv("R2_ENDPOINT_URL")
        account = account_id or os.getenv("R2_ACCOUNT_ID")
        if not access_key or not secret_key:
            raise StoreError("Cloudflare R2 credentials missing (R2_ACCESS_KEY_ID/R2_SECRET_ACCESS_KEY)")
        if not endpoint:
            if not account:
                raise StoreError("Set R2_ENDPOINT_URL or R2_ACCOUNT_ID to build the endpoint URL")
            endpoint = f"https://{account}.r2.cloudflarestorage.com"

        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name="auto",
        )

    def _object_key(self, path: str) -> str:
        key = _normalise_key(path)
        return f"{self.prefix}/{key}" if self.prefix else key

    def upload(self, path: str, data: bytes, *, content_type: Optional[str] = None) -> str:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=self._object_key(path), Body=data, **extra)
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Error uploading %s: %s", path, exc)
            raise StoreError(f"Unable to upload {path}: {exc}") from exc
        return _normalise_key(path)

    def get_public_url(self, path: str) -> str:
        key = self._object_key(path)
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.url_expiration,
            )
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Error generating presigned URL for %s: %s", key, exc)
            return ""

    def remove(self, paths: Iterable[str]) -> None:
        objects: List[dict] = [{"Key": self._object_key(path)} for path in paths]
        if not objects:
            return
        try:
            self.client.delete_objects(Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True})
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Error removing %d objects: %s", len(objects), exc)
            raise StoreError(f"Unable to remove objects: {exc}") from exc


__all__ = ["LocalObjectStore", "ObjectStore", "R2ObjectStore"]
