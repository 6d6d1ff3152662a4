"""
Storage abstraction for S3-compatible object storage and in-memory testing.

Receipts, mission proofs and avatars are uploaded by the clients directly
through presigned URLs.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config

from fluzio.errors import ValidationError

UPLOAD_KINDS = ("receipt", "proof", "avatar")


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def presign_put(
        self, path: str, expires_in: int = 3600, content_type: str = "application/octet-stream"
    ) -> str:
        ...

    def upload_json(self, path: str, payload: dict) -> None:
        ...


def upload_path(kind: str, user_id: str, filename: str = "") -> str:
    """Object key for a client upload: `{kind}s/{user_id}/{uuid}{ext}`."""
    if kind not in UPLOAD_KINDS:
        raise ValidationError(f"Unknown upload kind: {kind}")
    if not user_id or "/" in user_id:
        raise ValidationError("A valid user id is required")
    ext = os.path.splitext(filename or "")[1].lower()
    return f"{kind}s/{user_id}/{uuid.uuid4().hex}{ext}"


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://storage.test"
    stored_objects: dict = field(default_factory=dict)

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def presign_put(
        self, path: str, expires_in: int = 3600, content_type: str = "application/octet-stream"
    ) -> str:
        return f"{self.base_url}/{path}?op=put&expires={expires_in}"

    def upload_json(self, path: str, payload: dict) -> None:
        # Round-trip through JSON to mimic a real upload
        self.stored_objects[path] = json.loads(json.dumps(payload, default=str))

    def reset(self) -> None:
        self.stored_objects.clear()


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, MinIO, R2, ...).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def presign_put(
        self, path: str, expires_in: int = 3600, content_type: str = "application/octet-stream"
    ) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": self.bucket, "Key": path, "ContentType": content_type},
            ExpiresIn=expires_in,
        )

    def upload_json(self, path: str, payload: dict) -> None:
        body = json.dumps(payload, default=str).encode("utf-8")
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=body,
            ContentType="application/json",
        )
