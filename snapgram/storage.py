"""
File storage abstraction for Appwrite buckets, S3-compatible storage and
in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote, urlencode
import uuid

import boto3
from appwrite.client import Client
from appwrite.id import ID
from appwrite.input_file import InputFile
from appwrite.services.storage import Storage
from botocore.config import Config

from snapgram.types import FileUpload

PREVIEW_WIDTH = 2000
PREVIEW_HEIGHT = 2000
PREVIEW_GRAVITY = "top"
PREVIEW_QUALITY = 100


class FileStorage(Protocol):
    """Defines the operations the app needs from file storage."""

    def create_file(self, upload: FileUpload, file_id: str | None = None) -> dict:
        ...

    def get_file_preview(
        self,
        file_id: str,
        width: int = PREVIEW_WIDTH,
        height: int = PREVIEW_HEIGHT,
        gravity: str = PREVIEW_GRAVITY,
        quality: int = PREVIEW_QUALITY,
    ) -> str:
        ...

    def delete_file(self, file_id: str) -> None:
        ...


def _file_record(file_id: str, upload: FileUpload, bucket_id: str) -> dict:
    return {
        "$id": file_id,
        "bucketId": bucket_id,
        "name": upload.filename,
        "mimeType": upload.content_type or "application/octet-stream",
        "sizeOriginal": upload.size,
    }


def _preview_params(width: int, height: int, gravity: str, quality: int) -> dict:
    return {
        "width": width,
        "height": height,
        "gravity": gravity,
        "quality": quality,
    }


@dataclass
class InMemoryFileStorage:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    bucket_id: str = "media"
    stored_files: dict = None

    def __post_init__(self):
        if self.stored_files is None:
            self.stored_files = {}

    def reset(self) -> None:
        self.stored_files.clear()

    def create_file(self, upload: FileUpload, file_id: str | None = None) -> dict:
        file_id = file_id or uuid.uuid4().hex
        self.stored_files[file_id] = upload
        return _file_record(file_id, upload, self.bucket_id)

    def get_file_preview(
        self,
        file_id: str,
        width: int = PREVIEW_WIDTH,
        height: int = PREVIEW_HEIGHT,
        gravity: str = PREVIEW_GRAVITY,
        quality: int = PREVIEW_QUALITY,
    ) -> str:
        params = urlencode(_preview_params(width, height, gravity, quality))
        return f"{self.base_url}/{self.bucket_id}/{file_id}/preview?{params}"

    def delete_file(self, file_id: str) -> None:
        if self.stored_files.pop(file_id, None) is None:
            raise FileNotFoundError(file_id)


class AppwriteFileStorage:
    """
    File storage backed by an Appwrite bucket.

    Preview URLs are built locally, the same way the platform's web SDK
    builds them, so rendering a preview costs no request.
    """

    def __init__(self, client: Client, bucket_id: str, endpoint: str, project_id: str):
        self.bucket_id = bucket_id
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self._storage = Storage(client)

    def create_file(self, upload: FileUpload, file_id: str | None = None) -> dict:
        return self._storage.create_file(
            self.bucket_id,
            file_id or ID.unique(),
            InputFile.from_bytes(
                upload.content, upload.filename, upload.content_type
            ),
        )

    def get_file_preview(
        self,
        file_id: str,
        width: int = PREVIEW_WIDTH,
        height: int = PREVIEW_HEIGHT,
        gravity: str = PREVIEW_GRAVITY,
        quality: int = PREVIEW_QUALITY,
    ) -> str:
        params = _preview_params(width, height, gravity, quality)
        params["project"] = self.project_id
        path = (
            f"/storage/buckets/{quote(self.bucket_id, safe='')}"
            f"/files/{quote(file_id, safe='')}/preview"
        )
        return f"{self.endpoint}{path}?{urlencode(params)}"

    def delete_file(self, file_id: str) -> None:
        self._storage.delete_file(self.bucket_id, file_id)


@dataclass
class S3FileStorage:
    """
    S3-compatible file storage. Previews are presigned GET URLs.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    prefix: str = "media/"
    expires_in: int = 3600

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def _key(self, file_id: str) -> str:
        return f"{self.prefix}{file_id}"

    def create_file(self, upload: FileUpload, file_id: str | None = None) -> dict:
        file_id = file_id or uuid.uuid4().hex
        self._client.put_object(
            Bucket=self.bucket,
            Key=self._key(file_id),
            Body=upload.content,
            ContentType=upload.content_type or "application/octet-stream",
            Metadata={"filename": quote(upload.filename)},
        )
        return _file_record(file_id, upload, self.bucket)

    def get_file_preview(
        self,
        file_id: str,
        width: int = PREVIEW_WIDTH,
        height: int = PREVIEW_HEIGHT,
        gravity: str = PREVIEW_GRAVITY,
        quality: int = PREVIEW_QUALITY,
    ) -> str:
        # Plain object storage has no image transforms; serve the original.
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": self._key(file_id)},
            ExpiresIn=self.expires_in,
        )

    def delete_file(self, file_id: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=self._key(file_id))
