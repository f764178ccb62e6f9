from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from uuid import uuid4


class ObjectStorageError(Exception):
    pass


class ObjectStorageNotFoundError(ObjectStorageError):
    pass


@dataclass(frozen=True)
class StoredObject:
    bucket: str
    object_key: str
    size_bytes: int
    etag: str
    content_type: str
    public_url: str


class LocalObjectStorageAdapter:
    def __init__(self, root_dir: Path) -> None:
        self._root_dir = root_dir

    def _safe_object_path(self, bucket: str, object_key: str) -> Path:
        normalized_bucket = bucket.strip()
        if not normalized_bucket or "/" in normalized_bucket or normalized_bucket in {".", ".."}:
            raise ObjectStorageError("invalid bucket")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ObjectStorageError("invalid object key")
        if not key_path.parts:
            raise ObjectStorageError("object key is empty")
        return self._root_dir / normalized_bucket / Path(*key_path.parts)

    def put_bytes(self, *, bucket: str, object_key: str, content: bytes) -> tuple[int, str]:
        path = self._safe_object_path(bucket, object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return len(content), hashlib.sha256(content).hexdigest()

    def get_path(self, *, bucket: str, object_key: str) -> Path:
        path = self._safe_object_path(bucket, object_key)
        if not path.exists() or not path.is_file():
            raise ObjectStorageNotFoundError("object not found")
        return path

    def delete(self, *, bucket: str, object_key: str) -> None:
        self._safe_object_path(bucket, object_key).unlink(missing_ok=True)


class ObjectStorageService:
    def __init__(self, root_dir: Path | None = None) -> None:
        backend = os.getenv("OBJECT_STORAGE_BACKEND", "local").strip().lower()
        if backend != "local":
            raise ObjectStorageError(f"unsupported storage backend: {backend}")
        root = root_dir or Path(os.getenv("OBJECT_STORAGE_ROOT", "data/object_storage"))
        self._adapter = LocalObjectStorageAdapter(root)
        self.default_bucket = os.getenv("OBJECT_STORAGE_BUCKET", "asset-images")
        self.public_base_url = os.getenv("OBJECT_STORAGE_PUBLIC_BASE_URL", "/media").rstrip("/")
        self.max_upload_bytes = int(os.getenv("OBJECT_STORAGE_MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    def build_image_key(self, *, owner_id: str, file_name: str) -> str:
        suffix = PurePosixPath(file_name.replace("\\", "/")).suffix.lower()
        if not suffix or len(suffix) > 8:
            suffix = ".bin"
        return f"{owner_id}-{uuid4().hex}{suffix}"

    def public_url(self, *, bucket: str, object_key: str) -> str:
        return f"{self.public_base_url}/{bucket}/{object_key}"

    def put_image(self, *, owner_id: str, file_name: str, content: bytes, content_type: str) -> StoredObject:
        if not content_type.startswith("image/"):
            raise ObjectStorageError("only image uploads are accepted")
        if not content:
            raise ObjectStorageError("uploaded file is empty")
        if len(content) > self.max_upload_bytes:
            raise ObjectStorageError("uploaded file is too large")
        object_key = self.build_image_key(owner_id=owner_id, file_name=file_name)
        size_bytes, etag = self._adapter.put_bytes(
            bucket=self.default_bucket,
            object_key=object_key,
            content=content,
        )
        return StoredObject(
            bucket=self.default_bucket,
            object_key=object_key,
            size_bytes=size_bytes,
            etag=etag,
            content_type=content_type,
            public_url=self.public_url(bucket=self.default_bucket, object_key=object_key),
        )

    def get_download_path(self, *, bucket: str, object_key: str) -> Path:
        return self._adapter.get_path(bucket=bucket, object_key=object_key)

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        self._adapter.delete(bucket=bucket, object_key=object_key)
