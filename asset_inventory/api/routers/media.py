from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from asset_inventory.services.object_storage_service import (
    ObjectStorageError,
    ObjectStorageNotFoundError,
    ObjectStorageService,
)

router = APIRouter()


def get_object_storage_service() -> ObjectStorageService:
    return ObjectStorageService()


Storage = Annotated[ObjectStorageService, Depends(get_object_storage_service)]


@router.get("/{bucket}/{object_key:path}")
def download_object(bucket: str, object_key: str, storage: Storage) -> FileResponse:
    try:
        path = storage.get_download_path(bucket=bucket, object_key=object_key)
    except ObjectStorageNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ObjectStorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return FileResponse(path)
