"""Upload routes for résumés and profile photos.

All endpoints require a session and are throttled per user.
"""

import re

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from folioforge.auth.dependencies import get_core, user_rate_limit
from folioforge.auth.models import AuthUser
from folioforge.context import SecurityCore
from folioforge.exceptions import (
    FileTooLargeError,
    IntegrityError,
    InvalidInputError,
    QuotaExceededError,
    StorageError,
    UnsupportedTypeError,
)
from folioforge.models.upload import FileKind, FileResponse, IncomingFile
from folioforge.services.upload_service import FileNotFoundForOwner

logger = structlog.get_logger()

router = APIRouter(prefix="/api/upload", tags=["uploads"])

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


async def _read_incoming(upload: UploadFile, max_bytes: int, kind: FileKind) -> IncomingFile:
    # Read at most one byte past the ceiling; the gatekeeper rejects on size
    data = await upload.read(max_bytes + 1)
    size = upload.size if upload.size is not None else len(data)
    return IncomingFile(
        data=data,
        declared_mime_type=upload.content_type or "application/octet-stream",
        size_bytes=max(size, len(data)),
        file_name=upload.filename or kind.value,
    )


async def _upload(core: SecurityCore, user: AuthUser, upload: UploadFile, kind: FileKind) -> FileResponse:
    policy = core.gatekeeper.policy_for(kind)
    incoming = await _read_incoming(upload, policy.max_bytes, kind)

    try:
        record = await core.uploads.upload(user.user_id, incoming, kind)
    except UnsupportedTypeError as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    except FileTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except QuotaExceededError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error("Upload storage failed", user_id=user.user_id, kind=kind.value, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store file",
        )
    finally:
        await upload.close()

    return FileResponse.from_record(record)


@router.post("/photo", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    photo: UploadFile = File(...),
    user: AuthUser = Depends(user_rate_limit("upload")),
    core: SecurityCore = Depends(get_core),
) -> FileResponse:
    """Upload a profile photo (JPEG, PNG or WebP, up to 5MB)."""
    return await _upload(core, user, photo, FileKind.PHOTO)


@router.post("/resume", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def upload_resume(
    resume: UploadFile = File(...),
    user: AuthUser = Depends(user_rate_limit("upload")),
    core: SecurityCore = Depends(get_core),
) -> FileResponse:
    """Upload a résumé (PDF, Word, plain text or Markdown, up to 10MB)."""
    return await _upload(core, user, resume, FileKind.RESUME)


@router.get("/photo", response_model=list[FileResponse])
async def list_photos(
    user: AuthUser = Depends(user_rate_limit("api")),
    core: SecurityCore = Depends(get_core),
) -> list[FileResponse]:
    records = await core.uploads.list_files(user.user_id, FileKind.PHOTO)
    return [FileResponse.from_record(r) for r in records]


@router.get("/resume", response_model=list[FileResponse])
async def list_resumes(
    user: AuthUser = Depends(user_rate_limit("api")),
    core: SecurityCore = Depends(get_core),
) -> list[FileResponse]:
    records = await core.uploads.list_files(user.user_id, FileKind.RESUME)
    return [FileResponse.from_record(r) for r in records]


@router.get("/files/{file_id}")
async def download_file(
    file_id: str,
    request: Request,
    user: AuthUser = Depends(user_rate_limit("api")),
    core: SecurityCore = Depends(get_core),
) -> Response:
    """Return the decrypted bytes of one of the caller's files.

    Raises:
        HTTPException: 404 if the file does not exist or belongs to
            another user, 500 if the stored bytes fail authentication.
    """
    try:
        record, data = await core.uploads.read_file(user.user_id, file_id)
    except FileNotFoundForOwner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except IntegrityError:
        logger.error("Stored file failed integrity check", file_id=file_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read file",
        )
    except StorageError as e:
        logger.error("Failed to read stored file", file_id=file_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read file",
        )

    download_name = _UNSAFE_FILENAME_CHARS.sub("_", record.original_file_name) or record.storage_name
    headers = dict(getattr(request.state, "rate_limit_headers", {}))
    headers["Content-Disposition"] = f'attachment; filename="{download_name}"'
    headers["Cache-Control"] = "no-store"
    return Response(content=data, media_type=record.mime_type, headers=headers)


@router.delete("/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    request: Request,
    user: AuthUser = Depends(user_rate_limit("api")),
    core: SecurityCore = Depends(get_core),
) -> Response:
    """Delete one of the caller's files."""
    try:
        await core.uploads.delete_file(user.user_id, file_id)
    except FileNotFoundForOwner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers=getattr(request.state, "rate_limit_headers", None),
    )
