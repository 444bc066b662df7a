"""Document store API: uploads, folders, download and delete.

Every endpoint is scoped to the authenticated user; items owned by someone
else are indistinguishable from missing ones.
"""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, require_auth
from ..core.config import settings
from ..database import get_db
from ..exceptions import NotFoundError, ValidationError
from ..schemas.common import MessageResponse
from ..schemas.document import (
    DocumentListResponse,
    DocumentStats,
    FolderContents,
    FolderCreate,
    FolderCreateResponse,
    RenameRequest,
    RenameResponse,
    UploadResponse,
)
from ..services import DocumentService
from ..services.object_storage import ObjectStorage, get_storage

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _parse_folder_id(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() in ("", "null", "root"):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError("Invalid parent folder id", field="parentFolderId")


@router.post("/upload", response_model=UploadResponse, status_code=201)
def upload_document(
    file: Optional[UploadFile] = File(None),
    description: Optional[str] = Form(None),
    parent_folder_id: Optional[str] = Form(None, alias="parentFolderId"),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(require_auth),
):
    """Upload a PDF, DOC, DOCX, JPG or PNG file (multipart field ``file``)."""
    if file is None:
        raise ValidationError("No file uploaded", field="file")

    # Read one byte past the cap so oversize uploads are detected without
    # buffering the whole body.
    data = file.file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"File size exceeds limit of {settings.max_upload_bytes // (1024 * 1024)}MB", field="file"
        )

    service = DocumentService(db, storage)
    return service.upload(
        user.id,
        data,
        file.filename,
        file.content_type,
        description=description,
        parent_folder_id=_parse_folder_id(parent_folder_id),
    )


@router.get("", response_model=DocumentListResponse)
def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    """All of the user's files and folders, newest first."""
    return DocumentService(db).list_documents(user.id, page=page, limit=limit, search=search)


@router.get("/stats", response_model=DocumentStats)
def document_stats(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    return DocumentService(db).stats(user.id)


@router.post("/folder", response_model=FolderCreateResponse, status_code=201)
def create_folder(
    body: FolderCreate,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    return DocumentService(db).create_folder(user.id, body.name, body.parent_folder_id)


@router.get("/folder/{folder_id}", response_model=FolderContents)
def folder_contents(
    folder_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    """Direct children of a folder; ``root`` lists the top level."""
    if folder_id == "root":
        parent_id = None
    else:
        try:
            parent_id = int(folder_id)
        except ValueError:
            raise NotFoundError("Folder not found", resource_id=folder_id)
    return DocumentService(db).folder_contents(user.id, parent_id, page=page, limit=limit)


@router.put("/{item_id}/rename", response_model=RenameResponse)
def rename_item(
    item_id: int,
    body: RenameRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_auth),
):
    return DocumentService(db).rename(user.id, item_id, body.new_name)


@router.get("/{item_id}/download")
def download_document(
    item_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(require_auth),
):
    """Stream a stored file back as an attachment."""
    document, body = DocumentService(db, storage).open_download(user.id, item_id)

    headers = {
        "Content-Disposition": f'attachment; filename="{quote(document.original_name)}"',
    }
    if document.size:
        headers["Content-Length"] = str(document.size)

    return StreamingResponse(
        body.iter_chunks(),
        media_type=document.mime_type or "application/octet-stream",
        headers=headers,
    )


@router.delete("/{item_id}", response_model=MessageResponse)
def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    user: CurrentUser = Depends(require_auth),
):
    """Delete a file, or a folder and everything inside it."""
    return DocumentService(db, storage).delete(user.id, item_id)
