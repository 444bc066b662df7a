"""Business logic for the per-user document store.

Files live in object storage under ``{user_id}/{uuid}{ext}``; the database
holds one row per file or folder. Folders form a tree through
``parent_folder_id``.
"""

import logging
import os
import uuid
from typing import List, Optional

import sqlalchemy.exc
from sqlalchemy.orm import Session

from .file_validation import format_bytes, sanitize_filename, validate_upload
from .object_storage import ObjectStorage
from ..exceptions import ConflictError, DatabaseError, ValidationError
from ..models._time import utcnow
from ..models.document import Document, FILE, FOLDER
from ..repositories.document_repository import DocumentRepository
from ..schemas.common import Pagination
from ..schemas.document import DocumentItem

logger = logging.getLogger(__name__)

ROOT_CRUMB = {"id": None, "name": "Root"}


class DocumentService:
    """Document and folder operations scoped to one owner per call."""

    def __init__(self, db: Session, storage: Optional[ObjectStorage] = None):
        self.db = db
        self.storage = storage
        self.repo = DocumentRepository(db)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upload(
        self,
        user_id: str,
        data: bytes,
        client_filename: Optional[str],
        declared_mime: Optional[str],
        description: Optional[str] = None,
        parent_folder_id: Optional[int] = None,
    ) -> dict:
        """Validate, store and record an uploaded file.

        The object is removed again if the database insert fails, so a
        failed upload never leaves an orphan in the bucket.
        """
        original_name = sanitize_filename(client_filename)
        mime_type = validate_upload(data, declared_mime)

        if description and len(description) > 500:
            raise ValidationError("Description must be at most 500 characters", field="description")

        if parent_folder_id is not None:
            self.repo.get_folder(user_id, parent_folder_id, "Parent folder not found")

        ext = os.path.splitext(original_name)[1]
        stored_name = f"{uuid.uuid4()}{ext}"
        object_name = ObjectStorage.object_name(user_id, stored_name)

        self.storage.put_object(object_name, data, mime_type, original_name)

        document = Document(
            user_id=user_id,
            type=FILE,
            filename=stored_name,
            original_name=original_name,
            mime_type=mime_type,
            size=len(data),
            file_url=self.storage.object_url(object_name),
            verified=True,
            description=description or "",
            parent_folder_id=parent_folder_id,
        )
        try:
            self.db.add(document)
            self.db.commit()
            self.db.refresh(document)
        except sqlalchemy.exc.SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Document insert failed, removing stored object %s", object_name)
            self.storage.remove_object(object_name)
            raise DatabaseError("Failed to upload file", original_error=e) from e

        logger.info(
            "Document uploaded",
            extra={"user_id": user_id, "document_id": document.id, "mime_type": mime_type},
        )
        return {
            "message": "File uploaded successfully",
            "document": {
                "id": document.id,
                "original_name": document.original_name,
                "size": format_bytes(document.size),
                "mime_type": document.mime_type,
                "uploaded_at": document.uploaded_at,
                "url": document.file_url,
            },
        }

    def list_documents(self, user_id: str, page: int = 1, limit: int = 20, search: Optional[str] = None) -> dict:
        query = self.repo.search(user_id, search)
        total = query.count()
        rows = (
            query.order_by(Document.uploaded_at.desc(), Document.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "documents": [DocumentItem.model_validate(d) for d in rows],
            "pagination": Pagination.build(page, limit, total),
        }

    def stats(self, user_id: str) -> dict:
        """File counts and sizes grouped by MIME type. Folders are excluded."""
        rows = self.repo.file_stats(user_id)
        total = sum(int(count or 0) for _, count, _ in rows)
        total_size = sum(int(size or 0) for _, _, size in rows)
        return {
            "total": total,
            "total_size": format_bytes(total_size),
            "total_documents": total,
            "by_type": [
                {"type": mime, "count": int(count or 0), "size": format_bytes(int(size or 0))}
                for mime, count, size in rows
            ],
        }

    def open_download(self, user_id: str, document_id: int):
        """Return ``(document, body)`` for streaming a file back to its owner."""
        document = self.repo.get_owned(user_id, document_id)
        if document.type == FOLDER:
            raise ValidationError("Folders cannot be downloaded")
        body = self.storage.get_object(ObjectStorage.object_name(user_id, document.filename))
        return document, body

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def create_folder(self, user_id: str, name: Optional[str], parent_folder_id: Optional[int] = None) -> dict:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required", field="name")
        if len(name) > 255:
            raise ValidationError("Folder name must be at most 255 characters", field="name")

        if self.repo.find_sibling(user_id, parent_folder_id, name, FOLDER):
            raise ConflictError("A folder with this name already exists here")

        if parent_folder_id is not None:
            self.repo.get_folder(user_id, parent_folder_id, "Parent folder not found")

        folder = Document(
            user_id=user_id,
            type=FOLDER,
            original_name=name,
            parent_folder_id=parent_folder_id,
            verified=True,
        )
        self.db.add(folder)
        self.db.commit()
        self.db.refresh(folder)

        return {
            "message": "Folder created successfully",
            "folder": {
                "id": folder.id,
                "name": folder.original_name,
                "type": folder.type,
                "parent_folder_id": folder.parent_folder_id,
                "created_at": folder.created_at,
            },
        }

    def folder_contents(self, user_id: str, folder_id: Optional[int], page: int = 1, limit: int = 50) -> dict:
        """Direct children of *folder_id* (None = root) plus navigation data."""
        current = {"id": None, "name": "Root"}
        if folder_id is not None:
            folder = self.repo.get_folder(user_id, folder_id)
            current = {"id": folder.id, "name": folder.original_name}

        query = self.repo.children(user_id, folder_id)
        total = query.count()
        items = query.offset((page - 1) * limit).limit(limit).all()

        return {
            "items": [DocumentItem.model_validate(item) for item in items],
            "breadcrumbs": self.breadcrumbs(user_id, folder_id),
            "current_folder": current,
            "pagination": Pagination.build(page, limit, total),
        }

    def breadcrumbs(self, user_id: str, folder_id: Optional[int]) -> List[dict]:
        """Trail from Root down to *folder_id*.

        Walks parent pointers upward and stops at the first missing or
        foreign link. A visited set bounds the walk if the data ever
        contains a cycle.
        """
        chain: List[dict] = []
        visited: set = set()
        current_id = folder_id
        while current_id is not None and current_id not in visited:
            visited.add(current_id)
            folder = self.repo.get_folder_optional(user_id, current_id)
            if folder is None:
                break
            chain.insert(0, {"id": folder.id, "name": folder.original_name})
            current_id = folder.parent_folder_id
        return [dict(ROOT_CRUMB)] + chain

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def rename(self, user_id: str, item_id: int, new_name: Optional[str]) -> dict:
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValidationError("New name is required", field="newName")

        item = self.repo.get_owned(user_id, item_id)
        if self.repo.find_sibling(user_id, item.parent_folder_id, new_name, item.type, exclude_id=item.id):
            raise ConflictError(f"A {item.type} with this name already exists here")

        item.original_name = new_name
        item.updated_at = utcnow()
        self.db.commit()

        label = "Folder" if item.type == FOLDER else "File"
        return {
            "message": f"{label} renamed successfully",
            "item": {"id": item.id, "name": item.original_name, "type": item.type},
        }

    def delete(self, user_id: str, item_id: int) -> dict:
        """Delete a file, or a folder together with everything beneath it."""
        item = self.repo.get_owned(user_id, item_id)
        label = "Folder" if item.type == FOLDER else "Document"
        doomed = self.repo.subtree(user_id, item) if item.type == FOLDER else [item]

        self._remove_objects(user_id, doomed)
        ids = [d.id for d in doomed]
        self.db.query(Document).filter(Document.id.in_(ids)).delete(synchronize_session=False)
        self.db.commit()

        logger.info(
            "Document deleted",
            extra={"user_id": user_id, "document_id": item_id, "rows": len(ids)},
        )
        return {"message": f"{label} deleted successfully"}

    def delete_all_for_user(self, user_id: str) -> int:
        """Remove every record and stored object owned by *user_id*."""
        documents = self.repo.for_user(user_id).all()
        self._remove_objects(user_id, documents)
        count = self.repo.for_user(user_id).delete(synchronize_session=False)
        self.db.commit()
        return count

    def _remove_objects(self, user_id: str, documents: List[Document]) -> None:
        if self.storage is None:
            return
        for doc in documents:
            if doc.type == FILE and doc.filename:
                self.storage.remove_object(ObjectStorage.object_name(user_id, doc.filename))
