"""Schemas for the document store API."""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field

from .common import CamelModel, Pagination


class DocumentItem(CamelModel):
    """A file or folder as returned by list and folder-contents."""
    id: int
    user_id: str
    type: str
    parent_folder_id: Optional[int] = None
    original_name: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None
    file_url: Optional[str] = None
    verified: bool = False
    description: Optional[str] = None
    extension: str = ""
    readable_size: Optional[str] = None
    is_folder: bool = False
    uploaded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentListResponse(BaseModel):
    documents: List[DocumentItem]
    pagination: Pagination


class UploadedDocument(CamelModel):
    id: int
    original_name: str
    size: str
    mime_type: str
    uploaded_at: Optional[datetime] = None
    url: str


class UploadResponse(BaseModel):
    message: str
    document: UploadedDocument


class TypeStat(BaseModel):
    type: str
    count: int
    size: str


class DocumentStats(CamelModel):
    total: int = 0
    total_size: str = "0 Bytes"
    total_documents: int = 0
    by_type: List[TypeStat] = []


class FolderCreate(CamelModel):
    name: Optional[str] = None
    parent_folder_id: Optional[int] = None


class FolderInfo(CamelModel):
    id: int
    name: str
    type: str
    parent_folder_id: Optional[int] = None
    created_at: Optional[datetime] = None


class FolderCreateResponse(BaseModel):
    message: str
    folder: FolderInfo


class Breadcrumb(BaseModel):
    id: Optional[int] = None
    name: str


class CurrentFolder(BaseModel):
    id: Optional[int] = None
    name: str


class FolderContents(CamelModel):
    items: List[DocumentItem]
    breadcrumbs: List[Breadcrumb]
    current_folder: CurrentFolder
    pagination: Pagination


class RenameRequest(CamelModel):
    new_name: Optional[str] = Field(default=None, max_length=255)


class RenamedItem(BaseModel):
    id: int
    name: str
    type: str


class RenameResponse(BaseModel):
    message: str
    item: RenamedItem
