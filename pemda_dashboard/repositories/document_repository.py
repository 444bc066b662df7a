"""Repository for the document/folder tree."""

from typing import List, Optional

from sqlalchemy import func, or_

from .base import OwnedRepository
from ..exceptions import NotFoundError
from ..models.document import Document, FILE, FOLDER


class DocumentRepository(OwnedRepository[Document]):
    """Data access for files and folders."""

    model_class = Document
    not_found_message = "Document not found"

    def get_folder_optional(self, user_id: str, folder_id: Optional[int]) -> Optional[Document]:
        if folder_id is None:
            return None
        return (
            self.for_user(user_id)
            .filter(Document.id == folder_id, Document.type == FOLDER)
            .first()
        )

    def get_folder(self, user_id: str, folder_id: int, message: str = "Folder not found") -> Document:
        folder = self.get_folder_optional(user_id, folder_id)
        if folder is None:
            raise NotFoundError(message, resource_id=folder_id)
        return folder

    def find_sibling(
        self,
        user_id: str,
        parent_folder_id: Optional[int],
        name: str,
        type_: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[Document]:
        """Same-named item of the same type under the same parent, if any."""
        query = self.for_user(user_id).filter(
            Document.original_name == name,
            Document.type == type_,
            Document.parent_folder_id.is_(None) if parent_folder_id is None
            else Document.parent_folder_id == parent_folder_id,
        )
        if exclude_id is not None:
            query = query.filter(Document.id != exclude_id)
        return query.first()

    def search(self, user_id: str, search: Optional[str] = None):
        query = self.for_user(user_id)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Document.original_name).like(pattern),
                func.lower(Document.description).like(pattern),
            ))
        return query

    def children(self, user_id: str, parent_folder_id: Optional[int]):
        """Direct children, folders first then by name."""
        if parent_folder_id is None:
            query = self.for_user(user_id).filter(Document.parent_folder_id.is_(None))
        else:
            query = self.for_user(user_id).filter(Document.parent_folder_id == parent_folder_id)
        # 'folder' > 'file', so descending type puts folders first.
        return query.order_by(Document.type.desc(), Document.original_name.asc(), Document.id.asc())

    def subtree(self, user_id: str, root: Document) -> List[Document]:
        """*root* and every descendant, deepest first."""
        ordered: List[Document] = []
        frontier = [root]
        seen = {root.id}
        while frontier:
            ordered.extend(frontier)
            parent_ids = [d.id for d in frontier if d.type == FOLDER]
            if not parent_ids:
                break
            next_level = (
                self.for_user(user_id)
                .filter(Document.parent_folder_id.in_(parent_ids))
                .all()
            )
            frontier = [d for d in next_level if d.id not in seen]
            seen.update(d.id for d in frontier)
        ordered.reverse()
        return ordered

    def file_stats(self, user_id: str):
        """Rows of (mime_type, count, total_size) over the user's files."""
        return (
            self.db.query(Document.mime_type, func.count(Document.id), func.sum(Document.size))
            .filter(Document.user_id == user_id, Document.type == FILE)
            .group_by(Document.mime_type)
            .all()
        )
