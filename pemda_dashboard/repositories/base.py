"""Base repository for models owned by a single user.

Every row in this application belongs to one Keycloak user, and a row that
belongs to someone else must look exactly like a missing one. Subclasses set
``model_class`` and ``not_found_message``; the base scopes lookups by
``user_id``.
"""

from typing import TypeVar, Generic, Optional, Type

from sqlalchemy.orm import Session, Query

from ..database import Base
from ..exceptions import NotFoundError

ModelT = TypeVar("ModelT", bound=Base)


class OwnedRepository(Generic[ModelT]):
    """Shared owner-scoped lookups.

    Class variables to set in subclasses:
        model_class:       The SQLAlchemy model (must have ``id`` and ``user_id``)
        not_found_message: Message for the NotFoundError raised by get_owned
    """

    model_class: Type[ModelT]
    not_found_message: str = "Resource not found"

    def __init__(self, db: Session):
        self.db = db

    def for_user(self, user_id: str) -> Query:
        return self.db.query(self.model_class).filter(self.model_class.user_id == user_id)

    def get_owned_optional(self, user_id: str, entity_id: int) -> Optional[ModelT]:
        return self.for_user(user_id).filter(self.model_class.id == entity_id).first()

    def get_owned(self, user_id: str, entity_id: int) -> ModelT:
        """Get an entity owned by *user_id*. Raises NotFoundError otherwise."""
        entity = self.get_owned_optional(user_id, entity_id)
        if entity is None:
            raise NotFoundError(self.not_found_message, resource_id=entity_id)
        return entity
