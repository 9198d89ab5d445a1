# backend/clubdesk/repositories/base_repository.py
"""
Base Repository Pattern for the clubdesk scheduling core

Provides the foundation for all repository classes with:
- Common lookup and create operations
- Type safety with generics
- Query execution helpers that translate SQLAlchemy errors

Repositories never commit; the service layer owns transaction boundaries.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        IntegrityError propagates so callers can translate unique violations.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def flush(self) -> None:
        """Flush pending ORM changes."""
        self.db.flush()

    # Protected helper methods for use by subclasses

    def _build_query(self) -> Query:
        """Get base query for the model."""
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        """Execute query with error handling."""
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Query execution error: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}")

    def _execute_scalar(self, query: Query) -> Any:
        """Execute scalar query with error handling."""
        try:
            return query.scalar()
        except SQLAlchemyError as e:
            self.logger.error(f"Scalar query error: {str(e)}")
            raise RepositoryException(f"Scalar query failed: {str(e)}")
