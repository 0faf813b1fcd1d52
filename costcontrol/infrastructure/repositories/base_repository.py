"""
Base Repository - Abstract repository pattern implementation.

Provides common data access operations and the fetch guard used by the
calculators to turn query failures into empty results.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Generic, TypeVar, List, Optional, Type
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from costcontrol.models import Base

T = TypeVar('T', bound=Base)
R = TypeVar('R')

logger = logging.getLogger(__name__)


def safe_fetch(session: Session, description: str, query: Callable[[], R], default: R) -> R:
    """
    Run a read and fall back to `default` when it fails.

    The failure is logged and the session rolled back so later reads on
    the same session still work. Callers cannot tell a failed read from
    an empty one.

    Args:
        session: Session the query runs on
        description: What is being fetched, for the log line
        query: Zero-argument callable performing the read
        default: Value returned on failure

    Returns:
        The query result, or `default` on failure
    """
    try:
        return query()
    except SQLAlchemyError:
        logger.exception("Error fetching %s", description)
        session.rollback()
        return default


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository providing common data access operations.

    Type Parameters:
        T: The SQLAlchemy model type this repository manages
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize the repository.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Args:
            entity_id: Primary key value

        Returns:
            The entity if found, None otherwise
        """
        return self.session.query(self.model_class).filter(
            self.model_class.id == entity_id
        ).first()

    def count(self) -> int:
        """Count total entities."""
        return self.session.query(self.model_class).count()

    def add_all(self, entities: List[T]) -> List[T]:
        """
        Add multiple entities to the session.

        Args:
            entities: List of entities to add

        Returns:
            The added entities
        """
        self.session.add_all(entities)
        return entities

    def commit(self) -> None:
        """Commit the current transaction."""
        self.session.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()

    @abstractmethod
    def exists(self, **criteria) -> bool:
        """
        Check if an entity matching the criteria exists.

        Args:
            **criteria: Field-value pairs to match

        Returns:
            True if entity exists, False otherwise
        """
        pass

    def _exists(self, **criteria) -> bool:
        query = self.session.query(self.model_class)
        for field, value in criteria.items():
            query = query.filter(getattr(self.model_class, field) == value)
        return query.first() is not None
