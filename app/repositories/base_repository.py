"""Base repository class with common database operations."""

from typing import Generic, TypeVar, Type, Optional, List

from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository providing common CRUD operations.

    Repositories only flush; committing is left to the service that owns
    the unit of work.
    """

    def __init__(self, model: Type[T], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    def get_by_id(self, id: int) -> Optional[T]:
        """
        Get entity by ID.

        Args:
            id: Entity ID

        Returns:
            Entity or None if not found
        """
        return self.db.query(self.model).filter(self.model.id == id).first()

    def get_many(self, ids: List[int]) -> List[T]:
        """
        Get all entities whose ID is in ``ids``.

        Args:
            ids: Entity IDs

        Returns:
            List of entities (order not guaranteed)
        """
        if not ids:
            return []
        return self.db.query(self.model).filter(self.model.id.in_(ids)).all()

    def create(self, obj: T) -> T:
        """
        Add a new entity and flush it so generated columns are populated.

        Args:
            obj: Entity to create

        Returns:
            Created entity
        """
        self.db.add(obj)
        self.db.flush()
        self.db.refresh(obj)
        return obj
