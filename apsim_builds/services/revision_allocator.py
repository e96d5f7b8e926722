"""
Revision Allocator - hands out registry-unique revision numbers.

The next revision is one more than the highest stored revision. Reading the
maximum and inserting the new record happen in one unit of work, and the
unique index on the revision column rejects a concurrent writer that read
the same maximum. The loser rolls back and retries with a fresh read, so two
callers never receive the same number and no record is left half-written.
"""
import logging
from typing import Callable, Generic, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from apsim_builds.database import get_db_context
from apsim_builds.errors import ConflictError

logger = logging.getLogger(__name__)

RecordT = TypeVar('RecordT')


class RevisionAllocator(Generic[RecordT]):
    """Allocates revisions for a registry table with a unique revision column."""

    def __init__(self, session_factory: sessionmaker, column, max_attempts: int = 10):
        """
        Args:
            session_factory: Session factory for the registry's database
            column: Mapped revision column, e.g. Upgrade.revision
            max_attempts: Attempts before giving up under contention
        """
        self.session_factory = session_factory
        self.column = column
        self.max_attempts = max_attempts

    def _max_revision(self, db: Session) -> int:
        return db.query(func.max(self.column)).scalar() or 0

    def _is_taken(self, revision: int) -> bool:
        with get_db_context(self.session_factory) as db:
            return db.query(self.column).filter(self.column == revision).first() is not None

    def latest_revision(self, db: Optional[Session] = None) -> int:
        """
        Highest stored revision, or 0 for an empty registry.

        Args:
            db: Session of an enclosing unit of work (optional)
        """
        if db is not None:
            return self._max_revision(db)
        with get_db_context(self.session_factory) as db:
            return self._max_revision(db)

    def next_revision(self) -> int:
        """Revision the next allocation would receive if nothing else is inserted first."""
        return self.latest_revision() + 1

    def allocate(self, build: Callable[[int], RecordT]) -> RecordT:
        """
        Reserve a revision and persist the record carrying it.

        Args:
            build: Called with the allocated revision, returns the new
                (unsaved) record

        Returns:
            The stored record, with its store-assigned id

        Raises:
            ConflictError: If every attempt lost the race to another writer
        """
        for attempt in range(1, self.max_attempts + 1):
            revision = None
            try:
                with get_db_context(self.session_factory) as db:
                    revision = self._max_revision(db) + 1
                    record = build(revision)
                    db.add(record)
                    db.flush()
                logger.info(f"Allocated revision {revision}")
                return record
            except IntegrityError:
                # Any other constraint failure is the caller's problem
                if revision is None or not self._is_taken(revision):
                    raise
                logger.warning(
                    f"Revision {revision} taken by a concurrent writer, "
                    f"retrying ({attempt}/{self.max_attempts})"
                )

        raise ConflictError(
            f"Could not allocate a revision after {self.max_attempts} attempts"
        )
