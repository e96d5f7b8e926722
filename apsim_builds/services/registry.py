"""
Registry Service - CRUD and queries over the two build registries.

Both registries share the Registry base: a session factory, a unit of work
per operation, revision reads and the "latest record for a pull request"
lookup. They differ in how a revision reaches a record:

- UpgradeRegistry (next-gen) allocates the revision atomically when the
  record is inserted, so revisions increase strictly in insertion order.
- BuildRegistry (legacy) inserts without a revision; an administrator
  assigns one later, checked for uniqueness against every existing build.
"""
import logging
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from apsim_builds.config import get_settings
from apsim_builds.database import SessionLocal, get_db_context
from apsim_builds.errors import ConflictError, InvalidError, NotFoundError
from apsim_builds.models.db_models import Build, Upgrade, utcnow
from apsim_builds.services.revision_allocator import RevisionAllocator

logger = logging.getLogger(__name__)

RecordT = TypeVar('RecordT', Upgrade, Build)


def _check_limit(limit: int) -> int:
    if limit < 0:
        raise InvalidError(f"Limit must not be negative: {limit}")
    return limit


class Registry(Generic[RecordT]):
    """Operations common to both registries."""

    model: Type[RecordT]
    revision_attribute: str
    pull_request_attribute: str
    record_name: str

    def __init__(self, session_factory: Optional[sessionmaker] = None,
                 max_allocation_attempts: Optional[int] = None):
        """
        Args:
            session_factory: Factory for per-operation sessions. Must be
                created with expire_on_commit=False (see create_session_factory).
            max_allocation_attempts: Revision allocation retry bound
                (defaults to REVISION_ALLOCATION_ATTEMPTS)
        """
        if max_allocation_attempts is None:
            max_allocation_attempts = get_settings().REVISION_ALLOCATION_ATTEMPTS
        self.session_factory = session_factory or SessionLocal
        self.revisions: RevisionAllocator[RecordT] = RevisionAllocator(
            self.session_factory,
            getattr(self.model, self.revision_attribute),
            max_attempts=max_allocation_attempts,
        )

    def _unit_of_work(self):
        return get_db_context(self.session_factory)

    def _latest_for_pull_request(self, db: Session, pull_request_number: int) -> Optional[RecordT]:
        """Most recently inserted record for a pull request; re-registrations supersede earlier rows."""
        column = getattr(self.model, self.pull_request_attribute)
        return (
            db.query(self.model)
            .filter(column == pull_request_number)
            .order_by(self.model.id.desc())
            .first()
        )

    def _require_for_pull_request(self, db: Session, pull_request_number: int) -> RecordT:
        record = self._latest_for_pull_request(db, pull_request_number)
        if record is None:
            raise NotFoundError(f"No {self.record_name} exists with pull request ID {pull_request_number}")
        return record

    def _require(self, db: Session, record_id: int) -> RecordT:
        record = db.get(self.model, record_id)
        if record is None:
            raise NotFoundError(f"No {self.record_name} exists with ID {record_id}")
        return record

    def latest_revision(self) -> int:
        """Highest revision in the registry; 0 means no builds yet."""
        return self.revisions.latest_revision()

    def find_by_pull_request(self, pull_request_number: int) -> RecordT:
        """
        Most recently inserted record for a pull request.

        Raises:
            NotFoundError: If no record matches
        """
        with self._unit_of_work() as db:
            return self._require_for_pull_request(db, pull_request_number)


class UpgradeRegistry(Registry[Upgrade]):
    """Next-gen upgrades; revisions are allocated at insert time."""

    model = Upgrade
    revision_attribute = "revision"
    pull_request_attribute = "pull_request_number"
    record_name = "upgrade"

    def insert(self, issue_number: int, pull_request_number: int,
               issue_title: str = "", issue_url: str = "") -> Upgrade:
        """
        Allocate a revision and store a new upgrade released now.

        Returns:
            The stored upgrade
        """
        def build(revision: int) -> Upgrade:
            return Upgrade(
                issue_number=issue_number,
                pull_request_number=pull_request_number,
                issue_title=issue_title or "",
                issue_url=issue_url or "",
                release_date=utcnow(),
                revision=revision,
                released=False,
            )

        upgrade = self.revisions.allocate(build)
        logger.info(
            f"Registered upgrade revision {upgrade.revision} for pull request "
            f"{pull_request_number} (issue #{issue_number})"
        )
        return upgrade

    def next_revision(self) -> int:
        return self.revisions.next_revision()

    def list(self, limit: Optional[int] = None, min_revision: Optional[int] = None) -> List[Upgrade]:
        """
        Upgrades ordered by release date, most recent first.

        Args:
            limit: Maximum number of upgrades, applied after filtering and
                ordering. None means unlimited; 0 returns nothing.
            min_revision: Only upgrades with a revision strictly greater than
                this. None or a negative value means no lower bound.

        Returns:
            List of upgrades
        """
        with self._unit_of_work() as db:
            query = db.query(Upgrade)
            if min_revision is not None and min_revision >= 0:
                query = query.filter(Upgrade.revision > min_revision)
            query = query.order_by(Upgrade.release_date.desc(), Upgrade.id.desc())
            if limit is not None:
                query = query.limit(_check_limit(limit))
            return query.all()

    def find_by_revision(self, revision: int) -> Upgrade:
        """
        Raises:
            NotFoundError: If no upgrade has this revision
        """
        with self._unit_of_work() as db:
            upgrade = db.query(Upgrade).filter(Upgrade.revision == revision).first()
            if upgrade is None:
                raise NotFoundError(f"No release exists with revision number {revision}")
            return upgrade

    def mark_released(self, pull_request_number: int) -> Upgrade:
        """
        Flag the latest upgrade for a pull request as released, dated now.

        Raises:
            NotFoundError: If no upgrade matches the pull request
        """
        with self._unit_of_work() as db:
            upgrade = self._require_for_pull_request(db, pull_request_number)
            upgrade.released = True
            upgrade.release_date = utcnow()
            db.flush()
            logger.info(f"Released upgrade revision {upgrade.revision} (pull request {pull_request_number})")
            return upgrade


class BuildRegistry(Registry[Build]):
    """Legacy builds; revisions are assigned by an administrator after the fact."""

    model = Build
    revision_attribute = "revision_number"
    pull_request_attribute = "pull_request_id"
    record_name = "build"

    def insert(self, author: str, title: str, bug_id: int,
               jenkins_id: Optional[int] = None, pull_request_id: Optional[int] = None) -> Build:
        """
        Store a build at CI start time. Result, diffs and revision are unset.

        Returns:
            The stored build
        """
        with self._unit_of_work() as db:
            build = Build(
                author=author,
                title=title,
                bug_id=bug_id,
                start_time=utcnow(),
                jenkins_id=jenkins_id,
                pull_request_id=pull_request_id,
            )
            db.add(build)
            db.flush()
            logger.info(f"Registered build {build.id} for pull request {pull_request_id} (jenkins {jenkins_id})")
            return build

    def get(self, build_id: int) -> Build:
        with self._unit_of_work() as db:
            return self._require(db, build_id)

    def update_result(self, build_id: int, passed: bool) -> Build:
        """
        Record the build's outcome and set its finish time to now.

        Raises:
            NotFoundError: If the build doesn't exist
        """
        with self._unit_of_work() as db:
            build = self._require(db, build_id)
            build.passed = passed
            build.finish_time = utcnow()
            db.flush()
            logger.info(f"Build {build_id} {'passed' if passed else 'failed'}")
            return build

    def set_num_diffs(self, build_id: int, num_diffs: int) -> Build:
        """
        Raises:
            NotFoundError: If the build doesn't exist
        """
        with self._unit_of_work() as db:
            build = self._require(db, build_id)
            build.num_diffs = num_diffs
            db.flush()
            return build

    def set_revision(self, pull_request_id: int, revision: int) -> Build:
        """
        Assign a revision number to the latest build of a pull request.

        Assigning a build the revision it already holds is a no-op.

        Raises:
            NotFoundError: If no build matches the pull request
            ConflictError: If another build holds the revision, or this build
                already holds a different one
        """
        with self._unit_of_work() as db:
            build = self._require_for_pull_request(db, pull_request_id)

            existing = db.query(Build).filter(Build.revision_number == revision).first()
            if existing is not None:
                if existing.id == build.id:
                    return build
                raise ConflictError(
                    f"Revision number {revision} already allocated to build {existing.id} ({existing.title})"
                )
            if build.revision_number is not None:
                raise ConflictError(
                    f"Build {build.id} already has revision number {build.revision_number}"
                )

            build.revision_number = revision
            try:
                db.flush()
            except IntegrityError as e:
                # Lost a race with a concurrent assignment of the same revision
                raise ConflictError(f"Revision number {revision} already allocated") from e

            logger.info(f"Assigned revision {revision} to build {build.id} (pull request {pull_request_id})")
            return build

    def list(self, limit: Optional[int] = None) -> List[Build]:
        """
        Passing builds with an assigned revision, newest revision first.

        Args:
            limit: Maximum number of builds; None means unlimited
        """
        with self._unit_of_work() as db:
            query = (
                db.query(Build)
                .filter(Build.revision_number.isnot(None), Build.passed.is_(True))
                .order_by(Build.revision_number.desc())
            )
            if limit is not None:
                query = query.limit(_check_limit(limit))
            return query.all()
