"""
Tests for revision allocation, including concurrent writers.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.exc import IntegrityError

from apsim_builds.database import create_session_factory, get_db_context
from apsim_builds.errors import ConflictError
from apsim_builds.models.db_models import Upgrade, utcnow
from apsim_builds.services.registry import UpgradeRegistry
from apsim_builds.services.revision_allocator import RevisionAllocator


def make_upgrade(revision, pull_request_number=1):
    return Upgrade(
        issue_number=10,
        pull_request_number=pull_request_number,
        issue_title="",
        issue_url="",
        release_date=utcnow(),
        revision=revision,
        released=False,
    )


@pytest.fixture
def file_session_factory(file_engine):
    return create_session_factory(file_engine)


class TestRevisionAllocator:
    """Test suite for RevisionAllocator."""

    def test_empty_registry(self, session_factory):
        allocator = RevisionAllocator(session_factory, Upgrade.revision)
        assert allocator.latest_revision() == 0
        assert allocator.next_revision() == 1

    def test_sequential_allocation(self, session_factory):
        allocator = RevisionAllocator(session_factory, Upgrade.revision)
        revisions = [allocator.allocate(make_upgrade).revision for _ in range(3)]
        assert revisions == [1, 2, 3]
        assert allocator.latest_revision() == 3

    def test_allocation_follows_highest_revision(self, session_factory):
        """Test allocation continues from the maximum, not the row count."""
        with get_db_context(session_factory) as db:
            db.add(make_upgrade(41))
        allocator = RevisionAllocator(session_factory, Upgrade.revision)
        assert allocator.allocate(make_upgrade).revision == 42

    def test_allocated_record_has_id(self, session_factory):
        allocator = RevisionAllocator(session_factory, Upgrade.revision)
        record = allocator.allocate(make_upgrade)
        assert record.id is not None

    def test_retries_after_losing_race(self, file_session_factory):
        """Test a writer that read a stale maximum retries with a fresh one."""
        calls = []

        def build_with_competitor(revision):
            calls.append(revision)
            if len(calls) == 1:
                # Another writer commits the same revision first
                with get_db_context(file_session_factory) as db:
                    db.add(make_upgrade(revision, pull_request_number=99))
            return make_upgrade(revision)

        allocator = RevisionAllocator(file_session_factory, Upgrade.revision, max_attempts=3)
        record = allocator.allocate(build_with_competitor)

        assert calls == [1, 2]
        assert record.revision == 2
        assert allocator.latest_revision() == 2

    def test_gives_up_after_max_attempts(self, file_session_factory):
        def always_beaten(revision):
            with get_db_context(file_session_factory) as db:
                db.add(make_upgrade(revision, pull_request_number=99))
            return make_upgrade(revision)

        allocator = RevisionAllocator(file_session_factory, Upgrade.revision, max_attempts=2)
        with pytest.raises(ConflictError):
            allocator.allocate(always_beaten)

        # Only the competitor's rows exist
        with get_db_context(file_session_factory) as db:
            assert {u.pull_request_number for u in db.query(Upgrade).all()} == {99}

    def test_other_integrity_errors_propagate(self, session_factory):
        """Test a constraint failure unrelated to the revision isn't retried."""
        def invalid(revision):
            upgrade = make_upgrade(revision)
            upgrade.issue_number = None
            return upgrade

        allocator = RevisionAllocator(session_factory, Upgrade.revision)
        with pytest.raises(IntegrityError):
            allocator.allocate(invalid)
        assert allocator.latest_revision() == 0


class TestConcurrentAllocation:
    """Concurrent inserts on a shared database."""

    def test_concurrent_inserts_get_distinct_revisions(self, file_session_factory):
        registry = UpgradeRegistry(file_session_factory, max_allocation_attempts=10)
        writers = 8

        def insert(n):
            return registry.insert(issue_number=n, pull_request_number=1000 + n).revision

        with ThreadPoolExecutor(max_workers=writers) as executor:
            revisions = list(executor.map(insert, range(writers)))

        assert sorted(revisions) == list(range(1, writers + 1))
        assert registry.latest_revision() == writers
        assert len(registry.list()) == writers
