"""
SQLAlchemy database models for the builds registry.

This module defines the two registry tables: next-gen upgrades, whose
revision is allocated when the row is inserted, and legacy (APSIM Classic)
builds, whose revision is assigned later by an administrator.
"""
from datetime import datetime, timezone
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Platform(str, enum.Enum):
    """Installer target platforms. Values match the download URL segment."""
    LINUX = "Linux"
    MACOS = "MacOS"
    WINDOWS = "Windows"

    @classmethod
    def _missing_(cls, value):
        # Case-insensitive lookup ("linux", "macos")
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class Upgrade(Base):
    """A next-gen release build tied to a resolved issue and pull request."""
    __tablename__ = "upgrades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_number = Column(Integer, nullable=False)
    pull_request_number = Column(Integer, nullable=False)  # Not unique: PRs may be re-registered
    issue_title = Column(String(500), nullable=False, default="")
    issue_url = Column(String(2000), nullable=False, default="")
    release_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    revision = Column(Integer, nullable=False)
    released = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('idx_upgrade_revision', 'revision', unique=True),  # Allocation relies on this
        Index('idx_upgrade_pull_request', 'pull_request_number'),
        Index('idx_upgrade_release_date', 'release_date'),  # For ordering
    )

    def __repr__(self):
        return f"<Upgrade(revision={self.revision}, pull_request_number={self.pull_request_number})>"


class Build(Base):
    """A CI run in the legacy (APSIM Classic) registry."""
    __tablename__ = "builds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    author = Column(String(200))
    title = Column(String(500))
    bug_id = Column(Integer)  # Old bug tracker id for older builds, github issue for newer ones
    passed = Column("pass", Boolean, nullable=True)  # NULL until the build finishes
    start_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    finish_time = Column(DateTime(timezone=True))
    num_diffs = Column(Integer)
    revision_number = Column(Integer)  # NULL until assigned via setrevision
    jenkins_id = Column(Integer)
    pull_request_id = Column(Integer)  # NULL for builds not triggered by a pull request

    __table_args__ = (
        Index('idx_build_revision', 'revision_number', unique=True),
        Index('idx_build_pull_request', 'pull_request_id'),
    )

    def __repr__(self):
        return f"<Build(id={self.id}, pull_request_id={self.pull_request_id}, revision_number={self.revision_number})>"
