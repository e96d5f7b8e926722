"""
Pytest configuration and fixtures for testing.
"""
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add parent directory to path
TESTS_DIR = Path(__file__).resolve().parent
PROJECT_DIR = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_DIR))

# Settings are read when the application is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["API_KEY"] = ""
os.environ["HMAC_SECRET_KEY"] = ""
os.environ["JENKINS_URL"] = ""

from apsim_builds.config import get_settings
from apsim_builds.database import create_session_factory, drop_db, init_db
from apsim_builds.errors import NotFoundError, UpstreamFailureError
from apsim_builds.services.github_service import IssueResolver
from apsim_builds.services.registry import BuildRegistry, UpgradeRegistry


class FakeGitHub:
    """In-memory stand-in for GitHubClient."""

    def __init__(self):
        self.pulls: Dict[int, Dict[str, Any]] = {}
        self.issues: Dict[int, Dict[str, Any]] = {}
        self.fail = False

    def add_pull(self, number: int, body: str, author: str = "hol353", title: str = "A pull request"):
        self.pulls[number] = {"number": number, "title": title, "body": body, "user": {"login": author}}

    def add_issue(self, number: int, title: str):
        self.issues[number] = {
            "number": number,
            "title": title,
            "html_url": f"https://github.com/APSIMInitiative/ApsimX/issues/{number}",
        }

    def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        if self.fail:
            raise UpstreamFailureError("GitHub returned HTTP 500")
        if number not in self.pulls:
            raise NotFoundError(f"Pull request {number} on {owner}/{repo} not found")
        return self.pulls[number]

    def get_issue(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        if self.fail:
            raise UpstreamFailureError("GitHub returned HTTP 500")
        if number not in self.issues:
            raise NotFoundError(f"Issue {number} on {owner}/{repo} not found")
        return self.issues[number]


class FakeJenkins:
    """Records triggered jobs instead of calling Jenkins."""

    def __init__(self):
        self.triggered: List[Tuple[str, str, Dict[str, Any]]] = []

    def trigger_build(self, job_name: str, token: str, parameters: Dict[str, Any]) -> None:
        self.triggered.append((job_name, token, parameters))


@pytest.fixture(scope="function")
def test_engine():
    """
    Create a temporary in-memory database for testing.
    Each test gets a fresh database.

    StaticPool shares the single connection with the threads TestClient
    runs sync endpoints on.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    init_db(engine)
    try:
        yield engine
    finally:
        drop_db(engine)
        engine.dispose()


@pytest.fixture(scope="function")
def file_engine(tmp_path):
    """File-backed database for tests which need independent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'registry.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture(scope="function")
def upgrade_registry(session_factory):
    return UpgradeRegistry(session_factory, max_allocation_attempts=10)


@pytest.fixture(scope="function")
def build_registry(session_factory):
    return BuildRegistry(session_factory, max_allocation_attempts=10)


@pytest.fixture(scope="function")
def fake_github():
    github = FakeGitHub()
    github.add_issue(1234, "Wheat yield is too high")
    github.add_issue(77, "Refactor soil water")
    github.add_pull(500, "This PR fixes #1234", author="hol353")
    github.add_pull(501, "Working on #77 but not done yet", author="par456")
    github.add_pull(502, "Tidied up some comments", author="zur003")
    return github


@pytest.fixture(scope="function")
def issue_resolver(fake_github):
    return IssueResolver(fake_github)


@pytest.fixture(scope="function")
def fake_jenkins():
    return FakeJenkins()


@pytest.fixture(scope="function")
def settings_env(monkeypatch):
    """
    Override settings through environment variables.

    Usage:
        def test_something(settings_env):
            settings_env(API_KEY="secret")
    """
    def apply(**values):
        for name, value in values.items():
            monkeypatch.setenv(name, str(value))
        get_settings.cache_clear()

    yield apply
    get_settings.cache_clear()


@pytest.fixture(scope="function")
def client(upgrade_registry, build_registry, issue_resolver, fake_jenkins):
    """
    Test client whose registries and upstream clients are the test fixtures.

    Usage in test files:
        def test_endpoint(client, upgrade_registry):
            response = client.get("/api/nextgen/nextversion")
    """
    from fastapi.testclient import TestClient
    from apsim_builds import dependencies
    from apsim_builds.main import app

    app.dependency_overrides[dependencies.get_upgrade_registry] = lambda: upgrade_registry
    app.dependency_overrides[dependencies.get_build_registry] = lambda: build_registry
    app.dependency_overrides[dependencies.get_issue_resolver] = lambda: issue_resolver
    app.dependency_overrides[dependencies.get_jenkins_client] = lambda: fake_jenkins

    yield TestClient(app)

    # Cleanup: Remove overrides after test
    app.dependency_overrides.clear()
