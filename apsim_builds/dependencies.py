"""
FastAPI dependency providers for registries and upstream clients.

Tests swap these out through app.dependency_overrides.
"""
from typing import Generator

from fastapi import Depends

from apsim_builds.config import get_settings
from apsim_builds.database import SessionLocal
from apsim_builds.services.github_service import GitHubClient, IssueResolver
from apsim_builds.services.jenkins_service import JenkinsClient
from apsim_builds.services.registry import BuildRegistry, UpgradeRegistry


def get_upgrade_registry() -> UpgradeRegistry:
    return UpgradeRegistry(SessionLocal)


def get_build_registry() -> BuildRegistry:
    return BuildRegistry(SessionLocal)


def get_github_client() -> Generator[GitHubClient, None, None]:
    settings = get_settings()
    with GitHubClient(
        api_url=settings.GITHUB_API_URL,
        token=settings.GITHUB_PAT,
        timeout=settings.GITHUB_TIMEOUT_SECONDS
    ) as client:
        yield client


def get_issue_resolver(github: GitHubClient = Depends(get_github_client)) -> IssueResolver:
    return IssueResolver(github)


def get_jenkins_client() -> Generator[JenkinsClient, None, None]:
    settings = get_settings()
    with JenkinsClient(settings.JENKINS_URL, verify_ssl=settings.JENKINS_VERIFY_SSL) as client:
        yield client
