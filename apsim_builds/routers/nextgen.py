"""
APSIM Next Generation API router.

Registers release builds, lists releases for the installer's upgrade
checker, and serves installers and autodocs.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from apsim_builds.config import get_settings
from apsim_builds.constants import APSIM_OWNER, NEXTGEN_REPO, NEXTGEN_RELEASE_JOB
from apsim_builds.dependencies import get_issue_resolver, get_jenkins_client, get_upgrade_registry
from apsim_builds.errors import NotFoundError
from apsim_builds.models.schemas import MessageResponse, ReleaseSchema, UpgradeSchema
from apsim_builds.services import release_descriptor, release_service
from apsim_builds.services.github_service import IssueResolver
from apsim_builds.services.jenkins_service import JenkinsClient
from apsim_builds.services.registry import UpgradeRegistry
from apsim_builds.utils.auth import verify_api_key
from apsim_builds.utils.security import verify_webhook_signature

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/add", response_model=ReleaseSchema, dependencies=[Depends(verify_api_key)])
def add_build(
    pull_request_number: int = Query(..., alias="pullRequestNumber", ge=0),
    resolver: IssueResolver = Depends(get_issue_resolver),
    registry: UpgradeRegistry = Depends(get_upgrade_registry)
):
    """
    Add a release build to the builds database.

    Args:
        pull_request_number: Number of the github pull request which triggered this build

    Returns:
        The new release

    Raises:
        InvalidError: If the pull request references no issue
        UpstreamFailureError: If github can't be queried; nothing is stored
    """
    upgrade = release_service.register_upgrade(
        pull_request_number, resolver, registry, APSIM_OWNER, NEXTGEN_REPO
    )
    return release_descriptor.describe(upgrade)


@router.post("/list", response_model=List[ReleaseSchema])
def list_releases(
    n: int = Query(-1, description="Number of releases to fetch, 0 or -1 for unlimited"),
    min_revision: int = Query(-1, alias="min", description="Return releases newer than this revision, -1 for all"),
    registry: UpgradeRegistry = Depends(get_upgrade_registry)
):
    """
    Enumerate the available releases, most recent first.
    """
    upgrades = registry.list(limit=n if n > 0 else None, min_revision=min_revision)
    return [release_descriptor.describe(upgrade) for upgrade in upgrades]


@router.post("/upgrades", response_model=List[UpgradeSchema])
def list_upgrades(
    n: int = Query(-1, description="Number of upgrades to fetch, 0 or -1 for unlimited"),
    min_revision: int = Query(-1, alias="min", description="Return upgrades newer than this revision, -1 for all"),
    registry: UpgradeRegistry = Depends(get_upgrade_registry)
):
    """Enumerate the stored upgrade records, most recent first."""
    return registry.list(limit=n if n > 0 else None, min_revision=min_revision)


@router.get("/nextversion", response_model=int)
def get_next_revision_number(registry: UpgradeRegistry = Depends(get_upgrade_registry)):
    """Get the revision number the next release will receive."""
    return registry.next_revision()


@router.post("/release", response_model=UpgradeSchema, dependencies=[Depends(verify_api_key)])
def release_upgrade(
    pull_request_number: int = Query(..., alias="pullRequestNumber", ge=0),
    registry: UpgradeRegistry = Depends(get_upgrade_registry)
):
    """Mark the latest upgrade built from a pull request as released."""
    return registry.mark_released(pull_request_number)


@router.get("/download/{revision}/{platform}")
def download_installer(
    revision: int = Path(..., ge=0),
    platform: str = Path(..., min_length=1, max_length=20)
):
    """
    Download an apsim installer.

    Args:
        revision: Revision of apsim to download
        platform: Target platform (Linux, MacOS or Windows)

    Raises:
        UnsupportedPlatformError: For any other platform
        NotFoundError: If no installer has been uploaded for this revision
    """
    settings = get_settings()
    file_name = release_descriptor.installer_file_name(revision, platform)
    file_path = release_descriptor.installer_path(settings.INSTALLERS_PATH, revision, platform)

    if not file_path.is_file():
        raise NotFoundError(f"Installer {file_name} not found")

    return FileResponse(file_path, media_type="application/octet-stream", filename=file_name)


@router.get("/docs")
def get_documentation_html(
    version: Optional[str] = Query(None, max_length=50, description="Version number; latest if omitted"),
    registry: UpgradeRegistry = Depends(get_upgrade_registry)
):
    """
    Get documentation HTML for the specified version.

    Resolves the version to its revision, the revision to the pull request
    which built it, and serves that pull request's autodocs.
    """
    if version:
        revision = release_descriptor.parse_version_string(version)
    else:
        revision = registry.latest_revision()
        if revision == 0:
            raise NotFoundError("No releases exist")

    upgrade = registry.find_by_revision(revision)
    file_path = release_descriptor.docs_path(get_settings().DOCUMENTATION_PATH, upgrade.pull_request_number)
    if not file_path.is_file():
        raise NotFoundError(f"No documentation found for revision {revision}")

    return FileResponse(file_path, media_type="text/html")


@router.post("/webhook", response_model=MessageResponse)
async def pull_request_merged(
    body: bytes = Depends(verify_webhook_signature),
    resolver: IssueResolver = Depends(get_issue_resolver),
    jenkins: JenkinsClient = Depends(get_jenkins_client)
):
    """
    Called by a github webhook when a pull request event occurs. Triggers a
    release build on Jenkins if a merged pull request resolved an issue.
    """
    payload = release_service.parse_pull_request_event(body)
    job = release_service.ReleaseJob(
        owner=APSIM_OWNER,
        repo=NEXTGEN_REPO,
        job_name=NEXTGEN_RELEASE_JOB,
        token=get_settings().JENKINS_TOKEN_NG,
    )
    message = await run_in_threadpool(
        release_service.handle_pull_request_event, payload, resolver, jenkins, job
    )
    return MessageResponse(message=message)
