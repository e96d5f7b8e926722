"""
APSIM Classic API router.

Legacy registry: Jenkins registers a build when a CI run starts, reports
its result when it finishes, and an administrator assigns revision numbers.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from apsim_builds.config import get_settings
from apsim_builds.constants import APSIM_OWNER, CLASSIC_REPO, CLASSIC_RELEASE_JOB
from apsim_builds.dependencies import get_build_registry, get_issue_resolver, get_jenkins_client
from apsim_builds.models.schemas import BuildSchema, MessageResponse
from apsim_builds.services import release_service
from apsim_builds.services.github_service import IssueResolver
from apsim_builds.services.jenkins_service import JenkinsClient
from apsim_builds.services.registry import BuildRegistry
from apsim_builds.utils.auth import verify_api_key
from apsim_builds.utils.security import verify_webhook_signature

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/add", response_model=int, dependencies=[Depends(verify_api_key)])
def add_build(
    pull_request_id: int = Query(..., alias="pullRequestId", ge=0),
    jenkins_id: int = Query(..., alias="jenkinsId", ge=0),
    resolver: IssueResolver = Depends(get_issue_resolver),
    registry: BuildRegistry = Depends(get_build_registry)
):
    """
    Add a pull request to the builds DB and return the build ID.

    Called when a Jenkins CI run first starts.
    """
    build = release_service.register_build(
        pull_request_id, jenkins_id, resolver, registry, APSIM_OWNER, CLASSIC_REPO
    )
    return build.id


@router.post("/update", response_model=BuildSchema, dependencies=[Depends(verify_api_key)])
def update_build(
    job_id: int = Query(..., alias="jobID", ge=0),
    passed: bool = Query(..., alias="pass"),
    registry: BuildRegistry = Depends(get_build_registry)
):
    """Update a build's status and set its finish time to now."""
    return registry.update_result(job_id, passed)


@router.get("/setnumdiffs", response_model=BuildSchema, dependencies=[Depends(verify_api_key)])
def update_num_diffs(
    job_id: int = Query(..., alias="jobID", ge=0),
    num_diffs: int = Query(..., alias="numDiffs", ge=0),
    registry: BuildRegistry = Depends(get_build_registry)
):
    """Update a build's number of diffs."""
    return registry.set_num_diffs(job_id, num_diffs)


@router.post("/getrevision", response_model=int)
def get_latest_revision_number(registry: BuildRegistry = Depends(get_build_registry)):
    """Get the latest revision number. Revision numbers start at 0."""
    return registry.latest_revision()


@router.post("/setrevision", response_model=BuildSchema, dependencies=[Depends(verify_api_key)])
def set_revision_number(
    pull_request_id: int = Query(..., alias="pullRequestId", ge=0),
    revision: int = Query(..., ge=0),
    registry: BuildRegistry = Depends(get_build_registry)
):
    """
    Set the revision number of the latest build for a pull request.

    Raises:
        NotFoundError: If no build exists for the pull request
        ConflictError: If the revision is already allocated to another build
    """
    return registry.set_revision(pull_request_id, revision)


@router.post("/list", response_model=List[BuildSchema])
def list_builds(
    n: int = Query(-1, description="Number of builds to fetch, 0 or -1 for unlimited"),
    registry: BuildRegistry = Depends(get_build_registry)
):
    """Enumerate passing builds which have a revision, newest first."""
    return registry.list(limit=n if n > 0 else None)


@router.post("/webhook", response_model=MessageResponse)
async def pull_request_merged(
    body: bytes = Depends(verify_webhook_signature),
    resolver: IssueResolver = Depends(get_issue_resolver),
    jenkins: JenkinsClient = Depends(get_jenkins_client)
):
    """
    Called by a github webhook when a pull request event occurs. Triggers a
    classic release build on Jenkins if a merged pull request resolved an issue.
    """
    payload = release_service.parse_pull_request_event(body)
    job = release_service.ReleaseJob(
        owner=APSIM_OWNER,
        repo=CLASSIC_REPO,
        job_name=CLASSIC_RELEASE_JOB,
        token=get_settings().JENKINS_TOKEN_CLASSIC,
        include_issue_number=False,
    )
    message = await run_in_threadpool(
        release_service.handle_pull_request_event, payload, resolver, jenkins, job
    )
    return MessageResponse(message=message)
