"""
Release Service - orchestrates build registration and webhook handling.

Registration resolves the pull request on github before touching the
registry, so an upstream failure or a pull request without an issue never
leaves a record behind.
"""
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from apsim_builds.errors import InvalidError
from apsim_builds.models.db_models import Build, Upgrade
from apsim_builds.models.schemas import IssueMetadata, PullRequestEventPayload, PullRequestMetadata
from apsim_builds.services.github_service import IssueResolver
from apsim_builds.services.jenkins_service import JenkinsClient, release_parameters
from apsim_builds.services.registry import BuildRegistry, UpgradeRegistry

logger = logging.getLogger(__name__)

IGNORED_NOT_MERGED = "Ignored: pull request is not merged"
IGNORED_NO_ISSUE = "Ignored: pull request does not resolve an issue"
RELEASE_TRIGGERED = "Initiated a release build of apsim"


@dataclass(frozen=True)
class ReleaseJob:
    """Where a registry's pull requests live and which Jenkins job releases them."""
    owner: str
    repo: str
    job_name: str
    token: str
    include_issue_number: bool = True


def require_issue(metadata: PullRequestMetadata, pull_request_number: int) -> IssueMetadata:
    """
    Raises:
        InvalidError: If the pull request body references no issue
    """
    if metadata.issue is None:
        raise InvalidError(f"Pull request {pull_request_number} does not reference an issue")
    return metadata.issue


def register_upgrade(pull_request_number: int, resolver: IssueResolver,
                     registry: UpgradeRegistry, owner: str, repo: str) -> Upgrade:
    """Register a next-gen release build for a pull request."""
    metadata = resolver.get_metadata(pull_request_number, owner, repo)
    issue = require_issue(metadata, pull_request_number)
    return registry.insert(issue.number, pull_request_number, issue.title, issue.url)


def register_build(pull_request_id: int, jenkins_id: int, resolver: IssueResolver,
                   registry: BuildRegistry, owner: str, repo: str) -> Build:
    """Register a legacy CI build when its Jenkins run starts."""
    metadata = resolver.get_metadata(pull_request_id, owner, repo)
    issue = require_issue(metadata, pull_request_id)
    return registry.insert(
        author=metadata.author,
        title=issue.title,
        bug_id=issue.number,
        jenkins_id=jenkins_id,
        pull_request_id=pull_request_id,
    )


def parse_pull_request_event(body: bytes) -> PullRequestEventPayload:
    """
    Decode a github pull_request webhook body.

    Raises:
        InvalidError: If the body is empty or not a pull_request event
    """
    if not body or not body.strip():
        raise InvalidError("Empty payload")
    try:
        return PullRequestEventPayload.model_validate_json(body)
    except ValidationError as e:
        raise InvalidError(f"Malformed payload: {e.error_count()} validation error(s)") from e


def handle_pull_request_event(payload: PullRequestEventPayload, resolver: IssueResolver,
                              jenkins: JenkinsClient, job: ReleaseJob) -> str:
    """
    Trigger a release build when a merged pull request resolves an issue.

    Returns:
        Status message for the webhook response

    Raises:
        InvalidError: If the payload carries no pull request
    """
    pull_request = payload.pull_request
    if pull_request is None:
        raise InvalidError("Payload does not contain a pull request")

    if not pull_request.merged:
        return IGNORED_NOT_MERGED

    metadata = resolver.get_metadata(pull_request.number, job.owner, job.repo)
    if not metadata.resolves_issue:
        logger.info(f"Pull request {pull_request.number} merged without resolving an issue")
        return IGNORED_NO_ISSUE

    parameters = release_parameters(
        metadata,
        pull_request.number,
        pull_request.user.login,
        pull_request.merge_commit_sha,
        include_issue_number=job.include_issue_number,
    )
    jenkins.trigger_build(job.job_name, job.token, parameters)
    return RELEASE_TRIGGERED
