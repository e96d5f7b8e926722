"""
Jenkins Service - starts release builds on the CI server.

Provides:
- JenkinsClient: remote trigger of parameterised jobs
- release_parameters: the parameter set the release jobs expect
"""
import logging
from typing import Dict, Optional, Union

import requests

from apsim_builds.errors import UpstreamFailureError
from apsim_builds.models.schemas import PullRequestMetadata


logger = logging.getLogger(__name__)


class JenkinsClient:
    """
    Handles Jenkins remote job triggers.

    Use as context manager for proper resource cleanup:
        with JenkinsClient(url) as client:
            client.trigger_build(...)
    """

    def __init__(self, url: str, verify_ssl: bool = True, timeout: float = 30.0):
        """
        Initialize Jenkins client.

        Args:
            url: Jenkins server URL
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
        """
        self.url = url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.session = requests.Session()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - clean up session."""
        self.close()
        return False

    def close(self):
        """Close the requests session to free resources."""
        if hasattr(self, 'session') and self.session:
            self.session.close()

    def trigger_build(self, job_name: str, token: str, parameters: Dict[str, Union[str, int]]) -> None:
        """
        Start a parameterised job using its remote trigger token.

        The call is fire-and-forget: success means Jenkins queued the build.

        Args:
            job_name: Jenkins job name (e.g. "apsim-release")
            token: Remote trigger token configured on the job
            parameters: Build parameters

        Raises:
            UpstreamFailureError: If Jenkins is not configured or rejects the request
        """
        if not self.url:
            raise UpstreamFailureError("Jenkins URL is not configured")

        api_url = f"{self.url}/job/{job_name}/buildWithParameters"
        logger.info(f"Triggering Jenkins job {job_name} with {parameters}")

        try:
            response = self.session.get(
                api_url,
                params={"token": token, **parameters},
                timeout=self.timeout,
                verify=self.verify_ssl,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to trigger Jenkins job {job_name}: {e}", exc_info=True)
            raise UpstreamFailureError(f"Failed to trigger Jenkins job {job_name}") from e


def release_parameters(
    metadata: PullRequestMetadata,
    pull_request_number: int,
    commit_author: str,
    merge_commit: Optional[str],
    include_issue_number: bool = True
) -> Dict[str, Union[str, int]]:
    """
    Parameters for the apsim-release / oldapsim-release jobs.

    Args:
        metadata: Resolved pull request metadata (must reference an issue)
        pull_request_number: Merged pull request
        commit_author: Login of the pull request author
        merge_commit: SHA of the merge commit
        include_issue_number: The classic job doesn't take ISSUE_NUMBER

    Returns:
        Parameter dict
    """
    parameters: Dict[str, Union[str, int]] = {}
    if include_issue_number:
        parameters["ISSUE_NUMBER"] = metadata.issue.number
    parameters.update({
        "PULL_ID": pull_request_number,
        "COMMIT_AUTHOR": commit_author,
        "ISSUE_TITLE": metadata.issue.title,
        "RELEASED": "true",
        "MERGE_COMMIT": merge_commit or "",
    })
    return parameters
