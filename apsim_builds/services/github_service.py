"""
GitHub Service - reads pull requests and issues from github's REST API.

Provides:
- GitHubClient: minimal read-only REST client
- IssueResolver: combines a pull request and the issue its body references
  into PullRequestMetadata
"""
import logging
from typing import Any, Dict, Optional

import requests

from apsim_builds.errors import NotFoundError, UpstreamFailureError
from apsim_builds.models.schemas import IssueMetadata, PullRequestMetadata
from apsim_builds.services.keyword_resolver import KeywordResolver


logger = logging.getLogger(__name__)


class GitHubClient:
    """
    Handles github REST API interactions.

    Requests are not retried; failures propagate to the caller. Use as context
    manager for proper resource cleanup:
        with GitHubClient(api_url, token) as client:
            client.get_pull_request(owner, repo, 123)
    """

    def __init__(self, api_url: str = "https://api.github.com", token: str = "", timeout: float = 30.0):
        """
        Initialize github client.

        Args:
            api_url: Base URL of the REST API
            token: Personal access token (anonymous requests if empty)
            timeout: Request timeout in seconds
        """
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github+json"})
        if token:
            self.session.headers["Authorization"] = f"token {token}"

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

    def _make_request(self, path: str, resource: str) -> Dict[str, Any]:
        """
        GET a JSON object from the API.

        Args:
            path: Path relative to the API root
            resource: Human readable name of the resource, for error messages

        Returns:
            Decoded JSON object

        Raises:
            NotFoundError: If github reports 404
            UpstreamFailureError: On any other HTTP error, connection error,
                or a response that is not a JSON object
        """
        url = f"{self.api_url}/{path.lstrip('/')}"
        logger.debug(f"GitHub request: {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise UpstreamFailureError(f"GitHub request failed for {resource}: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"{resource} not found")

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise UpstreamFailureError(
                f"GitHub returned HTTP {response.status_code} for {resource}"
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFailureError(f"GitHub returned malformed JSON for {resource}") from e

        if not isinstance(data, dict):
            raise UpstreamFailureError(f"GitHub returned unexpected data for {resource}")
        return data

    def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        """Fetch a pull request."""
        return self._make_request(
            f"repos/{owner}/{repo}/pulls/{number}",
            f"Pull request {number} on {owner}/{repo}"
        )

    def get_issue(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        """Fetch an issue."""
        return self._make_request(
            f"repos/{owner}/{repo}/issues/{number}",
            f"Issue {number} on {owner}/{repo}"
        )


class IssueResolver:
    """Determines which issue a pull request addresses."""

    def __init__(self, github: GitHubClient, keywords: Optional[KeywordResolver] = None):
        self.github = github
        self.keywords = keywords or KeywordResolver()

    def get_metadata(self, pull_request_number: int, owner: str, repo: str) -> PullRequestMetadata:
        """
        Get metadata for a pull request on the given repository.

        A body without any keyword reference is a normal outcome: the result
        has no issue and resolves_issue is False. Callers which need an issue
        decide whether that is an error.

        Args:
            pull_request_number: Pull request number
            owner: Repository owner
            repo: Repository name

        Returns:
            PullRequestMetadata

        Raises:
            NotFoundError: If the pull request or its referenced issue doesn't exist
            UpstreamFailureError: If github fails or returns malformed data
        """
        pull = self.github.get_pull_request(owner, repo, pull_request_number)
        try:
            title = pull.get("title") or ""
            author = pull["user"]["login"]
        except (KeyError, TypeError) as e:
            raise UpstreamFailureError(
                f"Pull request {pull_request_number} on {owner}/{repo} is missing its author"
            ) from e

        match = self.keywords.resolve(pull.get("body"))
        if match is None:
            logger.info(f"Pull request {pull_request_number} on {owner}/{repo} references no issue")
            return PullRequestMetadata(issue=None, resolves_issue=False, title=title, author=author)

        issue = self.github.get_issue(owner, repo, match.issue_number)
        issue_metadata = IssueMetadata(
            number=match.issue_number,
            title=issue.get("title") or "",
            url=issue.get("html_url") or issue.get("url") or "",
        )
        logger.info(
            f"Pull request {pull_request_number} {'resolves' if match.resolves else 'works on'} "
            f"issue #{match.issue_number}"
        )
        return PullRequestMetadata(
            issue=issue_metadata,
            resolves_issue=match.resolves,
            title=title,
            author=author,
        )
