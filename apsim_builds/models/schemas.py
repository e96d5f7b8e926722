"""
Pydantic schemas for API request/response validation.

These schemas define the API contract separate from database models
for clean separation of concerns. Response schemas serialize with camelCase
keys because installers and the apsim website parse those names.
"""
from datetime import datetime, timezone
from typing import Annotated, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def as_utc(value: datetime) -> datetime:
    """Attach UTC to stored times; SQLite returns them without an offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# Value types

class IssueMetadata(BaseModel):
    """Github issue metadata."""
    model_config = ConfigDict(frozen=True)

    number: int
    title: str = ""
    url: str = ""


class PullRequestMetadata(BaseModel):
    """
    Metadata for a github pull request.

    issue is None when the pull request body references no issue with a
    recognised keyword; resolves_issue is then False.
    """
    model_config = ConfigDict(frozen=True)

    issue: Optional[IssueMetadata] = None
    resolves_issue: bool = False
    title: str = ""
    author: str = ""  # github login, not display name


# Response Schemas

class CamelModel(BaseModel):
    """Base for response schemas serialized with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UpgradeSchema(CamelModel):
    """Schema for a stored next-gen upgrade."""
    id: int
    issue_number: int
    pull_request_number: int
    issue_title: str
    issue_url: str
    release_date: UtcDatetime
    revision: int
    released: bool


class ReleaseSchema(CamelModel):
    """Schema for a published release, as consumed by installers."""
    release_date: UtcDatetime
    issue: int
    title: str
    download_link_debian: str
    download_link_windows: str
    download_link_mac_os: str = Field(..., alias="downloadLinkMacOS")
    info_url: str
    version: str
    revision: int


class BuildSchema(CamelModel):
    """Schema for a legacy build record."""
    id: int
    author: Optional[str] = None
    title: Optional[str] = None
    bug_id: Optional[int] = Field(None, alias="bugID")
    passed: Optional[bool] = Field(None, alias="pass")
    start_time: UtcDatetime
    finish_time: Optional[UtcDatetime] = None
    num_diffs: Optional[int] = None
    revision_number: Optional[int] = None
    jenkins_id: Optional[int] = Field(None, alias="jenkinsID")
    pull_request_id: Optional[int] = Field(None, alias="pullRequestID")


class MessageResponse(BaseModel):
    """Plain status message."""
    message: str


# Webhook payload (subset of github's pull_request event)

class GitHubUser(BaseModel):
    login: str = ""


class WebhookPullRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    number: int
    merged: bool = False
    user: GitHubUser = Field(default_factory=GitHubUser)
    merge_commit_sha: Optional[str] = None


class PullRequestEventPayload(BaseModel):
    model_config = ConfigDict(extra='ignore')

    action: Optional[str] = None
    pull_request: Optional[WebhookPullRequest] = None
