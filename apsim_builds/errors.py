"""
Exception taxonomy for registry and resolver failures.

Each exception carries the HTTP status the API reports it with; the handler
in main.py renders them as {"error": kind, "detail": message}.
"""


class BuildsError(Exception):
    """Base class for errors reported to API callers."""
    status_code = 500
    kind = "Internal error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(BuildsError):
    """Unknown pull request, issue, build id or revision."""
    status_code = 404
    kind = "Not found"


class ConflictError(BuildsError):
    """Revision number already allocated to another record."""
    status_code = 409
    kind = "Conflict"


class InvalidError(BuildsError):
    """Malformed input, or a pull request with no resolvable issue."""
    status_code = 400
    kind = "Invalid input"


class UnsupportedPlatformError(InvalidError):
    """Installer requested for a platform we don't package for."""

    def __init__(self, platform):
        super().__init__(f"Platform not supported: {platform}")
        self.platform = platform


class UpstreamFailureError(BuildsError):
    """GitHub or Jenkins call failed or returned malformed data."""
    status_code = 502
    kind = "Upstream failure"
