"""
Application-wide constants.

Defines shared constants used across the application to avoid magic strings
and ensure consistency.
"""

# GitHub repositories
APSIM_OWNER = "APSIMInitiative"
"""Owner of both apsim repositories on github."""

NEXTGEN_REPO = "ApsimX"
"""Repository holding APSIM Next Generation."""

CLASSIC_REPO = "APSIMClassic"
"""Repository holding APSIM Classic (the legacy registry)."""

# Pull request keywords
CLOSING_KEYWORDS = (
    "close", "closes", "closed",
    "fix", "fixes", "fixed",
    "resolve", "resolves", "resolved",
)
"""
Keywords which mark a pull request as resolving the referenced issue.

Taken from https://help.github.com/articles/closing-issues-using-keywords/
"""

PROGRESS_KEYWORDS = ("working on",)
"""Keywords which reference an issue without resolving it."""

# Jenkins jobs
NEXTGEN_RELEASE_JOB = "apsim-release"
CLASSIC_RELEASE_JOB = "oldapsim-release"

# Webhooks
SIGNATURE_HEADER = "X-Hub-Signature-256"
"""Header carrying github's HMAC-SHA256 signature of the webhook body."""

# Documentation
DOCS_INDEX_FILE = "index.html"
