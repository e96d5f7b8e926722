"""
Keyword Resolver - finds the issue a pull request addresses.

Scans a pull request body for a keyword followed by an issue reference
("fixes #123", "working on #45"). When the body mentions several issues, the
earliest reference in the text is authoritative regardless of which keyword
introduced it.
"""
import re
from typing import Iterable, NamedTuple, Optional, Pattern

from apsim_builds.constants import CLOSING_KEYWORDS, PROGRESS_KEYWORDS


class KeywordMatch(NamedTuple):
    """Issue referenced by a pull request."""
    issue_number: int
    resolves: bool  # True for closing keywords, False for progress keywords


def _keyword_alternation(keywords: Iterable[str]) -> str:
    # Longest first so "closes" isn't shadowed by "close" at the same offset
    ordered = sorted(keywords, key=len, reverse=True)
    return "|".join(r"\s+".join(re.escape(word) for word in kw.split()) for kw in ordered)


class KeywordResolver:
    """
    Resolves the first keyword + issue reference in free text.

    Both keyword sets are folded into a single case-insensitive pattern; a
    regex search returns the leftmost match, which is the earliest reference
    among all keywords.
    """

    def __init__(self, closing_keywords: Iterable[str] = CLOSING_KEYWORDS,
                 progress_keywords: Iterable[str] = PROGRESS_KEYWORDS):
        self.closing_keywords = tuple(closing_keywords)
        self.progress_keywords = tuple(progress_keywords)
        self._pattern = self._compile()

    def _compile(self) -> Pattern:
        groups = []
        if self.closing_keywords:
            groups.append(f"(?P<closing>{_keyword_alternation(self.closing_keywords)})")
        if self.progress_keywords:
            groups.append(f"(?P<progress>{_keyword_alternation(self.progress_keywords)})")
        if not groups:
            raise ValueError("At least one keyword is required")
        return re.compile(
            r"(?:" + "|".join(groups) + r")\s+#(?P<issue>\d+)",
            re.IGNORECASE,
        )

    def resolve(self, body: Optional[str]) -> Optional[KeywordMatch]:
        """
        Find the earliest issue reference in a pull request body.

        Args:
            body: Pull request body (may be None for an empty description)

        Returns:
            KeywordMatch, or None if no keyword references an issue
        """
        if not body:
            return None

        match = self._pattern.search(body)
        if match is None:
            return None

        return KeywordMatch(
            issue_number=int(match.group("issue")),
            resolves=match.groupdict().get("closing") is not None,
        )


_default_resolver = KeywordResolver()


def resolve_keywords(body: Optional[str]) -> Optional[KeywordMatch]:
    """Resolve a pull request body using the standard github keywords."""
    return _default_resolver.resolve(body)
