"""Deterministic commit messages derived from staged file paths.

Used when AI generation is unavailable or the user declines to wait for
it. Every staged path lands in exactly one conventional-commit category;
the message names the highest-precedence non-empty category.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from posixpath import basename

from ..git.models import StatusSnapshot

# Highest precedence first.
CATEGORY_ORDER: tuple[str, ...] = ("test", "docs", "style", "chore", "feat", "fix", "refactor")
DEFAULT_MESSAGE = "chore: update files"
MAX_LISTED_FILES = 3

_TEST_RE = re.compile(r"test|spec", re.IGNORECASE)
_DOCS_RE = re.compile(r"\.md$", re.IGNORECASE)
_STYLE_RE = re.compile(r"\.(css|scss|less)$", re.IGNORECASE)
_CHORE_RE = re.compile(r"package\.json|tsconfig|config|\.jsonc$", re.IGNORECASE)
_FEATURE_RE = re.compile(r"src|component|feature|page", re.IGNORECASE)


def categorize_path(path: str, *, is_new: bool) -> str:
    """Return the commit category for one staged path."""

    if _TEST_RE.search(path):
        return "test"
    if _DOCS_RE.search(path):
        return "docs"
    if _STYLE_RE.search(path):
        return "style"
    if _CHORE_RE.search(path):
        return "chore"
    if is_new and _FEATURE_RE.search(path):
        return "feat"
    if not is_new:
        return "fix"
    return "refactor"


def categorize(staged: Iterable[str], new_files: Iterable[str] = ()) -> dict[str, list[str]]:
    """Group staged file names by category, preserving sorted path order."""

    new_paths = set(new_files)
    groups: dict[str, list[str]] = {name: [] for name in CATEGORY_ORDER}
    for path in sorted(staged):
        category = categorize_path(path, is_new=path in new_paths)
        groups[category].append(basename(path))
    return groups


def fallback_message(snapshot: StatusSnapshot) -> str:
    """Build the fallback message for ``snapshot``'s staged files."""

    if not snapshot.staged:
        return DEFAULT_MESSAGE
    groups = categorize(snapshot.staged, snapshot.new_files)
    for category in CATEGORY_ORDER:
        names = groups[category]
        if not names:
            continue
        listed = ", ".join(names[:MAX_LISTED_FILES])
        extra = len(names) - MAX_LISTED_FILES
        suffix = f" +{extra} more" if extra > 0 else ""
        return f"{category}: {listed}{suffix}"
    return DEFAULT_MESSAGE


__all__ = ["CATEGORY_ORDER", "DEFAULT_MESSAGE", "categorize", "categorize_path", "fallback_message"]
