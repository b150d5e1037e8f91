"""Prompt templates for commit message generation."""

from __future__ import annotations

from typing import Iterable

from ..git.models import StatusSnapshot

MAX_PATHS_PER_SECTION = 50

SYSTEM_PROMPT = (
    "You write git commit messages. Follow the Conventional Commits format: "
    "a lowercase type (feat, fix, docs, style, refactor, test, chore), an optional "
    "scope, a colon and an imperative summary of at most 72 characters. Add a short "
    "body of bullet points only when several unrelated changes are staged. "
    "Reply with the commit message only, without quotes or code fences."
)


def _section(title: str, paths: Iterable[str]) -> str:
    ordered = sorted(paths)
    if not ordered:
        return f"{title}: (none)"
    shown = ordered[:MAX_PATHS_PER_SECTION]
    lines = [f"{title}:"] + [f"- {path}" for path in shown]
    hidden = len(ordered) - len(shown)
    if hidden > 0:
        lines.append(f"- … and {hidden} more")
    return "\n".join(lines)


def build_commit_prompt(snapshot: StatusSnapshot) -> list[dict[str, str]]:
    """Return chat messages describing the staged changes in ``snapshot``."""

    new_files = snapshot.new_files
    body = "\n\n".join(
        (
            f"Branch: {snapshot.branch or 'unknown'}",
            _section("Staged files", snapshot.staged),
            _section("Newly added files", new_files),
            _section("Unstaged files (not part of this commit)", snapshot.unstaged),
        )
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Write a commit message for these changes.\n\n{body}"},
    ]


def clean_message(text: str) -> str:
    """Strip code fences and wrapping quotes the model sometimes adds."""

    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        lines = cleaned.splitlines()[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {'"', "'", "`"}:
        cleaned = cleaned[1:-1].strip()
    return cleaned


__all__ = ["SYSTEM_PROMPT", "build_commit_prompt", "clean_message"]
