"""
Commit attribution cascade.

Classifies a GitHub REST commit payload using a strict priority cascade.
The first level that produces a result wins, later levels are never
consulted, and there is no scoring:

1. GitHub API account ``type`` is "Bot"
2. Author email (known bot formats, AI agent email domains)
3. Author login / name
4. Bot committer with a bot-like first message line
5. ``Co-Authored-By`` trailer naming an AI tool
6. AI marker phrases in the commit message
7. AI suffix on the author name ("Jane Doe (aider)")

Anything else is ``human``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from attribution.entities.enums import Classification
from attribution.services.classification.known_bots import (
    classify_ai_co_author,
    classify_ai_message_marker,
    extract_co_authors,
    has_ai_author_name,
    has_ai_co_author,
    has_ai_message_marker,
    match_bot_pattern,
)

BOT_NOREPLY_SUFFIX = "[bot]@users.noreply.github.com"
GITHUB_NOREPLY_EMAIL = "noreply@github.com"


@dataclass
class ClassificationResult:
    classification: Classification
    co_authors: List[str] = field(default_factory=list)


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def _section(payload: Dict[str, Any], *path: str) -> Dict[str, Any]:
    current: Any = payload
    for key in path:
        current = (current or {}).get(key) if isinstance(current, dict) else None
    return current or {}


def _is_github_web_committer(email: str, name: str) -> bool:
    return email == GITHUB_NOREPLY_EMAIL and name == "github"


def classify_commit(payload: Dict[str, Any]) -> ClassificationResult:
    """
    Attribute a commit to a human, a named AI tool, or an automation bot.

    Total over partial payloads: any missing author, committer or message
    field is treated as empty.
    """
    commit = _section(payload, "commit")
    author_account = _section(payload, "author")
    git_author = _section(payload, "commit", "author")
    git_committer = _section(payload, "commit", "committer")

    full_message = commit.get("message") or ""
    co_authors = extract_co_authors(full_message)

    author_login = _lower(author_account.get("login"))
    author_type = author_account.get("type")
    author_email = _lower(git_author.get("email"))
    author_name = _lower(git_author.get("name"))
    committer_email = _lower(git_committer.get("email"))
    committer_name = _lower(git_committer.get("name"))

    def result(classification: Classification) -> ClassificationResult:
        return ClassificationResult(classification=classification, co_authors=co_authors)

    # 1. Account type reported by the API
    if author_type == "Bot":
        return result(match_bot_pattern(author_login) or Classification.OTHER_BOT)

    # 2. Email formats of known bots and AI agents
    if "dependabot" in author_email:
        return result(Classification.DEPENDABOT)
    if "renovate" in author_email:
        return result(Classification.RENOVATE)
    if author_email.endswith(BOT_NOREPLY_SUFFIX):
        return result(match_bot_pattern(author_email) or Classification.OTHER_BOT)
    if _is_github_web_committer(author_email, author_name):
        return result(Classification.GITHUB_ACTIONS)

    # AI agents registered as regular users are caught by their email domain
    email_match = match_bot_pattern(author_email)
    if email_match:
        return result(email_match)

    # 3. Login and display name
    name_match = match_bot_pattern(author_login) or match_bot_pattern(author_name)
    if name_match:
        return result(name_match)

    # 4. Bots committing through the web UI
    if committer_email.endswith(BOT_NOREPLY_SUFFIX) or _is_github_web_committer(
        committer_email, committer_name
    ):
        first_line = full_message.split("\n")[0].lower()
        message_match = match_bot_pattern(first_line)
        if message_match:
            return result(message_match)

    # 5. AI co-author trailers
    if co_authors and has_ai_co_author(co_authors):
        return result(classify_ai_co_author(co_authors) or Classification.AI_ASSISTED)

    # 6. AI marker phrases
    if has_ai_message_marker(full_message):
        return result(classify_ai_message_marker(full_message) or Classification.AI_ASSISTED)

    # 7. AI suffix on the author name
    if author_name and has_ai_author_name(author_name):
        return result(Classification.AI_ASSISTED)

    return result(Classification.HUMAN)
