"""
Pattern tables for bot and AI-tool attribution.

Every table is an ordered list of rules evaluated with first-match-wins,
so more specific patterns come before generic ones. Adding a tool is a
matter of adding a row here.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from attribution.entities.enums import Classification
from attribution.services.classification.rules import (
    Rule,
    first_match,
    first_match_any,
    matches_any,
    pattern,
    patterns,
)

C = Classification

# AI code review agents, shared by the login, co-author and message tables
AI_REVIEW_LOGIN_RULES: List[Rule[Classification]] = patterns(
    [
        r"coderabbit",
        r"seer-by-sentry",
        r"sentry-ai-review",
        r"qodo",
        r"greptile",
        r"korbit-ai",
    ],
    C.AI_ASSISTED,
)

AI_REVIEW_CO_AUTHOR_RULES: List[Rule[Classification]] = patterns(
    [
        r"coderabbit",
        r"seer-by-sentry",
        r"\bseer\b",
        r"qodo",
        r"greptile",
        r"korbit",
    ],
    C.AI_ASSISTED,
)

AI_REVIEW_MESSAGE_RULES: List[Rule[Classification]] = patterns(
    [
        r"Generated by CodeRabbit",
        r"Generated by Seer",
        r"Generated by Qodo",
        r"Generated by Greptile",
        r"Generated by Korbit",
    ],
    C.AI_ASSISTED,
)

# Matched against author login, author name and email.
KNOWN_BOT_RULES: List[Rule[Classification]] = [
    # Dependency management bots
    pattern(r"dependabot", C.DEPENDABOT),
    pattern(r"renovate", C.RENOVATE),
    pattern(r"greenkeeper", C.OTHER_BOT),
    pattern(r"snyk-bot", C.OTHER_BOT),
    # Publishing and registry bots
    pattern(r"clawdhub", C.OTHER_BOT),
    pattern(r"blog-post-bot", C.OTHER_BOT),
    pattern(r"smithery", C.OTHER_BOT),
    pattern(r"expo-bot|expo\[bot\]", C.OTHER_BOT),
    # AI coding agents
    pattern(r"^cursoragent$", C.CURSOR),
    pattern(r"cursoragent@cursor\.com", C.CURSOR),
    pattern(r"^cursor[- ]?agent$", C.CURSOR),
    pattern(r"copilot-swe-agent", C.COPILOT),
    pattern(r"copilot", C.COPILOT),
    pattern(r"devin-ai-integration", C.DEVIN),
    pattern(r"devin-ai", C.DEVIN),
    pattern(r"^devin$", C.DEVIN),
    pattern(r"chatgpt-codex-connector", C.OPENAI_CODEX),
    pattern(r"^codex$", C.OPENAI_CODEX),
    pattern(r"gemini-code-assist", C.GEMINI),
    pattern(r"amazon-q-developer", C.AI_ASSISTED),
    pattern(r"sweep\[bot\]", C.AI_ASSISTED),
    *AI_REVIEW_LOGIN_RULES,
    # Sentry automation (not the AI reviewer)
    pattern(r"sentry-bot", C.OTHER_BOT),
    pattern(r"sentry\[bot\]", C.OTHER_BOT),
    # AI coding tools that may register as bot accounts
    *patterns(
        [
            r"codeium",
            r"windsurf",
            r"\bcody\b",
            r"tabnine",
            r"continue-dev",
            r"replit-agent",
            r"^replit$",
            r"bolt-agent",
            r"^v0$",
            r"v0-bot",
            r"blackbox-ai",
        ],
        C.AI_ASSISTED,
    ),
    # CI
    pattern(r"github-actions", C.GITHUB_ACTIONS),
    pattern(r"^actions$", C.GITHUB_ACTIONS),
    # Repository housekeeping bots
    *patterns(
        [
            r"imgbot",
            r"codecov",
            r"sonarcloud",
            r"allcontributors",
            r"semantic-release-bot",
            r"release-please",
            r"mergify",
            r"stale\[bot\]",
            r"vercel\[bot\]",
            r"netlify\[bot\]",
            r"changeset-bot",
            r"kodiakhq",
            r"auto-merge",
        ],
        C.OTHER_BOT,
    ),
    # Catch-alls, must stay last
    *patterns([r"\[bot\]$", r"^bot-", r"-bot$", r"-bot\b"], C.OTHER_BOT),
]

# Co-authored-by values that identify an AI tool at all
CO_AUTHOR_AI_RULES: List[Rule[bool]] = [
    *patterns(
        [
            r"noreply@anthropic\.com",
            r"\bclaude\b",
            r"cursoragent@cursor\.com",
            r"\bcursor\b",
            r"codex@openai\.com",
            r"\bcodex\b",
            r"\bcopilot\b",
            r"noreply@aider\.chat",
            r"\baider\b",
            r"codeium",
            r"windsurf",
            r"gemini-code-assist",
            r"\bgemini\b",
            r"amazon-q-developer",
            r"devin-ai",
            r"\bdevin\b",
            r"tabnine",
            r"\bcody\b",
            r"continue\.dev",
            r"sweep",
            r"\bclawd\b",
        ],
        True,
    ),
    *[Rule(rule.predicate, True) for rule in AI_REVIEW_CO_AUTHOR_RULES],
]

# Co-authored-by values that resolve to a specific tool
CO_AUTHOR_CLASSIFICATION_RULES: List[Rule[Classification]] = [
    pattern(r"cursoragent@cursor\.com", C.CURSOR),
    pattern(r"\bcursor\b", C.CURSOR),
    pattern(r"noreply@anthropic\.com", C.CLAUDE),
    pattern(r"\bclaude\b", C.CLAUDE),
    pattern(r"\bcopilot\b", C.COPILOT),
    pattern(r"codex@openai\.com", C.OPENAI_CODEX),
    pattern(r"\bcodex\b", C.OPENAI_CODEX),
    pattern(r"noreply@aider\.chat", C.AIDER),
    pattern(r"\baider\b", C.AIDER),
    pattern(r"gemini-code-assist", C.GEMINI),
    pattern(r"\bgemini\b", C.GEMINI),
    pattern(r"devin-ai", C.DEVIN),
    pattern(r"\bdevin\b", C.DEVIN),
    *AI_REVIEW_CO_AUTHOR_RULES,
]

MESSAGE_MARKER_CLASSIFICATION_RULES: List[Rule[Classification]] = [
    pattern(r"Generated with Cursor", C.CURSOR),
    pattern(r"\[Cursor\]", C.CURSOR),
    pattern(r"Generated with Claude", C.CLAUDE),
    pattern(r"Generated by GitHub Copilot", C.COPILOT),
    pattern(r"Generated by Copilot", C.COPILOT),
    pattern(r"^aider:", C.AIDER, re.IGNORECASE | re.MULTILINE),
    pattern(r"Generated by Gemini", C.GEMINI),
    *AI_REVIEW_MESSAGE_RULES,
]

COMMIT_MESSAGE_AI_MARKER_RULES: List[Rule[bool]] = [
    *patterns(
        [
            r"Generated with Claude Code",
            r"Generated with Claude",
            r"Generated with Cursor",
            r"\[Cursor\]",
            r"Generated by Windsurf",
            r"Generated by GitHub Copilot",
            r"Generated by Gemini",
            r"\bAI[- ]generated\b",
            r"\bgenerated by AI\b",
        ],
        True,
    ),
    pattern(r"^aider:", True, re.IGNORECASE | re.MULTILINE),
    *[Rule(rule.predicate, True) for rule in AI_REVIEW_MESSAGE_RULES],
]

AUTHOR_NAME_AI_RULES: List[Rule[bool]] = [pattern(r"\(aider\)$", True)]

CO_AUTHOR_TRAILER = re.compile(r"Co-Authored-By:\s*(.+)", re.IGNORECASE)
SQUASH_PR_REFERENCE = re.compile(r"\(#(\d+)\)\s*$")
MERGE_PR_REFERENCE = re.compile(r"^Merge pull request #(\d+)")


def extract_co_authors(message: Optional[str]) -> List[str]:
    """All ``Co-Authored-By:`` trailer values, in order, duplicates kept."""
    if not message:
        return []
    return [match.group(1).strip() for match in CO_AUTHOR_TRAILER.finditer(message)]


def extract_pr_number(message: Optional[str]) -> Optional[int]:
    """PR number from ``Title (#123)`` or ``Merge pull request #123 from ...``."""
    if not message:
        return None
    first_line = message.split("\n")[0]
    match = SQUASH_PR_REFERENCE.search(first_line) or MERGE_PR_REFERENCE.search(first_line)
    return int(match.group(1)) if match else None


def match_bot_pattern(value: Optional[str]) -> Optional[Classification]:
    return first_match(KNOWN_BOT_RULES, value)


def has_ai_co_author(co_authors: Sequence[str]) -> bool:
    return any(matches_any(CO_AUTHOR_AI_RULES, co_author) for co_author in co_authors)


def classify_ai_co_author(co_authors: Sequence[str]) -> Optional[Classification]:
    return first_match_any(CO_AUTHOR_CLASSIFICATION_RULES, co_authors)


def has_ai_message_marker(message: Optional[str]) -> bool:
    return matches_any(COMMIT_MESSAGE_AI_MARKER_RULES, message)


def classify_ai_message_marker(message: Optional[str]) -> Optional[Classification]:
    return first_match(MESSAGE_MARKER_CLASSIFICATION_RULES, message)


def has_ai_author_name(author_name: Optional[str]) -> bool:
    return matches_any(AUTHOR_NAME_AI_RULES, author_name)
