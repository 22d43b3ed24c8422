"""
Resolve generic classifications into named tools and bots.

``ai-assisted`` and ``other-bot`` are buckets the commit cascade falls back
to. After a sync, this pass looks at every classified commit again and
names the concrete tool or bot where the commit text allows it.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from attribution.entities.commit import Commit
from attribution.entities.enums import Classification
from attribution.entities.repo import BreakdownEntry
from attribution.services.classification.known_bots import CO_AUTHOR_AI_RULES
from attribution.services.classification.rules import Rule, first_match, matches_any, pattern

C = Classification

# (key, label)
DetailedMatch = Tuple[str, str]

UNKNOWN_AI_KEY = "ai-unspecified"
UNKNOWN_AI_MATCH: DetailedMatch = (UNKNOWN_AI_KEY, "Unspecified AI Assistant")
UNKNOWN_BOT_MATCH: DetailedMatch = ("bot-unspecified", "Unspecified Bot")

FIXED_AI_CLASSIFICATIONS: Dict[str, DetailedMatch] = {
    C.COPILOT.value: ("github-copilot", "GitHub Copilot"),
    C.CLAUDE.value: ("claude-code", "Claude Code"),
    C.CURSOR.value: ("cursor", "Cursor"),
    C.AIDER.value: ("aider", "Aider"),
    C.DEVIN.value: ("devin", "Devin"),
    C.OPENAI_CODEX.value: ("openai-codex", "OpenAI Codex"),
    C.GEMINI.value: ("gemini", "Gemini"),
}

FIXED_AUTOMATION_CLASSIFICATIONS: Dict[str, DetailedMatch] = {
    C.DEPENDABOT.value: ("dependabot", "Dependabot"),
    C.RENOVATE.value: ("renovate", "Renovate"),
    C.GITHUB_ACTIONS.value: ("github-actions", "GitHub Actions"),
}

DETAILED_AI_RULES: List[Rule[DetailedMatch]] = [
    pattern(r"amazon-q(?:-developer)?", ("amazon-q-developer", "Amazon Q Developer")),
    pattern(r"sweep(?:\[bot\])?", ("sweep", "Sweep")),
    pattern(r"coderabbit(?:ai)?(?:\[bot\])?", ("coderabbit", "CodeRabbit")),
    pattern(r"seer-by-sentry(?:\[bot\])?", ("seer-by-sentry", "Seer by Sentry")),
    pattern(r"sentry-ai-review(?:er)?(?:\[bot\])?", ("sentry-ai-reviewer", "Sentry AI Reviewer")),
    pattern(r"qodo(?:-merge(?:-pro)?)?(?:\[bot\])?", ("qodo-merge", "Qodo Merge")),
    pattern(r"greptile(?:-apps)?(?:\[bot\])?", ("greptile", "Greptile")),
    pattern(r"korbit-ai(?:\[bot\])?", ("korbit-ai", "Korbit AI")),
    pattern(r"codeium", ("codeium", "Codeium")),
    pattern(r"windsurf", ("windsurf", "Windsurf")),
    pattern(r"sourcegraph|\bcody\b", ("sourcegraph-cody", "Sourcegraph Cody")),
    pattern(r"tabnine", ("tabnine", "Tabnine")),
    pattern(r"continue(?:-dev|\.dev)", ("continue-dev", "Continue.dev")),
    pattern(r"replit(?:-agent)?", ("replit-agent", "Replit Agent")),
    pattern(r"bolt(?:-agent)?", ("bolt", "Bolt")),
    pattern(r"\bv0(?:-bot)?\b", ("v0", "v0")),
    pattern(r"blackbox-ai", ("blackbox-ai", "Blackbox AI")),
    pattern(r"\bclawd\b", ("clawd", "Clawd")),
]

DETAILED_BOT_RULES: List[Rule[DetailedMatch]] = [
    pattern(r"greenkeeper", ("greenkeeper", "Greenkeeper")),
    pattern(r"snyk-bot|snyk", ("snyk-bot", "Snyk Bot")),
    pattern(r"sentry-bot|sentry\[bot\]", ("sentry-bot", "Sentry Bot")),
    pattern(r"imgbot", ("imgbot", "Imgbot")),
    pattern(r"codecov", ("codecov", "Codecov")),
    pattern(r"sonarcloud", ("sonarcloud", "SonarCloud")),
    pattern(r"allcontributors", ("all-contributors", "All Contributors")),
    pattern(r"semantic-release-bot|semantic-release", ("semantic-release", "Semantic Release")),
    pattern(r"release-please", ("release-please", "Release Please")),
    pattern(r"mergify", ("mergify", "Mergify")),
    pattern(r"stale\[bot\]", ("stale", "Stale")),
    pattern(r"vercel\[bot\]", ("vercel", "Vercel Bot")),
    pattern(r"netlify\[bot\]", ("netlify", "Netlify Bot")),
    pattern(r"changeset-bot|changesets?", ("changesets", "Changesets")),
    pattern(r"kodiakhq|kodiak", ("kodiak", "Kodiak")),
    pattern(r"auto-merge", ("auto-merge", "Auto Merge")),
    pattern(r"clawdhub", ("clawdhub", "ClawdHub")),
    pattern(r"blog-post-bot", ("blog-post-bot", "Blog Post Bot")),
    pattern(r"smithery", ("smithery", "Smithery")),
    pattern(r"expo-bot|expo\[bot\]", ("expo-bot", "Expo Bot")),
]

# Every key the AI side can legitimately produce from a fixed table
KNOWN_AI_TOOL_KEYS = frozenset(
    [key for key, _ in FIXED_AI_CLASSIFICATIONS.values()]
    + [rule.result[0] for rule in DETAILED_AI_RULES]
    + [UNKNOWN_AI_KEY]
)

_BOT_SUFFIX = re.compile(r"\[bot\]", re.IGNORECASE)
_EMAIL_PART = re.compile(r"<[^>]*>")
_NON_SLUG = re.compile(r"[^a-z0-9]+")
_SEPARATORS = re.compile(r"[_-]+")


def normalize_identity(source: str) -> Optional[Tuple[str, str]]:
    """Turn ``"My-Helper[bot] <x@y>"`` into ``("my-helper", "My Helper")``."""
    raw = _BOT_SUFFIX.sub("", source.strip())
    raw = re.sub(r"^@", "", raw)
    raw = _EMAIL_PART.sub("", raw).strip()
    if not raw:
        return None

    slug = _NON_SLUG.sub("-", raw.lower()).strip("-")
    if not slug:
        return None

    label = " ".join(part[:1].upper() + part[1:] for part in _SEPARATORS.sub(" ", raw).split())
    if not label:
        return None
    return slug, label


def _haystack(commit: Commit) -> str:
    parts = [
        commit.author_login,
        commit.author_name,
        commit.author_email,
        commit.message,
        commit.full_message,
        *commit.co_authors,
    ]
    return "\n".join(part for part in parts if part)


def _preferred_identity(commit: Commit) -> Optional[str]:
    for candidate in (commit.author_login, commit.author_name, commit.author_email):
        if candidate:
            return candidate
    return commit.co_authors[0] if commit.co_authors else None


def _resolve_ai_assisted(commit: Commit) -> DetailedMatch:
    explicit = first_match(DETAILED_AI_RULES, _haystack(commit))
    if explicit:
        return explicit

    # The author of an ai-assisted commit is the human who used the tool.
    # Only co-authors that independently look like AI tools may be named.
    for co_author in commit.co_authors:
        co_author_match = first_match(DETAILED_AI_RULES, co_author)
        if co_author_match:
            return co_author_match
        if matches_any(CO_AUTHOR_AI_RULES, co_author):
            normalized = normalize_identity(co_author)
            if normalized:
                slug, label = normalized
                return f"ai-{slug}", label

    return UNKNOWN_AI_MATCH


def _resolve_other_bot(commit: Commit) -> DetailedMatch:
    explicit = first_match(DETAILED_BOT_RULES, _haystack(commit))
    if explicit:
        return explicit

    identity = _preferred_identity(commit)
    normalized = normalize_identity(identity) if identity else None
    if normalized:
        slug, label = normalized
        return f"bot-{slug}", label

    return UNKNOWN_BOT_MATCH


def resolve_commit(commit: Commit) -> Optional[Tuple[str, DetailedMatch]]:
    """Return ``("ai" | "automation", (key, label))`` or None for human commits."""
    classification = commit.classification
    if classification == C.HUMAN.value:
        return None
    if classification in FIXED_AI_CLASSIFICATIONS:
        return "ai", FIXED_AI_CLASSIFICATIONS[classification]
    if classification in FIXED_AUTOMATION_CLASSIFICATIONS:
        return "automation", FIXED_AUTOMATION_CLASSIFICATIONS[classification]
    if classification == C.AI_ASSISTED.value:
        return "ai", _resolve_ai_assisted(commit)
    if classification == C.OTHER_BOT.value:
        return "automation", _resolve_other_bot(commit)
    return None


def build_detailed_breakdowns(
    commits: Iterable[Commit],
) -> Tuple[List[BreakdownEntry], List[BreakdownEntry]]:
    """
    Tally commits per named AI tool and per named bot.

    Returns ``(tool_breakdown, bot_breakdown)``. Tools are ordered by
    commits, then additions, then label; bots by commits, then label.
    Bot entries do not track additions.
    """
    tools: Dict[str, BreakdownEntry] = {}
    bots: Dict[str, BreakdownEntry] = {}

    for commit in commits:
        resolved = resolve_commit(commit)
        if resolved is None:
            continue
        lane, (key, label) = resolved
        target = tools if lane == "ai" else bots
        entry = target.setdefault(key, BreakdownEntry(key=key, label=label))
        entry.commits += 1
        if lane == "ai":
            entry.additions += commit.additions or 0

    tool_breakdown = sorted(tools.values(), key=lambda e: (-e.commits, -e.additions, e.label))
    bot_breakdown = sorted(bots.values(), key=lambda e: (-e.commits, e.label))
    return tool_breakdown, bot_breakdown
