"""
Pull request attribution.

Squash and merge commits carry the merging human as author, so the AI
agent that opened the PR is lost at commit level. The PR itself still
shows it through its author account, branch name, body or labels.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from attribution.entities.enums import Classification
from attribution.services.classification.rules import Rule, first_match, first_match_any, pattern

C = Classification

PR_BOT_RULES: List[Rule[Classification]] = [
    pattern(r"cursor[- ]?agent", C.CURSOR),
    pattern(r"copilot-swe-agent", C.COPILOT),
    pattern(r"copilot", C.COPILOT),
    pattern(r"devin-ai-integration", C.DEVIN),
    pattern(r"devin", C.DEVIN),
    pattern(r"sweep", C.AI_ASSISTED),
    pattern(r"gemini-code-assist", C.GEMINI),
    pattern(r"amazon-q-developer", C.AI_ASSISTED),
    pattern(r"chatgpt-codex-connector", C.OPENAI_CODEX),
    pattern(r"codex", C.OPENAI_CODEX),
    pattern(r"aider", C.AIDER),
    pattern(r"coderabbit", C.OTHER_BOT),
    pattern(r"sentry", C.OTHER_BOT),
    pattern(r"\[bot\]$", C.AI_ASSISTED),
]

PR_BRANCH_RULES: List[Rule[Classification]] = [
    pattern(r"^cursor/", C.CURSOR),
    pattern(r"^copilot/", C.COPILOT),
    pattern(r"^devin/", C.DEVIN),
    pattern(r"^codex/", C.OPENAI_CODEX),
    pattern(r"^openai-codex/", C.OPENAI_CODEX),
    pattern(r"^aider/", C.AIDER),
    pattern(r"^gemini/", C.GEMINI),
    pattern(r"^sweep/", C.AI_ASSISTED),
    pattern(r"^amazon-q/", C.AI_ASSISTED),
    pattern(r"^windsurf/", C.AI_ASSISTED),
    pattern(r"^coderabbit/", C.OTHER_BOT),
    pattern(r"^ai[-/]", C.AI_ASSISTED),
]

PR_BODY_RULES: List[Rule[Classification]] = [
    pattern(r"Generated with Cursor", C.CURSOR),
    pattern(r"\[Cursor\]", C.CURSOR),
    pattern(r"Generated with Claude Code", C.CLAUDE),
    pattern(r"Generated with Claude", C.CLAUDE),
    pattern(r"Generated by GitHub Copilot", C.COPILOT),
    pattern(r"Generated by Copilot", C.COPILOT),
    pattern(r"Created by Devin", C.DEVIN),
    pattern(r"aider", C.AIDER),
    pattern(r"gemini", C.GEMINI),
    pattern(r"codex", C.OPENAI_CODEX),
    pattern(r"Generated by Windsurf", C.AI_ASSISTED),
    pattern(r"Generated by CodeRabbit", C.OTHER_BOT),
    pattern(r"\bAI[- ]generated\b", C.AI_ASSISTED),
    pattern(
        r"Co-authored-by:.*(?:claude|copilot|cursor|codex|aider|anthropic|openai|cursoragent)",
        C.AI_ASSISTED,
    ),
    pattern(r"\U0001F916 Generated with", C.AI_ASSISTED),
]

PR_LABEL_RULES: List[Rule[Classification]] = [
    pattern(r"ai[- ]generated", C.AI_ASSISTED),
    pattern(r"copilot", C.AI_ASSISTED),
    pattern(r"automated", C.AI_ASSISTED),
]


def classify_pr_author(pr: Dict[str, Any]) -> Optional[Classification]:
    """
    Classify a PR payload from ``GET /repos/{owner}/{repo}/pulls/{number}``.

    Levels, first match wins:
    1. Author account is a Bot (unmatched bots count as AI-assisted)
    2. Author login matches a known AI agent
    3. Head branch prefix
    4. Body markers
    5. Labels

    Returns None when the PR shows no AI or bot involvement.
    """
    user = pr.get("user") or {}
    login = user.get("login") or ""

    if user.get("type") == "Bot":
        return first_match(PR_BOT_RULES, login) or C.AI_ASSISTED

    login_match = first_match(PR_BOT_RULES, login)
    if login_match:
        return login_match

    branch = (pr.get("head") or {}).get("ref") or ""
    branch_match = first_match(PR_BRANCH_RULES, branch)
    if branch_match:
        return branch_match

    body_match = first_match(PR_BODY_RULES, pr.get("body") or "")
    if body_match:
        return body_match

    labels = [label.get("name") for label in pr.get("labels") or []]
    return first_match_any(PR_LABEL_RULES, labels)
