"""
Shared enums for entities.

This module contains enums that are used across multiple entity files.
"""

from enum import Enum
from typing import Optional


class Classification(str, Enum):
    """Who authored a commit: a human, a named AI tool, or an automation bot."""

    HUMAN = "human"
    DEPENDABOT = "dependabot"
    RENOVATE = "renovate"
    COPILOT = "copilot"
    CLAUDE = "claude"
    CURSOR = "cursor"
    AIDER = "aider"
    DEVIN = "devin"
    OPENAI_CODEX = "openai-codex"
    GEMINI = "gemini"
    GITHUB_ACTIONS = "github-actions"
    OTHER_BOT = "other-bot"
    AI_ASSISTED = "ai-assisted"

    @property
    def field(self) -> str:
        """Column name used in weekly stats (``openai-codex`` -> ``openai_codex``)."""
        return self.value.replace("-", "_")


# AI tools counted on the "AI" side of the human / AI / automation split
AI_TOOL_CLASSIFICATIONS = frozenset(
    {
        Classification.COPILOT,
        Classification.CLAUDE,
        Classification.CURSOR,
        Classification.AIDER,
        Classification.DEVIN,
        Classification.OPENAI_CODEX,
        Classification.GEMINI,
        Classification.AI_ASSISTED,
    }
)

AUTOMATION_CLASSIFICATIONS = frozenset(
    {
        Classification.DEPENDABOT,
        Classification.RENOVATE,
        Classification.GITHUB_ACTIONS,
        Classification.OTHER_BOT,
    }
)


def classification_to_field(classification: str) -> str:
    return Classification(classification).field


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class SyncStage(str, Enum):
    """Advisory progress marker while a repository is syncing."""

    FETCHING_COMMITS = "fetching_commits"
    ENRICHING_LOC = "enriching_loc"
    CLASSIFYING_PRS = "classifying_prs"
    COMPUTING_STATS = "computing_stats"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SyncStage"]:
        """Tolerate absent or unknown stages written by older workers."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class PrivateSyncStatus(str, Enum):
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"
