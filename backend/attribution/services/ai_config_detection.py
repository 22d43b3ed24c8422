"""
Detect AI coding tool configuration artifacts in a repository tree.

Only the root listing and a couple of well-known subfolders are inspected;
the walk is best-effort and any subtree that cannot be fetched is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from attribution.entities.repo import AiConfig

logger = logging.getLogger(__name__)

TreeItems = List[Dict[str, Any]]
SubTreeFetcher = Callable[[str], Optional[TreeItems]]

RULE_FILE = "Rule File"
CONFIG = "Config"
CHAT_HISTORY = "Chat History"

ROOT_FILE_MAPPINGS: Dict[str, tuple[str, str]] = {
    ".cursorrules": ("Cursor", RULE_FILE),
    ".windsurfrules": ("Windsurf", RULE_FILE),
    "CLAUDE.md": ("Claude Code", RULE_FILE),
    "CLAUDE.local.md": ("Claude Code", RULE_FILE),
    "copilot-instructions.md": ("Copilot", RULE_FILE),
    ".aider.conf.yml": ("Aider", CONFIG),
    ".aider.chat.history.md": ("Aider", CHAT_HISTORY),
    ".roomd": ("Roo Code", RULE_FILE),
    "sweep.yaml": ("Sweep", CONFIG),
    ".coderabbit.yaml": ("CodeRabbit", CONFIG),
    ".mutable.yaml": ("MutableAI", CONFIG),
}


@dataclass(frozen=True)
class FolderMapping:
    tool: str
    type: str
    sub_path: str


FOLDER_MAPPINGS: Dict[str, FolderMapping] = {
    ".agents": FolderMapping("skills.sh", "Skill", "skills"),
    ".claude": FolderMapping("skills.sh", "Skill", "skills"),
    ".codex": FolderMapping("skills.sh", "Skill", "skills"),
    ".cursor": FolderMapping("Cursor", "Rule", "rules"),
    ".windsurf": FolderMapping("Windsurf", "Rule", "rules"),
    ".roo": FolderMapping("Roo Code", "Rule", "rules"),
    ".github": FolderMapping("Copilot", RULE_FILE, "copilot-instructions.md"),
}

NESTED_COPILOT_NAME = ".github/copilot-instructions.md"


def _find(items: TreeItems, path: str, item_type: str | None = None) -> Optional[Dict[str, Any]]:
    for item in items:
        if item.get("path") == path and (item_type is None or item.get("type") == item_type):
            return item
    return None


def _is_listed_entry(item: Dict[str, Any]) -> bool:
    path = item.get("path") or ""
    item_type = item.get("type")
    if item_type != "tree" and not (item_type == "blob" and path.endswith(".md")):
        return False
    return not path.startswith(".") and path != "README.md"


def detect_ai_configs(root_items: TreeItems, fetch_sub_tree: SubTreeFetcher) -> List[AiConfig]:
    """
    Find AI configuration files and folders.

    ``fetch_sub_tree`` receives the ``url`` of a tree entry and returns its
    children, or None when the subtree is unavailable.
    """
    configs: List[AiConfig] = []

    for item in root_items:
        mapping = ROOT_FILE_MAPPINGS.get(item.get("path"))
        if mapping:
            tool, config_type = mapping
            configs.append(AiConfig(tool=tool, type=config_type, name=item["path"]))

    for folder_name, mapping in FOLDER_MAPPINGS.items():
        folder = _find(root_items, folder_name, "tree")
        if folder is None:
            continue

        sub_items = fetch_sub_tree(folder["url"])
        if not sub_items:
            continue

        target = _find(sub_items, mapping.sub_path)
        if target is None:
            continue

        if target.get("type") == "tree":
            for entry in fetch_sub_tree(target["url"]) or []:
                if _is_listed_entry(entry):
                    configs.append(
                        AiConfig(
                            tool=mapping.tool,
                            type=mapping.type,
                            name=entry["path"].replace(".md", "", 1),
                        )
                    )
        elif target.get("type") == "blob" and mapping.tool == "Copilot":
            configs.append(AiConfig(tool="Copilot", type=RULE_FILE, name=NESTED_COPILOT_NAME))

    return configs
