"""Tests for AI tool configuration detection over repository trees."""

from unittest.mock import MagicMock


ROOT_ITEMS = [
    {"path": "README.md", "type": "blob"},
    {"path": ".cursorrules", "type": "blob"},
    {"path": "CLAUDE.md", "type": "blob"},
    {"path": "src", "type": "tree", "url": "tree-src"},
    {"path": ".cursor", "type": "tree", "url": "tree-cursor"},
    {"path": ".github", "type": "tree", "url": "tree-github"},
]

SUB_TREES = {
    "tree-cursor": [{"path": "rules", "type": "tree", "url": "tree-cursor-rules"}],
    "tree-cursor-rules": [
        {"path": "style.md", "type": "blob"},
        {"path": "notes.txt", "type": "blob"},
        {"path": ".hidden.md", "type": "blob"},
        {"path": "README.md", "type": "blob"},
        {"path": "python", "type": "tree"},
    ],
    "tree-github": [
        {"path": "workflows", "type": "tree", "url": "tree-workflows"},
        {"path": "copilot-instructions.md", "type": "blob"},
    ],
}


class TestDetectAiConfigs:
    def test_root_files_and_folders(self):
        from attribution.services.ai_config_detection import detect_ai_configs

        configs = detect_ai_configs(ROOT_ITEMS, SUB_TREES.get)

        assert [(c.tool, c.type, c.name) for c in configs] == [
            ("Cursor", "Rule File", ".cursorrules"),
            ("Claude Code", "Rule File", "CLAUDE.md"),
            ("Cursor", "Rule", "style"),
            ("Cursor", "Rule", "python"),
            ("Copilot", "Rule File", ".github/copilot-instructions.md"),
        ]

    def test_unrelated_folders_are_not_walked(self):
        from attribution.services.ai_config_detection import detect_ai_configs

        fetch = MagicMock(side_effect=SUB_TREES.get)

        detect_ai_configs(ROOT_ITEMS, fetch)

        fetched = [call.args[0] for call in fetch.call_args_list]
        assert "tree-src" not in fetched
        assert "tree-workflows" not in fetched

    def test_unavailable_subtree_is_skipped(self):
        from attribution.services.ai_config_detection import detect_ai_configs

        configs = detect_ai_configs(ROOT_ITEMS, lambda url: None)

        assert [c.name for c in configs] == [".cursorrules", "CLAUDE.md"]

    def test_empty_tree(self):
        from attribution.services.ai_config_detection import detect_ai_configs

        assert detect_ai_configs([], lambda url: None) == []
