"""Rule-based commit and pull request attribution."""

from attribution.services.classification.bot_detector import (
    ClassificationResult,
    classify_commit,
)
from attribution.services.classification.detailed_breakdown import (
    KNOWN_AI_TOOL_KEYS,
    UNKNOWN_AI_KEY,
    build_detailed_breakdowns,
)
from attribution.services.classification.known_bots import (
    classify_ai_co_author,
    classify_ai_message_marker,
    extract_co_authors,
    extract_pr_number,
    has_ai_author_name,
    has_ai_co_author,
    has_ai_message_marker,
    match_bot_pattern,
)
from attribution.services.classification.pr_classifier import classify_pr_author

__all__ = [
    "ClassificationResult",
    "KNOWN_AI_TOOL_KEYS",
    "UNKNOWN_AI_KEY",
    "build_detailed_breakdowns",
    "classify_ai_co_author",
    "classify_ai_message_marker",
    "classify_commit",
    "classify_pr_author",
    "extract_co_authors",
    "extract_pr_number",
    "has_ai_author_name",
    "has_ai_co_author",
    "has_ai_message_marker",
    "match_bot_pattern",
]
