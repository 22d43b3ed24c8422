"""
Commit Entity - Transient per-repository commit row.

Inserted while listing commits, patched with line counts during LOC
enrichment, read once by stats aggregation and then deleted. GitHub stays
the durable source of raw history.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from attribution.entities.base import BaseEntity, PyObjectIdStr
from attribution.entities.enums import Classification


class Commit(BaseEntity):
    repo_id: PyObjectIdStr
    sha: str

    message: str = ""  # First line only
    full_message: Optional[str] = None
    authored_at: datetime
    committed_at: datetime

    author_name: Optional[str] = None
    author_email: Optional[str] = None
    author_github_user_id: Optional[int] = None
    author_login: Optional[str] = None
    author_type: Optional[str] = None
    committer_name: Optional[str] = None
    committer_email: Optional[str] = None

    classification: Classification = Classification.HUMAN
    co_authors: List[str] = Field(default_factory=list)

    # Filled by LOC enrichment; missing means 0 downstream
    additions: Optional[int] = None
    deletions: Optional[int] = None
