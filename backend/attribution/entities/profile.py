from typing import Optional

from attribution.entities.base import BaseEntity


class Profile(BaseEntity):
    """Cached GitHub profile of a repository owner."""

    owner: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    followers: int = 0
