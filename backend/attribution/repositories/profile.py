from datetime import datetime, timezone
from typing import Optional

from attribution.entities.profile import Profile

from .base import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    def __init__(self, db):
        super().__init__(db, "profiles", Profile)

    def find_by_owner(self, owner: str) -> Optional[Profile]:
        return self.find_one({"owner": owner})

    def save(self, owner: str, name: Optional[str], avatar_url: Optional[str], followers: int) -> Profile:
        now = datetime.now(timezone.utc)
        return self.find_one_and_update(
            {"owner": owner},
            {
                "$set": {
                    "name": name,
                    "avatar_url": avatar_url,
                    "followers": followers,
                    "updated_at": now,
                },
                "$setOnInsert": {"owner": owner, "created_at": now},
            },
            upsert=True,
        )
