"""Base entity shared by every persisted document."""

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _validate_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise ValueError(f"Invalid ObjectId: {value!r}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Stored as ObjectId, kept as ObjectId in Python
PyObjectId = Annotated[ObjectId, BeforeValidator(_validate_object_id)]

# Stored as ObjectId, rendered as str in API responses
PyObjectIdStr = Annotated[
    ObjectId,
    BeforeValidator(_validate_object_id),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


class BaseDocument(BaseModel):
    """Mongo document without bookkeeping timestamps, used for derived rows."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: Optional[PyObjectIdStr] = Field(None, alias="_id")

    def to_mongo(self) -> dict:
        """Dump for insertion, letting Mongo assign the _id when absent."""
        return self.model_dump(by_alias=True, exclude_none=True)


class BaseEntity(BaseDocument):
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
