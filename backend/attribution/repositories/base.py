from __future__ import annotations

"""Base repository pattern for MongoDB operations"""

from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database

from attribution.entities.base import BaseDocument

T = TypeVar("T", bound=BaseDocument)


class BaseRepository(ABC, Generic[T]):
    """Common CRUD operations over one collection, returning pydantic models"""

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection: Collection = db[collection_name]
        self.model_class = model_class

    def find_by_id(self, entity_id: str | ObjectId) -> Optional[T]:
        identifier = self._to_object_id(entity_id)
        if identifier is None:
            return None
        return self._to_model(self.collection.find_one({"_id": identifier}))

    def find_one(self, query: Dict[str, Any], sort: Optional[List[tuple]] = None) -> Optional[T]:
        return self._to_model(self.collection.find_one(query, sort=sort))

    def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
        projection: Optional[Dict[str, Any]] = None,
    ) -> List[T]:
        """Find documents matching the query, optionally sorted and paged"""
        cursor = self.collection.find(query, projection)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_model(doc) for doc in cursor if doc]

    def count(self, query: Dict[str, Any] | None = None) -> int:
        return self.collection.count_documents(query or {})

    def insert_one(
        self, document: Union[T, Dict[str, Any]], session: ClientSession | None = None
    ) -> T:
        doc_dict = self._to_document(document)
        result = self.collection.insert_one(doc_dict, session=session)
        doc_dict["_id"] = result.inserted_id
        return self._to_model(doc_dict)

    def insert_many(
        self,
        documents: List[Union[T, Dict[str, Any]]],
        session: ClientSession | None = None,
    ) -> int:
        """Insert documents, returning how many were written"""
        if not documents:
            return 0
        result = self.collection.insert_many(
            [self._to_document(doc) for doc in documents], session=session
        )
        return len(result.inserted_ids)

    def update_one(self, entity_id: str | ObjectId, updates: Dict[str, Any]) -> bool:
        """$set fields on a document by ID"""
        identifier = self._to_object_id(entity_id)
        if identifier is None:
            return False
        result = self.collection.update_one({"_id": identifier}, {"$set": updates})
        return result.matched_count > 0

    def update_many(self, query: Dict[str, Any], updates: Dict[str, Any]) -> int:
        result = self.collection.update_many(query, {"$set": updates})
        return result.modified_count

    def update_one_raw(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = False,
    ) -> bool:
        """
        Update a document with raw update operators (without auto-wrapping in $set).

        Returns:
            True if a document was matched or upserted
        """
        result = self.collection.update_one(query, update, upsert=upsert)
        return result.matched_count > 0 or result.upserted_id is not None

    def delete_many(self, query: Dict[str, Any], session: ClientSession | None = None) -> int:
        result = self.collection.delete_many(query, session=session)
        return result.deleted_count

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return list(self.collection.aggregate(pipeline))

    def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        upsert: bool = False,
        return_updated: bool = True,
    ) -> Optional[T]:
        """
        Atomically find and update a single document.

        Args:
            query: Filter to find the document
            update: Update operations (e.g., {"$set": {...}})
            sort: Picks which document is updated when several match
            upsert: If True, insert if not found
            return_updated: If True, return the updated document; otherwise the original
        """
        doc = self.collection.find_one_and_update(
            query,
            update,
            sort=sort,
            upsert=upsert,
            return_document=ReturnDocument.AFTER if return_updated else ReturnDocument.BEFORE,
        )
        return self._to_model(doc)

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if not doc:
            return None
        return self.model_class.model_validate(doc)

    @staticmethod
    def _to_document(document: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(document, BaseDocument):
            return document.to_mongo()
        if isinstance(document, BaseModel):
            return document.model_dump(by_alias=True, exclude_none=True)
        return dict(document)

    @staticmethod
    def _to_object_id(value: str | ObjectId | None) -> ObjectId | None:
        """Convert a string ID to ObjectId, None when it is not one"""
        if value is None:
            return None
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str):
            try:
                return ObjectId(value)
            except (InvalidId, TypeError):
                return None
        return None
