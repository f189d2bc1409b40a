"""
Generic Repository Base Class
DRY foundation for async CRUD operations on MongoDB collections.
"""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from bson import ObjectId
import datetime as dt

from ..models.base import MongoBaseModel
from ..utils.observability import logger

# Generic type for domain models
T = TypeVar("T", bound=MongoBaseModel)


class BaseRepository(Generic[T]):
    """
    Generic async repository for MongoDB collections.
    Provides type-safe CRUD operations for domain models.

    Usage:
        class ConversationRepository(BaseRepository[Conversation]):
            def __init__(self, database: AsyncIOMotorDatabase):
                super().__init__(database, "conversations", Conversation)
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        model_class: Type[T]
    ):
        """
        Initialize repository with database connection and model type.

        Args:
            database: Motor database instance
            collection_name: MongoDB collection name
            model_class: Pydantic model class for type safety
        """
        self.database = database
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.model_class = model_class
        self.collection_name = collection_name

    def _to_document(self, document: T) -> Dict[str, Any]:
        doc_dict = document.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
        for computed_field in type(document).model_computed_fields:
            doc_dict.pop(computed_field, None)
        return doc_dict

    async def create(self, document: T, timestamp: Optional[dt.datetime] = None) -> T:
        """
        Insert a new document into the collection.

        Args:
            document: Domain model instance to persist
            timestamp: Creation time to stamp (defaults to now)

        Returns:
            The created document with `_id` populated

        Raises:
            pymongo.errors.DuplicateKeyError: If unique constraint violated
        """
        now = timestamp or dt.datetime.now(dt.UTC)
        document.created_at = now
        document.updated_at = now

        result = await self.collection.insert_one(self._to_document(document))

        logger.debug(
            f"Created document in {self.collection_name}",
            extra={"document_id": str(result.inserted_id)}
        )

        document.id = str(result.inserted_id)
        return document

    async def find_one(
        self,
        filter_dict: Dict[str, Any],
        sort: Optional[List[tuple]] = None
    ) -> Optional[T]:
        """
        Retrieve the first document matching the filter.

        Args:
            filter_dict: MongoDB query filter
            sort: List of (field, direction) tuples deciding which match is first

        Returns:
            Domain model instance or None if not found
        """
        doc = await self.collection.find_one(filter_dict, sort=sort)

        if doc is None:
            return None

        return self._to_model(doc)

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        skip: int = 0,
        sort: Optional[List[tuple]] = None
    ) -> List[T]:
        """
        Retrieve multiple documents matching the filter.

        Args:
            filter_dict: MongoDB query filter
            limit: Maximum number of documents to return
            skip: Number of documents to skip (pagination)
            sort: List of (field, direction) tuples for sorting

        Returns:
            List of domain model instances
        """
        cursor = self.collection.find(filter_dict).skip(skip).limit(limit)

        if sort:
            cursor = cursor.sort(sort)

        docs = await cursor.to_list(length=limit)

        return [self._to_model(doc) for doc in docs]

    async def update(self, document: T) -> T:
        """
        Update an existing document by its _id.

        Raises:
            ValueError: If document has no `id` field
            RuntimeError: If document not found
        """
        if not document.id:
            raise ValueError("Cannot update document without an id")

        document.updated_at = dt.datetime.now(dt.UTC)

        doc_dict = document.model_dump(by_alias=True, exclude={"id"})

        result = await self.collection.update_one(
            {"_id": ObjectId(document.id)},
            {"$set": doc_dict}
        )

        if result.matched_count == 0:
            raise RuntimeError(f"Document with id {document.id} not found")

        logger.debug(
            f"Updated document in {self.collection_name}",
            extra={"document_id": document.id}
        )

        return document

    async def upsert(self, filter_dict: Dict[str, Any], document: T) -> T:
        """
        Atomically replace-or-insert the document matching the filter.
        Concurrent writers race to the same key; the last write wins.
        """
        doc_dict = self._to_document(document)
        created_at = doc_dict.pop("created_at", None)

        await self.collection.update_one(
            filter_dict,
            {"$set": doc_dict, "$setOnInsert": {"created_at": created_at}},
            upsert=True,
        )

        logger.debug(
            f"Upserted document in {self.collection_name}",
            extra={"filter": filter_dict}
        )
        return document

    def _to_model(self, doc: Dict[str, Any]) -> T:
        """
        Convert MongoDB document to Pydantic model instance.

        Args:
            doc: Raw MongoDB document dict

        Returns:
            Domain model instance
        """
        if not doc:
            return None
        if "_id" in doc:
            doc["_id"] = str(doc["_id"])

        model_fields = self.model_class.model_fields.keys()

        cleaned_doc = {
            k: v for k, v in doc.items()
            if k in model_fields or k == "_id"
        }

        return self.model_class.model_validate(cleaned_doc)
