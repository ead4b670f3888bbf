import re
from typing import Any, Dict, List, Optional
from bson import ObjectId
from pymongo import ASCENDING
from app.core.mongo import mongo_db
from app.core.config import settings
from app.schemas.result import GroupKey, StudentResult

class ResultRepository:
    def __init__(self, collection=None):
        self.collection = collection if collection is not None else mongo_db[settings.result_collection]

    @staticmethod
    def _to_model(doc: Dict[str, Any]) -> StudentResult:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return StudentResult.model_validate(doc)

    async def ensure_indexes(self, identity: str = "surrogate"):
        await self.collection.create_index(
            [("class", ASCENDING), ("section", ASCENDING), ("examTerm", ASCENDING)],
            name="peer_group"
        )
        if identity == "natural":
            await self.collection.create_index(
                [("class", ASCENDING), ("section", ASCENDING), ("rollNumber", ASCENDING), ("examTerm", ASCENDING)],
                name="natural_key",
                unique=True
            )

    async def find_by_group(self, key: GroupKey) -> List[StudentResult]:
        # _id order is insertion order, which the rank tie-break relies on
        cursor = self.collection.find(key.as_filter()).sort("_id", ASCENDING)
        return [self._to_model(doc) async for doc in cursor]

    async def find_by_id(self, result_id: str) -> Optional[StudentResult]:
        if not ObjectId.is_valid(result_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(result_id)})
        return self._to_model(doc) if doc else None

    async def find_by_natural_key(self, record: StudentResult) -> Optional[StudentResult]:
        doc = await self.collection.find_one(record.natural_key, sort=[("_id", ASCENDING)])
        return self._to_model(doc) if doc else None

    async def find(self, filters: Dict[str, Any]) -> List[StudentResult]:
        query = {k: v for k, v in filters.items() if v}
        if "name" in query:
            query["name"] = {"$regex": re.escape(query["name"]), "$options": "i"}
        cursor = self.collection.find(query).sort([("rank", ASCENDING), ("_id", ASCENDING)])
        return [self._to_model(doc) async for doc in cursor]

    async def save(self, record: StudentResult) -> StudentResult:
        doc = record.to_document()
        if record.id:
            await self.collection.replace_one({"_id": ObjectId(record.id)}, doc, upsert=True)
            return record
        result = await self.collection.insert_one(doc)
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def delete_by_key(self, result_id: str) -> bool:
        if not ObjectId.is_valid(result_id):
            return False
        result = await self.collection.delete_one({"_id": ObjectId(result_id)})
        return result.deleted_count > 0

result_repository = ResultRepository()
