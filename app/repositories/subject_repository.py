from app.core.mongo import mongo_db
from app.core.config import settings

class SubjectRepository:
    def __init__(self, collection=None):
        self.collection = collection if collection is not None else mongo_db[settings.subject_collection]

    async def find_all(self, filters: dict = None):
        cursor = self.collection.find({k: v for k, v in (filters or {}).items() if v})
        result = []
        async for doc in cursor:
            doc["_id"] = str(doc["_id"])
            result.append(doc)
        return result

    async def find_one(self, key: dict):
        return await self.collection.find_one(key)

    async def create(self, data: dict):
        result = await self.collection.insert_one(data)
        data["_id"] = str(result.inserted_id)
        return data

    async def update(self, key: dict, data: dict) -> bool:
        result = await self.collection.update_one(key, {"$set": data})
        return result.matched_count > 0

    async def delete(self, key: dict) -> bool:
        result = await self.collection.delete_one(key)
        return result.deleted_count > 0

subject_repository = SubjectRepository()
