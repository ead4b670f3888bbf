import sys
import os
import asyncio
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from app.core.config import settings
from app.repositories.result_repository import result_repository

async def init_mongo_indexes():
    try:
        await result_repository.ensure_indexes(settings.result_identity)
        print(f"✅ Indexes ready on {settings.mongo_db}.{settings.result_collection}")

        indexes = await result_repository.collection.index_information()
        print(f"📋 Indexes: {list(indexes)}")

    except Exception as e:
        print(f"❌ Error creating indexes: {e}")

if __name__ == "__main__":
    asyncio.run(init_mongo_indexes())
