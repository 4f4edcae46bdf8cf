from __future__ import annotations
import logging
from typing import Any, Optional
from datetime import datetime, timezone
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None

# Collections with a unique key; the name doubles as the natural identifier
UNIQUE_KEYS = {
    "category": "name",
    "fragrancetype": "name",
    "user": "email",
}


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
        logger.info("Connected to MongoDB database %s", settings.DATABASE_NAME)
    return _db


async def ensure_indexes() -> None:
    db = await get_db()
    for collection_name, key in UNIQUE_KEYS.items():
        await db[collection_name].create_index([(key, ASCENDING)], unique=True)
    await db["review"].create_index([("product_id", ASCENDING)])


def parse_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if doc is None:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def create_document(collection_name: str, data: dict[str, Any]) -> dict[str, Any]:
    db = await get_db()
    now = _now()
    data_with_meta = {**data, "created_at": now, "updated_at": now}
    result = await db[collection_name].insert_one(data_with_meta)
    inserted = await db[collection_name].find_one({"_id": result.inserted_id})
    return serialize(inserted) or {}


async def get_documents(
    collection_name: str,
    filter_dict: dict[str, Any] | None = None,
    limit: int = 0,
    skip: int = 0,
    sort: list[tuple[str, int]] | None = None,
) -> list[dict[str, Any]]:
    db = await get_db()
    options: dict[str, Any] = {"skip": skip, "limit": limit}
    if sort:
        options["sort"] = sort
    cursor = db[collection_name].find(filter_dict or {}, **options)
    docs = []
    async for d in cursor:
        docs.append(serialize(d))
    return docs


async def count_documents(collection_name: str, filter_dict: dict[str, Any] | None = None) -> int:
    db = await get_db()
    return await db[collection_name].count_documents(filter_dict or {})


async def get_document(collection_name: str, doc_id: ObjectId) -> Optional[dict[str, Any]]:
    db = await get_db()
    return serialize(await db[collection_name].find_one({"_id": doc_id}))


async def find_document(collection_name: str, filter_dict: dict[str, Any]) -> Optional[dict[str, Any]]:
    db = await get_db()
    return serialize(await db[collection_name].find_one(filter_dict))


async def update_document(collection_name: str, doc_id: ObjectId, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
    db = await get_db()
    updated = await db[collection_name].find_one_and_update(
        {"_id": doc_id},
        {"$set": {**changes, "updated_at": _now()}},
        return_document=ReturnDocument.AFTER,
    )
    return serialize(updated)


async def delete_document(collection_name: str, doc_id: ObjectId) -> Optional[dict[str, Any]]:
    db = await get_db()
    return serialize(await db[collection_name].find_one_and_delete({"_id": doc_id}))


async def delete_documents(collection_name: str, filter_dict: dict[str, Any]) -> int:
    db = await get_db()
    result = await db[collection_name].delete_many(filter_dict)
    return result.deleted_count
