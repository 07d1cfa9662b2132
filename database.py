"""
MongoDB access

A single client is created on import from DATABASE_URL. Handlers receive the
database through the get_db dependency so tests can swap in another handle.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.database import Database

from config import DATABASE_URL, DATABASE_NAME

logger = logging.getLogger(__name__)

db: Optional[Database] = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
    logger.info("MongoDB client created for database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL not set, database is not configured")


def get_db() -> Database:
    if db is None:
        raise HTTPException(500, "Database not configured")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_object_id(value: str, detail: str = "Not found") -> ObjectId:
    """Parse an id from a URL or body; malformed ids are reported as missing."""
    oid = parse_object_id(value)
    if oid is None:
        raise HTTPException(404, detail)
    return oid


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a JSON-friendly copy of a document with `_id` exposed as `id`."""
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    stamp = now()
    data_dict["created_at"] = stamp
    data_dict["updated_at"] = stamp
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: int = 0) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(database: Database, collection_name: str, doc_id: ObjectId, changes: dict) -> Optional[dict]:
    """Apply a $set with a fresh updated_at and return the updated document."""
    return database[collection_name].find_one_and_update(
        {"_id": doc_id},
        {"$set": {**changes, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
