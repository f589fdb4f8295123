"""
Database helpers

One MongoClient per process, created on first use. Routes receive the
database through the ``get_db`` dependency and hand it to the engines.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import settings
from errors import ValidationError

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def get_db() -> Database:
    global _client, _db
    if _db is None:
        _client = MongoClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
        logger.info("Connected to database %s", settings.DATABASE_NAME)
    return _db


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("username", ASCENDING)], unique=True)
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["cart"].create_index([("user_id", ASCENDING)], unique=True)
    db["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    db["review"].create_index([("product_id", ASCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Any) -> str:
    """Insert a model or dict with timestamps and return the new id as a string."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = utcnow()
    doc = {**data, "created_at": now, "updated_at": now}
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def to_object_id(value: str, label: str = "document") -> ObjectId:
    if not ObjectId.is_valid(value or ""):
        raise ValidationError(f"Invalid {label} id")
    return ObjectId(value)


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    # Convert ObjectId in nested fields if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
