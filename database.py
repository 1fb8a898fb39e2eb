"""
MongoDB access for the Gemora API.

The client is created once at import from ``DATABASE_URL``; request handlers
receive the database through the ``get_db`` dependency so tests can swap it.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
from errors import DependencyFailure

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if config.DATABASE_URL:
    try:
        client = MongoClient(config.DATABASE_URL)
        db = client[config.DATABASE_NAME]
        logger.info("MongoDB client configured for database %s", config.DATABASE_NAME)
    except PyMongoError as e:
        logger.error("MongoDB connection failed: %s", e)
        client = None
        db = None
else:
    logger.warning("DATABASE_URL not set; database unavailable")


def get_db() -> Database:
    if db is None:
        raise DependencyFailure("Database not available", status_code=500)
    return db


def ensure_indexes(database: Database):
    database["user"].create_index([("email", ASCENDING)], unique=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a path/body id; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    """Make a stored document JSON friendly: ``_id`` becomes ``id``, ObjectIds become strings."""
    if doc is None:
        return None
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = str(v)
        else:
            out[k] = _plain(v)
    return out


def _plain(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it with its ``_id``."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  newest_first: bool = False) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if newest_first:
        cursor = cursor.sort([("createdAt", -1), ("_id", -1)])
    return list(cursor)
