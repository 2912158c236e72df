"""
MongoDB handle for Sehat Pulse.

`db` is None when DATABASE_URL is not configured; routes call `require_db()`
so a missing database surfaces as a 500 rather than an AttributeError.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Config
from errors import StoreError

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if Config.DATABASE_URL:
    client = MongoClient(Config.DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = client[Config.DATABASE_NAME]


def require_db() -> Database:
    if db is None:
        raise StoreError("Database not configured")
    return db


def ensure_indexes() -> None:
    """Unique email on users; create_index is a no-op when it already exists."""
    require_db()["user"].create_index("email", unique=True)


def check_connection() -> None:
    """Ping the server; raises StoreError when it cannot be reached."""
    database = require_db()
    try:
        database.client.admin.command("ping")
    except PyMongoError as e:
        raise StoreError(f"Cannot reach MongoDB: {e}") from e
    ensure_indexes()
    logger.info("MongoDB connected (%s)", database.name)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    database = require_db()
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    doc.setdefault("created_at", datetime.now(timezone.utc))
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[dict]:
    database = require_db()
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
