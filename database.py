"""
MongoDB connection and the insert helper.

`db` is None when DATABASE_URL / DATABASE_NAME are not set; endpoints check
for that and answer "Database not configured".
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_URL, DATABASE_NAME

logger = logging.getLogger(__name__)


def connect(url: Optional[str] = DATABASE_URL, name: Optional[str] = DATABASE_NAME) -> Optional[Database]:
    if not url or not name:
        logger.warning("DATABASE_URL or DATABASE_NAME not set, running without a database")
        return None
    client = MongoClient(url)
    return client[name]


db = connect()


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database: Optional[Database] = None) -> str:
    """Insert a document with created/updated stamps and return its id as a string."""
    database = database if database is not None else db
    if database is None:
        raise RuntimeError("Database not configured")
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)
