"""
Database connection and helpers.

Reads DATABASE_URL and DATABASE_NAME from the environment (a .env file is
loaded first). When either is missing, `db` stays None and callers answer
"storage unavailable".
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL, tz_aware=True)
    db = client[DATABASE_NAME]


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a single document with created/updated timestamps."""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict.setdefault("createdAt", now)
    data_dict["updatedAt"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None):
    """Get documents from collection, newest first."""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    cursor = db[collection_name].find(filter_dict or {}).sort("createdAt", DESCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database) -> None:
    """Create the indexes the listing endpoints rely on."""
    database["order"].create_index(
        [("userId", ASCENDING), ("createdAt", DESCENDING)], name="user_orders"
    )
    database["product"].create_index(
        [("isDeleted", ASCENDING), ("createdAt", DESCENDING)], name="catalog_listing"
    )
    logger.info("Indexes ensured on %s", database.name)
