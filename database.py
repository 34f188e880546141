"""
MongoDB access for the team-formation API.

`db` is the active database handle. It is set by `connect()` on startup, or by
`use_database()` when a caller supplies its own database object.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING, MongoClient

import settings
from errors import DatabaseError

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db = None


def connect(url: Optional[str] = None, name: Optional[str] = None):
    global _client, db
    url = url or settings.DATABASE_URL
    name = name or settings.DATABASE_NAME
    _client = MongoClient(url, tz_aware=True, serverSelectionTimeoutMS=5000)
    db = _client[name]
    logger.info("Connected to MongoDB database %s", name)
    ensure_indexes()
    return db


def use_database(database) -> None:
    global db
    db = database
    ensure_indexes()


def close() -> None:
    global _client, db
    if _client is not None:
        _client.close()
    _client = None
    db = None


def get_db():
    if db is None:
        raise DatabaseError("Database not configured")
    return db


def ensure_indexes() -> None:
    database = get_db()
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["user"].create_index([("skillKeys", ASCENDING)])
    database["project"].create_index([("ownerId", ASCENDING), ("titleKey", ASCENDING)], unique=True)
    database["project"].create_index([("teamMembers.userId", ASCENDING)])
    database["project"].create_index([("createdAt", DESCENDING)])
    database["application"].create_index([("activeKey", ASCENDING)], unique=True, sparse=True)
    database["application"].create_index([("projectId", ASCENDING), ("status", ASCENDING)])
    database["application"].create_index([("applicantId", ASCENDING)])
    database["message"].create_index([("projectId", ASCENDING), ("createdAt", DESCENDING)])
    database["hackathon"].create_index([("status", ASCENDING), ("startDate", ASCENDING)])


def create_document(collection_name: str, data: Dict[str, Any]) -> str:
    now = datetime.now(timezone.utc)
    doc = dict(data)
    doc.setdefault("createdAt", now)
    doc.setdefault("updatedAt", now)
    result = get_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None,
                  sort: Optional[List[Tuple[str, int]]] = None, skip: int = 0) -> List[Dict[str, Any]]:
    cursor = get_db()[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ping() -> bool:
    try:
        get_db().command("ping")
        return True
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return False
