"""
Collection-backed repositories.

One `Repository` per entity collection; the domain modules go through these
instead of touching `database.db` directly.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

import database
from errors import ConflictError, ValidationError

Sort = Sequence[Tuple[str, int]]


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid id format")


def serialize(doc: Optional[Dict[str, Any]], hidden: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    for field in hidden:
        doc.pop(field, None)
    return doc


def sort_spec(sort_by: str, sort_order: str) -> List[Tuple[str, int]]:
    direction = ASCENDING if str(sort_order).lower() == "asc" else DESCENDING
    return [(sort_by, direction), ("_id", direction)]


class Repository:
    def __init__(self, collection_name: str):
        self.collection_name = collection_name

    @property
    def collection(self):
        return database.get_db()[self.collection_name]

    def find_by_id(self, id_str: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": oid(id_str)})

    def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.collection.find_one(query)

    def find(self, query: Optional[Dict[str, Any]] = None, sort: Optional[Sort] = None, skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        return database.get_documents(self.collection_name, query, limit=limit, sort=sort, skip=skip)

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return self.collection.count_documents(query or {})

    def create(self, data: Dict[str, Any], conflict_message: str = "Resource already exists", conflict_code: Optional[str] = None) -> Dict[str, Any]:
        try:
            new_id = database.create_document(self.collection_name, data)
        except DuplicateKeyError:
            raise ConflictError(conflict_message, conflict_code)
        return self.find_by_id(new_id)

    def update(self, id_str: str, changes: Dict[str, Any], conflict_message: str = "Resource already exists", conflict_code: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Apply `$set` changes to one document and return it, or None if it is gone."""
        return self.update_where({"_id": oid(id_str)}, {"$set": changes}, conflict_message, conflict_code)

    def update_where(self, query: Dict[str, Any], update: Dict[str, Any], conflict_message: str = "Resource already exists", conflict_code: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Conditional single-document update; returns the updated document or None when nothing matched."""
        update = dict(update)
        update.setdefault("$set", {})
        update["$set"] = {**update["$set"], "updatedAt": datetime.now(timezone.utc)}
        try:
            return self.collection.find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
        except DuplicateKeyError:
            raise ConflictError(conflict_message, conflict_code)

    def delete(self, id_str: str) -> bool:
        return self.collection.delete_one({"_id": oid(id_str)}).deleted_count > 0

    def delete_many(self, query: Dict[str, Any]) -> int:
        return self.collection.delete_many(query).deleted_count

    def update_many(self, query: Dict[str, Any], changes: Dict[str, Any]) -> int:
        return self.collection.update_many(query, {"$set": changes}).modified_count


users = Repository("user")
projects = Repository("project")
applications = Repository("application")
contacts = Repository("contact")
messages = Repository("message")
hackathons = Repository("hackathon")
