"""
Database Helper Functions

Document helpers shared by the account and order endpoints. Two backends
expose the same helpers:

- FileDatabase keeps each collection in one JSON file (user.json, order.json)
  and rewrites the whole file on every change.
- MongoDatabase stores the same documents in MongoDB.

create_database() picks MongoDB when DATABASE_URL and DATABASE_NAME are set.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Union, Optional, Dict, Any, List

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

import errors
from settings import Settings

logger = logging.getLogger(__name__)

# Assigned by the store, never taken from the caller's payload
_MANAGED_FIELDS = {"id", "_id", "created_at", "updated_at"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude=_MANAGED_FIELDS)
    return {k: v for k, v in dict(data).items() if k not in _MANAGED_FIELDS}


def _matches(doc: dict, filter_dict: Optional[dict]) -> bool:
    return all(doc.get(key) == value for key, value in (filter_dict or {}).items())


class Database(ABC):
    """
    Collection-oriented document store. Documents are plain dicts with a string "id".

    collection_lock() is the single-writer point for a collection within this
    process. Hold it around a read-then-write that must not interleave with
    another request, such as "is this email taken? then insert".
    """

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def collection_lock(self, collection_name: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(collection_name, threading.RLock())

    @abstractmethod
    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        ...

    @abstractmethod
    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
        ...

    @abstractmethod
    def get_document_by_id(self, collection_name: str, _id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def update_document(self, collection_name: str, _id: str, update_data: Dict[str, Any]) -> bool:
        ...

    @abstractmethod
    def delete_document(self, collection_name: str, _id: str) -> bool:
        ...


# JSON flat files

class FileDatabase(Database):
    """
    Read-entire-file / write-entire-file store.

    Every mutation of a collection runs under that collection's lock, so two
    overlapping signups in the same process cannot drop each other's write.
    Files are replaced atomically, so readers never see a half-written file.
    """

    def __init__(self, data_dir: str):
        super().__init__()
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, collection_name: str) -> str:
        return os.path.join(self.data_dir, f"{collection_name}.json")

    def _read(self, collection_name: str) -> List[dict]:
        path = self._path(collection_name)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as exc:
            logger.error("Could not read %s: %s", path, exc)
            raise errors.InternalError(f"Could not read {collection_name} data") from exc

    def _write(self, collection_name: str, docs: List[dict]) -> None:
        path = self._path(collection_name)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{collection_name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(docs, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            logger.error("Could not write %s: %s", path, exc)
            raise errors.InternalError(f"Could not save {collection_name} data") from exc

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        payload = _to_dict(data)
        now = _now()
        payload["id"] = str(ObjectId())
        payload["created_at"] = now
        payload["updated_at"] = now
        with self.collection_lock(collection_name):
            docs = self._read(collection_name)
            docs.append(payload)
            self._write(collection_name, docs)
        return payload["id"]

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
        docs = [doc for doc in self._read(collection_name) if _matches(doc, filter_dict)]
        if limit:
            docs = docs[: int(limit)]
        return docs

    def get_document_by_id(self, collection_name: str, _id: str) -> Optional[dict]:
        for doc in self._read(collection_name):
            if doc.get("id") == _id:
                return doc
        return None

    def update_document(self, collection_name: str, _id: str, update_data: Dict[str, Any]) -> bool:
        changes = _to_dict(update_data)
        with self.collection_lock(collection_name):
            docs = self._read(collection_name)
            for doc in docs:
                if doc.get("id") == _id:
                    doc.update(changes)
                    doc["updated_at"] = _now()
                    self._write(collection_name, docs)
                    return True
        return False

    def delete_document(self, collection_name: str, _id: str) -> bool:
        with self.collection_lock(collection_name):
            docs = self._read(collection_name)
            kept = [doc for doc in docs if doc.get("id") != _id]
            if len(kept) == len(docs):
                return False
            self._write(collection_name, kept)
        return True


# MongoDB

class MongoDatabase(Database):

    def __init__(self, client: MongoClient, database_name: str):
        super().__init__()
        self._client = client
        self.db = client[database_name]

    @staticmethod
    def _object_id(_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(_id)
        except (InvalidId, TypeError):
            return None

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        payload = _to_dict(data)
        now = _now()
        payload["created_at"] = now
        payload["updated_at"] = now
        result = self.db[collection_name].insert_one(payload)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if limit:
            cursor = cursor.limit(int(limit))
        return [serialize_doc(doc) for doc in cursor]

    def get_document_by_id(self, collection_name: str, _id: str) -> Optional[dict]:
        oid = self._object_id(_id)
        if oid is None:
            return None
        return serialize_doc(self.db[collection_name].find_one({"_id": oid}))

    def update_document(self, collection_name: str, _id: str, update_data: Dict[str, Any]) -> bool:
        oid = self._object_id(_id)
        if oid is None:
            return False
        update = {"$set": _to_dict(update_data)}
        update["$set"]["updated_at"] = _now()
        result = self.db[collection_name].update_one({"_id": oid}, update)
        return result.matched_count > 0

    def delete_document(self, collection_name: str, _id: str) -> bool:
        oid = self._object_id(_id)
        if oid is None:
            return False
        result = self.db[collection_name].delete_one({"_id": oid})
        return result.deleted_count > 0


def create_database(settings: Settings) -> Database:
    if settings.uses_mongo:
        logger.info("Using MongoDB database %s", settings.database_name)
        return MongoDatabase(MongoClient(settings.database_url), settings.database_name)
    logger.info("Using JSON files in %s", os.path.abspath(settings.data_dir))
    return FileDatabase(settings.data_dir)


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))  # convert ObjectId to string
    return d


def find_user_by_email(db: Database, email: str) -> Optional[dict]:
    """Case-insensitive email lookup over the user collection."""
    wanted = str(email or "").strip().lower()
    if not wanted:
        return None
    for user in db.get_documents("user"):
        if str(user.get("email", "")).lower() == wanted:
            return user
    return None
