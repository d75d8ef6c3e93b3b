import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import RepositoryError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "carehub")
DATABASE_TIMEOUT_MS = int(os.getenv("DATABASE_TIMEOUT_MS", "5000"))

# collection -> business id field, plus secondary lookup fields
INDEXES: Dict[str, List[str]] = {
    "patients": ["patientId"],
    "doctors": ["doctorId"],
    "appointments": ["appointmentId", "patientId", "doctorId"],
    "bills": ["billId", "patientId"],
    "users": ["username"],
}


def _strip(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc.pop("_id", None)
    doc.pop("createdAt", None)
    doc.pop("updatedAt", None)
    return doc


class MongoCollection:
    """Equality-filter document collection over a pymongo collection."""

    def __init__(self, collection):
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    def find_one(self, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            doc = self._collection.find_one(filter_dict)
        except PyMongoError as e:
            raise RepositoryError(str(e)) from e
        return _strip(doc) if doc is not None else None

    def find(self, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            return [_strip(d) for d in self._collection.find(filter_dict or {})]
        except PyMongoError as e:
            raise RepositoryError(str(e)) from e

    def insert_one(self, data: Dict[str, Any], key: str) -> bool:
        now = datetime.utcnow()
        doc = dict(data, createdAt=now, updatedAt=now)
        try:
            # unique index on the business id makes this create-if-absent
            self._collection.insert_one(doc)
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise RepositoryError(str(e)) from e
        return True

    def update_one(self, filter_dict: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        update = {"$set": dict(fields, updatedAt=datetime.utcnow())}
        try:
            res = self._collection.update_one(filter_dict, update)
        except PyMongoError as e:
            raise RepositoryError(str(e)) from e
        return res.matched_count > 0

    def delete_one(self, filter_dict: Dict[str, Any]) -> bool:
        try:
            res = self._collection.delete_one(filter_dict)
        except PyMongoError as e:
            raise RepositoryError(str(e)) from e
        return res.deleted_count > 0

    def delete_many(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        try:
            res = self._collection.delete_many(filter_dict or {})
        except PyMongoError as e:
            raise RepositoryError(str(e)) from e
        return res.deleted_count


class MongoStore:
    """Process-wide MongoDB handle, created once and shared by all repositories."""

    def __init__(self, url: str = DATABASE_URL, name: str = DATABASE_NAME, client: Optional[MongoClient] = None):
        self.name = name
        self._client = client or MongoClient(url, serverSelectionTimeoutMS=DATABASE_TIMEOUT_MS)
        self._db = self._client[name]

    def collection(self, name: str) -> MongoCollection:
        return MongoCollection(self._db[name])

    def ping(self) -> bool:
        try:
            self._db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    def ensure_indexes(self):
        for collection_name, fields in INDEXES.items():
            key, *lookups = fields
            try:
                self._db[collection_name].create_index([(key, ASCENDING)], unique=True)
                for field in lookups:
                    self._db[collection_name].create_index([(field, ASCENDING)])
            except PyMongoError as e:
                logger.error(f"Could not create indexes on {collection_name}: {e}")

    def close(self):
        self._client.close()
        logger.info("MongoDB connection closed")


def connect(url: Optional[str] = None, name: Optional[str] = None):
    """Build the store named by DATABASE_URL; ``memory://`` selects the in-process store."""
    url = url or DATABASE_URL
    name = name or DATABASE_NAME
    if url.startswith("memory://"):
        from memory_store import MemoryStore

        logger.info("Using in-memory store")
        return MemoryStore(name)
    logger.info(f"Connecting to MongoDB database {name}")
    store = MongoStore(url, name)
    if store.ping():
        store.ensure_indexes()
    else:
        logger.warning("Database connection failed. Server will start but operations may fail.")
    return store
