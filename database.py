"""
Database helpers

Thin persistence gateway over pymongo. `db` is None when DATABASE_URL is not
set; every helper then raises InfrastructureError(not_connected=True) instead
of crashing the process, so the API keeps serving what it can.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument, UpdateOne
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

import config
from errors import InfrastructureError, ValidationError
from logs import get_logger
from resolver import utcnow

log = get_logger(__name__)

client = None
db = None

if config.DATABASE_URL:
    client = MongoClient(
        config.DATABASE_URL,
        maxPoolSize=10,
        serverSelectionTimeoutMS=5000,
        socketTimeoutMS=45000,
    )
    db = client[config.DATABASE_NAME]

# Public lists: manual order first, newest first among equal order values.
ORDERED = [("order", ASCENDING), ("createdAt", DESCENDING)]
NEWEST = [("createdAt", DESCENDING)]


def coll_name(model_cls) -> str:
    return model_cls.__name__.lower()


def to_oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError("id", "Invalid ID")


@contextmanager
def _store(collection_name: str):
    if db is None:
        raise InfrastructureError(not_connected=True)
    try:
        yield db[collection_name]
    except DuplicateKeyError as exc:
        key = next(iter((exc.details or {}).get("keyValue") or {"value": None}))
        raise ValidationError(key, "already exists") from exc
    except ConnectionFailure as exc:
        log.error("database_unreachable", collection=collection_name, error=str(exc))
        raise InfrastructureError(cause=exc, not_connected=True) from exc
    except PyMongoError as exc:
        log.error("database_error", collection=collection_name, error=str(exc))
        raise InfrastructureError(cause=exc) from exc


def create_document(collection_name: str, data: Dict[str, Any]) -> str:
    with _store(collection_name) as coll:
        result = coll.insert_one(dict(data))
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
    projection: Optional[Iterable[str]] = None,
    skip: int = 0,
) -> List[Dict[str, Any]]:
    with _store(collection_name) as coll:
        cursor = coll.find(filter_dict or {}, list(projection) if projection else None)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)


def find_one(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
             projection: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
    with _store(collection_name) as coll:
        return coll.find_one(filter_dict or {}, list(projection) if projection else None)


def find_by_id(collection_name: str, id_str: str,
               projection: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
    return find_one(collection_name, {"_id": to_oid(id_str)}, projection)


def update_by_id(collection_name: str, id_str: str, update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply an update document; None when no document has that id."""
    oid = to_oid(id_str)
    with _store(collection_name) as coll:
        return coll.find_one_and_update({"_id": oid}, update, return_document=ReturnDocument.AFTER)


def upsert_one(collection_name: str, filter_dict: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    with _store(collection_name) as coll:
        return coll.find_one_and_update(
            filter_dict, update, upsert=True, return_document=ReturnDocument.AFTER
        )


def delete_by_id(collection_name: str, id_str: str) -> bool:
    oid = to_oid(id_str)
    with _store(collection_name) as coll:
        return coll.delete_one({"_id": oid}).deleted_count > 0


def count(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    with _store(collection_name) as coll:
        return coll.count_documents(filter_dict or {})


def aggregate(collection_name: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    with _store(collection_name) as coll:
        return list(coll.aggregate(pipeline))


def sum_field(collection_name: str, field: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    rows = aggregate(collection_name, [
        {"$match": filter_dict or {}},
        {"$group": {"_id": None, "total": {"$sum": f"${field}"}}},
    ])
    return rows[0]["total"] if rows else 0


def set_orders(collection_name: str, pairs: Sequence[Tuple[str, int]]) -> int:
    """Write every id -> order pair in one bulk request; returns matched count."""
    if not pairs:
        return 0
    now = utcnow()
    ops = [UpdateOne({"_id": to_oid(id_str)}, {"$set": {"order": order, "updatedAt": now}})
           for id_str, order in pairs]
    with _store(collection_name) as coll:
        return coll.bulk_write(ops, ordered=False).matched_count


def ensure_indexes() -> None:
    if db is None:
        return
    with _store("blog") as coll:
        coll.create_index("slug", unique=True)
    with _store("user") as coll:
        coll.create_index("email", unique=True)


def ping() -> Dict[str, Any]:
    """Store diagnostics for the /test route."""
    status = {"connected": False, "database_name": None, "collections": []}
    if db is None:
        return status
    status["database_name"] = getattr(db, "name", None)
    try:
        status["collections"] = db.list_collection_names()[:20]
        status["connected"] = True
    except PyMongoError as exc:
        status["error"] = str(exc)[:80]
    return status
