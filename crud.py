"""Generic CRUD helpers shared by the public and admin routes."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bson import ObjectId

import database
from database import coll_name
from errors import NotFoundError
from schemas import ReorderRequest

LABELS = {"WorkExperience": "Experience", "Showcase": "Showcase item"}
PRIVATE_FIELDS = ("password",)


def label(model_cls) -> str:
    return LABELS.get(model_cls.__name__, model_cls.__name__)


def as_serializable(doc: Optional[Dict[str, Any]]):
    if not doc:
        return doc
    d = dict(doc)
    if d.get("_id"):
        d["id"] = str(d.pop("_id"))
    for key in PRIVATE_FIELDS:
        d.pop(key, None)
    # Convert datetimes and ObjectIds to strings
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def create_item(model_cls, document: Dict[str, Any]):
    collection = coll_name(model_cls)
    new_id = database.create_document(collection, document)
    return as_serializable(database.find_by_id(collection, new_id))


def list_items(model_cls, filters: Optional[Dict[str, Any]] = None,
               sort: Optional[Sequence[Tuple[str, int]]] = None, limit: Optional[int] = None,
               skip: int = 0, projection: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
    docs = database.get_documents(coll_name(model_cls), filters or {}, limit, sort, projection, skip)
    return [as_serializable(d) for d in docs]


def get_item(model_cls, id_str: str, filters: Optional[Dict[str, Any]] = None):
    """Fetch by id; NotFoundError if absent or not matching `filters`."""
    doc = database.find_one(coll_name(model_cls), {"_id": database.to_oid(id_str), **(filters or {})})
    if not doc:
        raise NotFoundError(label(model_cls))
    return as_serializable(doc)


def require(model_cls, id_str: str) -> None:
    if not database.find_by_id(coll_name(model_cls), id_str, projection=["_id"]):
        raise NotFoundError(label(model_cls))


def update_item(model_cls, id_str: str, update: Dict[str, Any]):
    doc = database.update_by_id(coll_name(model_cls), id_str, update)
    if not doc:
        raise NotFoundError(label(model_cls))
    return as_serializable(doc)


def delete_item(model_cls, id_str: str):
    if not database.delete_by_id(coll_name(model_cls), id_str):
        raise NotFoundError(label(model_cls))
    return {"message": f"{label(model_cls)} deleted"}


def reorder_items(model_cls, body: ReorderRequest):
    matched = database.set_orders(coll_name(model_cls), [(item.id, item.order) for item in body.order])
    return {"message": f"{label(model_cls)} reordered", "matched": matched}


def get_singleton(model_cls, filters: Optional[Dict[str, Any]] = None):
    return as_serializable(database.find_one(coll_name(model_cls), filters or {}))


def upsert_singleton(model_cls, update: Dict[str, Any]):
    """The one document matching an always-true filter: create if absent, else update."""
    return as_serializable(database.upsert_one(coll_name(model_cls), {}, update))
