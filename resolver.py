"""
Default-and-merge resolution: from a validated record to what gets persisted.

Create fills declared defaults for omitted fields and drops everything else
that was not provided. Update never reapplies defaults: only supplied fields
are written, nested objects are merged key by key (dotted `$set` paths), and
an explicit null clears the field (`$unset`).
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Type

from pydantic import BaseModel

from coercion import OBJECT, schema_for


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def defaults_for(model: Type[BaseModel]) -> Dict[str, Any]:
    return {
        name: copy.deepcopy(spec.default)
        for name, spec in schema_for(model).items()
        if not spec.required and spec.default is not None
    }


def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _prune(v) for k, v in value.items() if v is not None}
    return value


def resolve_create(model: Type[BaseModel], validated: Mapping[str, Any]) -> Dict[str, Any]:
    document = defaults_for(model)
    document.update(_prune(dict(validated)))
    now = utcnow()
    document["createdAt"] = now
    document["updatedAt"] = now
    return document


def flatten(model: Type[BaseModel], validated: Mapping[str, Any]):
    """Split a partial record into dotted `$set` paths and `$unset` paths."""
    to_set: Dict[str, Any] = {}
    to_unset: Dict[str, str] = {}

    def walk(schema, data, prefix):
        for name, value in data.items():
            path = f"{prefix}{name}"
            spec = schema.get(name)
            if value is None:
                to_unset[path] = ""
            elif spec is not None and spec.kind == OBJECT and isinstance(value, dict):
                walk(spec.children, value, f"{path}.")
            else:
                to_set[path] = value

    walk(schema_for(model), validated, "")
    return to_set, to_unset


def resolve_update(model: Type[BaseModel], validated: Mapping[str, Any]) -> Dict[str, Any]:
    """Build a MongoDB update document for a partial update."""
    to_set, to_unset = flatten(model, validated)
    to_set["updatedAt"] = utcnow()
    update: Dict[str, Any] = {"$set": to_set}
    if to_unset:
        update["$unset"] = to_unset
    return update


def resolve_upsert(model: Type[BaseModel], validated: Mapping[str, Any]) -> Dict[str, Any]:
    """Like resolve_update, plus defaults and createdAt when the document is new.

    Used for singletons (profile, settings) upserted against an empty filter.
    """
    update = resolve_update(model, validated)
    touched = set(update["$set"]) | set(update.get("$unset", {}))
    on_insert = {"createdAt": update["$set"]["updatedAt"]}
    for name, value in defaults_for(model).items():
        if not any(path == name or path.startswith(f"{name}.") for path in touched):
            on_insert[name] = value
    update["$setOnInsert"] = on_insert
    return update
