"""
Field coercion: turn a raw request body into the common in-memory shape.

A body arrives either as JSON (nested objects, native types) or as form
fields (flat `parent[child]` keys, every value a string). Both are reduced to
the same nested dict keyed by the camelCase field names of a schema model.

Coercion never raises. A value it cannot make sense of is dropped, which
downstream means "not provided"; hard validation happens in `validation`.
"""

import copy
import re
import types
from dataclasses import dataclass, field
from functools import lru_cache
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Type, Union, get_args, get_origin

from pydantic import BaseModel

STRING = "string"
BOOLEAN = "boolean"
INTEGER = "integer"
LIST = "list"
OBJECT = "object"
DATE = "date"

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_BRACKET_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])+)$")
_MISSING = object()


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    required: bool
    nullable: bool
    default: Any = None
    children: Mapping[str, "FieldSpec"] = field(default_factory=dict)


def _unwrap(annotation):
    """Strip Optional[...] and report whether None is allowed."""
    origin = get_origin(annotation)
    if origin is Union or (hasattr(types, "UnionType") and origin is types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        nullable = len(args) < len(get_args(annotation))
        return (args[0] if len(args) == 1 else annotation), nullable
    return annotation, False


def _kind(annotation) -> str:
    if annotation is bool:
        return BOOLEAN
    if annotation is int:
        return INTEGER
    if annotation in (datetime, date):
        return DATE
    if get_origin(annotation) in (list, List):
        return LIST
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return OBJECT
    return STRING


@lru_cache(maxsize=None)
def schema_for(model: Type[BaseModel]) -> Dict[str, FieldSpec]:
    """Describe a model as data: wire name -> FieldSpec."""
    specs = {}
    for name, info in model.model_fields.items():
        annotation, nullable = _unwrap(info.annotation)
        kind = _kind(annotation)
        wire = info.alias or name
        default = None if info.is_required() else info.get_default(call_default_factory=True)
        specs[wire] = FieldSpec(
            name=wire,
            kind=kind,
            required=info.is_required(),
            nullable=nullable,
            default=default,
            children=schema_for(annotation) if kind == OBJECT else {},
        )
    return specs


def split_list(value: str) -> List[str]:
    """'React, Node.js,,MongoDB' -> ['React', 'Node.js', 'MongoDB']"""
    return [part.strip() for part in value.split(",") if part.strip()]


def unflatten(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Reassemble `a[b][c]` keys into nested dicts.

    Plain keys are kept as they are. A nested dict only appears when at least
    one of its leaf keys is present. Bracket leaves are merged into a native
    nested object sent under the same parent key.
    """
    out: Dict[str, Any] = {}
    for key, value in body.items():
        match = _BRACKET_RE.match(key) if isinstance(key, str) else None
        if not match:
            if isinstance(value, dict) and isinstance(out.get(key), dict):
                out[key] = _merge(copy.deepcopy(value), out[key])
            else:
                out[key] = copy.deepcopy(value)
            continue
        path = [match.group(1)] + re.findall(r"\[([^\[\]]*)\]", match.group(2))
        if any(part == "" for part in path):
            continue
        node = out
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[path[-1]] = value
    return out


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def coerce_value(spec: FieldSpec, value: Any) -> Any:
    """Coerce one wire value; returns _MISSING when it is "not provided"."""
    if value is None:
        return None if spec.nullable else _MISSING

    if spec.kind == BOOLEAN:
        if isinstance(value, bool):
            return value
        if value == "true":
            return True
        if value == "false":
            return False
        return _MISSING

    if spec.kind == INTEGER:
        if isinstance(value, bool):
            return _MISSING
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else value
        if isinstance(value, str) and _INTEGER_RE.match(value.strip()):
            try:
                return int(value.strip(), 10)
            except ValueError:
                # Longer than the interpreter's int/str conversion limit.
                return _MISSING
        return _MISSING

    if spec.kind == DATE:
        if isinstance(value, str) and not value.strip():
            return _MISSING
        return value

    if spec.kind == LIST:
        if isinstance(value, str):
            return split_list(value)
        if isinstance(value, (list, tuple)):
            return list(value)
        return _MISSING

    if spec.kind == OBJECT:
        if not isinstance(value, Mapping):
            return _MISSING
        return coerce_fields(spec.children, value)

    return value


def coerce_fields(schema: Mapping[str, FieldSpec], body: Mapping[str, Any]) -> Dict[str, Any]:
    record = {}
    for name, spec in schema.items():
        if name not in body:
            continue
        value = coerce_value(spec, body[name])
        if value is not _MISSING:
            record[name] = value
    return record


def coerce(model: Type[BaseModel], body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Normalize a JSON or form body against `model`.

    Keys the model does not declare are dropped. Running it again on its own
    output returns an equal dict.
    """
    if not body:
        return {}
    return coerce_fields(schema_for(model), unflatten(body))
