"""
Schema validation for coerced records.

Two modes: strict (create) requires every required field; partial (update)
requires nothing but checks every field that is present. Validation fails on
the first violation, in field declaration order, with the offending field path.

The validated result only carries the fields that were provided; defaults are
the resolver's job.
"""

from functools import lru_cache
from typing import Annotated, Any, Dict, Mapping, Type

import pydantic
from pydantic import BaseModel, TypeAdapter

from errors import ValidationError


def _field_path(loc) -> str:
    return ".".join(str(part) for part in loc if not isinstance(part, int)) or "body"


def _first_error(exc: pydantic.ValidationError, prefix: str = "") -> ValidationError:
    error = exc.errors()[0]
    path = _field_path(error.get("loc", ()))
    if prefix:
        path = prefix if path == "body" else f"{prefix}.{path}"
    reason = "is required" if error.get("type") == "missing" else error.get("msg", "is invalid")
    return ValidationError(path, reason)


@lru_cache(maxsize=None)
def _adapters(model: Type[BaseModel]) -> Dict[str, TypeAdapter]:
    adapters = {}
    for name, info in model.model_fields.items():
        annotation = info.annotation
        if info.metadata:
            annotation = Annotated[(annotation, *info.metadata)]
        adapters[info.alias or name] = TypeAdapter(annotation)
    return adapters


def validate_strict(model: Type[BaseModel], record: Mapping[str, Any]) -> Dict[str, Any]:
    try:
        instance = model.model_validate(dict(record))
    except pydantic.ValidationError as exc:
        raise _first_error(exc) from exc
    return instance.model_dump(by_alias=True, exclude_unset=True)


def validate_partial(model: Type[BaseModel], record: Mapping[str, Any]) -> Dict[str, Any]:
    validated = {}
    for name, adapter in _adapters(model).items():
        if name not in record:
            continue
        try:
            value = adapter.validate_python(record[name])
        except pydantic.ValidationError as exc:
            raise _first_error(exc, prefix=name) from exc
        validated[name] = adapter.dump_python(value, by_alias=True, exclude_unset=True)
    return validated


def validate(model: Type[BaseModel], record: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate a coerced record; raises errors.ValidationError."""
    if partial:
        return validate_partial(model, record)
    return validate_strict(model, record)
