"""
Request-body normalization for the admin write endpoints.

    body --coerce--> record --gate files--> dry-run validate --upload--> validate --resolve--> write

`read_payload` turns either a JSON body or a multipart/urlencoded form into a
Payload; `prepare_create`, `prepare_update` and `prepare_upsert` run the rest
and hand back exactly what the persistence gateway needs.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type

from fastapi import Request
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from coercion import coerce
from errors import ValidationError
from media import Attachment, MediaHost, MediaRule, attach, check_attachments, with_placeholders
from resolver import resolve_create, resolve_update, resolve_upsert
from validation import validate

FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


@dataclass
class Payload:
    data: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, List[Attachment]] = field(default_factory=dict)


async def read_payload(request: Request) -> Payload:
    """FastAPI dependency: parse a JSON or form body into a Payload."""
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_TYPES):
        form = await request.form()
        payload = Payload()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                payload.files.setdefault(key, []).append(Attachment(
                    field=key,
                    filename=value.filename or "",
                    content_type=value.content_type or "",
                    data=await value.read(),
                ))
            elif key in payload.data:
                existing = payload.data[key]
                payload.data[key] = (existing if isinstance(existing, list) else [existing]) + [value]
            else:
                payload.data[key] = value
        return payload

    raw = await request.body()
    if not raw.strip():
        return Payload()
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationError("body", "Invalid JSON")
    if not isinstance(data, dict):
        raise ValidationError("body", "Expected a JSON object")
    return Payload(data=data)


def normalize(model: Type[BaseModel], payload: Payload, partial: bool,
              rules: Sequence[MediaRule] = (), host: Optional[MediaHost] = None) -> Dict[str, Any]:
    """Coerce, validate and attach media; returns the validated provided fields."""
    record = coerce(model, payload.data)
    matched = check_attachments(payload.files, rules)
    if not matched:
        return validate(model, record, partial=partial)

    # Nothing is uploaded for a record that would be rejected anyway.
    validate(model, with_placeholders(record, matched, rules), partial=partial)
    record = attach(record, matched, rules, host)
    return validate(model, record, partial=partial)


def prepare_create(model, payload, rules=(), host=None) -> Dict[str, Any]:
    return resolve_create(model, normalize(model, payload, False, rules, host))


def prepare_update(model, payload, rules=(), host=None) -> Dict[str, Any]:
    return resolve_update(model, normalize(model, payload, True, rules, host))


def prepare_upsert(model, payload, rules=(), host=None) -> Dict[str, Any]:
    return resolve_upsert(model, normalize(model, payload, True, rules, host))
