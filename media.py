"""
Media side channel: MIME gating, uploads to the media host, and splicing the
returned URLs into a coerced record.

Admin write handlers use it in this order:

    matched = check_attachments(files, rules)        # client errors, no network
    validate(model, with_placeholders(record, matched, rules), partial)
    record = attach(record, matched, rules, host)     # one upload per file
    validate(model, record, partial)

so a record that would fail validation never causes an upload, and a failed
upload fails the whole request before anything is persisted.
"""

import hashlib
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import requests

import config
from errors import UpstreamError, ValidationError
from logs import get_logger

log = get_logger(__name__)

IMAGE_TYPES = ("image/",)
MEDIA_TYPES = ("image/", "video/")
DOCUMENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
PLACEHOLDER_URL = "https://media.invalid/pending-upload"


@dataclass
class Attachment:
    field: str
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""


@dataclass(frozen=True)
class MediaRule:
    """Where an uploaded form part goes and what it may contain."""

    field: str
    target: str
    folder: str
    allowed: Tuple[str, ...] = IMAGE_TYPES
    many: bool = False
    max_files: int = 1
    max_bytes: int = config.MAX_MEDIA_BYTES
    resource_type: Optional[str] = None


@dataclass
class UploadResult:
    url: str
    public_id: str
    resource_type: str = "image"
    format: Optional[str] = None


def is_allowed(content_type: str, allowed: Sequence[str]) -> bool:
    content_type = (content_type or "").lower()
    return any(content_type.startswith(a) if a.endswith("/") else content_type == a for a in allowed)


def resource_type_for(attachment: Attachment, rule: MediaRule) -> str:
    if rule.resource_type:
        return rule.resource_type
    return "video" if attachment.content_type.startswith("video/") else "image"


def check_attachments(files: Mapping[str, List[Attachment]], rules: Sequence[MediaRule]) -> Dict[str, List[Attachment]]:
    """Gate attachments by MIME type, count and size before any upload."""
    matched = {}
    for rule in rules:
        parts = [a for a in files.get(rule.field, []) if a.data]
        if not parts:
            continue
        if len(parts) > rule.max_files:
            raise ValidationError(rule.field, f"at most {rule.max_files} file(s) allowed")
        for part in parts:
            if not is_allowed(part.content_type, rule.allowed):
                raise ValidationError(rule.field, f"file type {part.content_type or 'unknown'} is not allowed")
            if len(part.data) > rule.max_bytes:
                raise ValidationError(rule.field, "file is too large")
        matched[rule.field] = parts
    return matched


def _get_path(record: Mapping[str, Any], path: str) -> Any:
    node: Any = record
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _set_path(record: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """Return a copy of `record` with `value` at the dotted path."""
    parts = path.split(".")
    out = dict(record)
    node = out
    for part in parts[:-1]:
        child = node.get(part)
        child = dict(child) if isinstance(child, Mapping) else {}
        node[part] = child
        node = child
    node[parts[-1]] = value
    return out


def _splice(record: Dict[str, Any], rule: MediaRule, urls: List[str]) -> Dict[str, Any]:
    if rule.many:
        existing = _get_path(record, rule.target)
        existing = list(existing) if isinstance(existing, list) else []
        return _set_path(record, rule.target, existing + urls)
    return _set_path(record, rule.target, urls[0])


def with_placeholders(record: Dict[str, Any], matched: Mapping[str, List[Attachment]],
                      rules: Sequence[MediaRule]) -> Dict[str, Any]:
    """The record as it will look once uploads succeed, for validating first."""
    for rule in rules:
        if rule.field in matched:
            record = _splice(record, rule, [PLACEHOLDER_URL] * len(matched[rule.field]))
    return record


def attach(record: Dict[str, Any], matched: Mapping[str, List[Attachment]],
           rules: Sequence[MediaRule], host: "MediaHost") -> Dict[str, Any]:
    for rule in rules:
        if rule.field not in matched:
            continue
        urls = [
            host.upload(a.data, folder=rule.folder, resource_type=resource_type_for(a, rule),
                        filename=a.filename, content_type=a.content_type).url
            for a in matched[rule.field]
        ]
        record = _splice(record, rule, urls)
    return record


def download_url(result: UploadResult) -> str:
    """Delivery URL that makes browsers save the file instead of opening it."""
    base = result.url.split("/upload/")[0]
    return f"{base}/upload/fl_attachment,fl_force_download/{result.public_id}"


class MediaHost(ABC):
    @abstractmethod
    def upload(self, data: bytes, folder: str, resource_type: str = "image",
               format: Optional[str] = None, public_id: Optional[str] = None,
               filename: Optional[str] = None, content_type: Optional[str] = None) -> UploadResult:
        raise NotImplementedError


class CloudinaryHost(MediaHost):
    """Signed uploads against the Cloudinary REST API."""

    api_base = "https://api.cloudinary.com/v1_1"

    def __init__(self, cloud_name: Optional[str] = None, api_key: Optional[str] = None,
                 api_secret: Optional[str] = None, timeout: float = config.MEDIA_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.cloud_name = cloud_name or config.CLOUDINARY_CLOUD_NAME
        self.api_key = api_key or config.CLOUDINARY_API_KEY
        self.api_secret = api_secret or config.CLOUDINARY_API_SECRET
        self.timeout = timeout
        self.session = session or requests.Session()

    def sign(self, params: Mapping[str, Any]) -> str:
        payload = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
        return hashlib.sha1((payload + self.api_secret).encode("utf-8")).hexdigest()

    def upload(self, data, folder, resource_type="image", format=None, public_id=None,
               filename=None, content_type=None):
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise UpstreamError("Media upload failed", cause=RuntimeError("Cloudinary is not configured"))

        params = {"folder": folder or "portfolio", "timestamp": int(time.time())}
        if format:
            params["format"] = format
        if public_id:
            params["public_id"] = public_id
        body = {**params, "api_key": self.api_key, "signature": self.sign(params)}
        url = f"{self.api_base}/{self.cloud_name}/{resource_type}/upload"
        try:
            response = self.session.post(
                url,
                data=body,
                files={"file": (filename or "upload", data, content_type or "application/octet-stream")},
                timeout=self.timeout,
            )
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as exc:
            log.error("media_upload_failed", folder=folder, resource_type=resource_type, error=str(exc))
            raise UpstreamError("Media upload failed", cause=exc) from exc

        if not result.get("secure_url"):
            log.error("media_upload_failed", folder=folder, error="no secure_url in response")
            raise UpstreamError("Media upload failed")
        log.info("media_uploaded", folder=folder, public_id=result.get("public_id"))
        return UploadResult(
            url=result["secure_url"],
            public_id=result.get("public_id", ""),
            resource_type=result.get("resource_type", resource_type),
            format=result.get("format"),
        )


_host: Optional[MediaHost] = None


def get_media_host() -> MediaHost:
    """FastAPI dependency; overridden in tests."""
    global _host
    if _host is None:
        _host = CloudinaryHost()
    return _host
