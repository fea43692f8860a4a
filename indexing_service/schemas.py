"""
Request bodies for the publish endpoints. Validation runs before any network call.
"""
import re
from enum import Enum
from urllib.parse import urlsplit

import pydantic
from pydantic import BaseModel, field_validator

from indexing_service.errors import ValidationError

URL_REQUIRED_MESSAGE = "URL is required"

# DNS name of non-empty labels, or an IPv6 literal (urlsplit strips the brackets)
_HOST = re.compile(r"^(?:[\w-]+(?:\.[\w-]+)*\.?|[0-9a-f:.]+)$")
_WHITESPACE_OR_CONTROL = re.compile(r"[\s\x00-\x1f\x7f]")


class NotificationType(str, Enum):
    URL_UPDATED = "URL_UPDATED"
    URL_DELETED = "URL_DELETED"


def check_absolute_url(value: str) -> str:
    """Accept absolute http(s) URLs with a host; the URL is passed on unchanged (no normalization)."""
    if not value or not value.strip():
        raise ValueError(URL_REQUIRED_MESSAGE)
    value = value.strip()
    if _WHITESPACE_OR_CONTROL.search(value):
        raise ValueError(f"Invalid URL: {value}")
    try:
        parts = urlsplit(value)
        parts.port  # raises ValueError for a non-numeric or out-of-range port
    except ValueError:
        raise ValueError(f"Invalid URL: {value}")
    if parts.scheme not in ("http", "https") or not parts.hostname or not _HOST.match(parts.hostname):
        raise ValueError(f"Invalid URL: {value}")
    return value


class IndexingRequest(BaseModel):
    url: str
    type: NotificationType = NotificationType.URL_UPDATED

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        return check_absolute_url(value)


class BatchIndexingRequest(BaseModel):
    urls: list[str]
    type: NotificationType = NotificationType.URL_UPDATED

    @field_validator("urls")
    @classmethod
    def _absolute_urls(cls, values: list[str]) -> list[str]:
        # Blank lines from pasted lists are dropped, everything else must be a URL
        return [check_absolute_url(v) for v in values if v and v.strip()]

    def as_requests(self) -> list[IndexingRequest]:
        return [IndexingRequest(url=u, type=self.type) for u in self.urls]


def _message_for(err: dict) -> str:
    """Turn the first pydantic error into a short user-facing message."""
    kind = err.get("type")
    loc = err.get("loc") or ()
    if kind == "json_invalid":
        return "Invalid JSON body"
    if kind == "model_type":
        return "Request body must be a JSON object"
    if kind == "missing" and loc and loc[0] in ("url", "urls"):
        return URL_REQUIRED_MESSAGE
    if kind == "value_error":
        return str(err.get("ctx", {}).get("error") or err.get("msg"))
    if kind == "enum" and loc and loc[0] == "type":
        return "type must be one of URL_UPDATED, URL_DELETED"
    field = ".".join(str(p) for p in loc) or "body"
    return f"Invalid request body: {field}: {err.get('msg')}"


def parse_body(model: type[BaseModel], body: bytes) -> BaseModel | ValidationError:
    try:
        return model.model_validate_json(body or b"")
    except pydantic.ValidationError as e:
        errors = e.errors()
        return ValidationError(_message_for(errors[0]) if errors else "Invalid request body")
