"""Records of outbound API calls the service has learned from."""
from __future__ import annotations

import socket
import threading
import urllib.error
import urllib.request
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .errors import BackendUnavailableError, MalformedInputError, NotFoundError
from .logging import get_logger

logger = get_logger("learning")

DEFAULT_HTTP_TIMEOUT_S = 30.0
ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_record_id() -> str:
    return f"api_{uuid.uuid4()}"


def extract_tags(url: str) -> list[str]:
    """Domain plus up to two leading path segments (skipping query parts)."""
    parts = url.split("/")
    tags: list[str] = []
    if len(parts) > 2:
        tags.append(parts[2])
    for part in parts[3:5]:
        if part and "?" not in part:
            tags.append(part)
    return tags


def summarize(url: str, status_code: int) -> str:
    if 200 <= status_code < 300:
        status_text = "Success"
    elif 400 <= status_code < 500:
        status_text = "Client Error"
    elif status_code >= 500:
        status_text = "Server Error"
    else:
        status_text = "Unknown"
    return f"{status_text} - {url} ({status_code})"


class ApiLearningRecord(BaseModel):
    """One executed request and its response."""

    id: str = Field(default_factory=_new_record_id)
    method: str
    url: str
    request_body: Optional[str] = None
    response_body: str
    status_code: int
    learned_at: datetime = Field(default_factory=_utc_now)
    tags: list[str] = Field(default_factory=list)
    summary: str = ""

    @classmethod
    def create(
        cls,
        method: str,
        url: str,
        request_body: Optional[str],
        response_body: str,
        status_code: int,
    ) -> "ApiLearningRecord":
        return cls(
            method=method,
            url=url,
            request_body=request_body,
            response_body=response_body,
            status_code=status_code,
            tags=extract_tags(url),
            summary=summarize(url, status_code),
        )


class LearningRecordTable:
    """Thread-safe table of learning records, created empty with the app."""

    def __init__(self) -> None:
        self._records: dict[str, ApiLearningRecord] = {}
        self._lock = threading.RLock()

    def insert(self, record: ApiLearningRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def get(self, record_id: str) -> Optional[ApiLearningRecord]:
        with self._lock:
            return self._records.get(record_id)

    def update(
        self,
        record_id: str,
        tags: Optional[list[str]] = None,
        summary: Optional[str] = None,
    ) -> ApiLearningRecord:
        """Replace tags and/or summary of a record.

        Raises:
            NotFoundError: If the record does not exist
        """
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(f"Learning record not found: {record_id}")
            changes = {}
            if tags is not None:
                changes["tags"] = tags
            if summary is not None:
                changes["summary"] = summary
            record = record.model_copy(update=changes)
            self._records[record_id] = record
            return record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def search(self, query: str) -> list[ApiLearningRecord]:
        """Records whose url, tags or summary contain ``query`` (any case)."""
        needle = query.lower()
        with self._lock:
            return [
                r for r in self._records.values()
                if needle in r.url.lower()
                or any(needle in t.lower() for t in r.tags)
                or needle in r.summary.lower()
            ]

    def list(self) -> list[ApiLearningRecord]:
        """All records, newest first."""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.learned_at, reverse=True)

    def clear(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass
class HttpResult:
    status: int
    body: str

    @property
    def success(self) -> bool:
        return 200 <= self.status < 300


def execute_http_request(
    method: str,
    url: str,
    body: Optional[str] = None,
    headers: Optional[Sequence[tuple[str, str]]] = None,
    timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
) -> HttpResult:
    """Perform an HTTP request and capture its status and body.

    HTTP error statuses are returned as results, not raised.

    Raises:
        MalformedInputError: If the URL scheme or method is not supported
        BackendUnavailableError: If the server cannot be reached
    """
    if not (url.startswith("http://") or url.startswith("https://")):
        raise MalformedInputError("URL must start with http:// or https://")
    method = method.upper()
    if method not in ALLOWED_METHODS:
        raise MalformedInputError(f"Unsupported HTTP method: {method}")

    data = body.encode("utf-8") if body is not None else None
    req = urllib.request.Request(url, data=data, method=method)
    for name, value in headers or []:
        req.add_header(name, value)

    logger.info("Executing %s %s", method, url)
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            return HttpResult(status=resp.status, body=resp.read().decode("utf-8", errors="replace"))
    except urllib.error.HTTPError as err:
        return HttpResult(status=err.code, body=err.read().decode("utf-8", errors="replace"))
    except (urllib.error.URLError, TimeoutError, socket.timeout, ConnectionError) as exc:
        raise BackendUnavailableError(f"Request to {url} failed: {exc}") from exc
