"""Plain-text extraction from uploaded documents."""
from __future__ import annotations

import json
from typing import Any

from ..errors import MalformedInputError


def process_document(content: str, filetype: str) -> str:
    """Extract plain text from an uploaded document.

    Args:
        content: Raw document text
        filetype: Extension or MIME type ("txt", "json", "text/csv", ...)

    Returns:
        Extracted text. Unknown filetypes are treated as plain text.

    Raises:
        MalformedInputError: If a JSON document cannot be parsed
    """
    kind = filetype.strip().lower()

    if kind in ("json", "application/json"):
        try:
            value = json.loads(content)
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Invalid JSON: {exc}") from exc
        return extract_json_text(value)

    if kind in ("csv", "text/csv"):
        return _extract_csv(content)

    return content


def extract_json_text(value: Any) -> str:
    """Flatten a JSON value into text, one scalar per line."""
    if isinstance(value, str):
        return f"{value}\n" if value.strip() else ""
    if isinstance(value, bool):
        return "true\n" if value else "false\n"
    if isinstance(value, (int, float)):
        return f"{value}\n"
    if isinstance(value, list):
        return "".join(extract_json_text(item) for item in value)
    if isinstance(value, dict):
        return "".join(f"{key}: {extract_json_text(val)}" for key, val in value.items())
    return ""


def _extract_csv(content: str) -> str:
    result = []
    for i, line in enumerate(content.splitlines()):
        if i == 0:
            result.append(f"CSV Headers: {line}\n")
        elif line.strip():
            result.append(f"Row {i}: {line}\n")
    return "".join(result)
