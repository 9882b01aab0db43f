"""Render a chat session as JSON, text, Markdown or HTML."""
from __future__ import annotations

import html
import json
from typing import Callable

from ..errors import UnsupportedFormatError
from .sessions import ChatSession

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
TIME_FORMAT = "%H:%M:%S"

_HTML_HEAD = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Chat Export</title>
    <style>
        body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
        .message { margin: 20px 0; padding: 15px; border-radius: 8px; }
        .user { background-color: #e3f2fd; text-align: right; }
        .assistant { background-color: #f5f5f5; }
        .role { font-weight: bold; margin-bottom: 5px; }
        .time { color: #666; font-size: 0.9em; }
    </style>
</head>
<body>
"""


def export_json(session: ChatSession) -> str:
    return json.dumps(session.model_dump(mode="json"), indent=2, ensure_ascii=False)


def export_txt(session: ChatSession) -> str:
    parts = [
        f"Chat Session: {session.id}\n",
        f"Created: {session.created_at.strftime(DATE_FORMAT)}\n\n",
        "=" * 50 + "\n",
    ]
    for msg in session.messages:
        parts.append(
            f"\n[{msg.timestamp.strftime(TIME_FORMAT)}] {msg.role.upper()}\n{msg.content}\n"
        )
        parts.append("-" * 50 + "\n")
    return "".join(parts)


def export_markdown(session: ChatSession) -> str:
    parts = [
        f"# Chat Session: {session.id}\n\n",
        f"**Created:** {session.created_at.strftime(DATE_FORMAT)}\n\n",
        "---\n\n",
    ]
    for msg in session.messages:
        icon = "👤" if msg.role == "user" else "🤖"
        parts.append(
            f"## {icon} {msg.role.upper()} ({msg.timestamp.strftime(TIME_FORMAT)})\n\n"
            f"{msg.content}\n\n"
        )
    return "".join(parts)


def export_html(session: ChatSession) -> str:
    parts = [
        _HTML_HEAD,
        f"<h1>Chat Session: {html.escape(session.id)}</h1>\n",
        f"<p>Created: {session.created_at.strftime(DATE_FORMAT)}</p>\n",
        "<hr>\n",
    ]
    for msg in session.messages:
        parts.append(
            f'<div class="message {msg.role}">\n'
            f'    <div class="role">{msg.role.upper()}</div>\n'
            f'    <div class="time">{msg.timestamp.strftime(TIME_FORMAT)}</div>\n'
            f"    <p>{html.escape(msg.content)}</p>\n"
            "</div>\n"
        )
    parts.append("</body>\n</html>")
    return "".join(parts)


EXPORTERS: dict[str, Callable[[ChatSession], str]] = {
    "json": export_json,
    "txt": export_txt,
    "markdown": export_markdown,
    "md": export_markdown,
    "html": export_html,
}


def export_session(session: ChatSession, fmt: str) -> str:
    """Render a session in the requested format.

    Raises:
        UnsupportedFormatError: If ``fmt`` is not one of EXPORTERS
    """
    exporter = EXPORTERS.get(fmt.strip().lower())
    if exporter is None:
        raise UnsupportedFormatError(
            f"Unsupported format: {fmt}. Use: json, txt, markdown, or html"
        )
    return exporter(session)
