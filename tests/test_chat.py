"""Tests for chat sessions, the chat service, documents and export."""
from __future__ import annotations

import json
import threading

import pytest

from ai_core.chat import (
    ChatMessage,
    ChatService,
    ChatSession,
    Responder,
    SessionTable,
    export_session,
    process_document,
)
from ai_core.errors import MalformedInputError, NotFoundError, UnsupportedFormatError


@pytest.fixture
def sessions():
    return SessionTable()


@pytest.fixture
def chat(populated_store, sessions):
    responder = Responder()
    yield ChatService(populated_store, sessions, responder)
    responder.close()


@pytest.fixture
def session():
    s = ChatSession(id="session-1")
    s.add_message(ChatMessage.user("Hi <b>there</b>"))
    s.add_message(ChatMessage.assistant("Hello & welcome", context_used=["exp_1"]))
    return s


class TestChatMessage:
    """Tests for ChatMessage and ChatSession."""

    def test_ids_and_roles(self):
        msg = ChatMessage.user("hi")
        assert msg.id.startswith("msg_")
        assert msg.role == "user"
        assert msg.context_used is None

    def test_invalid_role_rejected(self):
        with pytest.raises(ValueError):
            ChatMessage(role="system", content="nope")

    def test_recent_messages(self, session):
        assert [m.role for m in session.get_recent_messages(1)] == ["assistant"]
        assert len(session.get_recent_messages(10)) == 2
        assert session.get_recent_messages(0) == []

    def test_add_message_bumps_updated_at(self):
        s = ChatSession(id="x")
        before = s.updated_at
        s.add_message(ChatMessage.user("hi"))
        assert s.updated_at >= before


class TestSessionTable:
    """Tests for SessionTable."""

    def test_get_or_create_generates_id(self, sessions):
        created = sessions.get_or_create()
        assert created.id
        assert sessions.get(created.id) is not None

    def test_get_missing(self, sessions):
        assert sessions.get("missing") is None

    def test_append_and_copies(self, sessions):
        sessions.get_or_create("abc")
        sessions.append("abc", ChatMessage.user("one"), ChatMessage.assistant("two"))

        copy = sessions.get("abc")
        copy.messages.clear()
        assert len(sessions.get("abc").messages) == 2

    def test_append_to_missing_session(self, sessions):
        with pytest.raises(NotFoundError):
            sessions.append("missing", ChatMessage.user("hi"))

    def test_list_and_delete(self, sessions):
        sessions.get_or_create("a")
        sessions.get_or_create("b")
        assert sorted(sessions.list_ids()) == ["a", "b"]
        assert sessions.delete("a") is True
        assert sessions.delete("a") is False
        assert sessions.list_ids() == ["b"]

    def test_concurrent_appends(self, sessions):
        sessions.get_or_create("busy")

        def worker():
            for _ in range(50):
                sessions.append("busy", ChatMessage.user("x"))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(sessions.get("busy").messages) == 200


class TestChatService:
    """Tests for ChatService.send."""

    def test_send_creates_session(self, chat, sessions):
        session_id, reply, context_count = chat.send("hello")
        assert session_id in sessions.list_ids()
        assert reply.role == "assistant"
        assert context_count == 0

        history = sessions.get(session_id)
        assert [m.role for m in history.messages] == ["user", "assistant"]
        assert history.messages[0].content == "hello"

    def test_send_reuses_session(self, chat, sessions):
        session_id, _, _ = chat.send("first", session_id="mine")
        assert session_id == "mine"
        chat.send("second", session_id="mine")
        assert len(sessions.get("mine").messages) == 4

    def test_send_reports_context(self, chat):
        _, reply, context_count = chat.send("coffee please")
        assert context_count == 2
        assert len(reply.context_used) == 2

    def test_session_deleted_during_reply(self, populated_store, sessions):
        class DeletingResponder(Responder):
            def respond(self, user_input, store):
                sessions.delete("s1")
                return super().respond(user_input, store)

        responder = DeletingResponder()
        try:
            session_id, reply, _ = ChatService(populated_store, sessions, responder).send("hello", "s1")
        finally:
            responder.close()

        assert session_id == "s1"
        assert reply.role == "assistant"
        assert sessions.get("s1") is None


class TestDocuments:
    """Tests for process_document."""

    def test_plain_text(self):
        assert process_document("just text", "txt") == "just text"
        assert process_document("mime text", "text/plain") == "mime text"

    def test_unknown_type_is_plain_text(self):
        assert process_document("# heading", "md") == "# heading"

    def test_json_extraction(self):
        doc = json.dumps({"title": "Notes", "items": ["one", 2, True], "blank": "  "})
        assert process_document(doc, "json") == "title: Notes\nitems: one\n2\ntrue\nblank: "

    def test_json_mime_type(self):
        assert process_document('"hello"', "application/json") == "hello\n"

    def test_invalid_json(self):
        with pytest.raises(MalformedInputError):
            process_document("{not json", "json")

    def test_csv(self):
        doc = "name,age\nana,30\n\nbudi,25"
        assert process_document(doc, "csv") == (
            "CSV Headers: name,age\nRow 1: ana,30\nRow 3: budi,25\n"
        )


class TestExport:
    """Tests for export_session."""

    def test_json(self, session):
        data = json.loads(export_session(session, "json"))
        assert data["id"] == "session-1"
        assert len(data["messages"]) == 2
        assert data["messages"][1]["context_used"] == ["exp_1"]

    def test_txt(self, session):
        text = export_session(session, "txt")
        assert text.startswith("Chat Session: session-1\n")
        assert "] USER\nHi <b>there</b>\n" in text
        assert "-" * 50 in text

    def test_markdown_aliases(self, session):
        md = export_session(session, "markdown")
        assert md == export_session(session, "md")
        assert md.startswith("# Chat Session: session-1")
        assert "ASSISTANT" in md

    def test_html_escapes_content(self, session):
        page = export_session(session, "html")
        assert page.startswith("<!DOCTYPE html>")
        assert "Hi &lt;b&gt;there&lt;/b&gt;" in page
        assert "Hello &amp; welcome" in page
        assert '<div class="message user">' in page
        assert page.endswith("</html>")

    def test_unknown_format(self, session):
        with pytest.raises(UnsupportedFormatError):
            export_session(session, "pdf")
