"""HTTP API for the experience memory.

Usage::

    ai-core --port 3000

Usage (embedded, e.g. tests)::

    from ai_core.server import create_app
    app = create_app(settings, backend=MockBackend())
"""
from __future__ import annotations

import argparse
import secrets
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .chat import ChatService, Responder, SessionTable, export_session, process_document
from .config import Settings
from .decision import decide, decide_for_query
from .errors import (
    AICoreError,
    BackendCreationError,
    BackendError,
    LockTimeoutError,
    MalformedInputError,
    NotFoundError,
    SnapshotError,
)
from .learning import ApiLearningRecord, LearningRecordTable, execute_http_request
from .llm.backends import GenerationBackend, create_backend
from .logging import get_logger, setup_logging
from .memory import ExperienceStore, PatternIndex, SnapshotWorker, load_store
from .personality import Personality
from .schemas import (
    ChatMessageRequest,
    CreateExperienceRequest,
    DocumentUploadRequest,
    DocumentUploadResponse,
    HttpRequestPayload,
    HttpRequestResponse,
    InteractResponse,
    PatternDetailResponse,
    PatternInfo,
    PersonalityRequest,
    PersonalityResponse,
    ReflectionItem,
    ReflectionResponse,
    StatsResponse,
    UpdateLearningRecordRequest,
    envelope,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger("server")

VERSION = "0.1.0"
STATS_TOP_PATTERNS = 10
INTERACT_TOP_PATTERNS = 5


def build_backend(settings: Settings) -> Optional[GenerationBackend]:
    """Create the configured generation backend, or None when unavailable."""
    enabled = settings.ollama_enabled if settings.llm_provider == "ollama" else True
    try:
        return create_backend(
            settings.llm_provider,
            model=settings.ollama_model if settings.llm_provider == "ollama" else None,
            url=settings.ollama_url if settings.llm_provider == "ollama" else None,
            enabled=enabled,
            timeout_s=settings.llm_timeout_s,
        )
    except BackendCreationError as exc:
        logger.warning("Generation backend unavailable (%s). Chat will use fallback responses.", exc)
        return None


def _check_backend(backend: Optional[GenerationBackend]) -> None:
    if backend is None or not backend.is_enabled():
        return
    logger.info("Checking %s connection...", backend.name)
    if not backend.health_check():
        logger.warning("%s is not accessible. Chat will use fallback responses.", backend.name)
        return
    try:
        logger.info("Available models: %s", ", ".join(backend.list_models()))
    except BackendError as exc:
        logger.warning("Failed to list models: %s", exc)


def create_app(
    settings: Settings,
    store: Optional[ExperienceStore] = None,
    backend: Optional[GenerationBackend] = None,
    restore_snapshot: bool = True,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Runtime configuration
        store: Shared store (a new one is created if None)
        backend: Generation backend (built from settings if None)
        restore_snapshot: Load ``settings.snapshot_path`` on startup
    """
    if store is None:
        store = ExperienceStore(lock_timeout_s=settings.lock_timeout_s)
    if backend is None:
        backend = build_backend(settings)

    sessions = SessionTable()
    records = LearningRecordTable()
    responder = Responder(backend=backend, timeout_s=settings.llm_timeout_s)
    chat = ChatService(store, sessions, responder)
    worker = SnapshotWorker(store, settings.snapshot_path, interval_s=settings.snapshot_interval_s)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting AI Core API on %s", settings.address)
        if restore_snapshot:
            try:
                load_store(settings.snapshot_path, store=store)
            except SnapshotError as exc:
                logger.error("Could not restore memory (%s). Starting with fresh memory.", exc)
        _check_backend(backend)
        worker.start()
        yield
        worker.stop()
        responder.close()
        logger.info("AI Core API stopped")

    app = FastAPI(title="AI Core API", version=VERSION, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    app.state.settings = settings
    app.state.store = store
    app.state.sessions = sessions
    app.state.records = records
    app.state.responder = responder
    app.state.snapshot_worker = worker

    bearer = HTTPBearer(auto_error=False)

    def require_token(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> None:
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        if not secrets.compare_digest(credentials.credentials, settings.bearer_token):
            logger.warning("Invalid token attempt")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    @app.exception_handler(NotFoundError)
    async def _not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=envelope(message=str(exc), success=False))

    @app.exception_handler(LockTimeoutError)
    async def _lock_timeout(_request: Request, exc: LockTimeoutError) -> JSONResponse:
        logger.error("Lock acquisition failed: %s", exc)
        return JSONResponse(
            status_code=500, content=envelope(message="Internal server error", success=False)
        )

    # ── Public ───────────────────────────────────────────────────────

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return f"AI Core API v{VERSION}"

    @app.get("/health")
    def health() -> dict:
        return envelope("AI Core is running", "OK")

    protected = [Depends(require_token)]

    # ── Experiences ──────────────────────────────────────────────────

    @app.get("/experiences", dependencies=protected)
    def list_experiences() -> dict:
        experiences = store.list()
        if not experiences:
            return envelope([], "No experiences found. Memory is empty.")
        return envelope(experiences, f"Retrieved {len(experiences)} experiences")

    @app.get("/experiences/search", dependencies=protected)
    def search_experiences(q: str) -> dict:
        results = store.search(q)
        return envelope(results, f"Found {len(results)} matching experiences")

    @app.get("/experiences/{experience_id}", dependencies=protected)
    def get_experience(experience_id: str) -> dict:
        exp = store.get(experience_id)
        if exp is None:
            raise NotFoundError(f"Experience not found: {experience_id}")
        return envelope(exp, "Experience found")

    @app.post("/experiences", dependencies=protected)
    def create_experience(payload: CreateExperienceRequest) -> dict:
        exp = store.append(payload.content, payload.source, payload.metadata)
        return envelope(exp, "Experience created successfully")

    # ── Patterns & decisions ─────────────────────────────────────────

    @app.get("/stats", dependencies=protected)
    def stats() -> dict:
        experiences = store.list()
        patterns = PatternIndex.build(experiences)
        logger.debug("Pattern analysis:\n%s", "\n".join(patterns.summary()))
        top = [
            PatternInfo(keyword=p.keyword, frequency=p.frequency, experience_count=p.experience_count)
            for p in patterns.top(STATS_TOP_PATTERNS)
        ]
        data = StatsResponse(
            total_experiences=len(experiences),
            total_patterns=len(patterns),
            top_patterns=top,
        )
        return envelope(data, "Statistics retrieved")

    @app.get("/patterns/{keyword}", dependencies=protected)
    def pattern_detail(keyword: str) -> dict:
        experiences = store.list()
        pattern = PatternIndex.build(experiences).get(keyword)
        if pattern is None:
            raise NotFoundError(f"Pattern not found: {keyword}")
        by_id = {e.id: e for e in experiences}
        data = PatternDetailResponse(
            keyword=pattern.keyword,
            frequency=pattern.frequency,
            experience_ids=list(pattern.experience_ids),
            related_experiences=[by_id[i].content for i in pattern.experience_ids if i in by_id],
        )
        return envelope(data, f"Found pattern for keyword: {keyword}")

    @app.post("/patterns/clear", dependencies=protected)
    def rebuild_patterns() -> dict:
        patterns = PatternIndex()
        patterns.reset()
        for exp in store.list():
            patterns.analyze(exp)
        return envelope(
            f"Patterns rebuilt. Found {len(patterns)} unique patterns",
            "Pattern cache cleared and rebuilt",
        )

    @app.get("/decision", dependencies=protected)
    def decision() -> dict:
        snapshot = ExperienceStore.from_experiences(store.list())
        return envelope(decide(snapshot, PatternIndex.build(snapshot.list())), "Decision made")

    @app.get("/decision/query", dependencies=protected)
    def decision_for_query(q: str) -> dict:
        return envelope(decide_for_query(store, q), f"Decision made for query: '{q}'")

    @app.get("/interact", dependencies=protected)
    def interact() -> dict:
        experiences = store.list()
        patterns = PatternIndex.build(experiences)
        data = InteractResponse(
            analysis=f"Analyzed {len(experiences)} experiences",
            experience_count=len(experiences),
            pattern_summary=[
                f"{p.keyword}: {p.frequency} occurrences" for p in patterns.top(INTERACT_TOP_PATTERNS)
            ],
        )
        return envelope(data, "Interaction completed")

    @app.post("/personality", dependencies=protected)
    def personality(payload: PersonalityRequest) -> dict:
        traits = Personality()
        traits.update(payload.input)
        data = PersonalityResponse(
            curiosity=traits.curiosity,
            happiness=traits.happiness,
            caution=traits.caution,
            dominant_trait=traits.dominant_trait(),
            influenced_response=traits.influence_response(payload.response),
        )
        return envelope(data, "Personality updated")

    @app.get("/reflect", dependencies=protected)
    def reflect() -> dict:
        experiences = store.list()
        logger.info("Memory reflection requested: %s", store.stats())
        data = ReflectionResponse(
            total_experiences=len(experiences),
            experiences=[
                ReflectionItem(
                    id=e.id,
                    timestamp=e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    source=e.source,
                    content=e.content,
                )
                for e in experiences
            ],
        )
        return envelope(data, f"Reflected on {len(experiences)} experiences")

    @app.delete("/memory/clear", dependencies=protected)
    def clear_memory() -> dict:
        store.clear()
        return envelope("Memory cleared", "All experiences have been deleted")

    # ── Chat ─────────────────────────────────────────────────────────

    @app.post("/chat/send", dependencies=protected)
    def chat_send(payload: ChatMessageRequest) -> dict:
        session_id, reply, context_count = chat.send(payload.content, payload.session_id)
        data = {
            "session_id": session_id,
            "message": reply.model_dump(mode="json"),
            "context_count": context_count,
        }
        return envelope(data, "Message processed")

    @app.get("/chat/history/{session_id}", dependencies=protected)
    def chat_history(session_id: str) -> dict:
        session = sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return envelope(session, f"Retrieved {len(session.messages)} messages")

    @app.get("/chat/sessions", dependencies=protected)
    def chat_sessions() -> dict:
        ids = sessions.list_ids()
        return envelope(ids, f"Found {len(ids)} active chat sessions")

    @app.delete("/chat/sessions/{session_id}", dependencies=protected)
    def chat_delete(session_id: str) -> dict:
        if not sessions.delete(session_id):
            raise NotFoundError(f"Session not found: {session_id}")
        return envelope("Session cleared", f"Chat session {session_id} has been deleted")

    @app.post("/chat/upload", dependencies=protected)
    def chat_upload(payload: DocumentUploadRequest) -> dict:
        try:
            text = process_document(payload.content, payload.filetype)
        except MalformedInputError as exc:
            return envelope(message=f"Failed to process document: {exc}", success=False)
        exp = store.append(text, f"document:{payload.filename}")
        data = DocumentUploadResponse(
            processed=True, text=text, added_to_memory=True, experience_id=exp.id
        )
        return envelope(data, f"Document '{payload.filename}' processed and added to memory")

    @app.get("/chat/export", dependencies=protected)
    def chat_export(session_id: str, fmt: str = Query(..., alias="format")) -> dict:
        session = sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        try:
            exported = export_session(session, fmt)
        except MalformedInputError as exc:
            return envelope(message=str(exc), success=False)
        return envelope(exported, f"Chat session exported as {fmt}")

    # ── API learning ─────────────────────────────────────────────────

    @app.post("/api-learning/execute", dependencies=protected)
    def api_execute(payload: HttpRequestPayload) -> dict:
        try:
            result = execute_http_request(
                payload.method, payload.url, payload.body, payload.headers
            )
        except AICoreError as exc:
            data = HttpRequestResponse(success=False, status=500, body=str(exc))
            return envelope(data, "HTTP request failed", success=False)

        record_id = None
        if payload.save_to_memory:
            record = ApiLearningRecord.create(
                payload.method, payload.url, payload.body, result.body, result.status
            )
            records.insert(record)
            record_id = record.id
            store.append(
                f"API Call: {payload.method} {payload.url} - Status {result.status}",
                "api_learning",
                f"record_id:{record.id}",
            )

        data = HttpRequestResponse(
            success=result.success,
            status=result.status,
            body=result.body,
            learning_record_id=record_id,
        )
        return envelope(data, "HTTP request executed")

    @app.get("/api-learning/records", dependencies=protected)
    def api_records() -> dict:
        items = records.list()
        return envelope(items, f"Retrieved {len(items)} learning records")

    @app.get("/api-learning/records/{record_id}", dependencies=protected)
    def api_record(record_id: str) -> dict:
        record = records.get(record_id)
        if record is None:
            raise NotFoundError(f"Learning record not found: {record_id}")
        return envelope(record, "Learning record found")

    @app.post("/api-learning/records/{record_id}", dependencies=protected)
    def api_record_update(record_id: str, payload: UpdateLearningRecordRequest) -> dict:
        record = records.update(record_id, tags=payload.tags, summary=payload.summary)
        return envelope(record, "Learning record updated")

    @app.delete("/api-learning/records/{record_id}", dependencies=protected)
    def api_record_delete(record_id: str) -> dict:
        if not records.delete(record_id):
            raise NotFoundError(f"Learning record not found: {record_id}")
        return envelope("Learning record deleted", "Record removed")

    @app.get("/api-learning/search", dependencies=protected)
    def api_search(q: str) -> dict:
        results = records.search(q)
        return envelope(results, f"Found {len(results)} matching records")

    @app.delete("/api-learning/clear", dependencies=protected)
    def api_clear() -> dict:
        count = records.clear()
        return envelope(f"Cleared {count} learning records", "All learning records deleted")

    return app


def main() -> None:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="AI Core experience memory API")
    parser.add_argument("--host", default=None, help="Bind address (default: API_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: API_PORT)")
    parser.add_argument("--snapshot-path", default=None, help="Snapshot file (default: AI_CORE_SNAPSHOT_PATH)")
    parser.add_argument("--log-level", default=None, help="Log level (default: AI_CORE_LOG_LEVEL)")
    parser.add_argument("--log-json", action="store_true", help="Log JSON lines (default: AI_CORE_LOG_JSON)")
    args = parser.parse_args()

    settings = Settings.from_env()
    overrides = {}
    if args.host:
        overrides["api_host"] = args.host
    if args.port:
        overrides["api_port"] = args.port
    if args.snapshot_path:
        overrides["snapshot_path"] = Path(args.snapshot_path)
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    if overrides:
        settings = replace(settings, **overrides)

    setup_logging(settings.log_level, json_output=settings.log_json)

    import uvicorn

    app = create_app(settings)
    uvicorn.run(
        app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
