"""FastAPI entrypoint that exposes the marketing and PR consultant."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional, Sequence, Set
from urllib.parse import quote

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import StreamingResponse

from .auth import HeaderAuthProvider, User
from .config import AppSettings
from .conversation import EmptyMessageError, ReplyInFlightError
from .maf_client import ChatBackend, MAFChatClient
from .observability import initialize_tracing, install_background_error_filter
from .profile import ProfileCollector, ProfileValidationError
from .profile_store import ProfileRepository
from .proposal import ExportKind, ProposalExportError
from .sessions import ConsultationSession, ExportNotReadyError, ProfileRequiredError

logger = logging.getLogger(__name__)

UNAVAILABLE_DETAIL = "Service Temporarily Unavailable"
UNAVAILABLE_HINT = (
    "We're having trouble connecting to our authentication service. "
    "Please refresh the page to try again."
)

DEFAULT_MAX_SESSIONS = 1000

_DASH_RUN_RE = re.compile(r"-{2,}")


class ChatRequest(BaseModel):
    message: str = ""


class ContextUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    industry: Optional[str] = None
    size: Optional[str] = None
    goals: Optional[str] = None
    challenges: Optional[str] = None
    company_name: Optional[str] = Field(default=None, alias="companyName")
    contact_name: Optional[str] = Field(default=None, alias="contactName")


class SessionRegistry:
    """In-process consultation sessions keyed by user id.

    Holds at most ``max_sessions`` sessions; the least recently used idle
    session is dropped to make room. Its profile is reloaded from the store
    on the next request.
    """

    def __init__(
        self,
        settings: AppSettings,
        backend: ChatBackend,
        collector: ProfileCollector,
        *,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self._settings = settings
        self._backend = backend
        self._collector = collector
        self._max_sessions = max_sessions
        self._sessions: "OrderedDict[str, ConsultationSession]" = OrderedDict()

    async def get(self, user_id: str) -> ConsultationSession:
        session = self._sessions.get(user_id)
        if session is None:
            profile = await asyncio.to_thread(self._collector.load, user_id)
            # Another request may have created it while the profile loaded.
            session = self._sessions.get(user_id)
            if session is None:
                session = ConsultationSession.create(
                    user_id,
                    self._backend,
                    self._settings,
                    profile=profile,
                )
                self._sessions[user_id] = session
                self._evict()
        self._sessions.move_to_end(user_id)
        return session

    def _evict(self) -> None:
        for user_id in list(self._sessions)[:-1]:
            if len(self._sessions) <= self._max_sessions:
                return
            session = self._sessions[user_id]
            if session.conversation.is_generating or session.background_tasks:
                continue
            del self._sessions[user_id]
            logger.info("Evicted idle session for %s", user_id)

    def logout(self, user_id: str) -> bool:
        return self._sessions.pop(user_id, None) is not None

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


def content_disposition(filename: str) -> str:
    """``attachment`` header with an ASCII fallback and an RFC 5987 name."""

    fallback = filename.encode("ascii", "ignore").decode("ascii")
    fallback = _DASH_RUN_RE.sub("-", fallback).strip("-") or "export"
    return (
        f'attachment; filename="{fallback}"; '
        f"filename*=UTF-8''{quote(filename, safe='')}"
    )



def _sse(event: Dict[str, Any]) -> bytes:
    payload = json.dumps(event, ensure_ascii=False)
    return f"data: {payload}\n\n".encode("utf-8")


def create_app(
    settings: AppSettings,
    *,
    backend: Optional[ChatBackend] = None,
    repository: Optional[ProfileRepository] = None,
    auth_factory: Callable[[], HeaderAuthProvider] = HeaderAuthProvider,
    allow_origins: Sequence[str] | None = None,
    max_sessions: int = DEFAULT_MAX_SESSIONS,
) -> FastAPI:
    """Create the consultant API around a chat backend and profile store."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        install_background_error_filter(asyncio.get_running_loop())
        yield

    app = FastAPI(title="AI Marketing & PR Consultant", lifespan=lifespan)

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    try:
        auth = auth_factory()
    except Exception:
        logger.exception("Auth provider initialization failed")

        @app.middleware("http")
        async def unavailable(request: Request, call_next: Any) -> Any:
            if request.url.path == "/health":
                return await call_next(request)
            return JSONResponse(
                status_code=503,
                content={"detail": UNAVAILABLE_DETAIL, "hint": UNAVAILABLE_HINT},
            )

        return app

    repository = repository or ProfileRepository(
        settings.profile_log, settings.redis_url
    )
    collector = ProfileCollector(repository)
    registry = SessionRegistry(
        settings,
        backend or MAFChatClient(settings.model),
        collector,
        max_sessions=max_sessions,
    )
    app.state.registry = registry
    reply_tasks: Set["asyncio.Task[Any]"] = set()

    def current_user(request: Request) -> User:
        state = auth.resolve(request.headers)
        if state.user is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return state.user

    async def current_session(
        user: User = Depends(current_user),
    ) -> ConsultationSession:
        return await registry.get(user.id)

    @app.get("/session")
    async def get_session(
        user: User = Depends(current_user),
        session: ConsultationSession = Depends(current_session),
    ) -> Dict[str, Any]:
        return {"user": user.to_dict(), **session.snapshot()}

    @app.post("/profile", response_model=None)
    async def submit_profile(
        payload: Dict[str, Any] = Body(...),
        session: ConsultationSession = Depends(current_session),
    ) -> Any:
        try:
            profile = await asyncio.to_thread(
                collector.submit, session.user_id, payload
            )
        except ProfileValidationError as exc:
            return JSONResponse(status_code=422, content={"errors": exc.errors})
        session.apply_profile(profile)
        return session.snapshot()

    @app.post("/chat")
    async def chat(
        payload: ChatRequest,
        session: ConsultationSession = Depends(current_session),
    ) -> StreamingResponse:
        try:
            user_message = session.submit(payload.message)
        except EmptyMessageError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except (ReplyInFlightError, ProfileRequiredError) as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

        queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue()

        async def on_chunk(accumulated: str) -> None:
            await queue.put({"type": "chunk", "content": accumulated})

        async def producer() -> None:
            try:
                reply = await session.receive_reply(on_chunk)
                await queue.put({"type": "message", "message": reply.to_dict()})
                await queue.put(
                    {
                        "type": "done",
                        "progress": session.conversation.progress,
                        "canExport": session.can_export,
                    }
                )
            except Exception as exc:
                logger.exception("Chat turn failed for %s", session.user_id)
                await queue.put({"type": "error", "message": str(exc)})
            finally:
                await queue.put(None)

        # The turn runs to completion even if the client goes away.
        task = asyncio.create_task(producer())
        reply_tasks.add(task)
        task.add_done_callback(reply_tasks.discard)

        async def event_stream() -> AsyncIterator[bytes]:
            yield _sse({"type": "user", "message": user_message.to_dict()})
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield _sse(event)

        headers = {"Cache-Control": "no-cache"}
        return StreamingResponse(
            event_stream(), media_type="text/event-stream", headers=headers
        )

    @app.put("/context")
    async def update_context(
        payload: ContextUpdate,
        session: ConsultationSession = Depends(current_session),
    ) -> Dict[str, Any]:
        session.update_context(**payload.model_dump())
        return session.snapshot()

    @app.post("/session/reset")
    async def reset_session(
        session: ConsultationSession = Depends(current_session),
    ) -> Dict[str, Any]:
        try:
            session.reset()
        except ReplyInFlightError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return session.snapshot()

    @app.post("/assessments/refresh")
    async def refresh_assessments(
        session: ConsultationSession = Depends(current_session),
    ) -> Dict[str, Any]:
        updated = await session.refresh_assessments()
        return {
            "updated": updated,
            "assessments": [
                assessment.to_dict()
                for assessment in session.assessments.assessments
            ],
        }

    @app.post("/export/{kind}")
    async def export(
        kind: str,
        session: ConsultationSession = Depends(current_session),
    ) -> Response:
        try:
            export_kind = ExportKind.from_string(kind)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        try:
            artifact = await session.export(export_kind)
        except ExportNotReadyError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ProposalExportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        headers = {"Content-Disposition": content_disposition(artifact.filename)}
        response = Response(
            content=artifact.content,
            media_type=artifact.media_type,
            headers=headers,
        )
        session.mark_delivered()
        return response

    @app.post("/auth/logout")
    async def logout(user: User = Depends(current_user)) -> Dict[str, str]:
        registry.logout(user.id)
        logger.info("Signed out %s", user.id)
        return {"status": "signed_out"}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8081,
    allow_origins: Sequence[str] | None = None,
    reload: bool = False,
    log_level: str = "info",
    tracing: bool = False,
) -> None:
    """Start the consultant FastAPI server."""

    if tracing:
        initialize_tracing()
    app = create_app(settings=settings, allow_origins=allow_origins)
    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8081,
        help="Port for the API server (default: 8081).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help=(
            "Optional CORS origin(s) to allow. Defaults to '*' if not provided."
        ),
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Run the server in auto-reload development mode.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    parser.add_argument(
        "--tracing",
        action="store_true",
        help="Export OpenTelemetry traces to MAF_OTLP_ENDPOINT.",
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m consultant_agent.server",
        description="Launch the marketing and PR consultant as a FastAPI service.",
    )
    add_server_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logger.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    run_server(
        settings=settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        reload=args.reload,
        log_level=args.log_level,
        tracing=args.tracing,
    )


if __name__ == "__main__":
    main()
