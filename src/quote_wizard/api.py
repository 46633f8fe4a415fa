"""FastAPI entrypoint that exposes quote sessions as a JSON API."""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import DEFAULT_SESSION_TTL, AppSettings
from .sessions import QuoteSession, SessionStage, SessionStateError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], QuoteSession]


class InterviewRequest(BaseModel):
    request: str


class SelectOptionRequest(BaseModel):
    option: str


class CustomTextRequest(BaseModel):
    text: str


class SessionRegistry:
    """In-memory map of session ids to live sessions.

    Sessions untouched for ``ttl`` seconds are evicted on the next create
    or lookup. A session with a save still in flight is kept until the
    save finishes.
    """

    def __init__(
        self,
        factory: SessionFactory,
        *,
        ttl: float = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, QuoteSession] = {}
        self._last_seen: Dict[str, float] = {}
        self._retired: List[QuoteSession] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> tuple[str, QuoteSession]:
        self.evict_idle()
        session_id = uuid4().hex
        session = self._factory()
        self._sessions[session_id] = session
        self._last_seen[session_id] = self._clock()
        return session_id, session

    def get(self, session_id: str) -> QuoteSession:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Unknown session")
        self._last_seen[session_id] = self._clock()
        return session

    def remove(self, session_id: str) -> QuoteSession:
        session = self.get(session_id)
        self._forget(session_id)
        return session

    def evict_idle(self) -> int:
        """Drop sessions idle longer than the TTL; return how many went."""

        cutoff = self._clock() - self._ttl
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if seen <= cutoff and not self._sessions[session_id].saving
        ]
        for session_id in expired:
            self._forget(session_id)
        self._retired = [session for session in self._retired if session.saving]
        if expired:
            logger.info("Evicted %s idle sessions", len(expired))
        return len(expired)

    async def drain(self) -> None:
        sessions = [*self._sessions.values(), *self._retired]
        await asyncio.gather(
            *(session.wait_for_background() for session in sessions)
        )
        self._retired.clear()

    def _forget(self, session_id: str) -> None:
        session = self._sessions.pop(session_id)
        self._last_seen.pop(session_id, None)
        if session.saving:
            self._retired.append(session)


def _view(session_id: str, session: QuoteSession) -> Dict[str, Any]:
    payload = session.snapshot()
    payload["id"] = session_id
    return payload


def _run_action(action: Callable[[], Any]) -> Any:
    try:
        return action()
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0])) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def create_app(
    settings: AppSettings,
    *,
    allow_origins: Sequence[str] | None = None,
    session_factory: Optional[SessionFactory] = None,
) -> FastAPI:
    """Create a FastAPI app that forwards user actions into quote sessions."""

    registry = SessionRegistry(
        session_factory or (lambda: QuoteSession.create(settings)),
        ttl=settings.session_ttl,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await registry.drain()

    app = FastAPI(title="Quote Wizard", lifespan=lifespan)
    app.state.registry = registry

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/sessions", status_code=201)
    async def create_session() -> Dict[str, Any]:
        session_id, session = registry.create()
        return _view(session_id, session)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str) -> Dict[str, Any]:
        return _view(session_id, registry.get(session_id))

    @app.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str) -> None:
        registry.remove(session_id)

    @app.post("/sessions/{session_id}/interview")
    async def begin_interview(
        session_id: str, payload: InterviewRequest
    ) -> Dict[str, Any]:
        session = registry.get(session_id)
        if session.stage is not SessionStage.INPUT:
            raise HTTPException(
                status_code=409,
                detail=f"Session is in '{session.stage.value}'",
            )
        await session.begin_interview(payload.request)
        return _view(session_id, session)

    @app.post("/sessions/{session_id}/answers/{question_id}/select")
    async def select_option(
        session_id: str, question_id: int, payload: SelectOptionRequest
    ) -> Dict[str, Any]:
        session = registry.get(session_id)
        _run_action(lambda: session.select_option(question_id, payload.option))
        return _view(session_id, session)

    @app.post("/sessions/{session_id}/answers/{question_id}/custom")
    async def enable_custom_input(
        session_id: str, question_id: int
    ) -> Dict[str, Any]:
        session = registry.get(session_id)
        _run_action(lambda: session.enable_custom_input(question_id))
        return _view(session_id, session)

    @app.put("/sessions/{session_id}/answers/{question_id}/custom")
    async def set_custom_text(
        session_id: str, question_id: int, payload: CustomTextRequest
    ) -> Dict[str, Any]:
        session = registry.get(session_id)
        accepted = _run_action(
            lambda: session.set_custom_text(question_id, payload.text)
        )
        if not accepted:
            raise HTTPException(
                status_code=409,
                detail=f"Custom input is not active for question {question_id}",
            )
        return _view(session_id, session)

    @app.post("/sessions/{session_id}/quote")
    async def generate_quote(session_id: str) -> Dict[str, Any]:
        session = registry.get(session_id)
        if session.stage is not SessionStage.QUESTIONS:
            raise HTTPException(
                status_code=409,
                detail=f"Session is in '{session.stage.value}'",
            )
        await session.generate_quote()
        return _view(session_id, session)

    @app.get("/sessions/{session_id}/share")
    async def share_message(session_id: str) -> Dict[str, str]:
        session = registry.get(session_id)
        message = _run_action(session.share_message)
        return {"message": message}

    @app.post("/sessions/{session_id}/error/dismiss")
    async def dismiss_error(session_id: str) -> Dict[str, Any]:
        session = registry.get(session_id)
        session.dismiss_error()
        return _view(session_id, session)

    @app.post("/sessions/{session_id}/restart")
    async def restart(session_id: str) -> Dict[str, Any]:
        session = registry.get(session_id)
        session.restart()
        return _view(session_id, session)

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - simple health probe
        return {"status": "ok"}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    allow_origins: Sequence[str] | None = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server."""

    app = create_app(settings=settings, allow_origins=allow_origins)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m quote_wizard",
        description="Serve the AI quote wizard as a JSON API.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the server (default: 8000).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*' if not provided.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    run_server(
        settings=settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
