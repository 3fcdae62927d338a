"""FastAPI HTTP server for controlling a capture session.

Exposes the scheduler's session commands (start, stop, pause, resume)
and read-only views of the session state and its pages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from screenpager.config.settings import Settings
from screenpager.domain.models import Page, PageStatus, RecordingState, Region
from screenpager.scheduler.loop import CaptureScheduler, SessionError

logger = logging.getLogger(__name__)


class StartRequest(BaseModel):
    region: Region | None = Field(default=None, description="Region to capture")
    full_display: bool = Field(default=False, description="Capture the whole display")


class SessionStatus(BaseModel):
    state: RecordingState
    session_id: str | None = None
    capture_count: int = 0
    page_count: int = 0
    region: Region | None = None
    is_full_display: bool = False


class PageSummary(BaseModel):
    id: str
    index: int
    status: PageStatus
    start_time: datetime
    end_time: datetime | None = None
    screenshot_count: int = 0
    combined_text: str = ""

    @classmethod
    def from_page(cls, page: Page) -> PageSummary:
        return cls(
            id=page.id,
            index=page.index,
            status=page.status,
            start_time=page.start_time,
            end_time=page.end_time,
            screenshot_count=len(page.screenshots),
            combined_text=page.combined_text,
        )


class StopResponse(BaseModel):
    state: RecordingState = RecordingState.IDLE
    pages: list[PageSummary] = Field(default_factory=list)


class HealthStatus(BaseModel):
    status: str = "ok"
    state: RecordingState = RecordingState.IDLE
    extraction_mode: str = ""


def create_app(
    scheduler: CaptureScheduler | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    When no scheduler is given one is built from settings on startup,
    capturing from the live screen.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.scheduler is None:
            from screenpager.capture.screen import ScreenCapture

            cfg = settings or Settings()
            app.state.scheduler = CaptureScheduler.from_settings(
                cfg, ScreenCapture(monitor=cfg.capture.monitor)
            )
        logger.info("Control endpoint started")
        yield
        await app.state.scheduler.close()
        logger.info("Control endpoint stopped")

    app = FastAPI(
        title="screenpager",
        description="Control endpoint for screenpager capture sessions",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.scheduler = scheduler

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    def _status(s: CaptureScheduler) -> SessionStatus:
        session = s.session
        return SessionStatus(
            state=s.state,
            session_id=session.session_id if session else None,
            capture_count=s.capture_count,
            page_count=len(s.pages),
            region=session.region if session else s.region,
            is_full_display=session.is_full_display if session else False,
        )

    @app.get("/health")
    async def health_check() -> HealthStatus:
        s: CaptureScheduler = app.state.scheduler
        return HealthStatus(state=s.state, extraction_mode=s.dispatcher.mode.value)

    @app.get("/state")
    async def get_state() -> SessionStatus:
        return _status(app.state.scheduler)

    @app.post("/start")
    async def start_recording(request: StartRequest) -> SessionStatus:
        s: CaptureScheduler = app.state.scheduler
        try:
            await s.start(request.region, is_full_display=request.full_display)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return _status(s)

    @app.post("/stop")
    async def stop_recording() -> StopResponse:
        s: CaptureScheduler = app.state.scheduler
        pages = await s.stop()
        return StopResponse(pages=[PageSummary.from_page(p) for p in pages])

    @app.post("/pause")
    async def pause_recording() -> SessionStatus:
        s: CaptureScheduler = app.state.scheduler
        s.pause()
        return _status(s)

    @app.post("/resume")
    async def resume_recording() -> SessionStatus:
        s: CaptureScheduler = app.state.scheduler
        s.resume()
        return _status(s)

    @app.get("/pages")
    async def list_pages() -> list[PageSummary]:
        s: CaptureScheduler = app.state.scheduler
        return [PageSummary.from_page(p) for p in s.pages]

    return app


def main(settings: Settings | None = None) -> None:
    """Entry point for running the control endpoint standalone."""
    from screenpager.config.settings import load_settings
    from screenpager.utils.logging import setup_logging

    settings = settings or load_settings()
    setup_logging(settings.logging)
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.endpoint.host, port=settings.endpoint.port)


if __name__ == "__main__":
    main()
