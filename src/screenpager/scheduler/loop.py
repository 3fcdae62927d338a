"""The capture scheduler that orchestrates the entire pipeline.

Ties together frame acquisition, change detection, direction
classification, page segmentation and text extraction, and reports
what happened to the presentation layer through events.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import uuid
from typing import Callable

from screenpager.capture.base import CaptureFailed, FrameSource
from screenpager.config.settings import Settings
from screenpager.detection.change import ChangeDetector
from screenpager.detection.direction import DirectionClassifier
from screenpager.domain.models import (
    CaptureSession,
    ChangeDirection,
    ExtractionResult,
    Frame,
    Page,
    RecordingState,
    Region,
    Screenshot,
    ScrollDirection,
)
from screenpager.extraction.dispatcher import ExtractionDispatcher
from screenpager.pages.segmenter import PageSegmenter
from screenpager.scheduler.events import (
    EventEmitter,
    LegacyCaptureEvent,
    PageBoundaryEvent,
    ScreenshotCapturedEvent,
    StateChangedEvent,
)
from screenpager.utils.imaging import numpy_to_data_url

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0


class RepeatingTask:
    """Calls ``callback`` every ``interval`` seconds until cancelled.

    Ticks stay on a grid anchored at ``start()``; slots missed while the
    event loop was busy are skipped rather than fired in a burst.
    """

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._interval = interval
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            now = loop.time()
            missed = math.floor((now - next_tick) / self._interval)
            next_tick += self._interval * (max(0, missed) + 1)
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduled callback failed")


class CaptureScheduler:
    """Owns the capture session and runs the capture-and-process sequence.

    Coordinates: capture -> classify -> segment -> extract -> emit

    Ticks are spawned as separate tasks so slow extraction never holds up
    the timer; a lock serialises the sequences so every comparison is made
    against the most recently completed decision.

    With ``interval=None`` no timer is armed and the caller drives the
    sequence through ``capture_once``.
    """

    def __init__(
        self,
        source: FrameSource,
        dispatcher: ExtractionDispatcher,
        emitter: EventEmitter | None = None,
        change_detector: ChangeDetector | None = None,
        direction_classifier: DirectionClassifier | None = None,
        interval: float | None = DEFAULT_INTERVAL,
    ) -> None:
        self._source = source
        self._dispatcher = dispatcher
        self._emitter = emitter or EventEmitter()
        self._detector = change_detector or ChangeDetector()
        self._classifier = direction_classifier or DirectionClassifier()
        self._interval = interval

        self._region: Region | None = None
        self._is_full_display = False
        self._session: CaptureSession | None = None
        self._last_session: CaptureSession | None = None
        self._segmenter = PageSegmenter()
        self._timer: RepeatingTask | None = None
        self._lock = asyncio.Lock()
        self._ticks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        source: FrameSource,
        dispatcher: ExtractionDispatcher | None = None,
        emitter: EventEmitter | None = None,
        timed: bool = True,
    ) -> CaptureScheduler:
        """Build a scheduler with detectors configured from settings.

        Pass ``timed=False`` to leave the timer unarmed.
        """
        det = settings.detection
        scheduler = cls(
            source=source,
            dispatcher=dispatcher or ExtractionDispatcher(settings),
            emitter=emitter,
            change_detector=ChangeDetector(
                threshold=settings.capture.change_threshold,
                compare_size=det.compare_size,
                pixel_tolerance=det.pixel_tolerance,
            ),
            direction_classifier=DirectionClassifier(
                sample_rate=det.band_sample_rate, tolerance=det.band_tolerance
            ),
            interval=settings.capture.interval_ms / 1000.0 if timed else None,
        )
        scheduler._region = settings.capture.region
        scheduler._is_full_display = settings.capture.full_display
        return scheduler

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def emitter(self) -> EventEmitter:
        return self._emitter

    @property
    def dispatcher(self) -> ExtractionDispatcher:
        return self._dispatcher

    @property
    def session(self) -> CaptureSession | None:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    @property
    def state(self) -> RecordingState:
        return self._session.state if self._session else RecordingState.IDLE

    @property
    def capture_count(self) -> int:
        """Captures of the current session, or of the last one after stop."""
        session = self._session or self._last_session
        return session.capture_count if session else 0

    @property
    def region(self) -> Region | None:
        return self._region

    @property
    def pages(self) -> list[Page]:
        """Pages of the current session, or of the last one after stop."""
        return self._segmenter.pages

    @property
    def active_page(self) -> Page | None:
        return self._segmenter.active_page

    def set_region(self, region: Region | None, is_full_display: bool = False) -> None:
        """Replace the capture region. Only allowed while not recording."""
        if self._session is not None:
            raise AlreadyRecording("Cannot change the region while recording")
        self._region = region
        self._is_full_display = is_full_display

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(
        self, region: Region | None = None, is_full_display: bool | None = None
    ) -> CaptureSession:
        """Start a session and perform the first capture immediately.

        Raises:
            AlreadyRecording: If a session is active.
            ValueError: If no region is known and full display is off.
        """
        if self._session is not None:
            raise AlreadyRecording("Recording is already in progress")
        if region is not None or is_full_display is not None:
            self.set_region(region or self._region, bool(is_full_display))
        if self._region is None and not self._is_full_display:
            raise ValueError("A capture region is required unless capturing the full display")

        if not self._source.is_open:
            await self._source.open()

        session = CaptureSession(
            session_id=uuid.uuid4().hex,
            region=self._region,
            is_full_display=self._is_full_display,
        )
        self._session = self._last_session = session
        self._segmenter = PageSegmenter()
        logger.info(
            "Recording started (session=%s, region=%s, full_display=%s, interval=%s)",
            session.session_id[:8], session.region, session.is_full_display,
            f"{self._interval:.1f}s" if self._interval else "manual",
        )

        self._emit_state(session)
        page = self._segmenter.start_recording()
        self._emitter.emit(
            PageBoundaryEvent(event="new-page", page_id=page.id, page_index=page.index)
        )

        if self._interval is not None:
            self._timer = RepeatingTask(self._interval, self._schedule_tick)
            self._timer.start()

        await self.capture_once()
        return session

    async def stop(self) -> list[Page]:
        """Stop the session and return its pages.

        In-flight ticks are not awaited; their results are discarded.

        Raises:
            NotRecording: If no session is active.
        """
        session = self._require_session()
        self._session = None
        session.is_recording = False
        session.is_paused = False

        if self._timer is not None:
            await self._timer.cancel()
            self._timer = None

        closed = self._segmenter.stop_recording()
        if closed is not None:
            self._emitter.emit(
                PageBoundaryEvent(event="finalize-page", page_id=closed.id, page_index=closed.index)
            )

        session.last_frame = None
        logger.info(
            "Recording stopped (session=%s, %d captures, %d pages)",
            session.session_id[:8], session.capture_count, len(self._segmenter.pages),
        )
        self._emitter.emit(
            StateChangedEvent(state=RecordingState.IDLE, capture_count=session.capture_count)
        )
        return self._segmenter.pages

    def pause(self) -> None:
        """Skip capture work on subsequent ticks. The timer keeps running.

        Raises:
            NotRecording: If no session is active.
        """
        session = self._require_session()
        session.is_paused = True
        logger.info("Recording paused")
        self._emit_state(session)

    def resume(self) -> None:
        """Resume capture work from the next tick.

        Raises:
            NotRecording: If no session is active.
        """
        session = self._require_session()
        session.is_paused = False
        logger.info("Recording resumed")
        self._emit_state(session)

    async def capture_once(self) -> bool:
        """Run one capture-and-process sequence now.

        Returns:
            True if the frame was accepted.

        Raises:
            NotRecording: If no session is active.
        """
        session = self._require_session()
        async with self._lock:
            if self._session is not session:
                return False
            return await self._capture_and_process(session)

    async def wait_idle(self) -> None:
        """Wait for every spawned tick to finish."""
        while self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)

    async def close(self) -> None:
        """Stop any session, drain ticks and release the extraction provider."""
        if self._session is not None:
            await self.stop()
        await self.wait_idle()
        await self._dispatcher.close()

    # ------------------------------------------------------------------
    # Tick handling
    # ------------------------------------------------------------------

    def _schedule_tick(self) -> None:
        session = self._session
        if session is None:
            return
        if session.is_paused:
            logger.debug("Tick skipped, recording paused")
            return
        task = asyncio.create_task(self._tick(session))
        self._ticks.add(task)
        task.add_done_callback(self._ticks.discard)

    async def _tick(self, session: CaptureSession) -> None:
        async with self._lock:
            if self._session is not session or session.is_paused:
                return
            await self._capture_and_process(session)

    async def _capture_and_process(self, session: CaptureSession) -> bool:
        region = None if session.is_full_display else session.region
        try:
            frame = await self._source.capture_frame(region)
        except CaptureFailed as e:
            logger.warning("Capture failed, skipping tick: %s", e)
            return False
        except Exception:
            logger.exception("Unexpected error while capturing")
            return False

        try:
            return await self._process_frame(session, frame)
        except Exception:
            logger.exception("Error processing frame %d", frame.frame_number)
            return False

    async def _process_frame(self, session: CaptureSession, frame: Frame) -> bool:
        if session.is_first_capture or session.last_frame is None:
            logger.info("First capture, initializing (frame %d)", frame.frame_number)
            session.last_frame = frame
            session.capture_count += 1
            session.is_first_capture = False
            page = self._segmenter.active_page
            await self._accept(session, frame, page.id if page else None, extract=True)
            return True

        # Both comparisons use the previous accepted frame
        direction = self._classifier.classify(session.last_frame, frame)
        change = self._detector.compare(session.last_frame, frame)

        if not change.changed and direction.direction is ChangeDirection.NONE:
            logger.debug(
                "No significant change (%.2f%% pixels), skipping frame %d",
                change.ratio * 100, frame.frame_number,
            )
            return False

        session.last_frame = frame
        session.capture_count += 1

        if direction.is_boundary:
            closed, opened = self._segmenter.new_screen_boundary()
            logger.info(
                "New screen detected (%s, confidence %.2f), starting page %d",
                direction.direction.value, direction.confidence, opened.index,
            )
            if closed is not None:
                self._emitter.emit(
                    PageBoundaryEvent(
                        event="finalize-page", page_id=closed.id, page_index=closed.index
                    )
                )
            self._emitter.emit(
                PageBoundaryEvent(event="new-page", page_id=opened.id, page_index=opened.index)
            )
            await self._accept(session, frame, opened.id, extract=True)
            return True

        page = self._segmenter.active_page
        page_id = page.id if page else None

        if (
            direction.direction is ChangeDirection.VERTICAL
            and direction.scroll_direction is ScrollDirection.UP
        ):
            # Upward scroll revisits content that was already extracted
            logger.info("Scrolled up, capturing frame %d without extraction", frame.frame_number)
            await self._accept(session, frame, page_id, extract=False, is_scroll_up=True)
        elif direction.direction is ChangeDirection.VERTICAL:
            logger.info("Scrolled down, capturing frame %d", frame.frame_number)
            await self._accept(session, frame, page_id, extract=True)
        else:
            logger.info(
                "Change detected (%.2f%% pixels), capturing frame %d",
                change.ratio * 100, frame.frame_number,
            )
            await self._accept(session, frame, page_id, extract=True)
        return True

    async def _accept(
        self,
        session: CaptureSession,
        frame: Frame,
        page_id: str | None,
        extract: bool,
        is_scroll_up: bool = False,
    ) -> None:
        """Extract (optionally), append to the page and emit events."""
        image_data = numpy_to_data_url(frame.image)

        result: ExtractionResult | None = None
        if extract:
            result = await self._dispatcher.extract(frame.image)
            if self._session is not session:
                logger.info(
                    "Session %s ended during extraction, discarding frame %d",
                    session.session_id[:8], frame.frame_number,
                )
                return

        screenshot = Screenshot(
            id=f"shot-{uuid.uuid4().hex[:12]}",
            timestamp=frame.timestamp,
            image_data=image_data,
            extracted_text=result.text if result is not None else None,
            is_scroll_up=is_scroll_up,
        )
        page = self._segmenter.append_screenshot(screenshot, page_id=page_id)
        if page is None:
            return

        self._emitter.emit(
            ScreenshotCapturedEvent(
                id=screenshot.id,
                timestamp=screenshot.timestamp,
                image_data=screenshot.image_data,
                extracted_text=screenshot.extracted_text,
                is_scroll_up=screenshot.is_scroll_up,
                page_id=page.id,
            )
        )
        self._emitter.emit(
            LegacyCaptureEvent(
                id=screenshot.id,
                timestamp=screenshot.timestamp,
                image=screenshot.image_data,
                extraction_result=result,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> CaptureSession:
        if self._session is None:
            raise NotRecording("No recording is in progress")
        return self._session

    def _emit_state(self, session: CaptureSession) -> None:
        self._emitter.emit(
            StateChangedEvent(state=session.state, capture_count=session.capture_count)
        )


class SessionError(Exception):
    """Raised when a session command is used in the wrong state."""


class AlreadyRecording(SessionError):
    """Raised by start() while a session is active."""


class NotRecording(SessionError):
    """Raised by stop/pause/resume when no session is active."""
