"""Tests for scheduler events and the emitter."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import TypeAdapter, ValidationError

from screenpager.domain.models import RecordingState
from screenpager.scheduler.events import (
    CaptureEvent,
    EventEmitter,
    EventRecorder,
    PageBoundaryEvent,
    ScreenshotCapturedEvent,
    StateChangedEvent,
)


class TestEventEmitter:

    def test_delivers_in_subscription_order(self) -> None:
        emitter = EventEmitter()
        seen: list[str] = []
        emitter.subscribe(lambda e: seen.append("a"))
        emitter.subscribe(lambda e: seen.append("b"))
        emitter.emit(StateChangedEvent(state=RecordingState.RECORDING))
        assert seen == ["a", "b"]

    def test_unsubscribe(self) -> None:
        emitter = EventEmitter()
        recorder = EventRecorder()
        unsubscribe = emitter.subscribe(recorder)
        unsubscribe()
        unsubscribe()
        emitter.emit(StateChangedEvent(state=RecordingState.IDLE))
        assert recorder.events == []

    def test_failing_subscriber_is_skipped(self) -> None:
        emitter = EventEmitter()
        recorder = EventRecorder()

        def broken(event) -> None:
            raise RuntimeError("boom")

        emitter.subscribe(broken)
        emitter.subscribe(recorder)
        emitter.emit(PageBoundaryEvent(event="new-page", page_index=1))
        assert len(recorder.events) == 1

    def test_recorder_filters_by_type(self) -> None:
        recorder = EventRecorder()
        recorder(StateChangedEvent(state=RecordingState.RECORDING))
        recorder(PageBoundaryEvent(event="new-page"))
        assert len(recorder.of_type("page-boundary")) == 1
        recorder.clear()
        assert recorder.events == []


class TestEventModels:

    def test_union_dispatches_on_type(self) -> None:
        adapter = TypeAdapter(CaptureEvent)
        event = adapter.validate_python(
            {
                "type": "screenshot-captured",
                "id": "shot-1",
                "timestamp": datetime(2025, 1, 1).isoformat(),
                "image_data": "data:image/png;base64,AAAA",
                "is_scroll_up": True,
            }
        )
        assert isinstance(event, ScreenshotCapturedEvent)
        assert event.extracted_text is None

    def test_page_boundary_rejects_unknown_event(self) -> None:
        with pytest.raises(ValidationError):
            PageBoundaryEvent(event="rewind")

    def test_events_are_frozen(self) -> None:
        event = StateChangedEvent(state=RecordingState.PAUSED, capture_count=3)
        with pytest.raises(ValidationError):
            event.capture_count = 4  # type: ignore[misc]
