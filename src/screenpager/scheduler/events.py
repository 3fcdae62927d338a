"""Events emitted by the capture scheduler to the presentation layer.

Events are fire-and-forget: subscribers are called synchronously in
subscription order, and a subscriber that raises is logged and skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from screenpager.domain.models import ExtractionResult, RecordingState

logger = logging.getLogger(__name__)


class StateChangedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["state-changed"] = "state-changed"
    state: RecordingState
    capture_count: int = Field(default=0, ge=0)


class PageBoundaryEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["page-boundary"] = "page-boundary"
    event: Literal["new-page", "finalize-page"]
    page_id: str | None = None
    page_index: int | None = None


class ScreenshotCapturedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["screenshot-captured"] = "screenshot-captured"
    id: str
    timestamp: datetime
    image_data: str
    extracted_text: str | None = None
    is_scroll_up: bool = False
    page_id: str | None = None


class LegacyCaptureEvent(BaseModel):
    """Flat capture record kept for consumers that predate pages."""

    model_config = ConfigDict(frozen=True)

    type: Literal["legacy-capture"] = "legacy-capture"
    id: str
    timestamp: datetime
    image: str
    extraction_result: ExtractionResult | None = None


# Discriminated union of every event the scheduler emits
CaptureEvent = Annotated[
    Union[StateChangedEvent, PageBoundaryEvent, ScreenshotCapturedEvent, LegacyCaptureEvent],
    Field(discriminator="type"),
]

EventCallback = Callable[[BaseModel], None]


class EventEmitter:
    """Fans events out to subscribed callbacks."""

    def __init__(self) -> None:
        self._subscribers: list[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: BaseModel) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber failed on %s", getattr(event, "type", event))


class EventRecorder:
    """Subscriber that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[BaseModel] = []

    def __call__(self, event: BaseModel) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[BaseModel]:
        return [e for e in self.events if getattr(e, "type", None) == event_type]

    def clear(self) -> None:
        self.events.clear()
