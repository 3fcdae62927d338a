"""Capture scheduling for screenpager.

Public API:
    CaptureScheduler -- Owns the session and the capture cadence
    EventEmitter -- Fans scheduler events out to subscribers
    EventRecorder -- In-memory event subscriber
"""

from screenpager.scheduler.events import (
    CaptureEvent,
    EventEmitter,
    EventRecorder,
    LegacyCaptureEvent,
    PageBoundaryEvent,
    ScreenshotCapturedEvent,
    StateChangedEvent,
)
from screenpager.scheduler.loop import (
    AlreadyRecording,
    CaptureScheduler,
    NotRecording,
    RepeatingTask,
    SessionError,
)

__all__ = [
    "AlreadyRecording",
    "CaptureEvent",
    "CaptureScheduler",
    "EventEmitter",
    "EventRecorder",
    "LegacyCaptureEvent",
    "NotRecording",
    "PageBoundaryEvent",
    "RepeatingTask",
    "ScreenshotCapturedEvent",
    "SessionError",
    "StateChangedEvent",
]
