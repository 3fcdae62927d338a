"""Frame capture module for screenpager.

Provides screen-region frame acquisition. The abstract base class allows
alternative sources (live screen capture, file-based replay) behind one
interface.

Public API:
    FrameSource -- Abstract base class
    CaptureFailed -- Raised when a frame cannot be acquired
    ScreenCapture -- mss desktop implementation
    ImageSequenceCapture -- Replays image files
"""

from screenpager.capture.base import CaptureFailed, FrameSource
from screenpager.capture.files import ImageSequenceCapture

__all__ = ["CaptureFailed", "FrameSource", "ImageSequenceCapture", "ScreenCapture"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "ScreenCapture":
        from screenpager.capture.screen import ScreenCapture
        return ScreenCapture
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
