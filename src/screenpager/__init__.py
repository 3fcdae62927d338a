"""screenpager -- periodic screen capture grouped into pages of text.

The package captures a screen region on a fixed cadence, decides whether
each new frame changed meaningfully, classifies the change (scroll, new
screen or noise), groups accepted frames into pages, and sends frames to
an interchangeable text-extraction provider.
"""

__version__ = "0.1.0"
