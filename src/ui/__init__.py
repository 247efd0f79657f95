"""
UI layer: main-thread task queue, display surfaces and result formatting.
"""

from .display import (
    DisplaySurface,
    HeadlessDisplay,
    OpenCVDisplay,
    TextView,
    WrongThreadError,
    create_display,
)
from .formatting import format_percent, format_results
from .main_thread import MainThreadExecutor

__all__ = [
    "DisplaySurface",
    "HeadlessDisplay",
    "OpenCVDisplay",
    "TextView",
    "WrongThreadError",
    "create_display",
    "format_percent",
    "format_results",
    "MainThreadExecutor",
]
