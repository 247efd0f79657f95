"""
Display surfaces.

A display has two text fields (ranked labels and inference time), a toast
area and the latest preview frame. Text fields and toasts belong to the UI
thread; preview frames may be pushed from the capture thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

import cv2
import numpy as np

from models.config import DisplayConfig

COLOR_TEXT = (255, 255, 255)
COLOR_PANEL = (0, 0, 0)
COLOR_TOAST = (50, 50, 50)


class WrongThreadError(RuntimeError):
    """Raised when a view is modified from a thread that does not own it."""


class TextView:
    """A text field that may only be written from its owning thread."""

    def __init__(self, name: str, is_owner_thread: Callable[[], bool]):
        self.name = name
        self._is_owner_thread = is_owner_thread
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        if not self._is_owner_thread():
            raise WrongThreadError(
                f"{self.name} can only be modified from the thread that created it"
            )
        self._text = value


@dataclass
class Toast:
    message: str
    expires_at: float


class DisplaySurface:
    """Base display: holds view state, renders nothing."""

    def __init__(
        self,
        is_ui_thread: Callable[[], bool],
        config: Optional[DisplayConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or DisplayConfig()
        self._is_ui_thread = is_ui_thread
        self._clock = clock
        self.tv_result = TextView("tv_result", is_ui_thread)
        self.tv_inference_time = TextView("tv_inference_time", is_ui_thread)
        self._toasts: Deque[Toast] = deque(maxlen=5)
        self._preview_lock = threading.Lock()
        self._preview_frame: Optional[np.ndarray] = None
        self._released = False

    @property
    def is_released(self) -> bool:
        return self._released

    def set_preview_frame(self, image: np.ndarray) -> None:
        """Surface provider for the Preview use case. Safe from any thread."""
        with self._preview_lock:
            self._preview_frame = image

    def get_preview_frame(self) -> Optional[np.ndarray]:
        with self._preview_lock:
            return self._preview_frame

    def show_toast(self, message: str, duration: Optional[float] = None) -> None:
        if not self._is_ui_thread():
            raise WrongThreadError("Toasts can only be shown from the UI thread")
        duration = self.config.toast_duration if duration is None else duration
        self._toasts.append(Toast(message, self._clock() + duration))

    def active_toasts(self) -> List[str]:
        now = self._clock()
        while self._toasts and self._toasts[0].expires_at <= now:
            self._toasts.popleft()
        return [t.message for t in self._toasts if t.expires_at > now]

    def hide_system_ui(self) -> None:
        pass

    def release(self) -> None:
        """Mark the surface torn down. Callers must not write to it afterwards."""
        self._released = True
        with self._preview_lock:
            self._preview_frame = None

    def render(self) -> Optional[int]:
        """Draw one frame of UI. Returns a pressed key code, if any."""
        return None

    def close(self) -> None:
        self.release()


class HeadlessDisplay(DisplaySurface):
    """Logs text changes instead of drawing a window."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._last_logged = ("", "")

    def show_toast(self, message: str, duration: Optional[float] = None) -> None:
        super().show_toast(message, duration)
        logging.warning(f"[toast] {message}")

    def render(self) -> Optional[int]:
        current = (self.tv_result.text, self.tv_inference_time.text)
        if current != self._last_logged:
            self._last_logged = current
            if current[0]:
                logging.info(f"{current[0].replace(chr(10), ', ')} ({current[1]})")
        return None


class OpenCVDisplay(DisplaySurface):
    """Preview window with the result overlay, drawn with OpenCV HighGUI."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._window_created = False

    def hide_system_ui(self) -> None:
        self._ensure_window()
        if self.config.fullscreen:
            cv2.setWindowProperty(
                self.config.window_name, cv2.WND_PROP_FULLSCREEN, cv2.WINDOW_FULLSCREEN
            )

    def _ensure_window(self) -> None:
        if not self._window_created:
            cv2.namedWindow(self.config.window_name, cv2.WINDOW_NORMAL)
            self._window_created = True

    def render(self) -> Optional[int]:
        self._ensure_window()
        frame = self.get_preview_frame()
        if frame is None:
            canvas = np.zeros((480, 640, 3), dtype=np.uint8)
        else:
            canvas = frame.copy()

        self._draw_text_block(canvas, self.tv_result.text.split("\n"), anchor="bottom-left")
        if self.tv_inference_time.text:
            self._draw_text_block(canvas, [self.tv_inference_time.text], anchor="top-right")
        toasts = self.active_toasts()
        if toasts:
            self._draw_text_block(canvas, toasts[-1:], anchor="center", color=COLOR_TOAST)

        cv2.imshow(self.config.window_name, canvas)
        key = cv2.waitKey(1) & 0xFF
        return None if key == 0xFF else key

    def _draw_text_block(
        self,
        canvas: np.ndarray,
        lines: List[str],
        anchor: str,
        color=COLOR_PANEL,
    ) -> None:
        lines = [line for line in lines if line]
        if not lines:
            return

        font = cv2.FONT_HERSHEY_SIMPLEX
        scale, thickness, pad = 0.7, 2, 8
        sizes = [cv2.getTextSize(line, font, scale, thickness)[0] for line in lines]
        line_h = max(h for _, h in sizes) + pad
        block_w = max(w for w, _ in sizes) + 2 * pad
        block_h = line_h * len(lines) + pad

        h, w = canvas.shape[:2]
        if anchor == "top-right":
            x0, y0 = w - block_w - pad, pad
        elif anchor == "center":
            x0, y0 = (w - block_w) // 2, h - block_h - 4 * line_h
        else:
            x0, y0 = pad, h - block_h - pad

        cv2.rectangle(canvas, (x0, y0), (x0 + block_w, y0 + block_h), color, -1)
        for i, line in enumerate(lines):
            cv2.putText(canvas, line, (x0 + pad, y0 + line_h * (i + 1)), font, scale, COLOR_TEXT, thickness)

    def close(self) -> None:
        super().close()
        if self._window_created:
            cv2.destroyWindow(self.config.window_name)
            self._window_created = False


def create_display(is_ui_thread: Callable[[], bool], config: DisplayConfig) -> DisplaySurface:
    if config.headless:
        return HeadlessDisplay(is_ui_thread, config)
    return OpenCVDisplay(is_ui_thread, config)
