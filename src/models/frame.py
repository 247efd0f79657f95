"""
Frame models.

FrameData is the raw BGR capture produced by an observation source.
Frame is the analysis image handed to an analyzer; it owns a single packed
pixel buffer and must be closed exactly once so the analysis lane can move on.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

IMAGE_FORMAT_RGBA_8888 = "rgba_8888"
IMAGE_FORMAT_YUV_420_888 = "yuv_420_888"

IMAGE_FORMATS = (IMAGE_FORMAT_RGBA_8888, IMAGE_FORMAT_YUV_420_888)


@dataclass
class FrameData:
    """
    Metadata and payload for a captured video frame.

    Attributes:
        frame: The raw frame data as a numpy array (BGR format).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when frame was captured.
        frame_index: Sequential frame number since start.
        source: Identifier for the camera/video source.
        sensor_rotation: Clockwise rotation (degrees) needed to bring the
            sensor image upright. Reported as metadata, not applied.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None
    sensor_rotation: int = 0

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
        sensor_rotation: int = 0,
    ) -> "FrameData":
        """Create FrameData from a numpy array."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
            sensor_rotation=sensor_rotation,
        )

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Return (height, width, channels)."""
        return self.frame.shape

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)


class Frame:
    """
    A single analysis image delivered to an analyzer.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        image_format: Layout of `buffer` (RGBA_8888 packed, or YUV_420_888 as I420).
        rotation_degrees: Clockwise rotation to apply before inference.
        timestamp_ms: Monotonic capture time in milliseconds.
        frame_index: Sequential frame number since the camera was bound.

    The frame is released with close(). Only the first call releases; later
    calls are no-ops. The buffer is unavailable once released.
    """

    def __init__(
        self,
        buffer: np.ndarray,
        width: int,
        height: int,
        image_format: str = IMAGE_FORMAT_RGBA_8888,
        rotation_degrees: int = 0,
        timestamp_ms: int = 0,
        frame_index: int = 0,
        on_close: Optional[Callable[["Frame"], None]] = None,
    ):
        self.width = width
        self.height = height
        self.image_format = image_format
        self.rotation_degrees = rotation_degrees
        self.timestamp_ms = timestamp_ms
        self.frame_index = frame_index
        self._buffer: Optional[np.ndarray] = buffer
        self._on_close = on_close
        self._closed = False
        self._lock = threading.Lock()

    @property
    def buffer(self) -> np.ndarray:
        if self._buffer is None:
            raise ValueError(f"Frame {self.frame_index} has already been closed")
        return self._buffer

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the frame back to the lane that produced it."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._buffer = None
        if self._on_close is not None:
            try:
                self._on_close(self)
            except Exception as e:
                logging.warning(f"Frame close callback failed: {e}")

    def __enter__(self) -> "Frame":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Frame(index={self.frame_index}, size={self.width}x{self.height}, "
            f"format={self.image_format}, rotation={self.rotation_degrees}, "
            f"closed={self._closed})"
        )
