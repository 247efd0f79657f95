"""
Frame source contract used by the camera provider.

A source hands out raw BGR captures as FrameData. The provider owns the
read loop, so sources only need open/read/close.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Settings shared by every frame source.

    Attributes:
        source_id: Name stamped on each FrameData (e.g. "back-camera").
        resolution: Requested (width, height); None keeps the device default.
        fps: Requested frame rate; None keeps the device default.
        sensor_rotation: Clockwise degrees that bring the sensor image upright.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    sensor_rotation: int = 0


class ObservationSource(ABC):
    """
    A camera, stream or file that yields FrameData.

    read() returns None when no frame is available; the provider decides
    whether that ends the capture. Frame indexes restart at 1 after open().
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def sensor_rotation(self) -> int:
        return self._config.sensor_rotation

    def _next_frame(self, frame, timestamp: float) -> FrameData:
        """Stamp a captured array with this source's index and rotation."""
        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=timestamp,
            frame_index=self._frame_index,
            source=self.source_id,
            sensor_rotation=self.sensor_rotation,
        )

    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Raises RuntimeError when it cannot be opened."""

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Next frame, or None when nothing could be read."""

    @abstractmethod
    def close(self) -> None:
        """Release the device. Calling it twice is harmless."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
