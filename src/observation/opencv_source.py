"""
cv2.VideoCapture frame source.

device_id picks the input: an int is a USB camera index, an rtsp:// or
rtsps:// URL is a network stream, any other string is a video file.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.frame import FrameData
from .base import ObservationSource, ObservationConfig
from .rtsp_utils import sanitize_url

RTSP_SCHEMES = ("rtsp://", "rtsps://")
MAX_BACKOFF_SECONDS = 10
# Live devices need a moment after open before the first read succeeds
WARMUP_SECONDS = 0.5


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Capture settings for OpenCVSource.

    rtsp_transport is handed to FFmpeg ("tcp" or "udp"). buffer_size and
    the requested resolution only apply to USB cameras. max_retries bounds
    both the open attempts and the reconnects after failed reads.
    """
    device_id: Union[int, str] = 0
    rtsp_transport: str = "tcp"
    buffer_size: int = 1
    max_retries: int = 3
    swap_rb: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False
    loop_file: bool = False

    @classmethod
    def from_camera_config(
        cls,
        camera_cfg: Dict[str, Any],
        source_id: str = "camera",
        device_id: Optional[Union[int, str]] = None,
    ) -> "OpenCVSourceConfig":
        """Build from the `camera` config section; device_id wins over the section's."""
        resolution = camera_cfg.get("resolution")
        return cls(
            source_id=source_id,
            resolution=tuple(resolution) if resolution else None,
            fps=camera_cfg.get("fps"),
            sensor_rotation=camera_cfg.get("sensor_rotation", 0) or 0,
            device_id=device_id if device_id is not None else camera_cfg.get("device_id", 0),
            rtsp_transport=camera_cfg.get("rtsp_transport", "tcp"),
            buffer_size=camera_cfg.get("buffer_size", 1),
            max_retries=camera_cfg.get("max_retries", 3),
            swap_rb=camera_cfg.get("swap_rb", False),
            flip_horizontal=camera_cfg.get("flip_horizontal", False),
            flip_vertical=camera_cfg.get("flip_vertical", False),
            loop_file=camera_cfg.get("loop_file", False),
        )


def flip_code(horizontal: bool, vertical: bool) -> Optional[int]:
    """cv2.flip code for the requested mirroring, or None for no flip."""
    if horizontal and vertical:
        return -1
    if horizontal:
        return 1
    if vertical:
        return 0
    return None


class OpenCVSource(ObservationSource):
    """Reads BGR frames from a camera, stream or file and reconnects live inputs."""

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._read_failures = 0

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_rtsp(self) -> bool:
        return isinstance(self.device_id, str) and self.device_id.startswith(RTSP_SCHEMES)

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and not self.is_rtsp and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return

        self._connect()
        self._is_open = True
        self._frame_index = 0
        self._read_failures = 0
        logging.info(
            f"Opened {self.source_id} on {sanitize_url(self.device_id)} "
            f"(requested {self._opencv_config.resolution})"
        )

    def _connect(self) -> None:
        """Open the capture, backing off between attempts up to max_retries."""
        attempts = max(1, self._opencv_config.max_retries)
        for attempt in range(attempts):
            if attempt:
                delay = min(2 ** attempt, MAX_BACKOFF_SECONDS)
                logging.info(f"Open attempt {attempt + 1}/{attempts} for {self.source_id} in {delay}s")
                time.sleep(delay)
            if self._try_open():
                return
            logging.warning(f"Could not open {sanitize_url(self.device_id)}")

        raise RuntimeError(f"Failed to open device {sanitize_url(self.device_id)} after {attempts} attempts")

    def _try_open(self) -> bool:
        self._release()
        if self.is_rtsp:
            os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = f"rtsp_transport;{self._opencv_config.rtsp_transport}"

        self._cap = cv2.VideoCapture(self.device_id)
        if not self._cap.isOpened():
            return False

        if isinstance(self.device_id, int):
            self._apply_capture_settings()
        if not self.is_file:
            time.sleep(WARMUP_SECONDS)
        return True

    def _apply_capture_settings(self) -> None:
        cfg = self._opencv_config
        if cfg.resolution:
            width, height = cfg.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if cfg.fps:
            self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)

        logging.info(
            f"{self.source_id} delivers "
            f"{int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))} "
            f"at {self._cap.get(cv2.CAP_PROP_FPS):.0f} fps"
        )

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None:
            frame = self._recover()
            if frame is None:
                return None

        self._read_failures = 0
        return self._next_frame(self._apply_transforms(frame), time.time())

    def _recover(self) -> Optional[np.ndarray]:
        """Rewind a looping file or reconnect a live input after a failed read."""
        self._read_failures += 1

        if self.is_file:
            if self._opencv_config.loop_file and self._read_failures == 1:
                self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                ret, frame = self._cap.read()
                if ret:
                    return frame
            logging.info(f"{self.source_id} reached the end of the file")
            return None

        if self._read_failures > self._opencv_config.max_retries:
            logging.error(f"{self.source_id} gave up after {self._read_failures} failed reads")
            return None

        logging.warning(f"{self.source_id} read failed ({self._read_failures}), reconnecting")
        try:
            self._connect()
        except RuntimeError as e:
            logging.error(f"Reconnect failed: {e}")
            return None
        ret, frame = self._cap.read()
        return frame if ret else None

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        """Mirror and swap channels. Rotation stays metadata."""
        cfg = self._opencv_config
        code = flip_code(cfg.flip_horizontal, cfg.flip_vertical)
        if code is not None:
            frame = cv2.flip(frame, code)
        if cfg.swap_rb:
            frame = np.ascontiguousarray(frame[..., ::-1])
        return frame

    def _release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def close(self) -> None:
        self._release()
        if self._is_open:
            logging.info(f"Closed {self.source_id}")
        self._is_open = False
