"""
Camera use cases: Preview and ImageAnalysis.

The provider's capture thread hands every FrameData to each bound use case.
Preview forwards it to a display surface. ImageAnalysis converts it into an
analysis Frame and runs a single analyzer on a caller-supplied executor, one
frame at a time, applying the configured backpressure strategy.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor
from typing import Callable, Optional

import cv2
import numpy as np

from models.frame import (
    IMAGE_FORMAT_RGBA_8888,
    IMAGE_FORMAT_YUV_420_888,
    Frame,
    FrameData,
)
from .resolution import ResolutionSelector

STRATEGY_KEEP_ONLY_LATEST = "keep_only_latest"
STRATEGY_BLOCK_PRODUCER = "block_producer"
BACKPRESSURE_STRATEGIES = (STRATEGY_KEEP_ONLY_LATEST, STRATEGY_BLOCK_PRODUCER)

OUTPUT_IMAGE_FORMAT_RGBA_8888 = IMAGE_FORMAT_RGBA_8888
OUTPUT_IMAGE_FORMAT_YUV_420_888 = IMAGE_FORMAT_YUV_420_888

VALID_ROTATIONS = (0, 90, 180, 270)

Analyzer = Callable[[Frame], None]
SurfaceProvider = Callable[[np.ndarray], None]


def rotate_image(image: np.ndarray, degrees: int) -> np.ndarray:
    """Rotate clockwise by a multiple of 90 degrees."""
    degrees %= 360
    if degrees == 90:
        return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
    if degrees == 180:
        return cv2.rotate(image, cv2.ROTATE_180)
    if degrees == 270:
        return cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)
    return image


class UseCase:
    """Something the camera provider can bind frames to."""

    name = "use_case"

    def on_frame(self, frame_data: FrameData) -> None:
        raise NotImplementedError

    def on_unbind(self) -> None:
        pass


class Preview(UseCase):
    """Forwards upright BGR frames to a surface provider."""

    name = "preview"

    def __init__(self, target_rotation: int = 0):
        if target_rotation not in VALID_ROTATIONS:
            raise ValueError(f"target_rotation must be one of {VALID_ROTATIONS}")
        self.target_rotation = target_rotation
        self.surface_provider: Optional[SurfaceProvider] = None

    def on_frame(self, frame_data: FrameData) -> None:
        surface_provider = self.surface_provider
        if surface_provider is None:
            return
        degrees = (frame_data.sensor_rotation - self.target_rotation) % 360
        surface_provider(rotate_image(frame_data.frame, degrees))


class ImageAnalysis(UseCase):
    """
    Delivers analysis frames to one analyzer on a single lane.

    While the analyzer is busy:
    - STRATEGY_KEEP_ONLY_LATEST keeps a single pending frame; a newer frame
      replaces (and releases) the older one, which is never analyzed.
    - STRATEGY_BLOCK_PRODUCER makes the capture thread wait for the lane.

    Analyzers should close each frame. A frame still open when the analyzer
    returns is closed by the lane.
    """

    name = "image_analysis"

    def __init__(
        self,
        resolution_selector: Optional[ResolutionSelector] = None,
        target_rotation: int = 0,
        backpressure_strategy: str = STRATEGY_KEEP_ONLY_LATEST,
        output_image_format: str = OUTPUT_IMAGE_FORMAT_RGBA_8888,
        clock: Optional[Callable[[], int]] = None,
    ):
        if backpressure_strategy not in BACKPRESSURE_STRATEGIES:
            raise ValueError(f"Unknown backpressure strategy: {backpressure_strategy}")
        if output_image_format not in (OUTPUT_IMAGE_FORMAT_RGBA_8888, OUTPUT_IMAGE_FORMAT_YUV_420_888):
            raise ValueError(f"Unknown output image format: {output_image_format}")
        if target_rotation not in VALID_ROTATIONS:
            raise ValueError(f"target_rotation must be one of {VALID_ROTATIONS}")

        self.resolution_selector = resolution_selector
        self.target_rotation = target_rotation
        self.backpressure_strategy = backpressure_strategy
        self.output_image_format = output_image_format
        self._clock = clock or (lambda: int(time.monotonic() * 1000))

        self._cond = threading.Condition()
        self._executor: Optional[Executor] = None
        self._analyzer: Optional[Analyzer] = None
        self._busy = False
        self._pending: Optional[Frame] = None
        self._last_timestamp_ms = -1

        self.frames_delivered = 0
        self.frames_dropped = 0

    def set_analyzer(self, executor: Executor, analyzer: Analyzer) -> None:
        with self._cond:
            self._executor = executor
            self._analyzer = analyzer

    def clear_analyzer(self) -> None:
        with self._cond:
            self._executor = None
            self._analyzer = None
            pending, self._pending = self._pending, None
            self._cond.notify_all()
        if pending is not None:
            pending.close()

    @property
    def is_busy(self) -> bool:
        with self._cond:
            return self._busy

    def on_unbind(self) -> None:
        with self._cond:
            pending, self._pending = self._pending, None
            self._cond.notify_all()
        if pending is not None:
            pending.close()

    def on_frame(self, frame_data: FrameData) -> None:
        if self._analyzer is None:
            return

        frame: Optional[Frame] = self._to_frame(frame_data)
        dropped: Optional[Frame] = None

        with self._cond:
            if self._busy and self.backpressure_strategy == STRATEGY_BLOCK_PRODUCER:
                while self._busy and self._analyzer is not None:
                    self._cond.wait(timeout=0.5)

            if self._analyzer is None:
                dropped, frame = frame, None
            elif self._busy:
                dropped, self._pending = self._pending, frame
                frame = None
                if dropped is not None:
                    self.frames_dropped += 1
            else:
                self._busy = True
            executor, analyzer = self._executor, self._analyzer

        if dropped is not None:
            dropped.close()
        if frame is not None:
            self._dispatch(executor, analyzer, frame)

    def _dispatch(self, executor: Executor, analyzer: Analyzer, frame: Frame) -> None:
        try:
            executor.submit(self._analyze, analyzer, frame)
        except RuntimeError as e:
            # Executor already shut down
            logging.warning(f"Analysis executor rejected frame {frame.frame_index}: {e}")
            frame.close()
            with self._cond:
                self._busy = False
                pending, self._pending = self._pending, None
                self._cond.notify_all()
            if pending is not None:
                pending.close()

    def _analyze(self, analyzer: Analyzer, frame: Frame) -> None:
        current: Optional[Frame] = frame
        while current is not None:
            self.frames_delivered += 1
            try:
                analyzer(current)
            except Exception:
                logging.exception(f"Analyzer failed on frame {current.frame_index}")
            if not current.is_closed:
                logging.warning(f"Analyzer left frame {current.frame_index} open; closing it")
                current.close()

            stale: Optional[Frame] = None
            with self._cond:
                current, self._pending = self._pending, None
                if current is not None and self._analyzer is not analyzer:
                    stale, current = current, None
                if current is None:
                    self._busy = False
                    self._cond.notify_all()
            if stale is not None:
                stale.close()

    def _next_timestamp_ms(self) -> int:
        ts = max(self._clock(), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = ts
        return ts

    def _to_frame(self, frame_data: FrameData) -> Frame:
        image = frame_data.frame
        if self.resolution_selector is not None:
            image = self.resolution_selector.apply(image)

        if self.output_image_format == OUTPUT_IMAGE_FORMAT_YUV_420_888:
            h, w = image.shape[:2]
            image = image[: h - (h % 2), : w - (w % 2)]
            buffer = cv2.cvtColor(image, cv2.COLOR_BGR2YUV_I420)
        else:
            buffer = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)

        height, width = image.shape[:2]
        return Frame(
            buffer,
            width=width,
            height=height,
            image_format=self.output_image_format,
            rotation_degrees=(frame_data.sensor_rotation - self.target_rotation) % 360,
            timestamp_ms=self._next_timestamp_ms(),
            frame_index=frame_data.frame_index,
        )
