"""
Image classifier helper.

Owns the classifier engine handle, converts analysis frames into RGBA
bitmaps, submits them and relays ranked results plus inference time to a
listener. Failures never propagate to the caller: they are logged and
reported through ClassifierListener.on_error.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable, List, Optional, Protocol

import cv2
import numpy as np

from models.classification import ClassificationResult, Classifications
from models.config import ClassifierConfig
from models.frame import IMAGE_FORMAT_YUV_420_888, Frame
from .backend import ClassifierEngine, EngineFactory, EngineOptions, RunningMode

IMAGE_CLASSIFIER_FAILED = "Image classifier failed to initialize. See error logs for details"


class ClassifierListener(Protocol):
    def on_error(self, error: str) -> None:
        ...

    def on_results(self, results: Optional[List[Classifications]], inference_time: int) -> None:
        ...


def _uptime_millis() -> int:
    return int(time.monotonic() * 1000)


def _default_engine_factory(options: EngineOptions) -> ClassifierEngine:
    try:
        from .mediapipe_engine import create_mediapipe_engine
    except ImportError as e:  # pragma: no cover
        raise ImportError(
            "MediaPipe is not installed. Install with `pip install mediapipe`."
        ) from e
    return create_mediapipe_engine(options)


class ImageClassifierHelper:
    """
    Adapter between analysis frames and the classifier engine.

    The engine handle is created in the constructor and, after a failure,
    lazily on the next classify_image() call. Creation and submission share
    one lock so a re-configure can never interleave with a submission.
    """

    def __init__(
        self,
        threshold: float = 0.1,
        max_results: int = 3,
        model_name: str = "mobilenet_v1.tflite",
        running_mode: RunningMode = RunningMode.LIVE_STREAM,
        classifier_listener: Optional[ClassifierListener] = None,
        assets_dir: Optional[str] = None,
        engine_factory: Optional[EngineFactory] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.threshold = threshold
        self.max_results = max_results
        self.model_name = model_name
        self.running_mode = RunningMode(running_mode)
        self.classifier_listener = classifier_listener
        self.assets_dir = assets_dir
        self._engine_factory = engine_factory or _default_engine_factory
        self._clock = clock or _uptime_millis
        self._lock = threading.RLock()
        self._image_classifier: Optional[ClassifierEngine] = None
        self._last_timestamp_ms = -1

        self.setup_image_classifier()

    @classmethod
    def from_config(
        cls,
        cfg: ClassifierConfig,
        classifier_listener: Optional[ClassifierListener] = None,
        **kwargs,
    ) -> "ImageClassifierHelper":
        return cls(
            threshold=cfg.threshold,
            max_results=cfg.max_results,
            model_name=cfg.model_name,
            running_mode=RunningMode(cfg.running_mode),
            classifier_listener=classifier_listener,
            assets_dir=cfg.assets_dir,
            **kwargs,
        )

    @property
    def model_asset_path(self) -> str:
        if self.assets_dir and not os.path.isabs(self.model_name):
            return os.path.join(self.assets_dir, self.model_name)
        return self.model_name

    def is_closed(self) -> bool:
        with self._lock:
            return self._image_classifier is None

    def setup_image_classifier(self) -> None:
        """
        Create the engine handle, replacing and closing any existing one.

        On failure the listener is told and the handle stays unset.
        """
        live = self.running_mode == RunningMode.LIVE_STREAM
        options = EngineOptions(
            model_asset_path=self.model_asset_path,
            score_threshold=self.threshold,
            max_results=self.max_results,
            running_mode=self.running_mode,
            result_listener=self._return_live_stream_result if live else None,
            error_listener=self._return_live_stream_error if live else None,
        )

        with self._lock:
            previous, self._image_classifier = self._image_classifier, None
            self._close_handle(previous)
            try:
                self._image_classifier = self._engine_factory(options)
            except Exception as e:
                logging.error(f"Image classifier failed to load {options.model_asset_path}: {e}")
                self._notify_error(IMAGE_CLASSIFIER_FAILED)

    def clear_image_classifier(self) -> None:
        with self._lock:
            classifier, self._image_classifier = self._image_classifier, None
        self._close_handle(classifier)

    @staticmethod
    def _close_handle(classifier: Optional[ClassifierEngine]) -> None:
        if classifier is None:
            return
        try:
            classifier.close()
        except Exception as e:
            logging.warning(f"Error closing image classifier: {e}")

    def classify_image(self, frame: Frame) -> None:
        """
        Convert and submit one frame. The frame is always released.

        In live-stream mode results arrive later through the engine callback;
        in image and video modes they are relayed before this returns.
        """
        result: Optional[ClassificationResult] = None
        submitted_at = 0
        try:
            with self._lock:
                if self._image_classifier is None:
                    self.setup_image_classifier()
                classifier = self._image_classifier
                if classifier is None:
                    return

                rotation = frame.rotation_degrees
                bitmap = self.to_bitmap(frame)
                submitted_at = self._next_timestamp_ms()

                if self.running_mode == RunningMode.LIVE_STREAM:
                    classifier.classify_async(bitmap, rotation, submitted_at)
                elif self.running_mode == RunningMode.VIDEO:
                    result = classifier.classify_for_video(bitmap, rotation, submitted_at)
                else:
                    result = classifier.classify(bitmap, rotation)
        except Exception as e:
            logging.exception("Error during classification")
            self._notify_error(f"Error during classification: {e}")
        finally:
            frame.close()

        if result is not None:
            self._notify_results(result.classifications, self._clock() - submitted_at)

    @staticmethod
    def to_bitmap(frame: Frame) -> np.ndarray:
        """Copy the frame's pixels into a new RGBA bitmap and release the frame."""
        with frame:
            if frame.image_format == IMAGE_FORMAT_YUV_420_888:
                return cv2.cvtColor(frame.buffer, cv2.COLOR_YUV2RGBA_I420)
            bitmap = np.empty((frame.height, frame.width, 4), dtype=np.uint8)
            np.copyto(bitmap, frame.buffer.reshape(frame.height, frame.width, 4))
            return bitmap

    def _next_timestamp_ms(self) -> int:
        # Live stream engines reject non-increasing timestamps
        ts = max(self._clock(), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = ts
        return ts

    def _return_live_stream_result(self, result: ClassificationResult) -> None:
        finish_time_ms = self._clock()
        inference_time = finish_time_ms - result.timestamp_ms
        self._notify_results(result.classifications, inference_time)

    def _return_live_stream_error(self, error: Exception) -> None:
        logging.error(f"Image classifier engine error: {error}")
        self._notify_error(str(error))

    def _notify_results(self, results: Optional[List[Classifications]], inference_time: int) -> None:
        if self.classifier_listener is not None:
            self.classifier_listener.on_results(results, inference_time)

    def _notify_error(self, error: str) -> None:
        if self.classifier_listener is not None:
            self.classifier_listener.on_error(error)
