"""
MediaPipe Tasks image classifier engine.

Wraps mp.tasks.vision.ImageClassifier. In live-stream mode MediaPipe runs
inference on its own thread and calls back with the result and the
submission timestamp.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import mediapipe as mp
import numpy as np
from mediapipe.tasks.python.vision.core.image_processing_options import ImageProcessingOptions

from models.classification import ClassificationResult
from .backend import ClassifierEngine, EngineOptions, RunningMode

_RUNNING_MODES = {
    RunningMode.IMAGE: mp.tasks.vision.RunningMode.IMAGE,
    RunningMode.VIDEO: mp.tasks.vision.RunningMode.VIDEO,
    RunningMode.LIVE_STREAM: mp.tasks.vision.RunningMode.LIVE_STREAM,
}


def _to_mp_image(image: np.ndarray) -> mp.Image:
    return mp.Image(image_format=mp.ImageFormat.SRGBA, data=np.ascontiguousarray(image))


class MediaPipeClassifierEngine(ClassifierEngine):
    def __init__(self, options: EngineOptions):
        if not os.path.exists(options.model_asset_path):
            raise FileNotFoundError(f"Model asset not found: {options.model_asset_path}")

        self._options = options
        kwargs: dict = dict(
            base_options=mp.tasks.BaseOptions(model_asset_path=options.model_asset_path),
            running_mode=_RUNNING_MODES[options.running_mode],
            max_results=options.max_results,
            score_threshold=options.score_threshold,
        )
        if options.running_mode == RunningMode.LIVE_STREAM:
            kwargs["result_callback"] = self._on_result

        self._classifier = mp.tasks.vision.ImageClassifier.create_from_options(
            mp.tasks.vision.ImageClassifierOptions(**kwargs)
        )
        logging.info(
            f"MediaPipe classifier loaded: model={options.model_asset_path}, "
            f"mode={options.running_mode.value}, max_results={options.max_results}, "
            f"threshold={options.score_threshold}"
        )

    def _on_result(self, result: Any, output_image: mp.Image, timestamp_ms: int) -> None:
        try:
            converted = ClassificationResult.from_mediapipe(result, timestamp_ms)
        except Exception as e:
            if self._options.error_listener is not None:
                self._options.error_listener(e)
            return
        if self._options.result_listener is not None:
            self._options.result_listener(converted)

    def classify(self, image: np.ndarray, rotation_degrees: int = 0) -> ClassificationResult:
        result = self._classifier.classify(
            _to_mp_image(image), ImageProcessingOptions(rotation_degrees=rotation_degrees)
        )
        return ClassificationResult.from_mediapipe(result)

    def classify_for_video(
        self, image: np.ndarray, rotation_degrees: int, timestamp_ms: int
    ) -> ClassificationResult:
        result = self._classifier.classify_for_video(
            _to_mp_image(image), timestamp_ms, ImageProcessingOptions(rotation_degrees=rotation_degrees)
        )
        return ClassificationResult.from_mediapipe(result, timestamp_ms)

    def classify_async(self, image: np.ndarray, rotation_degrees: int, timestamp_ms: int) -> None:
        self._classifier.classify_async(
            _to_mp_image(image), timestamp_ms, ImageProcessingOptions(rotation_degrees=rotation_degrees)
        )

    def close(self) -> None:
        self._classifier.close()


def create_mediapipe_engine(options: EngineOptions) -> ClassifierEngine:
    return MediaPipeClassifierEngine(options)
