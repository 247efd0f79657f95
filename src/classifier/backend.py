"""
Classifier engine interface.

Engines take RGBA bitmaps (H x W x 4 uint8) plus a clockwise rotation and
return ClassificationResult objects in the application's own model types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

import numpy as np

from models.classification import ClassificationResult


class RunningMode(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    LIVE_STREAM = "live_stream"


@dataclass(frozen=True)
class EngineOptions:
    model_asset_path: str
    score_threshold: float = 0.1
    max_results: int = 3
    running_mode: RunningMode = RunningMode.LIVE_STREAM
    # Live stream only
    result_listener: Optional[Callable[[ClassificationResult], None]] = None
    error_listener: Optional[Callable[[Exception], None]] = None


class ClassifierEngine(Protocol):
    def classify(self, image: np.ndarray, rotation_degrees: int = 0) -> ClassificationResult:
        ...

    def classify_for_video(
        self, image: np.ndarray, rotation_degrees: int, timestamp_ms: int
    ) -> ClassificationResult:
        ...

    def classify_async(self, image: np.ndarray, rotation_degrees: int, timestamp_ms: int) -> None:
        ...

    def close(self) -> None:
        ...


EngineFactory = Callable[[EngineOptions], ClassifierEngine]
