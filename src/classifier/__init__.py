"""
Image classification: engine interface, MediaPipe engine and the helper
that feeds camera frames to it.

The MediaPipe engine is imported lazily so the rest of the package works
without mediapipe installed (tests use fake engines).
"""

from .backend import ClassifierEngine, EngineFactory, EngineOptions, RunningMode
from .helper import IMAGE_CLASSIFIER_FAILED, ClassifierListener, ImageClassifierHelper

__all__ = [
    "ClassifierEngine",
    "EngineFactory",
    "EngineOptions",
    "RunningMode",
    "ClassifierListener",
    "ImageClassifierHelper",
    "IMAGE_CLASSIFIER_FAILED",
]
