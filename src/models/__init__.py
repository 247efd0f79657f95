"""
Typed models for the camera classifier application.
"""

from .frame import Frame, FrameData
from .classification import Category, Classifications, ClassificationResult
from .config import (
    Config,
    CameraConfig,
    ClassifierConfig,
    DisplayConfig,
)

__all__ = [
    # Frames
    "Frame",
    "FrameData",
    # Classification
    "Category",
    "Classifications",
    "ClassificationResult",
    # Config
    "Config",
    "CameraConfig",
    "ClassifierConfig",
    "DisplayConfig",
]
