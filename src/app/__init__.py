"""
Application screens.
"""

from .camera_activity import ActivityState, CameraActivity

__all__ = ["ActivityState", "CameraActivity"]
