"""
Observation layer for pluggable camera sources.

This layer abstracts where frames come from (USB camera, IP camera, video
file) from the camera provider that binds them to use cases. Each source
implements the ObservationSource interface and returns FrameData objects.
"""

from typing import Any, Dict, Optional, Union

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source_from_config(
    camera_cfg: Dict[str, Any],
    source_id: str = "camera",
    device_id: Optional[Union[int, str]] = None,
) -> ObservationSource:
    """Factory: build the observation source named by camera.backend."""
    backend = camera_cfg.get("backend", "opencv")
    if backend != "opencv":
        raise ValueError(f"Unsupported camera backend: {backend}")
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id, device_id))


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
