"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    front_device_id: Optional[Union[int, str]] = None
    secrets_file: Optional[str] = None
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    aspect_ratio: str = "16:9"
    aspect_ratio_fallback: str = "auto"
    lens_facing: str = "back"
    sensor_rotation: int = 0
    target_rotation: int = 0
    swap_rb: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False
    backpressure: str = "keep_only_latest"
    output_format: str = "rgba_8888"
    rtsp_transport: str = "tcp"
    buffer_size: int = 1
    max_retries: int = 3
    loop_file: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            front_device_id=d.get("front_device_id"),
            secrets_file=d.get("secrets_file"),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            aspect_ratio=d.get("aspect_ratio", "16:9"),
            aspect_ratio_fallback=d.get("aspect_ratio_fallback", "auto"),
            lens_facing=d.get("lens_facing", "back"),
            sensor_rotation=d.get("sensor_rotation", 0) or 0,
            target_rotation=d.get("target_rotation", 0) or 0,
            swap_rb=d.get("swap_rb", False),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
            backpressure=d.get("backpressure", "keep_only_latest"),
            output_format=d.get("output_format", "rgba_8888"),
            rtsp_transport=d.get("rtsp_transport", "tcp"),
            buffer_size=d.get("buffer_size", 1),
            max_retries=d.get("max_retries", 3),
            loop_file=d.get("loop_file", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "backend": self.backend,
            "device_id": self.device_id,
            "secrets_file": self.secrets_file,
            "resolution": self.resolution,
            "fps": self.fps,
            "aspect_ratio": self.aspect_ratio,
            "aspect_ratio_fallback": self.aspect_ratio_fallback,
            "lens_facing": self.lens_facing,
            "sensor_rotation": self.sensor_rotation,
            "target_rotation": self.target_rotation,
            "swap_rb": self.swap_rb,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
            "backpressure": self.backpressure,
            "output_format": self.output_format,
            "rtsp_transport": self.rtsp_transport,
            "buffer_size": self.buffer_size,
            "max_retries": self.max_retries,
            "loop_file": self.loop_file,
        }
        if self.front_device_id is not None:
            d["front_device_id"] = self.front_device_id
        return d


@dataclass
class ClassifierConfig:
    """Image classifier configuration."""
    model_name: str = "mobilenet_v1.tflite"
    assets_dir: str = "assets"
    threshold: float = 0.1
    max_results: int = 3
    running_mode: str = "live_stream"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ClassifierConfig":
        return cls(
            model_name=d.get("model_name", "mobilenet_v1.tflite"),
            assets_dir=d.get("assets_dir", "assets"),
            threshold=float(d.get("threshold", 0.1)),
            max_results=int(d.get("max_results", 3)),
            running_mode=d.get("running_mode", "live_stream"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_name": self.model_name,
            "assets_dir": self.assets_dir,
            "threshold": self.threshold,
            "max_results": self.max_results,
            "running_mode": self.running_mode,
        }


@dataclass
class DisplayConfig:
    """Display window configuration."""
    window_name: str = "Camera"
    fullscreen: bool = True
    headless: bool = False
    locale: str = "en"
    toast_duration: float = 2.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisplayConfig":
        return cls(
            window_name=d.get("window_name", "Camera"),
            fullscreen=d.get("fullscreen", True),
            headless=d.get("headless", False),
            locale=d.get("locale", "en"),
            toast_duration=float(d.get("toast_duration", 2.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_name": self.window_name,
            "fullscreen": self.fullscreen,
            "headless": self.headless,
            "locale": self.locale,
            "toast_duration": self.toast_duration,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    log_path: str = "logs/camera_classifier.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            classifier=ClassifierConfig.from_dict(d.get("classifier", {}) or {}),
            display=DisplayConfig.from_dict(d.get("display", {}) or {}),
            log_path=d.get("log_path", "logs/camera_classifier.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "camera": self.camera.to_dict(),
            "classifier": self.classifier.to_dict(),
            "display": self.display.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
