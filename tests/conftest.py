"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading
import time
from typing import List, Optional, Tuple

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from classifier.backend import EngineOptions, RunningMode  # noqa: E402
from models.classification import Category, ClassificationResult, Classifications  # noqa: E402
from models.frame import Frame, FrameData  # noqa: E402
from observation.base import ObservationConfig, ObservationSource  # noqa: E402


class FakeClock:
    """Millisecond clock under test control."""

    def __init__(self, start: int = 1000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeEngine:
    """Records submissions; results are delivered by calling complete()."""

    def __init__(self, options: EngineOptions, result: Optional[ClassificationResult] = None):
        self.options = options
        self.submissions: List[Tuple[np.ndarray, int, int]] = []
        self.closed = False
        self.fail_with: Optional[Exception] = None
        self._result = result or ClassificationResult(
            classifications=[Classifications(categories=[Category(score=0.9, category_name="cat")])]
        )

    def classify(self, image, rotation_degrees=0):
        self._check()
        self.submissions.append((image, rotation_degrees, -1))
        return self._result

    def classify_for_video(self, image, rotation_degrees, timestamp_ms):
        self._check()
        self.submissions.append((image, rotation_degrees, timestamp_ms))
        return ClassificationResult(self._result.classifications, timestamp_ms)

    def classify_async(self, image, rotation_degrees, timestamp_ms):
        self._check()
        self.submissions.append((image, rotation_degrees, timestamp_ms))

    def complete(self, index: int = -1, classifications: Optional[List[Classifications]] = None):
        """Fire the live-stream result callback for one submission."""
        _, _, timestamp_ms = self.submissions[index]
        result = ClassificationResult(
            classifications if classifications is not None else self._result.classifications,
            timestamp_ms,
        )
        self.options.result_listener(result)

    def fail(self, error: Exception):
        self.options.error_listener(error)

    def close(self):
        self.closed = True

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with


class FakeEngineFactory:
    """Engine factory that can be told to fail the next N creations."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0
        self.engines: List[FakeEngine] = []

    def __call__(self, options: EngineOptions) -> FakeEngine:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("Unable to open model file")
        engine = FakeEngine(options)
        self.engines.append(engine)
        return engine

    @property
    def engine(self) -> FakeEngine:
        return self.engines[-1]


class RecordingListener:
    def __init__(self):
        self.errors: List[str] = []
        self.results: List[Tuple[Optional[List[Classifications]], int]] = []
        self.threads: List[threading.Thread] = []

    def on_error(self, error: str) -> None:
        self.errors.append(error)
        self.threads.append(threading.current_thread())

    def on_results(self, results, inference_time: int) -> None:
        self.results.append((results, inference_time))
        self.threads.append(threading.current_thread())


def make_frame(width: int = 4, height: int = 2, rotation: int = 0, index: int = 1, **kwargs) -> Frame:
    buffer = np.arange(width * height * 4, dtype=np.uint8).reshape(height, width, 4)
    return Frame(buffer, width=width, height=height, rotation_degrees=rotation, frame_index=index, **kwargs)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def engine_factory():
    return FakeEngineFactory()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30

classifier:
  model_name: "mobilenet_v1.tflite"
  threshold: 0.1
  max_results: 3

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
            "aspect_ratio": "16:9",
            "backpressure": "keep_only_latest",
            "output_format": "rgba_8888",
        },
        "classifier": {
            "model_name": "mobilenet_v1.tflite",
            "assets_dir": "assets",
            "threshold": 0.1,
            "max_results": 3,
            "running_mode": RunningMode.LIVE_STREAM.value,
        },
        "display": {
            "headless": True,
            "locale": "en",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


class MockSource(ObservationSource):
    """Observation source that replays a list of numpy frames."""

    def __init__(self, config: ObservationConfig, frames: list = None, fail_open: bool = False):
        super().__init__(config)
        self._frames = frames or []
        self._pos = 0
        self.fail_open = fail_open
        self.open_calls = 0

    def open(self) -> None:
        self.open_calls += 1
        if self.fail_open:
            raise RuntimeError(f"Failed to open device {self.source_id}")
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._pos >= len(self._frames):
            return None

        frame = self._frames[self._pos]
        self._pos += 1
        return self._next_frame(frame, time.time())

    def close(self) -> None:
        self._is_open = False
