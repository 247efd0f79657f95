"""
Smoke tests for typed models and adapters.
"""

import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

from models.frame import IMAGE_FORMAT_RGBA_8888, Frame, FrameData
from models.classification import Category, ClassificationResult, Classifications
from models.config import CameraConfig, ClassifierConfig, DisplayConfig


class TestFrameData:
    def test_from_numpy(self):
        frame = np.zeros((720, 1280, 3), dtype=np.uint8)
        fd = FrameData.from_numpy(frame, timestamp=time.time(), frame_index=7, source="cam", sensor_rotation=90)

        assert fd.width == 1280
        assert fd.height == 720
        assert fd.shape == (720, 1280, 3)
        assert fd.size == (1280, 720)
        assert fd.sensor_rotation == 90


class TestFrame:
    def test_defaults(self):
        frame = Frame(np.zeros((2, 2, 4), dtype=np.uint8), width=2, height=2)
        assert frame.image_format == IMAGE_FORMAT_RGBA_8888
        assert frame.rotation_degrees == 0
        assert not frame.is_closed

    def test_close_runs_callback_once(self):
        released = []
        frame = Frame(np.zeros((2, 2, 4), dtype=np.uint8), width=2, height=2, on_close=released.append)

        frame.close()
        frame.close()

        assert released == [frame]
        assert frame.is_closed

    def test_buffer_unavailable_after_close(self):
        frame = Frame(np.zeros((2, 2, 4), dtype=np.uint8), width=2, height=2, frame_index=5)
        frame.close()

        with pytest.raises(ValueError, match="already been closed"):
            frame.buffer

    def test_context_manager_closes(self):
        with Frame(np.zeros((2, 2, 4), dtype=np.uint8), width=2, height=2) as frame:
            assert frame.buffer.shape == (2, 2, 4)
        assert frame.is_closed

    def test_concurrent_close_releases_once(self):
        released = []
        frame = Frame(np.zeros((2, 2, 4), dtype=np.uint8), width=2, height=2, on_close=released.append)
        threads = [threading.Thread(target=frame.close) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(released) == 1

    def test_failing_callback_still_closes(self):
        def boom(_):
            raise RuntimeError("boom")

        frame = Frame(np.zeros((2, 2, 4), dtype=np.uint8), width=2, height=2, on_close=boom)
        frame.close()
        assert frame.is_closed

    def test_repr(self):
        frame = Frame(np.zeros((2, 4, 4), dtype=np.uint8), width=4, height=2, rotation_degrees=90, frame_index=3)
        assert "index=3" in repr(frame)
        assert "4x2" in repr(frame)


class TestClassification:
    def test_sorted_categories(self):
        head = Classifications([Category(0.1, "a"), Category(0.7, "b"), Category(0.2, "c")])
        assert [c.category_name for c in head.sorted_categories()] == ["b", "c", "a"]

    def test_from_mediapipe(self):
        mp_result = SimpleNamespace(
            timestamp_ms=1234,
            classifications=[
                SimpleNamespace(
                    head_index=0,
                    head_name="probability",
                    categories=[
                        SimpleNamespace(score=0.75, category_name="tabby", index=281, display_name=None),
                        SimpleNamespace(score=0.2, category_name="tiger cat", index=282, display_name=""),
                    ],
                )
            ],
        )

        result = ClassificationResult.from_mediapipe(mp_result)

        assert result.timestamp_ms == 1234
        head = result.classifications[0]
        assert head.head_name == "probability"
        assert head.categories[0] == Category(0.75, "tabby", 281, "")
        assert head.categories[1].index == 282

    def test_from_mediapipe_explicit_timestamp(self):
        mp_result = SimpleNamespace(classifications=None)

        result = ClassificationResult.from_mediapipe(mp_result, timestamp_ms=99)

        assert result.timestamp_ms == 99
        assert result.classifications == []


class TestConfigModels:
    def test_camera_front_device_only_serialized_when_set(self):
        assert "front_device_id" not in CameraConfig().to_dict()
        assert CameraConfig(front_device_id=1).to_dict()["front_device_id"] == 1

    def test_classifier_coerces_numbers(self):
        cfg = ClassifierConfig.from_dict({"threshold": "0.25", "max_results": "4"})
        assert cfg.threshold == 0.25
        assert cfg.max_results == 4

    def test_display_defaults(self):
        cfg = DisplayConfig.from_dict({})
        assert cfg.fullscreen is True
        assert cfg.headless is False
        assert cfg.toast_duration == 2.0
