"""
Tests for the camera provider.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from camera.provider import (
    DEFAULT_BACK_CAMERA,
    DEFAULT_FRONT_CAMERA,
    CameraBindError,
    CameraProvider,
    CameraSelector,
)
from camera.use_cases import UseCase
from observation.base import ObservationConfig

from conftest import MockSource


class RecordingUseCase(UseCase):
    def __init__(self, name="recorder", expected=1):
        self.name = name
        self.frames = []
        self.unbound = False
        self.done = threading.Event()
        self._expected = expected

    def on_frame(self, frame_data):
        self.frames.append(frame_data)
        if len(self.frames) >= self._expected:
            self.done.set()

    def on_unbind(self):
        self.unbound = True


class Owner:
    def __init__(self, destroyed=False):
        self.is_destroyed = destroyed


class SourceFactory:
    def __init__(self, frames=3, fail_open=False):
        self.frames = frames
        self.fail_open = fail_open
        self.sources = []
        self.calls = []

    def __call__(self, camera_cfg, source_id="camera", device_id=None):
        self.calls.append((source_id, device_id))
        source = MockSource(
            ObservationConfig(source_id=source_id, sensor_rotation=camera_cfg.get("sensor_rotation", 0)),
            [np.zeros((4, 4, 3), dtype=np.uint8) for _ in range(self.frames)],
            fail_open=self.fail_open,
        )
        self.sources.append(source)
        return source


CAMERA_CFG = {"backend": "opencv", "device_id": 0, "fps": 30, "sensor_rotation": 90}


@pytest.fixture
def sources():
    return SourceFactory()


@pytest.fixture
def provider(sources):
    provider = CameraProvider(CAMERA_CFG, source_factory=sources, max_consecutive_failures=2)
    yield provider
    provider.shutdown()


class TestCameraSelector:
    def test_back_uses_device_id(self):
        assert DEFAULT_BACK_CAMERA.device_id({"device_id": 2}) == 2

    def test_front_requires_front_device(self):
        assert DEFAULT_FRONT_CAMERA.device_id({"device_id": 0}) is None
        assert DEFAULT_FRONT_CAMERA.device_id({"front_device_id": "videos/selfie.mp4"}) == "videos/selfie.mp4"

    def test_unknown_lens(self):
        assert CameraSelector("external").device_id({"device_id": 0}) is None


class TestBind:
    def test_frames_fan_out_to_every_use_case(self, provider):
        first = RecordingUseCase("first", expected=3)
        second = RecordingUseCase("second", expected=3)

        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, first, second)

        assert first.done.wait(timeout=5)
        assert second.done.wait(timeout=5)
        assert [f.frame_index for f in first.frames] == [1, 2, 3]
        assert first.frames[0].sensor_rotation == 90
        assert provider.is_bound

    def test_source_opened_for_selected_lens(self, provider, sources):
        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, RecordingUseCase())
        assert sources.calls == [("back-camera", 0)]

    def test_unbind_all_detaches_and_closes(self, provider, sources):
        use_case = RecordingUseCase()
        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, use_case)

        provider.unbind_all()

        assert use_case.unbound
        assert not provider.is_bound
        assert provider.bound_use_cases == []
        assert not sources.sources[0].is_open

    def test_rebind_after_unbind_reopens_source(self, provider, sources):
        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, RecordingUseCase())
        provider.unbind_all()

        use_case = RecordingUseCase()
        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, use_case)

        assert use_case.done.wait(timeout=5)
        assert len(sources.sources) == 1
        assert sources.sources[0].open_calls == 2

    def test_requires_use_case(self, provider):
        with pytest.raises(CameraBindError, match="At least one"):
            provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA)

    def test_destroyed_owner_rejected(self, provider):
        with pytest.raises(CameraBindError, match="destroyed"):
            provider.bind_to_lifecycle(Owner(destroyed=True), DEFAULT_BACK_CAMERA, RecordingUseCase())

    def test_double_bind_rejected(self, provider):
        use_case = RecordingUseCase()
        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, use_case)
        with pytest.raises(CameraBindError, match="already bound"):
            provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, use_case)

    def test_missing_front_camera(self, provider):
        with pytest.raises(CameraBindError, match="No front camera"):
            provider.bind_to_lifecycle(Owner(), DEFAULT_FRONT_CAMERA, RecordingUseCase())

    def test_open_failure_wrapped(self):
        provider = CameraProvider(CAMERA_CFG, source_factory=SourceFactory(fail_open=True))
        with pytest.raises(CameraBindError, match="Failed to open camera"):
            provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, RecordingUseCase())
        assert not provider.is_bound

    def test_bind_after_shutdown_rejected(self, provider):
        provider.shutdown()
        with pytest.raises(CameraBindError, match="shut down"):
            provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, RecordingUseCase())

    def test_use_case_error_does_not_stop_capture(self, provider):
        class Broken(UseCase):
            name = "broken"

            def on_frame(self, frame_data):
                raise RuntimeError("boom")

        healthy = RecordingUseCase(expected=3)
        provider.bind_to_lifecycle(Owner(), DEFAULT_BACK_CAMERA, Broken(), healthy)

        assert healthy.done.wait(timeout=5)


class TestGetInstance:
    def test_resolves_with_open_source(self, sources):
        future = CameraProvider.get_instance(CAMERA_CFG, source_factory=sources)
        provider = future.result(timeout=5)

        assert isinstance(provider, CameraProvider)
        assert sources.sources[0].is_open
        provider.shutdown()

    def test_uses_given_executor(self, sources):
        with ThreadPoolExecutor(max_workers=1) as executor:
            provider = CameraProvider.get_instance(CAMERA_CFG, executor=executor, source_factory=sources).result(timeout=5)
        assert sources.calls == [("back-camera", 0)]
        provider.shutdown()

    def test_failure_propagates_through_future(self):
        future = CameraProvider.get_instance(CAMERA_CFG, source_factory=SourceFactory(fail_open=True))
        with pytest.raises(RuntimeError, match="Failed to open device"):
            future.result(timeout=5)

    def test_missing_lens_fails(self, sources):
        cfg = dict(CAMERA_CFG, lens_facing="front")
        future = CameraProvider.get_instance(cfg, source_factory=sources)
        with pytest.raises(CameraBindError):
            future.result(timeout=5)
