"""
Camera provider: acquires a camera source and binds use cases to it.

Acquisition is asynchronous (get_instance returns a Future) because opening
a device can take seconds. Once bound, a capture thread reads frames and fans
them out to every bound use case until unbind_all() is called.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from observation import ObservationSource, create_source_from_config
from .use_cases import UseCase

LENS_FACING_BACK = "back"
LENS_FACING_FRONT = "front"


class CameraBindError(Exception):
    """Raised when use cases cannot be bound to the camera."""


@dataclass(frozen=True)
class CameraSelector:
    lens_facing: str

    def device_id(self, camera_cfg: Dict[str, Any]) -> Optional[Union[int, str]]:
        """Resolve the device for this lens from the camera config, or None if absent."""
        if self.lens_facing == LENS_FACING_BACK:
            return camera_cfg.get("device_id", 0)
        if self.lens_facing == LENS_FACING_FRONT:
            return camera_cfg.get("front_device_id")
        return None


DEFAULT_BACK_CAMERA = CameraSelector(LENS_FACING_BACK)
DEFAULT_FRONT_CAMERA = CameraSelector(LENS_FACING_FRONT)


def selector_for(lens_facing: str) -> CameraSelector:
    if lens_facing == LENS_FACING_FRONT:
        return DEFAULT_FRONT_CAMERA
    return DEFAULT_BACK_CAMERA


class LifecycleOwner(Protocol):
    @property
    def is_destroyed(self) -> bool:
        ...


SourceFactory = Callable[..., ObservationSource]


class CameraProvider:
    """
    Owns one observation source and the capture thread feeding bound use cases.

    Example:
        future = CameraProvider.get_instance(config["camera"])
        provider = future.result()
        provider.bind_to_lifecycle(activity, DEFAULT_BACK_CAMERA, preview, analysis)
        ...
        provider.unbind_all()
    """

    def __init__(
        self,
        camera_cfg: Dict[str, Any],
        source_factory: Optional[SourceFactory] = None,
        max_consecutive_failures: int = 10,
    ):
        self._camera_cfg = dict(camera_cfg)
        self._source_factory = source_factory or create_source_from_config
        self._max_consecutive_failures = max_consecutive_failures
        self._lock = threading.RLock()
        self._source: Optional[ObservationSource] = None
        self._selector: Optional[CameraSelector] = None
        self._use_cases: List[UseCase] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._is_shutdown = False

    @classmethod
    def get_instance(
        cls,
        camera_cfg: Dict[str, Any],
        executor: Optional[Executor] = None,
        source_factory: Optional[SourceFactory] = None,
    ) -> "Future[CameraProvider]":
        """
        Acquire a provider asynchronously.

        The configured lens is opened in the background so that binding on
        the UI thread does not block on device warmup.
        """
        def acquire() -> "CameraProvider":
            provider = cls(camera_cfg, source_factory=source_factory)
            provider._open(selector_for(camera_cfg.get("lens_facing", LENS_FACING_BACK)))
            return provider

        if executor is not None:
            return executor.submit(acquire)

        future: Future = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(acquire())
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=run, name="camera-provider", daemon=True).start()
        return future

    @property
    def is_bound(self) -> bool:
        with self._lock:
            return bool(self._use_cases)

    @property
    def bound_use_cases(self) -> List[UseCase]:
        with self._lock:
            return list(self._use_cases)

    def has_camera(self, camera_selector: CameraSelector) -> bool:
        return camera_selector.device_id(self._camera_cfg) is not None

    def _open(self, camera_selector: CameraSelector) -> None:
        if not self.has_camera(camera_selector):
            raise CameraBindError(f"No {camera_selector.lens_facing} camera configured")

        if self._source is not None and self._selector == camera_selector:
            if not self._source.is_open:
                self._source.open()
            return

        if self._source is not None:
            self._source.close()
        source = self._source_factory(
            self._camera_cfg,
            source_id=f"{camera_selector.lens_facing}-camera",
            device_id=camera_selector.device_id(self._camera_cfg),
        )
        source.open()
        self._source = source
        self._selector = camera_selector

    def bind_to_lifecycle(
        self,
        lifecycle_owner: LifecycleOwner,
        camera_selector: CameraSelector,
        *use_cases: UseCase,
    ) -> None:
        """
        Bind use cases and start delivering frames.

        Raises:
            CameraBindError: If the owner is destroyed, the provider is shut
                down, no use case is given, or the camera cannot be opened.
        """
        if not use_cases:
            raise CameraBindError("At least one use case is required")
        if getattr(lifecycle_owner, "is_destroyed", False):
            raise CameraBindError("Cannot bind use cases to a destroyed lifecycle")

        with self._lock:
            if self._is_shutdown:
                raise CameraBindError("Camera provider has been shut down")
            for use_case in use_cases:
                if use_case in self._use_cases:
                    raise CameraBindError(f"Use case {use_case.name} is already bound")

            try:
                self._open(camera_selector)
            except CameraBindError:
                raise
            except Exception as e:
                raise CameraBindError(f"Failed to open camera: {e}") from e

            self._use_cases.extend(use_cases)
            if self._thread is None:
                self._stop_event.clear()
                self._thread = threading.Thread(
                    target=self._capture_loop,
                    args=(self._source,),
                    name="camera-capture",
                    daemon=True,
                )
                self._thread.start()

        logging.info(
            f"Bound use cases {[u.name for u in use_cases]} to {camera_selector.lens_facing} camera"
        )

    def unbind_all(self) -> None:
        """Stop frame delivery, detach every use case and release the camera."""
        with self._lock:
            use_cases, self._use_cases = self._use_cases, []
            thread, self._thread = self._thread, None
            self._stop_event.set()

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logging.warning("Capture thread did not stop within 2s")

        for use_case in use_cases:
            try:
                use_case.on_unbind()
            except Exception as e:
                logging.warning(f"Error unbinding {use_case.name}: {e}")

        with self._lock:
            if self._source is not None and self._source.is_open and not self._use_cases:
                self._source.close()

        if use_cases:
            logging.info("All camera use cases unbound")

    def shutdown(self) -> None:
        self.unbind_all()
        with self._lock:
            self._is_shutdown = True
            if self._source is not None:
                self._source.close()
                self._source = None

    def _capture_loop(self, source: ObservationSource) -> None:
        frame_interval = 0.0
        fps = self._camera_cfg.get("fps")
        if getattr(source, "is_file", False) and fps:
            frame_interval = 1.0 / fps

        consecutive_failures = 0
        while not self._stop_event.is_set():
            started = time.monotonic()
            frame_data = source.read()

            if frame_data is None:
                consecutive_failures += 1
                if consecutive_failures >= self._max_consecutive_failures:
                    logging.error(
                        f"Too many consecutive frame failures ({consecutive_failures}), stopping capture"
                    )
                    break
                self._stop_event.wait(0.1)
                continue

            consecutive_failures = 0
            with self._lock:
                use_cases = list(self._use_cases)
            for use_case in use_cases:
                try:
                    use_case.on_frame(frame_data)
                except Exception as e:
                    logging.warning(f"Use case {use_case.name} failed on frame {frame_data.frame_index}: {e}")

            if frame_interval:
                remaining = frame_interval - (time.monotonic() - started)
                if remaining > 0:
                    self._stop_event.wait(remaining)
