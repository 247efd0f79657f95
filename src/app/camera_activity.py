"""
Camera screen controller.

Ties the camera lifecycle to window visibility:

    CREATED -> (on_resume) STARTING -> BOUND -> (on_pause) UNBOUND
            -> (on_resume) STARTING ... -> (on_destroy) DESTROYED

Camera acquisition completes asynchronously; binding always happens on the
UI thread. Classifier callbacks arrive on engine threads and are posted to
the UI thread before any view is touched.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from camera.provider import CameraProvider, selector_for
from camera.resolution import AspectRatioStrategy, ResolutionSelector
from camera.use_cases import ImageAnalysis, Preview
from classifier.helper import IMAGE_CLASSIFIER_FAILED, ImageClassifierHelper
from models.classification import Classifications
from models.config import Config
from ui.display import DisplaySurface
from ui.formatting import format_results
from ui.main_thread import MainThreadExecutor
from ui.strings import get_string

ProviderFactory = Callable[[Dict[str, Any]], "Future[CameraProvider]"]
HelperFactory = Callable[..., ImageClassifierHelper]


class ActivityState(str, Enum):
    INITIALIZED = "initialized"
    CREATED = "created"
    STARTING = "starting"
    BOUND = "bound"
    UNBOUND = "unbound"
    DESTROYED = "destroyed"


class CameraActivity:
    """
    Camera preview plus live classification for one screen.

    The activity is its own ClassifierListener: on_results/on_error may be
    called from any thread.
    """

    def __init__(
        self,
        config: Config,
        display: DisplaySurface,
        main_executor: MainThreadExecutor,
        provider_factory: Optional[ProviderFactory] = None,
        helper_factory: Optional[HelperFactory] = None,
    ):
        self.config = config
        self.display = display
        self.main_executor = main_executor
        self._provider_factory = provider_factory or CameraProvider.get_instance
        self._helper_factory = helper_factory or ImageClassifierHelper.from_config
        self.camera_selector = selector_for(config.camera.lens_facing)

        self.state = ActivityState.INITIALIZED
        self.camera_executor: Optional[ThreadPoolExecutor] = None
        self.camera_provider: Optional[CameraProvider] = None
        self.image_classifier_helper: Optional[ImageClassifierHelper] = None
        self.image_analysis: Optional[ImageAnalysis] = None
        self._pending_provider: Optional[Future] = None

    @property
    def is_destroyed(self) -> bool:
        return self.state == ActivityState.DESTROYED

    def _is_torn_down(self) -> bool:
        return self.is_destroyed or self.display.is_released

    # Lifecycle

    def on_create(self) -> None:
        self.camera_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera-analysis")
        self.state = ActivityState.CREATED

    def on_resume(self) -> None:
        if self.state not in (ActivityState.CREATED, ActivityState.UNBOUND):
            logging.warning(f"on_resume ignored in state {self.state.value}")
            return
        self.display.hide_system_ui()
        self.start_camera()

    def on_pause(self) -> None:
        if self.state in (ActivityState.INITIALIZED, ActivityState.DESTROYED):
            return
        if self.image_analysis is not None:
            self.image_analysis.clear_analyzer()
            self.image_analysis = None
        if self.camera_provider is not None:
            self.camera_provider.unbind_all()
        self.state = ActivityState.UNBOUND

    def on_destroy(self) -> None:
        if self.is_destroyed:
            return
        self.on_pause()
        self.state = ActivityState.DESTROYED
        self._pending_provider = None

        if self.camera_executor is not None:
            self.camera_executor.shutdown(wait=True)
        if self.image_classifier_helper is not None:
            self.image_classifier_helper.clear_image_classifier()
        if self.camera_provider is not None:
            self.camera_provider.shutdown()
            self.camera_provider = None
        self.display.release()
        logging.info("Camera activity destroyed")

    # Camera

    def start_camera(self) -> None:
        self.state = ActivityState.STARTING

        if self.image_classifier_helper is None:
            self.image_classifier_helper = self._helper_factory(
                self.config.classifier, classifier_listener=self
            )

        future = self._provider_factory(self.camera_request())
        self._pending_provider = future
        future.add_done_callback(
            lambda f: self.main_executor.post(lambda: self._on_camera_provider_ready(f))
        )

    def resolution_selector(self) -> ResolutionSelector:
        camera = self.config.camera
        return ResolutionSelector(AspectRatioStrategy.from_config(camera.aspect_ratio, camera.aspect_ratio_fallback))

    def camera_request(self) -> Dict[str, Any]:
        """Camera config with the capture size adjusted to the preferred aspect ratio."""
        camera_cfg = self.config.camera.to_dict()
        camera_cfg["resolution"] = list(self.resolution_selector().target_size(camera_cfg["resolution"]))
        return camera_cfg

    def _on_camera_provider_ready(self, future: "Future[CameraProvider]") -> None:
        if future is not self._pending_provider:
            # Superseded by a later start_camera() or teardown
            if not future.cancelled() and future.exception() is None:
                future.result().shutdown()
            return
        self._pending_provider = None

        try:
            provider = future.result()
        except Exception as e:
            logging.error(f"Failed to get camera provider: {e}")
            self.state = ActivityState.UNBOUND
            return

        if self.state != ActivityState.STARTING:
            provider.shutdown()
            return

        if self.camera_provider is not None and self.camera_provider is not provider:
            self.camera_provider.shutdown()
        self.camera_provider = provider

        camera = self.config.camera
        try:
            image_analysis = ImageAnalysis(
                resolution_selector=self.resolution_selector(),
                target_rotation=camera.target_rotation,
                backpressure_strategy=camera.backpressure,
                output_image_format=camera.output_format,
            )
            image_analysis.set_analyzer(self.camera_executor, self.image_classifier_helper.classify_image)

            preview = Preview(target_rotation=camera.target_rotation)
            preview.surface_provider = self.display.set_preview_frame

            provider.unbind_all()
            provider.bind_to_lifecycle(self, self.camera_selector, preview, image_analysis)
        except Exception as e:
            self.display.show_toast(get_string("camera_start_failed", self.config.display.locale))
            logging.error(f"Use case binding failed: {e}")
            self.state = ActivityState.UNBOUND
            return

        self.image_analysis = image_analysis
        self.state = ActivityState.BOUND

    # ClassifierListener

    def on_error(self, error: str) -> None:
        def show() -> None:
            if self._is_torn_down():
                return
            message = error
            if error == IMAGE_CLASSIFIER_FAILED:
                message = get_string("image_classifier_failed", self.config.display.locale)
            self.display.show_toast(message)
            logging.error(f"Classification error: {error}")

        self.main_executor.post(show)

    def on_results(self, results: Optional[List[Classifications]], inference_time: int) -> None:
        def render() -> None:
            if self._is_torn_down():
                logging.debug("Dropping classification result after teardown")
                return
            result_text, time_text = format_results(results, inference_time)
            self.display.tv_result.text = result_text
            self.display.tv_inference_time.text = time_text

        self.main_executor.post(render)
