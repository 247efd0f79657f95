"""
Live camera image classifier.

Opens the camera, streams frames into an on-device image classifier and
shows the top labels with their confidence and the inference latency.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --device: Camera device index, RTSP URL or video file (overrides config)
    --model: Model file name or path (overrides config)
    --headless: Log results instead of opening a window

Keys (window mode):
    q / Esc: quit
    p / space: pause or resume the camera
"""

import os
import sys
import argparse
import logging
import yaml
from typing import Dict, Any, Tuple, Optional

from app.camera_activity import ActivityState, CameraActivity
from camera.resolution import FALLBACK_RULE_AUTO, FALLBACK_RULE_NONE, parse_ratio
from camera.use_cases import BACKPRESSURE_STRATEGIES, VALID_ROTATIONS
from classifier.backend import RunningMode
from models.config import Config
from models.frame import IMAGE_FORMATS
from observation.rtsp_utils import inject_rtsp_credentials
from ops.logging import VALID_LOG_LEVELS, setup_logging
from ui.display import create_display
from ui.main_thread import MainThreadExecutor
from ui.strings import SUPPORTED_LOCALES, get_string

KEY_ESC = 27
QUIT_KEYS = (ord('q'), KEY_ESC)
PAUSE_KEYS = (ord('p'), ord(' '))


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if (
            os.path.exists(config_path)
            and os.path.abspath(config_path) != os.path.abspath(local_overrides_path)
            and os.path.abspath(config_path) != os.path.abspath(base_path)
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'classifier', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    for key in ('device_id', 'front_device_id'):
        if key not in camera or (key == 'front_device_id' and camera[key] is None):
            continue
        value = camera[key]
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            return False, f"camera.{key} must be an integer (index) or string (URL/path)"
        if isinstance(value, int) and value < 0:
            return False, f"camera.{key} integer must be non-negative"

    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"

    resolution = camera.get('resolution', [1280, 720])
    if not isinstance(resolution, list) or len(resolution) != 2:
        return False, "camera.resolution must be a list of [width, height]"
    if not all(isinstance(x, int) and x > 0 for x in resolution):
        return False, "camera.resolution values must be positive integers"

    fps = camera.get('fps', 30)
    if not isinstance(fps, int) or fps <= 0:
        return False, "camera.fps must be a positive integer"

    for key in ('sensor_rotation', 'target_rotation'):
        if camera.get(key, 0) not in VALID_ROTATIONS:
            return False, f"camera.{key} must be one of: {', '.join(map(str, VALID_ROTATIONS))}"

    try:
        parse_ratio(camera.get('aspect_ratio', '16:9'))
    except ValueError:
        return False, "camera.aspect_ratio must look like '16:9'"
    if camera.get('aspect_ratio_fallback', FALLBACK_RULE_AUTO) not in (FALLBACK_RULE_AUTO, FALLBACK_RULE_NONE):
        return False, "camera.aspect_ratio_fallback must be one of: auto, none"

    if camera.get('lens_facing', 'back') not in ('back', 'front'):
        return False, "camera.lens_facing must be one of: back, front"
    if camera.get('backpressure', 'keep_only_latest') not in BACKPRESSURE_STRATEGIES:
        return False, f"camera.backpressure must be one of: {', '.join(BACKPRESSURE_STRATEGIES)}"
    if camera.get('output_format', 'rgba_8888') not in IMAGE_FORMATS:
        return False, f"camera.output_format must be one of: {', '.join(IMAGE_FORMATS)}"
    if camera.get('rtsp_transport', 'tcp') not in ('tcp', 'udp'):
        return False, "camera.rtsp_transport must be one of: tcp, udp"
    for key in ('buffer_size', 'max_retries'):
        value = camera.get(key, 1)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return False, f"camera.{key} must be a positive integer"
    if not isinstance(camera.get('loop_file', False), bool):
        return False, "camera.loop_file must be true or false"

    # Classifier
    classifier = config.get('classifier') or {}
    model_name = classifier.get('model_name', 'mobilenet_v1.tflite')
    if not isinstance(model_name, str) or not model_name:
        return False, "classifier.model_name must be a non-empty string"
    threshold = classifier.get('threshold', 0.1)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not (0 <= threshold <= 1):
        return False, "classifier.threshold must be a number between 0 and 1"
    max_results = classifier.get('max_results', 3)
    if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results <= 0:
        return False, "classifier.max_results must be a positive integer"
    running_modes = [m.value for m in RunningMode]
    if classifier.get('running_mode', 'live_stream') not in running_modes:
        return False, f"classifier.running_mode must be one of: {', '.join(running_modes)}"

    # Display
    display = config.get('display') or {}
    if display.get('locale', 'en') not in SUPPORTED_LOCALES:
        return False, f"display.locale must be one of: {', '.join(SUPPORTED_LOCALES)}"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def _parse_device(value: str):
    """Numeric strings are camera indexes; anything else is a URL or path."""
    return int(value) if value.isdigit() else value


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if args.device is not None:
        config.setdefault('camera', {})['device_id'] = _parse_device(args.device)
    if args.model is not None:
        config.setdefault('classifier', {})['model_name'] = args.model
    if args.headless:
        config.setdefault('display', {})['headless'] = True
    return config


def run(activity: CameraActivity, main_executor: MainThreadExecutor) -> None:
    """UI loop: run posted tasks, draw, react to keys."""
    activity.on_create()
    activity.on_resume()
    try:
        while True:
            main_executor.run_pending(timeout=0.01)
            key = activity.display.render()
            if key in QUIT_KEYS:
                break
            if key in PAUSE_KEYS:
                if activity.state == ActivityState.UNBOUND:
                    logging.info("Resuming camera")
                    activity.on_resume()
                else:
                    logging.info("Pausing camera")
                    activity.on_pause()
                    activity.display.show_toast(get_string("paused", activity.config.display.locale))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        activity.on_destroy()
        main_executor.shutdown(cancel_futures=True)
        activity.display.close()


def main():
    parser = argparse.ArgumentParser(description='Live camera image classifier')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--device', type=str, default=None,
                        help='Camera index, RTSP URL or video file')
    parser.add_argument('--model', type=str, default=None,
                        help='Model file name (relative to classifier.assets_dir) or path')
    parser.add_argument('--headless', action='store_true',
                        help='Log results instead of opening a window')
    args = parser.parse_args()

    config = apply_overrides(load_config(args.config), args)

    inject_rtsp_credentials(config.get('camera', {}))

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting camera classifier")

    typed = Config.from_dict(config)
    main_executor = MainThreadExecutor()
    display = create_display(main_executor.is_ui_thread, typed.display)
    activity = CameraActivity(typed, display, main_executor)

    run(activity, main_executor)
    logging.info("Camera classifier stopped")


if __name__ == "__main__":
    main()
