"""
RTSP helpers for IP camera sources.

Credentials live in a separate secrets file and are injected into the
device URL at startup; logs only ever see the sanitized form.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Union
from urllib.parse import urlparse, urlunparse

import yaml


def sanitize_url(device_id: Union[int, str]) -> Union[int, str]:
    """Strip user:password from an RTSP URL so it can be logged."""
    if not isinstance(device_id, str) or "://" not in device_id:
        return device_id

    parsed = urlparse(device_id)
    if not parsed.username and not parsed.password:
        return device_id

    netloc = parsed.hostname or ""
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse((
        parsed.scheme, f"***@{netloc}", parsed.path,
        parsed.params, parsed.query, parsed.fragment
    ))


def inject_rtsp_credentials(camera_cfg: Dict[str, Any]) -> None:
    """
    Inject RTSP credentials from secrets file into camera config.

    Args:
        camera_cfg: Camera configuration dict (modified in-place).
            Expected keys:
            - secrets_file: Path to YAML file with username/password/rtsp_url
            - device_id: Current device_id (int for USB, string for RTSP/file)

    The secrets file should contain:
        username: <rtsp_username>
        password: <rtsp_password>
        rtsp_url: rtsp://host:port/path  # Optional, used if device_id is not RTSP
    """
    secrets_file = camera_cfg.get("secrets_file")
    if not secrets_file:
        return

    if not os.path.exists(secrets_file):
        logging.warning(f"Secrets file not found: {secrets_file}")
        return

    try:
        with open(secrets_file, "r") as f:
            secrets = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to read camera secrets: {e}")
        return

    username = secrets.get("username")
    password = secrets.get("password")
    device_id = camera_cfg.get("device_id", "")

    if isinstance(device_id, str) and device_id.startswith("rtsp://"):
        base_url = device_id
    elif secrets.get("rtsp_url"):
        base_url = secrets["rtsp_url"]
        logging.info("Using RTSP URL from secrets file")
    else:
        return

    if username and password and "@" not in base_url:
        parsed = urlparse(base_url)
        netloc = f"{username}:{password}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        base_url = urlunparse((
            parsed.scheme, netloc, parsed.path,
            parsed.params, parsed.query, parsed.fragment
        ))
        logging.info("RTSP credentials injected into device URL")

    camera_cfg["device_id"] = base_url
