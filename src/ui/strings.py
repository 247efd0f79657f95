"""
User-facing message catalog.
"""

from __future__ import annotations

import logging

DEFAULT_LOCALE = "en"

STRINGS = {
    "en": {
        "camera_start_failed": "Failed to start the camera.",
        "image_classifier_failed": "Image classifier failed to initialize. See error logs for details",
        "paused": "Paused",
    },
    "id": {
        "camera_start_failed": "Gagal memunculkan kamera.",
        "image_classifier_failed": "Pengklasifikasi gambar gagal dimuat. Lihat log untuk detailnya",
        "paused": "Dijeda",
    },
}

SUPPORTED_LOCALES = tuple(STRINGS)


def get_string(key: str, locale: str = DEFAULT_LOCALE) -> str:
    """Look up a message, falling back to the default locale."""
    catalog = STRINGS.get(locale)
    if catalog is None:
        logging.debug(f"Unknown locale {locale!r}, using {DEFAULT_LOCALE}")
        catalog = STRINGS[DEFAULT_LOCALE]
    return catalog.get(key) or STRINGS[DEFAULT_LOCALE][key]
