"""
Resolution selection for camera use cases.

OpenCV cannot enumerate supported sizes, so the selector works in two steps:
request a size that matches the preferred aspect ratio, then check what the
camera actually delivers. With the AUTO fallback a mismatching ratio is
accepted as-is; with NONE frames are center-cropped to the preferred ratio.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np

RATIO_4_3 = (4, 3)
RATIO_16_9 = (16, 9)

FALLBACK_RULE_AUTO = "auto"
FALLBACK_RULE_NONE = "none"


def parse_ratio(value: str) -> Tuple[int, int]:
    """Parse "16:9" into (16, 9)."""
    try:
        w, h = (int(part) for part in str(value).split(":"))
    except ValueError:
        raise ValueError(f"Invalid aspect ratio: {value!r} (expected 'W:H')")
    if w <= 0 or h <= 0:
        raise ValueError(f"Invalid aspect ratio: {value!r}")
    return w, h


@dataclass(frozen=True)
class AspectRatioStrategy:
    preferred_ratio: Tuple[int, int] = RATIO_16_9
    fallback_rule: str = FALLBACK_RULE_AUTO

    def __post_init__(self):
        if self.fallback_rule not in (FALLBACK_RULE_AUTO, FALLBACK_RULE_NONE):
            raise ValueError(f"Unknown aspect ratio fallback rule: {self.fallback_rule}")

    @classmethod
    def from_config(cls, aspect_ratio: str, fallback: str = FALLBACK_RULE_AUTO) -> "AspectRatioStrategy":
        return cls(preferred_ratio=parse_ratio(aspect_ratio), fallback_rule=fallback)

    @property
    def ratio(self) -> float:
        return self.preferred_ratio[0] / self.preferred_ratio[1]


RATIO_16_9_FALLBACK_AUTO_STRATEGY = AspectRatioStrategy(RATIO_16_9, FALLBACK_RULE_AUTO)


@dataclass(frozen=True)
class ResolutionSelector:
    aspect_ratio_strategy: AspectRatioStrategy = field(
        default_factory=lambda: RATIO_16_9_FALLBACK_AUTO_STRATEGY
    )
    tolerance: float = 0.01

    def target_size(self, requested: Sequence[int]) -> Tuple[int, int]:
        """Keep the requested height and derive a width matching the preferred ratio."""
        _, height = int(requested[0]), int(requested[1])
        width = int(round(height * self.aspect_ratio_strategy.ratio))
        # Even dimensions keep YUV 4:2:0 conversion valid
        return width - (width % 2), height - (height % 2)

    def matches(self, width: int, height: int) -> bool:
        if width <= 0 or height <= 0:
            return False
        return abs(width / height - self.aspect_ratio_strategy.ratio) <= self.tolerance

    def apply(self, image: np.ndarray) -> np.ndarray:
        """Return the image unchanged, or center-cropped when fallback is NONE."""
        h, w = image.shape[:2]
        if self.matches(w, h) or self.aspect_ratio_strategy.fallback_rule == FALLBACK_RULE_AUTO:
            return image

        ratio = self.aspect_ratio_strategy.ratio
        if w / h > ratio:
            new_w = int(round(h * ratio))
            x0 = (w - new_w) // 2
            return image[:, x0:x0 + new_w]
        new_h = int(round(w / ratio))
        y0 = (h - new_h) // 2
        return image[y0:y0 + new_h, :]
