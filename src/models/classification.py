"""
Classification result models.

These mirror the MediaPipe Tasks containers so the rest of the application
does not depend on mediapipe types directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class Category:
    """A single label and its confidence score."""
    score: float
    category_name: str = ""
    index: int = -1
    display_name: str = ""

    @classmethod
    def from_mediapipe(cls, category: Any) -> "Category":
        return cls(
            score=float(category.score),
            category_name=category.category_name or "",
            index=int(category.index) if category.index is not None else -1,
            display_name=category.display_name or "",
        )


@dataclass
class Classifications:
    """Ranked categories produced by one classification head."""
    categories: List[Category] = field(default_factory=list)
    head_index: int = 0
    head_name: Optional[str] = None

    @classmethod
    def from_mediapipe(cls, classifications: Any) -> "Classifications":
        return cls(
            categories=[Category.from_mediapipe(c) for c in classifications.categories or []],
            head_index=int(classifications.head_index or 0),
            head_name=classifications.head_name,
        )

    def sorted_categories(self) -> List[Category]:
        """Categories in descending score order."""
        return sorted(self.categories, key=lambda c: c.score, reverse=True)


@dataclass
class ClassificationResult:
    """
    All classification heads for one submitted frame.

    Attributes:
        classifications: One entry per model head.
        timestamp_ms: Submission timestamp the engine echoes back.
    """
    classifications: List[Classifications] = field(default_factory=list)
    timestamp_ms: int = 0

    @classmethod
    def from_mediapipe(cls, result: Any, timestamp_ms: Optional[int] = None) -> "ClassificationResult":
        """Adapter: convert a mediapipe ImageClassifierResult."""
        ts = timestamp_ms if timestamp_ms is not None else getattr(result, "timestamp_ms", None)
        return cls(
            classifications=[Classifications.from_mediapipe(c) for c in result.classifications or []],
            timestamp_ms=int(ts or 0),
        )
