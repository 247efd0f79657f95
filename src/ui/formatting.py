"""
Text formatting for classification results.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from models.classification import Category, Classifications


def format_percent(score: float) -> str:
    """Whole-percent string, e.g. 0.82 -> "82%" (half-even rounding)."""
    return f"{score:.0%}".strip()


def format_categories(categories: Sequence[Category]) -> str:
    """One "label percent" line per category, highest score first."""
    ordered = sorted(categories, key=lambda c: c.score, reverse=True)
    return "\n".join(f"{c.category_name} {format_percent(c.score)}" for c in ordered)


def format_results(
    results: Optional[List[Classifications]], inference_time: int
) -> Tuple[str, str]:
    """
    Return (result_text, inference_time_text) for the display.

    Only the first classification head is shown. Missing or empty results
    give two empty strings, which clears both fields.
    """
    if not results or not results[0].categories:
        return "", ""
    return format_categories(results[0].categories), f"{inference_time} ms"
