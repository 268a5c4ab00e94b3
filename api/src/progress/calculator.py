"""Course progress percentage."""

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any


def compute_progress(completions: Mapping[Any, bool], total: int) -> int:
    """Percent of completed lessons, rounded half up.

    Args:
        completions: Content id -> completed flag
        total: Number of content items in the course

    Returns:
        0..100 for consistent input; 0 when the course has no content.

    Raises:
        ValueError: If total is negative
    """
    if total < 0:
        msg = f"total must not be negative, got {total}"
        raise ValueError(msg)
    if total == 0:
        return 0

    completed = sum(1 for done in completions.values() if done)
    percent = Decimal(100 * completed) / Decimal(total)
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))
