"""Enrollment and lesson completion module.

Provides:
- Course enrollment (at most once per user and course)
- Lesson completion with progress recomputation
- Enrollment state and progress summaries
"""

from .calculator import compute_progress
from .models import (
    PROGRESS_TABLES_CQL,
    Enrollment,
    EnrollmentState,
    EnrollmentStatus,
    LessonCompletion,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "EnrollmentState",
    "EnrollmentStatus",
    "LessonCompletion",
    "compute_progress",
]
