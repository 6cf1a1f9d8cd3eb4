"""Enrollment and progress tracking.

Provides:
- Idempotent course enrollment
- Per-lesson watch state
- Derived course completion percentage
"""

from .models import (
    PROGRESS_TABLES_CQL,
    CourseProgress,
    LessonProgress,
    LessonState,
    compute_overall_progress,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CourseProgress",
    "LessonProgress",
    "LessonState",
    "compute_overall_progress",
]
