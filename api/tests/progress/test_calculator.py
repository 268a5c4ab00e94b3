"""Tests for the progress percentage."""

from uuid import uuid4

import pytest

from src.progress.calculator import compute_progress


class TestComputeProgress:
    """Tests for compute_progress."""

    def test_half_of_four_lessons(self) -> None:
        """Completing lessons 1 and 3 of 4 gives 50."""
        lessons = [uuid4() for _ in range(4)]
        completions = {lessons[0]: True, lessons[2]: True}
        assert compute_progress(completions, 4) == 50

    def test_empty_course_is_zero(self) -> None:
        """A course without lessons is at 0."""
        assert compute_progress({}, 0) == 0
        assert compute_progress({uuid4(): True}, 0) == 0

    def test_false_entries_do_not_count(self) -> None:
        """Only True entries count as completed."""
        completions = {uuid4(): True, uuid4(): False, uuid4(): False}
        assert compute_progress(completions, 3) == 33

    def test_all_completed(self) -> None:
        """Completing every lesson gives 100."""
        lessons = {uuid4(): True for _ in range(7)}
        assert compute_progress(lessons, 7) == 100

    @pytest.mark.parametrize(
        "completed,total,expected",
        [
            (1, 8, 13),  # 12.5 rounds half up
            (1, 3, 33),
            (2, 3, 67),
            (5, 200, 3),  # 2.5 rounds half up
            (1, 200, 1),  # 0.5 rounds half up
        ],
    )
    def test_rounds_half_up(self, completed: int, total: int, expected: int) -> None:
        """Percentages round half up to an integer."""
        completions = {uuid4(): True for _ in range(completed)}
        assert compute_progress(completions, total) == expected

    def test_negative_total_rejected(self) -> None:
        """A negative lesson count is an error."""
        with pytest.raises(ValueError, match="negative"):
            compute_progress({}, -1)
