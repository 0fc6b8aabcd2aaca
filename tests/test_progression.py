"""
tests/test_progression.py — Unit Tests for the Leveling Formula
================================================================

Pure functions, no I/O.
"""

from __future__ import annotations

import pytest

from questlog.constants import XP_PER_LEVEL
from questlog.engine.progression import (
    MemberProgress,
    did_level_up,
    level_for_xp,
    member_progress,
    progress_within_level,
    xp_threshold_for_next_level,
    xp_to_next_level,
)


# ---------------------------------------------------------------------------
# level_for_xp
# ---------------------------------------------------------------------------
class TestLevelForXp:
    @pytest.mark.parametrize(
        "xp, expected",
        [(0, 1), (1, 1), (99, 1), (100, 2), (110, 2), (199, 2), (200, 3), (1000, 11)],
    )
    def test_boundaries(self, xp, expected):
        assert level_for_xp(xp) == expected

    def test_matches_floor_formula_for_non_negative_xp(self):
        for xp in range(0, 5 * XP_PER_LEVEL + 7, 7):
            assert level_for_xp(xp) == 1 + xp // XP_PER_LEVEL

    @pytest.mark.parametrize("xp, expected", [(-1, 0), (-100, 0), (-101, -1)])
    def test_negative_xp_is_defined(self, xp, expected):
        assert level_for_xp(xp) == expected


# ---------------------------------------------------------------------------
# progress_within_level / thresholds
# ---------------------------------------------------------------------------
class TestProgress:
    def test_start_of_level_is_zero(self):
        assert progress_within_level(200) == 0.0

    def test_mid_level(self):
        assert progress_within_level(150) == pytest.approx(0.5)

    def test_always_in_unit_interval(self):
        for xp in range(-350, 350, 13):
            assert 0.0 <= progress_within_level(xp) < 1.0

    def test_negative_uses_floor_modulo(self):
        assert progress_within_level(-10) == pytest.approx(0.9)

    def test_threshold_for_next_level(self):
        assert xp_threshold_for_next_level(0) == 100
        assert xp_threshold_for_next_level(110) == 200
        assert xp_threshold_for_next_level(200) == 300

    def test_xp_to_next_level(self):
        assert xp_to_next_level(90) == 10
        assert xp_to_next_level(100) == 100

    def test_member_progress_bundle(self):
        p = member_progress(110)
        assert p == MemberProgress(level=2, xp=110, progress=pytest.approx(0.1),
                                   xp_for_next_level=200)
        assert p.to_dict()["xpForNextLevel"] == 200


# ---------------------------------------------------------------------------
# did_level_up
# ---------------------------------------------------------------------------
class TestDidLevelUp:
    def test_crossing_boundary(self):
        assert did_level_up(90, 110) is True

    def test_within_level(self):
        assert did_level_up(110, 115) is False

    def test_exact_boundary_counts(self):
        assert did_level_up(99, 100) is True

    def test_losing_xp_is_never_a_level_up(self):
        assert did_level_up(210, 150) is False

    def test_multi_level_jump(self):
        assert did_level_up(0, 350) is True

    def test_agrees_with_floor_definition(self):
        for xp in range(0, 400, 9):
            for amount in (-120, -5, 0, 3, 10, 95, 250):
                expected = (xp + amount) // XP_PER_LEVEL > xp // XP_PER_LEVEL
                assert did_level_up(xp, xp + amount) is expected
