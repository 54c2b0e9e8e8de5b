"""Tests for velocity envelope and block state dilation."""

from __future__ import annotations

import numpy as np
import pytest

from mpmsched.constants import SPEED_EPSILON, VELOCITY_SENTINEL
from mpmsched.scheduler.expansion import (
    EMPTY_ENVELOPE,
    VelocityBoundsTracker,
    dilate_bounds,
    dilate_states,
)


def _empty_bounds(w, h):
    bounds = np.empty((w, h, 4))
    bounds[...] = EMPTY_ENVELOPE
    return bounds


class TestDilateStates:
    """1-ring activity dilation."""

    def test_single_center_block_covers_3x3(self):
        """A single active centre block activates all 9 blocks."""
        states = np.zeros((3, 3), dtype=np.int64)
        states[1, 1] = 1
        out = dilate_states(states)
        assert np.all(out != 0)

    def test_center_updating_ring_buffer(self):
        """Marked blocks become UPDATING, the ring becomes BUFFER."""
        states = np.zeros((3, 3), dtype=np.int64)
        states[1, 1] = 1
        out = dilate_states(states)
        assert out[1, 1] == 2
        ring = out.copy()
        ring[1, 1] = 1
        assert np.all(ring == 1)

    def test_no_wraparound(self):
        states = np.zeros((5, 5), dtype=np.int64)
        states[0, 0] = 1
        out = dilate_states(states)
        expected = np.zeros((5, 5), dtype=np.int64)
        expected[:2, :2] = 1
        expected[0, 0] = 2
        np.testing.assert_array_equal(out, expected)

    def test_never_shrinks(self):
        """Every previously nonzero block stays nonzero; values stay <= 2."""
        rng = np.random.default_rng(7)
        states = rng.integers(0, 3, size=(6, 6))
        out = dilate_states(states)
        assert np.all(out[states != 0] != 0)
        assert np.all(out >= states.clip(max=2))
        assert out.max() <= 2

    def test_all_inactive_stays_inactive(self):
        out = dilate_states(np.zeros((4, 4), dtype=np.int64))
        assert not np.any(out)


class TestDilateBounds:
    """1-ring interval union of velocity envelopes."""

    def test_single_block_spreads_to_ring(self):
        """Neighbours of the only populated block get exactly its envelope."""
        bounds = _empty_bounds(3, 3)
        bounds[1, 1] = (0.0, 0.0, 1.0, 1.0)
        out = dilate_bounds(bounds)
        for i in range(3):
            for j in range(3):
                np.testing.assert_array_equal(out[i, j], [0.0, 0.0, 1.0, 1.0])

    def test_union_of_neighbours(self):
        """Expanded bound is min of mins and max of maxes."""
        bounds = _empty_bounds(3, 1)
        bounds[0, 0] = (-2.0, 0.0, 1.0, 3.0)
        bounds[2, 0] = (1.0, -5.0, 4.0, 0.5)
        out = dilate_bounds(bounds)
        np.testing.assert_array_equal(out[1, 0], [-2.0, -5.0, 4.0, 3.0])
        np.testing.assert_array_equal(out[0, 0], [-2.0, 0.0, 1.0, 3.0])

    def test_diagonal_reached_through_two_passes(self):
        """The y pass reads the x pass output, giving a full 3x3 neighbourhood."""
        bounds = _empty_bounds(4, 4)
        bounds[0, 0] = (1.0, 1.0, 2.0, 2.0)
        out = dilate_bounds(bounds)
        np.testing.assert_array_equal(out[1, 1], [1.0, 1.0, 2.0, 2.0])
        np.testing.assert_array_equal(out[2, 2], EMPTY_ENVELOPE)

    def test_input_untouched(self):
        bounds = _empty_bounds(3, 3)
        bounds[1, 1] = (0.0, 0.0, 1.0, 1.0)
        before = bounds.copy()
        dilate_bounds(bounds)
        np.testing.assert_array_equal(bounds, before)


class TestVelocityBoundsTracker:
    """Envelope accumulation and derived speeds."""

    def test_include_and_speeds(self):
        tracker = VelocityBoundsTracker((3, 3))
        tracker.include(1, 1, np.array([[1.0, 0.0], [-1.0, 2.0]]))
        np.testing.assert_array_equal(tracker.min_max_vel[1, 1], [-1.0, 0.0, 1.0, 2.0])

        tracker.expand()
        assert tracker.relative_speed(0, 2) == pytest.approx(2.0 + SPEED_EPSILON)
        assert tracker.absolute_speed(0, 2) == pytest.approx(2.0)

    def test_empty_block_has_negative_relative_speed(self):
        tracker = VelocityBoundsTracker((5, 5))
        tracker.include(0, 0, np.array([[3.0, 3.0]]))
        tracker.expand()
        assert tracker.relative_speed(4, 4) < 0
        assert tracker.relative_speed(1, 1) == pytest.approx(SPEED_EPSILON)

    def test_reset_block(self):
        tracker = VelocityBoundsTracker((2, 2))
        tracker.include(0, 1, np.array([[3.0, 3.0]]))
        tracker.reset_block(0, 1)
        assert tracker.min_max_vel[0, 1][0] == VELOCITY_SENTINEL
        assert tracker.min_max_vel[0, 1][2] == -VELOCITY_SENTINEL

    def test_include_empty_is_noop(self):
        tracker = VelocityBoundsTracker((2, 2))
        tracker.include(0, 0, np.empty((0, 2)))
        np.testing.assert_array_equal(tracker.min_max_vel[0, 0], EMPTY_ENVELOPE)
