#!/usr/bin/env python3
"""
sim/traffic_policy.py
=====================
Tunable timing and motion parameters for the intersection simulation.

The module-level constants are the published defaults; every one of them
also lives in the frozen :class:`MotionPolicy` dataclass so that
experiments can swap policies without touching code.

Also provides two stateless helpers:

* :func:`queue_density`: fraction of lane capacity in use.
* :func:`crossing_time_s`: time a vehicle needs to clear the box.
"""

from __future__ import annotations

from dataclasses import dataclass

# ── Signal timing ─────────────────────────────────────────────────────────────
ORANGE_DURATION: float = 2.0
FLASH_HALF_PERIOD_S: float = 1.0
MIN_PHASE_DURATION_S: float = 0.1

# ── Lane geometry (metres from the queue tail) ───────────────────────────────
STOP_LINE: float = 70.0
STOP_TARGET: float = 69.5
LANE_CHANGE_COMMIT_M: float = 55.0

# ── Car-following ─────────────────────────────────────────────────────────────
CAR_LENGTH: float = 4.0
STOPPED_GAP: float = 2.0
MIN_FRONT_DISTANCE: float = CAR_LENGTH + STOPPED_GAP
FOLLOWING_TIME: float = 1.5
MAX_SPEED: float = 10.0
ACCEL: float = 3.0
BRAKE_DECEL: float = 4.5
MOVING_SPEED_THRESHOLD: float = 0.5

# ── Queue / crossing ──────────────────────────────────────────────────────────
LANE_CAPACITY: int = 10
CROSSING_BASE_S: float = 2.5
CROSSING_CONGESTION_S: float = 2.0
TURN_CROSSING_FACTOR: float = 1.6


@dataclass(frozen=True)
class MotionPolicy:
    """Immutable bag of every motion and crossing parameter.

    Groups: lane geometry, car-following, longitudinal control,
    crossing time.
    """

    # ── Lane geometry ─────────────────────────────────────────────────────
    stop_line_m: float = STOP_LINE
    """Position of the stop line measured from the queue tail."""

    stop_target_m: float = STOP_TARGET
    """Where a blocked vehicle comes to rest, just before the line."""

    lane_change_commit_m: float = LANE_CHANGE_COMMIT_M
    """Past this position a vehicle no longer changes lane."""

    # ── Car-following ─────────────────────────────────────────────────────
    car_length_m: float = CAR_LENGTH
    """Bumper-to-bumper length of every vehicle."""

    stopped_gap_m: float = STOPPED_GAP
    """Clear gap kept between stationary vehicles."""

    following_time_s: float = FOLLOWING_TIME
    """Time headway kept behind a moving leader."""

    moving_speed_threshold_mps: float = MOVING_SPEED_THRESHOLD
    """Below this speed the stationary gap applies instead of headway."""

    # ── Longitudinal control ──────────────────────────────────────────────
    max_speed_mps: float = MAX_SPEED
    """Free-flow speed."""

    accel_mps2: float = ACCEL
    """Rate at which speed tracks its target, both up and down."""

    brake_decel_mps2: float = BRAKE_DECEL
    """Deceleration used to compute the safe approach speed."""

    # ── Crossing time ─────────────────────────────────────────────────────
    lane_capacity: int = LANE_CAPACITY
    """Queue length at which the congestion penalty saturates."""

    crossing_base_s: float = CROSSING_BASE_S
    """Time to clear the box on an empty approach."""

    crossing_congestion_s: float = CROSSING_CONGESTION_S
    """Extra time added at full queue density."""

    turn_crossing_factor: float = TURN_CROSSING_FACTOR
    """Multiplier applied to turning vehicles."""

    @property
    def min_front_distance_m(self) -> float:
        """Front-to-front spacing of two stopped vehicles."""
        return self.car_length_m + self.stopped_gap_m


DEFAULT_POLICY = MotionPolicy()


def queue_density(queue_length: int, policy: MotionPolicy = DEFAULT_POLICY) -> float:
    """Queue length as a fraction of lane capacity, capped at 1."""
    capacity = max(1, int(policy.lane_capacity))
    return min(1.0, max(0, int(queue_length)) / capacity)


def crossing_time_s(
    turning: bool,
    queue_length: int,
    policy: MotionPolicy = DEFAULT_POLICY,
) -> float:
    """Seconds a vehicle needs to clear the intersection box.

    Parameters
    ----------
    turning : bool
        Turning vehicles take ``turn_crossing_factor`` times longer.
    queue_length : int
        Current length of the vehicle's approach queue; longer queues
        slow the crossing down linearly up to ``lane_capacity``.
    """
    base = policy.crossing_base_s + policy.crossing_congestion_s * queue_density(
        queue_length, policy
    )
    return base * (policy.turn_crossing_factor if turning else 1.0)
