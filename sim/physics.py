#!/usr/bin/env python3
"""
sim/physics.py
==============
Low-level kinematics helpers used by :mod:`sim.traffic_generator`.

Keeping these in a separate module avoids circular imports and makes unit
testing straightforward.
"""

from __future__ import annotations

import math

from sim.traffic_policy import DEFAULT_POLICY, MotionPolicy


def desired_gap(speed_mps: float, policy: MotionPolicy = DEFAULT_POLICY) -> float:
    """Front-to-front distance a follower wants behind its leader.

    Stationary vehicles keep the fixed stopped spacing; moving vehicles
    keep one car length plus the following-time headway.
    """
    if speed_mps < policy.moving_speed_threshold_mps:
        return policy.min_front_distance_m
    return policy.car_length_m + policy.following_time_s * speed_mps


def braking_safe_speed(distance_m: float, decel_mps2: float) -> float:
    """Highest speed from which a vehicle can still stop within *distance_m*.

    Parameters
    ----------
    distance_m : float
        Remaining distance to the stopping point.  Zero or negative
        means the vehicle must already be stationary.
    decel_mps2 : float
        Constant braking deceleration.

    Returns
    -------
    float
        ``sqrt(2 * decel * distance)``, or 0.0 when the distance is used up.
    """
    if distance_m <= 0.0:
        return 0.0
    return math.sqrt(2.0 * max(0.0, decel_mps2) * distance_m)


def approach_speed(
    current_mps: float,
    target_mps: float,
    dt: float,
    policy: MotionPolicy = DEFAULT_POLICY,
) -> float:
    """Move *current_mps* toward *target_mps* by at most ``accel * dt``.

    The result is clamped to ``[0, max_speed]``.
    """
    step = policy.accel_mps2 * dt
    if target_mps > current_mps:
        speed = min(target_mps, current_mps + step)
    else:
        speed = max(target_mps, current_mps - step)
    return max(0.0, min(policy.max_speed_mps, speed))
