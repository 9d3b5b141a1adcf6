#!/usr/bin/env python3
"""
sim/vehicle.py
==============
The :class:`Vehicle` entity and its read-only :class:`LaneVehicleState`
projection used in snapshots.

Times are simulation seconds; ``-1.0`` marks a crossing that has not
started (``crossing_time``) or not finished (``exit_time``).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sim.intersection_config import ApproachId, MovementType
from sim.physics import approach_speed
from sim.traffic_policy import DEFAULT_POLICY, MotionPolicy, crossing_time_s


@dataclass
class Vehicle:
    """One vehicle from spawn until it clears the intersection.

    Parameters
    ----------
    id : int
        Unique, assigned from 1 in spawn order.
    entry_approach : ApproachId
        Approach whose queue holds the vehicle.
    arrival_time : float
        Simulation time of the spawn.
    position_in_lane : float
        Metres from the queue tail; the stop line is at 70 m.
    queue_index : int
        Visual lane slot 0, 1 or 2 (2 is the right-turn slot).
    """

    id: int
    entry_approach: ApproachId
    arrival_time: float
    crossing_time: float = -1.0
    exit_time: float = -1.0
    current_speed: float = 0.0
    position_in_lane: float = 0.0
    turning: bool = False
    queue_index: int = 0
    lane_id: int = 0
    movement: MovementType = MovementType.STRAIGHT
    destination_approach: ApproachId = ApproachId.NORTH
    destination_lane_index: int = 0
    destination_lane_id: int = 0
    lane_change_allowed: bool = True

    # ── lifecycle predicates ──────────────────────────────────────────────

    @property
    def is_waiting(self) -> bool:
        return self.crossing_time < 0.0

    @property
    def is_crossing(self) -> bool:
        return self.crossing_time >= 0.0 and self.exit_time < 0.0

    @property
    def has_crossed(self) -> bool:
        return self.exit_time >= 0.0

    def wait_time(self) -> Optional[float]:
        """Seconds queued before crossing; ``None`` until the crossing starts."""
        if self.crossing_time < 0.0:
            return None
        return self.crossing_time - self.arrival_time

    @property
    def crossing_duration(self) -> Optional[float]:
        """Seconds spent in the box; ``None`` until the crossing finishes."""
        if self.exit_time < 0.0 or self.crossing_time < 0.0:
            return None
        return self.exit_time - self.crossing_time

    # ── motion ────────────────────────────────────────────────────────────

    def set_movement(self, movement: MovementType) -> None:
        self.movement = movement
        self.turning = movement != MovementType.STRAIGHT

    def required_crossing_time(
        self,
        queue_length: int,
        policy: MotionPolicy = DEFAULT_POLICY,
    ) -> float:
        """Time this vehicle needs in the box given its queue's length."""
        return crossing_time_s(self.turning, queue_length, policy)

    def update_speed(
        self,
        target_mps: float,
        dt: float,
        policy: MotionPolicy = DEFAULT_POLICY,
    ) -> None:
        self.current_speed = approach_speed(self.current_speed, target_mps, dt, policy)


@dataclass(frozen=True)
class LaneVehicleState:
    """Snapshot record of one queued or crossing vehicle."""

    id: int
    position: float
    speed: float
    crossing: bool
    turning: bool
    crossing_time: float
    crossing_duration: float
    queue_index: int
    lane_id: int
    movement: MovementType
    destination_approach: ApproachId
    destination_lane_index: int
    destination_lane_id: int
    lane_change_allowed: bool

    @classmethod
    def from_vehicle(
        cls,
        vehicle: Vehicle,
        queue_length: int,
        policy: MotionPolicy = DEFAULT_POLICY,
    ) -> "LaneVehicleState":
        return cls(
            id=vehicle.id,
            position=vehicle.position_in_lane,
            speed=vehicle.current_speed,
            crossing=vehicle.is_crossing,
            turning=vehicle.turning,
            crossing_time=vehicle.crossing_time,
            crossing_duration=vehicle.required_crossing_time(queue_length, policy),
            queue_index=vehicle.queue_index,
            lane_id=vehicle.lane_id,
            movement=vehicle.movement,
            destination_approach=vehicle.destination_approach,
            destination_lane_index=vehicle.destination_lane_index,
            destination_lane_id=vehicle.destination_lane_id,
            lane_change_allowed=vehicle.lane_change_allowed,
        )

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["movement"] = self.movement.value
        out["destination_approach"] = ApproachId(self.destination_approach).label
        return out
