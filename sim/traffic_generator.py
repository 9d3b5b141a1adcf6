#!/usr/bin/env python3
"""
sim/traffic_generator.py
========================
Per-approach vehicle queues: spawning, lane choice, car-following and
crossing bookkeeping.

Two spawning modes exist:

* **configured**: lanes, movements and destinations come from an
  :class:`~sim.intersection_config.IntersectionConfig`; vehicles in the
  wrong lane for their movement try to change lane before the commit
  line.
* **legacy**: no config supplied; every fifth vehicle turns right from
  slot 2 and the rest alternate between slots 0 and 1.

Kinematics are deliberately coarse: a vehicle follows the nearest
non-crossing vehicle ahead in its own lane and brakes toward the stop
target when its approach may not move.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from sim.intersection_config import (
    MOVE_FLAG_ORDER,
    ApproachConfig,
    ApproachId,
    IntersectionConfig,
    MovementType,
    destination_approach_for,
    lane_id_for,
    make_default_intersection_config,
)
from sim.physics import braking_safe_speed, desired_gap
from sim.traffic_policy import DEFAULT_POLICY, MotionPolicy, queue_density
from sim.vehicle import LaneVehicleState, Vehicle

log = logging.getLogger("traffic")

LEGACY_TURN_EVERY = 5
LEGACY_TURN_SLOT = 2


# ── Stateless choice rules ────────────────────────────────────────────────────

def choose_spawn_movement(
    movements: Sequence[MovementType],
    vehicle_id: int,
) -> MovementType:
    """Movement for a new vehicle, derived from its id.

    ``id % 10`` below 6 prefers Straight, below 8 prefers Right,
    otherwise Left.  Unavailable preferences fall back to Straight, then
    Right, then the first available movement.
    """
    if not movements:
        return MovementType.STRAIGHT
    roll = vehicle_id % 10
    if roll < 6 and MovementType.STRAIGHT in movements:
        return MovementType.STRAIGHT
    if roll < 8 and MovementType.RIGHT in movements:
        return MovementType.RIGHT
    if MovementType.LEFT in movements:
        return MovementType.LEFT
    if MovementType.STRAIGHT in movements:
        return MovementType.STRAIGHT
    if MovementType.RIGHT in movements:
        return MovementType.RIGHT
    return movements[0]


def preferred_lane_index(
    approach: ApproachConfig,
    movement: MovementType,
    current_index: int,
) -> int:
    """Index of the connected lane a vehicle with *movement* should use.

    Rightmost candidate for Right, leftmost for Left, and for Straight the
    candidate closest to *current_index* (ties go to the lower index).
    Returns *current_index* when no connected lane allows the movement.
    """
    candidates = [
        i
        for i, lane in enumerate(approach.lanes)
        if lane.connected_to_intersection and lane.allows(movement)
    ]
    if not candidates:
        return current_index
    if movement == MovementType.RIGHT:
        return max(candidates)
    if movement == MovementType.LEFT:
        return min(candidates)
    return min(candidates, key=lambda i: (abs(i - current_index), i))


def _flag(flags: Sequence[bool], index: int) -> bool:
    try:
        return bool(flags[index])
    except (IndexError, KeyError, TypeError):
        return False


class TrafficGenerator:
    """Four FIFO queues plus the log of vehicles that have crossed.

    Parameters
    ----------
    config : IntersectionConfig or None
        ``None`` selects legacy spawning over the default three-lane
        layout.
    arrival_rate : float
        Spawn ticks per second; each tick adds one vehicle to every
        approach.  Zero, negative or non-finite values disable spawning.
    policy : MotionPolicy or None
        Motion and crossing constants.
    """

    def __init__(
        self,
        config: Optional[IntersectionConfig] = None,
        arrival_rate: float = 0.5,
        policy: Optional[MotionPolicy] = None,
    ) -> None:
        self._configured = config is not None
        self._config = config if config is not None else make_default_intersection_config()
        rate = float(arrival_rate)
        if not math.isfinite(rate) or rate < 0.0:
            log.warning("Arrival rate %r disables spawning", arrival_rate)
            rate = 0.0
        self._arrival_rate = rate
        self._policy = policy or DEFAULT_POLICY

        self._queues: Dict[ApproachId, Deque[Vehicle]] = {a: deque() for a in ApproachId}
        self._crossed: List[Vehicle] = []
        self._cursor: Dict[ApproachId, int] = {a: 0 for a in ApproachId}
        self._time_accumulated = 0.0
        self._next_vehicle_id = 1

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def config(self) -> IntersectionConfig:
        return self._config

    @property
    def is_configured(self) -> bool:
        return self._configured

    @property
    def policy(self) -> MotionPolicy:
        return self._policy

    @property
    def arrival_rate(self) -> float:
        return self._arrival_rate

    @property
    def next_vehicle_id(self) -> int:
        return self._next_vehicle_id

    def spawn_interval(self) -> float:
        if self._arrival_rate <= 0.0:
            return math.inf
        return 1.0 / self._arrival_rate

    # ── Spawning ──────────────────────────────────────────────────────────────

    def generate_traffic(self, dt: float, current_time: float) -> List[Vehicle]:
        """Accumulate *dt* and spawn one vehicle per approach per interval.

        Returns the vehicles added during this call.
        """
        spawned: List[Vehicle] = []
        if not dt > 0.0:
            return spawned
        self._time_accumulated += dt
        interval = self.spawn_interval()
        while self._time_accumulated >= interval:
            self._time_accumulated -= interval
            for approach in MOVE_FLAG_ORDER:
                vehicle = self._spawn(approach, current_time)
                if vehicle is not None:
                    spawned.append(vehicle)
        return spawned

    def _spawn(self, approach: ApproachId, now: float) -> Optional[Vehicle]:
        approach_cfg = self._config.approach(approach) if self._configured else None
        if approach_cfg is not None and approach_cfg.lanes:
            vehicle = self._make_configured_vehicle(approach, approach_cfg, now)
            if vehicle is None:
                return None
        else:
            vehicle = self._make_legacy_vehicle(approach, now)

        queue = self._queues[approach]
        if queue:
            vehicle.position_in_lane = (
                queue[-1].position_in_lane - self._policy.min_front_distance_m
            )
        queue.append(vehicle)
        self._next_vehicle_id += 1
        return vehicle

    def _make_configured_vehicle(
        self,
        approach: ApproachId,
        approach_cfg: ApproachConfig,
        now: float,
    ) -> Optional[Vehicle]:
        connected = approach_cfg.connected_lane_indices()
        if not connected:
            return None

        slot = self._cursor[approach] % len(connected)
        cursor = connected[slot]
        self._cursor[approach] = (slot + 1) % len(connected)

        movements: List[MovementType] = []
        for index in connected:
            for movement in approach_cfg.lanes[index].allowed_movements:
                if movement not in movements:
                    movements.append(movement)

        vehicle_id = self._next_vehicle_id
        movement = choose_spawn_movement(movements, vehicle_id)
        lane_index = preferred_lane_index(approach_cfg, movement, cursor)
        lane = approach_cfg.lanes[lane_index]

        vehicle = Vehicle(
            id=vehicle_id,
            entry_approach=approach,
            arrival_time=now,
            queue_index=lane_index % 3,
            lane_id=lane.id,
            lane_change_allowed=lane.supports_lane_change,
        )
        self.resolve_route(vehicle, approach, lane_index, movement)
        return vehicle

    def _make_legacy_vehicle(self, approach: ApproachId, now: float) -> Vehicle:
        vehicle_id = self._next_vehicle_id
        if vehicle_id % LEGACY_TURN_EVERY == 0:
            slot = LEGACY_TURN_SLOT
            movement = MovementType.RIGHT
        else:
            straight = sum(1 for v in self._queues[approach] if not v.turning)
            slot = straight % 2
            movement = MovementType.STRAIGHT

        vehicle = Vehicle(
            id=vehicle_id,
            entry_approach=approach,
            arrival_time=now,
            queue_index=slot,
            lane_id=lane_id_for(approach, slot),
        )
        vehicle.set_movement(movement)
        destination = destination_approach_for(approach, movement)
        vehicle.destination_approach = destination
        vehicle.destination_lane_index = slot
        vehicle.destination_lane_id = lane_id_for(destination, slot)
        return vehicle

    def resolve_route(
        self,
        vehicle: Vehicle,
        approach: ApproachId,
        lane_index: int,
        movement: MovementType,
    ) -> bool:
        """Set *movement* and the destination fields on *vehicle*.

        An explicit lane connection wins; otherwise the geometric
        destination with the same lane index is used.  The index is then
        clamped to the destination's outgoing lane count.  Returns whether
        an explicit connection matched.
        """
        vehicle.set_movement(movement)
        connection = self._config.find_connection(approach, lane_index, movement)
        if connection is not None:
            destination = connection.to_approach
            destination_index = connection.to_lane_index
        else:
            destination = destination_approach_for(approach, movement)
            destination_index = lane_index

        destination_cfg = self._config.approach(destination)
        count = destination_cfg.effective_to_lane_count if destination_cfg else 1
        destination_index = max(0, min(int(destination_index), count - 1))

        vehicle.destination_approach = destination
        vehicle.destination_lane_index = destination_index
        vehicle.destination_lane_id = lane_id_for(destination, destination_index)
        return connection is not None

    # ── Lane changes ──────────────────────────────────────────────────────────

    def _apply_lane_changes(self, approach: ApproachId, queue: Deque[Vehicle]) -> None:
        if not self._configured or not queue:
            return
        approach_cfg = self._config.approach(approach)
        if approach_cfg is None or not approach_cfg.lanes:
            return
        index_by_lane = {lane.id: i for i, lane in enumerate(approach_cfg.lanes)}

        for vehicle in queue:
            if vehicle.is_crossing:
                continue
            current_index = index_by_lane.get(vehicle.lane_id)
            if current_index is None:
                continue

            if approach_cfg.lanes[current_index].allows(vehicle.movement):
                self.resolve_route(vehicle, approach, current_index, vehicle.movement)
                continue

            if (
                not vehicle.lane_change_allowed
                or vehicle.position_in_lane > self._policy.lane_change_commit_m
            ):
                self.resolve_route(vehicle, approach, current_index, MovementType.STRAIGHT)
                continue

            target_index = preferred_lane_index(approach_cfg, vehicle.movement, current_index)
            target = approach_cfg.lanes[target_index]
            if target.id == vehicle.lane_id:
                self.resolve_route(vehicle, approach, current_index, vehicle.movement)
                continue

            if self._has_safe_gap(queue, vehicle, target.id):
                log.debug(
                    "Vehicle %d on %s changes lane %d -> %d",
                    vehicle.id, approach.label, vehicle.lane_id, target.id,
                )
                vehicle.lane_id = target.id
                vehicle.queue_index = target_index % 3
                vehicle.lane_change_allowed = target.supports_lane_change
                self.resolve_route(vehicle, approach, target_index, vehicle.movement)

    def _has_safe_gap(
        self,
        queue: Deque[Vehicle],
        vehicle: Vehicle,
        target_lane_id: int,
    ) -> bool:
        for other in queue:
            if other is vehicle or other.is_crossing or other.lane_id != target_lane_id:
                continue
            if abs(other.position_in_lane - vehicle.position_in_lane) < self._policy.min_front_distance_m:
                return False
        return True

    # ── Kinematics ────────────────────────────────────────────────────────────

    def update_vehicle_speeds(self, dt: float, lane_can_move: Sequence[bool]) -> None:
        """Advance every non-crossing vehicle by one step of *dt* seconds.

        Parameters
        ----------
        dt : float
            Step length; non-positive values leave every vehicle alone.
        lane_can_move : sequence of bool
            Four flags in North, South, East, West order; ``True`` when
            the approach's through signal is Green.
        """
        if not dt > 0.0:
            return
        for flag_index, approach in enumerate(MOVE_FLAG_ORDER):
            queue = self._queues[approach]
            can_move = _flag(lane_can_move, flag_index)
            self._apply_lane_changes(approach, queue)

            vehicles = list(queue)
            for i, vehicle in enumerate(vehicles):
                if vehicle.is_crossing:
                    continue
                ahead = self._vehicle_ahead(vehicles, i)
                self._advance(vehicle, ahead, can_move, dt)

    @staticmethod
    def _vehicle_ahead(vehicles: Sequence[Vehicle], index: int) -> Optional[Vehicle]:
        lane_id = vehicles[index].lane_id
        for j in range(index - 1, -1, -1):
            other = vehicles[j]
            if not other.is_crossing and other.lane_id == lane_id:
                return other
        return None

    def _advance(
        self,
        vehicle: Vehicle,
        ahead: Optional[Vehicle],
        can_move: bool,
        dt: float,
    ) -> None:
        p = self._policy
        target_speed = p.max_speed_mps
        target_position = p.stop_target_m

        if ahead is not None:
            target_position = min(target_position, ahead.position_in_lane - p.min_front_distance_m)
            spacing = ahead.position_in_lane - vehicle.position_in_lane
            if can_move:
                gap = desired_gap(vehicle.current_speed, p)
                if gap > 0.0 and spacing < gap:
                    ratio = spacing / gap
                    target_speed = min(
                        target_speed,
                        ahead.current_speed + (p.max_speed_mps - ahead.current_speed) * ratio,
                    )
                if spacing < p.min_front_distance_m:
                    target_speed = 0.0
            else:
                target_speed = min(
                    target_speed,
                    braking_safe_speed(target_position - vehicle.position_in_lane, p.brake_decel_mps2),
                )
        elif not can_move and vehicle.position_in_lane < p.stop_line_m:
            target_speed = min(
                target_speed,
                braking_safe_speed(p.stop_target_m - vehicle.position_in_lane, p.brake_decel_mps2),
            )

        vehicle.update_speed(target_speed, dt, p)
        vehicle.position_in_lane += vehicle.current_speed * dt

        if not can_move and vehicle.position_in_lane > target_position:
            vehicle.position_in_lane = target_position
            vehicle.current_speed = 0.0

        if ahead is not None:
            max_position = ahead.position_in_lane - p.min_front_distance_m
            if vehicle.position_in_lane > max_position:
                vehicle.position_in_lane = max_position
                vehicle.current_speed = min(vehicle.current_speed, ahead.current_speed)

    # ── Crossing bookkeeping ──────────────────────────────────────────────────

    def start_crossing(self, approach: ApproachId, vehicle_id: int, current_time: float) -> bool:
        """Mark the head of *approach*'s queue as crossing if its id matches."""
        queue = self._queues.get(approach)
        if not queue or queue[0].id != vehicle_id:
            return False
        queue[0].crossing_time = current_time
        return True

    def complete_crossing(self, vehicle_id: int, current_time: float) -> bool:
        """Pop the queue head with *vehicle_id*, stamp its exit and log it."""
        for approach in MOVE_FLAG_ORDER:
            queue = self._queues[approach]
            if queue and queue[0].id == vehicle_id:
                vehicle = queue.popleft()
                vehicle.exit_time = current_time
                self._crossed.append(vehicle)
                return True
        return False

    def peek_next_vehicle(self, approach: ApproachId) -> Optional[Vehicle]:
        queue = self._queues.get(approach)
        return queue[0] if queue else None

    def queue(self, approach: ApproachId) -> Deque[Vehicle]:
        """Live queue for *approach*; callers must hold the engine's lock."""
        return self._queues[approach]

    # ── Statistics ────────────────────────────────────────────────────────────

    def queue_length(self, approach: ApproachId) -> int:
        return len(self._queues[approach])

    def total_waiting(self) -> int:
        return sum(len(q) for q in self._queues.values())

    def total_crossing(self) -> int:
        return sum(1 for q in self._queues.values() for v in q if v.is_crossing)

    def total_generated(self) -> int:
        return self._next_vehicle_id - 1

    def total_crossed(self) -> int:
        return len(self._crossed)

    def crossed_vehicles(self) -> List[Vehicle]:
        return list(self._crossed)

    def average_wait_time(self) -> float:
        waits = [v.wait_time() for v in self._crossed]
        waits = [w for w in waits if w is not None]
        if not waits:
            return 0.0
        return sum(waits) / len(waits)

    def average_queue_density(self, approach: ApproachId) -> float:
        return queue_density(self.queue_length(approach), self._policy)

    def lane_vehicle_states(self, approach: ApproachId) -> List[LaneVehicleState]:
        queue = self._queues[approach]
        length = len(queue)
        return [LaneVehicleState.from_vehicle(v, length, self._policy) for v in queue]

    def reset(self) -> None:
        for queue in self._queues.values():
            queue.clear()
        self._crossed.clear()
        self._cursor = {a: 0 for a in ApproachId}
        self._time_accumulated = 0.0
        self._next_vehicle_id = 1
        log.debug("Traffic reset")
