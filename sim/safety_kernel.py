#!/usr/bin/env python3
"""
sim/safety_kernel.py
====================
Pure safety predicates over :class:`~sim.lights.IntersectionState` values.

The kernel answers three questions:

* :meth:`SafetyKernel.is_safe`: is a static light pattern free of
  conflicting greens and hostile right-turn combinations?
* :meth:`SafetyKernel.is_valid_transition`: does ``prev → next`` follow
  the Green → Orange → Red → Green protocol and the minimum amber dwell?
* :meth:`SafetyKernel.are_signal_groups_conflict_free`: can a set of
  configured signal groups be active together?

The only state held is an immutable config snapshot and the result of
validating it once at construction.  Every predicate is total: malformed
input yields ``False`` and nothing is raised.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from sim.intersection_config import (
    ApproachId,
    IntersectionConfig,
    MovementType,
    destination_approach_for,
    is_in_ew_corridor,
    is_in_ns_corridor,
    make_default_intersection_config,
    opposite_approach,
)
from sim.lights import (
    THROUGH_SIGNALS,
    IntersectionState,
    LightColor,
    is_active,
)
from sim.traffic_policy import ORANGE_DURATION

log = logging.getLogger("safety")

MAX_LANE_ID = 0xFFFF

# Right-turn signal guarded by each through signal: the turn may not be
# Green while the through signal it crosses into is active.
TURN_GUARDS: Tuple[Tuple[str, str], ...] = (
    ("turn_south_east", "west"),
    ("turn_north_west", "east"),
    ("turn_west_south", "north"),
    ("turn_east_north", "south"),
)

_TURN_SIGNAL_FOR: dict = {
    ApproachId.NORTH: "turn_north_west",
    ApproachId.EAST: "turn_east_north",
    ApproachId.SOUTH: "turn_south_east",
    ApproachId.WEST: "turn_west_south",
}

_ALLOWED_EDGES = {
    (LightColor.GREEN, LightColor.ORANGE),
    (LightColor.ORANGE, LightColor.RED),
    (LightColor.RED, LightColor.GREEN),
}

_NS_SIGNALS = ("north", "south")
_EW_SIGNALS = ("east", "west")


def through_signal_for(approach: ApproachId) -> str:
    return ApproachId(approach).label


def turn_signal_for(approach: ApproachId) -> str:
    """Right-turn signal releasing the right turn out of *approach*."""
    return _TURN_SIGNAL_FOR[ApproachId(approach)]


def signal_name_for(approach: ApproachId, movement: MovementType) -> str:
    """Signal that governs *movement* from *approach*.

    Straight and Left follow the through signal; Right follows the
    approach's right-turn signal.
    """
    if movement == MovementType.RIGHT:
        return turn_signal_for(approach)
    return through_signal_for(approach)


def is_color_edge_allowed(prev: LightColor, nxt: LightColor) -> bool:
    return prev == nxt or (prev, nxt) in _ALLOWED_EDGES


def config_errors(config: IntersectionConfig) -> List[str]:
    """Every structural problem with *config*; empty when it is valid."""
    errors: List[str] = []
    approach_ids = [a.id for a in config.approaches]
    if len(approach_ids) != 4 or set(approach_ids) != set(ApproachId):
        errors.append("config must contain exactly one approach per direction")

    seen_lanes: Set[int] = set()
    for approach in config.approaches:
        if not approach.lanes:
            errors.append(f"approach {approach.id.label} has no lanes")
        for lane in approach.lanes:
            if not lane.allowed_movements:
                errors.append(f"lane {lane.id} has no allowed movements")
            if not isinstance(lane.id, int) or not 0 <= lane.id <= MAX_LANE_ID:
                errors.append(f"lane id out of range: {lane.id}")
            if lane.id in seen_lanes:
                errors.append(f"duplicate lane id: {lane.id}")
            seen_lanes.add(lane.id)

    seen_groups: Set[int] = set()
    for group in config.signal_groups:
        if group.id in seen_groups:
            errors.append(f"duplicate signal_group id: {group.id}")
        seen_groups.add(group.id)
        if not group.controlled_lanes:
            errors.append(f"signal group {group.id} controls no lanes")
        if not group.green_movements:
            errors.append(f"signal group {group.id} has no green movements")
        for lane_id in group.controlled_lanes:
            if lane_id not in seen_lanes:
                errors.append(f"signal group {group.id} references unknown lane {lane_id}")
    return errors


class SafetyKernel:
    """Safety predicates bound to one :class:`IntersectionConfig`.

    Parameters
    ----------
    config : IntersectionConfig or None
        Config used by the signal-group checks.  ``None`` selects
        :func:`~sim.intersection_config.make_default_intersection_config`.
    """

    def __init__(self, config: Optional[IntersectionConfig] = None) -> None:
        self._config = config if config is not None else make_default_intersection_config()
        self._config_errors = config_errors(self._config)
        if self._config_errors:
            log.warning("Intersection config rejected: %s", "; ".join(self._config_errors))

    @property
    def config(self) -> IntersectionConfig:
        return self._config

    @property
    def config_errors(self) -> List[str]:
        return list(self._config_errors)

    def is_config_valid(self) -> bool:
        return not self._config_errors

    # ── Static pattern ────────────────────────────────────────────────────────

    def safety_violations(self, state: IntersectionState) -> List[str]:
        """Names of the rules *state* breaks; empty when it is safe."""
        if not isinstance(state, IntersectionState):
            return ["malformed_state"]
        out: List[str] = []
        ns_green = LightColor.GREEN in (state.north, state.south)
        ew_green = LightColor.GREEN in (state.east, state.west)
        if ns_green and ew_green:
            out.append("conflicting_greens")
        if self._turn_guard_broken(state):
            out.append("turn_light_conflict")
        return out

    def is_safe(self, state: IntersectionState) -> bool:
        return not self.safety_violations(state)

    @staticmethod
    def _turn_guard_broken(state: IntersectionState) -> bool:
        for turn, through in TURN_GUARDS:
            if getattr(state, turn) == LightColor.GREEN and is_active(getattr(state, through)):
                return True
        return False

    # ── Transitions ───────────────────────────────────────────────────────────

    def transition_violations(
        self,
        prev: IntersectionState,
        nxt: IntersectionState,
        dt: float,
    ) -> List[str]:
        """Names of the transition rules ``prev → nxt`` over *dt* breaks."""
        if not isinstance(prev, IntersectionState) or not isinstance(nxt, IntersectionState):
            return ["malformed_state"]
        try:
            dt = float(dt)
        except (TypeError, ValueError):
            return ["malformed_dt"]

        out: List[str] = []
        before = prev.signals()
        after = nxt.signals()

        if not all(is_color_edge_allowed(before[name], after[name]) for name in before):
            out.append("invalid_color_edge")

        amber_ended = any(
            before[name] == LightColor.ORANGE and after[name] == LightColor.RED
            for name in before
        )
        if amber_ended and not dt >= ORANGE_DURATION:
            out.append("orange_dwell")

        if not self.is_safe(nxt):
            out.append("unsafe_next")

        if self._corridor_guard_broken(prev, nxt):
            out.append("corridor_activation")

        if self._turn_guard_broken(nxt):
            out.append("turn_guard")
        return out

    def is_valid_transition(
        self,
        prev: IntersectionState,
        nxt: IntersectionState,
        dt: float,
    ) -> bool:
        return not self.transition_violations(prev, nxt, dt)

    @staticmethod
    def _corridor_guard_broken(prev: IntersectionState, nxt: IntersectionState) -> bool:
        def going_green(names: Sequence[str]) -> bool:
            return any(
                getattr(prev, n) != LightColor.GREEN and getattr(nxt, n) == LightColor.GREEN
                for n in names
            )

        def any_active(names: Sequence[str]) -> bool:
            return any(is_active(getattr(nxt, n)) for n in names)

        if going_green(_NS_SIGNALS) and any_active(_EW_SIGNALS):
            return True
        if going_green(_EW_SIGNALS) and any_active(_NS_SIGNALS):
            return True
        return False

    # ── Signal groups ─────────────────────────────────────────────────────────

    @staticmethod
    def has_movement_conflict(
        from_a: ApproachId,
        move_a: MovementType,
        from_b: ApproachId,
        move_b: MovementType,
    ) -> bool:
        """True when the two movements may not run at the same time."""
        if from_a == from_b:
            return move_a != move_b
        if destination_approach_for(from_a, move_a) == destination_approach_for(from_b, move_b):
            return True
        if (
            from_b == opposite_approach(from_a)
            and move_a == MovementType.LEFT
            and move_b == MovementType.LEFT
        ):
            return True
        a_ns, a_ew = is_in_ns_corridor(from_a, move_a), is_in_ew_corridor(from_a, move_a)
        b_ns, b_ew = is_in_ns_corridor(from_b, move_b), is_in_ew_corridor(from_b, move_b)
        if (a_ns and b_ew) or (a_ew and b_ns):
            if MovementType.STRAIGHT in (move_a, move_b):
                return True
        return False

    def are_signal_groups_conflict_free(self, active_group_ids: Iterable[int]) -> bool:
        """Fails closed on an invalid config, unknown group or unknown lane."""
        if not self.is_config_valid():
            return False
        try:
            group_ids = list(active_group_ids)
        except TypeError:
            return False

        movements: List[Tuple[ApproachId, MovementType]] = []
        for group_id in group_ids:
            group = self._config.signal_group(group_id)
            if group is None:
                return False
            for lane_id in group.controlled_lanes:
                approach = self._config.lane_approach(lane_id)
                if approach is None:
                    return False
                movements.extend((approach, m) for m in group.green_movements)

        for i, (from_a, move_a) in enumerate(movements):
            for from_b, move_b in movements[i + 1:]:
                if self.has_movement_conflict(from_a, move_a, from_b, move_b):
                    return False
        return True

    def active_signal_groups(self, state: IntersectionState) -> List[int]:
        """Ids of signal groups whose governed signals are active in *state*.

        A group is included when any (approach, movement) it covers has
        its governing signal at Green or Orange.
        """
        if not isinstance(state, IntersectionState):
            return []
        active: List[int] = []
        for group in self._config.signal_groups:
            approaches = {
                self._config.lane_approach(lane_id) for lane_id in group.controlled_lanes
            }
            approaches.discard(None)
            if any(
                is_active(getattr(state, signal_name_for(approach, movement)))
                for approach in approaches
                for movement in group.green_movements
            ):
                if group.id not in active:
                    active.append(group.id)
        return active


__all__ = [
    "SafetyKernel",
    "THROUGH_SIGNALS",
    "TURN_GUARDS",
    "config_errors",
    "is_color_edge_allowed",
    "signal_name_for",
    "through_signal_for",
    "turn_signal_for",
]
