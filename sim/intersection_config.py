#!/usr/bin/env python3
"""
sim/intersection_config.py
==========================
Static description of one four-way intersection.

Defines the approach and movement enums, the immutable config records
(:class:`LaneConfig`, :class:`ApproachConfig`, :class:`SignalGroupConfig`,
:class:`LaneConnectionConfig`, :class:`IntersectionConfig`) and the
right-hand-drive geometry that maps an (approach, movement) pair to the
approach a vehicle leaves through.

Lanes are referenced by integer id everywhere; lookups go through maps
held on the config, never through object references.

:func:`make_default_intersection_config` builds the three-lane layout
used when no config has been supplied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from functools import cached_property
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

LANE_ID_STRIDE = 100


class ApproachId(IntEnum):
    """The four ingress directions; the value is the approach index."""

    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def short(self) -> str:
        return self.name[0]

    @classmethod
    def parse(cls, text: object) -> Optional["ApproachId"]:
        """Accept ``"north"``, ``"N"`` or ``"North"``; ``None`` otherwise."""
        if isinstance(text, ApproachId):
            return text
        key = str(text).strip().lower()
        for approach in cls:
            if key in (approach.label, approach.short.lower()):
                return approach
        return None


class MovementType(str, Enum):
    STRAIGHT = "straight"
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, text: object) -> Optional["MovementType"]:
        if isinstance(text, MovementType):
            return text
        key = str(text).strip().lower()
        for movement in cls:
            if movement.value == key:
                return movement
        return None


# Order in which per-approach flags and spawns are processed.
MOVE_FLAG_ORDER: Tuple[ApproachId, ...] = (
    ApproachId.NORTH,
    ApproachId.SOUTH,
    ApproachId.EAST,
    ApproachId.WEST,
)

# ── Geometry ──────────────────────────────────────────────────────────────────

_DESTINATION: Dict[Tuple[ApproachId, MovementType], ApproachId] = {
    (ApproachId.NORTH, MovementType.STRAIGHT): ApproachId.SOUTH,
    (ApproachId.NORTH, MovementType.LEFT): ApproachId.EAST,
    (ApproachId.NORTH, MovementType.RIGHT): ApproachId.WEST,
    (ApproachId.EAST, MovementType.STRAIGHT): ApproachId.WEST,
    (ApproachId.EAST, MovementType.LEFT): ApproachId.SOUTH,
    (ApproachId.EAST, MovementType.RIGHT): ApproachId.NORTH,
    (ApproachId.SOUTH, MovementType.STRAIGHT): ApproachId.NORTH,
    (ApproachId.SOUTH, MovementType.LEFT): ApproachId.WEST,
    (ApproachId.SOUTH, MovementType.RIGHT): ApproachId.EAST,
    (ApproachId.WEST, MovementType.STRAIGHT): ApproachId.EAST,
    (ApproachId.WEST, MovementType.LEFT): ApproachId.NORTH,
    (ApproachId.WEST, MovementType.RIGHT): ApproachId.SOUTH,
}

_NS = (ApproachId.NORTH, ApproachId.SOUTH)
_EW = (ApproachId.EAST, ApproachId.WEST)


def destination_approach_for(approach: ApproachId, movement: MovementType) -> ApproachId:
    """Approach a vehicle exits through, for right-hand traffic."""
    return _DESTINATION[(ApproachId(approach), MovementType(movement))]


def opposite_approach(approach: ApproachId) -> ApproachId:
    return ApproachId((int(approach) + 2) % 4)


def is_in_ns_corridor(approach: ApproachId, movement: MovementType) -> bool:
    """Both origin and destination lie on the north/south axis."""
    return approach in _NS and destination_approach_for(approach, movement) in _NS


def is_in_ew_corridor(approach: ApproachId, movement: MovementType) -> bool:
    return approach in _EW and destination_approach_for(approach, movement) in _EW


def lane_id_for(approach: ApproachId, lane_index: int) -> int:
    """Conventional lane id: ``approach_index * 100 + lane_index``."""
    return int(approach) * LANE_ID_STRIDE + int(lane_index)


def _unique(items: Iterable) -> tuple:
    seen: List = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


# ── Config records ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LaneConfig:
    """One incoming lane of an approach.

    ``has_traffic_light`` is forced to ``False`` for a lane that is not
    connected to the intersection box.
    """

    id: int
    name: str = ""
    allowed_movements: Tuple[MovementType, ...] = (MovementType.STRAIGHT,)
    supports_lane_change: bool = True
    connected_to_intersection: bool = True
    has_traffic_light: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_movements", _unique(self.allowed_movements))
        if not self.connected_to_intersection:
            object.__setattr__(self, "has_traffic_light", False)

    def allows(self, movement: MovementType) -> bool:
        return movement in self.allowed_movements


@dataclass(frozen=True)
class ApproachConfig:
    id: ApproachId
    name: str = ""
    lanes: Tuple[LaneConfig, ...] = ()
    to_lane_count: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lanes", tuple(self.lanes))

    @property
    def effective_to_lane_count(self) -> int:
        """Outgoing lane count; falls back to the incoming lane count, then 1."""
        if self.to_lane_count is not None and self.to_lane_count > 0:
            return int(self.to_lane_count)
        return len(self.lanes) or 1

    def connected_lane_indices(self) -> List[int]:
        return [i for i, lane in enumerate(self.lanes) if lane.connected_to_intersection]


@dataclass(frozen=True)
class SignalGroupConfig:
    """Lanes that receive a common set of green movements during one phase."""

    id: int
    name: str = ""
    controlled_lanes: Tuple[int, ...] = ()
    green_movements: Tuple[MovementType, ...] = ()
    min_green_seconds: float = 10.0
    orange_seconds: float = 2.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "controlled_lanes", tuple(self.controlled_lanes))
        object.__setattr__(self, "green_movements", _unique(self.green_movements))


@dataclass(frozen=True)
class LaneConnectionConfig:
    from_approach: ApproachId
    from_lane_index: int
    movement: MovementType
    to_approach: ApproachId
    to_lane_index: int


@dataclass(frozen=True)
class IntersectionConfig:
    """Four approaches plus optional signal groups and lane connections.

    Immutable after construction.  Validity is judged by
    :class:`~sim.safety_kernel.SafetyKernel`, not here.
    """

    approaches: Tuple[ApproachConfig, ...] = ()
    signal_groups: Tuple[SignalGroupConfig, ...] = ()
    lane_connections: Tuple[LaneConnectionConfig, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "approaches", tuple(self.approaches))
        object.__setattr__(self, "signal_groups", tuple(self.signal_groups))
        object.__setattr__(self, "lane_connections", tuple(self.lane_connections))

    # ── lookups ───────────────────────────────────────────────────────────

    @cached_property
    def _approach_map(self) -> Dict[ApproachId, ApproachConfig]:
        out: Dict[ApproachId, ApproachConfig] = {}
        for approach in self.approaches:
            out.setdefault(approach.id, approach)
        return out

    @cached_property
    def _lane_map(self) -> Dict[int, Tuple[ApproachId, int, LaneConfig]]:
        out: Dict[int, Tuple[ApproachId, int, LaneConfig]] = {}
        for approach in self.approaches:
            for index, lane in enumerate(approach.lanes):
                out.setdefault(lane.id, (approach.id, index, lane))
        return out

    @cached_property
    def _group_map(self) -> Dict[int, SignalGroupConfig]:
        out: Dict[int, SignalGroupConfig] = {}
        for group in self.signal_groups:
            out.setdefault(group.id, group)
        return out

    @property
    def has_signal_groups(self) -> bool:
        return bool(self.signal_groups)

    def approach(self, approach_id: ApproachId) -> Optional[ApproachConfig]:
        return self._approach_map.get(approach_id)

    def lane(self, lane_id: int) -> Optional[LaneConfig]:
        entry = self._lane_map.get(lane_id)
        return entry[2] if entry else None

    def lane_approach(self, lane_id: int) -> Optional[ApproachId]:
        entry = self._lane_map.get(lane_id)
        return entry[0] if entry else None

    def lane_index(self, lane_id: int) -> Optional[int]:
        entry = self._lane_map.get(lane_id)
        return entry[1] if entry else None

    def lane_ids(self) -> List[int]:
        return [lane.id for approach in self.approaches for lane in approach.lanes]

    def signal_group(self, group_id: int) -> Optional[SignalGroupConfig]:
        return self._group_map.get(group_id)

    def find_connection(
        self,
        from_approach: ApproachId,
        from_lane_index: int,
        movement: MovementType,
    ) -> Optional[LaneConnectionConfig]:
        for conn in self.lane_connections:
            if (
                conn.from_approach == from_approach
                and conn.from_lane_index == from_lane_index
                and conn.movement == movement
            ):
                return conn
        return None


# ── Defaults ──────────────────────────────────────────────────────────────────

def default_lane_connections(
    approaches: Sequence[ApproachConfig],
) -> Tuple[LaneConnectionConfig, ...]:
    """Geometric connection for every allowed movement of every lane.

    The target lane keeps the source index, clamped to the destination
    approach's outgoing lane count.
    """
    by_id = {a.id: a for a in approaches}
    out: List[LaneConnectionConfig] = []
    for approach in approaches:
        for index, lane in enumerate(approach.lanes):
            for movement in lane.allowed_movements:
                dest = destination_approach_for(approach.id, movement)
                dest_cfg = by_id.get(dest)
                count = dest_cfg.effective_to_lane_count if dest_cfg else 1
                out.append(
                    LaneConnectionConfig(
                        from_approach=approach.id,
                        from_lane_index=index,
                        movement=movement,
                        to_approach=dest,
                        to_lane_index=min(index, count - 1),
                    )
                )
    return tuple(out)


def make_default_intersection_config() -> IntersectionConfig:
    """Three lanes per approach: two straight lanes and one right-turn lane."""
    approaches = []
    for approach in ApproachId:
        lanes = [
            LaneConfig(
                id=lane_id_for(approach, index),
                name=f"{approach.short}-{index}",
                allowed_movements=(movement,),
            )
            for index, movement in enumerate(
                (MovementType.STRAIGHT, MovementType.STRAIGHT, MovementType.RIGHT)
            )
        ]
        approaches.append(
            ApproachConfig(id=approach, name=approach.label, lanes=tuple(lanes), to_lane_count=3)
        )
    return IntersectionConfig(
        approaches=tuple(approaches),
        signal_groups=(),
        lane_connections=default_lane_connections(approaches),
    )
