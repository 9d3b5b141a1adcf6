"""
api/schemas.py
==============
JSON codec for :class:`~sim.intersection_config.IntersectionConfig`.

The wire shape is described by pydantic models; on top of the shape
check, :func:`config_from_json` resolves approach names, movements and
lane references and collects every problem as a readable string instead
of raising.

Wire format::

    {
      "approaches": [
        {"id": "north", "name": "...", "to_lane_count": 3,
         "lanes": [{"id": 0, "index": 0, "name": "N-0",
                    "allowed_movements": ["straight"],
                    "supports_lane_change": true,
                    "connected_to_intersection": true,
                    "has_traffic_light": true}]},
        ...
      ],
      "signal_groups": [
        {"id": 1, "name": "group-1", "controlled_lanes": [0, 200],
         "green_movements": ["straight"],
         "min_green_seconds": 10, "orange_seconds": 2}
      ],
      "lane_connections": [
        {"from_approach": "north", "from_lane_index": 0, "movement": "straight",
         "to_approach": "south", "to_lane_index": 0}
      ]
    }

Lane ids are always reassigned from position (``approach_index * 100 +
lane_index``); the ``id`` / ``index`` fields on input are ignored.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sim.intersection_config import (
    ApproachConfig,
    ApproachId,
    IntersectionConfig,
    LaneConfig,
    LaneConnectionConfig,
    MovementType,
    SignalGroupConfig,
    default_lane_connections,
    lane_id_for,
)

MAX_TO_LANE_COUNT = 64

# ── Pydantic wire schemas ────────────────────────────────────────────────────


class LaneModel(BaseModel):
    """One lane entry inside an approach."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    index: Optional[int] = None
    name: Optional[str] = None
    allowed_movements: List[str]
    supports_lane_change: bool = True
    connected_to_intersection: bool = True
    has_traffic_light: bool = True


class ApproachModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    to_lane_count: Optional[int] = Field(default=None, ge=0)
    lanes: List[LaneModel]


class SignalGroupModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int = Field(ge=0)
    name: Optional[str] = None
    controlled_lanes: List[int]
    green_movements: List[str]
    min_green_seconds: float = 10.0
    orange_seconds: float = 2.0


class LaneConnectionModel(BaseModel):
    """Lanes may be referenced by (approach, index) or by lane id."""
    model_config = ConfigDict(extra="ignore")

    from_approach: Optional[str] = None
    from_lane_index: Optional[int] = Field(default=None, ge=0)
    from_lane_id: Optional[int] = Field(default=None, ge=0)
    movement: str
    to_approach: Optional[str] = None
    to_lane_index: Optional[int] = Field(default=None, ge=0)
    to_lane_id: Optional[int] = Field(default=None, ge=0)


class IntersectionConfigModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    approaches: List[ApproachModel]
    signal_groups: List[SignalGroupModel] = Field(default_factory=list)
    lane_connections: Optional[List[LaneConnectionModel]] = None


class CommandResponse(BaseModel):
    ok: bool = True
    command: str
    recognized: bool


class ConfigRejection(BaseModel):
    ok: bool = False
    errors: List[str]


# ── Parse result ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConfigParseResult:
    ok: bool
    config: Optional[IntersectionConfig] = None
    errors: List[str] = field(default_factory=list)


def _format_validation_error(exc: ValidationError) -> List[str]:
    out = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        out.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else err.get("msg", ""))
    return out


def _resolve_lane(
    approaches: Dict[ApproachId, ApproachConfig],
    approach_name: Optional[str],
    lane_index: Optional[int],
    lane_id: Optional[int],
) -> Optional[Tuple[ApproachId, int]]:
    if approach_name is not None and lane_index is not None:
        approach = ApproachId.parse(approach_name)
        if approach is None:
            return None
        return approach, lane_index
    if lane_id is not None:
        for approach in approaches.values():
            for index, lane in enumerate(approach.lanes):
                if lane.id == lane_id:
                    return approach.id, index
    return None


def config_from_json(text: str) -> ConfigParseResult:
    """Parse and validate a config document; never raises."""
    try:
        root = json.loads(text)
    except (TypeError, ValueError) as exc:
        return ConfigParseResult(ok=False, errors=[f"invalid JSON: {exc}"])
    return config_from_dict(root)


def config_from_dict(root: Any) -> ConfigParseResult:
    if not isinstance(root, dict):
        return ConfigParseResult(ok=False, errors=["root must be an object"])
    if not isinstance(root.get("approaches"), list):
        return ConfigParseResult(ok=False, errors=["approaches must be an array"])
    if len(root["approaches"]) != 4:
        return ConfigParseResult(ok=False, errors=["approaches must contain exactly 4 entries"])

    try:
        model = IntersectionConfigModel.model_validate(root)
    except ValidationError as exc:
        return ConfigParseResult(ok=False, errors=_format_validation_error(exc))

    errors: List[str] = []
    approaches: Dict[ApproachId, ApproachConfig] = {}

    for approach_model in model.approaches:
        approach_id = ApproachId.parse(approach_model.id)
        if approach_id is None:
            errors.append(f"unknown approach id: {approach_model.id}")
            continue
        if approach_id in approaches:
            errors.append(f"duplicate approach id: {approach_model.id}")
            continue

        lanes: List[LaneConfig] = []
        for index, lane_model in enumerate(approach_model.lanes):
            lane_id = lane_id_for(approach_id, index)
            movements: List[MovementType] = []
            for value in lane_model.allowed_movements:
                movement = MovementType.parse(value)
                if movement is None:
                    errors.append(f"lane {lane_id} unknown movement: {value}")
                    continue
                movements.append(movement)
            lanes.append(
                LaneConfig(
                    id=lane_id,
                    name=lane_model.name or f"{approach_id.short}-{index}",
                    allowed_movements=tuple(movements),
                    supports_lane_change=lane_model.supports_lane_change,
                    connected_to_intersection=lane_model.connected_to_intersection,
                    has_traffic_light=lane_model.has_traffic_light,
                )
            )

        to_lane_count = approach_model.to_lane_count
        if to_lane_count:
            to_lane_count = min(to_lane_count, MAX_TO_LANE_COUNT)
        else:
            to_lane_count = len(lanes) or 1
        approaches[approach_id] = ApproachConfig(
            id=approach_id,
            name=approach_model.name or approach_id.label,
            lanes=tuple(lanes),
            to_lane_count=to_lane_count,
        )

    for approach_id in ApproachId:
        if approach_id not in approaches:
            errors.append("missing approach entry")

    groups: List[SignalGroupConfig] = []
    seen_groups = set()
    for group_model in model.signal_groups:
        if group_model.id in seen_groups:
            errors.append(f"duplicate signal_group id: {group_model.id}")
        seen_groups.add(group_model.id)
        movements = []
        for value in group_model.green_movements:
            movement = MovementType.parse(value)
            if movement is None:
                errors.append(f"signal_group {group_model.id} unknown movement: {value}")
                continue
            movements.append(movement)
        groups.append(
            SignalGroupConfig(
                id=group_model.id,
                name=group_model.name or f"group-{group_model.id}",
                controlled_lanes=tuple(group_model.controlled_lanes),
                green_movements=tuple(movements),
                min_green_seconds=group_model.min_green_seconds,
                orange_seconds=group_model.orange_seconds,
            )
        )

    ordered = [approaches[a] for a in ApproachId if a in approaches]
    if model.lane_connections is None:
        connections = default_lane_connections(ordered)
    else:
        connections = tuple(_parse_connections(model.lane_connections, approaches, errors))

    if errors:
        return ConfigParseResult(ok=False, errors=errors)
    config = IntersectionConfig(
        approaches=tuple(ordered),
        signal_groups=tuple(groups),
        lane_connections=connections,
    )
    return ConfigParseResult(ok=True, config=config)


def _parse_connections(
    models: List[LaneConnectionModel],
    approaches: Dict[ApproachId, ApproachConfig],
    errors: List[str],
) -> List[LaneConnectionConfig]:
    out: List[LaneConnectionConfig] = []
    for conn in models:
        source = _resolve_lane(approaches, conn.from_approach, conn.from_lane_index, conn.from_lane_id)
        if source is None:
            errors.append("lane_connection has invalid source lane reference")
            continue
        movement = MovementType.parse(conn.movement)
        if movement is None:
            errors.append("lane_connection has unknown movement")
            continue
        target = _resolve_lane(approaches, conn.to_approach, conn.to_lane_index, conn.to_lane_id)
        if target is None:
            errors.append("lane_connection has invalid target lane reference")
            continue

        from_cfg = approaches.get(source[0])
        to_cfg = approaches.get(target[0])
        if (
            from_cfg is None
            or to_cfg is None
            or source[1] >= len(from_cfg.lanes)
            or target[1] >= to_cfg.effective_to_lane_count
        ):
            errors.append("lane_connection references lane index outside configured range")
            continue
        out.append(
            LaneConnectionConfig(
                from_approach=source[0],
                from_lane_index=source[1],
                movement=movement,
                to_approach=target[0],
                to_lane_index=target[1],
            )
        )
    return out


# ── Serialisation ────────────────────────────────────────────────────────────


def config_to_model(config: IntersectionConfig) -> IntersectionConfigModel:
    approaches = []
    for approach in config.approaches:
        approaches.append(
            ApproachModel(
                id=approach.id.label,
                name=approach.name or approach.id.label,
                to_lane_count=approach.effective_to_lane_count,
                lanes=[
                    LaneModel(
                        id=lane.id,
                        index=index,
                        name=lane.name,
                        allowed_movements=[m.value for m in lane.allowed_movements],
                        supports_lane_change=lane.supports_lane_change,
                        connected_to_intersection=lane.connected_to_intersection,
                        has_traffic_light=lane.has_traffic_light,
                    )
                    for index, lane in enumerate(approach.lanes)
                ],
            )
        )
    groups = [
        SignalGroupModel(
            id=group.id,
            name=group.name,
            controlled_lanes=list(group.controlled_lanes),
            green_movements=[m.value for m in group.green_movements],
            min_green_seconds=group.min_green_seconds,
            orange_seconds=group.orange_seconds,
        )
        for group in config.signal_groups
    ]
    connections = [
        LaneConnectionModel(
            from_approach=conn.from_approach.label,
            from_lane_index=conn.from_lane_index,
            from_lane_id=lane_id_for(conn.from_approach, conn.from_lane_index),
            movement=conn.movement.value,
            to_approach=conn.to_approach.label,
            to_lane_index=conn.to_lane_index,
            to_lane_id=lane_id_for(conn.to_approach, conn.to_lane_index),
        )
        for conn in config.lane_connections
    ]
    return IntersectionConfigModel(
        approaches=approaches, signal_groups=groups, lane_connections=connections
    )


def config_to_dict(config: IntersectionConfig) -> Dict[str, Any]:
    return config_to_model(config).model_dump()


def config_to_json(config: IntersectionConfig) -> str:
    return config_to_model(config).model_dump_json()
