"""
ui/geometry.py
==============
Pure layout maths for the intersection viewer.  Nothing here imports
pygame, so it is unit-tested without a display.

World frame: metres, origin at the intersection centre, x east, y north.
Traffic drives on the right.  Each approach has an inbound direction of
travel and a "right" vector; incoming lane 0 sits next to the centre
line and higher indices move outwards.  Outgoing lanes mirror that on
the other side of the centre line of the exit arm.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from sim.intersection_config import (
    LANE_ID_STRIDE,
    ApproachId,
    IntersectionConfig,
)
from sim.safety_kernel import through_signal_for, turn_signal_for
from sim.traffic_policy import STOP_LINE
from sim.vehicle import LaneVehicleState
from ui.constants import ARM_MARGIN_M, LANE_WIDTH_M, SIGNAL_OFFSET_M
from ui.types import Vec2, VehiclePose

# Direction of travel for a vehicle entering from each approach.
_INBOUND: Dict[ApproachId, Vec2] = {
    ApproachId.NORTH: (0.0, -1.0),
    ApproachId.EAST: (-1.0, 0.0),
    ApproachId.SOUTH: (0.0, 1.0),
    ApproachId.WEST: (1.0, 0.0),
}


def inbound_direction(approach: ApproachId) -> Vec2:
    return _INBOUND[ApproachId(approach)]


def right_of(direction: Vec2) -> Vec2:
    """Unit vector to the right of *direction* (y up)."""
    return (direction[1], -direction[0])


def heading_deg(direction: Vec2) -> float:
    """Heading of *direction* in degrees, 0 = east, counter-clockwise."""
    return math.degrees(math.atan2(direction[1], direction[0])) % 360.0


def _add(a: Vec2, b: Vec2, scale: float = 1.0) -> Vec2:
    return (a[0] + b[0] * scale, a[1] + b[1] * scale)


def box_half_size(config: IntersectionConfig) -> float:
    """Half the side of the square junction box.

    Wide enough for the busiest arm's incoming plus outgoing lanes.
    """
    widest = 1
    for approach in config.approaches:
        widest = max(widest, len(approach.lanes), approach.effective_to_lane_count)
    return widest * LANE_WIDTH_M


def arm_length(stop_line_m: float = STOP_LINE) -> float:
    return stop_line_m + ARM_MARGIN_M


def world_extent(config: IntersectionConfig, stop_line_m: float = STOP_LINE) -> float:
    """Distance from the centre to the far end of every arm."""
    return box_half_size(config) + arm_length(stop_line_m)


def fit_zoom(screen_w: int, screen_h: int, extent_m: float) -> float:
    """Pixels per metre so the whole junction fits the smaller screen side."""
    if extent_m <= 0:
        return 1.0
    return max(0.1, min(screen_w, screen_h) / (2.0 * extent_m))


# ── Lanes ────────────────────────────────────────────────────────────────────


def incoming_lane_point(
    approach: ApproachId,
    lane_index: int,
    position_m: float,
    box_half: float,
    stop_line_m: float = STOP_LINE,
) -> Vec2:
    """World point of a vehicle *position_m* metres along an incoming lane.

    Position 0 is the far end of the arm; ``stop_line_m`` is the stop line
    at the edge of the junction box.
    """
    d = inbound_direction(approach)
    r = right_of(d)
    back = box_half + max(0.0, stop_line_m - position_m)
    centre = (-d[0] * back, -d[1] * back)
    return _add(centre, r, (lane_index + 0.5) * LANE_WIDTH_M)


def outgoing_lane_point(
    approach: ApproachId,
    lane_index: int,
    distance_m: float,
    box_half: float,
) -> Vec2:
    """World point *distance_m* past the box edge on an exit arm."""
    d = inbound_direction(approach)
    e = (-d[0], -d[1])
    out = box_half + max(0.0, distance_m)
    centre = (e[0] * out, e[1] * out)
    return _add(centre, right_of(e), (lane_index + 0.5) * LANE_WIDTH_M)


def stop_line_segment(approach: ApproachId, lane_count: int, box_half: float) -> Tuple[Vec2, Vec2]:
    """Both ends of the stop line across an approach's incoming lanes."""
    d = inbound_direction(approach)
    r = right_of(d)
    centre = (-d[0] * box_half, -d[1] * box_half)
    return centre, _add(centre, r, max(1, lane_count) * LANE_WIDTH_M)


# ── Crossing paths ───────────────────────────────────────────────────────────


def _bezier(p0: Vec2, c: Vec2, p1: Vec2, t: float) -> Vec2:
    u = 1.0 - t
    return (
        u * u * p0[0] + 2 * u * t * c[0] + t * t * p1[0],
        u * u * p0[1] + 2 * u * t * c[1] + t * t * p1[1],
    )


def crossing_path_point(
    from_approach: ApproachId,
    from_lane_index: int,
    to_approach: ApproachId,
    to_lane_index: int,
    progress: float,
    box_half: float,
) -> Tuple[Vec2, float]:
    """Point and heading at *progress* (0..1) through the junction.

    Straight crossings are a line; turns follow a quadratic curve whose
    control point is where the entry and exit lane centre lines meet.
    """
    t = min(1.0, max(0.0, progress))
    d = inbound_direction(from_approach)
    e = (-inbound_direction(to_approach)[0], -inbound_direction(to_approach)[1])
    p0 = incoming_lane_point(from_approach, from_lane_index, STOP_LINE, box_half)
    p1 = outgoing_lane_point(to_approach, to_lane_index, 0.0, box_half)

    if abs(d[0] * e[0] + d[1] * e[1]) > 0.5:
        point = (p0[0] + (p1[0] - p0[0]) * t, p0[1] + (p1[1] - p0[1]) * t)
        return point, heading_deg(d)

    along = (p1[0] - p0[0]) * d[0] + (p1[1] - p0[1]) * d[1]
    control = _add(p0, d, along)
    point = _bezier(p0, control, p1, t)
    tangent = (
        2 * (1 - t) * (control[0] - p0[0]) + 2 * t * (p1[0] - control[0]),
        2 * (1 - t) * (control[1] - p0[1]) + 2 * t * (p1[1] - control[1]),
    )
    if tangent == (0.0, 0.0):
        tangent = d
    return point, heading_deg(tangent)


def crossing_progress(sim_time: float, crossing_time: float, duration: float) -> float:
    if crossing_time < 0 or duration <= 0:
        return 0.0
    return min(1.0, max(0.0, (sim_time - crossing_time) / duration))


def lane_index_of(config: IntersectionConfig, lane_id: int) -> int:
    index = config.lane_index(lane_id)
    if index is None:
        return max(0, int(lane_id) % LANE_ID_STRIDE)
    return index


def vehicle_pose(
    config: IntersectionConfig,
    approach: ApproachId,
    vehicle: LaneVehicleState,
    sim_time: float,
    box_half: Optional[float] = None,
    stop_line_m: float = STOP_LINE,
) -> VehiclePose:
    """Screen-independent pose of one vehicle from a snapshot record."""
    if box_half is None:
        box_half = box_half_size(config)
    lane_index = lane_index_of(config, vehicle.lane_id)
    if vehicle.crossing:
        progress = crossing_progress(sim_time, vehicle.crossing_time, vehicle.crossing_duration)
        (x, y), heading = crossing_path_point(
            approach,
            lane_index,
            vehicle.destination_approach,
            max(0, vehicle.destination_lane_index),
            progress,
            box_half,
        )
        return VehiclePose(vehicle.id, x, y, heading, crossing=True)

    x, y = incoming_lane_point(approach, lane_index, vehicle.position, box_half, stop_line_m)
    return VehiclePose(vehicle.id, x, y, heading_deg(inbound_direction(approach)))


def vehicle_poses(
    config: IntersectionConfig,
    lanes: Dict[str, List[LaneVehicleState]],
    sim_time: float,
) -> List[VehiclePose]:
    box_half = box_half_size(config)
    poses = []
    for approach in ApproachId:
        for vehicle in lanes.get(approach.label, []):
            poses.append(vehicle_pose(config, approach, vehicle, sim_time, box_half))
    return poses


# ── Signal heads ─────────────────────────────────────────────────────────────


def signal_head_positions(config: IntersectionConfig) -> Dict[str, Vec2]:
    """World position of each of the eight signal heads.

    Each approach's through head stands just outside its outermost
    incoming lane at the stop line; the right-turn head sits one head
    further back along the arm.
    """
    box_half = box_half_size(config)
    out: Dict[str, Vec2] = {}
    for approach in ApproachId:
        cfg = config.approach(approach)
        lanes = len(cfg.lanes) if cfg is not None else 1
        d = inbound_direction(approach)
        r = right_of(d)
        base = (-d[0] * (box_half + SIGNAL_OFFSET_M), -d[1] * (box_half + SIGNAL_OFFSET_M))
        through = _add(base, r, lanes * LANE_WIDTH_M + SIGNAL_OFFSET_M)
        out[through_signal_for(approach)] = through
        out[turn_signal_for(approach)] = _add(through, d, -2 * SIGNAL_OFFSET_M)
    return out
