"""
ui/draw_road.py
===============
Renders the static junction and its signals:
  grass background, the four road arms, the junction box, lane
  markings, stop lines, and the eight signal heads.

All functions are *pure renderers*: they read data and draw to a surface.
"""

from __future__ import annotations

from typing import List, Sequence

import pygame

from sim.intersection_config import ApproachId, IntersectionConfig
from sim.lights import IntersectionState, LightColor
from ui.constants import (
    COLOR_GRASS, COLOR_ROAD, COLOR_ROAD_EDGE, COLOR_INTERSECTION,
    COLOR_LANE_WHITE, COLOR_STOP_WHITE,
    COLOR_LIGHT_OFF, COLOR_LIGHT_HOUSING,
    LANE_WIDTH_M, DASH_LEN, DASH_GAP, LIGHT_RGB,
)
from ui.geometry import (
    arm_length,
    box_half_size,
    inbound_direction,
    right_of,
    signal_head_positions,
    stop_line_segment,
)
from ui.types import Camera, Vec2

_BULB_ORDER = (LightColor.RED, LightColor.ORANGE, LightColor.GREEN)


# ══════════════════════════════════════════════════════════════════════════════
#  PUBLIC  draw_map(): single entry point for the static layer
# ══════════════════════════════════════════════════════════════════════════════

def draw_map(screen: pygame.Surface, camera: Camera, config: IntersectionConfig) -> None:
    """Draw grass, arms, box, lane markings and stop lines in z-order."""
    box_half = box_half_size(config)
    screen.fill(COLOR_GRASS)

    for approach in ApproachId:
        _draw_arm(screen, camera, config, approach, box_half)

    _draw_polygon(
        screen, camera, COLOR_INTERSECTION,
        [(-box_half, -box_half), (box_half, -box_half),
         (box_half, box_half), (-box_half, box_half)],
    )

    for approach in ApproachId:
        _draw_lane_markings(screen, camera, config, approach, box_half)
        _draw_stop_line(screen, camera, config, approach, box_half)


def draw_signals(
    screen: pygame.Surface,
    camera: Camera,
    config: IntersectionConfig,
    lights: IntersectionState,
) -> None:
    """Draw all eight signal heads in their current colours."""
    colors = lights.signals()
    for name, (wx, wy) in signal_head_positions(config).items():
        sx, sy = camera.world_to_screen(wx, wy)
        _draw_single_light(screen, camera, int(sx), int(sy), colors.get(name, LightColor.RED))


# ══════════════════════════════════════════════════════════════════════════════
#  PRIVATE helpers
# ══════════════════════════════════════════════════════════════════════════════

def _draw_polygon(
    screen: pygame.Surface, cam: Camera, color, points: Sequence[Vec2], width: int = 0,
) -> None:
    pygame.draw.polygon(screen, color, [cam.world_to_screen(x, y) for x, y in points], width)


def _arm_corners(
    approach: ApproachId, box_half: float, near: float, far: float, left: float, right: float,
) -> List[Vec2]:
    """Rectangle on an arm between distances *near*/*far* from the box edge
    and lateral offsets *left*/*right* along the inbound right vector."""
    d = inbound_direction(approach)
    r = right_of(d)

    def at(dist: float, lateral: float) -> Vec2:
        back = box_half + dist
        return (-d[0] * back + r[0] * lateral, -d[1] * back + r[1] * lateral)

    return [at(near, left), at(near, right), at(far, right), at(far, left)]


# ── Arms ─────────────────────────────────────────────────────────────────────

def _draw_arm(
    screen: pygame.Surface, cam: Camera, config: IntersectionConfig,
    approach: ApproachId, box_half: float,
) -> None:
    cfg = config.approach(approach)
    n_in = len(cfg.lanes) if cfg else 1
    n_out = cfg.effective_to_lane_count if cfg else 1
    corners = _arm_corners(
        approach, box_half, 0.0, arm_length(),
        -n_out * LANE_WIDTH_M, n_in * LANE_WIDTH_M,
    )
    _draw_polygon(screen, cam, COLOR_ROAD, corners)
    _draw_polygon(screen, cam, COLOR_ROAD_EDGE, corners, width=max(1, int(cam.zoom * 0.3)))


# ── Lane markings ────────────────────────────────────────────────────────────

def _draw_lane_markings(
    screen: pygame.Surface, cam: Camera, config: IntersectionConfig,
    approach: ApproachId, box_half: float,
) -> None:
    cfg = config.approach(approach)
    n_in = len(cfg.lanes) if cfg else 1
    n_out = cfg.effective_to_lane_count if cfg else 1
    thickness = max(1, int(cam.zoom * 0.25))

    # Solid centre line between inbound and outbound traffic.
    centre = _arm_corners(approach, box_half, 0.0, arm_length(), 0.0, 0.0)
    pygame.draw.line(
        screen, COLOR_LANE_WHITE,
        cam.world_to_screen(*centre[0]), cam.world_to_screen(*centre[3]), thickness,
    )

    # Dashed separators between neighbouring lanes on either side.
    separators = [i * LANE_WIDTH_M for i in range(1, n_in)]
    separators += [-i * LANE_WIDTH_M for i in range(1, n_out)]
    period = DASH_LEN + DASH_GAP
    for lateral in separators:
        dist = 0.0
        while dist < arm_length():
            seg = _arm_corners(
                approach, box_half, dist, min(dist + DASH_LEN, arm_length()), lateral, lateral,
            )
            pygame.draw.line(
                screen, COLOR_LANE_WHITE,
                cam.world_to_screen(*seg[0]), cam.world_to_screen(*seg[3]), thickness,
            )
            dist += period


def _draw_stop_line(
    screen: pygame.Surface, cam: Camera, config: IntersectionConfig,
    approach: ApproachId, box_half: float,
) -> None:
    cfg = config.approach(approach)
    start, end = stop_line_segment(approach, len(cfg.lanes) if cfg else 1, box_half)
    pygame.draw.line(
        screen, COLOR_STOP_WHITE,
        cam.world_to_screen(*start), cam.world_to_screen(*end),
        max(2, int(cam.zoom * 0.5)),
    )


# ── Signal heads ─────────────────────────────────────────────────────────────

def _draw_single_light(
    screen: pygame.Surface, cam: Camera, sx: int, sy: int, color: LightColor,
) -> None:
    bulb_r = max(2, int(0.6 * cam.zoom))
    spacing = int(bulb_r * 2.3)
    housing_w = bulb_r * 2 + max(2, int(cam.zoom * 0.4))
    housing_h = spacing * 2 + bulb_r * 2 + max(2, int(cam.zoom * 0.4))

    hr = pygame.Rect(sx - housing_w // 2, sy - housing_h // 2, housing_w, housing_h)
    pygame.draw.rect(screen, COLOR_LIGHT_HOUSING, hr, border_radius=max(1, bulb_r // 2))

    for offset, bulb in zip((-spacing, 0, spacing), _BULB_ORDER):
        rgb = LIGHT_RGB[bulb.value] if bulb == color else COLOR_LIGHT_OFF
        pygame.draw.circle(screen, rgb, (sx, sy + offset), bulb_r)
