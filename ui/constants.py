#!/usr/bin/env python3
"""Visual constants shared across all renderers."""

from __future__ import annotations

from typing import Dict, Sequence

from ui.types import ColorRGB

# ── Colours ──────────────────────────────────────────────────────────────────
COLOR_GRASS: ColorRGB = (62, 104, 58)
COLOR_ROAD: ColorRGB = (44, 44, 48)
COLOR_ROAD_EDGE: ColorRGB = (90, 90, 96)
COLOR_INTERSECTION: ColorRGB = (52, 52, 56)
COLOR_LANE_WHITE: ColorRGB = (210, 210, 210)
COLOR_STOP_WHITE: ColorRGB = (240, 240, 240)

COLOR_LIGHT_RED: ColorRGB = (235, 48, 48)
COLOR_LIGHT_YELLOW: ColorRGB = (250, 176, 40)
COLOR_LIGHT_GREEN: ColorRGB = (40, 220, 110)
COLOR_LIGHT_OFF: ColorRGB = (40, 40, 40)
COLOR_LIGHT_HOUSING: ColorRGB = (18, 18, 18)

COLOR_HUD_BG: ColorRGB = (22, 22, 22)
COLOR_HUD_BORDER: ColorRGB = (60, 60, 60)
COLOR_HUD_TEXT: ColorRGB = (230, 230, 235)
COLOR_HUD_DIM: ColorRGB = (150, 150, 155)
COLOR_WARNING: ColorRGB = (255, 60, 60)

VEHICLE_COLORS: Sequence[ColorRGB] = (
    (86, 168, 255),
    (255, 88, 88),
    (100, 226, 170),
    (246, 191, 90),
    (180, 120, 255),
    (255, 160, 100),
)

LIGHT_RGB: Dict[str, ColorRGB] = {
    "red": COLOR_LIGHT_RED,
    "orange": COLOR_LIGHT_YELLOW,
    "green": COLOR_LIGHT_GREEN,
}

# ── Geometry (metres) ────────────────────────────────────────────────────────
LANE_WIDTH_M = 3.5
ARM_MARGIN_M = 10.0
DASH_LEN = 3.0
DASH_GAP = 3.0
VEHICLE_WIDTH_M = 1.9
SIGNAL_OFFSET_M = 1.5

SCREENSHOT_DIR = "screenshots"
