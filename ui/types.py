"""
ui/types.py
===========
Lightweight data containers used across every UI module.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

ColorRGB = Tuple[int, int, int]
ColorRGBA = Tuple[int, int, int, int]
Vec2 = Tuple[float, float]


@dataclass
class Camera:
    """Viewport mapping world coordinates (metres, y up) to screen pixels."""
    screen_w: int
    screen_h: int
    world_x: float = 0.0
    world_y: float = 0.0
    zoom: float = 3.0

    def world_to_screen(self, wx: float, wy: float) -> Tuple[float, float]:
        cx = self.screen_w / 2
        cy = self.screen_h / 2
        sx = cx + (wx - self.world_x) * self.zoom
        sy = cy - (wy - self.world_y) * self.zoom
        return sx, sy


@dataclass
class VehiclePose:
    """Where and which way to draw one vehicle."""
    vehicle_id: int
    x: float
    y: float
    heading_deg: float
    crossing: bool = False
