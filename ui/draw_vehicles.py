"""
ui/draw_vehicles.py
===================
Vehicle sprite rendering.  Positions come from :mod:`ui.geometry`; this
module only turns poses into rotated sprites.
"""

from __future__ import annotations

from typing import Sequence

import pygame

from sim.traffic_policy import CAR_LENGTH
from ui.constants import VEHICLE_COLORS, VEHICLE_WIDTH_M
from ui.types import Camera, ColorRGB, VehiclePose


def vehicle_color(vehicle_id: int) -> ColorRGB:
    return VEHICLE_COLORS[int(vehicle_id) % len(VEHICLE_COLORS)]


def draw_vehicle(screen: pygame.Surface, camera: Camera, pose: VehiclePose) -> None:
    """Draw one car as a rounded body with a windshield, facing its heading."""
    w = max(6, int(CAR_LENGTH * camera.zoom))
    h = max(3, int(VEHICLE_WIDTH_M * camera.zoom))
    color = vehicle_color(pose.vehicle_id)
    sprite = pygame.Surface((w, h), pygame.SRCALPHA)

    body = pygame.Rect(0, 0, w, h)
    pygame.draw.rect(sprite, color, body, border_radius=max(1, h // 4))

    r, g, b = color
    glass = (max(0, r - 60), max(0, g - 60), max(0, b - 60), 180)
    ws = pygame.Rect(int(w * 0.62), 1, max(2, int(w * 0.2)), max(1, h - 2))
    pygame.draw.rect(sprite, glass, ws, border_radius=1)

    border = (255, 255, 255) if pose.crossing else (20, 20, 20)
    pygame.draw.rect(sprite, border, body, width=1, border_radius=max(1, h // 4))

    rotated = pygame.transform.rotate(sprite, pose.heading_deg)
    sx, sy = camera.world_to_screen(pose.x, pose.y)
    screen.blit(rotated, rotated.get_rect(center=(int(sx), int(sy))))


def draw_vehicles(screen: pygame.Surface, camera: Camera, poses: Sequence[VehiclePose]) -> None:
    # Crossing vehicles on top of queued ones.
    for pose in sorted(poses, key=lambda p: p.crossing):
        draw_vehicle(screen, camera, pose)
