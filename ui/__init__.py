#!/usr/bin/env python3

from .types import Camera, ColorRGB, ColorRGBA, VehiclePose
from .pygame_view import PygameIntersectionView, run_pygame_view

__all__ = [
    "Camera",
    "ColorRGB",
    "ColorRGBA",
    "VehiclePose",
    "PygameIntersectionView",
    "run_pygame_view",
]
