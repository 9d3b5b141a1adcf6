#!/usr/bin/env python3
"""
Main view class: one runnable Pygame window over a :class:`SimBridge`.

Module layout
─────────────
    ui/
    ├── types.py           – Camera, VehiclePose, colour aliases
    ├── constants.py       – colours and metric layout constants
    ├── geometry.py        – pure world-space layout (tested headless)
    ├── helpers.py         – alpha drawing and text utilities
    ├── draw_road.py       – arms, box, markings, stop lines, signal heads
    ├── draw_vehicles.py   – vehicle sprites
    ├── hud.py             – metrics panel, key help, stopped banner
    └── pygame_view.py     – PygameIntersectionView (this file – main loop)

The view never touches the engine: it reads snapshots from the bridge
and sends key presses back as commands.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

import pygame

from sim.sim_bridge import CommandRejected, SimBridge
from ui.constants import SCREENSHOT_DIR
from ui.draw_road import draw_map, draw_signals
from ui.draw_vehicles import draw_vehicles
from ui.geometry import fit_zoom, vehicle_poses, world_extent
from ui.helpers import load_font
from ui.hud import draw_help, draw_hud, draw_stopped_banner
from ui.types import Camera

log = logging.getLogger("ui")

_KEY_COMMANDS = {
    pygame.K_s: "step",
    pygame.K_r: "reset",
}


class PygameIntersectionView:
    """Intersection visualiser powered by Pygame.

    Keys: SPACE start/stop, S step, R reset, F12 screenshot, Esc quit.
    """

    def __init__(self, bridge: SimBridge, width: int = 1000, height: int = 700, fps: int = 60):
        self.bridge = bridge
        self.width = width
        self.height = height
        self.fps = fps

        self.screen: Optional[pygame.Surface] = None
        self.clock: Optional[pygame.time.Clock] = None
        self.font_small: Optional[pygame.font.Font] = None
        self.font_title: Optional[pygame.font.Font] = None
        self.camera = Camera(width, height)
        self._fit_camera()
        self._screenshot_flash_until = 0.0
        self.time_seconds = 0.0

    def _fit_camera(self) -> None:
        extent = world_extent(self.bridge.get_config())
        self.camera.screen_w = self.width
        self.camera.screen_h = self.height
        self.camera.zoom = fit_zoom(self.width, self.height, extent)

    # ------------------------------------------------------------------ #
    #  Resize                                                              #
    # ------------------------------------------------------------------ #
    def _handle_resize(self, new_w: int, new_h: int) -> None:
        self.width = max(400, new_w)
        self.height = max(300, new_h)
        self.screen = pygame.display.set_mode(
            (self.width, self.height), pygame.RESIZABLE
        )
        self._fit_camera()

    # ------------------------------------------------------------------ #
    #  Screenshot                                                          #
    # ------------------------------------------------------------------ #
    def _take_screenshot(self) -> None:
        if self.screen is None:
            return
        os.makedirs(SCREENSHOT_DIR, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join(SCREENSHOT_DIR, f"sim_{stamp}.png")
        pygame.image.save(self.screen, path)
        log.info("Screenshot saved to %s", path)
        self._screenshot_flash_until = self.time_seconds + 0.35

    # ------------------------------------------------------------------ #
    #  Input                                                               #
    # ------------------------------------------------------------------ #
    def _send(self, command: str) -> None:
        try:
            self.bridge.handle_command(command)
        except CommandRejected as exc:
            log.warning("%s", exc)

    def _handle_key(self, key: int) -> bool:
        """Apply one key press; returns False when the window should close."""
        if key == pygame.K_ESCAPE:
            return False
        if key == pygame.K_SPACE:
            running = self.bridge.get_snapshot().running
            self._send("stop" if running else "start")
        elif key in _KEY_COMMANDS:
            self._send(_KEY_COMMANDS[key])
        elif key == pygame.K_F12:
            self._take_screenshot()
        return True

    # ------------------------------------------------------------------ #
    #  Main loop                                                           #
    # ------------------------------------------------------------------ #
    def run(self) -> None:
        pygame.init()
        pygame.display.set_caption("CROSSROADS SIMULATOR")
        self.screen = pygame.display.set_mode(
            (self.width, self.height), pygame.RESIZABLE
        )
        self.clock = pygame.time.Clock()
        self.font_small = load_font(14)
        self.font_title = load_font(26, bold=True)

        running = True
        while running:
            self.time_seconds += self.clock.tick(self.fps) / 1000.0

            # ---- events ------------------------------------------------- #
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.VIDEORESIZE:
                    self._handle_resize(event.w, event.h)
                elif event.type == pygame.KEYDOWN:
                    running = self._handle_key(event.key) and running

            # ---- render ------------------------------------------------- #
            snapshot = self.bridge.get_snapshot()
            config = self.bridge.get_config()

            draw_map(self.screen, self.camera, config)
            draw_vehicles(
                self.screen, self.camera,
                vehicle_poses(config, snapshot.lanes, snapshot.sim_time),
            )
            draw_signals(self.screen, self.camera, config, snapshot.lights)

            draw_hud(self.screen, self.font_small, snapshot)
            draw_help(self.screen, self.font_small, self.width, self.height)
            if not snapshot.running:
                draw_stopped_banner(self.screen, self.font_title, self.width, self.height)
            if self.time_seconds < self._screenshot_flash_until:
                flash = pygame.Surface(
                    (self.width, self.height), pygame.SRCALPHA
                )
                flash.fill((255, 255, 255, 40))
                self.screen.blit(flash, (0, 0))

            pygame.display.flip()

        pygame.quit()


# ---------------------------------------------------------------------- #
#  Convenience entry point                                                 #
# ---------------------------------------------------------------------- #
def run_pygame_view(
    bridge: SimBridge, width: int = 1000, height: int = 700, fps: int = 60
) -> None:
    view = PygameIntersectionView(bridge=bridge, width=width, height=height, fps=fps)
    view.run()
