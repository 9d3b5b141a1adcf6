#!/usr/bin/env python3
"""HUD panel, key help, and pause banner."""

from __future__ import annotations

from typing import List, Tuple

import pygame

from sim.engine import ControlMode, SimulatorSnapshot
from sim.intersection_config import ApproachId
from ui.constants import (
    COLOR_HUD_BG, COLOR_HUD_BORDER, COLOR_HUD_DIM, COLOR_HUD_TEXT, COLOR_WARNING,
)
from ui.helpers import draw_alpha_rect, render_text
from ui.types import ColorRGB

HELP_LINES = (
    "SPACE  Start/Stop",
    "S      Step",
    "R      Reset",
    "F12    Screenshot",
    "ESC    Quit",
)


def hud_lines(snapshot: SimulatorSnapshot) -> List[Tuple[str, ColorRGB]]:
    """Text rows shown in the metrics panel, with their colours."""
    m = snapshot.metrics
    mode_color = COLOR_WARNING if snapshot.control_mode == ControlMode.NULL_CONTROL else COLOR_HUD_TEXT
    rows = [
        (f"TIME   {snapshot.sim_time:7.1f} s", COLOR_HUD_TEXT),
        (f"STATE  {'RUNNING' if snapshot.running else 'STOPPED'}", COLOR_HUD_TEXT),
        (f"MODE   {snapshot.control_mode.value.upper()}", mode_color),
        (f"GEN    {m.vehicles_generated}", COLOR_HUD_TEXT),
        (f"CROSS  {m.vehicles_crossed}", COLOR_HUD_TEXT),
        (f"WAIT   {m.average_wait_time:5.1f} s", COLOR_HUD_TEXT),
        (f"VIOL   {m.safety_violations}", COLOR_WARNING if m.safety_violations else COLOR_HUD_TEXT),
    ]
    for approach in ApproachId:
        rows.append(
            (f"Q {approach.short}    {m.queue_lengths.get(approach.label, 0)}", COLOR_HUD_DIM)
        )
    return rows


def draw_hud(
    surface: pygame.Surface,
    font: pygame.font.Font,
    snapshot: SimulatorSnapshot,
) -> None:
    rows = hud_lines(snapshot)
    row_h = font.get_linesize() + 2
    panel = pygame.Rect(16, 16, 200, len(rows) * row_h + 16)
    draw_alpha_rect(surface, (*COLOR_HUD_BG, 220), panel, border_radius=6)
    pygame.draw.rect(surface, COLOR_HUD_BORDER, panel, width=1, border_radius=6)

    y = panel.y + 8
    for text, color in rows:
        render_text(surface, font, text, (panel.x + 10, y), color)
        y += row_h


def draw_help(surface: pygame.Surface, font: pygame.font.Font, width: int, height: int) -> None:
    row_h = font.get_linesize()
    y = height - 16 - len(HELP_LINES) * row_h
    for line in HELP_LINES:
        render_text(surface, font, line, (width - 16, y), COLOR_HUD_DIM, anchor="topright")
        y += row_h


def draw_stopped_banner(
    surface: pygame.Surface, font: pygame.font.Font, width: int, height: int,
) -> None:
    overlay = pygame.Surface((width, height), pygame.SRCALPHA)
    overlay.fill((0, 0, 0, 70))
    surface.blit(overlay, (0, 0))
    render_text(
        surface, font, "STOPPED  (SPACE to start)", (width // 2, height // 2),
        (220, 220, 220), anchor="center",
    )
