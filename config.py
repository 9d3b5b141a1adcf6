#!/usr/bin/env python3
"""
config.py
=========
Application-wide configuration constants.

Values can be overridden via ``CROSSROADS_*`` environment variables
(see :mod:`main`).  This module is an import-safe leaf: it never imports
from other project packages.
"""

# ── Simulation defaults ──────────────────────────────────────────────────────
DEFAULT_TRAFFIC_RATE: float = 0.5
DEFAULT_NS_GREEN_S: float = 10.0
DEFAULT_EW_GREEN_S: float = 10.0
DEFAULT_TICK_RATE_HZ: float = 10.0
DEFAULT_STEP_DT: float = 0.1

# ── HTTP API defaults ────────────────────────────────────────────────────────
API_HOST: str = "127.0.0.1"
API_PORT: int = 8080

# ── Config store ─────────────────────────────────────────────────────────────
DB_PATH: str = "crossroads.db"

# ── UI defaults ──────────────────────────────────────────────────────────────
WINDOW_WIDTH: int = 1000
WINDOW_HEIGHT: int = 700
TARGET_FPS: int = 60
HEADLESS: bool = False

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL: str = "INFO"
