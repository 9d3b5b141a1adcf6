#!/usr/bin/env python3
"""
main.py
=======
Process entry point: loads the persisted intersection config, starts
the simulation bridge and the HTTP API, and opens the Pygame viewer
unless running headless.

Every default in :mod:`config` can be overridden with a ``CROSSROADS_*``
environment variable, e.g. ``CROSSROADS_HEADLESS=1 python main.py``.
"""

import logging
import math
import os
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

import config as defaults
from api.config_store import ConfigStore, ConfigStoreError
from api.schemas import config_from_json
from api.server import create_app, kernel_rejections, run_server
from logging_setup import setup_logging
from sim.intersection_config import IntersectionConfig
from sim.sim_bridge import SimBridge

log = logging.getLogger("main")

T = TypeVar("T")

ENV_PREFIX = "CROSSROADS_"


@dataclass(frozen=True)
class Settings:
    traffic_rate: float = defaults.DEFAULT_TRAFFIC_RATE
    ns_green_s: float = defaults.DEFAULT_NS_GREEN_S
    ew_green_s: float = defaults.DEFAULT_EW_GREEN_S
    tick_rate_hz: float = defaults.DEFAULT_TICK_RATE_HZ
    step_dt: float = defaults.DEFAULT_STEP_DT
    api_host: str = defaults.API_HOST
    api_port: int = defaults.API_PORT
    db_path: str = defaults.DB_PATH
    headless: bool = defaults.HEADLESS
    log_level: str = defaults.LOG_LEVEL


def _parse_bool(text: str) -> bool:
    return text.strip().lower() in ("1", "true", "yes", "on")


def _parse_finite(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text!r} is not a finite number")
    return value


def _env(env: Mapping[str, str], name: str, cast: Callable[[str], T], default: T) -> T:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        log.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, name, raw)
        return default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Defaults from :mod:`config` overridden by ``CROSSROADS_*`` variables."""
    env = os.environ if env is None else env
    base = Settings()
    return Settings(
        traffic_rate=_env(env, "TRAFFIC_RATE", _parse_finite, base.traffic_rate),
        ns_green_s=_env(env, "NS_GREEN_S", _parse_finite, base.ns_green_s),
        ew_green_s=_env(env, "EW_GREEN_S", _parse_finite, base.ew_green_s),
        tick_rate_hz=_env(env, "TICK_RATE_HZ", _parse_finite, base.tick_rate_hz),
        step_dt=base.step_dt,
        api_host=_env(env, "API_HOST", str, base.api_host),
        api_port=_env(env, "API_PORT", int, base.api_port),
        db_path=_env(env, "DB_PATH", str, base.db_path),
        headless=_env(env, "HEADLESS", _parse_bool, base.headless),
        log_level=_env(env, "LOG_LEVEL", str, base.log_level).upper(),
    )


def open_store(path: str) -> Optional[ConfigStore]:
    """Initialized store at *path*, or ``None`` when it cannot be opened.

    Without a store the API still serves the active config but cannot
    persist a replacement.
    """
    store = ConfigStore(path)
    try:
        store.initialize()
    except ConfigStoreError as exc:
        log.error("Config store unavailable, running without persistence: %s", exc)
        return None
    return store


def load_stored_config(store: ConfigStore) -> Optional[IntersectionConfig]:
    """Persisted config when it still parses and passes the kernel, else ``None``."""
    try:
        text = store.load_active_config_json()
    except ConfigStoreError as exc:
        log.error("Could not read stored config: %s", exc)
        return None
    if text is None:
        log.info("No stored config; using the default layout")
        return None
    result = config_from_json(text)
    if not result.ok:
        log.warning("Stored config is invalid (%s); using the default layout", "; ".join(result.errors))
        return None
    errors = kernel_rejections(result.config)
    if errors:
        log.warning("Stored config rejected by safety kernel (%s); using the default layout", "; ".join(errors))
        return None
    log.info("Loaded stored intersection config")
    return result.config


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    log.info("Starting crossroads simulator...")

    store = open_store(settings.db_path)

    bridge = SimBridge(
        config=load_stored_config(store) if store is not None else None,
        tick_rate_hz=settings.tick_rate_hz,
        traffic_rate=settings.traffic_rate,
        ns_duration=settings.ns_green_s,
        ew_duration=settings.ew_green_s,
        step_dt=settings.step_dt,
    )
    bridge.start()
    app = create_app(bridge, store)

    try:
        if settings.headless:
            run_server(app, settings.api_host, settings.api_port)
        else:
            threading.Thread(
                target=run_server,
                args=(app, settings.api_host, settings.api_port),
                daemon=True,
                name="api",
            ).start()
            from ui.pygame_view import run_pygame_view

            run_pygame_view(
                bridge,
                width=defaults.WINDOW_WIDTH,
                height=defaults.WINDOW_HEIGHT,
                fps=defaults.TARGET_FPS,
            )
    except KeyboardInterrupt:
        log.info("Shutting down...")
    finally:
        bridge.stop()
        if store is not None:
            store.close()


if __name__ == "__main__":
    main()
