"""
api/server.py
=============
FastAPI server exposing the running simulation over HTTP.

Start it from :mod:`main`, or standalone::

    python -m api.server          # → http://127.0.0.1:8080/snapshot

Routes
------
``GET /snapshot``
    Latest engine snapshot (sim time, metrics, lights, lanes, control mode).
``GET|POST /command?cmd=start|stop|reset|step``
    Queue a UI command.  Unknown commands are accepted and ignored.
``GET /config/api`` (alias ``/config.json``)
    Active intersection config.
``GET /config/stored``
    Config document persisted in the store; 404 when nothing was saved.
``POST /config/api``
    Validate a config document, persist it and hot-swap it into the
    engine.  The engine is rebuilt, so the run restarts.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from api.config_store import ConfigStore, ConfigStoreError
from api.schemas import CommandResponse, config_from_json, config_to_dict, config_to_json
from sim.intersection_config import IntersectionConfig
from sim.safety_kernel import SafetyKernel
from sim.sim_bridge import CommandRejected, SimBridge

log = logging.getLogger("api")


def kernel_rejections(config: IntersectionConfig) -> List[str]:
    """Reasons the safety kernel refuses *config*; empty when it is accepted."""
    kernel = SafetyKernel(config)
    errors = kernel.config_errors
    if errors:
        return errors
    for group in config.signal_groups:
        if not kernel.are_signal_groups_conflict_free([group.id]):
            errors.append(f"signal_group {group.id} has conflicting green movements")
    return errors


def _rejection(status_code: int, errors: List[str]) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"ok": False, "errors": errors})


# ── FastAPI application ──────────────────────────────────────────────────────


def create_app(bridge: SimBridge, store: Optional[ConfigStore] = None) -> FastAPI:
    """Build the HTTP app around a running *bridge*.

    Args:
        bridge: Simulation orchestrator that owns the engine.
        store: Where accepted configs are persisted; ``None`` keeps them
            in memory only.
    """
    app = FastAPI(
        title="Crossroads Simulator API",
        description="Snapshot, command and config endpoints for the intersection simulator.",
        version="1.0",
    )

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        body = exc.detail if isinstance(exc.detail, dict) else {"ok": False, "errors": [str(exc.detail)]}
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.get("/snapshot")
    def snapshot():
        """Latest published engine snapshot."""
        return bridge.get_snapshot_dict()

    @app.api_route("/command", methods=["GET", "POST"], response_model=CommandResponse)
    def command(cmd: Optional[str] = None):
        if cmd is None or not cmd.strip():
            raise _rejection(400, ["missing cmd parameter"])
        try:
            recognized = bridge.handle_command(cmd, sender="api")
        except CommandRejected as exc:
            raise _rejection(503, [str(exc)])
        if not recognized:
            log.info("Unknown command %r accepted as no-op", cmd)
        return CommandResponse(command=cmd, recognized=recognized)

    def active_config():
        return config_to_dict(bridge.get_config())

    app.add_api_route("/config/api", active_config, methods=["GET"])
    app.add_api_route("/config.json", active_config, methods=["GET"])

    @app.get("/config/stored")
    def stored_config():
        if store is None:
            raise _rejection(404, ["no config store configured"])
        try:
            text = store.load_active_config_json()
        except ConfigStoreError as exc:
            raise _rejection(500, [str(exc)])
        if text is None:
            raise _rejection(404, ["no stored config"])
        return json.loads(text)

    @app.post("/config/api")
    async def replace_config(request: Request):
        """Validate, persist and apply a new intersection config."""
        body = (await request.body()).decode("utf-8", errors="replace")
        result = config_from_json(body)
        if not result.ok:
            log.warning("Config rejected: %s", "; ".join(result.errors))
            raise _rejection(400, result.errors)

        errors = kernel_rejections(result.config)
        if errors:
            log.warning("Config rejected by safety kernel: %s", "; ".join(errors))
            raise _rejection(400, errors)

        if store is not None:
            try:
                store.save_active_config_json(config_to_json(result.config))
            except ConfigStoreError as exc:
                log.error("Could not persist config: %s", exc)
                raise _rejection(500, [str(exc)])
        bridge.replace_config(result.config)
        return {"ok": True, "config": config_to_dict(result.config)}

    return app


def run_server(app: FastAPI, host: str = "127.0.0.1", port: int = 8080) -> None:
    """Serve *app* with uvicorn; blocks until shutdown."""
    log.info("API listening on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="warning")


# ── Standalone entry point ───────────────────────────────────────────────────

if __name__ == "__main__":
    import config as app_config
    from logging_setup import setup_logging

    setup_logging()
    _store = ConfigStore(app_config.DB_PATH)
    _store.initialize()
    _bridge = SimBridge(tick_rate_hz=app_config.DEFAULT_TICK_RATE_HZ)
    _bridge.start()
    try:
        run_server(create_app(_bridge, _store), app_config.API_HOST, app_config.API_PORT)
    finally:
        _bridge.stop()
        _store.close()
