"""
sim/sim_bridge.py
=================
Background-thread orchestrator tying :class:`sim.engine.SimulatorEngine`
and the :class:`bus.command_bus.CommandBus` together.  The UI and the
HTTP API read the latest snapshot without blocking the simulation.

One lock guards the engine and the cached snapshot.  Commands from other
threads never touch the engine directly: they are published on the bus
and applied by the simulation thread between ticks.

Public API consumed by :mod:`ui.pygame_view` and :mod:`api.server`
------------------------------------------------------------------
* ``get_snapshot()``          → ``SimulatorSnapshot``
* ``get_snapshot_dict()``     → ``dict``
* ``handle_command(cmd)``     → ``bool`` (raises :class:`CommandRejected` when the queue is full)
* ``get_config()``            → ``IntersectionConfig``
* ``replace_config(config)``  → ``None``
* ``pump(dt)``                → ``SimulatorSnapshot``
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional

from bus.command_bus import COMMAND_TOPIC, CommandBus
from sim.engine import SimulatorEngine, SimulatorSnapshot, UICommand
from sim.intersection_config import IntersectionConfig
from sim.traffic_policy import MotionPolicy

log = logging.getLogger("sim_bridge")


class CommandRejected(RuntimeError):
    """Raised when the command queue is full and a command was dropped."""


class SimBridge:
    """Simulation orchestrator running in a background thread.

    The thread calls :meth:`pump` at ``tick_rate_hz``: it drains UI
    commands from the bus, ticks the engine and swaps in a fresh
    snapshot for readers.

    Parameters
    ----------
    config : IntersectionConfig or None
        Intersection layout; ``None`` runs the default layout with
        legacy spawning.
    tick_rate_hz : float
        Simulation ticks per second.
    traffic_rate : float
        Vehicle spawn ticks per second.
    ns_duration, ew_duration : float
        Fixed-cycle green times.
    step_dt : float
        Simulated seconds advanced by a ``"step"`` command.
    bus : CommandBus or None
        Command transport; a private one is created when omitted.
    policy : MotionPolicy or None
        Motion constants.
    """

    def __init__(
        self,
        config: Optional[IntersectionConfig] = None,
        tick_rate_hz: float = 10.0,
        traffic_rate: float = 0.5,
        ns_duration: float = 10.0,
        ew_duration: float = 10.0,
        step_dt: float = 0.1,
        bus: Optional[CommandBus] = None,
        policy: Optional[MotionPolicy] = None,
    ) -> None:
        self._tick_rate_hz = max(0.1, float(tick_rate_hz))
        self._traffic_rate = traffic_rate
        self._ns_duration = ns_duration
        self._ew_duration = ew_duration
        self._step_dt = step_dt
        self._policy = policy
        self._bus = bus or CommandBus()

        self._lock = threading.Lock()
        self._engine = self._build_engine(config)
        self._snapshot: SimulatorSnapshot = self._engine.get_snapshot()

        self._thread: Optional[threading.Thread] = None
        self._running = False

    def _build_engine(self, config: Optional[IntersectionConfig]) -> SimulatorEngine:
        return SimulatorEngine(
            config=config,
            traffic_rate=self._traffic_rate,
            ns_duration=self._ns_duration,
            ew_duration=self._ew_duration,
            policy=self._policy,
        )

    @property
    def bus(self) -> CommandBus:
        return self._bus

    @property
    def tick_rate_hz(self) -> float:
        return self._tick_rate_hz

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn the background simulation thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="SimBridge"
        )
        self._thread.start()
        log.info("SimBridge started at %.1f Hz", self._tick_rate_hz)

    def stop(self) -> None:
        """Signal the thread to stop and wait for it to join."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        log.info("SimBridge stopped")

    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    # ── Reader / producer API ─────────────────────────────────────────────────

    def get_snapshot(self) -> SimulatorSnapshot:
        with self._lock:
            return self._snapshot

    def get_snapshot_dict(self) -> Dict[str, Any]:
        return self.get_snapshot().as_dict()

    def handle_command(self, command: str, sender: str = "ui") -> bool:
        """Queue *command* for the simulation thread.

        Returns whether the command is one the engine recognises; unknown
        commands are still delivered and ignored there.

        Raises
        ------
        CommandRejected
            The bus refused the message because the topic is full.
        """
        if self._bus.publish(COMMAND_TOPIC, sender, {"cmd": str(command)}) is None:
            raise CommandRejected(f"command queue full, dropped {command!r}")
        return UICommand.parse(command) is not None

    def get_config(self) -> IntersectionConfig:
        with self._lock:
            return self._engine.config

    def replace_config(self, config: IntersectionConfig) -> None:
        """Swap in a new intersection layout.  The engine is rebuilt, so the run resets."""
        with self._lock:
            self._engine = self._build_engine(config)
            self._snapshot = self._engine.get_snapshot()
        log.info(
            "Intersection config replaced (%d signal groups)", len(config.signal_groups)
        )

    # ── Background loop ───────────────────────────────────────────────────────

    def pump(self, dt: Optional[float] = None) -> SimulatorSnapshot:
        """Apply pending commands, tick once and publish the snapshot."""
        if dt is None:
            dt = 1.0 / self._tick_rate_hz
        messages = self._bus.poll(COMMAND_TOPIC)
        with self._lock:
            for msg in messages:
                cmd = msg.payload.get("cmd", "")
                if not self._engine.handle_command(cmd, self._step_dt):
                    log.info("Ignored unknown command %r from %s", cmd, msg.sender)
            self._engine.tick(dt)
            self._snapshot = self._engine.get_snapshot()
            return self._snapshot

    def _loop(self) -> None:
        dt = 1.0 / self._tick_rate_hz
        while self._running:
            t0 = time.perf_counter()
            try:
                self.pump(dt)
            except Exception:
                log.exception("SimBridge tick error")
            time.sleep(max(0.0, dt - (time.perf_counter() - t0)))
