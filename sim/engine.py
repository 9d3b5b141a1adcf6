#!/usr/bin/env python3
"""
sim/engine.py
=============
The simulator engine: one tick loop composing a light controller, the
traffic generator and the safety kernel, plus the fallback supervisor.

Tick order
----------
1. controller tick
2. spawn vehicles
3. derive per-approach "may move" flags (through signal Green only)
4. car-following update
5. start crossings at the stop target
6. complete finished crossings at each queue head
7. safety check; the first unsafe tick of a run switches to the
   flashing-amber fallback
8. advance simulation time

The engine holds no lock.  Callers sharing it between threads guard
every call with one mutex (see :class:`sim.sim_bridge.SimBridge`).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sim.controllers import (
    FixedCycleController,
    FlashingAmberController,
    SignalGroupController,
    TrafficLightController,
)
from sim.intersection_config import (
    MOVE_FLAG_ORDER,
    ApproachId,
    IntersectionConfig,
    MovementType,
    make_default_intersection_config,
)
from sim.lights import IntersectionState, LightColor
from sim.safety_kernel import SafetyKernel, through_signal_for, turn_signal_for
from sim.traffic_generator import TrafficGenerator
from sim.traffic_policy import DEFAULT_POLICY, MotionPolicy
from sim.vehicle import LaneVehicleState

log = logging.getLogger("engine")

QUEUE_LOG_INTERVAL_S = 5.0


class ControlMode(Enum):
    BASIC = "basic"
    NULL_CONTROL = "null_control"


class UICommand(Enum):
    START = "start"
    STOP = "stop"
    RESET = "reset"
    STEP = "step"

    @classmethod
    def parse(cls, text: object) -> Optional["UICommand"]:
        """Case-insensitive lookup; ``None`` for anything unrecognised."""
        if isinstance(text, UICommand):
            return text
        key = str(text).strip().lower()
        for command in cls:
            if command.value == key:
                return command
        return None


@dataclass(frozen=True)
class SimulatorMetrics:
    total_time: float = 0.0
    vehicles_generated: int = 0
    vehicles_crossed: int = 0
    average_wait_time: float = 0.0
    queue_lengths: Dict[str, int] = field(default_factory=dict)
    total_queue_length: int = 0
    safety_violations: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "vehicles_generated": self.vehicles_generated,
            "vehicles_crossed": self.vehicles_crossed,
            "average_wait_time": self.average_wait_time,
            "safety_violations": self.safety_violations,
            "queues": {a.label: self.queue_lengths.get(a.label, 0) for a in ApproachId},
        }


@dataclass(frozen=True)
class SimulatorSnapshot:
    """Read-only view of the engine handed to the UI and the HTTP API."""

    sim_time: float
    running: bool
    metrics: SimulatorMetrics
    lights: IntersectionState
    lanes: Dict[str, List[LaneVehicleState]]
    control_mode: ControlMode = ControlMode.BASIC

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sim_time": self.sim_time,
            "running": self.running,
            "control_mode": self.control_mode.value,
            "metrics": self.metrics.as_dict(),
            "lights": self.lights.as_dict(),
            "lanes": {
                a.label: [v.as_dict() for v in self.lanes.get(a.label, [])]
                for a in ApproachId
            },
        }


class SimulatorEngine:
    """Tick loop and fallback supervisor for one intersection.

    Parameters
    ----------
    config : IntersectionConfig or None
        ``None`` runs the default layout with legacy spawning.
    traffic_rate : float
        Spawn ticks per second.
    ns_duration, ew_duration : float
        Green times for the fixed-cycle controller.
    policy : MotionPolicy or None
        Motion constants for the traffic generator.
    """

    def __init__(
        self,
        config: Optional[IntersectionConfig] = None,
        traffic_rate: float = 0.5,
        ns_duration: float = 10.0,
        ew_duration: float = 10.0,
        policy: Optional[MotionPolicy] = None,
    ) -> None:
        self._config = config if config is not None else make_default_intersection_config()
        self._policy = policy or DEFAULT_POLICY
        self._kernel = SafetyKernel(self._config)
        self._traffic = TrafficGenerator(config, traffic_rate, self._policy)
        self._ns_duration = ns_duration
        self._ew_duration = ew_duration

        self._current_time = 0.0
        self._running = False
        self._safety_violations = 0
        self._next_queue_log = 0.0

        self._control_mode = ControlMode.BASIC
        self._controller: TrafficLightController = self._build_controller(ControlMode.BASIC)

    # ── Accessors ─────────────────────────────────────────────────────────────

    @property
    def config(self) -> IntersectionConfig:
        return self._config

    @property
    def kernel(self) -> SafetyKernel:
        return self._kernel

    @property
    def traffic(self) -> TrafficGenerator:
        return self._traffic

    @property
    def controller(self) -> TrafficLightController:
        return self._controller

    @property
    def control_mode(self) -> ControlMode:
        return self._control_mode

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def safety_violations(self) -> int:
        return self._safety_violations

    def is_running(self) -> bool:
        return self._running

    def current_light_state(self) -> IntersectionState:
        return self._controller.current_state()

    def is_light_green(self, approach: ApproachId) -> bool:
        state = self.current_light_state()
        return getattr(state, through_signal_for(approach)) == LightColor.GREEN

    # ── Controller management ─────────────────────────────────────────────────

    def _build_controller(self, mode: ControlMode) -> TrafficLightController:
        if mode is ControlMode.NULL_CONTROL:
            return FlashingAmberController()
        if self._config.has_signal_groups:
            return SignalGroupController(self._config)
        return FixedCycleController(self._ns_duration, self._ew_duration, self._kernel)

    def set_control_mode(self, mode: ControlMode) -> None:
        """Replace the controller with a fresh one for *mode* and reset it."""
        previous = self._control_mode
        self._control_mode = mode
        self._controller = self._build_controller(mode)
        self._controller.reset()
        if previous is not mode:
            log.info(
                "Control mode %s -> %s (%s)",
                previous.value, mode.value, self._controller.name,
            )

    def set_controller(
        self,
        controller: Optional[TrafficLightController],
        mode: ControlMode = ControlMode.BASIC,
    ) -> None:
        """Install a caller-supplied controller; ``None`` rebuilds the default for *mode*."""
        if controller is None:
            self.set_control_mode(mode)
            return
        self._control_mode = mode
        self._controller = controller
        self._controller.reset()
        log.info("Custom controller %s installed in %s mode", type(controller).__name__, mode.value)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def reset(self) -> None:
        """Wipe time, traffic and violations and re-enter Basic mode."""
        self._current_time = 0.0
        self._running = False
        self._safety_violations = 0
        self._next_queue_log = 0.0
        self._traffic.reset()
        self.set_control_mode(ControlMode.BASIC)
        log.info("Engine reset")

    def handle_command(self, command: Union[UICommand, str], dt: float = 0.1) -> bool:
        """Apply a UI command.  Returns ``False`` for unrecognised input."""
        parsed = UICommand.parse(command)
        if parsed is None:
            log.debug("Ignoring unknown command %r", command)
            return False
        if parsed is UICommand.START:
            self.start()
        elif parsed is UICommand.STOP:
            self.stop()
        elif parsed is UICommand.RESET:
            self.reset()
        elif self._running:
            self.tick(dt)
        else:
            self.start()
            self.tick(dt)
            self.stop()
        return True

    def simulate(self, duration: float, time_step: float) -> SimulatorMetrics:
        """Reset, then run until ``current_time`` reaches *duration*."""
        self.reset()
        self.start()
        if time_step > 0.0 and math.isfinite(time_step):
            while self._current_time < duration:
                self.tick(time_step)
        self.stop()
        return self.metrics()

    # ── Tick ──────────────────────────────────────────────────────────────────

    def tick(self, dt: float) -> None:
        if not self._running:
            return
        try:
            if not (math.isfinite(dt) and dt > 0.0):
                return
        except TypeError:
            return

        self._controller.tick(dt)
        self._traffic.generate_traffic(dt, self._current_time)

        state = self._controller.current_state()
        lane_can_move = [
            getattr(state, through_signal_for(a)) == LightColor.GREEN for a in MOVE_FLAG_ORDER
        ]
        self._traffic.update_vehicle_speeds(dt, lane_can_move)
        self._start_crossings(state)
        self._complete_crossings()
        self._supervise(self._controller.current_state())

        self._current_time += dt
        if self._current_time >= self._next_queue_log:
            self._next_queue_log = self._current_time + QUEUE_LOG_INTERVAL_S
            log.debug(
                "t=%.1f queues %s",
                self._current_time,
                {a.label: self._traffic.queue_length(a) for a in ApproachId},
            )

    def _may_cross(self, state: IntersectionState, approach: ApproachId, movement: MovementType) -> bool:
        if getattr(state, through_signal_for(approach)) == LightColor.GREEN:
            return True
        return (
            movement == MovementType.RIGHT
            and getattr(state, turn_signal_for(approach)) == LightColor.GREEN
        )

    def _start_crossings(self, state: IntersectionState) -> None:
        stop_target = self._policy.stop_target_m
        for approach in MOVE_FLAG_ORDER:
            for vehicle in self._traffic.queue(approach):
                if not vehicle.is_waiting or vehicle.position_in_lane < stop_target:
                    continue
                lane = None
                if self._config.lane_approach(vehicle.lane_id) == approach:
                    lane = self._config.lane(vehicle.lane_id)
                connected = lane.connected_to_intersection if lane else True
                has_light = lane.has_traffic_light if lane else True
                if not connected:
                    continue
                if not has_light or self._may_cross(state, approach, vehicle.movement):
                    vehicle.crossing_time = self._current_time

    def _complete_crossings(self) -> None:
        for approach in MOVE_FLAG_ORDER:
            head = self._traffic.peek_next_vehicle(approach)
            if head is None or not head.is_crossing:
                continue
            needed = head.required_crossing_time(self._traffic.queue_length(approach), self._policy)
            if self._current_time - head.crossing_time >= needed:
                self._traffic.complete_crossing(head.id, self._current_time)

    def signal_state_violations(self, state: IntersectionState) -> List[str]:
        """Kernel rule names broken by *state*, including signal-group conflicts."""
        violations = self._kernel.safety_violations(state)
        if self._config.has_signal_groups:
            if not self._kernel.is_config_valid():
                violations.append("invalid_config")
            else:
                active = self._kernel.active_signal_groups(state)
                if active and not self._kernel.are_signal_groups_conflict_free(active):
                    violations.append("signal_group_conflict")
        return violations

    def _supervise(self, state: IntersectionState) -> None:
        violations = self.signal_state_violations(state)
        if not violations:
            return
        self._safety_violations += 1
        if self._control_mode is ControlMode.NULL_CONTROL:
            log.debug(
                "Violation #%d at t=%.2f while in fallback: %s",
                self._safety_violations, self._current_time, ", ".join(violations),
            )
            return
        log.warning(
            "Safety violation at t=%.2f: %s; switching to flashing amber",
            self._current_time, ", ".join(violations),
        )
        self.set_control_mode(ControlMode.NULL_CONTROL)

    # ── Observation ───────────────────────────────────────────────────────────

    def metrics(self) -> SimulatorMetrics:
        queues = {a.label: self._traffic.queue_length(a) for a in ApproachId}
        return SimulatorMetrics(
            total_time=self._current_time,
            vehicles_generated=self._traffic.total_generated(),
            vehicles_crossed=self._traffic.total_crossed(),
            average_wait_time=self._traffic.average_wait_time(),
            queue_lengths=queues,
            total_queue_length=sum(queues.values()),
            safety_violations=self._safety_violations,
        )

    def get_snapshot(self) -> SimulatorSnapshot:
        return SimulatorSnapshot(
            sim_time=self._current_time,
            running=self._running,
            metrics=self.metrics(),
            lights=self.current_light_state(),
            lanes={a.label: self._traffic.lane_vehicle_states(a) for a in ApproachId},
            control_mode=self._control_mode,
        )
