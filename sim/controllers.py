#!/usr/bin/env python3
"""
sim/controllers.py
==================
Signal-plan controllers.

All controllers share the capability set of
:class:`TrafficLightController`: ``tick(dt)``, ``current_state()`` and
``reset()``.  Three implementations ship with the simulator:

* :class:`FixedCycleController`: NS green → NS orange → EW green →
  EW orange, with every step checked by the safety kernel.
* :class:`SignalGroupController`: cycles through the signal groups of an
  :class:`~sim.intersection_config.IntersectionConfig`.
* :class:`FlashingAmberController`: the fallback that blinks every
  signal between Orange and Red once per second.

Non-finite or non-positive ``dt`` values are ignored; phase durations
are clamped to :data:`~sim.traffic_policy.MIN_PHASE_DURATION_S`.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

from sim.intersection_config import ApproachId, IntersectionConfig, SignalGroupConfig
from sim.lights import IntersectionState, LightColor
from sim.safety_kernel import SafetyKernel, signal_name_for
from sim.traffic_policy import FLASH_HALF_PERIOD_S, MIN_PHASE_DURATION_S, ORANGE_DURATION

log = logging.getLogger("controllers")


def _usable_dt(dt: float) -> bool:
    try:
        return math.isfinite(dt) and dt > 0.0
    except TypeError:
        return False


def _clamp_duration(seconds: float) -> float:
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return MIN_PHASE_DURATION_S
    if not math.isfinite(value) or value < MIN_PHASE_DURATION_S:
        return MIN_PHASE_DURATION_S
    return value


class TrafficLightController(ABC):
    """Anything that produces an :class:`IntersectionState` over time."""

    name = "controller"

    @abstractmethod
    def tick(self, dt: float) -> None:
        """Advance the controller by *dt* seconds."""

    @abstractmethod
    def current_state(self) -> IntersectionState:
        """The committed light pattern."""

    @abstractmethod
    def reset(self) -> None:
        """Return to the post-construction state."""


# ── Fixed cycle ───────────────────────────────────────────────────────────────

class FixedCyclePhase(Enum):
    NS_GREEN = "ns_green"
    NS_ORANGE = "ns_orange"
    EW_GREEN = "ew_green"
    EW_ORANGE = "ew_orange"


_NEXT_PHASE: Dict[FixedCyclePhase, FixedCyclePhase] = {
    FixedCyclePhase.NS_GREEN: FixedCyclePhase.NS_ORANGE,
    FixedCyclePhase.NS_ORANGE: FixedCyclePhase.EW_GREEN,
    FixedCyclePhase.EW_GREEN: FixedCyclePhase.EW_ORANGE,
    FixedCyclePhase.EW_ORANGE: FixedCyclePhase.NS_GREEN,
}


def fixed_cycle_pattern(phase: FixedCyclePhase) -> IntersectionState:
    """Light pattern shown during *phase*; right-turn signals stay Red."""
    red = IntersectionState()
    if phase is FixedCyclePhase.NS_GREEN:
        return red.with_lights(north=LightColor.GREEN, south=LightColor.GREEN)
    if phase is FixedCyclePhase.NS_ORANGE:
        return red.with_lights(north=LightColor.ORANGE, south=LightColor.ORANGE)
    if phase is FixedCyclePhase.EW_GREEN:
        return red.with_lights(east=LightColor.GREEN, west=LightColor.GREEN)
    return red.with_lights(east=LightColor.ORANGE, west=LightColor.ORANGE)


class FixedCycleController(TrafficLightController):
    """Deterministic four-phase cycle over the whole intersection.

    Parameters
    ----------
    ns_green_duration, ew_green_duration : float
        Green time of each corridor in seconds.  Orange always lasts
        :data:`~sim.traffic_policy.ORANGE_DURATION`.
    kernel : SafetyKernel or None
        Kernel used to vet every phase change.
    """

    name = "fixed_cycle"

    def __init__(
        self,
        ns_green_duration: float = 10.0,
        ew_green_duration: float = 10.0,
        kernel: Optional[SafetyKernel] = None,
    ) -> None:
        self._ns_duration = _clamp_duration(ns_green_duration)
        self._ew_duration = _clamp_duration(ew_green_duration)
        self._kernel = kernel or SafetyKernel()
        self._phase = FixedCyclePhase.NS_GREEN
        self._elapsed = 0.0
        self._state = fixed_cycle_pattern(self._phase)

    @property
    def phase(self) -> FixedCyclePhase:
        return self._phase

    @property
    def phase_elapsed(self) -> float:
        return self._elapsed

    def phase_duration(self, phase: FixedCyclePhase) -> float:
        if phase is FixedCyclePhase.NS_GREEN:
            return self._ns_duration
        if phase is FixedCyclePhase.EW_GREEN:
            return self._ew_duration
        return ORANGE_DURATION

    def tick(self, dt: float) -> None:
        if not _usable_dt(dt):
            return
        self._elapsed += dt
        duration = self.phase_duration(self._phase)
        while self._elapsed >= duration:
            self._elapsed -= duration
            self._advance()
            duration = self.phase_duration(self._phase)

    def _advance(self) -> None:
        candidate_phase = _NEXT_PHASE[self._phase]
        candidate = fixed_cycle_pattern(candidate_phase)
        # The dwell argument is the orange constant, not the tick's dt.
        if self._kernel.is_valid_transition(self._state, candidate, ORANGE_DURATION):
            self._phase = candidate_phase
            self._state = candidate
        else:
            log.error(
                "Fixed cycle refused %s -> %s", self._phase.value, candidate_phase.value
            )

    def current_state(self) -> IntersectionState:
        return self._state

    def reset(self) -> None:
        self._phase = FixedCyclePhase.NS_GREEN
        self._elapsed = 0.0
        self._state = fixed_cycle_pattern(self._phase)


# ── Signal groups ─────────────────────────────────────────────────────────────

class SignalGroupController(TrafficLightController):
    """Cycles through the config's signal groups in declaration order.

    Each group shows Green for ``min_green_seconds`` and then Orange for
    ``orange_seconds`` on every signal governing one of its
    (lane, movement) pairs.  With no groups the output is all Red and
    :meth:`tick` does nothing.
    """

    name = "signal_group"

    def __init__(self, config: IntersectionConfig) -> None:
        self._groups: Dict[int, SignalGroupConfig] = {}
        self._phase_order: List[int] = []
        for group in config.signal_groups:
            if group.id not in self._groups:
                self._groups[group.id] = group
                self._phase_order.append(group.id)
        self._lane_approach: Dict[int, ApproachId] = {}
        for approach in config.approaches:
            for lane in approach.lanes:
                self._lane_approach.setdefault(lane.id, approach.id)
        self._phase_index = 0
        self._in_orange = False
        self._phase_elapsed = 0.0
        self._state = IntersectionState()
        self._apply()

    @property
    def phase_order(self) -> List[int]:
        return list(self._phase_order)

    @property
    def phase_index(self) -> int:
        return self._phase_index

    @property
    def in_orange(self) -> bool:
        return self._in_orange

    @property
    def current_group_id(self) -> Optional[int]:
        if not self._phase_order:
            return None
        return self._phase_order[self._phase_index]

    def _current_duration(self) -> float:
        group = self._groups[self._phase_order[self._phase_index]]
        if self._in_orange:
            return _clamp_duration(group.orange_seconds)
        return _clamp_duration(group.min_green_seconds)

    def tick(self, dt: float) -> None:
        if not self._phase_order or not _usable_dt(dt):
            return
        self._phase_elapsed += dt
        duration = self._current_duration()
        while self._phase_elapsed >= duration:
            self._phase_elapsed -= duration
            if self._in_orange:
                self._in_orange = False
                self._phase_index = (self._phase_index + 1) % len(self._phase_order)
            else:
                self._in_orange = True
            self._apply()
            duration = self._current_duration()

    def _apply(self) -> None:
        if not self._phase_order:
            self._state = IntersectionState()
            return
        group = self._groups[self._phase_order[self._phase_index]]
        color = LightColor.ORANGE if self._in_orange else LightColor.GREEN
        changes: Dict[str, LightColor] = {}
        for lane_id in group.controlled_lanes:
            approach = self._lane_approach.get(lane_id)
            if approach is None:
                continue
            for movement in group.green_movements:
                changes[signal_name_for(approach, movement)] = color
        self._state = IntersectionState().with_lights(**changes)

    def current_state(self) -> IntersectionState:
        return self._state

    def reset(self) -> None:
        self._phase_index = 0
        self._in_orange = False
        self._phase_elapsed = 0.0
        self._apply()


# ── Fallback ──────────────────────────────────────────────────────────────────

class FlashingAmberController(TrafficLightController):
    """Every signal blinks Orange/Red; no Green is ever shown."""

    name = "flashing_amber"

    def __init__(self, half_period_s: float = FLASH_HALF_PERIOD_S) -> None:
        self._half_period = _clamp_duration(half_period_s)
        self._elapsed = 0.0
        self._orange_on = True
        self._state = IntersectionState.uniform(LightColor.ORANGE)

    @property
    def orange_on(self) -> bool:
        return self._orange_on

    def tick(self, dt: float) -> None:
        if not _usable_dt(dt):
            return
        self._elapsed += dt
        while self._elapsed >= self._half_period:
            self._elapsed -= self._half_period
            self._orange_on = not self._orange_on
            self._apply()

    def _apply(self) -> None:
        color = LightColor.ORANGE if self._orange_on else LightColor.RED
        self._state = IntersectionState.uniform(color)

    def current_state(self) -> IntersectionState:
        return self._state

    def reset(self) -> None:
        self._elapsed = 0.0
        self._orange_on = True
        self._apply()
