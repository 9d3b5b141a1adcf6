#!/usr/bin/env python3
"""
Tests for the fixed-cycle, signal-group and flashing-amber controllers.
"""

from __future__ import annotations

import math
import random
import unittest

from sim.controllers import (
    FixedCycleController,
    FixedCyclePhase,
    FlashingAmberController,
    SignalGroupController,
)
from sim.intersection_config import (
    ApproachId,
    IntersectionConfig,
    MovementType,
    SignalGroupConfig,
    lane_id_for,
    make_default_intersection_config,
)
from sim.lights import IntersectionState, LightColor
from sim.safety_kernel import SafetyKernel
from sim.traffic_policy import MIN_PHASE_DURATION_S, ORANGE_DURATION

G, O, R = LightColor.GREEN, LightColor.ORANGE, LightColor.RED

_CYCLE = (
    FixedCyclePhase.NS_GREEN,
    FixedCyclePhase.NS_ORANGE,
    FixedCyclePhase.EW_GREEN,
    FixedCyclePhase.EW_ORANGE,
)


def _group_config(green_s: float = 3.0, orange_s: float = 2.0) -> IntersectionConfig:
    base = make_default_intersection_config()
    groups = (
        SignalGroupConfig(
            id=10,
            controlled_lanes=(lane_id_for(ApproachId.NORTH, 0), lane_id_for(ApproachId.SOUTH, 0)),
            green_movements=(MovementType.STRAIGHT,),
            min_green_seconds=green_s,
            orange_seconds=orange_s,
        ),
        SignalGroupConfig(
            id=20,
            controlled_lanes=(lane_id_for(ApproachId.EAST, 2),),
            green_movements=(MovementType.RIGHT,),
            min_green_seconds=green_s,
            orange_seconds=orange_s,
        ),
    )
    return IntersectionConfig(base.approaches, groups, base.lane_connections)


class FixedCycleTests(unittest.TestCase):
    def test_cadence(self) -> None:
        kernel = SafetyKernel()
        ctl = FixedCycleController(1.0, 1.0)
        s = ctl.current_state()
        self.assertEqual((s.north, s.south, s.east, s.west), (G, G, R, R))

        ctl.tick(1.1)
        s = ctl.current_state()
        self.assertEqual((s.north, s.south), (O, O))
        self.assertTrue(kernel.is_safe(s))

        ctl.tick(2.1)
        s = ctl.current_state()
        self.assertEqual((s.east, s.west, s.north, s.south), (G, G, R, R))
        self.assertTrue(kernel.is_safe(s))

        ctl.tick(1.1)
        s = ctl.current_state()
        self.assertEqual((s.east, s.west), (O, O))
        self.assertTrue(kernel.is_safe(s))

    def test_remainder_carries_into_next_phase(self) -> None:
        ctl = FixedCycleController(1.0, 1.0)
        ctl.tick(1.5)
        self.assertIs(ctl.phase, FixedCyclePhase.NS_ORANGE)
        self.assertAlmostEqual(ctl.phase_elapsed, 0.5)

    def test_large_tick_walks_several_phases(self) -> None:
        ctl = FixedCycleController(1.0, 1.0)
        ctl.tick(1.0 + ORANGE_DURATION + 1.0 + 0.5)
        self.assertIs(ctl.phase, FixedCyclePhase.EW_ORANGE)

    def test_random_ticks_stay_safe_and_ordered(self) -> None:
        rng = random.Random(1234)
        kernel = SafetyKernel()
        for _ in range(20):
            ns, ew = rng.uniform(0.2, 15.0), rng.uniform(0.2, 15.0)
            ctl = FixedCycleController(ns, ew)
            phases = [ctl.phase]
            for _ in range(600):
                ctl.tick(rng.uniform(0.01, 1.5))
                state = ctl.current_state()
                self.assertTrue(kernel.is_safe(state))
                self.assertFalse(
                    G in (state.north, state.south) and G in (state.east, state.west)
                )
                if ctl.phase is not phases[-1]:
                    phases.append(ctl.phase)
            self.assertGreater(len(phases), 1)

    def test_every_phase_visited_in_order_with_small_ticks(self) -> None:
        rng = random.Random(4321)
        ctl = FixedCycleController(rng.uniform(0.2, 5.0), rng.uniform(0.2, 5.0))
        phases = [ctl.phase]
        for _ in range(2000):
            ctl.tick(rng.uniform(0.01, 0.15))
            if ctl.phase is not phases[-1]:
                phases.append(ctl.phase)
        self.assertGreater(len(phases), 8)
        for i, phase in enumerate(phases):
            self.assertIs(phase, _CYCLE[i % 4])

    def test_orange_dwell_across_ticks(self) -> None:
        rng = random.Random(2024)
        ctl = FixedCycleController(1.0, 1.5)
        now = 0.0
        orange_start = None
        dwells = []
        for _ in range(3000):
            before = ctl.phase
            dt = rng.uniform(0.01, 0.15)
            ctl.tick(dt)
            now += dt
            if ctl.phase is before:
                continue
            # Only one phase change fits in a tick this small.
            changed_at = now - ctl.phase_elapsed
            if ctl.phase in (FixedCyclePhase.NS_ORANGE, FixedCyclePhase.EW_ORANGE):
                orange_start = changed_at
            elif orange_start is not None:
                dwells.append(changed_at - orange_start)
                orange_start = None
        self.assertTrue(dwells)
        for dwell in dwells:
            self.assertGreaterEqual(dwell + 1e-6, ORANGE_DURATION)

    def test_reset_is_idempotent(self) -> None:
        fresh = FixedCycleController(4.0, 6.0)
        ctl = FixedCycleController(4.0, 6.0)
        ctl.tick(7.3)
        ctl.reset()
        once = (ctl.phase, ctl.phase_elapsed, ctl.current_state())
        ctl.reset()
        self.assertEqual(once, (ctl.phase, ctl.phase_elapsed, ctl.current_state()))
        self.assertEqual(once, (fresh.phase, fresh.phase_elapsed, fresh.current_state()))

    def test_bad_dt_is_ignored(self) -> None:
        ctl = FixedCycleController(1.0, 1.0)
        for dt in (0.0, -3.0, math.nan, math.inf, None):
            ctl.tick(dt)  # type: ignore[arg-type]
        self.assertIs(ctl.phase, FixedCyclePhase.NS_GREEN)
        self.assertEqual(ctl.phase_elapsed, 0.0)

    def test_non_positive_duration_is_clamped(self) -> None:
        ctl = FixedCycleController(0.0, -5.0)
        self.assertEqual(ctl.phase_duration(FixedCyclePhase.NS_GREEN), MIN_PHASE_DURATION_S)
        self.assertEqual(ctl.phase_duration(FixedCyclePhase.EW_GREEN), MIN_PHASE_DURATION_S)
        ctl.tick(0.05)
        self.assertIs(ctl.phase, FixedCyclePhase.NS_GREEN)
        ctl.tick(0.06)
        self.assertIs(ctl.phase, FixedCyclePhase.NS_ORANGE)


class FlashingAmberTests(unittest.TestCase):
    def test_toggles_every_second(self) -> None:
        ctl = FlashingAmberController()
        self.assertEqual(ctl.current_state(), IntersectionState.uniform(O))
        ctl.tick(0.5)
        self.assertEqual(ctl.current_state(), IntersectionState.uniform(O))
        ctl.tick(0.5)
        self.assertEqual(ctl.current_state(), IntersectionState.uniform(R))
        ctl.tick(1.0)
        self.assertEqual(ctl.current_state(), IntersectionState.uniform(O))

    def test_never_green_and_always_safe(self) -> None:
        rng = random.Random(99)
        kernel = SafetyKernel()
        ctl = FlashingAmberController()
        for _ in range(500):
            ctl.tick(rng.uniform(0.01, 3.0))
            state = ctl.current_state()
            self.assertTrue(kernel.is_safe(state))
            self.assertNotIn(G, state.signals().values())

    def test_reset(self) -> None:
        ctl = FlashingAmberController()
        ctl.tick(1.2)
        ctl.reset()
        ctl.reset()
        self.assertTrue(ctl.orange_on)
        self.assertEqual(ctl.current_state(), FlashingAmberController().current_state())


class SignalGroupControllerTests(unittest.TestCase):
    def test_no_groups_is_all_red(self) -> None:
        ctl = SignalGroupController(make_default_intersection_config())
        ctl.tick(100.0)
        self.assertEqual(ctl.current_state(), IntersectionState())
        self.assertIsNone(ctl.current_group_id)

    def test_cycles_groups_in_declaration_order(self) -> None:
        ctl = SignalGroupController(_group_config(green_s=3.0, orange_s=2.0))
        self.assertEqual(ctl.phase_order, [10, 20])
        s = ctl.current_state()
        self.assertEqual((s.north, s.south, s.turn_east_north), (G, G, R))

        ctl.tick(3.0)
        self.assertTrue(ctl.in_orange)
        s = ctl.current_state()
        self.assertEqual((s.north, s.south), (O, O))

        ctl.tick(2.0)
        self.assertEqual(ctl.current_group_id, 20)
        s = ctl.current_state()
        self.assertEqual((s.north, s.south, s.turn_east_north), (R, R, G))

        ctl.tick(5.0)
        self.assertEqual(ctl.current_group_id, 10)

    def test_reset(self) -> None:
        config = _group_config()
        ctl = SignalGroupController(config)
        ctl.tick(4.0)
        ctl.reset()
        self.assertEqual(ctl.current_state(), SignalGroupController(config).current_state())
        self.assertEqual(ctl.phase_index, 0)
        self.assertFalse(ctl.in_orange)


if __name__ == "__main__":
    unittest.main()
