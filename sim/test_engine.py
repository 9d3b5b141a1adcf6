#!/usr/bin/env python3
"""
Tests for the engine tick loop, UI commands and the flashing-amber fallback.
"""

from __future__ import annotations

import random
import unittest

from sim.controllers import (
    FixedCycleController,
    FlashingAmberController,
    SignalGroupController,
    TrafficLightController,
)
from sim.engine import ControlMode, SimulatorEngine, UICommand
from sim.intersection_config import (
    ApproachId,
    IntersectionConfig,
    MovementType,
    SignalGroupConfig,
    lane_id_for,
    make_default_intersection_config,
)
from sim.lights import IntersectionState, LightColor
from sim.safety_kernel import through_signal_for, turn_signal_for
from sim.traffic_policy import crossing_time_s

G, O, R = LightColor.GREEN, LightColor.ORANGE, LightColor.RED


class ConflictingController(TrafficLightController):
    """Shows North and East Green together."""

    name = "conflicting"

    def __init__(self) -> None:
        self.resets = 0

    def tick(self, dt: float) -> None:
        pass

    def current_state(self) -> IntersectionState:
        return IntersectionState(north=G, east=G)

    def reset(self) -> None:
        self.resets += 1


def _groups_config(*groups: SignalGroupConfig) -> IntersectionConfig:
    base = make_default_intersection_config()
    return IntersectionConfig(base.approaches, groups, base.lane_connections)


def _straight_group(group_id: int, *approaches: ApproachId) -> SignalGroupConfig:
    return SignalGroupConfig(
        id=group_id,
        controlled_lanes=tuple(lane_id_for(a, i) for a in approaches for i in (0, 1)),
        green_movements=(MovementType.STRAIGHT,),
        min_green_seconds=8.0,
        orange_seconds=2.0,
    )


class ControllerSelectionTests(unittest.TestCase):
    def test_default_is_fixed_cycle(self) -> None:
        engine = SimulatorEngine()
        self.assertIsInstance(engine.controller, FixedCycleController)
        self.assertIs(engine.control_mode, ControlMode.BASIC)

    def test_signal_groups_select_group_controller(self) -> None:
        engine = SimulatorEngine(_groups_config(_straight_group(1, ApproachId.NORTH)))
        self.assertIsInstance(engine.controller, SignalGroupController)

    def test_set_controller_none_rebuilds_default(self) -> None:
        engine = SimulatorEngine()
        custom = ConflictingController()
        engine.set_controller(custom)
        self.assertIs(engine.controller, custom)
        self.assertEqual(custom.resets, 1)
        engine.set_controller(None, ControlMode.NULL_CONTROL)
        self.assertIsInstance(engine.controller, FlashingAmberController)
        self.assertIs(engine.control_mode, ControlMode.NULL_CONTROL)


class FallbackTests(unittest.TestCase):
    def test_conflicting_greens_switch_to_flashing_amber(self) -> None:
        engine = SimulatorEngine()
        engine.set_controller(ConflictingController())
        engine.start()
        engine.tick(0.1)
        self.assertIs(engine.control_mode, ControlMode.NULL_CONTROL)
        self.assertIsInstance(engine.controller, FlashingAmberController)
        self.assertEqual(engine.current_light_state(), IntersectionState.uniform(O))
        self.assertEqual(engine.safety_violations, 1)

        engine.tick(1.0)
        self.assertEqual(engine.current_light_state(), IntersectionState.uniform(R))
        self.assertEqual(engine.safety_violations, 1)

    def test_fallback_never_shows_green(self) -> None:
        engine = SimulatorEngine()
        engine.set_controller(ConflictingController())
        engine.start()
        for _ in range(300):
            engine.tick(0.1)
            self.assertNotIn(G, engine.current_light_state().signals().values())
        self.assertEqual(engine.safety_violations, 1)

    def test_conflicting_signal_groups_trigger_fallback(self) -> None:
        group = SignalGroupConfig(
            id=1,
            controlled_lanes=(lane_id_for(ApproachId.NORTH, 0), lane_id_for(ApproachId.EAST, 0)),
            green_movements=(MovementType.STRAIGHT,),
        )
        engine = SimulatorEngine(_groups_config(group))
        engine.start()
        engine.tick(0.1)
        self.assertIs(engine.control_mode, ControlMode.NULL_CONTROL)
        self.assertEqual(engine.safety_violations, 1)

    def test_group_conflict_reported_without_static_violation(self) -> None:
        # Opposing left turns cut across each other.
        group_a = SignalGroupConfig(
            id=1,
            controlled_lanes=(lane_id_for(ApproachId.NORTH, 0),),
            green_movements=(MovementType.LEFT,),
        )
        group_b = SignalGroupConfig(
            id=2,
            controlled_lanes=(lane_id_for(ApproachId.SOUTH, 0),),
            green_movements=(MovementType.LEFT,),
        )
        engine = SimulatorEngine(_groups_config(group_a, group_b))
        state = IntersectionState(north=G, south=G)
        self.assertTrue(engine.kernel.is_safe(state))
        self.assertIn("signal_group_conflict", engine.signal_state_violations(state))

    def test_fallback_only_left_through_explicit_mode_change(self) -> None:
        engine = SimulatorEngine()
        engine.set_controller(ConflictingController())
        engine.start()
        rng = random.Random(11)
        for _ in range(200):
            engine.tick(rng.uniform(0.01, 2.0))
            self.assertIs(engine.control_mode, ControlMode.NULL_CONTROL)
        engine.set_control_mode(ControlMode.BASIC)
        self.assertIsInstance(engine.controller, FixedCycleController)
        engine.tick(0.1)
        self.assertIs(engine.control_mode, ControlMode.BASIC)

    def test_reset_returns_to_basic(self) -> None:
        engine = SimulatorEngine()
        engine.set_controller(ConflictingController())
        engine.start()
        engine.tick(0.1)
        engine.reset()
        self.assertIs(engine.control_mode, ControlMode.BASIC)
        self.assertIsInstance(engine.controller, FixedCycleController)
        self.assertEqual(engine.safety_violations, 0)
        self.assertEqual(engine.current_time, 0.0)
        self.assertFalse(engine.is_running())


class CommandTests(unittest.TestCase):
    def test_parse(self) -> None:
        self.assertIs(UICommand.parse(" Start "), UICommand.START)
        self.assertIs(UICommand.parse("STEP"), UICommand.STEP)
        self.assertIsNone(UICommand.parse("launch"))
        self.assertIsNone(UICommand.parse(None))

    def test_start_stop(self) -> None:
        engine = SimulatorEngine()
        self.assertTrue(engine.handle_command("start"))
        self.assertTrue(engine.is_running())
        self.assertTrue(engine.handle_command(UICommand.STOP))
        self.assertFalse(engine.is_running())

    def test_step_while_stopped_advances_once(self) -> None:
        engine = SimulatorEngine()
        self.assertTrue(engine.handle_command("step", 0.5))
        self.assertAlmostEqual(engine.current_time, 0.5)
        self.assertFalse(engine.is_running())

    def test_step_while_running(self) -> None:
        engine = SimulatorEngine()
        engine.start()
        engine.handle_command("step", 0.25)
        self.assertAlmostEqual(engine.current_time, 0.25)
        self.assertTrue(engine.is_running())

    def test_unknown_command_is_ignored(self) -> None:
        engine = SimulatorEngine()
        self.assertFalse(engine.handle_command("explode"))
        self.assertFalse(engine.is_running())
        self.assertEqual(engine.current_time, 0.0)

    def test_reset_command(self) -> None:
        engine = SimulatorEngine(traffic_rate=1.0)
        engine.start()
        for _ in range(30):
            engine.tick(0.1)
        self.assertTrue(engine.handle_command("reset"))
        self.assertEqual(engine.current_time, 0.0)
        self.assertEqual(engine.traffic.total_generated(), 0)

    def test_tick_ignored_when_stopped_or_bad_dt(self) -> None:
        engine = SimulatorEngine()
        engine.tick(1.0)
        self.assertEqual(engine.current_time, 0.0)
        engine.start()
        for dt in (0.0, -1.0, float("nan"), float("inf"), None):
            engine.tick(dt)  # type: ignore[arg-type]
        self.assertEqual(engine.current_time, 0.0)


class SimulationTests(unittest.TestCase):
    def test_simulate_fixed_cycle(self) -> None:
        engine = SimulatorEngine(traffic_rate=0.5, ns_duration=10.0, ew_duration=10.0)
        metrics = engine.simulate(120.0, 0.1)
        self.assertGreaterEqual(metrics.total_time, 120.0 - 1e-6)
        self.assertGreater(metrics.vehicles_generated, 0)
        self.assertGreater(metrics.vehicles_crossed, 0)
        self.assertEqual(metrics.safety_violations, 0)
        self.assertGreater(metrics.average_wait_time, 0.0)
        self.assertFalse(engine.is_running())
        self.assertEqual(set(metrics.as_dict()["queues"]), {"north", "east", "south", "west"})

    def test_simulate_signal_groups(self) -> None:
        config = _groups_config(
            _straight_group(1, ApproachId.NORTH, ApproachId.SOUTH),
            _straight_group(2, ApproachId.EAST, ApproachId.WEST),
        )
        engine = SimulatorEngine(config, traffic_rate=0.5)
        metrics = engine.simulate(120.0, 0.1)
        self.assertEqual(metrics.safety_violations, 0)
        self.assertIs(engine.control_mode, ControlMode.BASIC)
        self.assertGreater(metrics.vehicles_crossed, 0)

    def test_simulate_with_bad_step_does_nothing(self) -> None:
        metrics = SimulatorEngine().simulate(10.0, 0.0)
        self.assertEqual(metrics.total_time, 0.0)
        self.assertEqual(metrics.vehicles_generated, 0)

    def test_simulate_resets_between_runs(self) -> None:
        engine = SimulatorEngine(traffic_rate=1.0)
        first = engine.simulate(30.0, 0.1)
        second = engine.simulate(30.0, 0.1)
        self.assertEqual(first, second)

    def test_vehicle_ids_unique_and_increasing(self) -> None:
        for seed in (1, 2, 3):
            rng = random.Random(seed)
            engine = SimulatorEngine(traffic_rate=rng.uniform(0.2, 2.0))
            engine.start()
            for _ in range(400):
                engine.tick(rng.uniform(0.05, 0.3))
            ids = [v.id for v in engine.traffic.crossed_vehicles()]
            for approach in ApproachId:
                queued = [v.id for v in engine.traffic.queue(approach)]
                self.assertEqual(queued, sorted(queued))
                ids.extend(queued)
            self.assertEqual(len(ids), len(set(ids)))
            self.assertEqual(sorted(ids), list(range(1, engine.traffic.total_generated() + 1)))

    def test_crossings_start_only_on_green(self) -> None:
        engine = SimulatorEngine(traffic_rate=1.0, ns_duration=5.0, ew_duration=5.0)
        engine.start()
        for _ in range(1200):
            before = engine.current_time
            engine.tick(0.1)
            state = engine.current_light_state()
            for approach in ApproachId:
                for vehicle in engine.traffic.queue(approach):
                    if vehicle.crossing_time != before:
                        continue
                    through = getattr(state, through_signal_for(approach))
                    turn = getattr(state, turn_signal_for(approach))
                    self.assertTrue(
                        through == G or (vehicle.movement == MovementType.RIGHT and turn == G),
                        msg=f"vehicle {vehicle.id} crossed on {through.value}",
                    )

    def test_vehicles_are_conserved(self) -> None:
        rng = random.Random(77)
        engine = SimulatorEngine(traffic_rate=1.5, ns_duration=4.0, ew_duration=6.0)
        engine.start()
        for _ in range(1500):
            engine.tick(rng.uniform(0.02, 0.4))
            m = engine.metrics()
            self.assertEqual(m.vehicles_generated, m.vehicles_crossed + m.total_queue_length)
            self.assertLessEqual(engine.traffic.total_crossing(), m.total_queue_length)

    def test_positions_bounded_while_not_green(self) -> None:
        rng = random.Random(3)
        engine = SimulatorEngine(traffic_rate=1.0, ns_duration=7.0, ew_duration=3.0)
        engine.start()
        limit = engine.traffic.policy.stop_target_m
        for _ in range(1500):
            engine.tick(rng.uniform(0.02, 0.3))
            state = engine.current_light_state()
            for approach in ApproachId:
                if getattr(state, through_signal_for(approach)) == G:
                    continue
                for vehicle in engine.traffic.queue(approach):
                    if not vehicle.is_crossing:
                        self.assertLessEqual(vehicle.position_in_lane, limit + 1e-9)

    def test_crossing_lasts_at_least_base_time(self) -> None:
        engine = SimulatorEngine(traffic_rate=1.0)
        engine.simulate(90.0, 0.1)
        crossed = engine.traffic.crossed_vehicles()
        self.assertTrue(crossed)
        for vehicle in crossed:
            self.assertGreaterEqual(
                vehicle.crossing_duration + 1e-9,
                crossing_time_s(vehicle.turning, 0),
            )
            self.assertGreaterEqual(vehicle.wait_time(), 0.0)

    def test_snapshot_shape(self) -> None:
        engine = SimulatorEngine(traffic_rate=1.0)
        engine.start()
        for _ in range(25):
            engine.tick(0.1)
        data = engine.get_snapshot().as_dict()
        self.assertTrue(data["running"])
        self.assertEqual(data["control_mode"], "basic")
        self.assertEqual(set(data["lanes"]), {"north", "east", "south", "west"})
        self.assertEqual(data["lights"]["north"], "green")
        self.assertEqual(len(data["lanes"]["north"]), 2)


if __name__ == "__main__":
    unittest.main()
