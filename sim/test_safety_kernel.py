#!/usr/bin/env python3
"""
Tests for the static safety predicate, the transition law and the
signal-group conflict checks.
"""

from __future__ import annotations

import random
import unittest
from dataclasses import fields

from sim.intersection_config import (
    ApproachConfig,
    ApproachId,
    IntersectionConfig,
    LaneConfig,
    MovementType,
    SignalGroupConfig,
    lane_id_for,
    make_default_intersection_config,
)
from sim.lights import IntersectionState, LightColor
from sim.safety_kernel import SafetyKernel, config_errors, signal_name_for

G, O, R = LightColor.GREEN, LightColor.ORANGE, LightColor.RED


def _two_group_config() -> IntersectionConfig:
    base = make_default_intersection_config()
    groups = (
        SignalGroupConfig(
            id=1,
            controlled_lanes=(lane_id_for(ApproachId.NORTH, 0), lane_id_for(ApproachId.SOUTH, 0)),
            green_movements=(MovementType.STRAIGHT,),
        ),
        SignalGroupConfig(
            id=2,
            controlled_lanes=(lane_id_for(ApproachId.EAST, 0), lane_id_for(ApproachId.WEST, 0)),
            green_movements=(MovementType.STRAIGHT,),
        ),
    )
    return IntersectionConfig(base.approaches, groups, base.lane_connections)


def _random_state(rng: random.Random) -> IntersectionState:
    return IntersectionState(**{f.name: rng.choice((G, O, R)) for f in fields(IntersectionState)})


class StaticSafetyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.kernel = SafetyKernel()

    def test_conflicting_greens_are_unsafe(self) -> None:
        state = IntersectionState(north=G, east=G)
        self.assertFalse(self.kernel.is_safe(state))
        self.assertIn("conflicting_greens", self.kernel.safety_violations(state))

    def test_ns_only_green_is_safe(self) -> None:
        self.assertTrue(self.kernel.is_safe(IntersectionState(north=G)))

    def test_coaxial_greens_are_safe(self) -> None:
        self.assertTrue(self.kernel.is_safe(IntersectionState(north=G, south=G)))
        self.assertTrue(self.kernel.is_safe(IntersectionState(east=G, west=G)))

    def test_turn_guard(self) -> None:
        state = IntersectionState(west=G, turn_south_east=G)
        self.assertFalse(self.kernel.is_safe(state))
        self.assertIn("turn_light_conflict", self.kernel.safety_violations(state))
        self.assertTrue(self.kernel.is_safe(state.with_lights(west=R)))

    def test_turn_guard_counts_orange_as_active(self) -> None:
        self.assertFalse(self.kernel.is_safe(IntersectionState(west=O, turn_south_east=G)))

    def test_all_red_and_all_orange_are_safe(self) -> None:
        self.assertTrue(self.kernel.is_safe(IntersectionState.uniform(R)))
        self.assertTrue(self.kernel.is_safe(IntersectionState.uniform(O)))

    def test_malformed_state_is_unsafe(self) -> None:
        self.assertFalse(self.kernel.is_safe({"north": "green"}))  # type: ignore[arg-type]
        self.assertEqual(self.kernel.safety_violations(None), ["malformed_state"])  # type: ignore[arg-type]


class TransitionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.kernel = SafetyKernel()

    def test_orange_dwell(self) -> None:
        prev = IntersectionState(north=O)
        nxt = IntersectionState(north=R)
        self.assertFalse(self.kernel.is_valid_transition(prev, nxt, 1.0))
        self.assertIn("orange_dwell", self.kernel.transition_violations(prev, nxt, 1.0))
        self.assertTrue(self.kernel.is_valid_transition(prev, nxt, 2.0))

    def test_forbidden_color_edges(self) -> None:
        for before, after in ((G, R), (O, G), (R, O)):
            with self.subTest(before=before, after=after):
                self.assertFalse(
                    self.kernel.is_valid_transition(
                        IntersectionState(north=before), IntersectionState(north=after), 5.0
                    )
                )

    def test_corridor_activation_guard(self) -> None:
        prev = IntersectionState(east=O)
        nxt = IntersectionState(north=G, east=O)
        self.assertIn("corridor_activation", self.kernel.transition_violations(prev, nxt, 0.1))

    def test_unsafe_destination_rejected(self) -> None:
        prev = IntersectionState(north=G, east=R)
        nxt = IntersectionState(north=G, east=G)
        self.assertIn("unsafe_next", self.kernel.transition_violations(prev, nxt, 0.1))

    def test_self_transition_always_valid(self) -> None:
        rng = random.Random(7)
        checked = 0
        while checked < 200:
            state = _random_state(rng)
            if not self.kernel.is_safe(state):
                continue
            dt = rng.choice((0.0, 0.05, 1.0, 2.0, 30.0))
            self.assertTrue(self.kernel.is_valid_transition(state, state, dt), msg=str(state))
            checked += 1

    def test_transition_is_not_symmetric(self) -> None:
        a = IntersectionState(north=G)
        b = IntersectionState(north=O)
        self.assertTrue(self.kernel.is_valid_transition(a, b, 0.1))
        self.assertFalse(self.kernel.is_valid_transition(b, a, 0.1))

    def test_malformed_inputs_are_invalid(self) -> None:
        state = IntersectionState()
        self.assertFalse(self.kernel.is_valid_transition(state, "red", 1.0))  # type: ignore[arg-type]
        self.assertFalse(self.kernel.is_valid_transition(state, state, "soon"))  # type: ignore[arg-type]


class SignalGroupTests(unittest.TestCase):
    def test_group_conflicts(self) -> None:
        kernel = SafetyKernel(_two_group_config())
        self.assertTrue(kernel.is_config_valid())
        self.assertFalse(kernel.are_signal_groups_conflict_free({1, 2}))
        self.assertTrue(kernel.are_signal_groups_conflict_free({1}))
        self.assertFalse(kernel.are_signal_groups_conflict_free({99}))

    def test_invalid_config_fails_closed(self) -> None:
        base = _two_group_config()
        broken = IntersectionConfig(base.approaches[:3], base.signal_groups, ())
        kernel = SafetyKernel(broken)
        self.assertFalse(kernel.is_config_valid())
        self.assertFalse(kernel.are_signal_groups_conflict_free({1}))

    def test_config_errors_report_problems(self) -> None:
        lane = LaneConfig(id=5, allowed_movements=(MovementType.STRAIGHT,))
        approaches = tuple(
            ApproachConfig(id=a, lanes=(lane,) if a != ApproachId.WEST else ())
            for a in ApproachId
        )
        group = SignalGroupConfig(id=1, controlled_lanes=(77,), green_movements=(MovementType.LEFT,))
        errors = config_errors(IntersectionConfig(approaches, (group, group), ()))
        self.assertIn("approach west has no lanes", errors)
        self.assertIn("duplicate lane id: 5", errors)
        self.assertIn("duplicate signal_group id: 1", errors)
        self.assertIn("signal group 1 references unknown lane 77", errors)

    def test_movement_conflict_rules(self) -> None:
        conflict = SafetyKernel.has_movement_conflict
        N, E, S, W = ApproachId.NORTH, ApproachId.EAST, ApproachId.SOUTH, ApproachId.WEST
        straight, left, right = MovementType.STRAIGHT, MovementType.LEFT, MovementType.RIGHT
        self.assertFalse(conflict(N, straight, S, straight))
        self.assertTrue(conflict(N, straight, E, straight))
        self.assertTrue(conflict(N, left, S, left))
        self.assertTrue(conflict(N, straight, N, right))
        # North-right exits west and South-straight exits north.
        self.assertFalse(conflict(N, right, S, straight))
        # Both end up heading west.
        self.assertTrue(conflict(N, right, E, straight))
        self.assertFalse(conflict(W, right, E, right))

    def test_active_signal_groups(self) -> None:
        kernel = SafetyKernel(_two_group_config())
        self.assertEqual(kernel.active_signal_groups(IntersectionState(north=G)), [1])
        self.assertEqual(kernel.active_signal_groups(IntersectionState(east=O, west=O)), [2])
        self.assertEqual(kernel.active_signal_groups(IntersectionState()), [])

    def test_signal_name_for(self) -> None:
        self.assertEqual(signal_name_for(ApproachId.EAST, MovementType.STRAIGHT), "east")
        self.assertEqual(signal_name_for(ApproachId.EAST, MovementType.LEFT), "east")
        self.assertEqual(signal_name_for(ApproachId.SOUTH, MovementType.RIGHT), "turn_south_east")


if __name__ == "__main__":
    unittest.main()
