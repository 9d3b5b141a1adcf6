#!/usr/bin/env python3
"""
Tests for the intersection config JSON codec.
"""

from __future__ import annotations

import json
import unittest

from api.schemas import MAX_TO_LANE_COUNT, config_from_dict, config_from_json, config_to_json
from sim.intersection_config import (
    ApproachId,
    MovementType,
    lane_id_for,
    make_default_intersection_config,
)


def _approach(name: str, lanes=None, **extra) -> dict:
    if lanes is None:
        lanes = [{"allowed_movements": ["straight"]}, {"allowed_movements": ["straight", "right"]}]
    return {"id": name, "lanes": lanes, **extra}


def _document(**extra) -> dict:
    doc = {"approaches": [_approach(n) for n in ("north", "east", "south", "west")]}
    doc.update(extra)
    return doc


class ParseTests(unittest.TestCase):
    def test_minimal_document(self) -> None:
        result = config_from_dict(_document())
        self.assertTrue(result.ok, msg=result.errors)
        config = result.config
        self.assertEqual([a.id for a in config.approaches], list(ApproachId))
        north = config.approach(ApproachId.NORTH)
        self.assertEqual(north.name, "north")
        self.assertEqual(north.to_lane_count, 2)
        self.assertEqual(north.lanes[1].name, "N-1")
        self.assertEqual(north.lanes[1].allowed_movements, (MovementType.STRAIGHT, MovementType.RIGHT))
        self.assertEqual(config.signal_groups, ())
        # Geometric connections are filled in when none are given.
        self.assertIsNotNone(config.find_connection(ApproachId.NORTH, 1, MovementType.RIGHT))

    def test_lane_ids_come_from_position(self) -> None:
        doc = _document()
        doc["approaches"][2]["lanes"][1]["id"] = 999
        config = config_from_dict(doc).config
        self.assertEqual(config.approach(ApproachId.SOUTH).lanes[1].id, lane_id_for(ApproachId.SOUTH, 1))

    def test_approaches_may_come_in_any_order_and_case(self) -> None:
        doc = {"approaches": [_approach(n) for n in ("W", "South", "east", "N")]}
        result = config_from_dict(doc)
        self.assertTrue(result.ok, msg=result.errors)
        self.assertEqual([a.id for a in result.config.approaches], list(ApproachId))

    def test_signal_groups_and_connections(self) -> None:
        doc = _document(
            signal_groups=[{
                "id": 4,
                "controlled_lanes": [0, 200],
                "green_movements": ["straight"],
                "min_green_seconds": 12,
            }],
            lane_connections=[
                {"from_approach": "north", "from_lane_index": 1, "movement": "right",
                 "to_approach": "west", "to_lane_index": 0},
                {"from_lane_id": 100, "movement": "straight", "to_lane_id": 300},
            ],
        )
        result = config_from_dict(doc)
        self.assertTrue(result.ok, msg=result.errors)
        group = result.config.signal_group(4)
        self.assertEqual(group.name, "group-4")
        self.assertEqual(group.min_green_seconds, 12.0)
        self.assertEqual(group.orange_seconds, 2.0)
        self.assertEqual(len(result.config.lane_connections), 2)
        by_id = result.config.find_connection(ApproachId.EAST, 0, MovementType.STRAIGHT)
        self.assertEqual((by_id.to_approach, by_id.to_lane_index), (ApproachId.WEST, 0))

    def test_to_lane_count_is_capped(self) -> None:
        doc = _document()
        doc["approaches"][0]["to_lane_count"] = 500
        config = config_from_dict(doc).config
        self.assertEqual(config.approach(ApproachId.NORTH).to_lane_count, MAX_TO_LANE_COUNT)


class RejectionTests(unittest.TestCase):
    def _errors(self, doc) -> list:
        result = config_from_dict(doc)
        self.assertFalse(result.ok)
        self.assertIsNone(result.config)
        return result.errors

    def test_invalid_json(self) -> None:
        result = config_from_json("{not json")
        self.assertFalse(result.ok)
        self.assertTrue(result.errors[0].startswith("invalid JSON"))

    def test_root_shape(self) -> None:
        self.assertEqual(self._errors([]), ["root must be an object"])
        self.assertEqual(self._errors({"approaches": {}}), ["approaches must be an array"])
        self.assertEqual(
            self._errors({"approaches": [_approach("north")]}),
            ["approaches must contain exactly 4 entries"],
        )

    def test_schema_errors_name_the_field(self) -> None:
        doc = _document()
        del doc["approaches"][1]["lanes"]
        errors = self._errors(doc)
        self.assertTrue(any(e.startswith("approaches.1.lanes") for e in errors), msg=errors)

    def test_unknown_and_duplicate_approaches(self) -> None:
        doc = {"approaches": [_approach(n) for n in ("north", "north", "up", "west")]}
        errors = self._errors(doc)
        self.assertIn("duplicate approach id: north", errors)
        self.assertIn("unknown approach id: up", errors)
        self.assertIn("missing approach entry", errors)

    def test_unknown_movements(self) -> None:
        doc = _document(signal_groups=[
            {"id": 1, "controlled_lanes": [0], "green_movements": ["u-turn"]},
            {"id": 1, "controlled_lanes": [0], "green_movements": ["straight"]},
        ])
        doc["approaches"][0]["lanes"][0]["allowed_movements"] = ["sideways"]
        errors = self._errors(doc)
        self.assertIn("lane 0 unknown movement: sideways", errors)
        self.assertIn("signal_group 1 unknown movement: u-turn", errors)
        self.assertIn("duplicate signal_group id: 1", errors)

    def test_bad_connections(self) -> None:
        doc = _document(lane_connections=[
            {"from_approach": "north", "from_lane_index": 7, "movement": "straight",
             "to_approach": "south", "to_lane_index": 0},
            {"from_lane_id": 12345, "movement": "straight", "to_lane_id": 0},
            {"from_approach": "north", "from_lane_index": 0, "movement": "reverse",
             "to_approach": "south", "to_lane_index": 0},
        ])
        errors = self._errors(doc)
        self.assertIn("lane_connection references lane index outside configured range", errors)
        self.assertIn("lane_connection has invalid source lane reference", errors)
        self.assertIn("lane_connection has unknown movement", errors)


class SerialisationTests(unittest.TestCase):
    def test_default_config_survives_a_round_trip(self) -> None:
        original = make_default_intersection_config()
        result = config_from_json(config_to_json(original))
        self.assertTrue(result.ok, msg=result.errors)
        self.assertEqual(result.config, original)

    def test_output_carries_lane_ids(self) -> None:
        data = json.loads(config_to_json(make_default_intersection_config()))
        self.assertEqual(data["approaches"][1]["id"], "east")
        self.assertEqual(data["approaches"][1]["lanes"][2]["id"], lane_id_for(ApproachId.EAST, 2))
        conn = data["lane_connections"][0]
        self.assertEqual(conn["from_lane_id"], lane_id_for(ApproachId.NORTH, 0))
        self.assertEqual(conn["to_lane_id"], lane_id_for(ApproachId.SOUTH, 0))


if __name__ == "__main__":
    unittest.main()
