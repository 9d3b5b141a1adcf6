#!/usr/bin/env python3
"""
sim/lights.py
=============
Signal colours and the eight-signal :class:`IntersectionState` value.

An :class:`IntersectionState` is a plain immutable record: controllers
produce new ones, the safety kernel only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Dict, Tuple


class LightColor(str, Enum):
    RED = "red"
    ORANGE = "orange"
    GREEN = "green"


def is_active(color: LightColor) -> bool:
    """A signal is active while it shows Green or Orange."""
    return color in (LightColor.GREEN, LightColor.ORANGE)


# Field name → snapshot key
SNAPSHOT_KEYS: Dict[str, str] = {
    "north": "north",
    "east": "east",
    "south": "south",
    "west": "west",
    "turn_south_east": "turnSouthEast",
    "turn_north_west": "turnNorthWest",
    "turn_west_south": "turnWestSouth",
    "turn_east_north": "turnEastNorth",
}

THROUGH_SIGNALS: Tuple[str, ...] = ("north", "east", "south", "west")
TURN_SIGNALS: Tuple[str, ...] = (
    "turn_south_east",
    "turn_north_west",
    "turn_west_south",
    "turn_east_north",
)


@dataclass(frozen=True)
class IntersectionState:
    """Colours of the four through signals and four right-turn signals.

    A through signal is named after the approach whose traffic it
    releases.  A right-turn signal ``turn_<from>_<to>`` releases the
    right turn from ``from`` into ``to``.
    """

    north: LightColor = LightColor.RED
    east: LightColor = LightColor.RED
    south: LightColor = LightColor.RED
    west: LightColor = LightColor.RED
    turn_south_east: LightColor = LightColor.RED
    turn_north_west: LightColor = LightColor.RED
    turn_west_south: LightColor = LightColor.RED
    turn_east_north: LightColor = LightColor.RED

    @classmethod
    def uniform(cls, color: LightColor) -> "IntersectionState":
        """Every one of the eight signals set to *color*."""
        return cls(**{f.name: color for f in fields(cls)})

    def signals(self) -> Dict[str, LightColor]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_lights(self, **changes: LightColor) -> "IntersectionState":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, str]:
        """Snapshot form: camel-case keys, lower-case colour strings."""
        return {SNAPSHOT_KEYS[name]: color.value for name, color in self.signals().items()}
