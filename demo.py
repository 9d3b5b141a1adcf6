#!/usr/bin/env python3
"""
Quick demo: runs the simulator headless for a fixed time and prints
the resulting metrics, so the core can be tried without a window or a
server.

Usage:
    python3 demo.py                 # default layout, fixed-cycle lights
    python3 demo.py --groups        # two signal groups (NS / EW straight)
"""

import argparse
import json
import logging
from typing import Any, Dict, Optional

from sim.engine import SimulatorEngine
from sim.intersection_config import (
    ApproachId,
    IntersectionConfig,
    MovementType,
    SignalGroupConfig,
    lane_id_for,
    make_default_intersection_config,
)

log = logging.getLogger("demo")


def demo_signal_group_config() -> IntersectionConfig:
    """Default layout plus two groups: NS straight lanes, then EW straight lanes."""
    base = make_default_intersection_config()

    def straight_lanes(*approaches: ApproachId):
        return tuple(
            lane_id_for(approach, index)
            for approach in approaches
            for index in (0, 1)
        )

    groups = (
        SignalGroupConfig(
            id=1,
            name="ns-straight",
            controlled_lanes=straight_lanes(ApproachId.NORTH, ApproachId.SOUTH),
            green_movements=(MovementType.STRAIGHT,),
        ),
        SignalGroupConfig(
            id=2,
            name="ew-straight",
            controlled_lanes=straight_lanes(ApproachId.EAST, ApproachId.WEST),
            green_movements=(MovementType.STRAIGHT,),
        ),
    )
    return IntersectionConfig(
        approaches=base.approaches,
        signal_groups=groups,
        lane_connections=base.lane_connections,
    )


def run_demo(
    duration: float = 120.0,
    time_step: float = 0.1,
    config: Optional[IntersectionConfig] = None,
    traffic_rate: float = 0.5,
) -> Dict[str, Any]:
    """Simulate *duration* seconds and return the metrics dict."""
    engine = SimulatorEngine(config=config, traffic_rate=traffic_rate)
    metrics = engine.simulate(duration, time_step)
    log.info(
        "Demo finished after %.1f s: %d generated, %d crossed, %d violations",
        metrics.total_time, metrics.vehicles_generated,
        metrics.vehicles_crossed, metrics.safety_violations,
    )
    return metrics.as_dict()


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless intersection demo")
    parser.add_argument("--duration", type=float, default=120.0)
    parser.add_argument("--step", type=float, default=0.1)
    parser.add_argument("--rate", type=float, default=0.5)
    parser.add_argument("--groups", action="store_true", help="use the two-group signal config")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    config = demo_signal_group_config() if args.groups else None
    print(json.dumps(run_demo(args.duration, args.step, config, args.rate), indent=2))


if __name__ == "__main__":
    main()
