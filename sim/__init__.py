"""
sim: Simulation core
====================

Modules
-------
lights
    :class:`LightColor` and the eight-signal :class:`IntersectionState`.
intersection_config
    Approaches, lanes, signal groups, lane connections and the default layout.
safety_kernel
    :class:`SafetyKernel` state, transition and signal-group predicates.
controllers
    Fixed-cycle, signal-group and flashing-amber controllers.
traffic_policy
    :class:`MotionPolicy` tunable constants and crossing-time helpers.
physics
    Car-following and braking helpers.
vehicle
    :class:`Vehicle` entity and its snapshot record.
traffic_generator
    :class:`TrafficGenerator` queues, spawning and kinematics.
engine
    :class:`SimulatorEngine` tick loop and fallback supervisor.
sim_bridge
    :class:`SimBridge` background-thread orchestrator.
"""
