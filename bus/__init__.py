"""
bus: In-memory command messaging
================================

Provides a lightweight, thread-safe pub/sub transport that carries UI
commands from the viewer and the HTTP API to the simulation thread.

Modules
-------
message
    :class:`BusMessage` dataclass.
command_bus
    :class:`CommandBus` publish / poll transport.
metrics
    :class:`BusMetrics` counter snapshot.
"""

from .message import BusMessage
from .command_bus import COMMAND_TOPIC, CommandBus
from .metrics import BusMetrics

__all__ = [
    "BusMessage",
    "CommandBus",
    "BusMetrics",
    "COMMAND_TOPIC",
]
