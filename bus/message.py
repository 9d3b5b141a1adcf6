"""
BusMessage: Data structure representing a message carried by the CommandBus.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BusMessage:
    """
    Represents a single message sent via the CommandBus.

    Attributes:
        id (str): Unique identifier for the message.
        topic (str): The topic of the message (e.g., 'ui.command').
        sender (str): Who published it (e.g., 'viewer', 'http').
        payload (dict): Arbitrary dictionary containing message contents.
        ts (float): Wall-clock timestamp (in seconds) when the message was created.
    """
    id: str
    topic: str
    sender: str
    payload: dict = field(default_factory=dict)
    ts: float = 0.0
