"""
CommandBus: In-memory, thread-safe pub/sub used to carry UI commands.

Producers (the pygame viewer, the HTTP API) publish on the 'ui.command'
topic from their own threads; the simulation bridge polls the topic on
the thread that owns the engine, so commands are applied between ticks.
"""

import logging
import threading
import time
import uuid
from collections import deque
from typing import Deque, Dict, List, Optional

from .message import BusMessage
from .metrics import BusMetrics

log = logging.getLogger("bus")

COMMAND_TOPIC = "ui.command"


class CommandBus:
    """
    Topic-based message queue shared between threads.

    Attributes:
        max_pending (int): Per-topic cap; publishes beyond it are rejected.
        metrics (BusMetrics): Counters for published / delivered messages.
    """

    def __init__(self, max_pending: int = 256):
        """
        Initialize a CommandBus instance.

        Args:
            max_pending (int): Maximum undelivered messages kept per topic.
        """
        self._topics: Dict[str, Deque[BusMessage]] = {}
        self._lock = threading.Lock()
        self.max_pending = max(1, int(max_pending))
        self.metrics = BusMetrics()

    def publish(self, topic: str, sender: str, payload: dict) -> Optional[str]:
        """
        Publish a message to a specific topic.

        Args:
            topic (str): The topic name (e.g., 'ui.command').
            sender (str): ID of the publisher.
            payload (dict): Message contents.

        Returns:
            Optional[str]: The unique message ID, or None if the topic queue is full.
        """
        msg = BusMessage(
            id=str(uuid.uuid4()),
            topic=topic,
            sender=sender,
            payload=dict(payload),
            ts=time.time(),
        )
        with self._lock:
            queue = self._topics.setdefault(topic, deque())
            if len(queue) >= self.max_pending:
                self.metrics.add(rejected=1)
                log.warning("topic_full topic=%s sender=%s", topic, sender)
                return None
            queue.append(msg)
        self.metrics.add(published=1)
        log.debug("publish topic=%s sender=%s id=%s", topic, sender, msg.id)
        return msg.id

    def poll(self, topic: str) -> List[BusMessage]:
        """
        Retrieve and clear all messages from a given topic, oldest first.

        Args:
            topic (str): The topic name to poll messages from.

        Returns:
            List[BusMessage]: Messages published to the topic since the last poll.
        """
        with self._lock:
            queue = self._topics.get(topic)
            if not queue:
                return []
            msgs = list(queue)
            queue.clear()
        self.metrics.add(delivered=len(msgs))
        return msgs

    def pending(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))
