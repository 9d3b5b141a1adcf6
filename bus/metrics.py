"""
BusMetrics: Tracks simple statistics for CommandBus message flow.
"""

import threading


class BusMetrics:
    """
    Thread-safe counters for published and delivered messages.

    Attributes:
        published (int): Messages accepted by publish().
        delivered (int): Messages handed out by poll().
        rejected (int): Publish calls refused because the topic queue was full.
    """

    def __init__(self):
        """Initialize all counters to zero."""
        self._lock = threading.Lock()
        self.published = 0
        self.delivered = 0
        self.rejected = 0

    def add(self, published: int = 0, delivered: int = 0, rejected: int = 0) -> None:
        with self._lock:
            self.published += published
            self.delivered += delivered
            self.rejected += rejected

    def report(self) -> dict:
        """
        Return a snapshot of current metrics.

        Returns:
            dict: Dictionary containing 'published', 'delivered', 'rejected' and
            'pending' (published but not yet delivered).
        """
        with self._lock:
            return {
                "published": self.published,
                "delivered": self.delivered,
                "rejected": self.rejected,
                "pending": self.published - self.delivered,
            }
