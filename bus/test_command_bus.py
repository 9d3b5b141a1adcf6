#!/usr/bin/env python3
"""
Tests for the in-memory command bus.
"""

from __future__ import annotations

import threading
import unittest

from bus.command_bus import COMMAND_TOPIC, CommandBus


class CommandBusTests(unittest.TestCase):
    def test_poll_returns_messages_oldest_first(self) -> None:
        bus = CommandBus()
        first = bus.publish(COMMAND_TOPIC, "viewer", {"cmd": "start"})
        second = bus.publish(COMMAND_TOPIC, "http", {"cmd": "stop"})
        msgs = bus.poll(COMMAND_TOPIC)
        self.assertEqual([m.id for m in msgs], [first, second])
        self.assertEqual([m.payload["cmd"] for m in msgs], ["start", "stop"])
        self.assertEqual(msgs[1].sender, "http")
        self.assertEqual(bus.poll(COMMAND_TOPIC), [])

    def test_topics_are_independent(self) -> None:
        bus = CommandBus()
        bus.publish("other", "x", {})
        self.assertEqual(bus.poll(COMMAND_TOPIC), [])
        self.assertEqual(bus.pending("other"), 1)

    def test_payload_is_copied(self) -> None:
        bus = CommandBus()
        payload = {"cmd": "start"}
        bus.publish(COMMAND_TOPIC, "viewer", payload)
        payload["cmd"] = "reset"
        self.assertEqual(bus.poll(COMMAND_TOPIC)[0].payload["cmd"], "start")

    def test_full_topic_rejects(self) -> None:
        bus = CommandBus(max_pending=2)
        self.assertIsNotNone(bus.publish(COMMAND_TOPIC, "a", {}))
        self.assertIsNotNone(bus.publish(COMMAND_TOPIC, "a", {}))
        self.assertIsNone(bus.publish(COMMAND_TOPIC, "a", {}))
        report = bus.metrics.report()
        self.assertEqual(report["published"], 2)
        self.assertEqual(report["rejected"], 1)
        self.assertEqual(report["pending"], 2)

    def test_concurrent_publishers(self) -> None:
        bus = CommandBus(max_pending=10_000)

        def publish_many(sender: str) -> None:
            for i in range(200):
                bus.publish(COMMAND_TOPIC, sender, {"n": i})

        threads = [threading.Thread(target=publish_many, args=(f"t{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        msgs = bus.poll(COMMAND_TOPIC)
        self.assertEqual(len(msgs), 800)
        for sender in ("t0", "t1", "t2", "t3"):
            seq = [m.payload["n"] for m in msgs if m.sender == sender]
            self.assertEqual(seq, list(range(200)), msg=sender)
        self.assertEqual(bus.metrics.report()["delivered"], 800)


if __name__ == "__main__":
    unittest.main()
