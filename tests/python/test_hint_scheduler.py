from __future__ import annotations

import unittest

from tutorial.timers import HintScheduler


class HintSchedulerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = HintScheduler()
        self.fired = []

    def test_fires_in_due_order_at_due_time(self):
        self.scheduler.schedule_after(2.0, lambda: self.fired.append(("b", self.scheduler.now())))
        self.scheduler.schedule_after(1.0, lambda: self.fired.append(("a", self.scheduler.now())))
        self.assertEqual(self.scheduler.advance(2.5), 2)
        self.assertEqual(self.fired, [("a", 1.0), ("b", 2.0)])
        self.assertEqual(self.scheduler.now(), 2.5)

    def test_not_fired_before_due(self):
        handle = self.scheduler.schedule_after(3.0, lambda: self.fired.append("hint"))
        self.scheduler.advance(2.9)
        self.assertEqual(self.fired, [])
        self.assertTrue(handle.pending)
        self.scheduler.advance(0.2)
        self.assertEqual(self.fired, ["hint"])
        self.assertFalse(handle.pending)

    def test_cancelled_timer_never_fires(self):
        handle = self.scheduler.schedule_after(1.0, lambda: self.fired.append("x"))
        handle.cancel()
        self.assertTrue(handle.cancelled)
        self.assertEqual(self.scheduler.pending_count(), 0)
        self.assertEqual(self.scheduler.advance(5.0), 0)
        self.assertEqual(self.fired, [])

    def test_callback_can_schedule_follow_up(self):
        def tick():
            self.fired.append(self.scheduler.now())
            if len(self.fired) < 3:
                self.scheduler.schedule_after(1.0, tick)

        self.scheduler.schedule_after(1.0, tick)
        self.scheduler.advance(10.0)
        self.assertEqual(self.fired, [1.0, 2.0, 3.0])

    def test_failing_callback_is_logged(self):
        def broken():
            raise RuntimeError("boom")

        self.scheduler.schedule_after(0.5, broken)
        self.scheduler.schedule_after(0.6, lambda: self.fired.append("after"))
        with self.assertLogs("tutorial.timers", level="ERROR"):
            self.scheduler.advance(1.0)
        self.assertEqual(self.fired, ["after"])

    def test_negative_delta_rejected(self):
        with self.assertRaises(ValueError):
            self.scheduler.advance(-1.0)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
