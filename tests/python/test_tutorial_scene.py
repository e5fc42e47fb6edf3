from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from analytics import MetricsExporter, TutorialAnalytics
from combat import MockCombatEventSource
from scenes.tutorial_scene import TutorialScene
from server.report_store import FileReportStore, MemoryReportStore
from tutorial.controller import TutorialController, TutorialState
from tutorial.policy import PolicyStore
from tutorial.timers import HintScheduler
from ui.tutorial_hud import BANNERS, TutorialHud


class TutorialHudTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.source = MockCombatEventSource()
        self.store = PolicyStore()
        self.controller = TutorialController(
            self.source,
            self.store,
            scheduler=HintScheduler(),
            report_store=MemoryReportStore(),
        )
        self.controller.initialize()
        self.hud = TutorialHud(self.controller, self.store)

    def test_info_text_tracks_state_and_policy(self):
        self.assertEqual(self.hud.info_text.splitlines()[0], "State: Init")
        self.store.load('{"variant": "B", "hintDelaySeconds": 6, "showArrow": false}')
        self.assertEqual(
            list(self.hud.info_lines()),
            ["State: Init", "Fail count: 0", "Variant: B", "Hint delay: 6.0s"],
        )
        self.assertFalse(self.hud.arrow_visible)

        self.controller.start()
        self.source.trigger_player_damaged()
        self.assertIn("Fail count: 1", self.hud.info_text)
        self.assertEqual(self.hud.banner, BANNERS[TutorialState.RETRY])
        self.assertEqual(self.hud.history, [TutorialState.WAITING_FOR_ACTION, TutorialState.RETRY])

    def test_close_detaches(self):
        self.hud.close()
        self.controller.start()
        self.assertEqual(self.hud.history, [])


class TutorialSceneTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.reports = MemoryReportStore()
        self.metrics = MetricsExporter()
        self.scene = TutorialScene(
            report_store=self.reports,
            analytics=TutorialAnalytics(exporter=self.metrics),
        )
        self.addCleanup(self.scene.close)

    def test_preset_applies_policy_and_starts(self):
        state = self.scene.apply_policy("B")
        self.assertEqual(state.state, "WaitingForAction")
        self.assertEqual(state.variant, "B")
        self.assertEqual(state.hint_delay_seconds, 6.0)
        self.assertFalse(state.arrow_visible)
        stored = self.reports.list_reports()
        self.assertEqual(len(stored), 1)
        self.assertTrue(stored[0].endswith("_START"))
        marker = json.loads(self.reports.read(stored[0]))
        self.assertEqual(marker["policyData"]["variant"], "B")

    def test_player_clears_by_attacking(self):
        self.scene.apply_policy("A")
        for _ in range(3):
            state = self.scene.attack()
        self.assertTrue(state.is_cleared)
        self.assertEqual(state.enemy_hp, 0)
        self.assertTrue(state.report_path.startswith("memory://"))
        self.assertTrue(self.reports.list_reports()[-1].endswith("_CLEAR"))

    def test_enemy_strikes_until_player_defeated(self):
        self.scene.apply_policy("A")
        state = self.scene.tick(1.0)
        self.assertEqual(state.state, "Retry")
        self.assertEqual(state.fail_count, 1)
        state = self.scene.tick(2.0)
        self.assertTrue(state.is_cleared)
        self.assertEqual(state.player_hp, 0)
        report = self.scene.controller.run_report
        self.assertEqual(report.summary.result, "FAIL")
        self.assertEqual(report.summary.end_reason, "Player defeated")

    def test_reapplying_policy_restarts_run(self):
        self.scene.apply_policy("A")
        self.scene.tick(1.0)
        state = self.scene.apply_policy("B")
        self.assertEqual(state.state, "WaitingForAction")
        self.assertEqual(state.fail_count, 0)
        self.assertEqual(state.player_hp, 3)

    def test_raw_policy_document(self):
        state = self.scene.apply_policy('{"variant": "C", "hintDelaySeconds": 0.5}')
        self.assertEqual(state.variant, "C")
        state = self.scene.tick(0.6)
        self.assertEqual(state.state, "Hint")

    def test_garbage_policy_falls_back_to_default(self):
        with self.assertLogs("tutorial.policy", level="WARNING"):
            state = self.scene.apply_policy("no such preset")
        self.assertEqual(state.variant, "A")
        self.assertEqual(state.hint_delay_seconds, 3.0)


class TutorialSceneDefaultsTestCase(unittest.TestCase):
    def test_scene_writes_reports_to_configured_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.dict(os.environ, {"TUTORIAL_REPORTS_PATH": tmp}):
                scene = TutorialScene()
            self.addCleanup(scene.close)
            store = scene.controller.report_store
            self.assertIsInstance(store, FileReportStore)
            self.assertEqual(store.directory, Path(tmp))
            scene.apply_policy("A")
            self.assertEqual(len(list(Path(tmp).glob("run_*_START.json"))), 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
