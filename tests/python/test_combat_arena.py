from __future__ import annotations

import unittest

from combat import CombatArena, Combatant, CombatEvent, MockCombatEventSource
from tutorial.timers import HintScheduler


class CombatantTestCase(unittest.TestCase):
    def test_damage_clamps_at_zero(self):
        enemy = Combatant("enemy", 2)
        self.assertFalse(enemy.take_damage(1))
        self.assertTrue(enemy.take_damage(5))
        self.assertEqual(enemy.hp, 0)
        self.assertFalse(enemy.take_damage(1))
        enemy.reset()
        self.assertEqual(enemy.hp, 2)

    def test_requires_positive_hp(self):
        with self.assertRaises(ValueError):
            Combatant("ghost", 0)


class CombatEventTestCase(unittest.TestCase):
    def test_parse_accepts_wire_and_member_names(self):
        self.assertIs(CombatEvent.parse("enemyDefeated"), CombatEvent.ENEMY_DEFEATED)
        self.assertIs(CombatEvent.parse("PLAYER_DAMAGED"), CombatEvent.PLAYER_DAMAGED)
        self.assertIs(CombatEvent.parse(CombatEvent.PLAYER_HIT), CombatEvent.PLAYER_HIT)
        with self.assertRaises(ValueError):
            CombatEvent.parse("dance")

    def test_mock_source_triggers(self):
        source = MockCombatEventSource()
        seen = []
        source.subscribe(seen.append)
        source.subscribe(seen.append)
        source.trigger_player_hit()
        source.trigger_player_damaged()
        source.trigger_enemy_defeated()
        source.trigger_player_defeated()
        self.assertEqual(
            seen,
            [
                CombatEvent.PLAYER_HIT,
                CombatEvent.PLAYER_DAMAGED,
                CombatEvent.ENEMY_DEFEATED,
                CombatEvent.PLAYER_DEFEATED,
            ],
        )
        source.unsubscribe(seen.append)
        source.trigger_player_hit()
        self.assertEqual(len(seen), 4)


class CombatArenaTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = HintScheduler()
        self.arena = CombatArena(
            self.scheduler,
            player_max_hp=3,
            enemy_max_hp=2,
            enemy_damage=1,
            damage_interval=1.0,
        )
        self.seen = []
        self.arena.subscribe(self.seen.append)

    def test_defaults_from_settings(self):
        arena = CombatArena(self.scheduler)
        self.assertEqual(arena.player.max_hp, 3)
        self.assertEqual(arena.enemy.max_hp, 3)
        self.assertEqual(arena.damage_interval, 1.0)

    def test_enemy_strikes_on_interval_until_player_defeated(self):
        self.arena.start()
        self.scheduler.advance(1.0)
        self.assertEqual(self.seen, [CombatEvent.PLAYER_DAMAGED])
        self.assertEqual(self.arena.player.hp, 2)
        self.scheduler.advance(2.0)
        self.assertEqual(
            self.seen,
            [
                CombatEvent.PLAYER_DAMAGED,
                CombatEvent.PLAYER_DAMAGED,
                CombatEvent.PLAYER_DAMAGED,
                CombatEvent.PLAYER_DEFEATED,
            ],
        )
        self.assertTrue(self.arena.finished)
        self.assertFalse(self.arena.running)
        self.scheduler.advance(5.0)
        self.assertEqual(len(self.seen), 4)

    def test_player_defeats_enemy(self):
        self.arena.start()
        self.arena.player_attack()
        self.arena.player_attack()
        self.assertEqual(
            self.seen,
            [CombatEvent.PLAYER_HIT, CombatEvent.PLAYER_HIT, CombatEvent.ENEMY_DEFEATED],
        )
        self.assertFalse(self.arena.running)
        self.scheduler.advance(5.0)
        self.assertEqual(len(self.seen), 3)

    def test_reset_restores_fight(self):
        self.arena.start()
        self.arena.player_attack(5)
        self.arena.reset()
        self.assertEqual(self.arena.enemy.hp, 2)
        self.assertTrue(self.arena.running)
        self.scheduler.advance(1.0)
        self.assertEqual(self.seen[-1], CombatEvent.PLAYER_DAMAGED)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
