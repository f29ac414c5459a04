"""
War Machine Optimizer - Battle Engine
=====================================
Deterministic turn-based combat resolver.

Each round the player side attacks in slot order [0, 1, 2, 4, 3], then the
enemy side does the same if anything is left standing. Every attacker hits
the first living defender in that same order. There is no randomness: the
same teams always produce the same result.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from .calculator import compute_damage_taken
from .constants import ATTACK_ORDER, MAX_BATTLE_ROUNDS
from .models import ZERO, Machine


# =============================================================================
# COMBATANTS
# =============================================================================

@dataclass
class Combatant:
    """Mutable battle-time copy of a machine's stats."""
    machine_id: Any
    name: str
    damage: Decimal
    health: Decimal
    max_health: Decimal
    armor: Decimal
    is_dead: bool = False

    @classmethod
    def from_machine(cls, machine: Machine) -> 'Combatant':
        stats = machine.battle_stats
        return cls(
            machine_id=machine.id,
            name=machine.name,
            damage=stats.damage,
            health=stats.health,
            max_health=stats.max_health,
            armor=stats.armor,
        )

    @property
    def is_alive(self) -> bool:
        return not self.is_dead


@dataclass
class BattleResult:
    """Outcome of one battle. Team lists hold the final combatant states."""
    player_won: bool
    rounds: int
    player_team: List[Combatant]
    enemy_team: List[Combatant]
    player_total_hp: Decimal
    enemy_total_hp: Decimal

    def summary(self) -> str:
        outcome = "Victory" if self.player_won else "Defeat"
        return f"{outcome} after {self.rounds} rounds (player HP {self.player_total_hp:.4E}, enemy HP {self.enemy_total_hp:.4E})"


# =============================================================================
# ENGINE
# =============================================================================

def _validate_team(team: Sequence[Machine], label: str) -> None:
    if not isinstance(team, (list, tuple)) or not team:
        raise ValueError(f"{label} team must be a non-empty list of machines")
    for member in team:
        if getattr(member, "battle_stats", None) is None:
            name = getattr(member, "name", repr(member))
            raise ValueError(f"{label} team member {name!r} has no battle stats")


def _living_total(team: Sequence[Combatant]) -> Decimal:
    return sum((member.health for member in team if member.is_alive), ZERO)


def _has_living(team: Sequence[Combatant]) -> bool:
    return any(member.is_alive for member in team)


class BattleEngine:
    """Resolves battles between a player formation and an enemy team."""

    def __init__(self, max_rounds: int = MAX_BATTLE_ROUNDS):
        self.max_rounds = max_rounds

    def run_battle(
        self,
        player_team: Sequence[Machine],
        enemy_team: Sequence[Machine],
        max_rounds: Optional[int] = None,
    ) -> BattleResult:
        """
        Simulate a battle until one side is wiped or the round cap is reached.

        Args:
            player_team: Formation in slot order, each with battle_stats
            enemy_team: Enemy units in slot order, each with battle_stats
            max_rounds: Round cap (defaults to the engine's cap)

        Returns:
            BattleResult. Hitting the round cap is a loss for the player.

        Raises:
            ValueError: if a team is empty or a member lacks battle stats
        """
        _validate_team(player_team, "Player")
        _validate_team(enemy_team, "Enemy")
        limit = self.max_rounds if max_rounds is None else max_rounds

        players = [Combatant.from_machine(machine) for machine in player_team]
        enemies = [Combatant.from_machine(machine) for machine in enemy_team]

        rounds = 0
        while _has_living(players) and _has_living(enemies) and rounds < limit:
            self.perform_attack_phase(players, enemies)
            if not _has_living(enemies):
                break
            self.perform_attack_phase(enemies, players)
            rounds += 1

        player_won = not _has_living(enemies) and _has_living(players)
        return BattleResult(
            player_won=player_won,
            rounds=rounds,
            player_team=players,
            enemy_team=enemies,
            player_total_hp=_living_total(players),
            enemy_total_hp=_living_total(enemies),
        )

    def perform_attack_phase(self, attackers: List[Combatant], defenders: List[Combatant]) -> None:
        """Every living attacker hits once, in slot priority order."""
        for slot in ATTACK_ORDER:
            if slot >= len(attackers) or attackers[slot].is_dead:
                continue

            target = self.select_target(defenders)
            if target is None:
                return

            damage = compute_damage_taken(attackers[slot].damage, target.armor)
            if damage == 0:
                continue  # miss

            target.health = max(target.health - damage, ZERO)
            if target.health == 0:
                target.is_dead = True

    @staticmethod
    def select_target(defenders: Sequence[Combatant]) -> Optional[Combatant]:
        """First living defender in slot priority order."""
        for slot in ATTACK_ORDER:
            if slot < len(defenders) and defenders[slot].is_alive:
                return defenders[slot]
        return None
