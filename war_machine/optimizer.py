"""
Formation Optimizer
===================
Assigns heroes to machine crews and picks the formation that clears the most
campaign stars, or the strongest arena line-up.

Key concepts:
- Hero score = weighted sum of the absolute stat gain a hero gives a machine
  (pct/100 * current stat), with weights per mode and role
- Crew assignment is a hero x (machine, slot) matching problem; solved exactly
  with the Hungarian algorithm, or greedily with the best DPS and tank first
- A formation is 5 machines ordered so dead weight soaks hits first and the
  strongest attacker sits second-to-last
- Campaign search: deterministic sweep over missions with periodic
  re-optimization, then a push phase from the last winning team
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from engine import (
    DIFFICULTY_KEYS,
    FORMATION_SIZE,
    HERO_SCORING,
    MAX_CONSECUTIVE_FAILURES,
    MAX_MISSIONS_PER_DIFFICULTY,
    MONTE_CARLO_SIMULATIONS,
    REOPTIMIZE_INTERVAL,
    STAT_KEYS,
    ArtifactEntry,
    BattleEngine,
    Hero,
    Machine,
    OptimizeMode,
    Stats,
    calculate_arena_attributes,
    calculate_battle_attributes,
    compute_damage_taken,
    compute_machine_power,
    compute_squad_power,
    enemy_attributes,
    get_enemy_team_for_mission,
    max_crew_slots,
    required_power_for_mission,
    to_decimal,
)
from engine.constants import LOCAL_SEARCH_MAX_ITERATIONS

logger = logging.getLogger(__name__)

CAMPAIGN = OptimizeMode.CAMPAIGN.value
ARENA = OptimizeMode.ARENA.value

ZERO = Decimal(0)
HUNDRED = Decimal(100)


class AssignmentStrategy(Enum):
    OPTIMAL = "optimal"
    GREEDY = "greedy"


# =============================================================================
# SCORING WEIGHTS
# =============================================================================

@dataclass
class HeroScoringWeights:
    """
    Hero scoring weights: mode -> role ("tank"/"dps") -> stat -> weight.

    Passed into the Optimizer instead of mutating HERO_SCORING, so each
    request scores with its own table.
    """
    weights: Dict[str, Dict[str, Dict[str, float]]] = field(
        default_factory=lambda: deepcopy(HERO_SCORING)
    )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'HeroScoringWeights':
        """Overlay a partial table onto the defaults."""
        merged = deepcopy(HERO_SCORING)
        for mode, roles in (data or {}).items():
            for role, stats in roles.items():
                for stat, value in stats.items():
                    if stat not in STAT_KEYS:
                        raise ValueError(f"Unknown stat in hero scoring weights: {stat}")
                    weight = float(value)
                    if weight < 0:
                        raise ValueError(f"Hero scoring weight {mode}.{role}.{stat} must be >= 0, got {weight}")
                    merged.setdefault(mode, {}).setdefault(role, {})[stat] = weight
        return cls(weights=merged)

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        return deepcopy(self.weights)

    def for_machine(self, machine: Machine, mode: str) -> Dict[str, Decimal]:
        table = self.weights.get(mode) or self.weights[CAMPAIGN]
        role_weights = table["tank" if machine.is_tank else "dps"]
        return {stat: to_decimal(role_weights.get(stat, 0)) for stat in STAT_KEYS}


# =============================================================================
# RESULTS
# =============================================================================

def _empty_last_cleared() -> Dict[str, Optional[int]]:
    return {difficulty: None for difficulty in DIFFICULTY_KEYS}


@dataclass
class CampaignResult:
    """Campaign search outcome."""
    total_stars: int = 0
    last_cleared: Dict[str, Optional[int]] = field(default_factory=_empty_last_cleared)
    formation: List[Machine] = field(default_factory=list)
    battle_power: Decimal = ZERO
    arena_power: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": CAMPAIGN,
            "totalStars": self.total_stars,
            "lastCleared": dict(self.last_cleared),
            "formation": [machine.to_dict() for machine in self.formation],
            "battlePower": self.battle_power,
            "arenaPower": self.arena_power,
        }


@dataclass
class ArenaResult:
    """Arena line-up outcome."""
    formation: List[Machine] = field(default_factory=list)
    arena_power: Decimal = ZERO
    battle_power: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": ARENA,
            "formation": [machine.to_dict() for machine in self.formation],
            "arenaPower": self.arena_power,
            "battlePower": self.battle_power,
        }


# =============================================================================
# OPTIMIZER
# =============================================================================

StatsPair = Tuple[Stats, Stats]


class Optimizer:
    """
    Per-request optimizer over one snapshot of the player's roster.

    Input machines are never modified; every method that changes crew or
    stats returns new Machine objects.
    """

    def __init__(
        self,
        owned_machines: Sequence[Machine],
        heroes: Sequence[Hero],
        engineer_level: int = 0,
        scarab_level: int = 0,
        artifact_array: Optional[Sequence[ArtifactEntry]] = None,
        global_rarity_levels: int = 0,
        rift_rank: str = "",
        scoring_weights: Optional[HeroScoringWeights] = None,
        assignment_strategy: str = AssignmentStrategy.OPTIMAL.value,
    ):
        self.owned_machines = list(owned_machines)
        self.heroes = list(heroes)
        self.engineer_level = engineer_level
        self.scarab_level = scarab_level
        self.artifact_array = list(artifact_array or [])
        self.global_rarity_levels = global_rarity_levels
        self.rift_rank = rift_rank
        self.scoring_weights = scoring_weights or HeroScoringWeights()
        self.assignment_strategy = AssignmentStrategy(assignment_strategy)

        self.max_slots = max_crew_slots(engineer_level)
        self.battle_engine = BattleEngine()
        self._crewless_stats: Dict[Any, StatsPair] = {}

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def calculate_all_stats(self, machine: Machine, crew: Sequence[Hero]) -> StatsPair:
        """Battle and arena stats for a machine with the given crew."""
        battle = calculate_battle_attributes(
            machine, crew, self.global_rarity_levels, self.artifact_array, self.engineer_level
        )
        arena = calculate_arena_attributes(
            machine.copy(battle_stats=battle),
            self.global_rarity_levels,
            self.scarab_level,
            self.rift_rank,
        )
        return battle, arena

    def crewless_stats(self, machine: Machine) -> StatsPair:
        """Stats without crew. Cached per machine id for the life of the request."""
        cached = self._crewless_stats.get(machine.id)
        if cached is None:
            cached = self.calculate_all_stats(machine, [])
            self._crewless_stats[machine.id] = cached
        return cached

    def with_crew(self, machine: Machine, crew: Sequence[Hero]) -> Machine:
        """Copy of machine carrying crew, with both stat records recomputed."""
        battle, arena = self.calculate_all_stats(machine, crew) if crew else self.crewless_stats(machine)
        return machine.copy(crew=list(crew), battle_stats=battle.copy(), arena_stats=arena.copy())

    @staticmethod
    def _stats_for_mode(stats: StatsPair, mode: str) -> Stats:
        return stats[1] if mode == ARENA else stats[0]

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def score_hero_for_machine(self, hero: Hero, machine: Machine, current_stats: Stats, mode: str) -> Decimal:
        """
        Weighted absolute stat gain a hero would give a machine.

        Formula:
            score = sum(weight[s] * pct[s]/100 * current[s])

        Linear in each percentage, so always monotonic; Decimal keeps
        astronomic stat magnitudes finite.
        """
        weights = self.scoring_weights.for_machine(machine, mode)
        score = ZERO
        for stat in STAT_KEYS:
            percentage = hero.percentage(stat)
            if percentage <= 0:
                continue
            score += weights[stat] * percentage / HUNDRED * current_stats.get(stat)
        return score

    def score_crew_for_machine(self, machine: Machine, crew: Sequence[Hero], mode: str) -> Decimal:
        """Total crew score against the machine's crewless stats."""
        current = self._stats_for_mode(self.crewless_stats(machine), mode)
        return sum((self.score_hero_for_machine(hero, machine, current, mode) for hero in crew), ZERO)

    # -------------------------------------------------------------------------
    # Crew assignment
    # -------------------------------------------------------------------------

    def assign_crew(self, heroes: Sequence[Hero], machines: Sequence[Machine], mode: str) -> List[List[Hero]]:
        """Crew per machine (aligned with machines) using the configured strategy."""
        if self.assignment_strategy == AssignmentStrategy.GREEDY:
            return self.greedy_assignment(heroes, machines, mode)
        return self.optimal_assignment(heroes, machines, mode)

    def greedy_assignment(self, heroes: Sequence[Hero], machines: Sequence[Machine], mode: str) -> List[List[Hero]]:
        """
        Greedy assignment with priority.

        Machines are ranked by crewless power; the top DPS and the top tank
        pick first. Each machine then takes the best remaining hero against its
        recomputed stats until it is full or nothing scores above zero.
        """
        ranked = sorted(
            range(len(machines)),
            key=lambda i: compute_machine_power(self._stats_for_mode(self.crewless_stats(machines[i]), mode)),
            reverse=True,
        )
        top_dps = next((i for i in ranked if not machines[i].is_tank), None)
        top_tank = next((i for i in ranked if machines[i].is_tank), None)
        priority = [i for i in (top_dps, top_tank) if i is not None]
        priority += [i for i in ranked if i not in priority]

        available = list(heroes)
        crews: List[List[Hero]] = [[] for _ in machines]

        for index in priority:
            machine = machines[index]
            crew = crews[index]
            while len(crew) < self.max_slots and available:
                current = self._stats_for_mode(self.calculate_all_stats(machine, crew), mode)
                best_hero, best_score = None, ZERO
                for hero in available:
                    score = self.score_hero_for_machine(hero, machine, current, mode)
                    if score > best_score:
                        best_hero, best_score = hero, score
                if best_hero is None:
                    break
                crew.append(best_hero)
                available.remove(best_hero)

        return crews

    def optimal_assignment(self, heroes: Sequence[Hero], machines: Sequence[Machine], mode: str) -> List[List[Hero]]:
        """
        Maximum-score assignment via the Hungarian algorithm.

        Rows are heroes, columns are (machine, slot) pairs. Scores are divided
        by the largest score before conversion to float so the solver never
        sees astronomic values. Zero-score pairs are left unassigned.
        """
        crews: List[List[Hero]] = [[] for _ in machines]
        if not heroes or not machines or self.max_slots <= 0:
            return crews

        raw_scores = [
            [
                self.score_hero_for_machine(
                    hero, machine, self._stats_for_mode(self.crewless_stats(machine), mode), mode
                )
                for machine in machines
            ]
            for hero in heroes
        ]
        machine_scores = self.normalize_scores(raw_scores)

        # Every slot of a machine shares that machine's column of scores
        matrix = np.repeat(machine_scores, self.max_slots, axis=1)
        rows, cols = linear_sum_assignment(matrix, maximize=True)

        for row, col in zip(rows, cols):
            if matrix[row, col] <= 0:
                continue
            crews[col // self.max_slots].append(heroes[row])

        return crews

    @staticmethod
    def normalize_scores(raw_scores: List[List[Decimal]]) -> np.ndarray:
        """
        Scale Decimal scores into [0, 1] floats.

        Non-finite and non-positive scores become 0. A positive score too small
        to survive the division keeps the smallest positive float so it still
        beats "unassigned".
        """
        def clean(score: Decimal) -> Decimal:
            return score if score.is_finite() and score > 0 else ZERO

        cleaned = [[clean(score) for score in row] for row in raw_scores]
        largest = max((score for row in cleaned for score in row), default=ZERO)
        matrix = np.zeros((len(cleaned), len(cleaned[0]) if cleaned else 0), dtype=float)
        if largest <= 0:
            return matrix

        tiny = np.finfo(float).tiny
        for i, row in enumerate(cleaned):
            for j, score in enumerate(row):
                if score > 0:
                    matrix[i, j] = max(float(score / largest), tiny)
        return matrix

    def local_optimization(
        self,
        machines: Sequence[Machine],
        mode: str,
        max_iterations: int = LOCAL_SEARCH_MAX_ITERATIONS,
    ) -> List[Machine]:
        """2-opt crew swaps between machine pairs while the combined score strictly improves."""
        result = list(machines)
        for _ in range(max_iterations):
            improved = False
            for i, j in combinations(range(len(result)), 2):
                swapped = self._find_improving_swap(result[i], result[j], mode)
                if swapped:
                    result[i], result[j] = swapped
                    improved = True
                    break
            if not improved:
                break
        return result

    def _find_improving_swap(self, machine_a: Machine, machine_b: Machine, mode: str) -> Optional[Tuple[Machine, Machine]]:
        current = (
            self.score_crew_for_machine(machine_a, machine_a.crew, mode)
            + self.score_crew_for_machine(machine_b, machine_b.crew, mode)
        )
        for index_a, hero_a in enumerate(machine_a.crew):
            for index_b, hero_b in enumerate(machine_b.crew):
                crew_a = list(machine_a.crew)
                crew_b = list(machine_b.crew)
                crew_a[index_a], crew_b[index_b] = hero_b, hero_a

                swapped = (
                    self.score_crew_for_machine(machine_a, crew_a, mode)
                    + self.score_crew_for_machine(machine_b, crew_b, mode)
                )
                if swapped > current:
                    return self.with_crew(machine_a, crew_a), self.with_crew(machine_b, crew_b)
        return None

    def optimize_crew_globally(self, machines: Sequence[Machine], mode: str = CAMPAIGN) -> List[Machine]:
        """Assign crews across all machines, recompute their stats, then refine with swaps."""
        if not machines:
            return []
        if not self.heroes:
            return [self.with_crew(machine, []) for machine in machines]

        crews = self.assign_crew(self.heroes, machines, mode)
        assigned = [self.with_crew(machine, crew) for machine, crew in zip(machines, crews)]
        return self.local_optimization(assigned, mode)

    # -------------------------------------------------------------------------
    # Formation
    # -------------------------------------------------------------------------

    def select_best_five(self, machines: Sequence[Machine], mode: str = CAMPAIGN) -> List[Machine]:
        """Top 5 machines by crewless power under the mode's stats."""
        scored = [self.with_crew(machine, []) for machine in machines]
        scored.sort(key=lambda machine: compute_machine_power(machine.stats_for_mode(mode)), reverse=True)
        return scored[:FORMATION_SIZE]

    def arrange_by_role(
        self,
        team: Sequence[Machine],
        mission: int = 1,
        difficulty: str = "easy",
        enemy_stats: Optional[Stats] = None,
    ) -> List[Machine]:
        """
        Order a team for battle against one enemy type.

        Order:
            1. Useless machines, highest health first. A tank is useless when
               one enemy hit exceeds half its health; a DPS when it cannot get
               through enemy armor.
            2. Viable tanks, lowest health first.
            3. DPS, lowest damage first. In a full team the strongest DPS is
               moved to the second-to-last slot.
        """
        if not team:
            return []
        enemy = enemy_stats or enemy_attributes(mission, difficulty)

        useless, tanks, remaining = [], [], []
        for machine in team:
            stats = machine.battle_stats
            if machine.is_tank:
                taken = compute_damage_taken(enemy.damage, stats.armor)
                (useless if taken > stats.health / 2 else tanks).append(machine)
            else:
                dealt = compute_damage_taken(stats.damage, enemy.armor)
                (useless if dealt == 0 else remaining).append(machine)

        useless.sort(key=lambda machine: machine.battle_stats.health, reverse=True)
        tanks.sort(key=lambda machine: machine.battle_stats.health)
        remaining.sort(key=lambda machine: machine.battle_stats.damage)

        strongest = None
        if remaining and len(team) == FORMATION_SIZE:
            strongest = remaining.pop()

        formation = useless + tanks + remaining
        if strongest is not None:
            formation.insert(len(formation) - 1, strongest)
        return formation

    # -------------------------------------------------------------------------
    # Campaign
    # -------------------------------------------------------------------------

    def run_monte_carlo_simulation(
        self,
        team: Sequence[Machine],
        mission: int,
        difficulty: str,
        max_simulations: int = MONTE_CARLO_SIMULATIONS,
        enemy_team: Optional[List[Machine]] = None,
    ) -> bool:
        """True on the first won trial out of max_simulations."""
        enemies = enemy_team or get_enemy_team_for_mission(mission, difficulty)
        for _ in range(max_simulations):
            if self.battle_engine.run_battle(team, enemies).player_won:
                return True
        return False

    def push_stars_with_monte_carlo(
        self,
        formation: Sequence[Machine],
        last_cleared: Dict[str, Optional[int]],
        max_mission: int = MAX_MISSIONS_PER_DIFFICULTY,
    ) -> Tuple[int, Dict[str, Optional[int]]]:
        """
        Keep pushing each difficulty past its last cleared mission.

        A difficulty stops at the first mission the squad is under-powered for,
        or after MAX_CONSECUTIVE_FAILURES lost missions in a row.

        Returns:
            (additional stars, updated last cleared mission per difficulty)
        """
        updated = dict(last_cleared)
        if not formation:
            return 0, updated

        additional_stars = 0
        our_power = compute_squad_power(formation, CAMPAIGN)

        for difficulty in DIFFICULTY_KEYS:
            consecutive_failures = 0
            for mission in range((updated.get(difficulty) or 0) + 1, max_mission + 1):
                if our_power < required_power_for_mission(mission, difficulty):
                    break

                enemy_team = get_enemy_team_for_mission(mission, difficulty)
                arranged = self.arrange_by_role(formation, mission, difficulty, enemy_team[0].base_stats)

                if self.run_monte_carlo_simulation(arranged, mission, difficulty, enemy_team=enemy_team):
                    additional_stars += 1
                    updated[difficulty] = mission
                    consecutive_failures = 0
                else:
                    consecutive_failures += 1
                    if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                        break

        return additional_stars, updated

    def optimize_campaign_max_stars(
        self,
        owned_machines: Optional[Sequence[Machine]] = None,
        max_mission: int = MAX_MISSIONS_PER_DIFFICULTY,
    ) -> CampaignResult:
        """
        Find the formation that clears the most campaign stars.

        Sweeps missions in order, trying each difficulty from easy upward.
        The best five and their crews are rebuilt every REOPTIMIZE_INTERVAL
        missions. The sweep ends after the first mission (past mission 1) with
        no clears, then the push phase continues from the last winning team.
        """
        machines = list(self.owned_machines if owned_machines is None else owned_machines)
        if not machines:
            return CampaignResult()

        total_stars = 0
        last_cleared = _empty_last_cleared()
        last_winning_team: List[Machine] = []
        current_team: List[Machine] = []
        last_optimized_mission = 0

        for mission in range(1, max_mission + 1):
            if not current_team or mission - last_optimized_mission >= REOPTIMIZE_INTERVAL:
                current_team = self.optimize_crew_globally(self.select_best_five(machines, CAMPAIGN), CAMPAIGN)
                if not current_team:
                    break
                last_optimized_mission = mission

            mission_has_clears = False
            for difficulty in DIFFICULTY_KEYS:
                enemy_team = get_enemy_team_for_mission(mission, difficulty)
                arranged = self.arrange_by_role(current_team, mission, difficulty, enemy_team[0].base_stats)

                if compute_squad_power(arranged, CAMPAIGN) < required_power_for_mission(mission, difficulty):
                    break

                if not self.battle_engine.run_battle(arranged, enemy_team).player_won:
                    break

                total_stars += 1
                mission_has_clears = True
                last_cleared[difficulty] = mission
                last_winning_team = [machine.copy() for machine in arranged]

            if not mission_has_clears and mission > 1:
                break

        additional_stars, last_cleared = self.push_stars_with_monte_carlo(
            last_winning_team, last_cleared, max_mission
        )
        total_stars += additional_stars

        result = CampaignResult(
            total_stars=total_stars,
            last_cleared=last_cleared,
            formation=last_winning_team,
            battle_power=compute_squad_power(last_winning_team, CAMPAIGN),
            arena_power=compute_squad_power(last_winning_team, ARENA),
        )
        logger.info(
            "Campaign optimization: %d stars, last cleared %s",
            result.total_stars, result.last_cleared,
        )
        return result

    # -------------------------------------------------------------------------
    # Arena
    # -------------------------------------------------------------------------

    def optimize_for_arena(self, owned_machines: Optional[Sequence[Machine]] = None) -> ArenaResult:
        """Best five by arena power, crewed for arena, ordered against mission 1 easy enemies."""
        machines = list(self.owned_machines if owned_machines is None else owned_machines)
        if not machines:
            return ArenaResult()

        team = self.optimize_crew_globally(self.select_best_five(machines, ARENA), ARENA)
        formation = self.arrange_by_role(team, 1, "easy")

        result = ArenaResult(
            formation=formation,
            arena_power=compute_squad_power(formation, ARENA),
            battle_power=compute_squad_power(formation, CAMPAIGN),
        )
        logger.info("Arena optimization: arena power %s", result.arena_power)
        return result
