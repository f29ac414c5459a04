"""
Unit tests for optimizer.py - hero scoring, crew assignment, formation and campaign search.
"""
from decimal import Decimal

import numpy as np
import pytest

from engine import DIFFICULTY_KEYS, MAX_CONSECUTIVE_FAILURES, Stats, required_power_for_mission
from optimizer import AssignmentStrategy, CampaignResult, HeroScoringWeights, Optimizer
from roster import get_owned_heroes, get_owned_machines


def strong_roster(make_machine, count=5):
    """Enough to clear early easy missions, hopeless on normal mission 1."""
    return [make_machine(damage=1000, health=100000, armor=100) for _ in range(count)]


class TestHeroScoringWeights:
    """Tests for the per-request scoring table."""

    def test_defaults_are_independent_copies(self):
        """Editing one weight table should not leak into the defaults."""
        weights = HeroScoringWeights()
        weights.weights["campaign"]["dps"]["damage"] = 99.0
        assert HeroScoringWeights().weights["campaign"]["dps"]["damage"] == 10.0

    def test_partial_overlay(self):
        """A partial override keeps the other default weights."""
        weights = HeroScoringWeights.from_dict({"arena": {"tank": {"armor": 7}}})
        assert weights.weights["arena"]["tank"]["armor"] == 7.0
        assert weights.weights["arena"]["tank"]["health"] == 5.0
        assert weights.weights["campaign"]["tank"]["armor"] == 3.0

    def test_negative_weight_rejected(self):
        """Negative weights are rejected."""
        with pytest.raises(ValueError):
            HeroScoringWeights.from_dict({"campaign": {"dps": {"damage": -1}}})

    def test_unknown_stat_rejected(self):
        """Weights for unknown stats are rejected."""
        with pytest.raises(ValueError):
            HeroScoringWeights.from_dict({"campaign": {"dps": {"speed": 1}}})

    def test_for_machine_uses_role(self, make_machine):
        """for_machine picks the weights for the machine's role."""
        weights = HeroScoringWeights()
        assert weights.for_machine(make_machine(role="tank"), "campaign")["health"] == Decimal("5.0")
        assert weights.for_machine(make_machine(role="dps"), "campaign")["damage"] == Decimal("10.0")


class TestHeroScoring:
    """Tests for score_hero_for_machine."""

    def test_weighted_absolute_gain(self, make_machine, make_hero):
        """Hero score is weight times percentage times the current stat."""
        optimizer = Optimizer([], [], engineer_level=1)
        machine = make_machine(damage=1000, health=1000, armor=100)
        hero = make_hero(damage=10)
        # 10.0 * 10/100 * 1000
        assert optimizer.score_hero_for_machine(hero, machine, Stats(1000, 1000, 100), "campaign") == 1000

    def test_inert_hero_scores_zero(self, make_machine, make_hero):
        """A hero with no positive percentage scores zero."""
        optimizer = Optimizer([], [], engineer_level=1)
        machine = make_machine(damage=1000)
        assert optimizer.score_hero_for_machine(make_hero(), machine, Stats(1000, 0, 0), "campaign") == 0

    def test_monotonic_in_percentage(self, make_machine, make_hero):
        """A bigger percentage never scores lower."""
        optimizer = Optimizer([], [], engineer_level=1)
        machine = make_machine(damage=1000, health=500)
        current = Stats(1000, 500, 0)
        scores = [
            optimizer.score_hero_for_machine(make_hero(damage=pct, health=pct), machine, current, "campaign")
            for pct in (5, 10, 20, 40)
        ]
        assert scores == sorted(scores)
        assert len(set(scores)) == 4

    def test_astronomic_stats_stay_finite(self, make_machine, make_hero):
        """Scores stay finite for astronomic stats."""
        optimizer = Optimizer([], [], engineer_level=1)
        machine = make_machine(damage=1)
        current = Stats(damage=Decimal("1e400"))
        score = optimizer.score_hero_for_machine(make_hero(damage=50), machine, current, "campaign")
        assert score.is_finite()
        assert score > 0


class TestCrewAssignment:
    """Tests for optimal and greedy crew assignment."""

    def test_hero_goes_to_best_machine(self, make_machine, make_hero):
        """A single hero goes to the machine it helps most."""
        strong, weak = make_machine(damage=1000), make_machine(damage=100)
        hero = make_hero(damage=50)
        optimizer = Optimizer([strong, weak], [hero], engineer_level=1)
        crews = optimizer.optimal_assignment([hero], [strong, weak], "campaign")
        assert crews == [[hero], []]

    def test_slot_capacity_respected(self, make_machine, make_hero):
        """No machine gets more heroes than crew slots."""
        strong, weak = make_machine(damage=1000), make_machine(damage=500)
        heroes = [make_hero(damage=10) for _ in range(5)]
        optimizer = Optimizer([strong, weak], heroes, engineer_level=1)
        crews = optimizer.optimal_assignment(heroes, [strong, weak], "campaign")
        assert len(crews[0]) == 4
        assert len(crews[1]) == 1

    def test_zero_score_heroes_unassigned(self, make_machine, make_hero):
        """Heroes that add nothing stay unassigned."""
        machine = make_machine(damage=1000, armor=0)
        useless = make_hero(armor=50)
        optimizer = Optimizer([machine], [useless], engineer_level=1)
        assert optimizer.optimal_assignment([useless], [machine], "campaign") == [[]]

    def test_each_hero_used_once(self, make_machine, make_hero):
        """A hero crews at most one machine."""
        machines = [make_machine(damage=100 * i, health=1000) for i in range(1, 4)]
        heroes = [make_hero(damage=5 * i, health=3) for i in range(1, 8)]
        for strategy in AssignmentStrategy:
            optimizer = Optimizer(machines, heroes, engineer_level=1, assignment_strategy=strategy.value)
            crews = optimizer.assign_crew(heroes, machines, "campaign")
            assigned = [hero.id for crew in crews for hero in crew]
            assert len(assigned) == len(set(assigned))
            assert all(len(crew) <= optimizer.max_slots for crew in crews)

    def test_greedy_serves_top_machine_first(self, make_machine, make_hero):
        """Greedy fills the strongest machine first."""
        strong, weak = make_machine(damage=1000), make_machine(damage=500)
        heroes = [make_hero(damage=10) for _ in range(5)]
        optimizer = Optimizer([strong, weak], heroes, engineer_level=1, assignment_strategy="greedy")
        crews = optimizer.assign_crew(heroes, [weak, strong], "campaign")
        assert len(crews[1]) == 4
        assert len(crews[0]) == 1

    def test_unknown_strategy(self):
        """Unknown assignment strategies are rejected."""
        with pytest.raises(ValueError):
            Optimizer([], [], assignment_strategy="random")

    def test_normalize_scores(self):
        """Scores are scaled by the largest one."""
        matrix = Optimizer.normalize_scores([
            [Decimal(2), Decimal(0)],
            [Decimal(-1), Decimal(4)],
        ])
        assert matrix.tolist() == [[0.5, 0.0], [0.0, 1.0]]

    def test_normalize_keeps_tiny_positive(self):
        """Tiny positive scores survive normalization and infinities become zero."""
        matrix = Optimizer.normalize_scores([[Decimal("1e-400"), Decimal("1e300"), Decimal("Infinity")]])
        assert matrix[0, 0] == np.finfo(float).tiny
        assert matrix[0, 1] == 1.0
        assert matrix[0, 2] == 0.0

    def test_normalize_all_zero(self):
        """All-zero scores stay zero."""
        assert not Optimizer.normalize_scores([[Decimal(0), Decimal(0)]]).any()


class TestLocalOptimization:
    """Tests for pairwise crew swaps."""

    def test_swap_fixes_misplaced_heroes(self, make_machine, make_hero):
        """A crew swap that raises the total score is taken."""
        dps = make_machine(role="dps", damage=1000, health=1000)
        tank = make_machine(role="tank", damage=100, health=10000)
        damage_hero, health_hero = make_hero(damage=20), make_hero(health=20)
        optimizer = Optimizer([dps, tank], [damage_hero, health_hero], engineer_level=1)

        misplaced = [optimizer.with_crew(dps, [health_hero]), optimizer.with_crew(tank, [damage_hero])]
        result = optimizer.local_optimization(misplaced, "campaign")

        assert result[0].crew == [damage_hero]
        assert result[1].crew == [health_hero]
        assert result[0].battle_stats.damage == 1200
        assert result[1].battle_stats.health == 12000

    def test_no_improvement_keeps_team(self, make_machine, make_hero):
        """Without a better swap the team is returned unchanged."""
        dps = make_machine(damage=1000)
        hero = make_hero(damage=20)
        optimizer = Optimizer([dps], [hero], engineer_level=1)
        team = [optimizer.with_crew(dps, [hero])]
        assert optimizer.local_optimization(team, "campaign")[0].crew == [hero]

    def test_optimize_globally_does_not_mutate_inputs(self, make_machine, make_hero):
        """optimize_crew_globally returns new machines."""
        machines = [make_machine(damage=1000), make_machine(damage=500)]
        optimizer = Optimizer(machines, [make_hero(damage=10)], engineer_level=1)
        team = optimizer.optimize_crew_globally(machines)
        assert sum(len(machine.crew) for machine in team) == 1
        assert all(machine.crew == [] and machine.battle_stats is None for machine in machines)


class TestFormation:
    """Tests for select_best_five and arrange_by_role."""

    def test_best_five_by_power(self, make_machine):
        """select_best_five keeps the five most powerful machines."""
        machines = [make_machine(name=f"M{i}", damage=100 * i, health=100) for i in range(1, 7)]
        optimizer = Optimizer(machines, [], engineer_level=1)
        best = optimizer.select_best_five(machines)
        assert len(best) == 5
        assert "M1" not in {machine.name for machine in best}

    def test_arrangement_order(self, make_machine):
        """Useless machines go first, then viable tanks, then dps."""
        useless_dps = make_machine(name="C", damage=40, health=500, with_battle_stats=True)
        useless_tank = make_machine(name="A", role="tank", health=100, armor=0, with_battle_stats=True)
        tank = make_machine(name="B", role="tank", health=1000, armor=250, with_battle_stats=True)
        weak_dps = make_machine(name="D", damage=100, health=100, with_battle_stats=True)
        strong_dps = make_machine(name="E", damage=200, health=100, with_battle_stats=True)

        optimizer = Optimizer([], [], engineer_level=1)
        enemy = Stats(damage=100, health=1000, armor=50)
        team = [weak_dps, tank, strong_dps, useless_tank, useless_dps]
        formation = optimizer.arrange_by_role(team, enemy_stats=enemy)

        assert [machine.name for machine in formation] == ["C", "A", "B", "E", "D"]

    def test_short_team_keeps_dps_ascending(self, make_machine):
        """Teams under five keep dps in ascending damage."""
        optimizer = Optimizer([], [], engineer_level=1)
        team = [make_machine(name=n, damage=d, health=10, with_battle_stats=True) for n, d in (("X", 300), ("Y", 200))]
        formation = optimizer.arrange_by_role(team, enemy_stats=Stats(damage=1, health=1, armor=0))
        assert [machine.name for machine in formation] == ["Y", "X"]

    def test_empty_team(self):
        """arrange_by_role handles an empty team."""
        assert Optimizer([], []).arrange_by_role([]) == []


class TestCampaign:
    """Tests for optimize_campaign_max_stars and the push phase."""

    def test_no_machines(self):
        """No machines gives an empty campaign result."""
        result = Optimizer([], []).optimize_campaign_max_stars([])
        assert result.total_stars == 0
        assert all(value is None for value in result.last_cleared.values())
        assert result.formation == []

    def test_strong_roster_clears_easy_only(self, make_machine):
        """A roster strong enough for easy clears only easy missions."""
        machines = strong_roster(make_machine)
        result = Optimizer(machines, [], engineer_level=1).optimize_campaign_max_stars()

        assert result.total_stars > 0
        assert result.last_cleared["normal"] is None
        assert result.total_stars == result.last_cleared["easy"]
        assert len(result.formation) == 5
        assert result.battle_power >= required_power_for_mission(1, "easy")

    def test_max_mission_bounds_search(self, make_machine):
        """max_mission limits the campaign sweep."""
        machines = strong_roster(make_machine)
        result = Optimizer(machines, [], engineer_level=1).optimize_campaign_max_stars(max_mission=3)
        assert result.last_cleared["easy"] <= 3
        assert result.total_stars <= 3

    def test_to_dict(self, make_machine):
        """to_dict returns the campaign response shape."""
        machines = strong_roster(make_machine)
        data = Optimizer(machines, [], engineer_level=1).optimize_campaign_max_stars(max_mission=2).to_dict()
        assert data["mode"] == "campaign"
        assert set(data) == {"mode", "totalStars", "lastCleared", "formation", "battlePower", "arenaPower"}
        assert data["formation"][0]["battleStats"] is not None

    def test_push_with_empty_formation(self):
        """Pushing with no formation adds no stars."""
        stars, last_cleared = Optimizer([], []).push_stars_with_monte_carlo([], {"easy": 4})
        assert stars == 0
        assert last_cleared == {"easy": 4}

    def test_push_continues_past_sweep(self, make_machine):
        """The push phase finds the same clears as the sweep."""
        machines = strong_roster(make_machine)
        optimizer = Optimizer(machines, [], engineer_level=1)
        full = optimizer.optimize_campaign_max_stars()
        team = full.formation

        stars, last_cleared = optimizer.push_stars_with_monte_carlo(team, CampaignResult().last_cleared)
        assert stars == full.total_stars
        assert last_cleared["easy"] == full.last_cleared["easy"]

    def test_push_gives_up_after_consecutive_losses(self, make_machine, monkeypatch):
        """Each difficulty stops after MAX_CONSECUTIVE_FAILURES lost missions in a row."""
        monkeypatch.setattr("optimizer.required_power_for_mission", lambda mission, difficulty: Decimal(0))
        attempts = []

        def always_lose(team, mission, difficulty, **kwargs):
            attempts.append((difficulty, mission))
            return False

        optimizer = Optimizer([], [], engineer_level=1)
        monkeypatch.setattr(optimizer, "run_monte_carlo_simulation", always_lose)
        team = [make_machine(damage=10, health=100, with_battle_stats=True) for _ in range(5)]

        stars, last_cleared = optimizer.push_stars_with_monte_carlo(team, {"easy": 7})

        assert stars == 0
        assert last_cleared == {"easy": 7}
        assert len(attempts) == MAX_CONSECUTIVE_FAILURES * len(DIFFICULTY_KEYS)
        assert [mission for difficulty, mission in attempts if difficulty == "easy"] == [8, 9]

    def test_push_win_resets_failure_count(self, make_machine, monkeypatch):
        """A win in between losses starts the consecutive failure count over."""
        monkeypatch.setattr("optimizer.required_power_for_mission", lambda mission, difficulty: Decimal(0))
        outcomes = {1: False, 2: True, 3: False, 4: True}

        def scripted(team, mission, difficulty, **kwargs):
            return difficulty == "easy" and outcomes.get(mission, False)

        optimizer = Optimizer([], [], engineer_level=1)
        monkeypatch.setattr(optimizer, "run_monte_carlo_simulation", scripted)
        team = [make_machine(damage=10, health=100, with_battle_stats=True) for _ in range(5)]

        stars, last_cleared = optimizer.push_stars_with_monte_carlo(team, {})

        assert stars == 2
        assert last_cleared["easy"] == 4


class TestArena:
    """Tests for optimize_for_arena."""

    def test_arena_formation(self, make_machine, make_hero):
        """Arena picks and crews five machines."""
        machines = [make_machine(damage=100 * i, health=1000, armor=10) for i in range(1, 7)]
        heroes = [make_hero(damage=10), make_hero(health=10)]
        result = Optimizer(machines, heroes, engineer_level=1).optimize_for_arena()
        assert len(result.formation) == 5
        assert result.arena_power > 0
        assert all(machine.arena_stats is not None for machine in result.formation)
        assert result.to_dict()["mode"] == "arena"

    def test_arena_no_machines(self):
        """No machines gives an empty arena result."""
        result = Optimizer([], []).optimize_for_arena()
        assert result.formation == []
        assert result.arena_power == 0


class TestFreshAccount:
    """A brand new account: nothing owned, nothing worth crewing."""

    def test_untouched_roster_is_filtered(self, make_machine, make_hero):
        """Untouched machines and inert heroes are filtered out."""
        assert get_owned_machines([make_machine(level=0)]) == []
        assert get_owned_heroes([make_hero()]) == []

    def test_inert_hero_never_crews(self, make_machine, make_hero):
        """An inert hero leaves the crew empty and stats at the base penalty."""
        machine = make_machine(damage=100, health=1000, armor=10, level=0)
        optimizer = Optimizer([machine], [make_hero()], engineer_level=0)

        crewed, = optimizer.optimize_crew_globally([machine])

        assert crewed.crew == []
        # level 0 and engineer 0 each leave one growth step of penalty
        penalty = Decimal("1.05") ** 2
        for stat, base in (("damage", 100), ("health", 1000), ("armor", 10)):
            assert abs(crewed.battle_stats.get(stat) * penalty - base) < Decimal("1e-20")

    def test_campaign_plateau(self, make_machine):
        """A hopeless roster gives zero stars and an empty formation."""
        machines = [make_machine(damage=1, health=1) for _ in range(5)]
        result = Optimizer(machines, [], engineer_level=1).optimize_campaign_max_stars()

        assert result.total_stars == 0
        assert result.formation == []
        assert result.battle_power == 0
        assert result.arena_power == 0
        assert all(value is None for value in result.last_cleared.values())
