"""
Unit tests for upgrade_analyzer.py - cheapest upgrades to clear the next mission.
"""
import pytest

from engine import (
    BattleEngine,
    calculate_battle_attributes,
    get_enemy_team_for_mission,
    get_max_blueprint_level,
)
from upgrade_analyzer import MachineUpgrade, SingleUpgrade, UpgradeAnalyzer, UpgradePath


@pytest.fixture
def analyzer():
    return UpgradeAnalyzer(engineer_level=1, max_distribution_cost=12)


@pytest.fixture
def stalled_formation(make_machine):
    """
    Five level 1 DPS that lose easy mission 1 on the round cap.

    77 damage per hit needs 21 hits per enemy, 105 in total, but only 100 hits
    fit in 20 rounds. Enemy hits never get through 300 armor.
    """
    formation = [make_machine(damage=107, health=1000, armor=300) for _ in range(5)]
    for machine in formation:
        machine.battle_stats = calculate_battle_attributes(machine, [], 0, [], 1)
    return formation


class TestUpgradeRecords:
    """Tests for SingleUpgrade / UpgradePath bookkeeping."""

    def test_costs(self):
        """Upgrade cost is the number of steps taken."""
        assert SingleUpgrade(1, "A", "level", 3, 5).cost == 4
        assert SingleUpgrade(1, "A", "damage", 2, 5).cost == 3

    def test_path_totals(self):
        """A path totals its size and upgrade amount."""
        path = UpgradePath([SingleUpgrade(1, "A", "level", 3, 5), SingleUpgrade(2, "B", "health", 0, 1)])
        assert path.size == 2
        assert path.total_upgrade_amount == 5
        assert path.to_dict()["totalUpgradeAmount"] == 5

    def test_deduplicate(self):
        """Paths with the same upgrades in any order are deduplicated."""
        first = UpgradePath([SingleUpgrade(1, "A", "level", 3, 5), SingleUpgrade(2, "B", "health", 0, 1)])
        reordered = UpgradePath([SingleUpgrade(2, "B", "health", 0, 1), SingleUpgrade(1, "A", "level", 3, 5)])
        other = UpgradePath([SingleUpgrade(1, "A", "level", 3, 6)])
        assert len(UpgradeAnalyzer.deduplicate_paths([first, reordered, other])) == 2

    def test_machine_upgrade_apply(self, make_machine):
        """apply returns an upgraded copy and leaves the machine alone."""
        machine = make_machine(level=4, blueprints={"damage": 1})
        upgraded = MachineUpgrade(machine, level=6, blueprints={"damage": 3}).apply()
        assert upgraded.level == 6
        assert upgraded.blueprints["damage"] == 3
        assert machine.level == 4
        assert machine.blueprints["damage"] == 1


class TestDistributions:
    """Tests for generate_distributions_for_cost and blueprint caps."""

    def test_weighted_costs(self, make_machine):
        """Levels cost 2 points and blueprints 1."""
        machine = make_machine()
        specs = [(machine, "level"), (machine, "damage")]
        assert list(UpgradeAnalyzer.generate_distributions_for_cost(3, specs)) == [(1, 1)]
        assert list(UpgradeAnalyzer.generate_distributions_for_cost(4, specs)) == [(1, 2)]
        assert sorted(UpgradeAnalyzer.generate_distributions_for_cost(5, specs)) == [(1, 3), (2, 1)]

    def test_below_minimum_cost(self, make_machine):
        """A cost too small for one of each gives no distributions."""
        machine = make_machine()
        specs = [(machine, "level"), (machine, "damage")]
        assert list(UpgradeAnalyzer.generate_distributions_for_cost(2, specs)) == []

    def test_every_increment_positive(self, make_machine):
        """Every distribution raises each upgrade and spends the full cost."""
        first, second = make_machine(), make_machine()
        specs = [(first, "level"), (first, "damage"), (second, "level"), (second, "health")]
        for distribution in UpgradeAnalyzer.generate_distributions_for_cost(10, specs):
            assert all(increment >= 1 for increment in distribution)
            assert 2 * distribution[0] + distribution[1] + 2 * distribution[2] + distribution[3] == 10

    def test_cap_uses_projected_level(self, analyzer, make_machine):
        """Blueprint caps use the level the same plan reaches."""
        machine = make_machine(level=0)
        specs = [(machine, "level"), (machine, "damage")]
        # level 5 lifts the cap to 10
        assert analyzer._plan_upgrades(specs, [5, 10]) is not None
        # level 4 keeps the cap at 5
        assert analyzer._plan_upgrades(specs, [4, 10]) is None


class TestAnalysis:
    """Tests for target selection and the full path search."""

    def test_formation_loses_without_upgrades(self, stalled_formation):
        """The stalled formation cannot win mission 1."""
        result = BattleEngine().run_battle(stalled_formation, get_enemy_team_for_mission(1, "easy"))
        assert not result.player_won
        assert result.rounds == 20

    def test_next_target_is_easy_one(self, analyzer, stalled_formation):
        """The next target is easy mission 1."""
        target = analyzer.find_next_target({}, stalled_formation)
        assert (target.difficulty, target.mission) == ("easy", 1)

    def test_fully_cleared(self, analyzer, stalled_formation):
        """A fully cleared campaign has nothing to analyze."""
        cleared = {difficulty: 90 for difficulty in ("easy", "normal", "hard", "insane", "nightmare")}
        assert analyzer.find_next_target(cleared, stalled_formation) is None
        assert analyzer.analyze_upgrades(stalled_formation, cleared) is None

    def test_arena_and_empty(self, analyzer, stalled_formation):
        """Arena mode and empty formations are not analyzed."""
        assert analyzer.analyze_upgrades(stalled_formation, {}, "arena") is None
        assert analyzer.analyze_upgrades([], {}) is None

    def test_paths_found(self, analyzer, stalled_formation):
        """Analysis finds passing paths of several sizes."""
        analysis = analyzer.analyze_upgrades(stalled_formation, {})

        assert analysis.can_pass
        assert (analysis.next_difficulty, analysis.next_mission) == ("easy", 1)

        sizes = [path.size for path in analysis.paths]
        assert sizes == sorted(set(sizes))
        assert all(1 <= size <= 4 for size in sizes)

    def test_paths_respect_blueprint_caps(self, analyzer, stalled_formation):
        """No path raises a blueprint past its cap."""
        levels = {machine.id: machine.level for machine in stalled_formation}
        for path in analyzer.analyze_upgrades(stalled_formation, {}).paths:
            projected = dict(levels)
            for upgrade in path.upgrades:
                if upgrade.upgrade_type == "level":
                    projected[upgrade.machine_id] = upgrade.required_value
            for upgrade in path.upgrades:
                if upgrade.upgrade_type != "level":
                    assert upgrade.required_value <= get_max_blueprint_level(projected[upgrade.machine_id])

    def test_cheapest_path_wins(self, analyzer, stalled_formation):
        """Applying the cheapest path wins the battle."""
        analysis = analyzer.analyze_upgrades(stalled_formation, {})
        cheapest = min(analysis.paths, key=lambda path: path.total_upgrade_amount)

        upgraded = analyzer.apply_upgrades(stalled_formation, cheapest.upgrades)
        result = BattleEngine().run_battle(upgraded, get_enemy_team_for_mission(1, "easy"))
        assert result.player_won
        assert cheapest.total_power_gain > 0

    def test_formation_untouched(self, analyzer, stalled_formation):
        """Analysis should not change the formation."""
        analyzer.analyze_upgrades(stalled_formation, {})
        assert all(machine.level == 1 for machine in stalled_formation)
        assert all(machine.battle_stats.damage == 107 for machine in stalled_formation)

    def test_apply_unknown_machine(self, analyzer, stalled_formation):
        """Upgrades for a machine not in the formation are rejected."""
        with pytest.raises(ValueError):
            analyzer.apply_upgrades(stalled_formation, [SingleUpgrade("missing", "X", "level", 1, 2)])

    def test_top_machines(self, make_machine):
        """get_top_machines returns the highest damage machines."""
        formation = [make_machine(name=f"M{i}", damage=100 * i, with_battle_stats=True) for i in (1, 3, 2)]
        top = UpgradeAnalyzer.get_top_machines(formation, 2)
        assert [machine.name for machine in top] == ["M3", "M2"]
