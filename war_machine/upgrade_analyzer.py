"""
Upgrade Analyzer
================
Finds the cheapest level/blueprint upgrades that turn the next blocked
campaign mission from a loss into a win.

Key concepts:
- Next target = the uncleared mission with the smallest combined deficit
  (required-power gap + enemy-power gap) across all difficulties
- Only the two strongest machines of the formation are considered
- Cost: one level = 2 points, one blueprint level = 1 point
- Blueprint cap = 5 + floor(level/5)*5, checked against the projected level
  when the same candidate also raises the level
- Search order: single stat on one machine, combined stats on one machine,
  then increment distributions over two machines
- Result: the cheapest path of each size (1 to 4 upgrades)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from engine import (
    DIFFICULTY_KEYS,
    MAX_MISSIONS_PER_DIFFICULTY,
    UPGRADE_BATTLE_TRIALS,
    ArtifactEntry,
    BattleEngine,
    Machine,
    OptimizeMode,
    calculate_battle_attributes,
    compute_machine_power,
    compute_squad_power,
    get_enemy_team_for_mission,
    get_max_blueprint_level,
    required_power_for_mission,
)
from engine.constants import (
    BLUEPRINT_UPGRADE_COST,
    LEVEL_UPGRADE_COST,
    UPGRADE_COMBINED_MAX_STEPS,
    UPGRADE_MAX_DISTRIBUTION_COST,
    UPGRADE_MAX_PATH_SIZE,
    UPGRADE_SINGLE_MAX_STEPS,
    UPGRADE_TOP_MACHINES,
)

LEVEL = "level"
ZERO = Decimal(0)


# =============================================================================
# RESULT DATACLASSES
# =============================================================================

@dataclass
class SingleUpgrade:
    """One stat (or the level) of one machine raised to a new value."""
    machine_id: Any
    machine_name: str
    upgrade_type: str  # "level" or a stat name for blueprints
    current_value: int
    required_value: int

    @property
    def increment(self) -> int:
        return self.required_value - self.current_value

    @property
    def cost(self) -> int:
        unit = LEVEL_UPGRADE_COST if self.upgrade_type == LEVEL else BLUEPRINT_UPGRADE_COST
        return self.increment * unit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machineId": self.machine_id,
            "machineName": self.machine_name,
            "upgradeType": self.upgrade_type,
            "currentValue": self.current_value,
            "requiredValue": self.required_value,
        }


@dataclass
class UpgradePath:
    """A set of upgrades that together clear the target mission."""
    upgrades: List[SingleUpgrade]
    total_power_gain: Decimal = ZERO

    @property
    def total_upgrade_amount(self) -> int:
        return sum(upgrade.cost for upgrade in self.upgrades)

    @property
    def size(self) -> int:
        return len(self.upgrades)

    def signature(self) -> str:
        return "|".join(sorted(
            f"{upgrade.machine_id}:{upgrade.upgrade_type}:{upgrade.required_value}"
            for upgrade in self.upgrades
        ))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upgrades": [upgrade.to_dict() for upgrade in self.upgrades],
            "totalPowerGain": self.total_power_gain,
            "totalUpgradeAmount": self.total_upgrade_amount,
        }


@dataclass
class UpgradeTarget:
    difficulty: str
    mission: int
    required_power: Decimal
    enemy_power: Decimal
    total_deficit: Decimal


@dataclass
class UpgradeAnalysis:
    next_difficulty: str
    next_mission: int
    paths: List[UpgradePath] = field(default_factory=list)

    @property
    def can_pass(self) -> bool:
        return bool(self.paths)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nextDifficulty": self.next_difficulty,
            "nextMission": self.next_mission,
            "paths": [path.to_dict() for path in self.paths],
            "canPass": self.can_pass,
        }


@dataclass
class MachineUpgrade:
    """Planned level and blueprint values for one machine."""
    machine: Machine
    level: Optional[int] = None
    blueprints: Dict[str, int] = field(default_factory=dict)

    def apply(self) -> Machine:
        """Copy of the machine with the planned values (stats not recomputed)."""
        blueprints = dict(self.machine.blueprints)
        blueprints.update(self.blueprints)
        level = self.machine.level if self.level is None else self.level
        return self.machine.copy(level=level, blueprints=blueprints)

    @property
    def effective_level(self) -> int:
        return self.machine.level if self.level is None else self.level


# (machine, "level" or stat)
UpgradeSpec = Tuple[Machine, str]


def _upgrade_stats(machine: Machine) -> List[str]:
    return ["health", "armor"] if machine.is_tank else ["damage", "health"]


def _primary_stat(machine: Machine) -> str:
    return "health" if machine.is_tank else "damage"


# =============================================================================
# ANALYZER
# =============================================================================

class UpgradeAnalyzer:
    """
    Per-request upgrade search over a stalled campaign formation.

    Args:
        engineer_level: Player engineer level
        scarab_level: Scarab level (kept for parity with the optimizer inputs)
        artifact_array: Artifact configuration
        global_rarity_levels: Sum of rarity ordinals across the roster
        rift_rank: Chaos rift rank
        max_distribution_cost: Highest total cost tried by the two-machine search
    """

    def __init__(
        self,
        engineer_level: int = 0,
        scarab_level: int = 0,
        artifact_array: Optional[Sequence[ArtifactEntry]] = None,
        global_rarity_levels: int = 0,
        rift_rank: str = "",
        max_distribution_cost: int = UPGRADE_MAX_DISTRIBUTION_COST,
    ):
        self.engineer_level = engineer_level
        self.scarab_level = scarab_level
        self.artifact_array = list(artifact_array or [])
        self.global_rarity_levels = global_rarity_levels
        self.rift_rank = rift_rank
        self.max_distribution_cost = max_distribution_cost
        self.battle_engine = BattleEngine()

    def analyze_upgrades(
        self,
        formation: Sequence[Machine],
        last_cleared: Dict[str, Optional[int]],
        mode: str = OptimizeMode.CAMPAIGN.value,
    ) -> Optional[UpgradeAnalysis]:
        """
        Upgrade paths for the next blocked mission.

        Returns None in arena mode, for an empty formation, or when every
        difficulty is fully cleared.
        """
        if mode == OptimizeMode.ARENA.value or not formation:
            return None

        target = self.find_next_target(last_cleared, formation)
        if target is None:
            return None

        paths = self.find_upgrade_paths(formation, target.mission, target.difficulty)
        return UpgradeAnalysis(
            next_difficulty=target.difficulty,
            next_mission=target.mission,
            paths=paths,
        )

    def find_next_target(
        self,
        last_cleared: Optional[Dict[str, Optional[int]]],
        formation: Sequence[Machine],
    ) -> Optional[UpgradeTarget]:
        """Uncleared mission with the smallest required-power plus enemy-power deficit."""
        our_power = compute_squad_power(formation, OptimizeMode.CAMPAIGN.value)
        candidates = []

        for difficulty in DIFFICULTY_KEYS:
            cleared = (last_cleared or {}).get(difficulty) or 0
            if cleared >= MAX_MISSIONS_PER_DIFFICULTY:
                continue

            mission = cleared + 1
            required_power = required_power_for_mission(mission, difficulty)
            enemy_power = compute_squad_power(get_enemy_team_for_mission(mission, difficulty))
            deficit = max(required_power - our_power, ZERO) + max(enemy_power - our_power, ZERO)
            candidates.append(UpgradeTarget(difficulty, mission, required_power, enemy_power, deficit))

        if not candidates:
            return None
        return min(candidates, key=lambda candidate: candidate.total_deficit)

    def find_upgrade_paths(self, formation: Sequence[Machine], mission: int, difficulty: str) -> List[UpgradePath]:
        """Cheapest passing path of each size, smallest size first."""
        top_machines = self.get_top_machines(formation, UPGRADE_TOP_MACHINES)
        if not top_machines:
            return []

        paths: List[UpgradePath] = []
        for machine in top_machines:
            paths.extend(self.find_single_upgrade_paths(formation, machine, mission, difficulty))
        for machine in top_machines:
            paths.extend(self.find_combined_upgrade_paths(formation, machine, mission, difficulty))
        if len(top_machines) >= 2:
            paths.extend(self.find_optimal_multi_machine_upgrades(formation, top_machines[:2], mission, difficulty))

        unique = self.deduplicate_paths(paths)
        unique.sort(key=lambda path: path.total_upgrade_amount)

        best_by_size: Dict[int, UpgradePath] = {}
        for path in unique:
            if 1 <= path.size <= UPGRADE_MAX_PATH_SIZE and path.size not in best_by_size:
                best_by_size[path.size] = path

        return [best_by_size[size] for size in sorted(best_by_size)]

    @staticmethod
    def deduplicate_paths(paths: Sequence[UpgradePath]) -> List[UpgradePath]:
        seen = set()
        unique = []
        for path in paths:
            signature = path.signature()
            if signature not in seen:
                seen.add(signature)
                unique.append(path)
        return unique

    # -------------------------------------------------------------------------
    # Single machine
    # -------------------------------------------------------------------------

    def find_single_upgrade_paths(
        self, formation: Sequence[Machine], machine: Machine, mission: int, difficulty: str
    ) -> List[UpgradePath]:
        """Level alone, then each upgradeable blueprint alone."""
        paths = []

        level_upgrade = self.find_minimum_upgrade(formation, machine, LEVEL, machine.level, mission, difficulty)
        if level_upgrade:
            gain = self.calculate_upgrade_power_gain(MachineUpgrade(machine, level=level_upgrade.required_value))
            paths.append(UpgradePath([level_upgrade], gain))

        for stat in _upgrade_stats(machine):
            blueprint_upgrade = self.find_minimum_upgrade(
                formation, machine, stat, machine.blueprints[stat], mission, difficulty
            )
            if blueprint_upgrade:
                planned = MachineUpgrade(machine, blueprints={stat: blueprint_upgrade.required_value})
                paths.append(UpgradePath([blueprint_upgrade], self.calculate_upgrade_power_gain(planned)))

        return paths

    def find_combined_upgrade_paths(
        self, formation: Sequence[Machine], machine: Machine, mission: int, difficulty: str
    ) -> List[UpgradePath]:
        """Level plus one blueprint, then both upgradeable blueprints together."""
        stats = _upgrade_stats(machine)
        combos = [[LEVEL, stat] for stat in stats]
        if len(stats) >= 2:
            combos.append(stats)

        paths = []
        for upgrade_types in combos:
            combined = self.find_minimum_combined_upgrade(formation, machine, upgrade_types, mission, difficulty)
            if combined:
                paths.append(combined)
        return paths

    def find_minimum_upgrade(
        self,
        formation: Sequence[Machine],
        machine: Machine,
        upgrade_type: str,
        current_value: int,
        mission: int,
        difficulty: str,
    ) -> Optional[SingleUpgrade]:
        """
        Smallest value of one level/blueprint that clears the mission.

        Blueprint searches stop at the cap for the machine's current level.
        """
        blueprint_cap = get_max_blueprint_level(machine.level)

        for test_value in range(current_value + 1, current_value + UPGRADE_SINGLE_MAX_STEPS + 1):
            if upgrade_type == LEVEL:
                planned = MachineUpgrade(machine, level=test_value)
            else:
                if test_value > blueprint_cap:
                    return None
                planned = MachineUpgrade(machine, blueprints={upgrade_type: test_value})

            if self.can_pass_with_upgrades(formation, [planned], mission, difficulty):
                return SingleUpgrade(machine.id, machine.name, upgrade_type, current_value, test_value)

        return None

    def find_minimum_combined_upgrade(
        self,
        formation: Sequence[Machine],
        machine: Machine,
        upgrade_types: Sequence[str],
        mission: int,
        difficulty: str,
    ) -> Optional[UpgradePath]:
        """Smallest equal increment applied to every listed type that clears the mission."""
        for increment in range(1, UPGRADE_COMBINED_MAX_STEPS + 1):
            specs = [(machine, upgrade_type) for upgrade_type in upgrade_types]
            planned = self._plan_upgrades(specs, [increment] * len(specs))
            if planned is None:
                continue

            machine_upgrades, upgrades = planned
            if self.can_pass_with_upgrades(formation, machine_upgrades, mission, difficulty):
                return UpgradePath(upgrades, self.calculate_upgrade_power_gain(machine_upgrades[0]))

        return None

    # -------------------------------------------------------------------------
    # Two machines
    # -------------------------------------------------------------------------

    def find_optimal_multi_machine_upgrades(
        self, formation: Sequence[Machine], top_machines: Sequence[Machine], mission: int, difficulty: str
    ) -> List[UpgradePath]:
        """
        Increment distributions over the two strongest machines.

        Combos are tried largest first: level + primary blueprint on both,
        then the four 3-upgrade mixes, then the four 2-upgrade mixes.
        """
        first, second = top_machines[0], top_machines[1]
        stat1, stat2 = _primary_stat(first), _primary_stat(second)

        combos: List[List[UpgradeSpec]] = [
            [(first, LEVEL), (first, stat1), (second, LEVEL), (second, stat2)],
            [(first, LEVEL), (first, stat1), (second, LEVEL)],
            [(first, LEVEL), (first, stat1), (second, stat2)],
            [(first, LEVEL), (second, LEVEL), (second, stat2)],
            [(first, stat1), (second, LEVEL), (second, stat2)],
            [(first, LEVEL), (second, LEVEL)],
            [(first, LEVEL), (second, stat2)],
            [(first, stat1), (second, LEVEL)],
            [(first, stat1), (second, stat2)],
        ]

        paths = []
        for combo in combos:
            path = self.find_optimal_increment_distribution(formation, combo, mission, difficulty)
            if path:
                paths.append(path)
        return paths

    def find_optimal_increment_distribution(
        self,
        formation: Sequence[Machine],
        upgrade_specs: Sequence[UpgradeSpec],
        mission: int,
        difficulty: str,
    ) -> Optional[UpgradePath]:
        """First passing distribution in increasing total cost order."""
        for target_cost in range(len(upgrade_specs), self.max_distribution_cost + 1):
            for distribution in self.generate_distributions_for_cost(target_cost, upgrade_specs):
                planned = self._plan_upgrades(upgrade_specs, distribution)
                if planned is None:
                    continue

                machine_upgrades, upgrades = planned
                if self.can_pass_with_upgrades(formation, machine_upgrades, mission, difficulty):
                    gain = sum(
                        (self.calculate_upgrade_power_gain(planned_upgrade) for planned_upgrade in machine_upgrades),
                        ZERO,
                    )
                    return UpgradePath(upgrades, gain)

        return None

    @staticmethod
    def generate_distributions_for_cost(target_cost: int, upgrade_specs: Sequence[UpgradeSpec]) -> Iterator[Tuple[int, ...]]:
        """
        Every increment tuple (each >= 1) whose weighted cost equals target_cost.

        Levels weigh LEVEL_UPGRADE_COST, blueprints BLUEPRINT_UPGRADE_COST.
        """
        multipliers = [
            LEVEL_UPGRADE_COST if upgrade_type == LEVEL else BLUEPRINT_UPGRADE_COST
            for _, upgrade_type in upgrade_specs
        ]

        def generate(index: int, remaining: int, current: Tuple[int, ...]) -> Iterator[Tuple[int, ...]]:
            if index == len(multipliers):
                if remaining == 0:
                    yield current
                return
            multiplier = multipliers[index]
            for increment in range(1, remaining // multiplier + 1):
                yield from generate(index + 1, remaining - increment * multiplier, current + (increment,))

        return generate(0, target_cost, ())

    def _plan_upgrades(
        self, upgrade_specs: Sequence[UpgradeSpec], increments: Sequence[int]
    ) -> Optional[Tuple[List[MachineUpgrade], List[SingleUpgrade]]]:
        """
        Merge specs into one MachineUpgrade per machine.

        Returns None when a blueprint would exceed the cap at the machine's
        projected level.
        """
        by_machine: Dict[Any, MachineUpgrade] = {}
        upgrades: List[SingleUpgrade] = []

        for (machine, upgrade_type), increment in zip(upgrade_specs, increments):
            planned = by_machine.setdefault(machine.id, MachineUpgrade(machine))

            if upgrade_type == LEVEL:
                current = machine.level
                planned.level = current + increment
            else:
                current = machine.blueprints[upgrade_type]
                if current + increment > get_max_blueprint_level(planned.effective_level):
                    return None
                planned.blueprints[upgrade_type] = current + increment

            upgrades.append(SingleUpgrade(machine.id, machine.name, upgrade_type, current, current + increment))

        # Keep upgrades grouped per machine
        order = list(by_machine)
        upgrades.sort(key=lambda upgrade: order.index(upgrade.machine_id))
        return list(by_machine.values()), upgrades

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _recompute(self, machine: Machine) -> Machine:
        battle = calculate_battle_attributes(
            machine, machine.crew, self.global_rarity_levels, self.artifact_array, self.engineer_level
        )
        return machine.copy(battle_stats=battle)

    def build_upgraded_formation(
        self, formation: Sequence[Machine], machine_upgrades: Sequence[MachineUpgrade]
    ) -> List[Machine]:
        """Formation with planned upgrades applied and battle stats (with crew) rebuilt."""
        planned_by_id = {planned.machine.id: planned for planned in machine_upgrades}
        upgraded = []
        for machine in formation:
            planned = planned_by_id.get(machine.id)
            if planned is None:
                upgraded.append(machine)
            else:
                upgraded.append(self._recompute(MachineUpgrade(machine, planned.level, planned.blueprints).apply()))
        return upgraded

    def apply_upgrades(self, formation: Sequence[Machine], upgrades: Sequence[SingleUpgrade]) -> List[Machine]:
        """Formation after a path's upgrades, for previewing a suggestion."""
        by_id = {machine.id: machine for machine in formation}
        planned: Dict[Any, MachineUpgrade] = {}
        for upgrade in upgrades:
            machine = by_id.get(upgrade.machine_id)
            if machine is None:
                raise ValueError(f"Upgrade targets machine {upgrade.machine_id!r} outside the formation")
            entry = planned.setdefault(upgrade.machine_id, MachineUpgrade(machine))
            if upgrade.upgrade_type == LEVEL:
                entry.level = upgrade.required_value
            else:
                entry.blueprints[upgrade.upgrade_type] = upgrade.required_value
        return self.build_upgraded_formation(formation, list(planned.values()))

    def can_pass_with_upgrades(
        self,
        formation: Sequence[Machine],
        machine_upgrades: Sequence[MachineUpgrade],
        mission: int,
        difficulty: str,
    ) -> bool:
        """Power gate first, then up to UPGRADE_BATTLE_TRIALS battles; any win passes."""
        upgraded = self.build_upgraded_formation(formation, machine_upgrades)

        if compute_squad_power(upgraded, OptimizeMode.CAMPAIGN.value) < required_power_for_mission(mission, difficulty):
            return False

        enemy_team = get_enemy_team_for_mission(mission, difficulty)
        for _ in range(UPGRADE_BATTLE_TRIALS):
            if self.battle_engine.run_battle(upgraded, enemy_team).player_won:
                return True
        return False

    @staticmethod
    def get_top_machines(formation: Sequence[Machine], count: int) -> List[Machine]:
        """Strongest machines by battle power; ties keep formation order."""
        ranked = sorted(formation, key=lambda machine: compute_machine_power(machine.battle_stats), reverse=True)
        return ranked[:count]

    def calculate_upgrade_power_gain(self, planned: MachineUpgrade) -> Decimal:
        """Machine power after the planned upgrade minus its current power."""
        upgraded = self._recompute(planned.apply())
        return compute_machine_power(upgraded.battle_stats) - compute_machine_power(planned.machine.battle_stats)
