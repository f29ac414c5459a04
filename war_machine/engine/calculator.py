"""
War Machine Optimizer - Stat Calculator
=======================================
Single source of truth for all stat formulas.

Every function here is pure. All arithmetic goes through Decimal so enemy stats
at nightmare difficulty (1e18 multipliers compounded over 90 missions) keep
their precision.
"""

import logging
from decimal import ROUND_FLOOR, Decimal
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence

from .constants import (
    BASE_ENEMY_STATS,
    BASE_GROWTH,
    CREW_SLOT_THRESHOLDS,
    DEFAULT_CREW_SLOTS,
    DIFFICULTY_MULTIPLIERS,
    FORMATION_SIZE,
    MILESTONE_SCALE_FACTOR,
    MISSION_SCALE_FACTOR,
    MISSIONS_PER_MILESTONE,
    OVERDRIVE_BASE,
    OVERDRIVE_PER_RARITY,
    POWER_ARMOR_WEIGHT,
    POWER_DAMAGE_WEIGHT,
    POWER_HEALTH_WEIGHT,
    POWER_REQUIREMENT_DEFAULT,
    POWER_REQUIREMENT_EASY_EARLY,
    POWER_REQUIREMENT_EASY_EARLY_MAX_MISSION,
    POWER_REQUIREMENT_EASY_MID,
    POWER_REQUIREMENT_EASY_MID_MAX_MISSION,
    POWER_REQUIREMENT_MILESTONE_FACTOR,
    POWER_REQUIREMENT_ROUNDING,
    POWER_SCALING_EXPONENT,
    RARITY_LEVELS,
    RIFT_RANK_BONUSES,
    SCARAB_BONUS_CAP,
    SCARAB_BONUS_PER_STEP,
    STAT_KEYS,
    Difficulty,
)
from .models import ZERO, ArtifactEntry, Hero, Machine, Stats, to_decimal

logger = logging.getLogger(__name__)

ONE = Decimal(1)
HUNDRED = Decimal(100)


def floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


def growth_bonus(exponent: int) -> Decimal:
    """BASE_GROWTH^n - 1. Negative n gives a penalty instead of an error."""
    return BASE_GROWTH ** exponent - ONE


# =============================================================================
# LOOKUPS
# =============================================================================

def get_rarity_level(rarity: Optional[str]) -> int:
    """Ordinal of a rarity key (case-insensitive). Unknown keys count as common."""
    if not rarity:
        return 0
    return RARITY_LEVELS.get(rarity.lower(), 0)


def get_rift_bonus(rift_rank: Optional[str]) -> Decimal:
    if not rift_rank:
        return ZERO
    return RIFT_RANK_BONUSES.get(rift_rank.lower(), ZERO)


def get_difficulty_multiplier(difficulty: str) -> Decimal:
    return DIFFICULTY_MULTIPLIERS.get(difficulty.lower(), ONE)


def get_global_rarity_levels(machines: Iterable[Machine]) -> int:
    """Sum of rarity ordinals over every owned machine."""
    return sum(get_rarity_level(machine.rarity) for machine in machines)


def max_crew_slots(engineer_level: int) -> int:
    for threshold, slots in CREW_SLOT_THRESHOLDS:
        if engineer_level >= threshold:
            return slots
    return DEFAULT_CREW_SLOTS


def calculate_overdrive(machine: Machine) -> Decimal:
    """Ability trigger chance: 0.25 + rarity ordinal * 0.03."""
    return OVERDRIVE_BASE + get_rarity_level(machine.rarity) * OVERDRIVE_PER_RARITY


# =============================================================================
# DAMAGE
# =============================================================================

def compute_damage_taken(attacker_damage: Decimal, defender_armor: Decimal) -> Decimal:
    """
    Damage dealt by one hit.

    Formula:
        damage_taken = max(damage - armor, 0)

    A result of exactly zero is a miss.
    """
    difference = to_decimal(attacker_damage) - to_decimal(defender_armor)
    return difference if difference > 0 else ZERO


# =============================================================================
# BATTLE ATTRIBUTES
# =============================================================================

def compute_basic_attribute(
    base_value: Decimal,
    level_bonus: Decimal,
    engineer_bonus: Decimal,
    blueprint_bonus: Decimal,
    rarity_bonus: Decimal,
    sacred_bonus: Decimal,
    inscription_bonus: Decimal,
    artifact_bonus: Decimal,
) -> Decimal:
    """
    Apply the multiplicative bonus stack to one base stat.

    Formula:
        basic = base * (1+level) * (1+engineer) * (1+blueprint) * (1+rarity)
                     * (1+sacred) * (1+inscription) * (1+artifact)
    """
    return (
        to_decimal(base_value)
        * (ONE + level_bonus)
        * (ONE + engineer_bonus)
        * (ONE + blueprint_bonus)
        * (ONE + rarity_bonus)
        * (ONE + sacred_bonus)
        * (ONE + inscription_bonus)
        * (ONE + artifact_bonus)
    )


def compute_artifact_bonus(artifacts: Optional[Sequence[ArtifactEntry]], stat: str) -> Decimal:
    """
    Product of (1 + tier/100)^quantity over every artifact tagged with stat, minus 1.
    """
    multiplier = ONE
    for entry in artifacts or []:
        if entry.stat != stat:
            continue
        for tier, quantity in entry.values.items():
            if quantity > 0:
                multiplier *= (ONE + Decimal(tier) / HUNDRED) ** quantity
    return multiplier - ONE


def compute_crew_bonus(crew: Optional[Sequence[Hero]], stat: str) -> Decimal:
    """Additive crew bonus for one stat. Non-positive percentages are ignored."""
    total = ZERO
    for hero in crew or []:
        percentage = hero.percentage(stat)
        if percentage > 0:
            total += percentage / HUNDRED
    return total


def calculate_battle_attributes(
    machine: Machine,
    crew: Optional[Sequence[Hero]],
    global_rarity_levels: int,
    artifacts: Optional[Sequence[ArtifactEntry]],
    engineer_level: int,
) -> Stats:
    """
    Campaign stats for a machine with the given crew.

    Args:
        machine: Machine whose base stats and progression are used
        crew: Heroes crewing the machine (may be empty)
        global_rarity_levels: Sum of rarity ordinals across the roster
        artifacts: Artifact configuration
        engineer_level: Player engineer level

    Returns:
        New Stats record (max_health equals health)
    """
    level_bonus = growth_bonus(machine.level - 1)
    engineer_bonus = growth_bonus(engineer_level - 1)
    rarity_bonus = growth_bonus(get_rarity_level(machine.rarity) + global_rarity_levels)
    sacred_bonus = growth_bonus(machine.sacred_level)
    inscription_bonus = growth_bonus(machine.inscription_level)

    values = {}
    for stat in STAT_KEYS:
        basic = compute_basic_attribute(
            machine.base_stats.get(stat),
            level_bonus,
            engineer_bonus,
            growth_bonus(machine.blueprints.get(stat, 0)),
            rarity_bonus,
            sacred_bonus,
            inscription_bonus,
            compute_artifact_bonus(artifacts, stat),
        )
        values[stat] = basic * (ONE + compute_crew_bonus(crew, stat))

    return Stats(**values)


# =============================================================================
# ARENA ATTRIBUTES
# =============================================================================

def calculate_scarab_bonus(scarab_level: int) -> Decimal:
    """min(max(floor((level - 3) / 2) + 1, 0) * 0.002, 1)"""
    steps = max((scarab_level - 3) // 2 + 1, 0)
    return min(steps * SCARAB_BONUS_PER_STEP, SCARAB_BONUS_CAP)


def calculate_mech_fury_bonus(global_rarity_levels: int) -> Decimal:
    return growth_bonus(global_rarity_levels)


def calculate_arena_attributes(
    machine: Machine,
    global_rarity_levels: int,
    scarab_level: int,
    rift_rank: Optional[str],
) -> Stats:
    """
    Rescale a machine's battle stats for arena.

    Formula:
        ratio = battle / base
        arena = base * (log10(ratio) + 1)^2 * (1+mech_fury) * (1+scarab) * (1+rift)

    A zero base stat gives a zero arena stat.
    """
    if machine.battle_stats is None:
        raise ValueError(f"Machine {machine.name!r} has no battle stats to rescale")

    global_multiplier = (
        (ONE + calculate_mech_fury_bonus(global_rarity_levels))
        * (ONE + calculate_scarab_bonus(scarab_level))
        * (ONE + get_rift_bonus(rift_rank))
    )

    values = {}
    for stat in STAT_KEYS:
        base = machine.base_stats.get(stat)
        battle = machine.battle_stats.get(stat)
        if base <= 0 or battle <= 0:
            values[stat] = ZERO
            continue
        scaling = ((battle / base).log10() + ONE) ** 2
        values[stat] = base * scaling * global_multiplier

    return Stats(**values)


# =============================================================================
# POWER
# =============================================================================

def compute_machine_power(stats: Optional[Stats]) -> Decimal:
    """
    Power score of one stat record.

    Formula:
        power = (damage*10)^0.7 + (health*1)^0.7 + (armor*10)^0.7
    """
    if stats is None:
        return ZERO
    return (
        (stats.damage * POWER_DAMAGE_WEIGHT) ** POWER_SCALING_EXPONENT
        + (stats.health * POWER_HEALTH_WEIGHT) ** POWER_SCALING_EXPONENT
        + (stats.armor * POWER_ARMOR_WEIGHT) ** POWER_SCALING_EXPONENT
    )


def compute_squad_power(machines: Iterable[Machine], mode: str = "campaign") -> Decimal:
    """
    Squad power, floored after every addition.

    The running total is floored each step, not once at the end; required-power
    comparisons depend on that exact rounding.
    """
    total = ZERO
    for machine in machines:
        stats = machine.stats_for_mode(mode)
        if stats is None:
            logger.warning("Machine %r has no %s stats, skipping in squad power", machine.name, mode)
            continue
        total = floor(total + compute_machine_power(stats))
    return total


# =============================================================================
# ENEMIES
# =============================================================================

def enemy_attributes(
    mission: int,
    difficulty: str,
    milestone_base: int = MILESTONE_SCALE_FACTOR,
) -> Stats:
    """
    Stats of one enemy unit.

    Formula:
        stat = base * diff_mult * 1.2^(mission-1) * milestone^floor((mission-1)/10)
    """
    multiplier = (
        get_difficulty_multiplier(difficulty)
        * MISSION_SCALE_FACTOR ** (mission - 1)
        * Decimal(milestone_base) ** ((mission - 1) // MISSIONS_PER_MILESTONE)
    )
    return Stats(**{stat: value * multiplier for stat, value in BASE_ENEMY_STATS.items()})


def get_enemy_team_for_mission(
    mission: int,
    difficulty: str,
    milestone_base: int = MILESTONE_SCALE_FACTOR,
) -> List[Machine]:
    """Five identical enemy units for a mission."""
    stats = enemy_attributes(mission, difficulty, milestone_base)
    return [
        Machine(
            id=f"enemy-{slot + 1}",
            name=f"Enemy {slot + 1}",
            role="enemy",
            base_stats=stats.copy(),
            battle_stats=stats.copy(),
        )
        for slot in range(FORMATION_SIZE)
    ]


def power_requirement_percent(mission: int, difficulty: str) -> Decimal:
    if difficulty == Difficulty.EASY.value:
        if mission <= POWER_REQUIREMENT_EASY_EARLY_MAX_MISSION:
            return POWER_REQUIREMENT_EASY_EARLY
        if mission <= POWER_REQUIREMENT_EASY_MID_MAX_MISSION:
            return POWER_REQUIREMENT_EASY_MID
    return POWER_REQUIREMENT_DEFAULT


@lru_cache(maxsize=None)
def required_power_for_mission(mission: int, difficulty: str) -> Decimal:
    """
    Squad power needed before a mission can be attempted.

    Uses the gentler milestone curve, takes 30%/50%/80% of the enemy squad
    power and floors it to a multiple of 100.
    """
    enemy_team = get_enemy_team_for_mission(mission, difficulty, POWER_REQUIREMENT_MILESTONE_FACTOR)
    enemy_power = compute_squad_power(enemy_team)
    required = enemy_power * power_requirement_percent(mission, difficulty)
    return floor(required / POWER_REQUIREMENT_ROUNDING) * POWER_REQUIREMENT_ROUNDING
