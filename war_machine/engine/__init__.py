"""
War Machine Optimizer - Engine
==============================
Single source of truth for stat formulas, combat resolution, and game constants.

All other modules should import from here rather than implementing their own formulas.
"""

from .constants import (
    # Enums
    Difficulty,
    OptimizeMode,
    Rarity,
    # Campaign
    DIFFICULTY_KEYS,
    DIFFICULTY_MULTIPLIERS,
    MAX_MISSIONS_PER_DIFFICULTY,
    MAX_TOTAL_STARS,
    # Battle
    ATTACK_ORDER,
    FORMATION_SIZE,
    MAX_BATTLE_ROUNDS,
    # Optimization
    HERO_SCORING,
    MAX_CONSECUTIVE_FAILURES,
    MONTE_CARLO_SIMULATIONS,
    REOPTIMIZE_INTERVAL,
    UPGRADE_BATTLE_TRIALS,
    # Reference tables
    ARTIFACT_PERCENTAGES,
    ARTIFACT_STATS,
    RARITY_LEVELS,
    RIFT_RANK_BONUSES,
    STAT_KEYS,
)

from .models import (
    ArtifactEntry,
    Hero,
    Machine,
    Stats,
    get_max_blueprint_level,
    to_decimal,
)

from .calculator import (
    # Lookups
    get_rarity_level,
    get_rift_bonus,
    get_difficulty_multiplier,
    get_global_rarity_levels,
    max_crew_slots,
    calculate_overdrive,
    # Battle attributes
    compute_damage_taken,
    compute_basic_attribute,
    compute_artifact_bonus,
    compute_crew_bonus,
    calculate_battle_attributes,
    # Arena attributes
    calculate_scarab_bonus,
    calculate_mech_fury_bonus,
    calculate_arena_attributes,
    # Power
    compute_machine_power,
    compute_squad_power,
    # Enemies
    enemy_attributes,
    get_enemy_team_for_mission,
    required_power_for_mission,
)

from .battle import (
    BattleEngine,
    BattleResult,
    Combatant,
)

__all__ = [
    # Enums
    'Difficulty',
    'OptimizeMode',
    'Rarity',
    # Constants
    'DIFFICULTY_KEYS',
    'DIFFICULTY_MULTIPLIERS',
    'MAX_MISSIONS_PER_DIFFICULTY',
    'MAX_TOTAL_STARS',
    'ATTACK_ORDER',
    'FORMATION_SIZE',
    'MAX_BATTLE_ROUNDS',
    'HERO_SCORING',
    'MAX_CONSECUTIVE_FAILURES',
    'MONTE_CARLO_SIMULATIONS',
    'REOPTIMIZE_INTERVAL',
    'UPGRADE_BATTLE_TRIALS',
    'ARTIFACT_PERCENTAGES',
    'ARTIFACT_STATS',
    'RARITY_LEVELS',
    'RIFT_RANK_BONUSES',
    'STAT_KEYS',
    # Models
    'ArtifactEntry',
    'Hero',
    'Machine',
    'Stats',
    'to_decimal',
    # Calculator
    'get_rarity_level',
    'get_rift_bonus',
    'get_difficulty_multiplier',
    'get_global_rarity_levels',
    'get_max_blueprint_level',
    'max_crew_slots',
    'calculate_overdrive',
    'compute_damage_taken',
    'compute_basic_attribute',
    'compute_artifact_bonus',
    'compute_crew_bonus',
    'calculate_battle_attributes',
    'calculate_scarab_bonus',
    'calculate_mech_fury_bonus',
    'calculate_arena_attributes',
    'compute_machine_power',
    'compute_squad_power',
    'enemy_attributes',
    'get_enemy_team_for_mission',
    'required_power_for_mission',
    # Battle
    'BattleEngine',
    'BattleResult',
    'Combatant',
]
