"""
War Machine Optimizer - Engine Constants
========================================
Single source of truth for all game constants, balance tables, and reference data.

Every table here must match the live game exactly; changing a value changes every
downstream power calculation.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class Difficulty(Enum):
    """Campaign difficulties in progression order (each strictly harder)."""
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"
    INSANE = "insane"
    NIGHTMARE = "nightmare"


class OptimizeMode(Enum):
    """Which stat record drives the optimization."""
    CAMPAIGN = "campaign"
    ARENA = "arena"


STAT_KEYS: Tuple[str, ...] = ("damage", "health", "armor")

TANK_ROLE = "tank"


# =============================================================================
# CAMPAIGN
# =============================================================================

# Enemy stat multiplier per difficulty. Order matters: progression display and
# "highest clear" logic both walk this dict in insertion order.
DIFFICULTY_MULTIPLIERS: Dict[str, Decimal] = {
    Difficulty.EASY.value: Decimal(1),
    Difficulty.NORMAL.value: Decimal(360),
    Difficulty.HARD.value: Decimal(2478600),
    Difficulty.INSANE.value: Decimal("5.8e12"),
    Difficulty.NIGHTMARE.value: Decimal("2.92e18"),
}

DIFFICULTY_KEYS: List[str] = list(DIFFICULTY_MULTIPLIERS)

MAX_MISSIONS_PER_DIFFICULTY = 90
MAX_TOTAL_STARS = len(DIFFICULTY_KEYS) * MAX_MISSIONS_PER_DIFFICULTY

# Mission 1 / easy enemy stats - everything scales from these
BASE_ENEMY_STATS: Dict[str, Decimal] = {
    "damage": Decimal(260),
    "health": Decimal(1560),
    "armor": Decimal(30),
}

# enemy = base * diff_mult * 1.2^(mission-1) * milestone^floor((mission-1)/10)
MISSION_SCALE_FACTOR = Decimal("1.2")
MILESTONE_SCALE_FACTOR = 3
MISSIONS_PER_MILESTONE = 10

# Gentler milestone curve used only for the power gate check
POWER_REQUIREMENT_MILESTONE_FACTOR = 2

# Share of the enemy squad power a player needs before attempting a mission
POWER_REQUIREMENT_EASY_EARLY_MAX_MISSION = 10
POWER_REQUIREMENT_EASY_EARLY = Decimal("0.3")
POWER_REQUIREMENT_EASY_MID_MAX_MISSION = 30
POWER_REQUIREMENT_EASY_MID = Decimal("0.5")
POWER_REQUIREMENT_DEFAULT = Decimal("0.8")
POWER_REQUIREMENT_ROUNDING = 100


# =============================================================================
# BATTLE
# =============================================================================

MAX_BATTLE_ROUNDS = 20

# Slot priority for both attacking and targeting. Slot 4 acts before slot 3.
ATTACK_ORDER: Tuple[int, ...] = (0, 1, 2, 4, 3)

FORMATION_SIZE = 5


# =============================================================================
# OPTIMIZATION
# =============================================================================

REOPTIMIZE_INTERVAL = 5

# The battle engine is deterministic, so repeated trials with identical inputs
# always agree. Kept as tunables for a stochastic combat model.
MONTE_CARLO_SIMULATIONS = 1
UPGRADE_BATTLE_TRIALS = 1

# Consecutive failed missions before the push phase gives up on a difficulty
MAX_CONSECUTIVE_FAILURES = 2

LOCAL_SEARCH_MAX_ITERATIONS = 100

# Upgrade search: a level costs 2 points, a blueprint level 1
LEVEL_UPGRADE_COST = 2
BLUEPRINT_UPGRADE_COST = 1
UPGRADE_TOP_MACHINES = 2
UPGRADE_SINGLE_MAX_STEPS = 100
UPGRADE_COMBINED_MAX_STEPS = 50
UPGRADE_MAX_DISTRIBUTION_COST = 200
UPGRADE_MAX_PATH_SIZE = 4

# (min engineer level, crew slots), highest threshold first
CREW_SLOT_THRESHOLDS: List[Tuple[int, int]] = [
    (60, 6),
    (30, 5),
    (0, 4),
]
DEFAULT_CREW_SLOTS = 4

# Default hero scoring weights: mode -> role -> stat -> weight
HERO_SCORING: Dict[str, Dict[str, Dict[str, float]]] = {
    OptimizeMode.CAMPAIGN.value: {
        "tank": {"damage": 0.3, "health": 5.0, "armor": 3.0},
        "dps": {"damage": 10.0, "health": 0.55, "armor": 0.3},
    },
    OptimizeMode.ARENA.value: {
        "tank": {"damage": 0.3, "health": 5.0, "armor": 3.0},
        "dps": {"damage": 10.0, "health": 0.55, "armor": 0.3},
    },
}


# =============================================================================
# STAT FORMULAS
# =============================================================================

# Every progression bonus is BASE_GROWTH^n - 1
BASE_GROWTH = Decimal("1.05")

# power = (dmg*10)^0.7 + (hp*1)^0.7 + (arm*10)^0.7
POWER_DAMAGE_WEIGHT = Decimal(10)
POWER_HEALTH_WEIGHT = Decimal(1)
POWER_ARMOR_WEIGHT = Decimal(10)
POWER_SCALING_EXPONENT = Decimal("0.7")

# Overdrive (ability trigger chance) = base + rarity_level * per_rarity
OVERDRIVE_BASE = Decimal("0.25")
OVERDRIVE_PER_RARITY = Decimal("0.03")

# Scarab bonus = min(max(floor((level - 3) / 2) + 1, 0) * 0.002, 1)
SCARAB_BONUS_PER_STEP = Decimal("0.002")
SCARAB_BONUS_CAP = Decimal(1)

# Blueprint cap = 5 + floor(level / 5) * 5
BLUEPRINT_CAP_BASE = 5
BLUEPRINT_CAP_STEP = 5


# =============================================================================
# RARITY
# =============================================================================

class Rarity(Enum):
    """Machine rarity tiers from lowest to highest."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"
    TITAN = "titan"
    ANGEL = "angel"
    CELESTIAL = "celestial"


RARITY_LEVELS: Dict[str, int] = {rarity.value: level for level, rarity in enumerate(Rarity)}

RARITY_COLORS: Dict[str, str] = {
    "common": "#6B4423",
    "uncommon": "#2D5016",
    "rare": "#1E3A8A",
    "epic": "#6B21A8",
    "legendary": "#C2410C",
    "mythic": "#0891B2",
    "titan": "#CA8A04",
    "angel": "#B91C1C",
    "celestial": "#60A5FA",
}


# =============================================================================
# CHAOS RIFT RANKS (arena only)
# =============================================================================

RIFT_RANK_BONUSES: Dict[str, Decimal] = {
    "bronze": Decimal(0),
    "silver": Decimal(0),
    "gold": Decimal(0),
    "pearl": Decimal(0),
    "sapphire": Decimal("0.01"),
    "emerald": Decimal("0.02"),
    "ruby": Decimal("0.03"),
    "platinum": Decimal("0.04"),
    "diamond": Decimal("0.05"),
}


# =============================================================================
# ARTIFACTS
# =============================================================================

ARTIFACT_STATS: List[str] = list(STAT_KEYS)
ARTIFACT_PERCENTAGES: List[int] = [30, 35, 40, 45, 50, 55, 60, 65]


# =============================================================================
# MACHINE RANKS (display)
# =============================================================================

RANK_TIERS: List[str] = [
    "Bronze", "Silver", "Gold", "Platinum", "Ruby",
    "Sapphire", "Pearl", "Diamond", "Starlight", "StarlightPlus",
]

# (rank type, first level, last level)
RANK_BANDS: List[Tuple[str, int, int]] = [
    ("Star", 1, 50),
    ("Crown", 51, 100),
    ("Wings", 101, 150),
]
LEVELS_PER_RANK_ICON = 5


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_ENGINEER_LEVEL = 0
DEFAULT_SCARAB_LEVEL = 0
DEFAULT_RIFT_RANK = "bronze"
DEFAULT_OPTIMIZE_MODE = OptimizeMode.CAMPAIGN.value
DEFAULT_RARITY = Rarity.COMMON.value
