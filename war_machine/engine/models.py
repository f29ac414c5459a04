"""
War Machine Optimizer - Data Model
==================================
Dataclasses for machines, heroes, stat records and artifact entries.

Dict conversion uses the camelCase keys of the optimizer request/response
payloads so records travel unchanged between the UI, the worker and storage.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from .constants import BLUEPRINT_CAP_BASE, BLUEPRINT_CAP_STEP, DEFAULT_RARITY, STAT_KEYS, TANK_ROLE

Number = Union[Decimal, int, float, str]

ZERO = Decimal(0)


def to_decimal(value: Optional[Number]) -> Decimal:
    """
    Convert a payload value to Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    None becomes zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


# =============================================================================
# STATS
# =============================================================================

@dataclass
class Stats:
    """A damage/health/armor record. max_health mirrors health when omitted."""
    damage: Decimal = ZERO
    health: Decimal = ZERO
    armor: Decimal = ZERO
    max_health: Optional[Decimal] = None

    def __post_init__(self):
        self.damage = to_decimal(self.damage)
        self.health = to_decimal(self.health)
        self.armor = to_decimal(self.armor)
        self.max_health = self.health if self.max_health is None else to_decimal(self.max_health)

    def get(self, stat: str) -> Decimal:
        if stat not in STAT_KEYS:
            raise ValueError(f"Unknown stat: {stat}")
        return getattr(self, stat)

    def copy(self) -> 'Stats':
        return replace(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Stats':
        return cls(
            damage=data.get("damage"),
            health=data.get("health"),
            armor=data.get("armor"),
            max_health=data.get("maxHealth"),
        )

    def to_dict(self, include_max_health: bool = True) -> Dict[str, Decimal]:
        result = {"damage": self.damage, "health": self.health, "armor": self.armor}
        if include_max_health:
            result["maxHealth"] = self.max_health
        return result


# =============================================================================
# HEROES
# =============================================================================

@dataclass
class Hero:
    """A crew member granting flat percentage bonuses to the machine it crews."""
    id: Any
    name: str
    role: str = ""
    percentages: Dict[str, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        self.percentages = {
            stat: to_decimal(self.percentages.get(stat, 0)) for stat in STAT_KEYS
        }

    def percentage(self, stat: str) -> Decimal:
        return self.percentages.get(stat, ZERO)

    @property
    def is_inert(self) -> bool:
        return all(value <= 0 for value in self.percentages.values())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Hero':
        return cls(
            id=data["id"],
            name=data.get("name", str(data["id"])),
            role=data.get("role", ""),
            percentages=dict(data.get("percentages") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "percentages": {stat: int(value) for stat, value in self.percentages.items()},
        }


# =============================================================================
# MACHINES
# =============================================================================

def get_max_blueprint_level(level: int) -> int:
    """Blueprint cap per stat: 5 + floor(level/5)*5."""
    return BLUEPRINT_CAP_BASE + (max(level, 0) // BLUEPRINT_CAP_STEP) * BLUEPRINT_CAP_STEP


def _default_blueprints() -> Dict[str, int]:
    return {stat: 0 for stat in STAT_KEYS}


@dataclass
class Machine:
    """
    A deployable unit.

    base_stats never change. battle_stats and arena_stats are derived and are
    None until the calculator fills them in.
    """
    id: Any
    name: str
    role: str = "dps"
    base_stats: Stats = field(default_factory=Stats)
    rarity: str = DEFAULT_RARITY
    level: int = 0
    blueprints: Dict[str, int] = field(default_factory=_default_blueprints)
    inscription_level: int = 0
    sacred_level: int = 0
    battle_stats: Optional[Stats] = None
    arena_stats: Optional[Stats] = None
    crew: List[Hero] = field(default_factory=list)

    def __post_init__(self):
        self.blueprints = {stat: int(self.blueprints.get(stat, 0)) for stat in STAT_KEYS}
        self.clamp_blueprints()

    def clamp_blueprints(self) -> None:
        """Pull every blueprint level into [0, cap for the current level]."""
        cap = get_max_blueprint_level(self.level)
        self.blueprints = {stat: min(max(value, 0), cap) for stat, value in self.blueprints.items()}

    @property
    def is_tank(self) -> bool:
        return self.role == TANK_ROLE

    def stats_for_mode(self, mode: str) -> Optional[Stats]:
        return self.arena_stats if mode == "arena" else self.battle_stats

    def copy(self, **changes) -> 'Machine':
        """
        Return an independent copy. Blueprints, crew list and stat records are
        never shared with the source; heroes themselves are shared read-only.
        """
        copied = replace(
            self,
            base_stats=self.base_stats.copy(),
            blueprints=dict(self.blueprints),
            battle_stats=self.battle_stats.copy() if self.battle_stats else None,
            arena_stats=self.arena_stats.copy() if self.arena_stats else None,
            crew=list(self.crew),
        )
        for key, value in changes.items():
            setattr(copied, key, value)
        return copied

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Machine':
        if "baseStats" not in data:
            raise ValueError(f"Machine {data.get('name', data.get('id'))!r} has no baseStats")
        battle = data.get("battleStats")
        arena = data.get("arenaStats")
        return cls(
            id=data["id"],
            name=data.get("name", str(data["id"])),
            role=data.get("role", "dps"),
            base_stats=Stats.from_dict(data["baseStats"]),
            rarity=(data.get("rarity") or DEFAULT_RARITY).lower(),
            level=int(data.get("level", 0)),
            blueprints=dict(data.get("blueprints") or {}),
            inscription_level=int(data.get("inscriptionLevel", 0)),
            sacred_level=int(data.get("sacredLevel", 0)),
            battle_stats=Stats.from_dict(battle) if battle else None,
            arena_stats=Stats.from_dict(arena) if arena else None,
            crew=[Hero.from_dict(hero) for hero in data.get("crew", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "baseStats": self.base_stats.to_dict(include_max_health=False),
            "rarity": self.rarity,
            "level": self.level,
            "blueprints": dict(self.blueprints),
            "inscriptionLevel": self.inscription_level,
            "sacredLevel": self.sacred_level,
            "battleStats": self.battle_stats.to_dict() if self.battle_stats else None,
            "arenaStats": self.arena_stats.to_dict() if self.arena_stats else None,
            "crew": [hero.to_dict() for hero in self.crew],
        }


# =============================================================================
# ARTIFACTS
# =============================================================================

@dataclass
class ArtifactEntry:
    """Owned artifact counts for one stat, keyed by percentage tier."""
    stat: str
    values: Dict[int, int] = field(default_factory=dict)

    def __post_init__(self):
        self.values = {int(tier): int(qty) for tier, qty in self.values.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArtifactEntry':
        return cls(stat=data["stat"], values=dict(data.get("values") or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {"stat": self.stat, "values": dict(self.values)}
