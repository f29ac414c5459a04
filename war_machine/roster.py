"""
Roster Helpers
==============
Turns the stored roster into optimizer input.

- Owned machines: anything moved off its default configuration
- Owned heroes: anything with a positive percentage
- Artifact store {stat: {tier: qty}} -> list of ArtifactEntry
- Machine rank (Stars / Crowns / Wings) for display
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from engine import (
    MAX_MISSIONS_PER_DIFFICULTY,
    ArtifactEntry,
    Hero,
    Machine,
    get_global_rarity_levels,
)
from engine.constants import (
    DEFAULT_RARITY,
    LEVELS_PER_RANK_ICON,
    RANK_BANDS,
    RANK_TIERS,
)


def is_machine_owned(machine: Machine) -> bool:
    """A machine counts as owned once any progression value differs from the default."""
    return (
        any(value > 0 for value in machine.blueprints.values())
        or machine.inscription_level > 0
        or machine.sacred_level > 0
        or machine.level > 0
        or machine.rarity.lower() != DEFAULT_RARITY
    )


def get_owned_machines(machines: Iterable[Machine]) -> List[Machine]:
    return [machine for machine in machines if is_machine_owned(machine)]


def get_owned_heroes(heroes: Iterable[Hero]) -> List[Hero]:
    return [hero for hero in heroes if not hero.is_inert]


def get_artifact_array(artifacts: Dict[str, Dict[int, int]]) -> List[ArtifactEntry]:
    return [ArtifactEntry(stat=stat, values=dict(values)) for stat, values in artifacts.items()]


def build_optimizer_payload(
    machines: Iterable[Machine],
    heroes: Iterable[Hero],
    artifacts: Dict[str, Dict[int, int]],
    mode: str,
    engineer_level: int = 0,
    scarab_level: int = 0,
    rift_rank: str = "",
    hero_scoring: Optional[Dict[str, Any]] = None,
    max_mission: int = MAX_MISSIONS_PER_DIFFICULTY,
) -> Dict[str, Any]:
    """
    Build an optimizer request from the full roster.

    Only owned machines and heroes are sent; global rarity is summed over the
    owned machines.
    """
    owned_machines = get_owned_machines(machines)
    payload = {
        "mode": mode,
        "ownedMachines": [machine.to_dict() for machine in owned_machines],
        "ownedHeroes": [hero.to_dict() for hero in get_owned_heroes(heroes)],
        "maxMission": max_mission,
        "globalRarityLevels": get_global_rarity_levels(owned_machines),
        "engineerLevel": engineer_level,
        "scarabLevel": scarab_level,
        "artifactArray": [entry.to_dict() for entry in get_artifact_array(artifacts)],
        "riftRank": rift_rank,
    }
    if hero_scoring:
        payload["heroScoring"] = hero_scoring
    return payload


# =============================================================================
# MACHINE RANKS
# =============================================================================

@dataclass
class MachineRank:
    rank_type: str
    tier: str
    count: int
    display_text: str


def get_machine_rank(level: int) -> MachineRank:
    """
    Rank icons for a machine level.

    Levels 1-50 are Stars, 51-100 Crowns, 101-150 Wings. Each band cycles
    1-5 icons per tier through RANK_TIERS.
    """
    if level < 1:
        return MachineRank("Star", RANK_TIERS[0], 0, "No Rank")

    for rank_type, first_level, last_level in RANK_BANDS:
        if level <= last_level:
            adjusted = level - first_level + 1
            break
    else:
        return MachineRank("Wings", RANK_TIERS[-1], LEVELS_PER_RANK_ICON, "5 StarlightPlus Wings (Max)")

    count = (adjusted - 1) % LEVELS_PER_RANK_ICON + 1
    tier_index = min((adjusted - 1) // LEVELS_PER_RANK_ICON, len(RANK_TIERS) - 1)
    tier = RANK_TIERS[tier_index]

    label = rank_type if count == 1 or rank_type.endswith("s") else f"{rank_type}s"
    return MachineRank(rank_type, tier, count, f"{count} {tier} {label}")
