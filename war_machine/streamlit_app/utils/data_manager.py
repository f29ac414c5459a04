"""
Data manager for loading and saving profile data to CSV files.
Each profile has a single CSV file with its whole roster and settings.
"""
import csv
import io
import logging
import os
import sys
from dataclasses import dataclass, field
from decimal import InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from engine import ARTIFACT_PERCENTAGES, ARTIFACT_STATS, STAT_KEYS, Hero, Machine, Stats
from engine.constants import (
    DEFAULT_ENGINEER_LEVEL,
    DEFAULT_OPTIMIZE_MODE,
    DEFAULT_RIFT_RANK,
    DEFAULT_SCARAB_LEVEL,
)
from optimizer import HeroScoringWeights

logger = logging.getLogger(__name__)

# Path to profile data directory (override with WMO_DATA_DIR)
DEFAULT_DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "profiles")

CSV_HEADER = ['section', 'key', 'subkey', 'value']

MACHINE_FIELDS = [
    'name', 'role', 'rarity', 'level', 'inscription_level', 'sacred_level',
    'base_damage', 'base_health', 'base_armor',
    'bp_damage', 'bp_health', 'bp_armor',
]


@dataclass
class ProfileData:
    """Complete profile data structure."""
    profile: str = ""

    # Global modifiers
    engineer_level: int = DEFAULT_ENGINEER_LEVEL
    scarab_level: int = DEFAULT_SCARAB_LEVEL
    rift_rank: str = DEFAULT_RIFT_RANK
    optimize_mode: str = DEFAULT_OPTIMIZE_MODE

    # Roster
    machines: List[Machine] = field(default_factory=list)
    heroes: List[Hero] = field(default_factory=list)

    # Artifacts (stat -> {tier: quantity})
    artifacts: Dict[str, Dict[int, int]] = field(default_factory=dict)

    # Hero scoring weights (user-editable)
    scoring_weights: HeroScoringWeights = field(default_factory=HeroScoringWeights)

    # Last optimization summary (total_stars, last_cleared per difficulty)
    last_result: Dict[str, Any] = field(default_factory=dict)

    def next_machine_id(self) -> int:
        numeric = [machine.id for machine in self.machines if isinstance(machine.id, int)]
        return max(numeric, default=0) + 1

    def next_hero_id(self) -> int:
        numeric = [hero.id for hero in self.heroes if isinstance(hero.id, int)]
        return max(numeric, default=0) + 1


def _get_data_dir() -> str:
    return os.environ.get("WMO_DATA_DIR", DEFAULT_DATA_DIR)


def _get_profile_file(profile: str) -> str:
    """Get path to profile's data file."""
    data_dir = _get_data_dir()
    os.makedirs(data_dir, exist_ok=True)
    return os.path.join(data_dir, f"{profile.lower()}_data.csv")


def profile_has_data(profile: str) -> bool:
    """Check if profile has saved data."""
    return os.path.exists(_get_profile_file(profile))


def list_profiles() -> List[str]:
    """Names of all saved profiles, sorted."""
    data_dir = _get_data_dir()
    if not os.path.isdir(data_dir):
        return []
    return sorted(
        name[:-len("_data.csv")]
        for name in os.listdir(data_dir)
        if name.endswith("_data.csv")
    )


# =============================================================================
# ROW WRITING / READING
# =============================================================================

def _write_rows(writer, data: ProfileData) -> None:
    writer.writerow(CSV_HEADER)

    # Settings
    writer.writerow(['settings', 'engineer_level', '', str(data.engineer_level)])
    writer.writerow(['settings', 'scarab_level', '', str(data.scarab_level)])
    writer.writerow(['settings', 'rift_rank', '', data.rift_rank])
    writer.writerow(['settings', 'optimize_mode', '', data.optimize_mode])

    # Machines
    for machine in data.machines:
        values = {
            'name': machine.name,
            'role': machine.role,
            'rarity': machine.rarity,
            'level': machine.level,
            'inscription_level': machine.inscription_level,
            'sacred_level': machine.sacred_level,
        }
        for stat in STAT_KEYS:
            values[f'base_{stat}'] = machine.base_stats.get(stat)
            values[f'bp_{stat}'] = machine.blueprints[stat]
        for key in MACHINE_FIELDS:
            writer.writerow(['machine', str(machine.id), key, str(values[key])])

    # Heroes
    for hero in data.heroes:
        writer.writerow(['hero', str(hero.id), 'name', hero.name])
        writer.writerow(['hero', str(hero.id), 'role', hero.role])
        for stat in STAT_KEYS:
            writer.writerow(['hero', str(hero.id), stat, str(hero.percentage(stat))])

    # Artifacts
    for stat, tiers in data.artifacts.items():
        for tier, quantity in tiers.items():
            writer.writerow(['artifact', stat, str(tier), str(quantity)])

    # Scoring weights
    for mode, roles in data.scoring_weights.weights.items():
        for role, stats in roles.items():
            for stat, weight in stats.items():
                writer.writerow(['scoring', f'{mode}.{role}', stat, str(weight)])

    # Last result
    if data.last_result:
        writer.writerow(['result', 'total_stars', '', str(data.last_result.get('total_stars', 0))])
        for difficulty, mission in (data.last_result.get('last_cleared') or {}).items():
            writer.writerow(['result', 'last_cleared', difficulty, '' if mission is None else str(mission)])


def _parse_value(value: str) -> Any:
    """Parse a string value to appropriate type."""
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _parse_id(value: str) -> Any:
    parsed = _parse_value(value)
    return parsed if isinstance(parsed, int) else value


def _build_machine(machine_id: Any, values: Dict[str, str]) -> Machine:
    return Machine(
        id=machine_id,
        name=values.get('name', str(machine_id)),
        role=values.get('role', 'dps'),
        base_stats=Stats(**{stat: values.get(f'base_{stat}', '0') for stat in STAT_KEYS}),
        rarity=values.get('rarity', 'common'),
        level=int(values.get('level', 0)),
        blueprints={stat: int(values.get(f'bp_{stat}', 0)) for stat in STAT_KEYS},
        inscription_level=int(values.get('inscription_level', 0)),
        sacred_level=int(values.get('sacred_level', 0)),
    )


def _build_hero(hero_id: Any, values: Dict[str, str]) -> Hero:
    return Hero(
        id=hero_id,
        name=values.get('name', str(hero_id)),
        role=values.get('role', ''),
        percentages={stat: values.get(stat, '0') for stat in STAT_KEYS},
    )


def _apply_rows(rows, data: ProfileData) -> None:
    """Fill data from section,key,subkey,value rows."""
    machine_rows: Dict[str, Dict[str, str]] = {}
    hero_rows: Dict[str, Dict[str, str]] = {}
    weights: Dict[str, Dict[str, Dict[str, float]]] = {}
    last_cleared: Dict[str, Optional[int]] = {}

    for row in rows:
        section = row.get('section', '')
        key = row.get('key', '')
        subkey = row.get('subkey', '') or ''
        value = row.get('value', '') or ''

        if not section or not key:
            continue

        if section == 'settings':
            if key == 'engineer_level':
                data.engineer_level = int(value)
            elif key == 'scarab_level':
                data.scarab_level = int(value)
            elif key == 'rift_rank':
                data.rift_rank = value
            elif key == 'optimize_mode':
                data.optimize_mode = value

        elif section == 'machine':
            machine_rows.setdefault(key, {})[subkey] = value

        elif section == 'hero':
            hero_rows.setdefault(key, {})[subkey] = value

        elif section == 'artifact':
            data.artifacts.setdefault(key, {})[int(subkey)] = int(value)

        elif section == 'scoring':
            mode, role = key.split('.', 1)
            weights.setdefault(mode, {}).setdefault(role, {})[subkey] = float(value)

        elif section == 'result':
            if key == 'total_stars':
                data.last_result['total_stars'] = int(value)
            elif key == 'last_cleared':
                last_cleared[subkey] = int(value) if value else None

    data.machines = [_build_machine(_parse_id(machine_id), values) for machine_id, values in machine_rows.items()]
    data.heroes = [_build_hero(_parse_id(hero_id), values) for hero_id, values in hero_rows.items()]
    data.scoring_weights = HeroScoringWeights.from_dict(weights)
    if last_cleared:
        data.last_result['last_cleared'] = last_cleared


def _init_default_data(data: ProfileData):
    """Set defaults for a new profile."""
    data.artifacts = {stat: {tier: 0 for tier in ARTIFACT_PERCENTAGES} for stat in ARTIFACT_STATS}
    data.scoring_weights = HeroScoringWeights()


# =============================================================================
# PUBLIC API
# =============================================================================

def save_profile_data(profile: str, data: ProfileData) -> bool:
    """
    Save profile data to CSV.
    Format: section,key,subkey,value
    """
    filepath = _get_profile_file(profile)

    try:
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            _write_rows(csv.writer(f), data)
        return True
    except (OSError, ValueError) as e:
        logger.exception("Error saving profile data for %s: %s", profile, e)
        return False


def load_profile_data(profile: str) -> ProfileData:
    """
    Load profile data from CSV.
    Returns default ProfileData if the file doesn't exist or can't be read.
    """
    data = ProfileData(profile=profile)
    filepath = _get_profile_file(profile)

    _init_default_data(data)
    if not os.path.exists(filepath):
        return data

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            _apply_rows(csv.DictReader(f), data)
    except (OSError, ValueError, KeyError, InvalidOperation) as e:
        logger.exception("Error loading profile data for %s: %s", profile, e)
        data = ProfileData(profile=profile)
        _init_default_data(data)

    return data


def delete_profile_data(profile: str) -> bool:
    """Delete a profile's data file."""
    filepath = _get_profile_file(profile)
    if os.path.exists(filepath):
        os.remove(filepath)
        return True
    return False


def export_profile_csv(data: ProfileData) -> str:
    """
    Export profile data to CSV string for download.
    Returns the CSV content as a string.
    """
    output = io.StringIO()
    _write_rows(csv.writer(output), data)
    return output.getvalue()


def import_profile_csv(csv_content: str, profile: str) -> Optional[ProfileData]:
    """
    Import profile data from CSV string.
    Returns ProfileData object if successful, None if failed.
    """
    data = ProfileData(profile=profile)
    _init_default_data(data)

    try:
        _apply_rows(csv.DictReader(io.StringIO(csv_content)), data)
    except (ValueError, KeyError, InvalidOperation) as e:
        logger.exception("Error importing profile data for %s: %s", profile, e)
        return None

    return data
