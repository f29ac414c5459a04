"""
Display helpers for Decimal stats and formation tables.
"""
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from engine import Machine, compute_machine_power
from roster import get_machine_rank

SCIENTIFIC_THRESHOLD = Decimal("1e9")


def format_number(value: Decimal) -> str:
    """1,234,567 below a billion, 1.23e+18 above."""
    if value is None:
        return "-"
    if abs(value) < SCIENTIFIC_THRESHOLD:
        return f"{value:,.0f}"
    return f"{value:.2e}"


def formation_rows(formation: List[Machine], mode: str = "campaign") -> List[Dict[str, Any]]:
    """One table row per formation slot."""
    rows = []
    for slot, machine in enumerate(formation, start=1):
        stats = machine.stats_for_mode(mode)
        rows.append({
            "Slot": slot,
            "Machine": machine.name,
            "Role": machine.role.title(),
            "Rank": get_machine_rank(machine.level).display_text,
            "Damage": format_number(stats.damage) if stats else "-",
            "Health": format_number(stats.health) if stats else "-",
            "Armor": format_number(stats.armor) if stats else "-",
            "Power": format_number(compute_machine_power(stats)),
            "Crew": ", ".join(hero.name for hero in machine.crew) or "-",
        })
    return rows
