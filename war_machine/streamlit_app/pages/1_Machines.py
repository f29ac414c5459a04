"""
Machines Page
Add, edit and remove war machines: base stats, role, rarity, level, blueprints,
inscription and sacred card levels.
"""
import streamlit as st
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from utils.data_manager import save_profile_data
from utils.formatting import format_number
from engine import (
    STAT_KEYS, Machine, Rarity, Stats,
    calculate_battle_attributes, get_global_rarity_levels, get_max_blueprint_level, to_decimal,
)
from engine.constants import RARITY_COLORS
from roster import get_artifact_array, get_machine_rank, get_owned_machines

st.set_page_config(page_title="Machines", page_icon="🤖", layout="wide")

# Check a profile is loaded
if 'profile_data' not in st.session_state or st.session_state.profile_data is None:
    st.warning("Please open the main page first!")
    st.stop()

data = st.session_state.profile_data

RARITIES = [rarity.value for rarity in Rarity]
ROLES = ["dps", "tank"]


def auto_save():
    """Save data after changes."""
    save_profile_data(st.session_state.profile, data)


def battle_preview(machine: Machine) -> Stats:
    """Crewless battle stats with the profile's global modifiers."""
    return calculate_battle_attributes(
        machine,
        [],
        get_global_rarity_levels(get_owned_machines(data.machines)),
        get_artifact_array(data.artifacts),
        data.engineer_level,
    )


st.title("🤖 Machines")

# =============================================================================
# ADD MACHINE
# =============================================================================
with st.expander("➕ Add Machine", expanded=not data.machines):
    with st.form("add_machine", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Name")
        with col2:
            role = st.selectbox("Role", ROLES)
        col1, col2, col3 = st.columns(3)
        with col1:
            base_damage = st.number_input("Base Damage", min_value=0, value=0, step=1)
        with col2:
            base_health = st.number_input("Base Health", min_value=0, value=0, step=1)
        with col3:
            base_armor = st.number_input("Base Armor", min_value=0, value=0, step=1)

        if st.form_submit_button("Add"):
            if not name.strip():
                st.error("Name is required")
            else:
                data.machines.append(Machine(
                    id=data.next_machine_id(),
                    name=name.strip(),
                    role=role,
                    base_stats=Stats(damage=base_damage, health=base_health, armor=base_armor),
                ))
                auto_save()
                st.rerun()

# =============================================================================
# MACHINE LIST
# =============================================================================
if not data.machines:
    st.info("No machines yet.")
    st.stop()

for machine in list(data.machines):
    rank = get_machine_rank(machine.level)
    color = RARITY_COLORS.get(machine.rarity, "#888")
    header = f"{machine.name} | {machine.role.title()} | {machine.rarity.title()} | Lv {machine.level} ({rank.display_text})"

    with st.expander(header):
        st.markdown(f'<span style="color:{color}; font-weight:bold;">{machine.rarity.title()}</span>', unsafe_allow_html=True)
        key = f"machine_{machine.id}"
        changed = False

        col1, col2, col3, col4 = st.columns(4)
        with col1:
            new_role = st.selectbox("Role", ROLES, index=ROLES.index(machine.role) if machine.role in ROLES else 0, key=f"{key}_role")
        with col2:
            new_rarity = st.selectbox("Rarity", RARITIES, index=RARITIES.index(machine.rarity) if machine.rarity in RARITIES else 0,
                                      format_func=str.title, key=f"{key}_rarity")
        with col3:
            new_level = st.number_input("Level", min_value=0, value=machine.level, step=1, key=f"{key}_level")
        with col4:
            new_inscription = st.number_input("Inscription", min_value=0, value=machine.inscription_level, step=1, key=f"{key}_insc")

        if (new_role, new_rarity, new_level, new_inscription) != (machine.role, machine.rarity, machine.level, machine.inscription_level):
            machine.role = new_role
            machine.rarity = new_rarity
            machine.level = int(new_level)
            machine.inscription_level = int(new_inscription)
            machine.clamp_blueprints()
            # Keep the blueprint inputs within the new cap
            for stat in STAT_KEYS:
                st.session_state[f"{key}_bp_{stat}"] = machine.blueprints[stat]
            changed = True

        new_sacred = st.number_input("Sacred Card Level", min_value=0, value=machine.sacred_level, step=1, key=f"{key}_sacred")
        if new_sacred != machine.sacred_level:
            machine.sacred_level = int(new_sacred)
            changed = True

        # Base stats and blueprints
        cap = get_max_blueprint_level(machine.level)
        st.markdown(f"**Base stats / Blueprints** (blueprint cap at this level: {cap})")
        for stat, col in zip(STAT_KEYS, st.columns(3)):
            with col:
                base_value = st.number_input(f"Base {stat.title()}", min_value=0, value=int(machine.base_stats.get(stat)),
                                             step=1, key=f"{key}_base_{stat}")
                bp_value = st.number_input(f"{stat.title()} Blueprint", min_value=0, max_value=cap,
                                           value=machine.blueprints[stat], step=1, key=f"{key}_bp_{stat}")
                if base_value != int(machine.base_stats.get(stat)):
                    setattr(machine.base_stats, stat, to_decimal(base_value))
                    if stat == "health":
                        machine.base_stats.max_health = machine.base_stats.health
                    changed = True
                if bp_value != machine.blueprints[stat]:
                    machine.blueprints[stat] = int(bp_value)
                    changed = True

        preview = battle_preview(machine)
        st.caption(
            f"Battle stats without crew: DMG {format_number(preview.damage)} | "
            f"HP {format_number(preview.health)} | ARM {format_number(preview.armor)}"
        )

        if st.button("🗑️ Remove", key=f"{key}_remove"):
            data.machines.remove(machine)
            changed = True

        if changed:
            auto_save()
            st.rerun()
