"""
Heroes Page
Crew members and the percentage bonuses they grant to the machine they crew.
"""
import streamlit as st
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from utils.data_manager import save_profile_data
from engine import STAT_KEYS, Hero, to_decimal

st.set_page_config(page_title="Heroes", page_icon="🧑‍🚀", layout="wide")

# Check a profile is loaded
if 'profile_data' not in st.session_state or st.session_state.profile_data is None:
    st.warning("Please open the main page first!")
    st.stop()

data = st.session_state.profile_data


def auto_save():
    """Save data after changes."""
    save_profile_data(st.session_state.profile, data)


st.title("🧑‍🚀 Heroes")
st.markdown("Heroes with all percentages at 0 are ignored by the optimizer.")

with st.form("add_hero", clear_on_submit=True):
    cols = st.columns(5)
    with cols[0]:
        name = st.text_input("Name")
    with cols[1]:
        role = st.text_input("Role", placeholder="optional")
    percentages = {}
    for stat, col in zip(STAT_KEYS, cols[2:]):
        with col:
            percentages[stat] = st.number_input(f"{stat.title()} %", min_value=0, value=0, step=1)

    if st.form_submit_button("➕ Add Hero"):
        if not name.strip():
            st.error("Name is required")
        else:
            data.heroes.append(Hero(id=data.next_hero_id(), name=name.strip(), role=role.strip(), percentages=percentages))
            auto_save()
            st.rerun()

st.divider()

if not data.heroes:
    st.info("No heroes yet.")
    st.stop()

# Header row
header = st.columns([3, 2, 2, 2, 2, 1])
for col, label in zip(header, ["Name", "Role", "Damage %", "Health %", "Armor %", ""]):
    col.markdown(f"**{label}**")

for hero in list(data.heroes):
    key = f"hero_{hero.id}"
    cols = st.columns([3, 2, 2, 2, 2, 1])
    cols[0].markdown(hero.name)
    cols[1].markdown(hero.role or "-")

    changed = False
    for stat, col in zip(STAT_KEYS, cols[2:5]):
        with col:
            value = st.number_input(stat, min_value=0, value=int(hero.percentage(stat)), step=1,
                                    key=f"{key}_{stat}", label_visibility="collapsed")
            if value != int(hero.percentage(stat)):
                hero.percentages[stat] = to_decimal(value)
                changed = True

    with cols[5]:
        if st.button("🗑️", key=f"{key}_remove"):
            data.heroes.remove(hero)
            changed = True

    if changed:
        auto_save()
        st.rerun()
