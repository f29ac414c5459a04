"""
Artifacts Page
Owned artifact counts per stat and percentage tier.
"""
import streamlit as st
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from utils.data_manager import save_profile_data
from engine import ARTIFACT_PERCENTAGES, ARTIFACT_STATS, compute_artifact_bonus
from roster import get_artifact_array

st.set_page_config(page_title="Artifacts", page_icon="💎", layout="wide")

# Check a profile is loaded
if 'profile_data' not in st.session_state or st.session_state.profile_data is None:
    st.warning("Please open the main page first!")
    st.stop()

data = st.session_state.profile_data


def auto_save():
    """Save data after changes."""
    save_profile_data(st.session_state.profile, data)


st.title("💎 Artifacts")
st.markdown("Each owned artifact adds its percentage to that stat for every machine in campaign battles.")

changed = False
for stat in ARTIFACT_STATS:
    tiers = data.artifacts.setdefault(stat, {tier: 0 for tier in ARTIFACT_PERCENTAGES})
    st.markdown(f"#### {stat.title()}")
    for tier, col in zip(ARTIFACT_PERCENTAGES, st.columns(len(ARTIFACT_PERCENTAGES))):
        with col:
            quantity = st.number_input(f"{tier}%", min_value=0, value=tiers.get(tier, 0), step=1, key=f"artifact_{stat}_{tier}")
            if quantity != tiers.get(tier, 0):
                tiers[tier] = int(quantity)
                changed = True

    bonus = compute_artifact_bonus(get_artifact_array(data.artifacts), stat)
    st.caption(f"Total {stat} bonus: +{bonus * 100:.0f}%")

if changed:
    auto_save()
    st.rerun()
