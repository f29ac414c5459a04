"""
Scoring Weights Page
Per-mode, per-role stat weights used to score heroes for crew slots.
"""
import streamlit as st
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from utils.data_manager import save_profile_data
from engine import STAT_KEYS, OptimizeMode
from optimizer import AssignmentStrategy, HeroScoringWeights

st.set_page_config(page_title="Scoring Weights", page_icon="⚖️", layout="wide")

# Check a profile is loaded
if 'profile_data' not in st.session_state or st.session_state.profile_data is None:
    st.warning("Please open the main page first!")
    st.stop()

data = st.session_state.profile_data


def auto_save():
    """Save data after changes."""
    save_profile_data(st.session_state.profile, data)


st.title("⚖️ Scoring Weights")
st.markdown(
    "A hero's score for a machine is the weighted sum of the stat gains it gives that machine. "
    f"Crew is assigned with the **{AssignmentStrategy.OPTIMAL.value}** strategy."
)

weights = data.scoring_weights.weights
changed = False

for mode in OptimizeMode:
    st.markdown(f"#### {mode.value.title()}")
    for role in ("tank", "dps"):
        cols = st.columns([1, 2, 2, 2])
        cols[0].markdown(f"**{role.upper()}**")
        for stat, col in zip(STAT_KEYS, cols[1:]):
            with col:
                current = float(weights[mode.value][role][stat])
                value = st.number_input(f"{stat.title()}", min_value=0.0, value=current, step=0.05,
                                        format="%.2f", key=f"weight_{mode.value}_{role}_{stat}")
                if value != current:
                    weights[mode.value][role][stat] = value
                    changed = True

if st.button("↩️ Reset to defaults"):
    data.scoring_weights = HeroScoringWeights()
    for key in [key for key in st.session_state if str(key).startswith("weight_")]:
        del st.session_state[key]
    changed = True

if changed:
    auto_save()
    st.rerun()
