"""
War Machine Optimizer - Streamlit Web App
Main entry point with profile selection, global modifiers and the optimize action.
"""
import logging
import os
import sys
from pathlib import Path

import streamlit as st

sys.path.insert(0, str(Path(__file__).parent.parent))

from utils.data_manager import ProfileData, list_profiles, load_profile_data, save_profile_data
from utils.formatting import format_number
from engine import OptimizeMode, RIFT_RANK_BONUSES
from optimizer_worker import OptimizationRunner
from roster import build_optimizer_payload, get_owned_heroes, get_owned_machines

logging.basicConfig(
    level=os.environ.get("WMO_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

# =============================================================================
# PROFILE SELECTION
# =============================================================================
# Profiles are plain local CSV files; WMO_DEV_PROFILE picks the one loaded on start.
DEFAULT_PROFILE = os.environ.get("WMO_DEV_PROFILE", "default")

# Page config
st.set_page_config(
    page_title="War Machine Optimizer",
    page_icon="⚙️",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS for dark theme
st.markdown("""
<style>
    .stApp {
        background-color: #1a1a2e;
    }
    .main-title {
        color: #00d4ff;
        font-size: 2.5em;
        font-weight: bold;
        text-align: center;
        margin-bottom: 20px;
    }
    .sub-title {
        color: #888;
        text-align: center;
        margin-bottom: 30px;
    }
    .profile-info {
        color: #ffd700;
        font-size: 1.1em;
    }
</style>
""", unsafe_allow_html=True)


def init_session_state():
    """Initialize session state variables."""
    if 'profile' not in st.session_state:
        st.session_state.profile = DEFAULT_PROFILE
    if 'profile_data' not in st.session_state:
        st.session_state.profile_data = load_profile_data(st.session_state.profile)
    if 'runner' not in st.session_state:
        st.session_state.runner = OptimizationRunner()
    if 'optimization_result' not in st.session_state:
        st.session_state.optimization_result = None


def switch_profile(profile: str):
    """Save the current profile and load another."""
    save_profile_data(st.session_state.profile, st.session_state.profile_data)
    st.session_state.profile = profile
    st.session_state.profile_data = load_profile_data(profile)
    st.session_state.optimization_result = None
    logger.info("Switched to profile %s", profile)


def run_optimization(data: ProfileData) -> dict:
    """Submit the roster to the worker and wait for its result."""
    payload = build_optimizer_payload(
        machines=data.machines,
        heroes=data.heroes,
        artifacts=data.artifacts,
        mode=data.optimize_mode,
        engineer_level=data.engineer_level,
        scarab_level=data.scarab_level,
        rift_rank=data.rift_rank,
        hero_scoring=data.scoring_weights.to_dict(),
    )
    runner: OptimizationRunner = st.session_state.runner
    runner.submit(payload)
    return runner.result()


def sidebar():
    with st.sidebar:
        st.markdown(f'<div class="profile-info">👤 Profile: {st.session_state.profile}</div>', unsafe_allow_html=True)

        profiles = sorted(set(list_profiles()) | {st.session_state.profile})
        selected = st.selectbox("Switch profile", profiles, index=profiles.index(st.session_state.profile))
        new_profile = st.text_input("New profile", placeholder="Profile name")
        if st.button("Load / Create") and (new_profile or selected) != st.session_state.profile:
            switch_profile((new_profile or selected).strip())
            st.rerun()

        st.divider()

        if st.button("💾 Save Data"):
            if save_profile_data(st.session_state.profile, st.session_state.profile_data):
                st.success("Data saved!")
            else:
                st.error("Failed to save")


def main_app():
    """Display the overview and optimize controls."""
    sidebar()

    st.markdown('<div class="main-title">⚙️ War Machine Optimizer</div>', unsafe_allow_html=True)
    st.markdown('<div class="sub-title">Crew assignment and formation search for campaign and arena</div>', unsafe_allow_html=True)

    data: ProfileData = st.session_state.profile_data

    # Global modifiers
    st.markdown("### Global Modifiers")
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        engineer_level = st.number_input("Engineer Level", min_value=0, value=data.engineer_level, step=1)
    with col2:
        scarab_level = st.number_input("Scarab Level", min_value=0, value=data.scarab_level, step=1)
    with col3:
        ranks = list(RIFT_RANK_BONUSES)
        rift_rank = st.selectbox(
            "Rift Rank", ranks,
            index=ranks.index(data.rift_rank) if data.rift_rank in ranks else 0,
            format_func=str.title,
        )
    with col4:
        modes = [mode.value for mode in OptimizeMode]
        optimize_mode = st.radio(
            "Optimize For", modes,
            index=modes.index(data.optimize_mode) if data.optimize_mode in modes else 0,
            format_func=str.title, horizontal=True,
        )

    if (engineer_level, scarab_level, rift_rank, optimize_mode) != (
        data.engineer_level, data.scarab_level, data.rift_rank, data.optimize_mode
    ):
        data.engineer_level = int(engineer_level)
        data.scarab_level = int(scarab_level)
        data.rift_rank = rift_rank
        data.optimize_mode = optimize_mode
        save_profile_data(st.session_state.profile, data)

    st.divider()

    # Roster overview
    owned_machines = get_owned_machines(data.machines)
    owned_heroes = get_owned_heroes(data.heroes)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Owned Machines", f"{len(owned_machines)} / {len(data.machines)}")
    with col2:
        st.metric("Owned Heroes", f"{len(owned_heroes)} / {len(data.heroes)}")
    with col3:
        st.metric("Last Result", f"{data.last_result.get('total_stars', 0)} stars")

    if st.button("🚀 Optimize", type="primary", disabled=not owned_machines):
        with st.spinner(f"Optimizing for {optimize_mode}..."):
            result = run_optimization(data)

        if "error" in result:
            st.error(f"Optimization failed: {result['error']}")
        else:
            st.session_state.optimization_result = result
            st.session_state.upgrade_analysis = None
            if result.get("mode") == OptimizeMode.CAMPAIGN.value:
                data.last_result = {
                    'total_stars': result["totalStars"],
                    'last_cleared': result["lastCleared"],
                }
                save_profile_data(st.session_state.profile, data)
                st.success(f"Done! {result['totalStars']} stars")
            else:
                st.success(f"Done! Arena power {format_number(result['arenaPower'])}")
            st.info("Open the **Results** page for the formation and upgrade suggestions.")

    if not owned_machines:
        st.info("Add machines on the **Machines** page to get started.")

    st.markdown("### Pages")
    st.markdown("""
    - **Machines** - Base stats, level, rarity, blueprints and upgrades per machine
    - **Heroes** - Crew members and their stat percentages
    - **Artifacts** - Owned artifacts per stat and tier
    - **Results** - Formation, campaign progress and upgrade paths
    - **Scoring Weights** - Tune how heroes are scored per role

    Your data is **automatically saved** after every change.
    """)


def main():
    """Main entry point."""
    init_session_state()
    main_app()


if __name__ == "__main__":
    main()
