"""
Results Page
Formation from the last optimization, campaign progress, and the cheapest
upgrades that would clear the next blocked mission.
"""
import streamlit as st
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from utils.formatting import format_number, formation_rows
from utils.progress_chart import create_power_breakdown_chart, create_progress_chart
from engine import MAX_TOTAL_STARS, Machine, OptimizeMode, get_global_rarity_levels
from roster import get_artifact_array, get_owned_machines
from upgrade_analyzer import UpgradeAnalyzer

st.set_page_config(page_title="Results", page_icon="🏆", layout="wide")

# Check a profile is loaded
if 'profile_data' not in st.session_state or st.session_state.profile_data is None:
    st.warning("Please open the main page first!")
    st.stop()

data = st.session_state.profile_data
result = st.session_state.get('optimization_result')

# Two-machine search bound for interactive use
UI_MAX_DISTRIBUTION_COST = 40

st.title("🏆 Results")

if not result:
    st.info("Run **Optimize** on the main page first.")
    st.stop()

mode = result["mode"]
formation = [Machine.from_dict(machine) for machine in result["formation"]]

# =============================================================================
# SUMMARY
# =============================================================================
if mode == OptimizeMode.CAMPAIGN.value:
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Stars", f"{result['totalStars']} / {MAX_TOTAL_STARS}")
    with col2:
        st.metric("Battle Power", format_number(result["battlePower"]))
    with col3:
        st.metric("Arena Power", format_number(result["arenaPower"]))

    st.plotly_chart(create_progress_chart(result["lastCleared"], result["totalStars"]), use_container_width=True)
else:
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Arena Power", format_number(result["arenaPower"]))
    with col2:
        st.metric("Battle Power", format_number(result["battlePower"]))

# =============================================================================
# FORMATION
# =============================================================================
st.markdown("### Formation")
if not formation:
    st.warning("No machines in the formation.")
    st.stop()

st.dataframe(formation_rows(formation, mode), use_container_width=True, hide_index=True)
st.plotly_chart(create_power_breakdown_chart(formation, mode), use_container_width=True)

# =============================================================================
# UPGRADE ANALYSIS (campaign only)
# =============================================================================
if mode != OptimizeMode.CAMPAIGN.value:
    st.stop()

st.markdown("### Next Mission Upgrades")
st.caption("Cost counts 2 per level and 1 per blueprint level.")

if st.button("🔍 Analyze Upgrades"):
    analyzer = UpgradeAnalyzer(
        engineer_level=data.engineer_level,
        scarab_level=data.scarab_level,
        artifact_array=get_artifact_array(data.artifacts),
        global_rarity_levels=get_global_rarity_levels(get_owned_machines(data.machines)),
        rift_rank=data.rift_rank,
        max_distribution_cost=UI_MAX_DISTRIBUTION_COST,
    )
    with st.spinner("Searching upgrade paths..."):
        st.session_state.upgrade_analysis = analyzer.analyze_upgrades(formation, result["lastCleared"], mode)

analysis = st.session_state.get('upgrade_analysis')
if analysis is None:
    st.stop()

st.markdown(f"**Target:** {analysis.next_difficulty.title()} mission {analysis.next_mission}")
if not analysis.can_pass:
    st.warning("No upgrade path found within the search limits.")
    st.stop()

for index, path in enumerate(analysis.paths, start=1):
    label = f"Option {index}: cost {path.total_upgrade_amount} | power +{format_number(path.total_power_gain)}"
    with st.expander(label, expanded=index == 1):
        for upgrade in path.upgrades:
            what = "Level" if upgrade.upgrade_type == "level" else f"{upgrade.upgrade_type.title()} blueprint"
            st.markdown(f"- **{upgrade.machine_name}**: {what} {upgrade.current_value} → {upgrade.required_value}")
