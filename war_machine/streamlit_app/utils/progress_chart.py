"""
Campaign Progress Chart Components

Plotly figures for the Results page: missions cleared per difficulty and the
power make-up of a formation.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional

import plotly.graph_objects as go

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from engine import DIFFICULTY_KEYS, MAX_MISSIONS_PER_DIFFICULTY, STAT_KEYS, Machine, Stats, compute_machine_power

DIFFICULTY_COLORS = {
    "easy": "#4caf50",
    "normal": "#2196f3",
    "hard": "#ff9800",
    "insane": "#e91e63",
    "nightmare": "#9c27b0",
}

STAT_COLORS = {
    "damage": "#ff6b6b",
    "health": "#4caf50",
    "armor": "#64b5f6",
}


def create_progress_chart(
    last_cleared: Dict[str, Optional[int]],
    total_stars: int,
    max_missions: int = MAX_MISSIONS_PER_DIFFICULTY,
    height: int = 280,
) -> go.Figure:
    """
    Horizontal bars of the last cleared mission per difficulty.

    Args:
        last_cleared: difficulty -> last cleared mission (None if none)
        total_stars: Stars from the optimization result (shown in the title)
        max_missions: Missions per difficulty (x-axis range)

    Returns:
        Plotly Figure object ready for display with st.plotly_chart()
    """
    difficulties = list(reversed(DIFFICULTY_KEYS))  # easy on top
    cleared = [last_cleared.get(difficulty) or 0 for difficulty in difficulties]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=cleared,
        y=[difficulty.title() for difficulty in difficulties],
        orientation='h',
        marker_color=[DIFFICULTY_COLORS[difficulty] for difficulty in difficulties],
        text=[f"{value}/{max_missions}" for value in cleared],
        textposition='auto',
        hovertemplate='%{y}: mission %{x}<extra></extra>',
    ))

    fig.update_layout(
        title=dict(text=f"Campaign Progress | {total_stars} stars", font=dict(size=14)),
        xaxis=dict(
            title="Last Cleared Mission",
            range=[0, max_missions],
            gridcolor='rgba(128, 128, 128, 0.2)',
        ),
        height=height,
        margin=dict(l=80, r=30, t=40, b=40),
        plot_bgcolor='rgba(0,0,0,0)',
        paper_bgcolor='rgba(0,0,0,0)',
        showlegend=False,
    )
    return fig


def create_power_breakdown_chart(formation: List[Machine], mode: str = "campaign", height: int = 320) -> go.Figure:
    """
    Stacked bars of each machine's power split into damage, health and armor terms.

    Each term is the machine power of a stat record holding only that stat.
    """
    names = [machine.name for machine in formation]

    fig = go.Figure()
    for stat in STAT_KEYS:
        values = []
        for machine in formation:
            stats = machine.stats_for_mode(mode)
            term = compute_machine_power(Stats(**{stat: stats.get(stat)})) if stats else 0
            values.append(float(term))
        fig.add_trace(go.Bar(
            x=names,
            y=values,
            name=stat.title(),
            marker_color=STAT_COLORS[stat],
            hovertemplate=f'{stat.title()}: %{{y:,.0f}}<extra></extra>',
        ))

    fig.update_layout(
        barmode='stack',
        title=dict(text=f"{mode.title()} Power by Machine", font=dict(size=14)),
        yaxis=dict(title="Power", gridcolor='rgba(128, 128, 128, 0.2)'),
        height=height,
        margin=dict(l=50, r=30, t=40, b=40),
        plot_bgcolor='rgba(0,0,0,0)',
        paper_bgcolor='rgba(0,0,0,0)',
        legend=dict(orientation='h', y=-0.2),
    )
    return fig
