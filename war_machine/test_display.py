"""
Unit tests for the Results page helpers: number formatting, formation rows and charts.
"""
from decimal import Decimal

import plotly.graph_objects as go

from engine import Stats
from streamlit_app.utils.formatting import format_number, formation_rows
from streamlit_app.utils.progress_chart import create_power_breakdown_chart, create_progress_chart


class TestFormatting:
    """Tests for format_number and formation_rows."""

    def test_small_numbers_grouped(self):
        """Numbers below the threshold use thousands separators."""
        assert format_number(Decimal("1234567.8")) == "1,234,568"

    def test_large_numbers_scientific(self):
        """Numbers above the threshold use scientific notation."""
        assert format_number(Decimal("2.92e18")) == "2.92e+18"

    def test_none(self):
        """None formats as a dash."""
        assert format_number(None) == "-"

    def test_formation_rows(self, make_machine, make_hero):
        """Formation rows show slot, rank, stats and crew names."""
        machine = make_machine(name="Hammer", damage=100, health=1000, level=7, with_battle_stats=True)
        machine.crew = [make_hero(name="Ace", damage=10)]
        rows = formation_rows([machine, make_machine(name="Bare")])

        assert rows[0]["Slot"] == 1
        assert rows[0]["Rank"] == "2 Silver Stars"
        assert rows[0]["Damage"] == "100"
        assert rows[0]["Crew"] == "Ace"
        assert rows[1]["Damage"] == "-"
        assert rows[1]["Power"] == "0"


class TestCharts:
    """Tests for the plotly figures."""

    def test_progress_chart(self):
        """Progress chart lists difficulties hardest first."""
        fig = create_progress_chart({"easy": 30, "normal": 4, "hard": None}, 34)
        assert isinstance(fig, go.Figure)
        bar = fig.data[0]
        assert list(bar.y) == ["Nightmare", "Insane", "Hard", "Normal", "Easy"]
        assert list(bar.x) == [0, 0, 0, 4, 30]
        assert "34 stars" in fig.layout.title.text

    def test_power_breakdown(self, make_machine):
        """Power breakdown has one trace per stat."""
        machine = make_machine(name="Hammer", damage=1, health=10, with_battle_stats=True)
        fig = create_power_breakdown_chart([machine])
        assert [trace.name for trace in fig.data] == ["Damage", "Health", "Armor"]
        damage, health, armor = (trace.y[0] for trace in fig.data)
        assert damage == health
        assert armor == 0

    def test_power_breakdown_arena_without_stats(self, make_machine):
        """Machines without arena stats show zero power."""
        fig = create_power_breakdown_chart([make_machine(damage=5, with_battle_stats=True)], mode="arena")
        assert all(trace.y[0] == 0 for trace in fig.data)
