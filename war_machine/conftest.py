"""
Shared pytest fixtures for building machines and heroes.
"""
import pytest

from engine import Hero, Machine, Stats


@pytest.fixture
def make_machine():
    """
    Factory for machines. Pass with_battle_stats=True to copy base stats into
    battle_stats (what a level 1, engineer 1, crewless common machine gets).
    """
    counter = {"next": 0}

    def factory(name=None, role="dps", damage=0, health=0, armor=0, level=1,
                rarity="common", blueprints=None, with_battle_stats=False, **kwargs):
        counter["next"] += 1
        machine_id = kwargs.pop("id", counter["next"])
        base = Stats(damage=damage, health=health, armor=armor)
        return Machine(
            id=machine_id,
            name=name or f"Machine {machine_id}",
            role=role,
            base_stats=base,
            rarity=rarity,
            level=level,
            blueprints=blueprints or {},
            battle_stats=base.copy() if with_battle_stats else None,
            **kwargs,
        )

    return factory


@pytest.fixture
def make_hero():
    counter = {"next": 0}

    def factory(name=None, damage=0, health=0, armor=0, role=""):
        counter["next"] += 1
        return Hero(
            id=counter["next"],
            name=name or f"Hero {counter['next']}",
            role=role,
            percentages={"damage": damage, "health": health, "armor": armor},
        )

    return factory
