"""
Unit tests for optimizer_worker.py - request handling and the background runner.
"""
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool

import pytest

from engine import Machine
from optimizer_worker import OptimizationRunner, handle_request, run_optimization
from roster import build_optimizer_payload


def campaign_payload(make_machine, make_hero, mode="campaign", max_mission=3):
    machines = [make_machine(damage=1000, health=100000, armor=100) for _ in range(5)]
    heroes = [make_hero(damage=10), make_hero()]
    payload = build_optimizer_payload(machines, heroes, {}, mode, engineer_level=1, max_mission=max_mission)
    return payload


class BrokenExecutor(Executor):
    """Executor whose futures fail the way a crashed worker process does."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        future.set_exception(BrokenProcessPool("worker exited"))
        return future


class TestHandleRequest:
    """Tests for the request/response boundary."""

    def test_campaign(self, make_machine, make_hero):
        """Campaign requests return stars and a full formation."""
        result = handle_request(campaign_payload(make_machine, make_hero))
        assert "error" not in result
        assert result["mode"] == "campaign"
        assert result["totalStars"] > 0
        assert len(result["formation"]) == 5

    def test_arena(self, make_machine, make_hero):
        """Arena requests return arena power."""
        result = handle_request(campaign_payload(make_machine, make_hero, mode="arena"))
        assert result["mode"] == "arena"
        assert result["arenaPower"] > 0

    def test_unknown_mode_is_error(self, make_machine, make_hero):
        """Unknown modes come back as an error payload."""
        result = handle_request(campaign_payload(make_machine, make_hero, mode="raid"))
        assert "raid" in result["error"]

    def test_not_a_dict(self):
        """Non-dict requests come back as an error payload."""
        assert "error" in handle_request(["campaign"])

    def test_machine_without_base_stats(self):
        """Machines without base stats come back as an error payload."""
        result = handle_request({"mode": "campaign", "ownedMachines": [{"id": 1, "name": "Broken"}]})
        assert "Broken" in result["error"]

    def test_payload_blueprints_clamped(self):
        """A payload machine cannot carry blueprints past its level cap into the stat math."""
        machine = Machine.from_dict({"id": 1, "name": "Hammer", "level": 7, "baseStats": {"damage": 10},
                                     "blueprints": {"damage": 60, "health": -2}})
        assert machine.blueprints == {"damage": 10, "health": 0, "armor": 0}

    def test_empty_roster(self):
        """An empty roster gives zero stars."""
        result = handle_request({"mode": "campaign"})
        assert result["totalStars"] == 0
        assert all(value is None for value in result["lastCleared"].values())

    def test_custom_scoring_and_strategy(self, make_machine, make_hero):
        """Custom weights and the greedy strategy are accepted."""
        payload = campaign_payload(make_machine, make_hero)
        payload["heroScoring"] = {"campaign": {"dps": {"damage": 1}}}
        payload["assignmentStrategy"] = "greedy"
        assert "error" not in handle_request(payload)

    def test_run_optimization_raises(self):
        """run_optimization raises instead of returning an error payload."""
        with pytest.raises(ValueError):
            run_optimization({"mode": "campaign", "assignmentStrategy": "random"})


class TestOptimizationRunner:
    """Tests for the supersede-on-submit runner."""

    def test_result_before_submit(self):
        """Reading a result before any submit is an error."""
        with pytest.raises(RuntimeError):
            OptimizationRunner(ThreadPoolExecutor).result()

    def test_submit_and_result(self, make_machine, make_hero):
        """A submitted request returns its result."""
        runner = OptimizationRunner(lambda: ThreadPoolExecutor(max_workers=1))
        try:
            request_id = runner.submit(campaign_payload(make_machine, make_hero))
            result = runner.result(timeout=120)
        finally:
            runner.close()
        assert request_id == 1
        assert result["totalStars"] > 0

    def test_latest_request_wins(self, make_machine, make_hero):
        """A second submit replaces the first."""
        runner = OptimizationRunner(lambda: ThreadPoolExecutor(max_workers=1))
        try:
            runner.submit(campaign_payload(make_machine, make_hero))
            request_id = runner.submit(campaign_payload(make_machine, make_hero, mode="arena"))
            result = runner.result(timeout=120)
        finally:
            runner.close()
        assert request_id == 2
        assert result["mode"] == "arena"

    def test_broken_worker_becomes_error(self):
        """A crashed worker gives an error payload."""
        runner = OptimizationRunner(BrokenExecutor)
        runner.submit({"mode": "campaign"})
        result = runner.result()
        assert "worker exited" in result["error"]
        assert not runner.running
