"""
Optimizer Worker
================
Request/response boundary for running an optimization off the UI thread.

handle_request() turns one payload into one result dict, or an {"error": ...}
dict if anything goes wrong. OptimizationRunner hosts it on a
concurrent.futures executor; submitting a new request supersedes the one in
flight.
"""

import logging
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from typing import Any, Callable, Dict, Optional

from engine import (
    MAX_MISSIONS_PER_DIFFICULTY,
    ArtifactEntry,
    Hero,
    Machine,
    OptimizeMode,
)
from optimizer import HeroScoringWeights, Optimizer

logger = logging.getLogger(__name__)


def _parse_machine(data: Any) -> Machine:
    return data if isinstance(data, Machine) else Machine.from_dict(data)


def _parse_hero(data: Any) -> Hero:
    return data if isinstance(data, Hero) else Hero.from_dict(data)


def _parse_artifact(data: Any) -> ArtifactEntry:
    return data if isinstance(data, ArtifactEntry) else ArtifactEntry.from_dict(data)


def run_optimization(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run one optimization request. Raises on invalid input.

    Payload keys (camelCase):
        mode, ownedMachines, ownedHeroes, maxMission, globalRarityLevels,
        engineerLevel, scarabLevel, artifactArray, riftRank, heroScoring,
        assignmentStrategy
    """
    if not isinstance(payload, dict):
        raise ValueError("Optimization request must be a dict")

    mode = payload.get("mode", OptimizeMode.CAMPAIGN.value)
    if mode not in {m.value for m in OptimizeMode}:
        raise ValueError(f"Unknown optimization mode: {mode!r}")

    machines = [_parse_machine(machine) for machine in payload.get("ownedMachines") or []]
    heroes = [_parse_hero(hero) for hero in payload.get("ownedHeroes") or []]

    optimizer = Optimizer(
        owned_machines=machines,
        heroes=heroes,
        engineer_level=int(payload.get("engineerLevel", 0)),
        scarab_level=int(payload.get("scarabLevel", 0)),
        artifact_array=[_parse_artifact(entry) for entry in payload.get("artifactArray") or []],
        global_rarity_levels=int(payload.get("globalRarityLevels", 0)),
        rift_rank=payload.get("riftRank") or "",
        scoring_weights=HeroScoringWeights.from_dict(payload.get("heroScoring")),
        assignment_strategy=payload.get("assignmentStrategy", "optimal"),
    )

    if mode == OptimizeMode.ARENA.value:
        return optimizer.optimize_for_arena(machines).to_dict()

    max_mission = int(payload.get("maxMission", MAX_MISSIONS_PER_DIFFICULTY))
    return optimizer.optimize_campaign_max_stars(machines, max_mission).to_dict()


def handle_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Run a request; any exception becomes {"error": message}."""
    try:
        return run_optimization(payload)
    except Exception as e:
        logger.exception("Optimization request failed")
        return {"error": str(e) or e.__class__.__name__}


def _single_process_pool() -> Executor:
    return ProcessPoolExecutor(max_workers=1)


class OptimizationRunner:
    """
    Hosts handle_request on an executor, one request at a time.

    A new submit() supersedes the previous request: a pending one is
    cancelled, a running one is abandoned together with its executor so its
    result is never read.
    """

    def __init__(self, executor_factory: Optional[Callable[[], Executor]] = None):
        self._executor_factory = executor_factory or _single_process_pool
        self._executor: Optional[Executor] = None
        self._future: Optional[Future] = None
        self.request_id = 0

    def submit(self, payload: Dict[str, Any]) -> int:
        """Start a request and return its id."""
        self._discard_in_flight()
        if self._executor is None:
            self._executor = self._executor_factory()
        self.request_id += 1
        self._future = self._executor.submit(handle_request, payload)
        return self.request_id

    @property
    def running(self) -> bool:
        return self._future is not None and not self._future.done()

    def result(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Result of the latest request.

        Raises:
            RuntimeError: if nothing was submitted
            TimeoutError: if timeout elapses first (the request keeps running)
        """
        if self._future is None:
            raise RuntimeError("No optimization request has been submitted")
        try:
            return self._future.result(timeout=timeout)
        except BrokenProcessPool as e:
            logger.error("Optimization worker died: %s", e)
            self._executor = None
            return {"error": f"Optimization worker died: {e}"}

    def _discard_in_flight(self) -> None:
        if self._future is None or self._future.done():
            return
        if self._future.cancel():
            logger.info("Cancelled pending optimization request %d", self.request_id)
            return
        logger.info("Abandoning running optimization request %d", self.request_id)
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = None

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self._future = None
