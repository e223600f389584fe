from __future__ import annotations

"""Autonomous breadth-first exploration of an application's state space."""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, List, Optional, Tuple

from .action_discovery import ActionDiscovery
from .browser import Driver
from .config import ExplorerConfig, RESTORE_REPLAY
from .errors import ActionMiss
from .graph import StateGraph
from .knowledge import Action, AppState, GraphMetadata, StateTransition
from .state_matcher import StateMatcher

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    INIT = "init"
    RUNNING = "running"
    DONE = "done"


@dataclass
class QueueItem:
    """One pending (state, action) pair.

    ``path_from_root`` holds state ids from the entry state up to and
    including the source state; ``trail`` the actions that got there.
    """

    state_id: str
    action: Action
    path_from_root: List[str]
    trail: List[Action] = field(default_factory=list)


@dataclass
class ExplorationStats:
    executed: int = 0
    misses: int = 0
    depth_skipped: int = 0
    restore_misses: int = 0
    duration_ms: int = 0


class Explorer:
    """Breadth-first explorer bounded by ``max_states`` and ``max_depth``."""

    def __init__(
        self,
        config: ExplorerConfig,
        driver: Driver,
        discovery: Optional[ActionDiscovery] = None,
        matcher: Optional[StateMatcher] = None,
    ) -> None:
        self._config = config
        self._driver = driver
        self._discovery = discovery or ActionDiscovery(config.input_values)
        self._matcher = matcher or StateMatcher()
        self._graph = StateGraph()
        self._queue: Deque[QueueItem] = deque()
        self.stats = ExplorationStats()
        self.phase = RunPhase.INIT

    @property
    def graph(self) -> StateGraph:
        return self._graph

    # ------------------------------------------------------------------
    async def explore(self) -> StateGraph:
        """Entry-point: run once, from ``INIT`` to ``DONE``."""
        if self.phase != RunPhase.INIT:
            raise RuntimeError("An Explorer instance can only run once")
        self.phase = RunPhase.RUNNING
        started = time.monotonic()
        logger.info(
            "Starting exploration of %s (max states %d, max depth %d)",
            self._config.url,
            self._config.max_states,
            self._config.max_depth,
        )

        await self._driver.start()
        await self._driver.navigate(self._config.url)
        entry, _ = await self._capture()
        self._graph.set_entry_state(entry.id)
        logger.info("Initial state: %s - %s", entry.id, entry.description)
        self._enqueue_actions(entry, [], [])

        while self._queue:
            if self._matcher.state_count >= self._config.max_states:
                logger.info("Reached max states limit (%d)", self._config.max_states)
                break
            item = self._queue.popleft()
            if len(item.path_from_root) >= self._config.max_depth:
                logger.debug(
                    "Skipping action at depth %d (max: %d)",
                    len(item.path_from_root),
                    self._config.max_depth,
                )
                self.stats.depth_skipped += 1
                continue
            await self._explore_item(item)

        self.stats.duration_ms = int((time.monotonic() - started) * 1000)
        self._graph.set_metadata(
            GraphMetadata(
                app_url=self._config.url,
                generated_at=datetime.now(timezone.utc).isoformat(),
                total_states=self._matcher.state_count,
                total_transitions=len(self._graph.transitions),
                exploration_duration_ms=self.stats.duration_ms,
            )
        )
        self.phase = RunPhase.DONE
        logger.info(
            "Exploration complete: %d states, %d transitions, %d actions (%d misses) in %.1fs",
            self._matcher.state_count,
            len(self._graph.transitions),
            self.stats.executed,
            self.stats.misses,
            self.stats.duration_ms / 1000,
        )
        return self._graph

    # ------------------------------------------------------------------
    # Helpers -----------------------------------------------------------

    async def _capture(self) -> Tuple[AppState, bool]:
        snapshot = await self._driver.snapshot()
        elements = self._discovery.discover(snapshot)
        state, created = self._matcher.observe(snapshot, elements)
        self._graph.add_state(state)
        return state, created

    def _enqueue_actions(self, state: AppState, path: List[str], trail: List[Action]) -> None:
        candidates = self._discovery.actions_for_state(state)
        for action in self._matcher.unexplored(state.id, candidates):
            self._queue.append(
                QueueItem(
                    state_id=state.id,
                    action=action,
                    path_from_root=path + [state.id],
                    trail=list(trail),
                )
            )

    async def _restore(self, item: QueueItem) -> bool:
        """Bring the page back to ``item.state_id``. False if that failed."""
        await self._driver.navigate(self._config.url)
        if self._config.restore_strategy != RESTORE_REPLAY or not item.trail:
            return True

        for action in item.trail:
            try:
                await self._driver.perform(action, self._config.timeout_ms)
            except ActionMiss as e:
                logger.debug("Replay step %s missed: %s", action.describe(), e)
            await self._driver.settle(self._config.settle_ms)

        try:
            reached = self._matcher.find(await self._driver.snapshot())
        except ActionMiss as e:
            logger.warning("Could not read page after replay to %s: %s", item.state_id, e)
            return False
        if reached is None or reached.id != item.state_id:
            logger.warning(
                "Replay to %s landed on %s - skipping %s",
                item.state_id,
                reached.id if reached else "an unknown state",
                item.action.describe(),
            )
            return False
        return True

    async def _explore_item(self, item: QueueItem) -> None:
        if not await self._restore(item):
            self.stats.restore_misses += 1
            return

        self._matcher.mark_explored(item.state_id, item.action)
        logger.debug("Exploring: %s from %s", item.action.describe(), item.state_id)

        try:
            await self._driver.perform(item.action, self._config.timeout_ms)
        except ActionMiss as e:
            self.stats.misses += 1
            logger.debug("  -> %s, skipping (%s)", e.code.value, e)
            return
        self.stats.executed += 1
        await self._driver.settle(self._config.settle_ms)

        try:
            new_state, created = await self._capture()
        except ActionMiss as e:
            self.stats.misses += 1
            logger.warning("  -> Could not capture state after %s: %s", item.action.describe(), e)
            return
        self._graph.add_transition(
            StateTransition(
                id=self._graph.next_transition_id(),
                from_state_id=item.state_id,
                to_state_id=new_state.id,
                action=item.action,
            )
        )

        if created:
            logger.info("  -> New state: %s - %s", new_state.id, new_state.description)
            self._enqueue_actions(new_state, item.path_from_root, item.trail + [item.action])
        elif new_state.id == item.state_id:
            logger.debug("  -> Same state (no change)")
        else:
            logger.debug("  -> Known state %s", new_state.id)
