from __future__ import annotations

"""Interactive, human-steppable exploration.

``InteractiveExplorer`` executes one action at a time on behalf of observers
(usually websocket clients). Every browser-mutating operation runs behind a
single lock: a call arriving while the lock is held is rejected straight
away with ``EXECUTION_IN_PROGRESS``, never queued.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from .action_discovery import ActionDiscovery
from .browser import Driver
from .config import ExplorerConfig
from .errors import ActionMiss, ActionResult, ErrorCode, JumpResult
from .graph import StateGraph
from .knowledge import (
    Action,
    AppState,
    AvailableAction,
    ExplorationSession,
    ExplorationStep,
    GraphMetadata,
    StateTransition,
    now_ms,
)
from .session import CURRENT_VERSION, generate_session_id
from .state_matcher import StateMatcher

logger = logging.getLogger(__name__)

STATE_CHANGE = "state_change"
GRAPH_CHANGE = "graph_change"

Observer = Callable[[str, Dict[str, Any]], None]


def action_id_for(state_id: str, action: Action) -> str:
    return f"{state_id}:{action.key}"


def action_key_from_id(action_id: str) -> str:
    """Strip the leading ``<stateId>:`` from an available-action id."""
    return action_id.split(":", 1)[1] if ":" in action_id else action_id


class InteractiveExplorer:
    def __init__(self, config: ExplorerConfig, driver: Driver) -> None:
        self._config = config
        self._driver = driver
        self._discovery = ActionDiscovery(config.input_values)
        self._matcher = StateMatcher()
        self._graph = StateGraph()
        self._current_state_id = ""
        self._entry_state_id = ""
        self._path_from_root: List[str] = []
        self._skipped: Dict[str, Set[str]] = {}
        self._history: List[ExplorationStep] = []
        self._observers: List[Observer] = []
        self._executing = False
        self._session_id = generate_session_id()
        self._created_at = datetime.now(timezone.utc).isoformat()
        self._started = time.monotonic()

    # ------------------------------------------------------------------
    async def init(self) -> AppState:
        logger.info("Starting interactive exploration of %s", self._config.url)
        self._started = time.monotonic()
        await self._driver.start()
        state = await self._load_entry()
        self._graph.set_entry_state(state.id)
        self._entry_state_id = state.id
        self._current_state_id = state.id
        self._path_from_root = [state.id]
        logger.info("Initial state: %s - %s", state.id, state.description)
        return state

    async def _load_entry(self) -> AppState:
        await self._driver.navigate(self._config.url)
        state, _ = await self._capture()
        self.refresh_metadata()
        return state

    def refresh_metadata(self) -> None:
        self._graph.set_metadata(
            GraphMetadata(
                app_url=self._config.url,
                generated_at=datetime.now(timezone.utc).isoformat(),
                total_states=len(self._graph.all_states()),
                total_transitions=len(self._graph.transitions),
                exploration_duration_ms=int((time.monotonic() - self._started) * 1000),
            )
        )

    def graph_snapshot(self) -> Dict[str, Any]:
        """Wire form of the graph with up-to-date metadata."""
        self.refresh_metadata()
        return self._graph.to_snapshot()

    async def close(self) -> None:
        await self._driver.close()

    # --- observers ------------------------------------------------------
    def add_observer(self, observer: Observer) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, event: str, payload: Dict[str, Any]) -> None:
        for observer in list(self._observers):
            try:
                observer(event, payload)
            except Exception:
                logger.warning("Observer %r failed on %s - dropping it", observer, event, exc_info=True)
                self.remove_observer(observer)

    def _notify_state(self) -> None:
        self._notify(STATE_CHANGE, self.state_update())

    def _notify_graph(self) -> None:
        self._notify(GRAPH_CHANGE, self.graph_snapshot())

    # --- inspection -----------------------------------------------------
    @property
    def config(self) -> ExplorerConfig:
        return self._config

    @property
    def graph(self) -> StateGraph:
        return self._graph

    @property
    def is_executing(self) -> bool:
        return self._executing

    @property
    def current_state_id(self) -> str:
        return self._current_state_id

    @property
    def entry_state_id(self) -> str:
        return self._entry_state_id

    @property
    def path_from_root(self) -> List[str]:
        return list(self._path_from_root)

    @property
    def history(self) -> List[ExplorationStep]:
        return list(self._history)

    def current_state(self) -> Optional[AppState]:
        return self._matcher.get_state(self._current_state_id)

    def available_actions(self) -> List[AvailableAction]:
        state = self.current_state()
        if state is None:
            return []
        outgoing = self._graph.transitions_from(state.id)
        result: List[AvailableAction] = []
        for action in self._discovery.actions_for_state(state):
            explored = self._matcher.is_explored(state.id, action)
            result_state_id = None
            if explored:
                for t in outgoing:
                    if (
                        t.action.element_selector == action.element_selector
                        and t.action.type == action.type
                    ):
                        result_state_id = t.to_state_id
                        break
            result.append(
                AvailableAction(
                    id=action_id_for(state.id, action),
                    action=action,
                    is_explored=explored,
                    is_skipped=self.is_action_skipped(state.id, action.key),
                    result_state_id=result_state_id,
                )
            )
        return result

    def state_update(self) -> Dict[str, Any]:
        state = self.current_state()
        return {
            "currentState": state.to_json() if state else None,
            "availableActions": [a.to_json() for a in self.available_actions()],
            "pathFromRoot": self.path_from_root,
        }

    # --- execute ----------------------------------------------------------
    async def execute_action(self, action_id: str) -> ActionResult:
        previous = self._current_state_id
        if self._executing:
            return ActionResult(
                False, previous, previous,
                error="Action already in progress", code=ErrorCode.EXECUTION_IN_PROGRESS,
            )
        match = next((a for a in self.available_actions() if a.id == action_id), None)
        if match is None:
            return ActionResult(
                False, previous, previous,
                error=f"Action not found: {action_id}", code=ErrorCode.ACTION_NOT_FOUND,
            )

        self._executing = True
        try:
            action = match.action
            logger.info("Executing: %s", action.describe())
            self._matcher.mark_explored(previous, action)
            try:
                await self._driver.perform(action, self._config.timeout_ms)
            except ActionMiss as e:
                logger.warning("Action %s failed: %s", action.describe(), e)
                return ActionResult(False, previous, previous, error=str(e), code=e.code)
            await self._driver.settle(self._config.settle_ms)

            try:
                new_state, created = await self._capture()
            except ActionMiss as e:
                logger.warning("Could not capture state after %s: %s", action.describe(), e)
                return ActionResult(False, previous, previous, error=str(e), code=e.code)
            self._graph.add_transition(
                StateTransition(
                    id=self._graph.next_transition_id(),
                    from_state_id=previous,
                    to_state_id=new_state.id,
                    action=action,
                )
            )
            self._history.append(ExplorationStep(now_ms(), previous, new_state.id, action))
            self._current_state_id = new_state.id
            if new_state.id != previous:
                self._path_from_root.append(new_state.id)
            logger.info(
                "  -> %s: %s",
                "New state" if created else ("Same state" if new_state.id == previous else "Known state"),
                new_state.description,
            )

            self._notify_state()
            if created:
                self._notify_graph()
            return ActionResult(True, previous, new_state.id, is_new_state=created)
        finally:
            self._executing = False

    # --- skip bookkeeping -------------------------------------------------
    def skip_action(self, state_id: str, action_key: str) -> None:
        self._skipped.setdefault(state_id, set()).add(action_key)
        self._notify_state()

    def unskip_action(self, state_id: str, action_key: str) -> None:
        skipped = self._skipped.get(state_id)
        if skipped is not None:
            skipped.discard(action_key)
        self._notify_state()

    def is_action_skipped(self, state_id: str, action_key: str) -> bool:
        return action_key in self._skipped.get(state_id, ())

    # --- navigation -------------------------------------------------------
    async def jump_to_state(self, target_state_id: str) -> JumpResult:
        """Reach ``target_state_id`` by reset + replay of the shortest known path."""
        if self._executing:
            return JumpResult(
                False, target_state_id,
                error="Action in progress", code=ErrorCode.EXECUTION_IN_PROGRESS,
            )

        if target_state_id == self._entry_state_id and self._entry_state_id:
            path = [self._entry_state_id]
        else:
            path = self._graph.shortest_path(target_state_id)
            if not path:
                return JumpResult(
                    False, target_state_id,
                    error=f"No path found to state: {target_state_id}", code=ErrorCode.PATH_NOT_FOUND,
                )

        self._executing = True
        try:
            await self._driver.navigate(self._config.url)
            if len(path) == 1:
                self._current_state_id = self._entry_state_id
                self._path_from_root = [self._entry_state_id]
                self._notify_state()
                return JumpResult(True, target_state_id, self._entry_state_id, True, list(path))

            logger.info("Navigating to %s via path: %s", target_state_id, " -> ".join(path))
            for from_id, to_id in zip(path, path[1:]):
                transition = self._graph.transition_between(from_id, to_id)
                if transition is None:
                    continue
                logger.debug("  Replaying: %s", transition.action.describe())
                try:
                    await self._driver.perform(transition.action, self._config.timeout_ms)
                except ActionMiss as e:
                    logger.warning("  Replay of %s missed: %s", transition.action.describe(), e)
                await self._driver.settle(self._config.settle_ms)

            try:
                reached, created = await self._capture()
            except ActionMiss as e:
                logger.warning("Could not capture state after replay to %s: %s", target_state_id, e)
                return JumpResult(False, target_state_id, error=str(e), code=e.code, path=list(path))
            matched = reached.id == target_state_id
            if not matched:
                logger.warning("State mismatch: expected %s, got %s", target_state_id, reached.id)
            self._current_state_id = reached.id
            self._path_from_root = list(path)
            self._notify_state()
            if created:
                self._notify_graph()
            return JumpResult(True, target_state_id, reached.id, matched, list(path))
        finally:
            self._executing = False

    async def go_to_root(self) -> JumpResult:
        return await self.jump_to_state(self._entry_state_id)

    # --- sessions ---------------------------------------------------------
    def to_session(self) -> ExplorationSession:
        now = datetime.now(timezone.utc).isoformat()
        return ExplorationSession(
            version=CURRENT_VERSION,
            id=self._session_id,
            app_url=self._config.url,
            created_at=self._created_at,
            last_updated_at=now,
            current_state_id=self._current_state_id,
            entry_state_id=self._entry_state_id,
            state_graph=self.graph_snapshot(),
            skipped_actions={sid: sorted(keys) for sid, keys in self._skipped.items()},
            exploration_history=list(self._history),
        )

    async def from_session(self, session: ExplorationSession) -> JumpResult:
        """Rehydrate from ``session`` and move the live page to its cursor."""
        restored = StateGraph.from_snapshot(session.state_graph)
        self._matcher = StateMatcher()
        self._graph = StateGraph()
        for state in restored.all_states():
            self._matcher.restore(state)
            self._graph.add_state(state)
        for transition in restored.transitions:
            self._graph.add_transition(transition)
            self._matcher.mark_explored(transition.from_state_id, transition.action)
        self._entry_state_id = session.entry_state_id
        self._graph.set_entry_state(session.entry_state_id)
        self._skipped = {sid: set(keys) for sid, keys in session.skipped_actions.items()}
        self._history = list(session.exploration_history)
        self._session_id = session.id
        self._created_at = session.created_at or self._created_at
        logger.info(
            "Restored session %s: %d states, %d transitions",
            session.id,
            len(self._graph.all_states()),
            len(self._graph.transitions),
        )

        await self._driver.start()
        live = await self._load_entry()
        if not self._entry_state_id:
            self._entry_state_id = live.id
            self._graph.set_entry_state(live.id)
        self._current_state_id = live.id
        self._path_from_root = self._graph.shortest_path(live.id) or [live.id]

        target = session.current_state_id or self._entry_state_id
        if target == live.id:
            return JumpResult(True, target, live.id, True, self.path_from_root)
        result = await self.jump_to_state(target)
        if not result.ok:
            logger.warning("Could not return to %s (%s) - staying on %s", target, result.error, live.id)
        return result

    # ------------------------------------------------------------------
    async def _capture(self):
        snapshot = await self._driver.snapshot()
        elements = self._discovery.discover(snapshot)
        state, created = self._matcher.observe(snapshot, elements)
        self._graph.add_state(state)
        return state, created
