from __future__ import annotations

"""The state graph: states, deduplicated transitions and path search."""

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple
import networkx as nx

from .knowledge import AppState, GraphMetadata, StateTransition

DEFAULT_MAX_PATHS = 3


class StateGraph:
    """Directed multigraph of ``AppState`` nodes and ``StateTransition`` edges.

    Nodes are keyed by state id and carry the state object; edges are keyed by
    transition id. Parallel edges only ever come from *different* actions:
    a transition whose ``(from, to, action type, selector)`` is already known
    is dropped at insertion.
    """

    def __init__(self) -> None:
        self._g: nx.MultiDiGraph = nx.MultiDiGraph()
        self._transitions: List[StateTransition] = []
        self._entry_state_id: str = ""
        self._metadata: Optional[GraphMetadata] = None

    # --- state helpers ----------------------------------------------------
    def add_state(self, state: AppState) -> None:
        # a node may already exist as a bare endpoint of a restored transition
        if self._g.nodes.get(state.id, {}).get("obj") is None:
            self._g.add_node(state.id, obj=state)

    def get_state(self, state_id: str) -> Optional[AppState]:
        if state_id in self._g:
            return self._g.nodes[state_id]["obj"]
        return None

    def has_state(self, state_id: str) -> bool:
        return self.get_state(state_id) is not None

    def all_states(self) -> List[AppState]:
        return [data["obj"] for _, data in self._g.nodes(data=True) if data.get("obj") is not None]

    def set_entry_state(self, state_id: str) -> None:
        self._entry_state_id = state_id

    @property
    def entry_state_id(self) -> str:
        return self._entry_state_id

    def set_metadata(self, metadata: GraphMetadata) -> None:
        self._metadata = metadata

    # --- edge helpers -----------------------------------------------------
    def next_transition_id(self) -> str:
        return f"trans_{len(self._transitions) + 1}"

    def has_transition(self, from_state_id: str, to_state_id: str, action) -> bool:
        data = self._g.get_edge_data(from_state_id, to_state_id) or {}
        for edge in data.values():
            existing: StateTransition = edge["obj"]
            if (
                existing.action.type == action.type
                and existing.action.element_selector == action.element_selector
            ):
                return True
        return False

    def add_transition(self, transition: StateTransition) -> bool:
        """Insert ``transition`` unless an equivalent one exists. Returns True if added."""
        if self.has_transition(transition.from_state_id, transition.to_state_id, transition.action):
            return False
        for state_id in (transition.from_state_id, transition.to_state_id):
            if state_id not in self._g:
                self._g.add_node(state_id, obj=None)
        self._g.add_edge(
            transition.from_state_id, transition.to_state_id, key=transition.id, obj=transition
        )
        self._transitions.append(transition)
        return True

    @property
    def transitions(self) -> List[StateTransition]:
        return list(self._transitions)

    def transitions_from(self, state_id: str) -> List[StateTransition]:
        if state_id not in self._g:
            return []
        return [data["obj"] for _, _, data in self._g.out_edges(state_id, data=True)]

    def transitions_to(self, state_id: str) -> List[StateTransition]:
        if state_id not in self._g:
            return []
        return [data["obj"] for _, _, data in self._g.in_edges(state_id, data=True)]

    def transition_between(self, from_state_id: str, to_state_id: str) -> Optional[StateTransition]:
        """First recorded transition along an edge, in insertion order."""
        for t in self._transitions:
            if t.from_state_id == from_state_id and t.to_state_id == to_state_id:
                return t
        return None

    # --- path search ------------------------------------------------------
    def find_paths(self, target_state_id: str, max_paths: int = DEFAULT_MAX_PATHS) -> List[List[str]]:
        """Up to ``max_paths`` simple paths of state ids from the entry state.

        Breadth-first, so shorter paths come first. Returns ``[]`` when there
        is no entry state or no known route.
        """
        entry = self._entry_state_id
        if not entry or entry not in self._g or target_state_id not in self._g:
            return []
        if target_state_id == entry:
            return [[entry]]

        found: List[List[str]] = []
        queue: Deque[Tuple[str, List[str]]] = deque([(entry, [entry])])
        visited: set[Tuple[str, ...]] = set()

        while queue and len(found) < max_paths:
            state_id, path = queue.popleft()
            if state_id == target_state_id:
                found.append(path)
                continue

            path_key = tuple(path)
            if path_key in visited:
                continue
            visited.add(path_key)

            # one successor per target state, however many actions lead there
            for next_id in dict.fromkeys(self._g.successors(state_id)):
                if next_id not in path or next_id == target_state_id:
                    queue.append((next_id, path + [next_id]))
        return found

    def shortest_path(self, target_state_id: str) -> List[str]:
        paths = self.find_paths(target_state_id, max_paths=1)
        return paths[0] if paths else []

    def compute_paths(self, max_paths: int = DEFAULT_MAX_PATHS) -> Dict[str, List[List[str]]]:
        if not self._entry_state_id or self._entry_state_id not in self._g:
            return {}
        return {state.id: self.find_paths(state.id, max_paths) for state in self.all_states()}

    # --- snapshots --------------------------------------------------------
    def stats(self) -> Dict[str, float]:
        states = len(self.all_states())
        transitions = len(self._transitions)
        return {
            "states": states,
            "transitions": transitions,
            "avgActionsPerState": transitions / states if states else 0,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        states = self.all_states()
        metadata = self._metadata or GraphMetadata(
            generated_at=datetime.now(timezone.utc).isoformat(),
            total_states=len(states),
            total_transitions=len(self._transitions),
        )
        return {
            "metadata": metadata.to_json(),
            "states": {s.id: s.to_json() for s in states},
            "transitions": [t.to_json() for t in self._transitions],
            "paths": self.compute_paths(),
            "entryStateId": self._entry_state_id,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "StateGraph":
        graph = cls()
        for state_data in (data.get("states") or {}).values():
            graph.add_state(AppState.from_json(state_data))
        for t in data.get("transitions") or []:
            graph.add_transition(StateTransition.from_json(t))
        graph.set_entry_state(data.get("entryStateId") or "")
        if data.get("metadata"):
            graph.set_metadata(GraphMetadata.from_json(data["metadata"]))
        return graph

    # convenience ----------------------------------------------------------
    def to_networkx(self) -> nx.MultiDiGraph:
        return self._g
