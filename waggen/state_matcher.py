from __future__ import annotations

"""State identity: deciding whether a captured page is a state we already know."""

import hashlib
import logging
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse

from .knowledge import Action, AppState, InteractiveElement, PageSnapshot

logger = logging.getLogger(__name__)

_STATE_ID_RE = re.compile(r"^state_(\d+)$")


def fingerprint(snapshot: PageSnapshot) -> str:
    """12-hex md5 over the *sorted* element signatures plus scalar summaries.

    Sorting makes the hash blind to DOM reordering that does not change what
    is on screen.
    """
    parts: List[str] = list(snapshot.signatures)
    parts.append(f"list-items:{snapshot.list_item_count}")
    if snapshot.active_filter is not None:
        parts.append(f"filter:{snapshot.active_filter}")
    canon = "\n".join(sorted(parts))
    return hashlib.md5(canon.encode("utf-8")).hexdigest()[:12]


def url_path(url: str) -> str:
    return urlparse(url).path or "/"


def state_key(url: str, dom_hash: str) -> Tuple[str, str]:
    return url_path(url), dom_hash


def describe(snapshot: PageSnapshot) -> str:
    parts: List[str] = []
    if snapshot.title:
        parts.append(snapshot.title)
    if snapshot.list_item_count > 0:
        parts.append(f"{snapshot.list_item_count} items")
    else:
        parts.append("empty list")
    if snapshot.active_filter and snapshot.active_filter != "all":
        parts.append(f"filter: {snapshot.active_filter}")
    if snapshot.completed_count > 0:
        parts.append(f"{snapshot.completed_count} completed")
    return " - ".join(parts) or "Unknown state"


class StateMatcher:
    """Deduplicates captured pages into ``AppState`` objects.

    States are keyed by ``(url path, fingerprint)``; the first state seen for a
    key is the one every later capture resolves to. The matcher also keeps,
    per state, the keys of actions already tried from it.
    """

    def __init__(self) -> None:
        self._states: Dict[str, AppState] = {}
        self._by_key: Dict[Tuple[str, str], AppState] = {}
        self._explored: Dict[str, Set[str]] = {}
        self._counter = 0

    # ------------------------------------------------------------------
    def find(self, snapshot: PageSnapshot) -> Optional[AppState]:
        return self._by_key.get(state_key(snapshot.url, fingerprint(snapshot)))

    def observe(
        self, snapshot: PageSnapshot, elements: Iterable[InteractiveElement]
    ) -> Tuple[AppState, bool]:
        """Return the state for ``snapshot`` and whether it was just created."""
        dom_hash = fingerprint(snapshot)
        key = state_key(snapshot.url, dom_hash)
        existing = self._by_key.get(key)
        if existing is not None:
            return existing, False

        self._counter += 1
        state = AppState(
            id=f"state_{self._counter:03d}",
            url=snapshot.url,
            dom_hash=dom_hash,
            description=describe(snapshot),
            elements=tuple(elements),
        )
        self._register(state)
        logger.debug("New state %s at %s (%s)", state.id, key[0], dom_hash)
        return state, True

    def identify(self, snapshot: PageSnapshot, elements: Iterable[InteractiveElement]) -> AppState:
        return self.observe(snapshot, elements)[0]

    def restore(self, state: AppState) -> None:
        """Re-register a persisted state, keeping the id counter ahead of it."""
        if state.id in self._states:
            return
        self._register(state)
        m = _STATE_ID_RE.match(state.id)
        if m:
            self._counter = max(self._counter, int(m.group(1)))

    def _register(self, state: AppState) -> None:
        self._states[state.id] = state
        self._by_key.setdefault(state_key(state.url, state.dom_hash), state)
        self._explored.setdefault(state.id, set())

    # --- lookups ------------------------------------------------------
    def get_state(self, state_id: str) -> Optional[AppState]:
        return self._states.get(state_id)

    def all_states(self) -> List[AppState]:
        return list(self._states.values())

    @property
    def state_count(self) -> int:
        return len(self._states)

    # --- explored-action bookkeeping -----------------------------------
    def mark_explored(self, state_id: str, action: Action) -> None:
        self._explored.setdefault(state_id, set()).add(action.key)

    def is_explored(self, state_id: str, action: Action) -> bool:
        return action.key in self._explored.get(state_id, ())

    def unexplored(self, state_id: str, actions: Iterable[Action]) -> List[Action]:
        return [a for a in actions if not self.is_explored(state_id, a)]

    def explored_count(self) -> int:
        return sum(len(keys) for keys in self._explored.values())
