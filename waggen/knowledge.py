from __future__ import annotations

"""Data structures shared by every part of waggen.

Everything here is a plain dataclass. Each type knows how to turn itself into
the camelCase JSON shape used by graph files, session files and the live
protocol (``to_json``) and how to rebuild itself from it (``from_json``).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import time


def now_ms() -> int:
    return int(time.time() * 1000)


class ElementType(str, Enum):
    """Kinds of interactive elements Action Discovery knows about."""

    BUTTON = "button"
    LINK = "link"
    INPUT = "input"
    CHECKBOX = "checkbox"
    SELECT = "select"


class ActionType(str, Enum):
    """Interaction primitives the driver can perform."""

    CLICK = "click"
    INPUT = "input"
    SUBMIT = "submit"
    SELECT = "select"
    CHECK = "check"


@dataclass(frozen=True)
class InteractiveElement:
    """A visible interactive element of one captured state."""

    selector: str
    type: ElementType
    label: str
    tag_name: str
    attributes: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    def to_json(self) -> Dict[str, Any]:
        return {
            "selector": self.selector,
            "type": self.type.value,
            "label": self.label,
            "tagName": self.tag_name,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "InteractiveElement":
        return cls(
            selector=data["selector"],
            type=ElementType(data["type"]),
            label=data.get("label", ""),
            tag_name=data.get("tagName", ""),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass
class PageSnapshot:
    """Structural facts read from the live page in a single evaluation.

    ``candidates`` maps an element type to the raw records of every element
    matching that type's candidate selector, visible or not, in document
    order. ``signatures`` holds one fingerprint string per visible element of
    the fingerprint selector set.
    """

    url: str
    title: str = ""
    candidates: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    signatures: List[str] = field(default_factory=list)
    list_item_count: int = 0
    active_filter: Optional[str] = None
    completed_count: int = 0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PageSnapshot":
        return cls(
            url=data.get("url", ""),
            title=data.get("title", ""),
            candidates={k: list(v) for k, v in (data.get("candidates") or {}).items()},
            signatures=list(data.get("signatures") or []),
            list_item_count=int(data.get("listItemCount") or 0),
            active_filter=data.get("activeFilter"),
            completed_count=int(data.get("completedCount") or 0),
        )


@dataclass(frozen=True)
class Action:
    """A concrete thing to do to one element."""

    type: ActionType
    element_selector: str
    element_label: str
    value: Optional[str] = None

    @property
    def key(self) -> str:
        """Identity of the candidate: ``type:selector:value``."""
        return f"{self.type.value}:{self.element_selector}:{self.value or ''}"

    def describe(self) -> str:
        return f'{self.type.value}("{self.element_label}")'

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type.value,
            "elementSelector": self.element_selector,
            "elementLabel": self.element_label,
        }
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Action":
        return cls(
            type=ActionType(data["type"]),
            element_selector=data["elementSelector"],
            element_label=data.get("elementLabel", ""),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class AppState:
    """A distinct UI state. Created once by State Identity, never mutated."""

    id: str
    url: str
    dom_hash: str
    description: str
    elements: tuple = ()
    timestamp: int = field(default_factory=now_ms)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "domHash": self.dom_hash,
            "description": self.description,
            "elements": [e.to_json() for e in self.elements],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "AppState":
        return cls(
            id=data["id"],
            url=data.get("url", ""),
            dom_hash=data.get("domHash", ""),
            description=data.get("description", ""),
            elements=tuple(InteractiveElement.from_json(e) for e in data.get("elements") or []),
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass(frozen=True)
class StateTransition:
    id: str
    from_state_id: str
    to_state_id: str
    action: Action

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fromStateId": self.from_state_id,
            "toStateId": self.to_state_id,
            "action": self.action.to_json(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "StateTransition":
        return cls(
            id=data["id"],
            from_state_id=data["fromStateId"],
            to_state_id=data["toStateId"],
            action=Action.from_json(data["action"]),
        )


@dataclass(frozen=True)
class ExplorationStep:
    """One entry of the append-only interactive history."""

    timestamp: int
    from_state_id: str
    to_state_id: str
    action: Action

    def to_json(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "fromStateId": self.from_state_id,
            "toStateId": self.to_state_id,
            "action": self.action.to_json(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ExplorationStep":
        return cls(
            timestamp=int(data.get("timestamp") or 0),
            from_state_id=data["fromStateId"],
            to_state_id=data["toStateId"],
            action=Action.from_json(data["action"]),
        )


@dataclass
class AvailableAction:
    """Presentation projection of a candidate action in the current state."""

    id: str
    action: Action
    is_explored: bool = False
    is_skipped: bool = False
    result_state_id: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "action": self.action.to_json(),
            "isExplored": self.is_explored,
            "isSkipped": self.is_skipped,
        }
        if self.result_state_id is not None:
            data["resultStateId"] = self.result_state_id
        return data


@dataclass
class GraphMetadata:
    app_url: str = ""
    generated_at: str = ""
    total_states: int = 0
    total_transitions: int = 0
    exploration_duration_ms: int = 0

    def to_json(self) -> Dict[str, Any]:
        return {
            "appUrl": self.app_url,
            "generatedAt": self.generated_at,
            "totalStates": self.total_states,
            "totalTransitions": self.total_transitions,
            "explorationDurationMs": self.exploration_duration_ms,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GraphMetadata":
        return cls(
            app_url=data.get("appUrl", ""),
            generated_at=data.get("generatedAt", ""),
            total_states=int(data.get("totalStates") or 0),
            total_transitions=int(data.get("totalTransitions") or 0),
            exploration_duration_ms=int(data.get("explorationDurationMs") or 0),
        )


def empty_graph_data() -> Dict[str, Any]:
    """Wire shape of a graph with nothing in it."""
    return {
        "metadata": GraphMetadata().to_json(),
        "states": {},
        "transitions": [],
        "paths": {},
        "entryStateId": "",
    }


@dataclass
class ExplorationSession:
    """Everything needed to resume an interactive exploration."""

    version: int
    id: str
    app_url: str
    created_at: str
    last_updated_at: str
    current_state_id: str
    entry_state_id: str
    state_graph: Dict[str, Any] = field(default_factory=empty_graph_data)
    skipped_actions: Dict[str, List[str]] = field(default_factory=dict)
    exploration_history: List[ExplorationStep] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "id": self.id,
            "appUrl": self.app_url,
            "createdAt": self.created_at,
            "lastUpdatedAt": self.last_updated_at,
            "currentStateId": self.current_state_id,
            "entryStateId": self.entry_state_id,
            "stateGraph": self.state_graph,
            "skippedActions": {sid: list(keys) for sid, keys in self.skipped_actions.items()},
            "explorationHistory": [step.to_json() for step in self.exploration_history],
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ExplorationSession":
        return cls(
            version=int(data["version"]),
            id=data["id"],
            app_url=data.get("appUrl", ""),
            created_at=data.get("createdAt", ""),
            last_updated_at=data.get("lastUpdatedAt", ""),
            current_state_id=data.get("currentStateId", ""),
            entry_state_id=data.get("entryStateId", ""),
            state_graph=data.get("stateGraph") or empty_graph_data(),
            skipped_actions={sid: list(keys) for sid, keys in (data.get("skippedActions") or {}).items()},
            exploration_history=[
                ExplorationStep.from_json(s) for s in data.get("explorationHistory") or []
            ],
        )
