"""Error taxonomy and result objects."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    ELEMENT_NOT_VISIBLE = "ELEMENT_NOT_VISIBLE"
    ACTION_TIMEOUT = "ACTION_TIMEOUT"
    ACTION_FAILED = "ACTION_FAILED"
    NAVIGATION_FAILURE = "NAVIGATION_FAILURE"
    PATH_NOT_FOUND = "PATH_NOT_FOUND"
    EXECUTION_IN_PROGRESS = "EXECUTION_IN_PROGRESS"
    ACTION_NOT_FOUND = "ACTION_NOT_FOUND"
    VERSION_INCOMPATIBLE = "VERSION_INCOMPATIBLE"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    MALFORMED_MESSAGE = "MALFORMED_MESSAGE"
    UNKNOWN_MESSAGE_TYPE = "UNKNOWN_MESSAGE_TYPE"
    NOT_INITIALIZED = "NOT_INITIALIZED"


class WaggenError(Exception):
    code: ErrorCode = ErrorCode.ACTION_FAILED

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ActionMiss(WaggenError):
    """An action could not be carried out. Never fatal to a run."""


class ElementNotVisible(ActionMiss):
    code = ErrorCode.ELEMENT_NOT_VISIBLE


class ActionTimeout(ActionMiss):
    code = ErrorCode.ACTION_TIMEOUT


class ActionExecutionFailed(ActionMiss):
    code = ErrorCode.ACTION_FAILED


class NavigationFailure(WaggenError):
    """The application could not be (re)loaded. Aborts the current operation."""

    code = ErrorCode.NAVIGATION_FAILURE


class VersionIncompatibleError(WaggenError):
    code = ErrorCode.VERSION_INCOMPATIBLE


class SessionNotFoundError(WaggenError):
    code = ErrorCode.SESSION_NOT_FOUND


@dataclass
class ActionResult:
    """Outcome of ``InteractiveExplorer.execute_action``."""

    success: bool
    previous_state_id: str
    new_state_id: str
    is_new_state: bool = False
    error: Optional[str] = None
    code: Optional[ErrorCode] = None

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "previousStateId": self.previous_state_id,
            "newStateId": self.new_state_id,
            "isNewState": self.is_new_state,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class JumpResult:
    """Outcome of ``InteractiveExplorer.jump_to_state``.

    ``reached_state_id`` may differ from the requested target when replay
    lands somewhere else; that is reported through ``matched`` only.
    """

    ok: bool
    target_state_id: str
    reached_state_id: Optional[str] = None
    matched: bool = False
    path: list = field(default_factory=list)
    error: Optional[str] = None
    code: Optional[ErrorCode] = None
