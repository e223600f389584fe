from __future__ import annotations

"""Action Discovery: which elements can be interacted with, and how.

The page script (see ``waggen.browser``) only collects raw facts about every
candidate element. Everything that decides eligibility, selector and label
lives here so that it runs without a browser.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .knowledge import (
    Action,
    ActionType,
    AppState,
    ElementType,
    InteractiveElement,
    PageSnapshot,
)
from .config import DEFAULT_INPUT_VALUES

logger = logging.getLogger(__name__)

# Candidate CSS selectors per element type, in discovery order.
CANDIDATE_SELECTORS: Dict[ElementType, str] = {
    ElementType.BUTTON: 'button, [role="button"], input[type="submit"], input[type="button"]',
    ElementType.LINK: "a[href]",
    ElementType.INPUT: (
        'input:not([type="checkbox"]):not([type="radio"])'
        ':not([type="submit"]):not([type="button"]), textarea'
    ),
    ElementType.CHECKBOX: 'input[type="checkbox"], input[type="radio"]',
    ElementType.SELECT: "select",
}

# Attributes copied onto the element record, per type.
_KEPT_ATTRIBUTES: Dict[ElementType, tuple] = {
    ElementType.BUTTON: ("id", "class", "name", "type", "data-testid", "aria-label"),
    ElementType.LINK: ("id", "class", "href", "data-testid", "aria-label"),
    ElementType.INPUT: ("id", "class", "name", "type", "placeholder", "data-testid", "aria-label"),
    ElementType.CHECKBOX: ("id", "class", "name", "type", "checked", "data-testid", "aria-label"),
    ElementType.SELECT: ("id", "class", "name", "data-testid", "aria-label"),
}

_NTH_PREFIX: Dict[ElementType, Optional[str]] = {
    ElementType.BUTTON: None,  # uses the element's own tag
    ElementType.LINK: "a",
    ElementType.INPUT: "input",
    ElementType.CHECKBOX: 'input[type="checkbox"]',
    ElementType.SELECT: "select",
}

TEXT_LABEL_LIMIT = 50
SELECT_OPTION_INDEX = "1"


def is_visible(raw: Dict[str, Any]) -> bool:
    """Rendered, not hidden, not transparent and with a non-empty box."""
    try:
        opacity = float(raw.get("opacity", 1))
    except (TypeError, ValueError):
        opacity = 0.0
    return (
        raw.get("display") != "none"
        and raw.get("visibility") != "hidden"
        and opacity > 0
        and (raw.get("width") or 0) > 0
        and (raw.get("height") or 0) > 0
    )


def _attr(raw: Dict[str, Any], name: str) -> str:
    value = (raw.get("attrs") or {}).get(name)
    return value if isinstance(value, str) else ""


def _text(value: Any, limit: Optional[int] = None) -> str:
    if not isinstance(value, str):
        return ""
    value = value.strip()
    return value[:limit] if limit else value


def selector_for(raw: Dict[str, Any], element_type: ElementType, index: int) -> str:
    """Stable selector: test id, then id, then name, then nth-of-type."""
    test_id = _attr(raw, "data-testid")
    if test_id:
        return f'[data-testid="{test_id}"]'
    element_id = _attr(raw, "id")
    if element_id:
        return f"#{element_id}"
    name = _attr(raw, "name")
    if name and element_type != ElementType.LINK:
        return f'[name="{name}"]'
    prefix = _NTH_PREFIX[element_type] or (raw.get("tag") or "button").lower()
    return f"{prefix}:nth-of-type({index + 1})"


def label_for(raw: Dict[str, Any], element_type: ElementType) -> str:
    """First non-empty entry of the per-type label fallback chain."""
    label_text = _text(raw.get("labelFor"))
    if element_type == ElementType.BUTTON:
        chain = [
            _attr(raw, "aria-label"),
            _attr(raw, "title"),
            _text(raw.get("text"), TEXT_LABEL_LIMIT),
            _attr(raw, "value"),
            _attr(raw, "placeholder"),
        ]
        fallback = "Unknown"
    elif element_type == ElementType.LINK:
        chain = [
            _attr(raw, "aria-label"),
            _text(raw.get("text"), TEXT_LABEL_LIMIT),
            raw.get("href") or _attr(raw, "href"),
        ]
        fallback = "Unknown"
    elif element_type == ElementType.INPUT:
        chain = [
            label_text,
            _attr(raw, "aria-label"),
            _attr(raw, "placeholder"),
            _attr(raw, "name"),
            raw.get("inputType") or "",
        ]
        fallback = "Unknown"
    elif element_type == ElementType.CHECKBOX:
        chain = [
            label_text,
            _text(raw.get("parentText"), TEXT_LABEL_LIMIT),
            _attr(raw, "aria-label"),
        ]
        fallback = "Checkbox"
    else:
        chain = [label_text, _attr(raw, "aria-label"), _attr(raw, "name")]
        fallback = "Select"
    for candidate in chain:
        if candidate:
            return candidate
    return fallback


def attributes_for(raw: Dict[str, Any], element_type: ElementType) -> Dict[str, str]:
    attrs = raw.get("attrs") or {}
    kept: Dict[str, str] = {}
    for name in _KEPT_ATTRIBUTES[element_type]:
        value = attrs.get(name)
        if element_type == ElementType.CHECKBOX:
            # presence matters for checkboxes, e.g. checked=""
            if value is not None:
                kept[name] = value
        elif value:
            kept[name] = value
    return kept


class ActionDiscovery:
    """Turns page snapshots into elements and elements into candidate actions."""

    def __init__(self, input_values: Optional[Dict[str, str]] = None) -> None:
        self._input_values: Dict[str, str] = dict(input_values or DEFAULT_INPUT_VALUES)

    # ------------------------------------------------------------------
    def discover(self, snapshot: PageSnapshot) -> List[InteractiveElement]:
        elements: List[InteractiveElement] = []
        for element_type in CANDIDATE_SELECTORS:
            raws = snapshot.candidates.get(element_type.value, [])
            for index, raw in enumerate(raws):
                if not is_visible(raw):
                    continue
                elements.append(
                    InteractiveElement(
                        selector=selector_for(raw, element_type, index),
                        type=element_type,
                        label=label_for(raw, element_type),
                        tag_name=(raw.get("tag") or "").lower(),
                        attributes=attributes_for(raw, element_type),
                    )
                )
        logger.debug("Discovered %d interactive elements on %s", len(elements), snapshot.url)
        return elements

    # ------------------------------------------------------------------
    def actions_for(self, element: InteractiveElement) -> List[Action]:
        if element.type in (ElementType.BUTTON, ElementType.LINK):
            return [Action(ActionType.CLICK, element.selector, element.label)]
        if element.type == ElementType.INPUT:
            input_kind = element.attributes.get("type") or "text"
            value = self._input_values.get(input_kind) or self._input_values.get("text", "")
            return [Action(ActionType.INPUT, element.selector, element.label, value)]
        if element.type == ElementType.CHECKBOX:
            return [Action(ActionType.CHECK, element.selector, element.label)]
        if element.type == ElementType.SELECT:
            # never index 0, so the action always changes the value
            return [Action(ActionType.SELECT, element.selector, element.label, SELECT_OPTION_INDEX)]
        return []

    def actions_for_elements(self, elements: Iterable[InteractiveElement]) -> List[Action]:
        actions: List[Action] = []
        for element in elements:
            actions.extend(self.actions_for(element))
        return actions

    def actions_for_state(self, state: AppState) -> List[Action]:
        return self.actions_for_elements(state.elements)
