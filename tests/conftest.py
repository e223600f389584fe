"""Shared fixtures: a scripted in-memory stand-in for the browser driver."""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import pytest

from waggen.config import ExplorerConfig
from waggen.errors import ActionExecutionFailed, ElementNotVisible, NavigationFailure
from waggen.knowledge import Action, PageSnapshot

APP_URL = "http://localhost:3000/"


def raw_button(text: str, test_id: str, visible: bool = True, css_class: str = "") -> dict:
    attrs = {"data-testid": test_id}
    if css_class:
        attrs["class"] = css_class
    return {
        "tag": "button",
        "display": "inline-block" if visible else "none",
        "visibility": "visible",
        "opacity": 1,
        "width": 80 if visible else 0,
        "height": 24 if visible else 0,
        "attrs": attrs,
        "text": text,
        "labelFor": "",
        "parentText": "",
        "href": "",
        "inputType": "submit",
    }


def selector(test_id: str) -> str:
    return f'[data-testid="{test_id}"]'


@dataclass
class FakePage:
    title: str
    buttons: List[dict] = field(default_factory=list)
    list_items: int = 0
    active_filter: Optional[str] = None
    path: str = "/"


class FakeDriver:
    """Plays a tiny application: pages, and which button leads where."""

    def __init__(
        self,
        pages: Dict[str, FakePage],
        entry: str,
        moves: Dict[Tuple[str, str], str],
        url: str = APP_URL,
    ) -> None:
        self.pages = pages
        self.entry = entry
        self.moves = moves
        self.url = url
        self.current = entry
        self.started = False
        self.closed = False
        self.navigations = 0
        self.performed: List[Action] = []
        self.failures: Dict[str, Exception] = {}
        self.fail_navigation = False
        # 1-based snapshot calls that fail as if the page were mid-navigation
        self.broken_snapshots: Set[int] = set()
        self.snapshot_calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def navigate(self, url: str) -> None:
        if self.fail_navigation:
            raise NavigationFailure(f"Could not load {url}")
        self.navigations += 1
        self.current = self.entry

    async def settle(self, ms: int) -> None:
        return None

    async def snapshot(self) -> PageSnapshot:
        self.snapshot_calls += 1
        if self.snapshot_calls in self.broken_snapshots:
            raise ActionExecutionFailed("Could not read page: execution context was destroyed")
        page = self.pages[self.current]
        signatures = [
            f"BUTTON||{b['attrs']['data-testid']}|{b['attrs'].get('class', '')}|{b['text']}||"
            for b in page.buttons
            if b["display"] != "none"
        ]
        return PageSnapshot(
            url=self.url.rstrip("/") + page.path,
            title=page.title,
            candidates={"button": list(page.buttons)},
            signatures=signatures,
            list_item_count=page.list_items,
            active_filter=page.active_filter,
        )

    async def perform(self, action: Action, timeout_ms: int) -> None:
        self.performed.append(action)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if action.element_selector in self.failures:
            raise self.failures[action.element_selector]
        page = self.pages[self.current]
        visible = {selector(b["attrs"]["data-testid"]) for b in page.buttons if b["display"] != "none"}
        if action.element_selector not in visible:
            raise ElementNotVisible(f"{action.element_selector} is not visible")
        self.current = self.moves.get((self.current, action.element_selector), self.current)


def filter_app() -> FakeDriver:
    """Todo list with All / Active / Completed filter buttons."""
    buttons = lambda active: [  # noqa: E731
        raw_button("All", "filter-all", css_class="filter-btn" + (" active" if active == "all" else "")),
        raw_button("Active", "filter-active", css_class="filter-btn" + (" active" if active == "active" else "")),
        raw_button(
            "Completed", "filter-completed", css_class="filter-btn" + (" active" if active == "completed" else "")
        ),
    ]
    pages = {
        name: FakePage(title="Todo", buttons=buttons(name), active_filter=name)
        for name in ("all", "active", "completed")
    }
    moves = {}
    for name in pages:
        for target in pages:
            moves[(name, selector(f"filter-{target}"))] = target
    return FakeDriver(pages, "all", moves)


def chain_app() -> FakeDriver:
    """home -> a -> b -> c, each page offering only the next step."""
    pages = {
        "home": FakePage(title="Home", buttons=[raw_button("Go A", "go-a")]),
        "a": FakePage(title="A", buttons=[raw_button("Go B", "go-b")], path="/a"),
        "b": FakePage(title="B", buttons=[raw_button("Go C", "go-c")], path="/b"),
        "c": FakePage(title="C", buttons=[], path="/c"),
    }
    moves = {
        ("home", selector("go-a")): "a",
        ("a", selector("go-b")): "b",
        ("b", selector("go-c")): "c",
    }
    return FakeDriver(pages, "home", moves)


@pytest.fixture
def filter_driver() -> FakeDriver:
    return filter_app()


@pytest.fixture
def chain_driver() -> FakeDriver:
    return chain_app()


@pytest.fixture
def config() -> ExplorerConfig:
    return ExplorerConfig(url=APP_URL, settle_ms=0)
