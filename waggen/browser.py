from __future__ import annotations

"""Playwright-backed browser driver.

The rest of the package only talks to the ``Driver`` protocol: navigate,
take a structural snapshot, perform one action. ``PlaywrightDriver`` is the
real implementation; tests substitute scripted fakes.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .action_discovery import CANDIDATE_SELECTORS
from .config import ExplorerConfig
from .errors import (
    ActionExecutionFailed,
    ActionTimeout,
    ElementNotVisible,
    NavigationFailure,
)
from .knowledge import Action, ActionType, PageSnapshot

logger = logging.getLogger(__name__)

FINGERPRINT_SELECTORS = [
    "button",
    "a[href]",
    "input",
    "select",
    "textarea",
    '[role="button"]',
    "[data-testid]",
]

# Reads every structural fact the explorer needs in one round trip.
SNAPSHOT_SCRIPT = """
(args) => {
  const [candidateSelectors, fingerprintSelectors] = args;
  const ATTRS = ['id', 'class', 'name', 'type', 'data-testid', 'aria-label',
                 'title', 'value', 'placeholder', 'href', 'checked'];

  function record(el) {
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const attrs = {};
    ATTRS.forEach(a => {
      const v = el.getAttribute(a);
      if (v !== null) attrs[a] = v;
    });
    const labelEl = el.id ? document.querySelector(`label[for="${el.id}"]`) : null;
    return {
      tag: el.tagName.toLowerCase(),
      display: style.display,
      visibility: style.visibility,
      opacity: parseFloat(style.opacity),
      width: rect.width,
      height: rect.height,
      attrs: attrs,
      text: el.textContent || '',
      labelFor: labelEl ? (labelEl.textContent || '') : '',
      parentText: el.parentElement ? (el.parentElement.textContent || '') : '',
      href: el.href || '',
      inputType: el.type || '',
    };
  }

  const candidates = {};
  Object.entries(candidateSelectors).forEach(([type, selector]) => {
    candidates[type] = Array.from(document.querySelectorAll(selector)).map(record);
  });

  const signatures = [];
  fingerprintSelectors.forEach(selector => {
    document.querySelectorAll(selector).forEach(el => {
      const rect = el.getBoundingClientRect();
      const style = window.getComputedStyle(el);
      if (style.display !== 'none' && style.visibility !== 'hidden' &&
          rect.width > 0 && rect.height > 0) {
        signatures.push([
          el.tagName,
          el.getAttribute('id') || '',
          el.getAttribute('data-testid') || '',
          el.getAttribute('class') || '',
          (el.textContent || '').trim().slice(0, 30),
          el.checked ? 'checked' : '',
          el.disabled ? 'disabled' : '',
        ].join('|'));
      }
    });
  });

  const activeFilter = document.querySelector('.filter-btn.active');
  return {
    url: window.location.href,
    title: document.title,
    candidates: candidates,
    signatures: signatures,
    listItemCount: document.querySelectorAll('li:not(.empty-state)').length,
    activeFilter: activeFilter ? activeFilter.getAttribute('data-filter') : null,
    completedCount: document.querySelectorAll('.todo-item.completed').length,
  };
}
"""


class Driver(Protocol):
    """What the explorers need from a browser."""

    async def start(self) -> None: ...

    async def navigate(self, url: str) -> None: ...

    async def snapshot(self) -> PageSnapshot: ...

    async def perform(self, action: Action, timeout_ms: int) -> None: ...

    async def settle(self, ms: int) -> None: ...

    async def close(self) -> None: ...


class PlaywrightDriver:
    """Single-page Chromium driver."""

    def __init__(self, config: ExplorerConfig) -> None:
        self._config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def __aenter__(self) -> "PlaywrightDriver":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser not started")
        return self._page

    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self._page is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._config.headless,
            slow_mo=self._config.slow_mo_ms or None,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            }
        )
        self._page = await self._context.new_page()
        self._page.set_default_timeout(self._config.timeout_ms)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = self._browser = self._context = self._page = None

    async def navigate(self, url: str) -> None:
        try:
            await self.page.goto(url, wait_until="networkidle")
        except PlaywrightError as e:
            raise NavigationFailure(f"Could not load {url}: {e}") from e
        await self.settle(self._config.settle_ms)

    async def settle(self, ms: int) -> None:
        if ms > 0:
            await self.page.wait_for_timeout(ms)

    async def snapshot(self) -> PageSnapshot:
        """Read the page structure, retrying once if the page was mid-navigation.

        Raises ``ActionExecutionFailed`` when the page still cannot be read.
        """
        candidate_selectors: Dict[str, str] = {t.value: s for t, s in CANDIDATE_SELECTORS.items()}
        args = [candidate_selectors, FINGERPRINT_SELECTORS]
        try:
            data = await self.page.evaluate(SNAPSHOT_SCRIPT, args)
        except PlaywrightError as e:
            logger.debug("Snapshot failed (%s), retrying after settle", e)
            try:
                await self.page.wait_for_load_state()
                await self.settle(self._config.settle_ms)
                data = await self.page.evaluate(SNAPSHOT_SCRIPT, args)
            except PlaywrightError as e2:
                raise ActionExecutionFailed(f"Could not read page: {e2}") from e2
        return PageSnapshot.from_json(data)

    # ------------------------------------------------------------------
    async def perform(self, action: Action, timeout_ms: int) -> None:
        """Carry out ``action``. Raises an ``ActionMiss`` subclass on failure."""
        page = self.page
        element = page.locator(action.element_selector).first
        try:
            visible = await element.is_visible()
        except PlaywrightError:
            visible = False
        if not visible:
            raise ElementNotVisible(f"{action.element_selector} is not visible")

        try:
            if action.type in (ActionType.CLICK, ActionType.CHECK, ActionType.SUBMIT):
                await element.click(timeout=timeout_ms)
            elif action.type == ActionType.INPUT:
                await element.fill(action.value or "Test input", timeout=timeout_ms)
                in_form = await element.evaluate("el => !!el.closest('form')")
                if in_form:
                    await page.keyboard.press("Enter")
            elif action.type == ActionType.SELECT:
                index = int(action.value or 1)
                if await element.locator("option").count() > index:
                    await element.select_option(index=index, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ActionTimeout(f"{action.describe()} timed out: {e}") from e
        except PlaywrightError as e:
            raise ActionExecutionFailed(f"{action.describe()} failed: {e}") from e
