"""Resilient selector resolver

A semantic target (``Target``) carries an ordered list of strategies. The
resolver tries them in order, each with its own visibility wait and all
under one overall ceiling, and reports which strategy produced the element.
Provider UI drift becomes an edit to ``targets.py`` instead of another
hand-written fallback chain.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import RESOLVE_CEILING_MS, STRATEGY_TIMEOUT_MS
from .exceptions import SelectorNotFoundError

# Hidden duplicates are common (mobile + desktop copies of a form)
MAX_SCAN_CANDIDATES = 10

_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_LOWER = "abcdefghijklmnopqrstuvwxyz"

_FRAME_FIELD_ATTRIBUTES_JS = """
els => els.map(el => [
    el.getAttribute('name'), el.id, el.getAttribute('placeholder'),
    el.getAttribute('aria-label'), el.getAttribute('autocomplete'),
    el.getAttribute('data-fieldtype'), el.getAttribute('title')
].filter(Boolean).join(' '))
"""


class Strategy:
    """One way of finding a target; subclasses build Playwright locators"""

    kind = "strategy"

    @property
    def name(self) -> str:
        return f"{self.kind}:{self.describe()}"

    def describe(self) -> str:
        raise NotImplementedError

    async def locators(self, scope) -> List[Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class Css(Strategy):
    """CSS / attribute selector"""

    selector: str
    kind = "css"

    def describe(self) -> str:
        return self.selector

    async def locators(self, scope) -> List[Any]:
        return [scope.locator(self.selector)]


@dataclass(frozen=True)
class Label(Strategy):
    """Accessible label text (``<label for>``, aria-label, aria-labelledby)"""

    text: str
    exact: bool = False
    kind = "label"

    def describe(self) -> str:
        return self.text

    async def locators(self, scope) -> List[Any]:
        return [scope.get_by_label(self.text, exact=self.exact)]


@dataclass(frozen=True)
class Text(Strategy):
    """Visible text, optionally narrowed to an ARIA role"""

    text: str
    role: Optional[str] = None
    exact: bool = False
    kind = "text"

    def describe(self) -> str:
        return f"{self.role}={self.text}" if self.role else self.text

    async def locators(self, scope) -> List[Any]:
        if self.role:
            return [scope.get_by_role(self.role, name=self.text, exact=self.exact)]
        return [scope.get_by_text(self.text, exact=self.exact)]


@dataclass(frozen=True)
class Proximity(Strategy):
    """The first form control following a short label-like node with this text"""

    label: str
    field: str = "input"
    kind = "near"

    def describe(self) -> str:
        return f"{self.label}->{self.field}"

    def xpath(self) -> str:
        needle = self.label.lower().replace('"', "")
        return (
            "xpath=//*[self::label or self::span or self::legend or self::p]"
            f"[string-length(normalize-space(.)) < 60]"
            f"[contains(translate(normalize-space(.), '{_UPPER}', '{_LOWER}'), \"{needle}\")]"
            f"/following::{self.field}[1]"
        )

    async def locators(self, scope) -> List[Any]:
        return [scope.locator(self.xpath())]


@dataclass(frozen=True)
class FrameScan(Strategy):
    """
    Heuristic scan of form fields across every frame of the page.

    A field matches when its own attributes, or the name/url/title of the
    frame hosting it, match ``pattern`` (case-insensitive). Used for hosted
    payment fields that live in separately-originated iframes.
    """

    pattern: str
    field: str = "input"
    kind = "frame"

    def describe(self) -> str:
        return self.pattern

    async def _frame_hint(self, frame) -> str:
        title = ""
        try:
            element = await frame.frame_element()
            title = await element.get_attribute("title") or ""
        except PlaywrightError:
            pass  # Main frame has no owner element
        return f"{frame.name} {frame.url} {title}"

    async def locators(self, scope) -> List[Any]:
        regex = re.compile(self.pattern, re.IGNORECASE)
        frames = getattr(scope, "frames", None) or [scope]
        found = []
        for frame in frames:
            fields = frame.locator(self.field)
            try:
                descriptions = await fields.evaluate_all(_FRAME_FIELD_ATTRIBUTES_JS)
            except PlaywrightError as e:
                logger.debug(f"Frame scan skipped a detached frame: {e}")
                continue

            matched = [i for i, text in enumerate(descriptions) if regex.search(text or "")]
            if not matched and descriptions and regex.search(await self._frame_hint(frame)):
                matched = [0]
            found.extend(fields.nth(i) for i in matched)
        return found


@dataclass(frozen=True)
class Target:
    """A semantic element with its ordered strategies"""

    name: str
    strategies: Tuple[Strategy, ...]

    def __add__(self, other: "Target") -> "Target":
        return Target(self.name, self.strategies + other.strategies)


def target(name: str, *strategies: Strategy) -> Target:
    return Target(name, tuple(strategies))


@dataclass
class Resolution:
    """Outcome of a successful lookup"""

    target: str
    strategy: str
    element: Any


class Resolver:
    """
    Turns targets into visible elements.

    Args:
        strategy_timeout_ms: Visibility wait granted to each strategy
        ceiling_ms: Upper bound for one whole lookup
    """

    def __init__(
        self,
        strategy_timeout_ms: int = STRATEGY_TIMEOUT_MS,
        ceiling_ms: int = RESOLVE_CEILING_MS,
    ):
        self.strategy_timeout_ms = strategy_timeout_ms
        self.ceiling_ms = ceiling_ms

    async def _first_visible(self, locator, timeout_ms: int):
        try:
            await locator.first.wait_for(state="visible", timeout=timeout_ms)
            return locator.first
        except PlaywrightTimeoutError:
            pass

        count = await locator.count()
        for i in range(1, min(count, MAX_SCAN_CANDIDATES)):
            candidate = locator.nth(i)
            if await candidate.is_visible():
                return candidate
        return None

    async def locate(
        self, target: Target, scope, ceiling_ms: Optional[int] = None
    ) -> Optional[Resolution]:
        """
        Return the first visible element for target, or None.

        Args:
            target: What to look for
            scope: Page, Frame or Locator to search in
            ceiling_ms: Overrides the resolver's overall ceiling
        """
        loop = asyncio.get_running_loop()
        budget = (ceiling_ms if ceiling_ms is not None else self.ceiling_ms) / 1000
        deadline = loop.time() + budget

        for strategy in target.strategies:
            remaining_ms = int((deadline - loop.time()) * 1000)
            if remaining_ms <= 0:
                logger.debug(f"⏱️ {target.name}: ceiling reached before {strategy.name}")
                break
            timeout_ms = min(self.strategy_timeout_ms, remaining_ms)

            try:
                for locator in await strategy.locators(scope):
                    element = await self._first_visible(locator, timeout_ms)
                    if element is not None:
                        logger.debug(f"🎯 {target.name} via {strategy.name}")
                        return Resolution(target.name, strategy.name, element)
            except PlaywrightError as e:
                logger.debug(f"   {target.name}: {strategy.name} failed: {e}")

        logger.debug(f"🔍 {target.name}: not found ({len(target.strategies)} strategies)")
        return None

    async def require(
        self, target: Target, scope, ceiling_ms: Optional[int] = None
    ) -> Resolution:
        """
        Like locate, but a miss is a step failure.

        Raises:
            SelectorNotFoundError: If every strategy came back empty
        """
        resolution = await self.locate(target, scope, ceiling_ms)
        if resolution is None:
            raise SelectorNotFoundError(target.name, [s.name for s in target.strategies])
        return resolution

    async def click(self, target: Target, scope, ceiling_ms: Optional[int] = None) -> Optional[str]:
        """Click target if present; returns the winning strategy name"""
        resolution = await self.locate(target, scope, ceiling_ms)
        if resolution is None:
            return None
        try:
            await resolution.element.click()
        except PlaywrightError as e:
            logger.debug(f"   {target.name}: click failed: {e}")
            return None
        return resolution.strategy

    async def click_all_visible(self, target: Target, scope) -> int:
        """
        Click every currently visible match of every strategy, no waiting.

        Returns:
            Number of elements clicked
        """
        clicked = 0
        for strategy in target.strategies:
            try:
                for locator in await strategy.locators(scope):
                    count = await locator.count()
                    for i in range(min(count, MAX_SCAN_CANDIDATES)):
                        control = locator.nth(i)
                        if await control.is_visible():
                            await control.click()
                            clicked += 1
            except PlaywrightError as e:
                logger.debug(f"   {target.name}: {strategy.name} skipped: {e}")
        return clicked

    async def expand_hidden_sections(self, scope, disclosure: Target) -> int:
        """Reveal collapsed form sections so their required fields can be resolved"""
        clicked = await self.click_all_visible(disclosure, scope)
        if clicked:
            logger.info(f"📂 Expanded {clicked} hidden section(s)")
        return clicked
