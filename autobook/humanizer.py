"""Human-like pointer, scroll, typing and delay behaviour"""

import asyncio
import random
from typing import Optional, Tuple

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .config import (
    CLICK_OFFSET_RANGE,
    DELAY_RANGE_MS,
    MOUSE_STEPS_RANGE,
    SCROLL_DOWN_CHANCE,
    SCROLL_RANGE_PX,
    TYPING_DELAY_RANGE_MS,
    TYPING_PAUSE_CHANCE,
    TYPING_PAUSE_RANGE_MS,
)


class Humanizer:
    """
    Randomised interaction timing to keep bot-detection scores down.

    Injected into the flows so tests can pass ``Humanizer(enabled=False)``
    and run without sleeps or mouse traffic.
    """

    def __init__(self, enabled: bool = True, rng: Optional[random.Random] = None):
        self.enabled = enabled
        self.rng = rng or random.Random()

    async def delay(self, range_ms: Tuple[int, int] = DELAY_RANGE_MS) -> None:
        """Sleep a random amount inside range_ms"""
        if not self.enabled:
            return
        await asyncio.sleep(self.rng.uniform(*range_ms) / 1000)

    async def move_mouse(self, page) -> None:
        """Wander the pointer to a random point of the viewport"""
        if not self.enabled:
            return
        viewport = page.viewport_size or {"width": 1280, "height": 720}
        x = self.rng.uniform(0, viewport["width"])
        y = self.rng.uniform(0, viewport["height"])
        steps = self.rng.randint(*MOUSE_STEPS_RANGE)
        try:
            await page.mouse.move(x, y, steps=steps)
        except PlaywrightError as e:
            logger.debug(f"Mouse move skipped: {e}")

    async def scroll(self, page) -> None:
        """Scroll a random distance, mostly downwards"""
        if not self.enabled:
            return
        distance = self.rng.randint(*SCROLL_RANGE_PX)
        if self.rng.random() >= SCROLL_DOWN_CHANCE:
            distance = -distance
        try:
            await page.mouse.wheel(0, distance)
        except PlaywrightError as e:
            logger.debug(f"Scroll skipped: {e}")
        await self.delay((200, 600))

    async def click(self, page, locator) -> None:
        """
        Click somewhere inside the element rather than its exact centre.

        Falls back to a plain click when the element has no bounding box.
        """
        if not self.enabled:
            await locator.click()
            return

        box = await locator.bounding_box()
        if not box:
            await locator.click()
            return

        x = box["x"] + box["width"] * self.rng.uniform(*CLICK_OFFSET_RANGE)
        y = box["y"] + box["height"] * self.rng.uniform(*CLICK_OFFSET_RANGE)
        await page.mouse.move(x, y, steps=self.rng.randint(*MOUSE_STEPS_RANGE))
        await self.delay((80, 250))
        await page.mouse.click(x, y)

    async def type_text(self, page, locator, text: str) -> None:
        """Type character by character with jittered cadence and rare pauses"""
        await locator.click()
        if not self.enabled:
            await locator.fill(text)
            return

        for char in text:
            await page.keyboard.type(char)
            await asyncio.sleep(self.rng.uniform(*TYPING_DELAY_RANGE_MS) / 1000)
            if self.rng.random() < TYPING_PAUSE_CHANCE:
                await asyncio.sleep(self.rng.uniform(*TYPING_PAUSE_RANGE_MS) / 1000)

    async def browse(self, page) -> None:
        """A short burst of idle activity before a sensitive action"""
        if not self.enabled:
            return
        await self.move_mouse(page)
        await self.scroll(page)
        await self.delay()
