"""Camoufox browser sessions, safe navigation and page helpers"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

from camoufox.async_api import AsyncCamoufox
from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .config import LOCALE, MAX_RETRIES, NAVIGATION_TIMEOUT_MS, USER_AGENT, VIEWPORT
from .exceptions import NavigationError
from .resolver import Resolver
from .retry import retry_with_backoff
from .settings import Settings
from .targets import POPUP_DISMISS


@asynccontextmanager
async def browser_page(
    settings: Settings, storage_state: Optional[Path] = None
) -> AsyncIterator[Tuple[object, object]]:
    """
    Launch one browser for one booking and yield (context, page).

    Args:
        settings: Runtime settings (headless flag, proxy)
        storage_state: Saved session file presented as a logged-in account
    """
    launch_kwargs = {"headless": settings.headless}
    if settings.proxy:
        launch_kwargs["proxy"] = settings.proxy.to_playwright_dict()
        launch_kwargs["geoip"] = True
        logger.info(f"🌐 Using proxy {settings.proxy.host}:{settings.proxy.port}")

    async with AsyncCamoufox(**launch_kwargs) as browser:
        context_kwargs = {
            "user_agent": USER_AGENT,
            "locale": LOCALE,
            "viewport": VIEWPORT,
        }
        if storage_state:
            context_kwargs["storage_state"] = str(storage_state)
            logger.info(f"🔑 Session: {storage_state.name}")

        context = await browser.new_context(**context_kwargs)
        page = await context.new_page()
        try:
            yield context, page
        finally:
            await context.close()


async def safe_goto(
    page,
    url: str,
    wait_until: str = "domcontentloaded",
    timeout: int = NAVIGATION_TIMEOUT_MS,
    max_retries: int = MAX_RETRIES,
):
    """
    Navigate with a few jittered retries; a single page load is idempotent.

    Raises:
        NavigationError: If every attempt failed
    """
    try:
        return await retry_with_backoff(
            page.goto,
            url,
            wait_until=wait_until,
            timeout=timeout,
            max_retries=max_retries,
            retry_on=(PlaywrightError,),
        )
    except PlaywrightError as e:
        raise NavigationError(f"Navigation failed: {url}: {e}") from e


async def page_text(page) -> str:
    """Visible body text, empty on failure"""
    try:
        return await page.inner_text("body")
    except PlaywrightError as e:
        logger.debug(f"Could not read page text: {e}")
        return ""


async def dismiss_banners(page, resolver: Resolver) -> int:
    """Close consent banners and sign-in nudges that cover the page"""
    closed = await resolver.click_all_visible(POPUP_DISMISS, page)
    if closed:
        logger.debug(f"🧹 Dismissed {closed} banner(s)")
        await page.wait_for_timeout(500)
    return closed
