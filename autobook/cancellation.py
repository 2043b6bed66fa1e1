"""Cancel a confirmed reservation by walking saved account sessions"""

import re
from pathlib import Path
from typing import Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .browser import browser_page, dismiss_banners, page_text, safe_goto
from .config import HOTEL_BASE_URL, NAVIGATION_TIMEOUT_MS, SETTLE_MS
from .diagnostics import DiagnosticsSink
from .exceptions import (
    BookingStateError,
    CancellationError,
    ReservationNotFoundError,
    TransientBookingError,
)
from .humanizer import Humanizer
from .models import Booking, BookingStatus
from .resolver import Resolver
from .sessions import SessionProvider
from .settings import Settings
from .targets import (
    CANCEL_CONFIRM,
    CANCEL_CONTINUE,
    CANCEL_OPTIONS,
    CANCEL_REASON_RADIO,
    CANCEL_REASON_SELECT,
    OFFERS_MODAL_CLOSE,
    TRIP_CARD,
    UPCOMING_TRIP,
)

# Explicit wording only; a page that merely mentions cancellation is not proof
CANCELLED_PHRASES = [
    "has been cancelled",
    "has been canceled",
    "was cancelled",
    "was canceled",
    "cancellation is complete",
    "cancellation complete",
    "successfully cancelled",
    "successfully canceled",
    "cancellation confirmed",
    "your booking is cancelled",
    "your booking is canceled",
]

CANCELLED_URL_MARKERS = ["cancellation_confirmation", "/cancelled", "/canceled"]

_SEPARATORS = re.compile(r"[\s.\-]+")

MAX_TRIP_CARDS = 10


def compact(text: str) -> str:
    """Upper-case text with whitespace and separators removed"""
    return _SEPARATORS.sub("", text or "").upper()


def pnr_on_page(pnr: str, text: str) -> bool:
    """Whether a reference appears in page text, ignoring spacing and separators"""
    needle = compact(pnr)
    return bool(needle) and needle in compact(text)


def cancellation_confirmed(text: str, url: str = "") -> bool:
    """Whether the page carries an explicit positive cancellation signal"""
    lowered = (text or "").lower()
    if any(phrase in lowered for phrase in CANCELLED_PHRASES):
        return True
    url_lowered = (url or "").lower()
    return any(marker in url_lowered for marker in CANCELLED_URL_MARKERS)


def account_label(session: Path) -> str:
    """Human name of a session file: auth_alice.json -> alice"""
    stem = session.stem
    for prefix in ("auth_", "auth-", "auth"):
        if stem.startswith(prefix) and len(stem) > len(prefix):
            return stem[len(prefix):]
    return stem


class CancellationEngine:
    """
    Finds a reservation across accounts and cancels it.

    Each saved session is tried in sorted order; the first account whose
    trip page shows the reference is the one that cancels.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionProvider,
        diagnostics: Optional[DiagnosticsSink] = None,
        resolver: Optional[Resolver] = None,
        humanizer: Optional[Humanizer] = None,
    ):
        self.settings = settings
        self.sessions = sessions
        self.diagnostics = diagnostics or DiagnosticsSink(settings.diagnostics_dir)
        self.resolver = resolver or Resolver()
        self.humanizer = humanizer or Humanizer()

    async def cancel(self, booking: Booking) -> str:
        """
        Cancel a confirmed booking.

        Returns:
            Audit note for the booking record

        Raises:
            BookingStateError: Booking is Processing or has no reference
            ReservationNotFoundError: No account shows the reference
            CancellationError: Found but the provider did not confirm
        """
        if booking.status == BookingStatus.PROCESSING:
            raise BookingStateError(f"Booking {booking.id} is being processed, not cancelling")
        if not booking.pnr:
            raise BookingStateError(f"Booking {booking.id} has no reference to cancel")

        self.diagnostics.bind(booking.id)
        sessions = self.sessions.all_for_lookup()

        logger.info("=" * 60)
        logger.info(f"🗑️ Cancelling {booking.pnr} ({len(sessions)} account(s) to search)")
        logger.info("=" * 60)

        for session in sessions:
            account = account_label(session)
            logger.info(f"🔍 Looking in account {account}")
            async with browser_page(self.settings, session) as (_, page):
                try:
                    found = await self.find_reservation(page, booking.pnr)
                except (TransientBookingError, PlaywrightError) as e:
                    logger.warning(f"⚠️ Search in {account} failed, trying next account: {e}")
                    await self.diagnostics.record("cancel.lookup", "failed", None, f"{account}: {e}")
                    continue

                if not found:
                    logger.info(f"   Not in {account}")
                    continue
                await self.cancel_on_page(page)

            note = f"Auto-cancelled via {account} account."
            logger.success(f"✅ {booking.pnr} cancelled ({note})")
            return note

        raise ReservationNotFoundError(booking.pnr, len(sessions))

    async def _close_overlays(self, page) -> None:
        try:
            await page.keyboard.press("Escape")
        except PlaywrightError as e:
            logger.debug(f"Escape not sent: {e}")
        await self.resolver.click(OFFERS_MODAL_CLOSE, page, ceiling_ms=2000)
        await dismiss_banners(page, self.resolver)

    async def _open(self, page, element) -> None:
        href = None
        try:
            href = await element.get_attribute("href")
        except PlaywrightError:
            href = None

        if href and href.startswith("http"):
            await safe_goto(page, href)
        elif href and href.startswith("/"):
            await safe_goto(page, f"{HOTEL_BASE_URL}{href}")
        else:
            await self.humanizer.click(page, element)
            try:
                await page.wait_for_load_state("domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
            except PlaywrightError as e:
                logger.debug(f"Load state not reached after trip click: {e}")
        await page.wait_for_timeout(SETTLE_MS)

    async def find_reservation(self, page, pnr: str) -> bool:
        """
        Open the account's trips and look for the reference.

        Returns:
            True with the trip page open when found
        """
        await safe_goto(page, HOTEL_BASE_URL)
        await page.wait_for_timeout(SETTLE_MS)
        await self._close_overlays(page)

        if pnr_on_page(pnr, await page_text(page)):
            return True

        upcoming = await self.resolver.click(UPCOMING_TRIP, page, ceiling_ms=5000)
        if upcoming:
            await page.wait_for_timeout(SETTLE_MS)
            await self._close_overlays(page)
            if pnr_on_page(pnr, await page_text(page)):
                return True

        start_url = page.url
        for strategy in TRIP_CARD.strategies:
            try:
                cards = await strategy.locators(page)
            except PlaywrightError as e:
                logger.debug(f"   {strategy.describe()}: {e}")
                continue

            for card in cards[:MAX_TRIP_CARDS]:
                try:
                    if not await card.is_visible():
                        continue
                except PlaywrightError:
                    continue

                await self._open(page, card)
                text = await page_text(page)
                await self.diagnostics.record("cancel.trip_opened", "ok", None, strategy.name)
                if pnr_on_page(pnr, text):
                    logger.info(f"   📌 Reference found via {strategy.name}")
                    return True

                if page.url != start_url:
                    await safe_goto(page, start_url)
                    await page.wait_for_timeout(SETTLE_MS)
                    await self._close_overlays(page)

        return False

    async def choose_reason(self, page) -> None:
        """First real reason in a select, or the first radio option"""
        select = await self.resolver.locate(CANCEL_REASON_SELECT, page, ceiling_ms=4000)
        if select is not None:
            try:
                await select.element.select_option(index=1)
                logger.info("   Reason selected from list")
                return
            except PlaywrightError as e:
                logger.debug(f"   Reason select failed: {e}")

        radio = await self.resolver.locate(CANCEL_REASON_RADIO, page, ceiling_ms=4000)
        if radio is not None:
            try:
                await radio.element.check()
                logger.info("   Reason radio checked")
            except PlaywrightError as e:
                logger.debug(f"   Reason radio failed: {e}")

    async def cancel_on_page(self, page) -> None:
        """
        Drive the provider's cancellation dialog on an open trip page.

        Raises:
            SelectorNotFoundError: No cancellation entry point
            CancellationError: No positive confirmation afterwards
        """
        options = await self.resolver.require(CANCEL_OPTIONS, page)
        await self.humanizer.click(page, options.element)
        await page.wait_for_timeout(SETTLE_MS)

        await self.choose_reason(page)

        if await self.resolver.click(CANCEL_CONTINUE, page, ceiling_ms=5000):
            await page.wait_for_timeout(SETTLE_MS)

        confirm = await self.resolver.require(CANCEL_CONFIRM, page)
        await self.humanizer.click(page, confirm.element)

        try:
            await page.wait_for_load_state("domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        except PlaywrightError as e:
            logger.debug(f"Load state not reached after confirm: {e}")
        await page.wait_for_timeout(SETTLE_MS * 2)

        text = await page_text(page)
        await self.diagnostics.record("cancel.confirmed_clicked", "ok", page)
        if not cancellation_confirmed(text, page.url):
            await self.diagnostics.record("cancel.verify", "failed", page)
            raise CancellationError("Cancellation not confirmed by the provider")
