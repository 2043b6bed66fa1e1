"""Hotel booking flow: search, select, reserve, checkout"""

from typing import Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .browser import browser_page, page_text
from .checkout import CheckoutStateMachine
from .config import HOTEL_PLATFORM
from .dates import extract_free_cancellation_deadline
from .diagnostics import DiagnosticsSink
from .humanizer import Humanizer
from .models import Booking, BookingOutcome, SelectionPolicy
from .notifications import save_confirmation_pdf
from .resolver import Resolver
from .search import HotelSearch
from .selection import CandidateSelector
from .sessions import SessionProvider
from .settings import Settings
from .targets import RESERVE, ROOM_QUANTITY


def selection_policy(booking: Booking) -> SelectionPolicy:
    """Price band from the booking; a missing maximum means no ceiling"""
    max_price = booking.max_price if booking.max_price > 0 else float("inf")
    return SelectionPolicy(
        min_price=max(0.0, booking.min_price),
        max_price=max_price,
        nights=booking.nights,
    )


class HotelBookingFlow:
    """Composes search, selection and checkout on one page"""

    def __init__(
        self,
        settings: Settings,
        sessions: SessionProvider,
        diagnostics: DiagnosticsSink,
        humanizer: Optional[Humanizer] = None,
        resolver: Optional[Resolver] = None,
    ):
        self.settings = settings
        self.sessions = sessions
        self.diagnostics = diagnostics
        self.humanizer = humanizer or Humanizer()
        self.resolver = resolver or Resolver()

    async def book(self, booking: Booking) -> BookingOutcome:
        storage_state = self.sessions.pick_for_purchase()
        async with browser_page(self.settings, storage_state) as (_, page):
            return await self.book_on_page(page, booking)

    async def book_on_page(self, page, booking: Booking) -> BookingOutcome:
        """
        Run the whole hotel purchase on an open page.

        Returns:
            Outcome carrying the reference and descriptive fields
        """
        search = HotelSearch(self.resolver, self.humanizer, self.diagnostics, self.settings)
        await search.run(page, booking)

        selector = CandidateSelector(self.resolver, self.diagnostics, self.settings.price_format)
        chosen = await selector.select(page, selection_policy(booking))

        deadline = extract_free_cancellation_deadline(await page_text(page))
        if deadline:
            logger.info(f"🗓️ Free cancellation until {deadline:%Y-%m-%d %H:%M}")

        await self.reserve(page)

        checkout = CheckoutStateMachine(
            self.resolver, self.humanizer, self.diagnostics, self.settings
        )
        reference = await checkout.run(page, booking)
        document = await save_confirmation_pdf(
            page, self.resolver, self.settings.documents_dir, reference
        )

        return BookingOutcome(
            pnr=reference,
            platform=HOTEL_PLATFORM,
            price=chosen.total_price,
            currency=self.settings.price_format.currency,
            hotel_name=chosen.name,
            hotel_address=chosen.address,
            free_cancellation_until=deadline,
            pdf_path=str(document) if document else "",
        )

    async def reserve(self, page) -> None:
        """Pick one room and click the reserve control"""
        rooms = await self.resolver.locate(ROOM_QUANTITY, page, ceiling_ms=5000)
        if rooms is not None:
            try:
                await rooms.element.select_option(index=1)
                logger.info("   🛏️ One room selected")
            except PlaywrightError as e:
                logger.debug(f"   Room quantity not selected: {e}")

        button = await self.resolver.require(RESERVE, page)
        logger.info(f"📝 Reserving via {button.strategy}")
        await self.humanizer.click(page, button.element)
        await self.diagnostics.record("reserve.clicked", "ok", page)
