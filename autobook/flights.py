"""Flight booking flow (Nouvelair): search, fares, passengers, pay later"""

import re
from datetime import date
from typing import List, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .browser import browser_page, dismiss_banners, page_text, safe_goto
from .challenge import ChallengeSolver, solve_page_challenge
from .config import FLIGHT_BASE_URL, FLIGHT_PLATFORM, MAX_FLIGHT_CALENDAR_PAGES, SETTLE_MS
from .dates import dob_candidates, dob_value_matches, months_between, parse_month_header
from .diagnostics import DiagnosticsSink
from .exceptions import (
    AmbiguousPurchaseError,
    MissingMandatoryDataError,
    PaymentStepError,
    PurchaseSkippedError,
    StepFailedError,
)
from .humanizer import Humanizer
from .models import Booking, BookingOutcome, Passenger, split_name
from .pricing import parse_price
from .reference import extract_flight_reference
from .resolver import Resolver
from .settings import PriceFormat, Settings
from .targets import (
    ADULTS_INCREMENT,
    AIRPORT_INPUTS,
    AIRPORT_OPTION_FALLBACK,
    ANCILLARY_SKIP,
    CALENDAR_HEADER,
    CALENDAR_NEXT,
    DEPARTURE_DATE,
    EMAIL,
    FARE_SELECT,
    FLIGHT_CONTINUE,
    FLIGHT_SEARCH,
    FLIGHT_SUBMIT,
    ONE_WAY,
    PAY_LATER,
    PHONE,
    RETURN_DATE,
    TERMS_CHECKBOX,
)

FLIGHT_PRICE_FORMAT = PriceFormat(decimal_separator=".", thousands_separator=" ", currency="TND")
_PRICE_PATTERN = re.compile(r"(\d[\d\s.,]*)\s*TND")
_FLIGHT_NUMBER_PATTERN = re.compile(r"\b(BJ\s?\d{3,4})\b")

MAX_ANCILLARY_PAGES = 4

# Per-passenger fields on the identity page, in document order
PASSENGER_FIELDS = {
    "title": 'select[name*="title" i], [name*="civility" i]',
    "first_name": 'input[name*="firstName" i], input[name*="first_name" i]',
    "last_name": 'input[name*="lastName" i], input[name*="last_name" i]',
    "date_of_birth": 'input[name*="birth" i], input[placeholder*="birth" i]',
    "passport": 'input[name*="passport" i], input[name*="document" i]',
    "nationality": 'input[name*="nationality" i], select[name*="nationality" i]',
}


def extract_total_price(text: str) -> Optional[float]:
    """Total in TND; the last amount on the summary is the total"""
    amounts = _PRICE_PATTERN.findall(text or "")
    if not amounts:
        return None
    return parse_price(amounts[-1].strip(), FLIGHT_PRICE_FORMAT)


def extract_flight_number(text: str) -> str:
    match = _FLIGHT_NUMBER_PATTERN.search(text or "")
    return match.group(1).replace(" ", "") if match else ""


def travellers(booking: Booking) -> List[Passenger]:
    """Passengers of the booking, or the contact person travelling alone"""
    if booking.passengers:
        return booking.passengers
    first, last = split_name(booking.name)
    return [Passenger(first_name=first, last_name=last, date_of_birth=booking.date_of_birth)]


class FlightBookingFlow:
    """
    Books a flight through the airline's own site.

    The airline runs reCAPTCHA v3 on the passenger step, so the flow
    browses like a person and hands the page to the challenge solver
    before the sensitive clicks.
    """

    def __init__(
        self,
        settings: Settings,
        diagnostics: DiagnosticsSink,
        humanizer: Optional[Humanizer] = None,
        resolver: Optional[Resolver] = None,
        solver: Optional[ChallengeSolver] = None,
    ):
        self.settings = settings
        self.diagnostics = diagnostics
        self.humanizer = humanizer or Humanizer()
        self.resolver = resolver or Resolver()
        self.solver = solver or ChallengeSolver()
        self.payment_reached = False

    async def book(self, booking: Booking) -> BookingOutcome:
        async with browser_page(self.settings) as (_, page):
            return await self.book_on_page(page, booking)

    async def book_on_page(self, page, booking: Booking) -> BookingOutcome:
        self.payment_reached = False
        try:
            await self.search(page, booking)
            await self.select_fares(page, booking)
            await self.fill_passengers(page, booking)
            await self.skip_ancillaries(page)
            return await self.pay_later_and_confirm(page)
        except PaymentStepError:
            raise
        except Exception as e:
            await self.diagnostics.record("flight.failed", "failed", page, detail=str(e))
            if self.payment_reached:
                raise PaymentStepError(f"Flight payment step failed: {e}") from e
            raise

    # --- Search -------------------------------------------------------------

    async def search(self, page, booking: Booking) -> None:
        logger.info(f"✈️ Searching {booking.departure} → {booking.arrival} on {booking.flight_date}")
        await safe_goto(page, FLIGHT_BASE_URL)
        await dismiss_banners(page, self.resolver)
        await self.humanizer.browse(page)

        if not booking.return_date:
            await self.resolver.click(ONE_WAY, page, ceiling_ms=3000)

        await self.enter_airport(page, 0, booking.departure)
        await self.enter_airport(page, 1, booking.arrival)

        opener = await self.resolver.require(DEPARTURE_DATE, page)
        await opener.element.click()
        await self.pick_calendar_day(page, booking.flight_date)
        if booking.return_date:
            opener = await self.resolver.locate(RETURN_DATE, page, ceiling_ms=3000)
            if opener is not None:
                await opener.element.click()
            await self.pick_calendar_day(page, booking.return_date)

        for _ in range(len(travellers(booking)) - 1):
            await self.resolver.click(ADULTS_INCREMENT, page, ceiling_ms=3000)

        button = await self.resolver.require(FLIGHT_SEARCH, page)
        await self.humanizer.click(page, button.element)
        await page.wait_for_timeout(SETTLE_MS * 2)
        await self.diagnostics.record("flight.search", "ok", page)

    async def enter_airport(self, page, index: int, code: str) -> None:
        field = page.locator(AIRPORT_INPUTS).nth(index)
        await self.humanizer.type_text(page, field, code)
        await page.wait_for_timeout(SETTLE_MS)

        for selector in (f'.MuiAutocomplete-option:has-text("{code}")', AIRPORT_OPTION_FALLBACK):
            option = page.locator(selector).first
            try:
                if await option.is_visible():
                    await option.click()
                    logger.debug(f"   🛫 {code} selected via {selector}")
                    return
            except PlaywrightError:
                continue
        await field.press("Enter")

    async def pick_calendar_day(self, page, day: date) -> None:
        """
        Page to the month by its header, then click the day.

        Raises:
            StepFailedError: Month unreachable or day disabled
        """
        for _ in range(MAX_FLIGHT_CALENDAR_PAGES + 1):
            header = await page.locator(CALENDAR_HEADER).first.inner_text()
            shown = parse_month_header(header)
            if shown is None:
                raise StepFailedError(f"Unreadable calendar header: {header!r}")
            gap = months_between(shown, day)
            if gap == 0:
                break
            if gap < 0:
                raise StepFailedError(f"Calendar shows {header}, past {day:%B %Y}")
            if not await self.resolver.click(CALENDAR_NEXT, page, ceiling_ms=3000):
                raise StepFailedError("Calendar next-month control not found")
            await page.wait_for_timeout(300)
        else:
            raise StepFailedError(f"{day:%B %Y} not reachable in the calendar")

        cell = page.locator(
            f'button.MuiPickersDay-root:text-is("{day.day}"):not([disabled])'
            ':not(.MuiPickersDay-dayOutsideMonth)'
        ).first
        try:
            await cell.click(timeout=5000)
        except PlaywrightError as e:
            raise StepFailedError(f"Day {day.isoformat()} not selectable: {e}") from e
        logger.debug(f"   📅 {day.isoformat()} selected")

    # --- Fares --------------------------------------------------------------

    async def select_fares(self, page, booking: Booking) -> None:
        legs = 2 if booking.return_date else 1
        for leg in range(legs):
            fare = await self.resolver.require(FARE_SELECT, page)
            await self.humanizer.click(page, fare.element)
            logger.info(f"   🎫 Fare selected for leg {leg + 1}/{legs}")
            await page.wait_for_timeout(SETTLE_MS)
        button = await self.resolver.require(FLIGHT_CONTINUE, page)
        await button.element.click()
        await page.wait_for_timeout(SETTLE_MS)

    # --- Passengers ---------------------------------------------------------

    async def _nth(self, page, field: str, index: int):
        locator = page.locator(PASSENGER_FIELDS[field]).nth(index)
        try:
            if await locator.is_visible():
                return locator
        except PlaywrightError:
            pass
        return None

    async def fill_passengers(self, page, booking: Booking) -> None:
        """
        Raises:
            MissingMandatoryDataError: A date of birth field is shown but the passenger has none
        """
        for index, passenger in enumerate(travellers(booking)):
            logger.info(f"👤 Passenger {index + 1}: {passenger.full_name}")

            title = await self._nth(page, "title", index)
            if title is not None:
                try:
                    await title.select_option(label=passenger.title)
                except PlaywrightError:
                    await title.click()

            for field, value in (
                ("first_name", passenger.first_name),
                ("last_name", passenger.last_name),
                ("passport", passenger.passport),
                ("nationality", passenger.nationality),
            ):
                element = await self._nth(page, field, index)
                if element is not None and value:
                    await self.humanizer.type_text(page, element, value)

            dob_field = await self._nth(page, "date_of_birth", index)
            if dob_field is not None:
                if passenger.date_of_birth is None:
                    raise MissingMandatoryDataError(
                        "date_of_birth", f"Date of birth missing for passenger {index + 1}"
                    )
                placeholder = await dob_field.get_attribute("placeholder") or ""
                for candidate in dob_candidates(passenger.date_of_birth, placeholder):
                    await dob_field.fill(candidate)
                    if dob_value_matches(await dob_field.input_value(), passenger.date_of_birth):
                        break
                else:
                    raise StepFailedError(f"Date of birth not accepted for passenger {index + 1}")

        email = await self.resolver.locate(EMAIL, page, ceiling_ms=3000)
        if email is not None:
            await email.element.fill(booking.email)
        phone = await self.resolver.locate(PHONE, page, ceiling_ms=3000)
        if phone is not None and booking.phone:
            await phone.element.fill(booking.phone)

        await self.humanizer.browse(page)
        await solve_page_challenge(page, self.solver, action="passengers")
        button = await self.resolver.require(FLIGHT_CONTINUE, page)
        await self.humanizer.click(page, button.element)
        await page.wait_for_timeout(SETTLE_MS)
        await self.diagnostics.record("flight.passengers", "ok", page)

    async def skip_ancillaries(self, page) -> None:
        """Seats, bags, insurance: decline each page until payment shows up"""
        for _ in range(MAX_ANCILLARY_PAGES):
            if await self.resolver.locate(PAY_LATER, page, ceiling_ms=2000) is not None:
                return
            if not await self.resolver.click(ANCILLARY_SKIP, page, ceiling_ms=2000):
                if not await self.resolver.click(FLIGHT_CONTINUE, page, ceiling_ms=2000):
                    return
            await page.wait_for_timeout(SETTLE_MS)

    # --- Payment ------------------------------------------------------------

    async def pay_later_and_confirm(self, page) -> BookingOutcome:
        option = await self.resolver.require(PAY_LATER, page)
        self.payment_reached = True
        await option.element.click()
        logger.info("💳 Pay later selected")

        await self.resolver.click_all_visible(TERMS_CHECKBOX, page)

        if not self.settings.click_final_purchase:
            await self.diagnostics.record("purchase.final", "skipped", page)
            raise PurchaseSkippedError("Final purchase click disabled (dry run)")

        await solve_page_challenge(page, self.solver, action="payment")
        button = await self.resolver.require(FLIGHT_SUBMIT, page)
        await self.humanizer.click(page, button.element)
        await page.wait_for_timeout(SETTLE_MS * 3)

        text = await page_text(page)
        reference = extract_flight_reference(text)
        if not reference:
            await self.diagnostics.record("purchase.reference", "missing", page)
            raise AmbiguousPurchaseError(
                "Flight purchase submitted but no booking reference was found"
            )

        logger.success(f"🎉 Flight reference: {reference}")
        return BookingOutcome(
            pnr=reference,
            platform=FLIGHT_PLATFORM,
            price=extract_total_price(text),
            currency=FLIGHT_PRICE_FORMAT.currency,
            flight_number=extract_flight_number(text),
        )
