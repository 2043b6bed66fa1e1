"""Hotel search orchestration: destination, calendar, submit, URL verification"""

from datetime import date
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .browser import dismiss_banners, safe_goto
from .config import (
    HOTEL_BASE_URL,
    HOTEL_RESULTS_PATH,
    MAX_CALENDAR_PAGES,
    RESULTS_TIMEOUT_MS,
    SETTLE_MS,
)
from .diagnostics import DiagnosticsSink
from .exceptions import NavigationError, ResultsNotLoadedError
from .humanizer import Humanizer
from .models import Booking
from .resolver import Css, Resolver, Target, target
from .settings import Settings
from .targets import (
    AUTOCOMPLETE_FIRST,
    DATE_PICKER,
    DESTINATION_INPUT,
    FREE_CANCELLATION_FILTER,
    NEXT_MONTH,
    RESULTS_MARKER,
    SEARCH_SUBMIT,
)

REQUIRED_FILTERS = ["fc=1", "cancellation_type=no_prepayment"]


# --- Results URL helpers ----------------------------------------------------


def _query(url: str):
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


def _with_params(url: str, updates: Dict[str, str]) -> str:
    """Replace or append query params, keeping every other param in place"""
    parts = urlsplit(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    seen = set()
    merged = []
    for key, value in pairs:
        if key in updates:
            if key in seen:
                continue
            merged.append((key, updates[key]))
            seen.add(key)
        else:
            merged.append((key, value))
    for key, value in updates.items():
        if key not in seen:
            merged.append((key, value))
    return urlunsplit(parts._replace(query=urlencode(merged, safe=";=")))


def _split_date(params: Dict[str, str], prefix: str) -> Optional[date]:
    try:
        return date(
            int(params[f"{prefix}_year"]),
            int(params[f"{prefix}_month"]),
            int(params[f"{prefix}_monthday"]),
        )
    except (KeyError, ValueError):
        return None


def results_url_dates(url: str) -> Tuple[Optional[date], Optional[date]]:
    """
    Read check-in/check-out from a results URL.

    ``checkin``/``checkout`` win; the split ``*_year/_month/_monthday`` form
    is the fallback.
    """
    params = dict(_query(url))
    found = []
    for prefix in ("checkin", "checkout"):
        value = None
        if params.get(prefix):
            try:
                value = date.fromisoformat(params[prefix])
            except ValueError:
                value = None
        found.append(value or _split_date(params, prefix))
    return found[0], found[1]


def rewrite_results_url(url: str, checkin: date, checkout: date) -> str:
    """
    Correct the dates of the current results URL in place.

    Session and search identifiers are left alone; split date params are
    rewritten only when the URL already carries them.
    """
    params = dict(_query(url))
    updates = {"checkin": checkin.isoformat(), "checkout": checkout.isoformat()}
    for prefix, value in (("checkin", checkin), ("checkout", checkout)):
        if f"{prefix}_year" in params:
            updates[f"{prefix}_year"] = str(value.year)
            updates[f"{prefix}_month"] = str(value.month)
            updates[f"{prefix}_monthday"] = str(value.day)
    return _with_params(url, updates)


def build_results_url(destination: str, checkin: date, checkout: date, adults: int = 1) -> str:
    """A fresh results URL when nothing from the UI can be trusted"""
    query = urlencode(
        {
            "ss": destination,
            "checkin": checkin.isoformat(),
            "checkout": checkout.isoformat(),
            "group_adults": adults,
            "no_rooms": 1,
            "group_children": 0,
        }
    )
    return f"{HOTEL_BASE_URL}{HOTEL_RESULTS_PATH}?{query}"


def filtered_results_url(url: str, currency: str = "USD") -> str:
    """Cheapest first, free cancellation, no prepayment, fixed currency"""
    params = dict(_query(url))
    filters = [f for f in params.get("nflt", "").split(";") if f]
    for required in REQUIRED_FILTERS:
        if required not in filters:
            filters.append(required)
    return _with_params(
        url,
        {
            "order": "price",
            "sort_by": "price_starting_from_lowest",
            "nflt": ";".join(filters) + ";",
            "selected_currency": currency,
        },
    )


def is_results_url(url: str) -> bool:
    return HOTEL_RESULTS_PATH in urlsplit(url).path


# --- Calendar targets -------------------------------------------------------


def date_cell_target(day: date) -> Target:
    """Date-key first, then aria label with and without the year, then text"""
    month = day.strftime("%B")
    return target(
        f"date-cell-{day.isoformat()}",
        Css(f'[data-date="{day.isoformat()}"]'),
        Css(f'[aria-label*="{day.day}"][aria-label*="{month}"][aria-label*="{day.year}"]'),
        Css(f'[aria-label*="{day.day} {month}"], [aria-label*="{month} {day.day},"]'),
        Css(f'span[data-date]:text-is("{day.day}"), td span:text-is("{day.day}"), '
            f'[class*="calendar"] span:text-is("{day.day}")'),
    )


class HotelSearch:
    """
    Drives the provider's search form and lands on a results listing that
    matches the requested dates.

    Failures are raised as transient faults; nothing here retries a search.
    """

    def __init__(
        self,
        resolver: Resolver,
        humanizer: Humanizer,
        diagnostics: DiagnosticsSink,
        settings: Settings,
    ):
        self.resolver = resolver
        self.humanizer = humanizer
        self.diagnostics = diagnostics
        self.settings = settings

    async def run(self, page, booking: Booking) -> str:
        """
        Search for the booking's destination and dates.

        Returns:
            URL of the verified (and filtered) results listing
        """
        logger.info(f"🔎 Searching {booking.destination}: {booking.checkin} → {booking.checkout}")

        await safe_goto(page, HOTEL_BASE_URL)
        await dismiss_banners(page, self.resolver)

        await self.enter_destination(page, booking.destination)
        await self.open_calendar(page)
        for day in (booking.checkin, booking.checkout):
            await self.ensure_date_visible(page, day)
            await self.select_date(page, day)

        loaded = await self.submit(page)
        await self.verify_results(page, booking, loaded)
        await self.apply_filters(page)

        await self.diagnostics.record("search.results", "ok", page)
        return page.url

    async def enter_destination(self, page, destination: str) -> None:
        field = await self.resolver.require(DESTINATION_INPUT, page)
        await field.element.fill("")
        await self.humanizer.type_text(page, field.element, destination)
        await page.wait_for_timeout(SETTLE_MS)

        strategy = await self.resolver.click(AUTOCOMPLETE_FIRST, page, ceiling_ms=5000)
        if strategy:
            logger.debug(f"   Autocomplete accepted ({strategy})")
        else:
            logger.warning("⚠️ No autocomplete suggestion, keeping typed destination")

    async def open_calendar(self, page) -> None:
        if await page.locator("[data-date]").count() > 0:
            return
        await self.resolver.click(DATE_PICKER, page, ceiling_ms=5000)
        await page.wait_for_timeout(500)

    async def ensure_date_visible(self, page, day: date) -> bool:
        """
        Page the picker forward until the day's cell exists.

        Bounded by MAX_CALENDAR_PAGES so a same-numbered day in a later year
        can never be reached by paging.
        """
        selector = f'[data-date="{day.isoformat()}"]'
        for _ in range(MAX_CALENDAR_PAGES):
            if await page.locator(selector).count() > 0:
                return True
            if not await self.resolver.click(NEXT_MONTH, page, ceiling_ms=3000):
                break
            await page.wait_for_timeout(300)

        if await page.locator(selector).count() > 0:
            return True
        logger.warning(f"⚠️ {day.isoformat()} not reachable in the picker")
        return False

    async def select_date(self, page, day: date) -> Optional[str]:
        """Click the day's cell; returns the strategy used, None if not found"""
        resolution = await self.resolver.locate(date_cell_target(day), page, ceiling_ms=8000)
        if resolution is None:
            logger.warning(f"⚠️ Could not click {day.isoformat()}, relying on URL verification")
            return None
        await resolution.element.click()
        logger.debug(f"   📅 {day.isoformat()} via {resolution.strategy}")
        return resolution.strategy

    async def submit(self, page) -> bool:
        """Submit the form; returns whether the results marker appeared"""
        button = await self.resolver.require(SEARCH_SUBMIT, page)
        await self.humanizer.click(page, button.element)
        return await self.wait_for_results(page)

    async def wait_for_results(self, page, timeout_ms: int = RESULTS_TIMEOUT_MS) -> bool:
        resolution = await self.resolver.locate(RESULTS_MARKER, page, ceiling_ms=timeout_ms)
        return resolution is not None

    async def _navigate_to_results(self, page, url: str) -> bool:
        try:
            await safe_goto(page, url)
        except NavigationError as e:
            logger.warning(f"⚠️ {e}")
            return False
        await dismiss_banners(page, self.resolver)
        return await self.wait_for_results(page)

    async def verify_results(self, page, booking: Booking, loaded: bool) -> None:
        """
        Make sure the listing is for the requested dates.

        The picker is known to land a year off. On mismatch the current URL
        is corrected; if that does not load, a fresh URL is built.

        Raises:
            ResultsNotLoadedError: If no listing for the right dates could be shown
        """
        expected = (booking.checkin, booking.checkout)
        actual = results_url_dates(page.url)
        if loaded and actual == expected:
            logger.success(f"✓ Results dates verified: {expected[0]} → {expected[1]}")
            return

        logger.warning(
            f"⚠️ Results mismatch (loaded={loaded}, url dates={actual[0]} → {actual[1]}), "
            f"expected {expected[0]} → {expected[1]}"
        )
        await self.diagnostics.record("search.verify", "mismatch", page, detail=page.url)

        if is_results_url(page.url):
            corrected = rewrite_results_url(page.url, *expected)
            logger.info("🔧 Re-navigating with corrected dates")
            if await self._navigate_to_results(page, corrected) and results_url_dates(page.url) == expected:
                return

        fresh = build_results_url(booking.destination, booking.checkin, booking.checkout, booking.adults)
        logger.info("🔧 Falling back to a freshly built results URL")
        if await self._navigate_to_results(page, fresh) and results_url_dates(page.url) == expected:
            return

        raise ResultsNotLoadedError(
            f"Results for {expected[0]} → {expected[1]} could not be loaded (last url: {page.url})"
        )

    async def apply_filters(self, page) -> None:
        """Free-cancellation filter, then URL-level filters; both optional"""
        if await self.resolver.click(FREE_CANCELLATION_FILTER, page, ceiling_ms=4000):
            logger.info("✓ Free cancellation filter clicked")
            await self.wait_for_results(page, self.settings.filter_wait_ms)

        unfiltered = page.url
        filtered = filtered_results_url(unfiltered, self.settings.price_format.currency)
        if filtered == unfiltered:
            return

        try:
            if await self._navigate_to_results(page, filtered):
                logger.info("✓ Price sort and prepayment filters applied")
                return
        except PlaywrightError as e:
            logger.warning(f"⚠️ Filter navigation failed: {e}")

        logger.warning("⚠️ Filtered listing did not load, returning to unfiltered results")
        if not await self._navigate_to_results(page, unfiltered):
            raise ResultsNotLoadedError("Results listing lost after applying filters")
