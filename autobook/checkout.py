"""Checkout state machine: guest details, payment, purchase, reference

ItemSelected -> DetailsEntry -> PaymentEntry -> PurchaseSubmitted ->
ReferenceExtracted, with Aborted reachable from every state. The machine
runs once per invocation; retrying a whole booking is the worker's call.
"""

import asyncio
from typing import List, Optional
from urllib.parse import parse_qs, urlsplit

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .browser import page_text
from .config import (
    CONFIRMATION_TIMEOUT_MS,
    MAX_DETAILS_INPUTS,
    MIN_DETAILS_INPUTS,
    SETTLE_MS,
)
from .countries import calling_code_candidates, national_number, preferred_country_code
from .dates import dob_candidates, dob_value_matches
from .diagnostics import DiagnosticsSink, collect_form_diagnostics
from .exceptions import (
    AmbiguousPurchaseError,
    MissingMandatoryDataError,
    PaymentStepError,
    PurchaseSkippedError,
    StepFailedError,
)
from .humanizer import Humanizer
from .models import Booking, CheckoutState, split_name
from .payment import PaymentFiller
from .reference import extract_reference, reference_from_element_text
from .resolver import Resolver, Target
from .settings import Settings
from .targets import (
    ARRIVAL_TIME_SELECT,
    CALLING_CODE_SELECT,
    CONFIRMATION_MARKER,
    COUNTRY_SELECT,
    DETAILS_ADVANCE,
    DOB_DAY_SELECT,
    DOB_INPUT,
    DOB_MONTH_SELECT,
    DOB_REQUIRED,
    DOB_YEAR_SELECT,
    EMAIL,
    EMAIL_CONFIRM,
    FINAL_PURCHASE,
    FIRST_NAME,
    LAST_NAME,
    LEISURE_RADIO,
    MAIN_GUEST_RADIO,
    PAYMENT_MARKERS,
    PHONE,
    REFERENCE_ELEMENT,
    SHOW_FIELDS,
)

DETAILS_MARKERS = [
    "enter your details",
    "almost done",
    "who are you booking for",
    "good to know",
    "your booking details",
]
SEARCH_PAGE_MARKER = "where are you going"
DETAILS_URL_PARTS = ("/book", "/checkout", "/reservation")

_VISIBLE_TEXT_INPUTS = (
    'input[type="text"]:visible, input[type="email"]:visible, '
    'input[type="tel"]:visible, input:not([type]):visible'
)

_SET_DATE_VALUE_JS = """
(el, value) => {
    el.value = value;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.dispatchEvent(new Event('blur', { bubbles: true }));
    return el.value;
}
"""

_MATCH_CALLING_CODE_JS = """
(el, codes) => {
    for (const code of codes) {
        for (const opt of el.options) {
            const text = opt.textContent || '';
            if (opt.value === code || opt.value === '+' + code ||
                new RegExp('\\\\+' + code + '(?!\\\\d)').test(text)) {
                return opt.value;
            }
        }
    }
    return null;
}
"""


def looks_like_details_page(text: str, url: str, visible_inputs: int) -> bool:
    """
    Combine weak signals: page wording, URL shape, number of text inputs.

    The search form also has inputs, so its marker vetoes the input count.
    """
    lowered = (text or "").lower()
    on_search_page = SEARCH_PAGE_MARKER in lowered
    if any(marker in lowered for marker in DETAILS_MARKERS) and not on_search_page:
        return True
    path = urlsplit(url or "").path.lower()
    if any(part in path for part in DETAILS_URL_PARTS):
        return True
    return MIN_DETAILS_INPUTS < visible_inputs < MAX_DETAILS_INPUTS and not on_search_page


def stage_of(url: str) -> Optional[int]:
    """The provider's checkout stage counter from the URL, if any"""
    values = parse_qs(urlsplit(url or "").query).get("stage")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


def advanced_past_details(
    stage_before: Optional[int],
    stage_after: Optional[int],
    details_field_visible: bool,
    payment_markers_present: bool,
) -> bool:
    """Any one signal is enough; URL change alone is not a signal"""
    if stage_before is not None and stage_after is not None and stage_after > stage_before:
        return True
    return not details_field_visible or payment_markers_present


def blocking_missing_dob(diagnostics: List[str], has_dob: bool) -> bool:
    """Validation output points at the date of birth and there is none to give"""
    if has_dob:
        return False
    text = " ".join(diagnostics).lower()
    return "birth" in text or "dob" in text


class CheckoutStateMachine:
    """
    Drives one hotel checkout from a reserved room to a booking reference.

    Each step is a method so a flow variant (or a test) can replace one
    step and keep the rest of the machine.
    """

    def __init__(
        self,
        resolver: Resolver,
        humanizer: Humanizer,
        diagnostics: DiagnosticsSink,
        settings: Settings,
        payment: Optional[PaymentFiller] = None,
    ):
        self.resolver = resolver
        self.humanizer = humanizer
        self.diagnostics = diagnostics
        self.settings = settings
        self.payment = payment or PaymentFiller(resolver, diagnostics)
        self.state = CheckoutState.ITEM_SELECTED
        self.payment_reached = False

    def _enter(self, state: CheckoutState) -> None:
        logger.info(f"➡️ Checkout: {self.state.value} → {state.value}")
        self.state = state

    async def run(self, page, booking: Booking) -> str:
        """
        Execute the checkout once.

        Returns:
            The extracted booking reference

        Raises:
            MissingMandatoryDataError: Provider requires data the booking lacks
            StepFailedError: A pre-payment step did not advance
            PaymentStepError: Any failure once the payment surface was reached
        """
        self.state = CheckoutState.ITEM_SELECTED
        self.payment_reached = False
        try:
            await self.wait_for_details(page)
            self._enter(CheckoutState.DETAILS_ENTRY)
            await self.fill_details(page, booking)
            await self.advance_to_payment(page, booking)

            self._enter(CheckoutState.PAYMENT_ENTRY)
            await self.fill_payment(page)
            await self.submit_purchase(page)

            self._enter(CheckoutState.PURCHASE_SUBMITTED)
            reference = await self.extract_reference(page)

            self._enter(CheckoutState.REFERENCE_EXTRACTED)
            await self.diagnostics.record("checkout.reference", "ok", page, detail=reference)
            return reference

        except PaymentStepError:
            self.state = CheckoutState.ABORTED
            raise
        except Exception as e:
            failed_in = self.state
            self.state = CheckoutState.ABORTED
            await self.diagnostics.record(f"checkout.{failed_in.value}", "failed", page, detail=str(e))
            if self.payment_reached:
                raise PaymentStepError(
                    f"Payment step failed in {failed_in.value}: {e}"
                ) from e
            raise

    # --- ItemSelected -> DetailsEntry ---------------------------------------

    async def wait_for_details(self, page, timeout_ms: int = 30000) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while True:
            text = await page_text(page)
            try:
                inputs = await page.locator(_VISIBLE_TEXT_INPUTS).count()
            except PlaywrightError:
                inputs = 0
            if looks_like_details_page(text, page.url, inputs):
                logger.success("✓ Guest details page reached")
                return
            if loop.time() >= deadline:
                break
            await asyncio.sleep(1.0)

        await self.diagnostics.record("checkout.details", "not-reached", page, detail=page.url)
        raise StepFailedError("Guest details page was not reached after reserving")

    # --- DetailsEntry -------------------------------------------------------

    async def _fill_text(self, page, target: Target, value: str, required: bool = True) -> bool:
        if not value:
            return False
        if required:
            resolution = await self.resolver.require(target, page)
        else:
            resolution = await self.resolver.locate(target, page, ceiling_ms=3000)
            if resolution is None:
                return False
        await resolution.element.fill(value)
        return True

    async def fill_details(self, page, booking: Booking) -> None:
        """Contact fields, country and calling code, date of birth, radios"""
        await self.resolver.expand_hidden_sections(page, SHOW_FIELDS)

        first, last = split_name(booking.name)
        await self._fill_text(page, FIRST_NAME, first)
        await self._fill_text(page, LAST_NAME, last)
        await self._fill_text(page, EMAIL, booking.email)
        await self._fill_text(page, EMAIL_CONFIRM, booking.email, required=False)

        has_calling_code = await self.select_country(page, booking)
        phone = national_number(booking.phone) if has_calling_code else booking.phone
        await self._fill_text(page, PHONE, phone, required=False)

        await self.fill_dob(page, booking)
        await self.select_radios(page)
        await self.diagnostics.record("details.filled", "ok", page)

    async def select_country(self, page, booking: Booking) -> bool:
        """
        Pick the country and the phone calling code.

        Returns:
            True if a calling code was selected (phone is then entered without it)
        """
        code = preferred_country_code(booking.country, booking.phone, booking.destination)
        if code:
            resolution = await self.resolver.locate(COUNTRY_SELECT, page, ceiling_ms=3000)
            if resolution is not None:
                for value in (code.lower(), code):
                    try:
                        await resolution.element.select_option(value=value)
                        logger.info(f"   🌍 Country: {code}")
                        break
                    except PlaywrightError:
                        continue

        resolution = await self.resolver.locate(CALLING_CODE_SELECT, page, ceiling_ms=2000)
        if resolution is None:
            return False
        candidates = calling_code_candidates(booking.phone)
        try:
            value = await resolution.element.evaluate(_MATCH_CALLING_CODE_JS, candidates)
            if value:
                await resolution.element.select_option(value=value)
                logger.info(f"   ☎️ Calling code option: {value}")
                return True
        except PlaywrightError as e:
            logger.debug(f"   Calling code not selected: {e}")
        return False

    async def fill_dob(self, page, booking: Booking) -> bool:
        """
        Fill the date of birth if the page asks for one.

        Raises:
            MissingMandatoryDataError: Required DOB field present, no DOB on the booking
            StepFailedError: Field present and required but no format stuck
        """
        required = await self.resolver.locate(DOB_REQUIRED, page, ceiling_ms=2000)
        dob = booking.lead_date_of_birth
        if dob is None:
            if required is not None:
                raise MissingMandatoryDataError(
                    "date_of_birth", "Date of birth is required by the provider but missing"
                )
            return False

        resolution = await self.resolver.locate(DOB_INPUT, page, ceiling_ms=3000)
        if resolution is not None:
            element = resolution.element
            input_type = (await element.get_attribute("type") or "").lower()
            if input_type == "date":
                value = await element.evaluate(_SET_DATE_VALUE_JS, dob.isoformat())
                if value == dob.isoformat():
                    logger.info("   🎂 DOB set on native date input")
                    return True
            else:
                placeholder = await element.get_attribute("placeholder") or ""
                for candidate in dob_candidates(dob, placeholder):
                    await element.fill(candidate)
                    if dob_value_matches(await element.input_value(), dob):
                        logger.info(f"   🎂 DOB accepted as {candidate}")
                        return True

        if await self._fill_dob_selects(page, dob):
            return True

        if required is not None:
            raise StepFailedError("Date of birth field could not be filled")
        return False

    async def _fill_dob_selects(self, page, dob) -> bool:
        selects = []
        for target in (DOB_DAY_SELECT, DOB_MONTH_SELECT, DOB_YEAR_SELECT):
            resolution = await self.resolver.locate(target, page, ceiling_ms=1500)
            if resolution is None:
                return False
            selects.append(resolution.element)
        day, month, year = selects
        try:
            await day.select_option(value=str(dob.day))
            await month.select_option(value=str(dob.month))
            await year.select_option(value=str(dob.year))
        except PlaywrightError as e:
            logger.debug(f"   DOB selects rejected values: {e}")
            return False
        logger.info("   🎂 DOB set on split selects")
        return True

    async def select_radios(self, page) -> None:
        for radio in (MAIN_GUEST_RADIO, LEISURE_RADIO):
            resolution = await self.resolver.locate(radio, page, ceiling_ms=1500)
            if resolution is None:
                continue
            try:
                await resolution.element.check()
            except PlaywrightError as e:
                logger.debug(f"   {radio.name} not checked: {e}")

        arrival = await self.resolver.locate(ARRIVAL_TIME_SELECT, page, ceiling_ms=1500)
        if arrival is not None:
            try:
                await arrival.element.select_option(index=1)
            except PlaywrightError as e:
                logger.debug(f"   Arrival time not selected: {e}")

    # --- DetailsEntry -> PaymentEntry ---------------------------------------

    async def _details_field_visible(self, page) -> bool:
        resolution = await self.resolver.locate(FIRST_NAME, page, ceiling_ms=500)
        return resolution is not None

    async def _payment_markers_present(self, page) -> bool:
        for frame in page.frames:
            try:
                if await frame.locator(PAYMENT_MARKERS).count() > 0:
                    return True
            except PlaywrightError:
                continue
        return False

    async def advance_to_payment(self, page, booking: Booking, timeout_ms: int = 20000) -> None:
        """
        Click the advance control and confirm the form moved on.

        Raises:
            MissingMandatoryDataError: Validation blames the DOB and there is none
            StepFailedError: The form stayed put (diagnostics attached)
        """
        stage_before = stage_of(page.url)
        button = await self.resolver.require(DETAILS_ADVANCE, page)
        await self.humanizer.click(page, button.element)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while loop.time() < deadline:
            await asyncio.sleep(1.0)
            if advanced_past_details(
                stage_before,
                stage_of(page.url),
                await self._details_field_visible(page),
                await self._payment_markers_present(page),
            ):
                logger.success("✓ Advanced to payment")
                return

        diagnostics = await collect_form_diagnostics(page)
        for line in diagnostics:
            logger.warning(f"   {line}")
        await self.diagnostics.record(
            "details.advance", "failed", page, detail=" | ".join(diagnostics)
        )
        if blocking_missing_dob(diagnostics, booking.lead_date_of_birth is not None):
            raise MissingMandatoryDataError(
                "date_of_birth", "Date of birth is required by the provider but missing"
            )
        raise StepFailedError("Guest details form did not advance", diagnostics)

    # --- PaymentEntry -------------------------------------------------------

    async def fill_payment(self, page) -> None:
        """
        Raises:
            StepFailedError: Payment surface never appeared
            PaymentStepError: Anything that goes wrong on the payment surface
        """
        if not await self.payment.wait_until_ready(page):
            raise StepFailedError("Payment page not reached")
        self.payment_reached = True
        logger.info("💳 Payment page reached")

        await self.payment.select_pay_at_property(page)
        await self.payment.fill_card(page, self.settings.card)

        if await self.payment.missing_fields(page):
            await self.payment.remediate(page, self.settings.billing, self.settings.accept_consents)
            if await self.payment.missing_fields(page):
                diagnostics = await collect_form_diagnostics(page)
                raise PaymentStepError(
                    f"Required payment fields still missing: {' | '.join(diagnostics)}"
                )

    # --- PaymentEntry -> PurchaseSubmitted ----------------------------------

    async def submit_purchase(self, page) -> None:
        """
        Click the final purchase control. Past this call a purchase may exist.

        Raises:
            PurchaseSkippedError: Final click disabled by configuration
        """
        if not self.settings.click_final_purchase:
            await self.diagnostics.record("purchase.final", "skipped", page)
            raise PurchaseSkippedError("Final purchase click disabled (dry run)")

        await self.humanizer.browse(page)
        resolution = await self.resolver.locate(FINAL_PURCHASE, page)
        if resolution is not None:
            logger.info(f"🛒 Final purchase via {resolution.strategy}")
            await resolution.element.click()
        else:
            logger.warning("⚠️ No final purchase button found, pressing Enter")
            await page.keyboard.press("Enter")
        await self.diagnostics.record("purchase.final", "clicked", page)

    # --- PurchaseSubmitted -> ReferenceExtracted ----------------------------

    async def extract_reference(self, page) -> str:
        """
        Raises:
            AmbiguousPurchaseError: No reference on the confirmation surface
        """
        try:
            await page.wait_for_selector(CONFIRMATION_MARKER, timeout=CONFIRMATION_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            logger.warning("⚠️ Confirmation marker not seen, scanning page anyway")
        await page.wait_for_timeout(SETTLE_MS)

        reference = extract_reference(await page_text(page))
        if not reference:
            resolution = await self.resolver.locate(REFERENCE_ELEMENT, page, ceiling_ms=3000)
            if resolution is not None:
                reference = reference_from_element_text(await resolution.element.inner_text())

        if not reference:
            await self.diagnostics.record("purchase.reference", "missing", page)
            raise AmbiguousPurchaseError(
                "Purchase submitted but no booking reference was found on the confirmation page"
            )

        logger.success(f"🎉 Booking reference: {reference}")
        return reference
