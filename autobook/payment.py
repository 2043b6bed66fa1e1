"""Payment surface: readiness, card fields (main document or hosted frames), remediation"""

import asyncio
from typing import Dict, List, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from .browser import page_text
from .config import PAYMENT_READY_TIMEOUT_MS
from .diagnostics import DiagnosticsSink
from .exceptions import PaymentStepError
from .resolver import Resolver, Target
from .settings import BillingDetails, CardDetails
from .targets import (
    BILLING_ADDRESS,
    BILLING_CITY,
    BILLING_COUNTRY,
    BILLING_POSTAL,
    BILLING_STATE,
    CARD_CVC,
    CARD_EXPIRY,
    CARD_HOLDER,
    CARD_NUMBER,
    PAY_AT_PROPERTY,
    PAYMENT_READY,
    REQUIRED_CONSENTS,
    SHOW_FIELDS,
)

MISSING_FIELDS_PHRASES = [
    "fill in all required fields",
    "please fill in all the required fields",
    "this field is required",
    "required field",
]


def reports_missing_fields(text: str) -> bool:
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in MISSING_FIELDS_PHRASES)


class PaymentFiller:
    """Fills the payment form; every lookup goes through the resolver"""

    def __init__(self, resolver: Resolver, diagnostics: DiagnosticsSink):
        self.resolver = resolver
        self.diagnostics = diagnostics

    async def wait_until_ready(self, page, timeout_ms: int = PAYMENT_READY_TIMEOUT_MS) -> bool:
        """Wait for any payment marker in any frame"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while loop.time() < deadline:
            for frame in page.frames:
                try:
                    if await frame.locator(PAYMENT_READY).count() > 0:
                        return True
                except PlaywrightError:
                    continue  # Frame navigated away mid-check
            await asyncio.sleep(1.0)
        return False

    async def _fill(self, page, target: Target, value: str, required: bool) -> Optional[str]:
        """
        Fill one field and return the winning strategy.

        Hosted fields often ignore ``fill``; they get typed into instead.
        """
        if not value:
            return None
        resolution = await self.resolver.locate(target, page)
        if resolution is None:
            if required:
                raise PaymentStepError(f"Payment field not found: {target.name}")
            logger.debug(f"   {target.name}: not present")
            return None

        element = resolution.element
        try:
            await element.fill(value)
            current = await element.input_value()
            if current.replace(" ", "") != value.replace(" ", ""):
                await element.fill("")
                await element.press_sequentially(value, delay=60)
        except PlaywrightError:
            await element.click()
            await element.press_sequentially(value, delay=60)

        logger.info(f"   💳 {target.name} via {resolution.strategy}")
        return resolution.strategy

    async def fill_card(self, page, card: CardDetails) -> Dict[str, str]:
        """
        Fill number, expiry, security code and holder name.

        Returns:
            Field name -> strategy that located it

        Raises:
            PaymentStepError: If card details are missing or a mandatory field is absent
        """
        if not card.is_complete:
            raise PaymentStepError("Card details are not configured")

        used = {}
        fields = [
            (CARD_NUMBER, card.number, True),
            (CARD_EXPIRY, card.expiry, True),
            (CARD_CVC, card.cvc, True),
            (CARD_HOLDER, card.holder, False),
        ]
        for target, value, required in fields:
            strategy = await self._fill(page, target, value, required)
            if strategy:
                used[target.name] = strategy
        await self.diagnostics.record("payment.card", "ok", detail=", ".join(used.values()))
        return used

    async def select_pay_at_property(self, page) -> bool:
        resolution = await self.resolver.locate(PAY_AT_PROPERTY, page, ceiling_ms=3000)
        if resolution is None:
            return False
        try:
            await resolution.element.check()
        except PlaywrightError:
            await resolution.element.click()
        logger.info("✓ Pay at the property selected")
        return True

    async def fill_billing(self, page, billing: BillingDetails) -> List[str]:
        """Fill billing sub-fields that are visible and still empty"""
        filled = []
        for target, value in (
            (BILLING_POSTAL, billing.postal_code),
            (BILLING_ADDRESS, billing.address),
            (BILLING_CITY, billing.city),
            (BILLING_STATE, billing.state),
        ):
            if not value:
                continue
            resolution = await self.resolver.locate(target, page, ceiling_ms=2000)
            if resolution is None:
                continue
            try:
                if await resolution.element.input_value():
                    continue
                await resolution.element.fill(value)
                filled.append(target.name)
            except PlaywrightError as e:
                logger.debug(f"   {target.name}: {e}")

        if billing.country:
            resolution = await self.resolver.locate(BILLING_COUNTRY, page, ceiling_ms=2000)
            if resolution is not None:
                try:
                    await resolution.element.select_option(value=billing.country.lower())
                    filled.append(BILLING_COUNTRY.name)
                except PlaywrightError as e:
                    logger.debug(f"   {BILLING_COUNTRY.name}: {e}")
        return filled

    async def remediate(self, page, billing: BillingDetails, accept_consents: bool) -> None:
        """Reveal hidden sections, fill billing, tick mandatory consents"""
        logger.warning("⚠️ Page reports missing required fields, remediating...")
        await self.resolver.expand_hidden_sections(page, SHOW_FIELDS)
        filled = await self.fill_billing(page, billing)
        ticked = 0
        if accept_consents:
            ticked = await self.resolver.click_all_visible(REQUIRED_CONSENTS, page)
        await self.diagnostics.record(
            "payment.remediate", "ok", page, detail=f"billing={filled} consents={ticked}"
        )

    async def missing_fields(self, page) -> bool:
        return reports_missing_fields(await page_text(page))
