"""Candidate selection: price band prefilter and prepayment policy inspection"""

from typing import Awaitable, Callable, List, Optional
from urllib.parse import urljoin

from loguru import logger

from .browser import dismiss_banners, page_text, safe_goto
from .config import HOTEL_BASE_URL, SETTLE_MS
from .diagnostics import DiagnosticsSink
from .exceptions import NoAdmissibleInventoryError
from .models import CandidateOffer, SelectionPolicy
from .pricing import parse_price, per_night
from .resolver import Resolver
from .settings import PriceFormat
from .targets import CARD_ADDRESS, CARD_LINK, CARD_PRICE, CARD_TITLE, PROPERTY_CARD

# Phrases meaning the card is charged online before the stay
PREPAYMENT_PHRASES = [
    "requires prepayment",
    "payment before arrival",
    "full payment is required",
    "non-refundable",
    "pay the full amount",
    "pay now",
    "charged immediately",
    "prepayment of the total price at any time",
    "you'll be charged a prepayment",
]

# Any of these overrides a prepayment phrase
SAFE_PHRASES = [
    "no prepayment needed",
    "pay at the property",
    "pay at the hotel",
    "no credit card needed",
    "manage your booking online",
]

_LISTING_JS = f"""
cards => cards.map(card => {{
    const text = sel => {{
        const el = card.querySelector(sel);
        return el ? el.innerText.trim() : '';
    }};
    const link = card.querySelector('{CARD_LINK}') || card.querySelector('a[href]');
    return {{
        name: text('{CARD_TITLE}'),
        price: text('{CARD_PRICE}'),
        address: text('{CARD_ADDRESS}'),
        link: link ? link.getAttribute('href') : '',
    }};
}})
"""

InspectFn = Callable[[CandidateOffer], Awaitable[str]]


def requires_prepayment(text: str) -> bool:
    """A prepayment phrase is present and no safe phrase overrides it"""
    lowered = (text or "").lower().replace("\u2019", "'")
    if any(phrase in lowered for phrase in SAFE_PHRASES):
        return False
    return any(phrase in lowered for phrase in PREPAYMENT_PHRASES)


def prefilter(offers: List[CandidateOffer], policy: SelectionPolicy) -> List[CandidateOffer]:
    """Listing-order survivors of the inclusive per-night price band"""
    survivors = []
    for offer in offers:
        if policy.admits_price(offer.per_night_price):
            survivors.append(offer)
        else:
            logger.debug(
                f"   ✗ {offer.name}: {offer.per_night_price}/night outside "
                f"[{policy.min_price}, {policy.max_price}]"
            )
    return survivors


async def choose_candidate(
    offers: List[CandidateOffer], policy: SelectionPolicy, inspect: InspectFn
) -> CandidateOffer:
    """
    Commit to the first admissible candidate in listing order.

    Args:
        offers: Listing snapshot, in page order
        policy: Price band and payment policy
        inspect: Returns the detail-page text of a candidate

    Raises:
        NoAdmissibleInventoryError: If nothing passes both constraints
    """
    survivors = prefilter(offers, policy)
    logger.info(f"💰 {len(survivors)}/{len(offers)} candidates within budget")
    if not survivors:
        raise NoAdmissibleInventoryError(
            f"No hotels found within budget range "
            f"({policy.min_price}-{policy.max_price} per night, {len(offers)} listed)"
        )

    for offer in survivors:
        text = await inspect(offer)
        offer.requires_prepayment = requires_prepayment(text) if policy.reject_prepayment else False
        if offer.requires_prepayment:
            logger.info(f"   ✗ {offer.name}: requires online prepayment")
            continue
        logger.success(f"✓ Selected {offer.name} ({offer.per_night_price}/night)")
        return offer

    raise NoAdmissibleInventoryError(
        f"All candidate hotels require online/prepayment ({len(survivors)} inspected)"
    )


def offers_from_listing(
    rows: List[dict], nights: int, fmt: Optional[PriceFormat] = None, base_url: str = HOTEL_BASE_URL
) -> List[CandidateOffer]:
    """Turn scraped card rows into offers; rows without a readable price are dropped"""
    offers = []
    for index, row in enumerate(rows):
        total = parse_price(row.get("price"), fmt)
        if total is None or not row.get("link"):
            logger.debug(f"   Skipping card {index}: price={row.get('price')!r}")
            continue
        offers.append(
            CandidateOffer(
                name=row.get("name") or f"Property {index + 1}",
                total_price=total,
                per_night_price=per_night(total, nights),
                index=index,
                address=row.get("address", ""),
                link=urljoin(base_url, row["link"]),
            )
        )
    return offers


class CandidateSelector:
    """Reads the results listing and inspects detail pages on the same tab"""

    def __init__(self, resolver: Resolver, diagnostics: DiagnosticsSink, fmt: PriceFormat):
        self.resolver = resolver
        self.diagnostics = diagnostics
        self.fmt = fmt

    async def read_listing(self, page, nights: int) -> List[CandidateOffer]:
        rows = await page.locator(PROPERTY_CARD).evaluate_all(_LISTING_JS)
        offers = offers_from_listing(rows, nights, self.fmt)
        logger.info(f"🏨 {len(offers)} priced properties on the listing ({len(rows)} cards)")
        return offers

    async def inspect(self, page, offer: CandidateOffer) -> str:
        logger.info(f"🔍 Inspecting #{offer.index + 1} {offer.name}")
        await safe_goto(page, offer.link)
        await dismiss_banners(page, self.resolver)
        await page.wait_for_timeout(SETTLE_MS)
        return await page_text(page)

    async def select(self, page, policy: SelectionPolicy) -> CandidateOffer:
        """
        Choose a property; the page is left on the chosen detail page.

        Raises:
            NoAdmissibleInventoryError: If no candidate is admissible
        """
        offers = await self.read_listing(page, policy.nights)

        async def inspect(offer: CandidateOffer) -> str:
            return await self.inspect(page, offer)

        chosen = await choose_candidate(offers, policy, inspect)
        await self.diagnostics.record("selection.chosen", "ok", page, detail=chosen.name)
        return chosen
