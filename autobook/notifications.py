"""Post-purchase documents and confirmation e-mail

Rendering tickets and sending mail belong to the surrounding system; the
worker only talks to these two collaborators after a booking is Confirmed.
The provider's own confirmation page is saved by the booking flow right
after the reference is read. Nothing here may change a booking's status.
"""

from pathlib import Path
from typing import List, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import PRINT_VIEW_TIMEOUT_MS, SETTLE_MS
from .models import Booking, Passenger
from .resolver import Resolver
from .targets import PRINT_CONFIRMATION

PDF_MARGIN = {"top": "20px", "bottom": "20px", "left": "20px", "right": "20px"}


async def open_print_view(page, resolver: Resolver):
    """
    Click the provider's print control and return the tab it opens.

    Returns:
        The print page, or None when there is no control or no new tab
    """
    button = await resolver.locate(PRINT_CONFIRMATION, page, ceiling_ms=5000)
    if button is None:
        logger.info("   Print view not offered, using the confirmation page")
        return None

    try:
        async with page.context.expect_page(timeout=PRINT_VIEW_TIMEOUT_MS) as popup:
            await button.element.click()
        print_page = await popup.value
    except PlaywrightTimeoutError:
        logger.info("   No print tab opened, using the confirmation page")
        return None

    await print_page.wait_for_load_state("domcontentloaded")
    await print_page.wait_for_timeout(SETTLE_MS)
    logger.info(f"   🖨️ Print view opened via {button.strategy}")
    return print_page


async def save_confirmation_pdf(
    page, resolver: Resolver, directory: Path, reference: str
) -> Optional[Path]:
    """
    Save the provider's confirmation as ``Booking_<reference>.pdf``.

    Browsers without PDF printing get a full-page PNG of the same view
    instead. Failures are logged and swallowed; the booking is already
    confirmed.

    Returns:
        Path of the saved document, or None
    """
    path = directory / f"Booking_{reference}.pdf"
    print_page = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        print_page = await open_print_view(page, resolver)
        source = print_page or page
        try:
            await source.pdf(path=str(path), format="A4", print_background=True, margin=PDF_MARGIN)
        except PlaywrightError as e:
            logger.debug(f"PDF printing unavailable ({e}), saving a screenshot")
            path = path.with_suffix(".png")
            await source.screenshot(path=str(path), full_page=True)
    except (PlaywrightError, OSError) as e:
        logger.warning(f"⚠️ Confirmation document not saved (non-critical): {e}")
        return None
    finally:
        if print_page is not None:
            try:
                await print_page.close()
            except PlaywrightError as e:
                logger.debug(f"Print view not closed: {e}")

    logger.success(f"📄 Confirmation saved: {path}")
    return path


class DocumentService:
    """Produces a ticket document per traveller; the default produces none"""

    async def generate_ticket_pdf(
        self, booking: Booking, passenger: Optional[Passenger] = None
    ) -> Optional[Path]:
        logger.debug(f"No document service configured for booking {booking.id}")
        return None


class Mailer:
    """Sends the confirmation e-mail; the default only logs"""

    async def send_confirmation(self, email: str, name: str, pdf_paths: List[Path]) -> bool:
        logger.info(f"📧 Confirmation for {name} <{email}> not sent (no mailer configured)")
        return False


async def notify_confirmation(
    booking: Booking, documents: DocumentService, mailer: Mailer
) -> List[Path]:
    """
    Generate documents and send the confirmation for a Confirmed booking.

    The mail carries the generated tickets, or the saved provider
    confirmation when no ticket was produced. Any failure is logged as a
    warning and swallowed: the purchase already happened and its record
    stays as it is.

    Returns:
        Paths of the documents that were produced
    """
    paths: List[Path] = []
    travellers: List[Optional[Passenger]] = list(booking.passengers) or [None]

    try:
        for passenger in travellers:
            path = await documents.generate_ticket_pdf(booking, passenger)
            if path:
                paths.append(path)

        if paths:
            logger.info(f"📄 {len(paths)} document(s) generated for {booking.id}")

        if booking.email:
            attachments = paths or ([Path(booking.pdf_path)] if booking.pdf_path else [])
            sent = await mailer.send_confirmation(booking.email, booking.name, attachments)
            if sent:
                logger.success(f"📧 Confirmation sent to {booking.email}")
            else:
                logger.warning(f"⚠️ Confirmation e-mail not sent for {booking.id}")
    except Exception as e:
        logger.warning(f"⚠️ Follow-up for {booking.id} failed (non-critical): {e}")

    return paths
