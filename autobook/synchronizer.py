"""Applies run outcomes to Booking records; the only writer of status"""

import re
from datetime import datetime, timezone
from typing import Optional, Union

from loguru import logger

from .config import DEFAULT_MAX_ATTEMPTS, MAX_ERROR_LENGTH
from .models import Booking, BookingOutcome, BookingStatus, FailureKind
from .retry import classify_error
from .store import BookingStore

UNKNOWN_ERROR = "An unknown error occurred while processing the booking."
GENERIC_ERROR = "An error occurred while processing the booking."

# Checked in order against the raw text
FRIENDLY_ERRORS = [
    ("ERR_INVALID_ARGUMENT", "External site navigation failed."),
    ("CERT_AUTHORITY", "External site certificate error."),
    ("Navigation timeout", "External site took too long to respond."),
    ("Timeout", "External site took too long to respond."),
    ("No hotels found", "No options found matching the criteria."),
]

_CALL_LOG = re.compile(r"(?:Call log:|=+\s*logs\s*=+).*", re.DOTALL)
_NAVIGATING = re.compile(r'navigating to "[^"]*",?\s*waiting until "[^"]*"')
_URL = re.compile(r"https?://\S+")
_SELECTOR_LIST = re.compile(r"\s*\(tried:.*$", re.DOTALL)
_FRAME_LINE = re.compile(r'^(?:at |\^|File "|Traceback )')


def sanitize_error_message(error: Optional[Union[str, BaseException]]) -> str:
    """
    Reduce an error to a short message safe to show outside the system.

    Drops Playwright call logs, URLs, stack frames and selector lists, maps
    a few known causes to friendly text and caps the length.
    """
    if error is None:
        return UNKNOWN_ERROR
    raw = error if isinstance(error, str) else str(error)
    if not raw.strip():
        return UNKNOWN_ERROR

    for needle, friendly in FRIENDLY_ERRORS:
        if needle in raw:
            return friendly

    text = _CALL_LOG.sub("", raw)
    text = _NAVIGATING.sub("", text)
    text = _SELECTOR_LIST.sub("", text)
    text = _URL.sub("", text)

    lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and not _FRAME_LINE.match(stripped):
            lines.append(stripped)
    text = re.sub(r"\s+", " ", " ".join(lines)).strip(" :-")

    if not text:
        return GENERIC_ERROR
    if len(text) > MAX_ERROR_LENGTH:
        text = text[: MAX_ERROR_LENGTH - 3] + "..."
    return text


class BookingSynchronizer:
    """
    Translates outcomes into persisted Booking state.

    Args:
        store: Persistence collaborator
        max_attempts: Transient failures allowed before a booking is Failed
    """

    def __init__(self, store: BookingStore, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.store = store
        self.max_attempts = max(1, max_attempts)

    async def _save(self, booking: Booking) -> Booking:
        booking.updated_at = datetime.now(timezone.utc)
        await self.store.save(booking)
        return booking

    async def mark_processing(self, booking: Booking) -> Booking:
        booking.status = BookingStatus.PROCESSING
        booking.error_message = ""
        logger.info(f"⚙️ Booking {booking.id} → Processing")
        return await self._save(booking)

    async def revert_to_pending(self, booking: Booking) -> Booking:
        """Hand an interrupted booking back to the queue; attempts are untouched"""
        if booking.status != BookingStatus.PROCESSING:
            return booking
        booking.status = BookingStatus.CONFIRMED if booking.pnr else BookingStatus.PENDING
        logger.warning(f"↩️ Booking {booking.id} → {booking.status.value} (interrupted)")
        return await self._save(booking)

    async def apply_success(self, booking: Booking, outcome: BookingOutcome) -> Booking:
        booking.pnr = outcome.pnr
        booking.platform = outcome.platform
        booking.price = outcome.price
        booking.currency = outcome.currency
        booking.hotel_name = outcome.hotel_name or booking.hotel_name
        booking.hotel_address = outcome.hotel_address or booking.hotel_address
        booking.flight_number = outcome.flight_number or booking.flight_number
        booking.free_cancellation_until = outcome.free_cancellation_until
        booking.pdf_path = outcome.pdf_path or booking.pdf_path
        booking.status = BookingStatus.CONFIRMED
        booking.error_message = ""
        logger.success(f"✅ Booking {booking.id} → Confirmed ({booking.pnr})")
        return await self._save(booking)

    async def apply_failure(
        self, booking: Booking, error: BaseException, captured_pnr: Optional[str] = None
    ) -> Booking:
        """
        Record a failed run.

        Args:
            booking: The booking that was processed
            error: What the run raised
            captured_pnr: Reference obtained earlier in the same run, if any
        """
        kind = classify_error(error)
        booking.error_message = sanitize_error_message(error)
        logger.error(f"❌ Booking {booking.id} failed ({kind.value}): {error}")

        if booking.pnr or captured_pnr:
            booking.pnr = booking.pnr or captured_pnr
            booking.status = BookingStatus.CONFIRMED
            logger.warning(f"⚠️ Reference {booking.pnr} already captured, keeping Confirmed")
        elif kind in (FailureKind.POLICY, FailureKind.MISSING_DATA):
            booking.status = BookingStatus.FAILED
        elif kind == FailureKind.PAYMENT_STEP:
            booking.status = BookingStatus.FAILED
            booking.needs_review = True
            logger.error(f"🚨 Booking {booking.id} flagged for manual review")
        else:
            booking.attempts += 1
            if booking.attempts < self.max_attempts:
                booking.status = BookingStatus.PENDING
                logger.info(f"🔁 Attempt {booking.attempts}/{self.max_attempts}, back to Pending")
            else:
                booking.status = BookingStatus.FAILED
                logger.error(f"🛑 Attempts exhausted ({booking.attempts}/{self.max_attempts})")

        return await self._save(booking)

    async def attach_document(self, booking: Booking, path: str) -> Booking:
        """Remember the generated ticket; status is not touched"""
        booking.pdf_path = path
        return await self._save(booking)

    async def mark_cancelled(self, booking: Booking, note: str) -> Booking:
        booking.status = BookingStatus.CANCELLED
        booking.note = note
        logger.success(f"🗑️ Booking {booking.id} → Cancelled: {note}")
        return await self._save(booking)
