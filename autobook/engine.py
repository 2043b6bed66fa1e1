"""Dispatch a booking to the flow for its service kind"""

from typing import Optional

from loguru import logger

from .challenge import ChallengeSolver, TwoCaptchaSolver
from .diagnostics import DiagnosticsSink
from .exceptions import MissingMandatoryDataError
from .flights import FlightBookingFlow
from .hotels import HotelBookingFlow
from .humanizer import Humanizer
from .models import Booking, BookingOutcome, ServiceKind
from .resolver import Resolver
from .sessions import SessionProvider
from .settings import Settings


class BookingEngine:
    """Entry point of the automation core: one booking in, one outcome out"""

    def __init__(
        self,
        settings: Settings,
        sessions: SessionProvider,
        diagnostics: Optional[DiagnosticsSink] = None,
        humanizer: Optional[Humanizer] = None,
        solver: Optional[ChallengeSolver] = None,
    ):
        self.settings = settings
        self.diagnostics = diagnostics or DiagnosticsSink(settings.diagnostics_dir)
        humanizer = humanizer or Humanizer()
        resolver = Resolver()
        solver = solver or TwoCaptchaSolver(settings.captcha_api_key)

        self.hotels = HotelBookingFlow(settings, sessions, self.diagnostics, humanizer, resolver)
        self.flights = FlightBookingFlow(settings, self.diagnostics, humanizer, resolver, solver)

    async def run(self, booking: Booking) -> BookingOutcome:
        """
        Purchase what the booking asks for.

        Raises:
            MissingMandatoryDataError: The booking lacks the request fields for its kind
            AutobookError: Whatever the flow raised; classified by the synchronizer
        """
        self.diagnostics.bind(booking.id)
        if not booking.has_request_fields():
            raise MissingMandatoryDataError(
                "request", f"{booking.service_type.value} booking is missing search fields"
            )

        logger.info("=" * 60)
        logger.info(f"📦 Booking {booking.id} ({booking.service_type.value}) for {booking.name}")
        logger.info("=" * 60)

        if booking.service_type == ServiceKind.HOTEL:
            return await self.hotels.book(booking)
        return await self.flights.book(booking)
