"""Exception hierarchy for the booking automation

Each class maps onto one failure kind that the synchronizer knows how to
apply to a Booking (see ``retry.classify_error``).
"""

from typing import List, Optional


class AutobookError(Exception):
    """Base exception for booking automation errors"""

    pass


# Transient faults: retryable, count against the attempt ceiling


class TransientBookingError(AutobookError):
    """A UI or navigation step failed in a way a fresh run may not"""

    pass


class SelectorNotFoundError(TransientBookingError):
    """Raised when every strategy for a target came back empty"""

    def __init__(self, target: str, strategies: Optional[List[str]] = None):
        self.target = target
        self.strategies = strategies or []
        tried = ", ".join(self.strategies) if self.strategies else "none"
        super().__init__(f"Element not found: {target} (tried: {tried})")


class NavigationError(TransientBookingError):
    """Raised when a page load failed after retries"""

    pass


class ResultsNotLoadedError(TransientBookingError):
    """Raised when the results listing never rendered"""

    pass


class StepFailedError(TransientBookingError):
    """Raised when a checkout step did not advance

    Carries the diagnostics collected from the page at the time of failure.
    """

    def __init__(self, message: str, diagnostics: Optional[List[str]] = None):
        self.diagnostics = diagnostics or []
        super().__init__(message)


# Terminal faults: never retried


class PolicyFailure(AutobookError):
    """Raised when the request cannot be satisfied under its constraints"""

    pass


class NoAdmissibleInventoryError(PolicyFailure):
    """No candidate passed both the price band and the payment policy"""

    pass


class MissingMandatoryDataError(AutobookError):
    """Raised when the provider requires personal data the booking lacks"""

    def __init__(self, field_name: str, message: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message or f"Missing mandatory data: {field_name}")


# Payment surface reached: manual review, never auto-retried


class PaymentStepError(AutobookError):
    """Raised for any failure once the payment surface has been reached

    A purchase may or may not have gone through, so the booking has to be
    checked by a person before anything else happens to it.
    """

    pass


class AmbiguousPurchaseError(PaymentStepError):
    """Final purchase was clicked but no reference could be extracted"""

    pass


class PurchaseSkippedError(PaymentStepError):
    """Final purchase click disabled by configuration (dry run)"""

    pass


# Cancellation


class ReservationNotFoundError(AutobookError):
    """Raised when no stored session shows the reservation"""

    def __init__(self, pnr: str, sessions_tried: int):
        self.pnr = pnr
        self.sessions_tried = sessions_tried
        super().__init__(
            f"Booking PNR {pnr} not found in any of the {sessions_tried} accounts."
        )


class CancellationError(AutobookError):
    """Raised when the cancellation flow ran without a positive confirmation"""

    pass


# Record consistency


class BookingStateError(AutobookError):
    """Raised when a save would break a Booking invariant"""

    pass
