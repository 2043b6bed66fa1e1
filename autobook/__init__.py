"""Travel booking automation
Browser-driven hotel and flight purchasing with a crash-safe booking worker
"""

__version__ = "0.1.0"

from .cancellation import CancellationEngine
from .engine import BookingEngine
from .exceptions import (
    AmbiguousPurchaseError,
    AutobookError,
    MissingMandatoryDataError,
    NoAdmissibleInventoryError,
    PaymentStepError,
    ReservationNotFoundError,
    TransientBookingError,
)
from .models import Booking, BookingStatus, FailureKind, Passenger, ServiceKind
from .resolver import Resolver
from .settings import Settings
from .store import JsonBookingStore
from .synchronizer import BookingSynchronizer, sanitize_error_message
from .worker import BookingWorker

__all__ = [
    "__version__",
    "AmbiguousPurchaseError",
    "AutobookError",
    "Booking",
    "BookingEngine",
    "BookingStatus",
    "BookingSynchronizer",
    "BookingWorker",
    "CancellationEngine",
    "FailureKind",
    "JsonBookingStore",
    "MissingMandatoryDataError",
    "NoAdmissibleInventoryError",
    "Passenger",
    "PaymentStepError",
    "ReservationNotFoundError",
    "Resolver",
    "ServiceKind",
    "Settings",
    "TransientBookingError",
    "sanitize_error_message",
]
