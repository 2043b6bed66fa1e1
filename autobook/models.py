"""Data models and enums for the booking automation"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import BookingStateError


class BookingStatus(Enum):
    """Lifecycle of a Booking record"""

    PENDING = "Pending"  # Waiting for the worker
    PROCESSING = "Processing"  # Held by exactly one worker
    CONFIRMED = "Confirmed"  # Reference extracted
    FAILED = "Failed"  # Terminal until an operator intervenes
    CANCELLED = "Cancelled"  # Terminal


class ServiceKind(Enum):
    """What is being purchased"""

    HOTEL = "Hotel"
    FLIGHT = "Flight"


class FailureKind(Enum):
    """Error categories for different handling strategies"""

    TRANSIENT = "transient"  # Count an attempt, maybe retry
    POLICY = "policy"  # Terminal, retrying changes nothing
    MISSING_DATA = "missing_data"  # Terminal, fix the input
    PAYMENT_STEP = "payment_step"  # Terminal, manual review


class CheckoutState(Enum):
    """Checkout state machine states"""

    ITEM_SELECTED = "item_selected"
    DETAILS_ENTRY = "details_entry"
    PAYMENT_ENTRY = "payment_entry"
    PURCHASE_SUBMITTED = "purchase_submitted"
    REFERENCE_EXTRACTED = "reference_extracted"
    ABORTED = "aborted"


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def split_name(full_name: str) -> Tuple[str, str]:
    """Split a free-text name into (first, last); single words repeat"""
    parts = (full_name or "").strip().split()
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], parts[0]
    return " ".join(parts[:-1]), parts[-1]


@dataclass
class Passenger:
    """One traveller on a flight booking"""

    first_name: str
    last_name: str
    passport: str = ""
    date_of_birth: Optional[date] = None
    nationality: str = ""
    title: str = "MR"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["date_of_birth"] = self.date_of_birth.isoformat() if self.date_of_birth else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Passenger":
        return cls(
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            passport=data.get("passport", "") or "",
            date_of_birth=_parse_date(data.get("date_of_birth")),
            nationality=data.get("nationality", "") or "",
            title=data.get("title", "MR") or "MR",
        )


@dataclass
class Booking:
    """
    The unit of work and the system of record.

    Only the synchronizer changes ``status``; everything else reads it.
    """

    id: str
    name: str
    email: str
    service_type: ServiceKind
    phone: str = ""
    country: str = ""

    # Hotel request
    destination: str = ""
    checkin: Optional[date] = None
    checkout: Optional[date] = None
    adults: int = 1
    min_price: float = 0.0
    max_price: float = 0.0

    # Flight request
    departure: str = ""
    arrival: str = ""
    flight_date: Optional[date] = None
    return_date: Optional[date] = None
    passengers: List[Passenger] = field(default_factory=list)

    # Lead traveller date of birth
    date_of_birth: Optional[date] = None

    # Outcome
    price: Optional[float] = None
    currency: str = ""
    hotel_name: str = ""
    hotel_address: str = ""
    flight_number: str = ""
    pnr: str = ""
    platform: str = ""
    free_cancellation_until: Optional[datetime] = None
    pdf_path: str = ""

    # Lifecycle
    status: BookingStatus = BookingStatus.PENDING
    attempts: int = 0
    error_message: str = ""
    needs_review: bool = False
    note: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @property
    def nights(self) -> int:
        """Trip length used as the per-night divisor (at least 1)"""
        if not self.checkin or not self.checkout:
            return 1
        return max(1, (self.checkout - self.checkin).days)

    @property
    def lead_date_of_birth(self) -> Optional[date]:
        if self.date_of_birth:
            return self.date_of_birth
        if self.passengers and self.passengers[0].date_of_birth:
            return self.passengers[0].date_of_birth
        return None

    def has_request_fields(self) -> bool:
        """Check that the fields the engine needs for this kind are present"""
        if self.service_type == ServiceKind.HOTEL:
            return bool(self.destination and self.checkin and self.checkout)
        return bool(self.departure and self.arrival and self.flight_date)

    def is_eligible(self) -> bool:
        """Pending, no reference yet, and enough data to run"""
        return (
            self.status == BookingStatus.PENDING
            and not self.pnr
            and self.has_request_fields()
        )

    def check_invariants(self) -> None:
        """
        Raise if the record is in a state that must never be persisted.

        Raises:
            BookingStateError: Confirmed without reference, or reference with
                a status other than Confirmed/Cancelled
        """
        if self.status == BookingStatus.CONFIRMED and not self.pnr:
            raise BookingStateError(f"Booking {self.id}: Confirmed without a reference")
        if self.pnr and self.status not in (BookingStatus.CONFIRMED, BookingStatus.CANCELLED):
            raise BookingStateError(
                f"Booking {self.id}: has reference {self.pnr} but status {self.status.value}"
            )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["service_type"] = self.service_type.value
        data["status"] = self.status.value
        data["passengers"] = [p.to_dict() for p in self.passengers]
        for key in ("checkin", "checkout", "flight_date", "return_date", "date_of_birth"):
            value = getattr(self, key)
            data[key] = value.isoformat() if value else None
        for key in ("created_at", "updated_at", "free_cancellation_until"):
            value = getattr(self, key)
            data[key] = value.isoformat() if value else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            email=data.get("email", ""),
            service_type=ServiceKind(data.get("service_type", ServiceKind.HOTEL.value)),
            phone=data.get("phone", "") or "",
            country=data.get("country", "") or "",
            destination=data.get("destination", "") or "",
            checkin=_parse_date(data.get("checkin")),
            checkout=_parse_date(data.get("checkout")),
            adults=int(data.get("adults") or 1),
            min_price=float(data.get("min_price") or 0),
            max_price=float(data.get("max_price") or 0),
            departure=data.get("departure", "") or "",
            arrival=data.get("arrival", "") or "",
            flight_date=_parse_date(data.get("flight_date")),
            return_date=_parse_date(data.get("return_date")),
            passengers=[Passenger.from_dict(p) for p in data.get("passengers") or []],
            date_of_birth=_parse_date(data.get("date_of_birth")),
            price=data.get("price"),
            currency=data.get("currency", "") or "",
            hotel_name=data.get("hotel_name", "") or "",
            hotel_address=data.get("hotel_address", "") or "",
            flight_number=data.get("flight_number", "") or "",
            pnr=data.get("pnr", "") or "",
            platform=data.get("platform", "") or "",
            free_cancellation_until=_parse_datetime(data.get("free_cancellation_until")),
            pdf_path=data.get("pdf_path", "") or "",
            status=BookingStatus(data.get("status", BookingStatus.PENDING.value)),
            attempts=int(data.get("attempts") or 0),
            error_message=data.get("error_message", "") or "",
            needs_review=bool(data.get("needs_review", False)),
            note=data.get("note", "") or "",
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(timezone.utc),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class SelectionPolicy:
    """Hard constraints a candidate must satisfy"""

    min_price: float
    max_price: float
    nights: int = 1
    reject_prepayment: bool = True

    def admits_price(self, per_night: float) -> bool:
        """Inclusive price band check"""
        return self.min_price <= per_night <= self.max_price


@dataclass
class CandidateOffer:
    """One listing entry inspected during selection"""

    name: str
    total_price: float
    per_night_price: float
    index: int
    address: str = ""
    link: str = ""
    requires_prepayment: Optional[bool] = None  # None until inspected


@dataclass
class BookingOutcome:
    """What a successful run hands to the synchronizer"""

    pnr: str
    platform: str
    price: Optional[float] = None
    currency: str = ""
    hotel_name: str = ""
    hotel_address: str = ""
    flight_number: str = ""
    free_cancellation_until: Optional[datetime] = None
    pdf_path: str = ""  # Saved confirmation document, if any
