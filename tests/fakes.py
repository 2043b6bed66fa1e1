"""In-memory stand-ins for the browser, the resolver and the store"""

import copy
from typing import Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autobook.exceptions import SelectorNotFoundError
from autobook.models import Booking, BookingStatus
from autobook.resolver import Resolution
from autobook.store import BookingStore


class MemoryStore(BookingStore):
    """Keeps deep copies so callers cannot mutate stored state by accident"""

    def __init__(self, bookings: Optional[List[Booking]] = None):
        self.saved: Dict[str, Booking] = {}
        self.saves = 0
        for booking in bookings or []:
            self.saved[booking.id] = copy.deepcopy(booking)

    async def save(self, booking: Booking) -> None:
        booking.check_invariants()
        self.saved[booking.id] = copy.deepcopy(booking)
        self.saves += 1

    async def find_by_id(self, booking_id: str) -> Optional[Booking]:
        booking = self.saved.get(booking_id)
        return copy.deepcopy(booking) if booking else None

    async def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return [copy.deepcopy(b) for b in self.saved.values() if b.status == status]

    async def find_next_eligible_pending(self) -> Optional[Booking]:
        eligible = sorted(
            (b for b in self.saved.values() if b.is_eligible()), key=lambda b: b.created_at
        )
        return copy.deepcopy(eligible[0]) if eligible else None


class FakeElement:
    def __init__(self, text: str = "", value: str = ""):
        self.text = text
        self.value = value
        self.clicks = 0
        self.filled: List[str] = []

    async def click(self, **kwargs):
        self.clicks += 1

    async def fill(self, value: str):
        self.filled.append(value)
        self.value = value

    async def input_value(self) -> str:
        return self.value

    async def press_sequentially(self, value: str, delay: int = 0):
        self.value = value

    async def inner_text(self) -> str:
        return self.text

    async def check(self):
        self.clicks += 1

    async def get_attribute(self, name: str):
        return None


class FakeResolver:
    """Resolves target names listed in ``found``; everything else is absent"""

    def __init__(self, found: Optional[Dict[str, object]] = None):
        self.found = found or {}
        self.lookups: List[str] = []

    async def locate(self, target, scope, ceiling_ms=None):
        self.lookups.append(target.name)
        element = self.found.get(target.name)
        if element is None:
            return None
        return Resolution(target.name, "fake", element)

    async def require(self, target, scope, ceiling_ms=None):
        resolution = await self.locate(target, scope, ceiling_ms)
        if resolution is None:
            raise SelectorNotFoundError(target.name, [s.name for s in target.strategies])
        return resolution

    async def click(self, target, scope, ceiling_ms=None):
        resolution = await self.locate(target, scope, ceiling_ms)
        return resolution.strategy if resolution else None

    async def click_all_visible(self, target, scope) -> int:
        return 0

    async def expand_hidden_sections(self, scope, disclosure) -> int:
        return 0


class FakeKeyboard:
    def __init__(self):
        self.pressed: List[str] = []

    async def press(self, key: str):
        self.pressed.append(key)


class FakePage:
    """Just enough of a Playwright page for the flows under test"""

    def __init__(self, url: str = "about:blank", text: str = ""):
        self.url = url
        self.text = text
        self.frames: List[object] = []
        self.visited: List[str] = []
        self.keyboard = FakeKeyboard()

    async def inner_text(self, selector: str) -> str:
        return self.text

    async def wait_for_timeout(self, ms: int):
        return None

    async def wait_for_selector(self, selector: str, timeout: int = 0):
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def wait_for_load_state(self, state: str = "load", timeout: int = 0):
        return None

    async def screenshot(self, path: str, full_page: bool = False):
        return None
