import json
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError

import autobook.cancellation as cancellation
from autobook.cancellation import (
    CancellationEngine,
    account_label,
    cancellation_confirmed,
    pnr_on_page,
)
from autobook.exceptions import (
    BookingStateError,
    CancellationError,
    NavigationError,
    ReservationNotFoundError,
)
from autobook.models import Booking, BookingStatus, ServiceKind
from autobook.sessions import SessionProvider
from autobook.settings import Settings


def _confirmed(**overrides):
    data = dict(
        id="c-1",
        name="Nour Ayari",
        email="nour@example.com",
        service_type=ServiceKind.HOTEL,
        destination="Rome",
        checkin=date(2025, 6, 1),
        checkout=date(2025, 6, 4),
        status=BookingStatus.CONFIRMED,
        pnr="4561234789",
    )
    data.update(overrides)
    return Booking(**data)


def _engine(tmp_path: Path) -> CancellationEngine:
    settings = Settings(diagnostics_dir=tmp_path / "diagnostics")
    return CancellationEngine(settings, SessionProvider(tmp_path / "sessions"))


def test_only_explicit_wording_counts_as_cancelled():
    assert cancellation_confirmed("Your booking has been cancelled. A refund is on its way.")
    assert cancellation_confirmed("", "https://secure.booking.com/cancellation_confirmation.html?x=1")
    assert not cancellation_confirmed("Free cancellation until 3 June. Cancel booking")
    assert not cancellation_confirmed("")


def test_reference_match_ignores_separators():
    assert pnr_on_page("4561234789", "Confirmation number: 4561.234.789")
    assert pnr_on_page("4561.234.789", "Booking 4561 234 789 - Hotel Roma")
    assert not pnr_on_page("4561234789", "Confirmation number: 4561.234.780")
    assert not pnr_on_page("", "anything")


def test_account_label_from_session_file():
    assert account_label(Path("auth_alice.json")) == "alice"
    assert account_label(Path("auth-bob.json")) == "bob"
    assert account_label(Path("auth.json")) == "auth"
    assert account_label(Path("carol.json")) == "carol"


@pytest.mark.asyncio
async def test_processing_booking_is_never_cancelled(tmp_path: Path):
    engine = _engine(tmp_path)
    booking = _confirmed(status=BookingStatus.PROCESSING, pnr="")

    with pytest.raises(BookingStateError):
        await engine.cancel(booking)


@pytest.mark.asyncio
async def test_booking_without_reference_is_refused(tmp_path: Path):
    engine = _engine(tmp_path)

    with pytest.raises(BookingStateError):
        await engine.cancel(_confirmed(status=BookingStatus.PENDING, pnr=""))


@pytest.mark.asyncio
async def test_not_found_when_no_account_is_available(tmp_path: Path):
    engine = _engine(tmp_path)

    with pytest.raises(ReservationNotFoundError) as excinfo:
        await engine.cancel(_confirmed())

    assert excinfo.value.sessions_tried == 0
    assert "4561234789" in str(excinfo.value)


class ScriptedCancellation(CancellationEngine):
    """Per-account lookup results instead of real trip pages"""

    def __init__(self, settings, sessions, lookups):
        super().__init__(settings, sessions)
        self.lookups = lookups
        self.searched = []
        self.cancelled_on = []

    async def find_reservation(self, page, pnr):
        account = page.account
        self.searched.append(account)
        result = self.lookups[account]
        if isinstance(result, BaseException):
            raise result
        return result

    async def cancel_on_page(self, page):
        self.cancelled_on.append(page.account)


@pytest.fixture
def fake_browser(monkeypatch):
    @asynccontextmanager
    async def browser_page(settings, storage_state=None):
        yield None, SimpleNamespace(account=account_label(storage_state))

    monkeypatch.setattr(cancellation, "browser_page", browser_page)


def _sessions(tmp_path: Path, *accounts) -> SessionProvider:
    directory = tmp_path / "sessions"
    directory.mkdir()
    for account in accounts:
        (directory / f"auth_{account}.json").write_text(
            json.dumps({"cookies": [], "origins": []}), encoding="utf-8"
        )
    return SessionProvider(directory)


@pytest.mark.asyncio
async def test_failing_account_does_not_stop_the_search(tmp_path: Path, fake_browser):
    engine = ScriptedCancellation(
        Settings(diagnostics_dir=tmp_path / "diagnostics"),
        _sessions(tmp_path, "a", "b"),
        {"a": NavigationError("account a: home page timed out"), "b": True},
    )

    note = await engine.cancel(_confirmed())

    assert engine.searched == ["a", "b"]
    assert engine.cancelled_on == ["b"]
    assert note == "Auto-cancelled via b account."


@pytest.mark.asyncio
async def test_every_account_failing_means_not_found(tmp_path: Path, fake_browser):
    engine = ScriptedCancellation(
        Settings(diagnostics_dir=tmp_path / "diagnostics"),
        _sessions(tmp_path, "a", "b"),
        {"a": PlaywrightError("Target closed"), "b": False},
    )

    with pytest.raises(ReservationNotFoundError) as excinfo:
        await engine.cancel(_confirmed())

    assert excinfo.value.sessions_tried == 2
    assert engine.cancelled_on == []


@pytest.mark.asyncio
async def test_cancellation_failure_after_finding_is_not_retried_elsewhere(tmp_path: Path, fake_browser):
    class RefusingCancellation(ScriptedCancellation):
        async def cancel_on_page(self, page):
            self.cancelled_on.append(page.account)
            raise CancellationError("Cancellation not confirmed by the provider")

    engine = RefusingCancellation(
        Settings(diagnostics_dir=tmp_path / "diagnostics"),
        _sessions(tmp_path, "a", "b"),
        {"a": True, "b": True},
    )

    with pytest.raises(CancellationError):
        await engine.cancel(_confirmed())

    assert engine.cancelled_on == ["a"]
