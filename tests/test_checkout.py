from datetime import date

import pytest

from autobook.checkout import (
    CheckoutStateMachine,
    advanced_past_details,
    blocking_missing_dob,
    looks_like_details_page,
    stage_of,
)
from autobook.diagnostics import DiagnosticsSink
from autobook.exceptions import (
    AmbiguousPurchaseError,
    MissingMandatoryDataError,
    PaymentStepError,
    PurchaseSkippedError,
    StepFailedError,
)
from autobook.humanizer import Humanizer
from autobook.models import Booking, BookingStatus, CheckoutState, ServiceKind
from autobook.payment import PaymentFiller, reports_missing_fields
from autobook.settings import CardDetails, Settings
from autobook.synchronizer import BookingSynchronizer

from fakes import FakeElement, FakePage, FakeResolver, MemoryStore


def _booking(**overrides):
    data = dict(
        id="h-100",
        name="Amira Ben Salah",
        email="amira@example.com",
        service_type=ServiceKind.HOTEL,
        destination="Paris",
        checkin=date(2025, 3, 15),
        checkout=date(2025, 3, 18),
    )
    data.update(overrides)
    return Booking(**data)


class ScriptedCheckout(CheckoutStateMachine):
    """Skips the form-filling steps so only the tail of the machine runs"""

    fail_in_payment = None

    async def wait_for_details(self, page, timeout_ms=0):
        return None

    async def fill_details(self, page, booking):
        return None

    async def advance_to_payment(self, page, booking, timeout_ms=0):
        return None

    async def fill_payment(self, page):
        self.payment_reached = True
        if self.fail_in_payment:
            raise self.fail_in_payment

    async def submit_purchase(self, page):
        self.submitted = True


def _machine(cls=ScriptedCheckout, resolver=None, settings=None):
    return cls(
        resolver or FakeResolver(),
        Humanizer(enabled=False),
        DiagnosticsSink(),
        settings or Settings(),
    )


@pytest.mark.asyncio
async def test_purchase_without_reference_needs_manual_review():
    page = FakePage(
        url="https://secure.booking.com/confirmation.html",
        text="Thank you, Amira! Your stay in Paris is confirmed.",
    )
    machine = _machine()
    booking = _booking()
    store = MemoryStore([booking])
    sync = BookingSynchronizer(store, max_attempts=2)
    await sync.mark_processing(booking)

    with pytest.raises(AmbiguousPurchaseError) as exc:
        await machine.run(page, booking)
    assert machine.submitted, "The final click happened before extraction"
    assert machine.state == CheckoutState.ABORTED

    await sync.apply_failure(booking, exc.value)
    stored = store.saved["h-100"]

    assert stored.status == BookingStatus.FAILED
    assert stored.needs_review is True, "Ambiguous purchases go to a person"
    assert stored.attempts == 0, "No automatic retry after the payment surface"
    assert stored.pnr == ""


@pytest.mark.asyncio
async def test_reference_on_confirmation_page_is_returned():
    page = FakePage(text="Booking confirmed. Confirmation number: 4561.234.789 - see you soon")
    machine = _machine()

    reference = await machine.run(page, _booking())

    assert reference == "4561234789"
    assert machine.state == CheckoutState.REFERENCE_EXTRACTED


@pytest.mark.asyncio
async def test_reference_element_is_used_when_text_has_no_pattern():
    page = FakePage(text="All set!")
    resolver = FakeResolver({"reference-element": FakeElement(text="  KX9Q2LMW  ")})
    machine = _machine(resolver=resolver)

    assert await machine.run(page, _booking()) == "KX9Q2LMW"


@pytest.mark.asyncio
async def test_step_failure_after_payment_reached_becomes_payment_step_error():
    machine = _machine()
    machine.fail_in_payment = StepFailedError("card iframe detached")

    with pytest.raises(PaymentStepError) as exc:
        await machine.run(FakePage(), _booking())

    assert not isinstance(exc.value, StepFailedError)
    assert isinstance(exc.value.__cause__, StepFailedError)


@pytest.mark.asyncio
async def test_dry_run_stops_before_final_click():
    class DryRunCheckout(ScriptedCheckout):
        submit_purchase = CheckoutStateMachine.submit_purchase

    machine = _machine(DryRunCheckout, settings=Settings(click_final_purchase=False))

    with pytest.raises(PurchaseSkippedError):
        await machine.run(FakePage(), _booking())


@pytest.mark.asyncio
async def test_required_dob_without_data_is_missing_mandatory_data():
    resolver = FakeResolver({"dob-required": FakeElement()})
    machine = _machine(CheckoutStateMachine, resolver=resolver)

    with pytest.raises(MissingMandatoryDataError) as exc:
        await machine.fill_dob(FakePage(), _booking())
    assert exc.value.field_name == "date_of_birth"


@pytest.mark.asyncio
async def test_missing_dob_is_fine_when_page_does_not_ask():
    machine = _machine(CheckoutStateMachine)
    assert await machine.fill_dob(FakePage(), _booking()) is False


@pytest.mark.asyncio
async def test_card_fields_filled_through_resolver():
    fields = {
        "card-number": FakeElement(),
        "card-expiry": FakeElement(),
        "card-cvc": FakeElement(),
    }
    filler = PaymentFiller(FakeResolver(fields), DiagnosticsSink())
    card = CardDetails(number="4111111111111111", holder="A B", exp_month="7", exp_year="2028", cvc="123")

    used = await filler.fill_card(FakePage(), card)

    assert set(used) == {"card-number", "card-expiry", "card-cvc"}, "Holder is optional"
    assert fields["card-expiry"].value == "07/28"
    assert fields["card-number"].value == "4111111111111111"


@pytest.mark.asyncio
async def test_missing_card_field_is_a_payment_step_error():
    filler = PaymentFiller(FakeResolver({"card-number": FakeElement()}), DiagnosticsSink())
    card = CardDetails(number="4111111111111111", exp_month="07", exp_year="28", cvc="123")

    with pytest.raises(PaymentStepError):
        await filler.fill_card(FakePage(), card)


@pytest.mark.asyncio
async def test_unconfigured_card_is_a_payment_step_error():
    filler = PaymentFiller(FakeResolver(), DiagnosticsSink())
    with pytest.raises(PaymentStepError):
        await filler.fill_card(FakePage(), CardDetails())


def test_details_page_signals():
    assert looks_like_details_page("Almost done! Enter your details", "https://x/hotel", 1)
    assert looks_like_details_page("", "https://secure.booking.com/book.html?stage=1", 0)
    assert looks_like_details_page("", "https://www.booking.com/hotel/fr/x.html", 6)
    assert not looks_like_details_page(
        "Where are you going? Enter your details", "https://www.booking.com/index.html", 6
    ), "Search form text vetoes markers and input counts"
    assert not looks_like_details_page("", "https://www.booking.com/hotel/fr/x.html", 25)
    assert not looks_like_details_page("", "https://www.booking.com/hotel/fr/x.html", 2)


def test_advance_detection():
    assert advanced_past_details(1, 2, True, False), "Stage counter moved"
    assert advanced_past_details(None, None, False, False), "Details field disappeared"
    assert advanced_past_details(1, 1, True, True), "Payment markers appeared"
    assert not advanced_past_details(1, 1, True, False)


def test_stage_counter():
    assert stage_of("https://secure.booking.com/book.html?hotel_id=1&stage=2") == 2
    assert stage_of("https://secure.booking.com/book.html") is None
    assert stage_of("https://secure.booking.com/book.html?stage=x") is None


def test_dob_blocking_classification():
    lines = ["invalid: Date of birth - Please fill out this field."]
    assert blocking_missing_dob(lines, has_dob=False)
    assert not blocking_missing_dob(lines, has_dob=True)
    assert not blocking_missing_dob(["error: Enter a valid phone number"], has_dob=False)


def test_missing_fields_wording():
    assert reports_missing_fields("Please fill in all the required fields to continue")
    assert not reports_missing_fields("Your card details are safe")
