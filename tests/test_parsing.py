from datetime import date, datetime

import pytest

from autobook.countries import (
    calling_code_candidates,
    infer_country_from_destination,
    infer_country_from_phone,
    national_number,
    normalize_country_code,
    preferred_country_code,
)
from autobook.dates import (
    dob_candidates,
    dob_value_matches,
    extract_free_cancellation_deadline,
    months_between,
    parse_iso_date,
    parse_month_header,
)
from autobook.flights import extract_flight_number, extract_total_price
from autobook.pricing import parse_price, per_night
from autobook.reference import (
    extract_flight_reference,
    extract_reference,
    normalize_reference,
    reference_from_element_text,
)
from autobook.settings import PriceFormat


# --- References -------------------------------------------------------------


def test_labelled_reference_wins_over_bare_code():
    text = "Room AB1234567 is ready. Booking reference: 5XK82Q9A"
    assert extract_reference(text) == "5XK82Q9A"


def test_numeric_reference_is_normalized():
    assert extract_reference("Your booking number: 4561.234.789 is confirmed") == "4561234789"
    assert normalize_reference("4 561 234 789") == "4561234789"
    assert normalize_reference("AB-123456") == "AB-123456", "Codes with letters are left alone"


def test_bare_code_is_last_resort():
    assert extract_reference("Thanks! HB12345678 confirmed") == "HB12345678"
    assert extract_reference("Thanks for booking with us") is None
    assert extract_reference("") is None


def test_labels_do_not_match_lower_case_words_as_codes():
    assert extract_reference("Please keep this reference handy for later") is None


def test_reference_element_text_shapes():
    assert reference_from_element_text(" 4561.234.789 ") == "4561234789"
    assert reference_from_element_text("KX9Q2LMW") == "KX9Q2LMW"
    assert reference_from_element_text("Your trip") is None


def test_flight_reference():
    assert extract_flight_reference("Booking reference: QK7Z2M") == "QK7Z2M"
    assert extract_flight_reference("FLIGHT BJ0421 TICKET P4XQ9Z") == "P4XQ9Z"
    assert extract_flight_reference("Total 123456 TND") is None


def test_upper_case_words_are_never_references():
    heading = "Booking confirmation\nCONFIRMED\nThanks, Amira! Your stay in Tunis is booked."
    assert extract_reference(heading) is None
    assert extract_reference("BOOKING REFERENCE: PENDING") is None
    assert reference_from_element_text("CONFIRMED") is None
    assert extract_flight_reference("PNR: PLEASE CHECK YOUR E-MAIL") is None
    assert extract_flight_reference("THANKS FOR FLYING") is None


def test_flight_label_needs_a_word_boundary():
    text = "Postcode: 2078AB\nBooking reference: QK7Z2M"
    assert extract_flight_reference(text) == "QK7Z2M"


# --- Dates ------------------------------------------------------------------


def test_free_cancellation_deadline_formats():
    assert extract_free_cancellation_deadline(
        "Free cancellation until March 14, 2025 at 11:59 PM"
    ) == datetime(2025, 3, 14, 23, 59)
    assert extract_free_cancellation_deadline(
        "Cancellation cost from 12 April 2025: $120"
    ) == datetime(2025, 4, 12)
    assert extract_free_cancellation_deadline(
        "free cancellation before 03/04/2025"
    ) == datetime(2025, 4, 3), "Numeric dates are day-first"
    assert extract_free_cancellation_deadline("Non-refundable") is None


def test_dob_formats_follow_placeholder():
    dob = date(1990, 2, 3)
    assert dob_candidates(dob) == ["03/02/1990", "03-02-1990", "02/03/1990", "1990-02-03"]
    assert dob_candidates(dob, "MM/DD/YYYY")[0] == "02/03/1990"
    assert dob_value_matches("03/02/1990", dob)
    assert not dob_value_matches("03/02/90", dob), "Two-digit years were truncated by the field"


def test_calendar_helpers():
    assert parse_month_header("February 2026") == date(2026, 2, 1)
    assert parse_month_header("February") is None
    assert months_between(date(2025, 11, 1), date(2026, 2, 1)) == 3
    assert parse_iso_date("2025-07-01") == date(2025, 7, 1)
    with pytest.raises(ValueError):
        parse_iso_date("not a date")


# --- Prices -----------------------------------------------------------------


def test_price_parsing_uses_configured_separators():
    assert parse_price("US$1,234") == 1234.0
    assert parse_price("€ 1.234,50", PriceFormat(decimal_separator=",", thousands_separator=".")) == 1234.5
    assert parse_price("1.234") == 1.234, "No guessing under the default format"
    assert parse_price("Sold out") is None
    assert parse_price(None) is None


def test_per_night_rounds_to_cents():
    assert per_night(100.0, 3) == 33.33
    assert per_night(80.0, 0) == 80.0


def test_flight_summary_parsing():
    text = "Fare 300 TND\nTaxes 45.500 TND\nTotal 1 345.500 TND\nFlight BJ 572"
    assert extract_total_price(text) == 1345.5
    assert extract_flight_number(text) == "BJ572"


# --- Countries --------------------------------------------------------------


def test_country_resolution_order():
    assert preferred_country_code("Tunisia", "+33 6 12 34 56 78", "Paris") == "TN"
    assert preferred_country_code("", "+33 6 12 34 56 78", "Istanbul") == "FR"
    assert preferred_country_code("", "0612345678", "Istanbul") == "TR"
    assert preferred_country_code("", "", "Hammamet, Tunisia") == "TN"
    assert preferred_country_code("", "", "") is None


def test_country_helpers():
    assert normalize_country_code("Türkiye") == "TR"
    assert normalize_country_code("gb") == "GB"
    assert normalize_country_code("Atlantis") is None
    assert infer_country_from_phone("00216 20 123 456") == "TN"
    assert infer_country_from_phone("20123456") is None, "Local numbers say nothing"
    assert infer_country_from_destination("New York City") == "US"


def test_calling_codes_and_national_number():
    assert calling_code_candidates("+216 20 123 456") == ["216", "21", "2"]
    assert calling_code_candidates("") == ["216"]
    assert national_number("+216 20 123 456") == "20123456"
    assert national_number("20 123 456") == "20123456"
