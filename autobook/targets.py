"""Declarative catalog of UI targets

Each entry lists its strategies most specific first. When a provider
changes its markup, this is the file to edit.
"""

from .resolver import Css, FrameScan, Label, Proximity, Text, target

# --- Shared -----------------------------------------------------------------

POPUP_DISMISS = target(
    "popup-dismiss",
    Css('[aria-label="Dismiss sign-in info."]'),
    Css('[data-testid="genius-banner-close"]'),
    Css("#onetrust-accept-btn-handler"),
    Css('button:has-text("Accept")'),
    Css('[role="dialog"] [aria-label="Close"]'),
)

SHOW_FIELDS = target(
    "show-hidden-fields",
    Text("Show fields", role="button"),
    Css('[data-testid*="show-more-fields"]'),
    Css('button[aria-expanded="false"][aria-controls*="address" i]'),
)

SIGN_IN = target(
    "sign-in",
    Css('button[aria-label*="Sign in"]'),
    Css('a[aria-label*="Sign in"]'),
    Css('button:has-text("Sign in")'),
)

PROFILE_AVATAR = target(
    "profile-avatar",
    Css('[data-testid="header-profile-button"]'),
    Css('[aria-label*="profile" i]'),
    Css('[aria-label*="account" i]'),
)

# --- Hotel search -----------------------------------------------------------

DESTINATION_INPUT = target(
    "destination-input",
    Css('input[name="ss"]'),
    Label("Where are you going?"),
    Css('[data-testid="destination-container"] input'),
)

AUTOCOMPLETE_FIRST = target(
    "autocomplete-first",
    Css('[data-testid="autocomplete-result"]'),
    Css('[data-testid="autocomplete-results-options"] li'),
    Css('li[role="option"]'),
)

DATE_PICKER = target(
    "date-picker-open",
    Css('[data-testid="date-display-field-start"]'),
    Css('[data-testid="searchbox-dates-container"]'),
    Text("Check-in date", role="button"),
)

NEXT_MONTH = target(
    "calendar-next-month",
    Css('button[aria-label="Next month"]'),
    Css('[data-testid="searchbox-datepicker-next-button"]'),
    Css(".bui-calendar__control--next"),
    Css('[class*="calendar"] button[aria-label*="Next" i]'),
)

SEARCH_SUBMIT = target(
    "search-submit",
    Css('[data-testid="searchbox-search-button"]'),
    Css('button[type="submit"]'),
    Text("Search", role="button"),
)

RESULTS_MARKER = target(
    "results-marker",
    Css('[data-testid="property-card"]'),
    Css("#searchresultsTmpl"),
    Css('[data-testid="property-card-container"]'),
)

FREE_CANCELLATION_FILTER = target(
    "free-cancellation-filter",
    Css('[data-filters-item="fc:fc=1"] input'),
    Label("Free cancellation"),
    Text("Free cancellation"),
)

# Listing card parts are read in bulk, not resolved one by one
PROPERTY_CARD = '[data-testid="property-card"]'
CARD_PRICE = '[data-testid="price-and-discounted-price"]'
CARD_TITLE = '[data-testid="title"]'
CARD_LINK = '[data-testid="title-link"], a[data-testid="title-link"], h3 a'
CARD_ADDRESS = '[data-testid="address"]'

# --- Hotel detail page ------------------------------------------------------

ROOM_QUANTITY = target(
    "room-quantity",
    Css('select[name*="nr_rooms"]'),
    Css('select.hprt-nos-select'),
)

RESERVE = target(
    "reserve",
    Text("I'll reserve", role="button"),
    Css('[data-testid="recommended-booking-option-cta"]'),
    Text("Reserve", role="button"),
    Text("Book now", role="button"),
)

# --- Guest details ----------------------------------------------------------

FIRST_NAME = target(
    "first-name",
    Css('input[name="firstname"]'),
    Css('input[name="firstName"]'),
    Label("First name"),
    Proximity("first name"),
)

LAST_NAME = target(
    "last-name",
    Css('input[name="lastname"]'),
    Css('input[name="lastName"]'),
    Label("Last name"),
    Proximity("last name"),
)

EMAIL = target(
    "email",
    Css('input[name="email"]'),
    Css('input[type="email"]'),
    Label("Email address"),
    Proximity("email"),
)

EMAIL_CONFIRM = target(
    "email-confirm",
    Css('input[name="email_confirm"]'),
    Label("Confirm email address"),
)

PHONE = target(
    "phone",
    Css('input[name="phone"]'),
    Css('input[type="tel"]'),
    Label("Phone number"),
    Proximity("phone"),
)

COUNTRY_SELECT = target(
    "country-select",
    Css('select[name="cc1"]'),
    Css('select[name="country"]'),
    Label("Country/region"),
)

CALLING_CODE_SELECT = target(
    "calling-code-select",
    Css('select[name*="phone_country" i]'),
    Css('select[aria-label*="country code" i]'),
    Css('select[name*="dial" i]'),
)

DOB_REQUIRED = target(
    "dob-required",
    Css('input:visible[required][name*="birth" i]'),
    Css('input:visible[required][name*="dob" i]'),
    Css('input:visible[aria-required="true"][name*="birth" i]'),
    Css('select:visible[required][name*="birth" i]'),
)

DOB_INPUT = target(
    "dob-input",
    Css('input[name*="birth" i]'),
    Css('input[name*="dob" i]'),
    Css('input[id*="birth" i]'),
    Label("Date of birth"),
    Proximity("date of birth"),
)

DOB_DAY_SELECT = target("dob-day", Css('select[name*="birth_day" i]'), Css('select[name*="dob_day" i]'))
DOB_MONTH_SELECT = target("dob-month", Css('select[name*="birth_month" i]'), Css('select[name*="dob_month" i]'))
DOB_YEAR_SELECT = target("dob-year", Css('select[name*="birth_year" i]'), Css('select[name*="dob_year" i]'))

MAIN_GUEST_RADIO = target(
    "main-guest",
    Label("I'm the main guest"),
    Css('input[type="radio"][name*="booker_is_guest" i][value="1"]'),
)

LEISURE_RADIO = target(
    "leisure-trip",
    Label("Leisure"),
    Css('input[type="radio"][value="leisure"]'),
)

ARRIVAL_TIME_SELECT = target(
    "arrival-time",
    Css('select[name*="checkin_eta" i]'),
    Css('select[name*="arrival" i]'),
    Label("Add your estimated arrival time"),
)

DETAILS_ADVANCE = target(
    "details-advance",
    Text("Next: Final details", role="button"),
    Css('button[type="submit"]:has-text("Next")'),
    Text("Next", role="button"),
    Text("Continue", role="button"),
)

# --- Payment ----------------------------------------------------------------

PAYMENT_READY = (
    'input[autocomplete*="cc-number"], [data-fieldtype="encryptedCardNumber"], '
    'input[name*="cardnumber" i], [data-testid="payment-methods"], '
    'iframe[title*="card" i], iframe[name*="payment" i]'
)

PAYMENT_MARKERS = (
    'input[autocomplete*="cc-number"], [data-testid="payment-methods"], '
    '[data-testid*="payment"]'
)

CARD_NUMBER = target(
    "card-number",
    Label("Card number"),
    Css('input[autocomplete="cc-number"]'),
    Css('input[name*="cardnumber" i]'),
    Css('[data-fieldtype="encryptedCardNumber"]'),
    FrameScan(r"card\s*number|encryptedcardnumber|cardnumber"),
)

CARD_EXPIRY = target(
    "card-expiry",
    Label("Expiry date"),
    Label("Expiration date"),
    Css('input[autocomplete="cc-exp"]'),
    Css('input[name*="expir" i]'),
    Css('[data-fieldtype="encryptedExpiryDate"]'),
    FrameScan(r"expiry|expiration|mm\s*/\s*yy"),
)

CARD_CVC = target(
    "card-cvc",
    Label("CVC"),
    Label("Security code"),
    Css('input[autocomplete="cc-csc"]'),
    Css('input[name*="cvc" i], input[name*="cvv" i]'),
    Css('[data-fieldtype="encryptedSecurityCode"]'),
    FrameScan(r"cvc|cvv|security\s*code"),
)

CARD_HOLDER = target(
    "card-holder",
    Label("Cardholder's name"),
    Label("Name on card"),
    Css('input[autocomplete="cc-name"]'),
    Css('input[name*="holder" i]'),
    FrameScan(r"card\s*holder|cardholder|holder\s*name|name\s*on\s*card"),
)

BILLING_POSTAL = target("billing-postal", Css('input[name*="zip" i]'), Css('input[name*="postal" i]'), Label("Postal code"))
BILLING_ADDRESS = target("billing-address", Css('input[name="address1"]'), Css('input[name*="address" i]'), Label("Address"))
BILLING_CITY = target("billing-city", Css('input[name="city"]'), Css('input[name*="city" i]'), Label("City"))
BILLING_STATE = target("billing-state", Css('input[name*="state" i]'), Css('select[name*="state" i]'), Label("State"))
BILLING_COUNTRY = target("billing-country", Css('select[name*="billing_country" i]'), Css('select[name*="country" i]'))

REQUIRED_CONSENTS = target(
    "required-consents",
    Css('input[type="checkbox"][required]:not(:checked)'),
    Css('input[type="checkbox"][aria-required="true"]:not(:checked)'),
)

PAY_AT_PROPERTY = target(
    "pay-at-property",
    Label("Pay at the property"),
    Css('input[type="radio"][value*="property" i]'),
    Text("Pay at the property"),
)

FINAL_PURCHASE = target(
    "final-purchase",
    Text("Complete booking", role="button"),
    Text("Confirm booking", role="button"),
    Text("Book with commitment to pay", role="button"),
    Text("Book now", role="button"),
    Css('button[type="submit"]:has-text("Book")'),
    Css('[data-testid="final-booking-button"]'),
    Css('button[name="book"]'),
)

CONFIRMATION_MARKER = (
    '[data-testid="confirmation-status"], .confirmation-header, .bui-alert--success'
)

REFERENCE_ELEMENT = target(
    "reference-element",
    Css('[data-testid*="confirmation-number"]'),
    Css('[data-testid*="booking-number"]'),
    Css(".confirmation-number"),
    Css('[class*="confirmation"] strong'),
)

PRINT_CONFIRMATION = target(
    "print-confirmation",
    Text("Print full version", role="button"),
    Text("Print full version", role="link"),
    Text("Print confirmation", role="button"),
    Text("Print confirmation", role="link"),
    Css('[data-testid="print-confirmation"]'),
    Css('[data-testid="print-button"]'),
    Css(".print-btn"),
)

# --- Cancellation -----------------------------------------------------------

UPCOMING_TRIP = target("upcoming-trip", Text("Your upcoming trip"), Text("Upcoming"))

TRIP_CARD = target(
    "trip-card",
    Css('[data-testid="trip-card"]'),
    Css('a[href*="mystays"], a[href*="myreservations"]'),
    Css('a[href*="confirmation.en"]'),
    Text("View booking", role="link"),
    Css('a:has-text("Confirmed")'),
)

OFFERS_MODAL_CLOSE = target(
    "offers-modal-close",
    Css('#gemOffersModal [aria-label="Close"]'),
    Css('#gemOffersModal button'),
)

CANCEL_OPTIONS = target(
    "cancellation-options",
    Text("Cancellation options"),
    Text("Cancel booking", role="button"),
    Text("Cancel booking", role="link"),
)

CANCEL_REASON_SELECT = target("cancel-reason-select", Css("select"))
CANCEL_REASON_RADIO = target("cancel-reason-radio", Css('input[type="radio"]'))

CANCEL_CONTINUE = target(
    "cancel-continue",
    Text("Continue", role="button"),
    Text("Next", role="button"),
    Text("Proceed", role="button"),
)

CANCEL_CONFIRM = target(
    "cancel-confirm",
    Text("Cancel booking", role="button"),
    Text("Yes, cancel", role="button"),
    Text("Confirm cancellation", role="button"),
    Text("Confirm", role="button"),
)

# --- Flights ----------------------------------------------------------------

AIRPORT_INPUTS = ".MuiAutocomplete-input"
AIRPORT_OPTION_FALLBACK = 'li[role="option"]:first-child'

DEPARTURE_DATE = target(
    "departure-date",
    Css('input[placeholder*="Departure"]'),
    Label("Departure"),
)

RETURN_DATE = target(
    "return-date",
    Css('input[placeholder*="Return"]'),
    Label("Return"),
)

ONE_WAY = target("one-way", Label("One way"), Text("One way"))

CALENDAR_NEXT = target(
    "flight-calendar-next",
    Css('button:has-text("›")'),
    Css('button[aria-label*="next month" i]'),
)

CALENDAR_HEADER = ".MuiPickersCalendarHeader-label, [role='presentation'] .MuiTypography-root"

ADULTS_INCREMENT = target(
    "adults-increment",
    Css('[data-testid="adults-increment"]'),
    Css('[aria-label*="increase adults" i]'),
)

FLIGHT_SEARCH = target(
    "flight-search",
    Text("Search", role="button"),
    Css('button[type="submit"]'),
)

FARE_SELECT = target(
    "fare-select",
    Css('[class*="fare"] button'),
    Text("Select", role="button"),
)

FLIGHT_CONTINUE = target(
    "flight-continue",
    Text("Continue", role="button"),
    Text("Next", role="button"),
)

ANCILLARY_SKIP = target(
    "ancillary-skip",
    Text("Skip", role="button"),
    Text("No thanks", role="button"),
    Text("Continue without", role="button"),
)

PAY_LATER = target(
    "pay-later",
    Label("Pay later"),
    Text("Pay Later"),
    Css('input[value*="later" i]'),
)

TERMS_CHECKBOX = target("terms", Css('input[type="checkbox"]:not(:checked)'))

FLIGHT_SUBMIT = target(
    "flight-submit",
    Text("Confirm", role="button"),
    Text("Book", role="button"),
    Css('button[type="submit"]'),
)
