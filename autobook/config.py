"""Configuration constants for the booking automation"""

from pathlib import Path

# Provider endpoints
HOTEL_BASE_URL = "https://www.booking.com"
HOTEL_RESULTS_PATH = "/searchresults.html"
FLIGHT_BASE_URL = "https://www.nouvelair.com"
HOTEL_PLATFORM = "booking.com"
FLIGHT_PLATFORM = "nouvelair"

# Local storage defaults
DEFAULT_BOOKINGS_DIR = Path("./data/bookings")
DEFAULT_SESSIONS_DIR = Path("./sessions")
DEFAULT_SESSION_GLOB = "auth*.json"
DEFAULT_DIAGNOSTICS_DIR = Path("./diagnostics")
DEFAULT_DOCUMENTS_DIR = Path("./downloads")
DEFAULT_LOG_FILE = Path("./logs/autobook.log")

# Browser context
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:128.0) "
    "Gecko/20100101 Firefox/128.0"
)
LOCALE = "en-US"
VIEWPORT = {"width": 1280, "height": 720}

# Timeouts (milliseconds)
NAVIGATION_TIMEOUT_MS = 60000
RESULTS_TIMEOUT_MS = 30000
STRATEGY_TIMEOUT_MS = 2500  # Per-strategy visibility wait
RESOLVE_CEILING_MS = 12000  # Whole lookup
PAYMENT_READY_TIMEOUT_MS = 45000
CONFIRMATION_TIMEOUT_MS = 30000
PRINT_VIEW_TIMEOUT_MS = 15000  # New tab opened by the print control
FILTER_WAIT_MS = 15000  # Settle time after filters are applied
SETTLE_MS = 1500

# Navigation retry (single page loads only)
MAX_RETRIES = 2
INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 30.0
BACKOFF_MULTIPLIER = 2.0
JITTER_RANGE = (0.8, 1.2)

# Calendar paging
MAX_CALENDAR_PAGES = 24  # Forward pages before the picker gives up
MAX_FLIGHT_CALENDAR_PAGES = 12

# Worker
POLL_INTERVAL = 10.0  # Seconds between polls
DEFAULT_MAX_ATTEMPTS = 2  # One run plus one retry

# Error text
MAX_ERROR_LENGTH = 200

# Details page heuristics
MIN_DETAILS_INPUTS = 2  # Exclusive
MAX_DETAILS_INPUTS = 20  # Exclusive

# Challenge solver (2Captcha)
CAPTCHA_TIMEOUT = 120  # Seconds the solver may take for one token
CAPTCHA_POLL_INTERVAL = 5
CAPTCHA_MIN_SCORE = 0.7

# Human behaviour ranges
DELAY_RANGE_MS = (500, 2000)
TYPING_DELAY_RANGE_MS = (50, 150)
TYPING_PAUSE_CHANCE = 0.1
TYPING_PAUSE_RANGE_MS = (200, 500)
MOUSE_STEPS_RANGE = (2, 4)
SCROLL_RANGE_PX = (100, 400)
SCROLL_DOWN_CHANCE = 0.7
CLICK_OFFSET_RANGE = (0.3, 0.7)  # Fraction of the bounding box
