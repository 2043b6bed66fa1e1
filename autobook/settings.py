"""Explicit runtime settings built once from the environment"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from .config import (
    DEFAULT_BOOKINGS_DIR,
    DEFAULT_DIAGNOSTICS_DIR,
    DEFAULT_DOCUMENTS_DIR,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_SESSION_GLOB,
    DEFAULT_SESSIONS_DIR,
    FILTER_WAIT_MS,
    POLL_INTERVAL,
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class CardDetails:
    """Payment card used on the provider's payment surface"""

    number: str = ""
    holder: str = ""
    exp_month: str = ""
    exp_year: str = ""
    cvc: str = ""

    @property
    def is_complete(self) -> bool:
        return all([self.number, self.exp_month, self.exp_year, self.cvc])

    @property
    def expiry(self) -> str:
        """Expiry in MM/YY form"""
        month = self.exp_month.zfill(2)
        year = self.exp_year[-2:]
        return f"{month}/{year}"

    def __repr__(self) -> str:
        # Never let the PAN or CVC reach a log line
        tail = self.number[-4:] if self.number else ""
        return f"CardDetails(number='****{tail}', holder={self.holder!r})"


@dataclass
class BillingDetails:
    """Billing sub-fields some payment forms demand"""

    postal_code: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""


@dataclass
class ProxySettings:
    """Configuration for a single upstream proxy"""

    host: str
    port: int
    username: str = ""
    password: str = ""

    @classmethod
    def parse(cls, spec: str) -> "ProxySettings":
        """
        Parse ``host:port`` or ``host:port:username:password``.

        Raises:
            ValueError: If the spec has the wrong shape
        """
        parts = spec.strip().split(":")
        if len(parts) == 2:
            return cls(host=parts[0], port=int(parts[1]))
        if len(parts) == 4:
            return cls(host=parts[0], port=int(parts[1]), username=parts[2], password=parts[3])
        raise ValueError(f"Invalid proxy spec (expected host:port[:user:pass]): {spec!r}")

    def to_playwright_dict(self) -> Dict[str, str]:
        """Convert to Playwright proxy format"""
        proxy = {"server": f"http://{self.host}:{self.port}"}
        if self.username:
            proxy["username"] = self.username
            proxy["password"] = self.password
        return proxy


@dataclass
class PriceFormat:
    """How a provider renders amounts; no locale guessing"""

    decimal_separator: str = "."
    thousands_separator: str = ","
    currency: str = "USD"


@dataclass
class Settings:
    """
    Everything the automation needs that is not on the Booking itself.

    Built once at startup (``Settings.from_env``) and passed in explicitly;
    nothing below the CLI reads the process environment.
    """

    card: CardDetails = field(default_factory=CardDetails)
    billing: BillingDetails = field(default_factory=BillingDetails)
    proxy: Optional[ProxySettings] = None
    price_format: PriceFormat = field(default_factory=PriceFormat)

    captcha_api_key: str = ""
    headless: bool = True
    click_final_purchase: bool = True
    accept_consents: bool = True
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    filter_wait_ms: int = FILTER_WAIT_MS
    poll_interval: float = POLL_INTERVAL

    sessions_dir: Path = DEFAULT_SESSIONS_DIR
    session_glob: str = DEFAULT_SESSION_GLOB
    bookings_dir: Path = DEFAULT_BOOKINGS_DIR
    diagnostics_dir: Path = DEFAULT_DIAGNOSTICS_DIR
    documents_dir: Path = DEFAULT_DOCUMENTS_DIR

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Settings instance

        Raises:
            ValueError: If a value is present but malformed
        """
        env = os.environ if env is None else env

        proxy = None
        proxy_spec = env.get("PROXY", "").strip()
        if proxy_spec:
            proxy = ProxySettings.parse(proxy_spec)

        return cls(
            card=CardDetails(
                number=env.get("CARD_NUMBER", "").replace(" ", ""),
                holder=env.get("CARD_HOLDER", ""),
                exp_month=env.get("CARD_EXP_MONTH", ""),
                exp_year=env.get("CARD_EXP_YEAR", ""),
                cvc=env.get("CARD_CVC", ""),
            ),
            billing=BillingDetails(
                postal_code=env.get("BILLING_POSTAL", ""),
                address=env.get("BILLING_ADDRESS", ""),
                city=env.get("BILLING_CITY", ""),
                state=env.get("BILLING_STATE", ""),
                country=env.get("BILLING_COUNTRY", ""),
            ),
            proxy=proxy,
            price_format=PriceFormat(
                decimal_separator=env.get("PRICE_DECIMAL_SEPARATOR", "."),
                thousands_separator=env.get("PRICE_THOUSANDS_SEPARATOR", ","),
                currency=env.get("PRICE_CURRENCY", "USD"),
            ),
            captcha_api_key=env.get("CAPTCHA_API_KEY", ""),
            headless=_env_bool(env, "HEADLESS", True),
            click_final_purchase=_env_bool(env, "BOOKING_CLICK_FINAL", True),
            accept_consents=_env_bool(env, "BOOKING_ACCEPT_CONSENTS", True),
            max_attempts=_env_int(env, "BOOKING_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            filter_wait_ms=_env_int(env, "BOOKING_FILTER_WAIT_MS", FILTER_WAIT_MS),
            poll_interval=float(env.get("WORKER_POLL_INTERVAL") or POLL_INTERVAL),
            sessions_dir=Path(env.get("SESSIONS_DIR") or DEFAULT_SESSIONS_DIR),
            session_glob=env.get("SESSION_GLOB") or DEFAULT_SESSION_GLOB,
            bookings_dir=Path(env.get("BOOKINGS_DIR") or DEFAULT_BOOKINGS_DIR),
            diagnostics_dir=Path(env.get("DIAGNOSTICS_DIR") or DEFAULT_DIAGNOSTICS_DIR),
            documents_dir=Path(env.get("DOCUMENTS_DIR") or DEFAULT_DOCUMENTS_DIR),
        )
