from pathlib import Path

import pytest

from autobook.settings import ProxySettings, Settings


def test_from_env_reads_card_billing_and_toggles():
    env = {
        "CARD_NUMBER": "4111 1111 1111 1111",
        "CARD_HOLDER": "Amira Ben Salah",
        "CARD_EXP_MONTH": "3",
        "CARD_EXP_YEAR": "2029",
        "CARD_CVC": "321",
        "BILLING_CITY": "Sousse",
        "BILLING_COUNTRY": "TN",
        "PROXY": "10.0.0.5:8080:user:pass",
        "PRICE_DECIMAL_SEPARATOR": ",",
        "PRICE_THOUSANDS_SEPARATOR": ".",
        "PRICE_CURRENCY": "EUR",
        "HEADLESS": "false",
        "BOOKING_CLICK_FINAL": "no",
        "BOOKING_MAX_ATTEMPTS": "4",
        "WORKER_POLL_INTERVAL": "2.5",
        "SESSIONS_DIR": "/srv/sessions",
    }

    settings = Settings.from_env(env)

    assert settings.card.number == "4111111111111111"
    assert settings.card.expiry == "03/29"
    assert settings.card.is_complete
    assert settings.billing.city == "Sousse"
    assert settings.proxy == ProxySettings("10.0.0.5", 8080, "user", "pass")
    assert settings.price_format.decimal_separator == ","
    assert settings.price_format.currency == "EUR"
    assert settings.headless is False
    assert settings.click_final_purchase is False
    assert settings.max_attempts == 4
    assert settings.poll_interval == 2.5
    assert settings.sessions_dir == Path("/srv/sessions")


def test_defaults_from_empty_env():
    settings = Settings.from_env({})

    assert settings.headless is True
    assert settings.click_final_purchase is True
    assert settings.proxy is None
    assert settings.max_attempts == 2
    assert not settings.card.is_complete


def test_bad_boolean_is_rejected():
    with pytest.raises(ValueError):
        Settings.from_env({"HEADLESS": "sometimes"})


def test_card_repr_hides_number():
    settings = Settings.from_env({"CARD_NUMBER": "4111111111111111", "CARD_CVC": "321"})
    shown = repr(settings.card)
    assert "4111111111111111" not in shown
    assert "321" not in shown
    assert "1111" in shown


def test_proxy_parsing():
    proxy = ProxySettings.parse("proxy.example.com:3128")
    assert proxy.to_playwright_dict() == {"server": "http://proxy.example.com:3128"}

    with_auth = ProxySettings.parse("1.2.3.4:9000:alice:s3cret")
    assert with_auth.to_playwright_dict() == {
        "server": "http://1.2.3.4:9000",
        "username": "alice",
        "password": "s3cret",
    }

    with pytest.raises(ValueError):
        ProxySettings.parse("just-a-host")
