import pytest
from twocaptcha import ApiException, TimeoutException

from autobook.challenge import ChallengeSolver, TwoCaptchaSolver, solve_page_challenge


class FakeTwoCaptcha:
    """Stands in for the SDK client; replays one result or error"""

    def __init__(self, result):
        self.result = result
        self.calls = []

    def recaptcha(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


class FakePage:
    def __init__(self, site_key):
        self.url = "https://www.nouvelair.com/en/booking/passengers"
        self.site_key = site_key
        self.injected = []

    async def evaluate(self, script, arg=None):
        if arg is None:
            return self.site_key
        self.injected.append(arg)
        return 1


@pytest.mark.asyncio
async def test_v3_token_is_requested_with_action_and_score():
    client = FakeTwoCaptcha({"captchaId": "77", "code": "token-abc"})
    solver = TwoCaptchaSolver("key-1", client=client)

    token = await solver.solve("https://www.nouvelair.com/en", "site-key", action="booking")

    assert token == "token-abc"
    call = client.calls[0]
    assert call["sitekey"] == "site-key"
    assert call["url"] == "https://www.nouvelair.com/en"
    assert call["version"] == "v3"
    assert call["action"] == "booking"
    assert call["score"] == 0.7


@pytest.mark.asyncio
async def test_service_error_yields_no_token():
    solver = TwoCaptchaSolver("key-1", client=FakeTwoCaptcha(ApiException("ERROR_ZERO_BALANCE")))
    assert await solver.solve("https://example.com", "site-key") is None


@pytest.mark.asyncio
async def test_timeout_yields_no_token():
    solver = TwoCaptchaSolver("key-1", client=FakeTwoCaptcha(TimeoutException("timeout 120 exceeded")))
    assert await solver.solve("https://example.com", "site-key") is None


@pytest.mark.asyncio
async def test_empty_result_yields_no_token():
    solver = TwoCaptchaSolver("key-1", client=FakeTwoCaptcha({"captchaId": "1"}))
    assert await solver.solve("https://example.com", "site-key") is None


@pytest.mark.asyncio
async def test_no_key_means_no_request():
    client = FakeTwoCaptcha({"code": "never"})
    assert await TwoCaptchaSolver("", client=client).solve("https://example.com", "site-key") is None
    assert client.calls == []
    assert await ChallengeSolver().solve("https://example.com", "site-key") is None


@pytest.mark.asyncio
async def test_token_is_injected_into_the_page():
    page = FakePage("site-key")
    solver = TwoCaptchaSolver("key-1", client=FakeTwoCaptcha({"code": "token-abc"}))

    assert await solve_page_challenge(page, solver, action="booking")
    assert page.injected == ["token-abc"]


@pytest.mark.asyncio
async def test_page_without_challenge_is_left_alone():
    page = FakePage(None)
    client = FakeTwoCaptcha({"code": "token-abc"})

    assert not await solve_page_challenge(page, TwoCaptchaSolver("key-1", client=client))
    assert client.calls == []
