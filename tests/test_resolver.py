import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autobook.exceptions import SelectorNotFoundError
from autobook.resolver import Css, FrameScan, Label, Resolver, Text, target


class StubElement:
    """One DOM node; hidden nodes time out, slow ones wait out their timeout first"""

    def __init__(self, name, visible=True, slow=False, attributes="", broken=False):
        self.name = name
        self.visible = visible
        self.slow = slow
        self.attributes = attributes
        self.broken = broken
        self.clicks = 0
        self.waited_ms = []

    @property
    def first(self):
        return self

    def nth(self, index):
        return self

    async def count(self):
        return 1

    async def wait_for(self, state="visible", timeout=None):
        self.waited_ms.append(timeout)
        if self.broken:
            raise PlaywrightError("Execution context was destroyed")
        if self.visible:
            return
        if self.slow:
            await asyncio.sleep(timeout / 1000 + 0.01)
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def is_visible(self):
        return self.visible

    async def click(self):
        self.clicks += 1


class StubLocator:
    def __init__(self, elements, descriptions=None):
        self.elements = elements
        self.descriptions = descriptions

    @property
    def first(self):
        return self.nth(0)

    def nth(self, index):
        if index < len(self.elements):
            return self.elements[index]
        return StubElement("missing", visible=False)

    async def count(self):
        return len(self.elements)

    async def evaluate_all(self, script):
        if self.descriptions is not None:
            return self.descriptions
        return [element.attributes for element in self.elements]


class StubScope:
    """Page or frame answering queries from a table; records every query"""

    def __init__(self, by_query=None, frames=None, name="", url="about:blank", title=None):
        self.by_query = by_query or {}
        self.frames = frames or []
        self.name = name
        self.url = url
        self.title = title
        self.queries = []

    def _lookup(self, key):
        self.queries.append(key)
        return self.by_query.get(key, StubLocator([]))

    def locator(self, selector):
        return self._lookup(selector)

    def get_by_label(self, text, exact=False):
        return self._lookup(f"label={text}")

    def get_by_text(self, text, exact=False):
        return self._lookup(f"text={text}")

    def get_by_role(self, role, name=None, exact=False):
        return self._lookup(f"{role}={name}")

    async def frame_element(self):
        if self.title is None:
            raise PlaywrightError("Frame has no owner element")
        return _Owner(self.title)


class _Owner:
    def __init__(self, title):
        self.title = title

    async def get_attribute(self, name):
        return self.title if name == "title" else None


EMAIL = target(
    "email",
    Css("#email"),
    Label("Email address"),
    Text("Email", role="textbox"),
)


@pytest.mark.asyncio
async def test_strategies_are_tried_in_order_and_winner_is_reported():
    field = StubElement("label-email")
    scope = StubScope({"label=Email address": StubLocator([field])})

    resolution = await Resolver(strategy_timeout_ms=50).locate(EMAIL, scope)

    assert resolution is not None
    assert resolution.element is field
    assert resolution.strategy == "label:Email address"
    assert scope.queries == ["#email", "label=Email address"], "Later strategies are never queried"


@pytest.mark.asyncio
async def test_most_specific_strategy_wins_when_several_match():
    css_field = StubElement("css")
    scope = StubScope({
        "#email": StubLocator([css_field]),
        "label=Email address": StubLocator([StubElement("label")]),
    })

    resolution = await Resolver(strategy_timeout_ms=50).locate(EMAIL, scope)

    assert resolution.element is css_field
    assert resolution.strategy == "css:#email"


@pytest.mark.asyncio
async def test_hidden_duplicate_falls_back_to_visible_copy():
    hidden = StubElement("mobile-copy", visible=False)
    shown = StubElement("desktop-copy")
    scope = StubScope({"#email": StubLocator([hidden, shown])})

    resolution = await Resolver(strategy_timeout_ms=50).locate(EMAIL, scope)

    assert resolution.element is shown
    assert resolution.strategy == "css:#email"


@pytest.mark.asyncio
async def test_ceiling_cuts_off_later_strategies():
    slow_first = StubElement("slow-1", visible=False, slow=True)
    slow_second = StubElement("slow-2", visible=False, slow=True)
    never_reached = StubElement("visible")
    scope = StubScope({
        "#email": StubLocator([slow_first]),
        "label=Email address": StubLocator([slow_second]),
        "textbox=Email": StubLocator([never_reached]),
    })
    resolver = Resolver(strategy_timeout_ms=100, ceiling_ms=150)

    resolution = await resolver.locate(EMAIL, scope)

    assert resolution is None
    assert slow_first.waited_ms == [100]
    assert slow_second.waited_ms[0] < 100, "Second strategy only gets what is left of the ceiling"
    assert "textbox=Email" not in scope.queries


@pytest.mark.asyncio
async def test_ceiling_override_per_call():
    scope = StubScope({"textbox=Email": StubLocator([StubElement("late")])})
    resolver = Resolver(strategy_timeout_ms=50, ceiling_ms=10)

    resolution = await resolver.locate(EMAIL, scope, ceiling_ms=5000)

    assert resolution is not None
    assert resolution.strategy == "text:textbox=Email"


@pytest.mark.asyncio
async def test_playwright_error_in_one_strategy_moves_on():
    scope = StubScope({
        "#email": StubLocator([StubElement("detached", broken=True)]),
        "label=Email address": StubLocator([StubElement("ok")]),
    })

    resolution = await Resolver(strategy_timeout_ms=50).locate(EMAIL, scope)

    assert resolution.strategy == "label:Email address"


@pytest.mark.asyncio
async def test_require_raises_with_every_strategy_named():
    with pytest.raises(SelectorNotFoundError) as excinfo:
        await Resolver(strategy_timeout_ms=10).require(EMAIL, StubScope())

    assert excinfo.value.target == "email"
    assert excinfo.value.strategies == ["css:#email", "label:Email address", "text:textbox=Email"]


@pytest.mark.asyncio
async def test_frame_scan_finds_card_field_in_child_frame():
    main = StubScope({"input": StubLocator([StubElement("search", attributes="q search")])})
    card = StubElement("card", attributes="cardnumber cc-number Card number")
    expiry = StubElement("expiry", attributes="exp-date")
    payment = StubScope(
        {"input": StubLocator([card, expiry])},
        name="payment-frame",
        url="https://pay.example.com/fields",
        title="Secure payment input",
    )
    page = StubScope(frames=[main, payment])
    card_number = target("card-number", Css('input[name="cardnumber"]'), FrameScan(r"card.?number|cc-number"))

    resolution = await Resolver(strategy_timeout_ms=50).locate(card_number, page)

    assert resolution.element is card
    assert resolution.strategy == "frame:card.?number|cc-number"


@pytest.mark.asyncio
async def test_frame_scan_uses_frame_hint_when_fields_are_anonymous():
    cvc_field = StubElement("cvc", attributes="")
    main = StubScope({"input": StubLocator([])})
    hosted = StubScope(
        {"input": StubLocator([cvc_field])},
        name="braintree-hosted-field-cvv",
        url="https://assets.braintreegateway.com/hosted-fields/frame.html",
        title="Secure Credit Card Frame - CVV",
    )
    page = StubScope(frames=[main, hosted])

    resolution = await Resolver(strategy_timeout_ms=50).locate(
        target("card-cvc", FrameScan(r"cvv|cvc|security code")), page
    )

    assert resolution.element is cvc_field


@pytest.mark.asyncio
async def test_frame_scan_without_match_finds_nothing():
    main = StubScope({"input": StubLocator([StubElement("q", attributes="q search")])})
    page = StubScope(frames=[main])

    resolution = await Resolver(strategy_timeout_ms=10).locate(
        target("card-number", FrameScan(r"card.?number")), page
    )

    assert resolution is None


@pytest.mark.asyncio
async def test_click_returns_winning_strategy():
    button = StubElement("reserve")
    scope = StubScope({"button=Reserve": StubLocator([button])})
    reserve = target("reserve", Css(".missing"), Text("Reserve", role="button"))

    assert await Resolver(strategy_timeout_ms=10).click(reserve, scope) == "text:button=Reserve"
    assert button.clicks == 1
    assert await Resolver(strategy_timeout_ms=10).click(reserve, StubScope()) is None


@pytest.mark.asyncio
async def test_click_all_visible_and_expand_hidden_sections():
    first = StubElement("a")
    hidden = StubElement("b", visible=False)
    second = StubElement("c")
    scope = StubScope({
        ".show-fields": StubLocator([first, hidden]),
        "button=Show fields": StubLocator([second]),
    })
    disclosure = target("show-fields", Css(".show-fields"), Text("Show fields", role="button"))
    resolver = Resolver(strategy_timeout_ms=10)

    assert await resolver.expand_hidden_sections(scope, disclosure) == 2
    assert (first.clicks, hidden.clicks, second.clicks) == (1, 0, 1)
    assert await resolver.click_all_visible(disclosure, StubScope()) == 0
