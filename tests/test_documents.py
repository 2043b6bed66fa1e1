from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autobook.notifications import save_confirmation_pdf

from fakes import FakeElement, FakePage, FakeResolver


class _ExpectPage:
    def __init__(self, new_page, timeout):
        self.new_page = new_page
        self.timeout = timeout

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        if self.new_page is None:
            raise PlaywrightTimeoutError(f"Timeout {self.timeout}ms exceeded while waiting for event \"page\"")
        return False

    @property
    def value(self):
        async def _page():
            return self.new_page

        return _page()


class FakeContext:
    def __init__(self, new_page=None):
        self.new_page = new_page

    def expect_page(self, timeout=None):
        return _ExpectPage(self.new_page, timeout)


class DocumentPage(FakePage):
    """Page that can print itself; ``can_print`` mimics Chromium vs Firefox"""

    def __init__(self, can_print=True, can_screenshot=True, new_page=None):
        super().__init__(url="https://secure.booking.com/confirmation.html")
        self.can_print = can_print
        self.can_screenshot = can_screenshot
        self.context = FakeContext(new_page)
        self.printed = []
        self.closed = False

    async def pdf(self, path, **options):
        if not self.can_print:
            raise PlaywrightError("PDF generation is only supported for Headless Chromium")
        Path(path).write_bytes(b"%PDF-1.4")
        self.printed.append(path)

    async def screenshot(self, path, full_page=False):
        if not self.can_screenshot:
            raise PlaywrightError("Target page, context or browser has been closed")
        Path(path).write_bytes(b"\x89PNG")

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_confirmation_page_is_printed_without_print_control(tmp_path: Path):
    page = DocumentPage()

    path = await save_confirmation_pdf(page, FakeResolver(), tmp_path / "downloads", "4561234789")

    assert path == tmp_path / "downloads" / "Booking_4561234789.pdf"
    assert path.read_bytes().startswith(b"%PDF")


@pytest.mark.asyncio
async def test_print_view_tab_is_preferred_and_closed(tmp_path: Path):
    print_tab = DocumentPage()
    page = DocumentPage(new_page=print_tab)
    print_button = FakeElement("Print full version")
    resolver = FakeResolver({"print-confirmation": print_button})

    path = await save_confirmation_pdf(page, resolver, tmp_path, "4561234789")

    assert print_button.clicks == 1
    assert print_tab.printed == [str(path)]
    assert page.printed == [], "The confirmation tab itself is only a fallback"
    assert print_tab.closed


@pytest.mark.asyncio
async def test_no_new_tab_falls_back_to_confirmation_page(tmp_path: Path):
    page = DocumentPage(new_page=None)
    resolver = FakeResolver({"print-confirmation": FakeElement("Print confirmation")})

    path = await save_confirmation_pdf(page, resolver, tmp_path, "4561234789")

    assert page.printed == [str(path)]


@pytest.mark.asyncio
async def test_browser_without_pdf_printing_saves_a_screenshot(tmp_path: Path):
    page = DocumentPage(can_print=False)

    path = await save_confirmation_pdf(page, FakeResolver(), tmp_path, "4561234789")

    assert path == tmp_path / "Booking_4561234789.png"
    assert path.exists()


@pytest.mark.asyncio
async def test_document_failure_is_swallowed(tmp_path: Path):
    page = DocumentPage(can_print=False, can_screenshot=False)

    assert await save_confirmation_pdf(page, FakeResolver(), tmp_path, "4561234789") is None
