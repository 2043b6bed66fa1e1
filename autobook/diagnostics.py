"""Per-step diagnostics records and form validation scraping"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import orjson
from loguru import logger
from playwright.async_api import Error as PlaywrightError

_FORM_DIAGNOSTICS_JS = """
() => {
    const out = [];
    const describe = el => {
        const label = (el.labels && el.labels[0] && el.labels[0].innerText) ||
            el.getAttribute('aria-label') || el.name || el.id || '';
        return label.trim();
    };
    document.querySelectorAll('input:invalid, select:invalid, textarea:invalid').forEach(el => {
        out.push(`invalid: ${describe(el)} - ${el.validationMessage}`);
    });
    document.querySelectorAll('[aria-invalid="true"]').forEach(el => {
        out.push(`aria-invalid: ${describe(el)}`);
    });
    document.querySelectorAll(
        '[role="alert"], .bui-form__error, .bui-alert--error, [data-testid*="error"]'
    ).forEach(el => {
        const text = (el.innerText || '').trim();
        if (text) out.push(`error: ${text.slice(0, 200)}`);
    });
    return out;
}
"""


async def collect_form_diagnostics(page) -> List[str]:
    """
    Collect why a form refused to advance.

    Returns:
        Lines such as "invalid: Date of birth - Please fill out this field"
    """
    try:
        return await page.evaluate(_FORM_DIAGNOSTICS_JS)
    except PlaywrightError as e:
        logger.debug(f"Could not collect form diagnostics: {e}")
        return []


class DiagnosticsSink:
    """
    Fire-and-forget step records for debugging provider UI drift.

    Records are appended as JSON lines to ``<directory>/<booking_id>.jsonl``
    with an optional screenshot beside them. A failure to write is logged
    and never reaches the booking flow.
    """

    def __init__(self, directory: Optional[Path] = None, screenshots: bool = True):
        self.directory = directory
        self.screenshots = screenshots
        self.booking_id = "unassigned"
        self.records: List[Dict[str, Any]] = []

        if directory:
            directory.mkdir(parents=True, exist_ok=True)

    def bind(self, booking_id: str) -> None:
        """Attribute following records to a booking"""
        self.booking_id = booking_id
        self.records = []

    async def record(
        self,
        step: str,
        outcome: str,
        page=None,
        detail: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Store one structured record.

        Args:
            step: Step name, e.g. "details.advance"
            outcome: "ok", "failed", "skipped", ...
            page: Page to screenshot (optional)
            detail: Free-form detail, never shown to end users
        """
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "booking_id": self.booking_id,
            "step": step,
            "outcome": outcome,
        }
        if detail:
            entry["detail"] = detail

        logger.debug(f"📋 [{self.booking_id}] {step}: {outcome}" + (f" ({detail})" if detail else ""))

        try:
            if self.directory and page is not None and self.screenshots:
                stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
                shot = self.directory / f"{self.booking_id}_{step.replace('.', '_')}_{stamp}.png"
                await page.screenshot(path=str(shot), full_page=True)
                entry["screenshot"] = str(shot)

            if self.directory:
                async with aiofiles.open(self.directory / f"{self.booking_id}.jsonl", "ab") as f:
                    await f.write(orjson.dumps(entry) + b"\n")
        except (OSError, PlaywrightError) as e:
            logger.warning(f"⚠️ Diagnostics write failed for {step}: {e}")

        self.records.append(entry)
        return entry
