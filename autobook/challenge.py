"""Bot-challenge (reCAPTCHA v3) solving via 2Captcha"""

import asyncio
from typing import Any, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from twocaptcha import NetworkException, SolverExceptions, TimeoutException, TwoCaptcha

from .config import CAPTCHA_MIN_SCORE, CAPTCHA_POLL_INTERVAL, CAPTCHA_TIMEOUT
from .retry import retry_with_backoff

_SITE_KEY_JS = """
() => {
    const el = document.querySelector('[data-sitekey]');
    if (el) return el.getAttribute('data-sitekey');
    for (const s of document.querySelectorAll('script[src*="recaptcha"]')) {
        const m = s.src.match(/[?&]render=([^&]+)/);
        if (m && m[1] !== 'explicit') return m[1];
    }
    return null;
}
"""

_INJECT_TOKEN_JS = """
token => {
    document.querySelectorAll('textarea[name="g-recaptcha-response"], #g-recaptcha-response')
        .forEach(el => { el.value = token; el.innerHTML = token; });
    const clients = (window.___grecaptcha_cfg && window.___grecaptcha_cfg.clients) || {};
    let called = 0;
    const visit = (obj, depth) => {
        if (!obj || depth > 4) return;
        for (const key of Object.keys(obj)) {
            const value = obj[key];
            if (key === 'callback' && typeof value === 'function') { value(token); called++; }
            else if (typeof value === 'object') visit(value, depth + 1);
        }
    };
    Object.values(clients).forEach(c => visit(c, 0));
    return called;
}
"""


class ChallengeSolver:
    """Solver interface; the base class never solves anything"""

    async def solve(self, page_url: str, site_key: str, action: str = "verify") -> Optional[str]:
        return None


class TwoCaptchaSolver(ChallengeSolver):
    """
    reCAPTCHA v3 tokens from the 2Captcha service.

    The SDK client is blocking (submit, then poll until solved), so each
    solve runs in a worker thread.

    Args:
        api_key: 2Captcha account key
        client: Optional preconfigured ``TwoCaptcha`` client
        timeout: Seconds the SDK waits for a token
        polling_interval: Seconds between the SDK's result polls
    """

    def __init__(
        self,
        api_key: str,
        client: Optional[Any] = None,
        timeout: int = CAPTCHA_TIMEOUT,
        polling_interval: int = CAPTCHA_POLL_INTERVAL,
    ):
        self.api_key = api_key
        self.client = client
        self.timeout = timeout
        self.polling_interval = polling_interval

    def _client(self):
        if self.client is None:
            self.client = TwoCaptcha(
                self.api_key,
                recaptchaTimeout=self.timeout,
                pollingInterval=self.polling_interval,
            )
        return self.client

    async def solve(self, page_url: str, site_key: str, action: str = "verify") -> Optional[str]:
        """
        Return a token, or None if the service could not deliver one.

        Solver failures never abort a booking; the site may still accept
        the request without a token.
        """
        if not self.api_key:
            logger.warning("⚠️ No challenge solver key configured")
            return None

        logger.info(f"🧩 Solving challenge (action={action})...")
        client = self._client()
        try:
            result = await retry_with_backoff(
                asyncio.to_thread,
                client.recaptcha,
                sitekey=site_key,
                url=page_url,
                version="v3",
                action=action,
                score=CAPTCHA_MIN_SCORE,
                retry_on=(NetworkException,),
            )
        except TimeoutException:
            logger.warning(f"⚠️ Challenge not solved within {self.timeout}s")
            return None
        except SolverExceptions as e:
            logger.warning(f"⚠️ Challenge solver failed: {e}")
            return None

        token = (result or {}).get("code")
        if not token:
            logger.warning("⚠️ Challenge solver returned no token")
            return None
        logger.success(f"✓ Challenge solved (task {result.get('captchaId', '?')})")
        return token


async def solve_page_challenge(page, solver: ChallengeSolver, action: str = "verify") -> bool:
    """
    Detect a reCAPTCHA on the page, solve it and inject the token.

    Returns:
        True if a token was injected
    """
    try:
        site_key = await page.evaluate(_SITE_KEY_JS)
    except PlaywrightError as e:
        logger.debug(f"Site key lookup failed: {e}")
        return False
    if not site_key:
        return False

    token = await solver.solve(page.url, site_key, action)
    if not token:
        return False

    try:
        callbacks = await page.evaluate(_INJECT_TOKEN_JS, token)
    except PlaywrightError as e:
        logger.warning(f"⚠️ Token injection failed: {e}")
        return False
    logger.info(f"   Token injected ({callbacks} callback(s) fired)")
    return True
