"""Saved browser sessions (storage-state files) for provider accounts"""

import json
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from .browser import browser_page, safe_goto
from .config import DEFAULT_SESSION_GLOB, HOTEL_BASE_URL
from .resolver import Resolver
from .settings import Settings
from .targets import PROFILE_AVATAR, SIGN_IN


class SessionProvider:
    """
    Read-only view over a directory of storage-state files.

    One file is one logged-in provider account. Purchases pick one at
    random to rotate the presented identity; reservation lookups walk all
    of them in sorted order so runs are reproducible.
    """

    def __init__(
        self,
        sessions_dir: Path,
        pattern: str = DEFAULT_SESSION_GLOB,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            sessions_dir: Directory holding the storage-state files
            pattern: Glob selecting session files inside the directory
            rng: Random source for purchase rotation
        """
        self.sessions_dir = sessions_dir
        self.pattern = pattern
        self.rng = rng or random.Random()

    @staticmethod
    def is_valid_state(path: Path) -> bool:
        """Check a file looks like a Playwright storage state with cookies"""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Unreadable session file {path.name}: {e}")
            return False
        return isinstance(data, dict) and isinstance(data.get("cookies"), list)

    def all_for_lookup(self) -> List[Path]:
        """Every valid session, sorted by file name"""
        if not self.sessions_dir.exists():
            logger.warning(f"Session directory not found: {self.sessions_dir}")
            return []
        paths = sorted(self.sessions_dir.glob(self.pattern))
        return [p for p in paths if self.is_valid_state(p)]

    def pick_for_purchase(self) -> Optional[Path]:
        """A random valid session, or None to run anonymously"""
        sessions = self.all_for_lookup()
        if not sessions:
            logger.warning("⚠️ No saved sessions available, running without login")
            return None
        chosen = self.rng.choice(sessions)
        logger.info(f"🔄 Account rotation: {chosen.name} ({len(sessions)} available)")
        return chosen


_SAME_SITE = {
    "no_restriction": "None",
    "none": "None",
    "lax": "Lax",
    "strict": "Strict",
}


def convert_cookie_export(raw_cookies: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Turn a browser cookie-editor export into a Playwright storage state.

    Args:
        raw_cookies: List of cookies as exported (``expirationDate``,
            lower-case ``sameSite`` values, ...)

    Returns:
        Storage state dict with ``cookies`` and empty ``origins``
    """
    cookies = []
    for cookie in raw_cookies:
        same_site = _SAME_SITE.get(str(cookie.get("sameSite") or "").lower(), "Lax")
        expires = cookie.get("expirationDate", cookie.get("expires"))
        cookies.append(
            {
                "name": cookie["name"],
                "value": cookie.get("value", ""),
                "domain": cookie.get("domain", ""),
                "path": cookie.get("path", "/"),
                "expires": float(expires) if expires is not None else -1,
                "httpOnly": bool(cookie.get("httpOnly", False)),
                "secure": bool(cookie.get("secure", False)),
                "sameSite": same_site,
            }
        )
    return {"cookies": cookies, "origins": []}


async def check_session(
    settings: Settings, path: Path, resolver: Optional[Resolver] = None
) -> Optional[bool]:
    """
    Open the provider home page with a saved session and report login state.

    Returns:
        True if logged in, False if a sign-in control shows, None if unclear
    """
    resolver = resolver or Resolver()
    async with browser_page(settings, path) as (_, page):
        await safe_goto(page, f"{HOTEL_BASE_URL}/index.html")
        avatar = await resolver.locate(PROFILE_AVATAR, page, ceiling_ms=5000)
        sign_in = await resolver.locate(SIGN_IN, page, ceiling_ms=3000)

    if avatar is not None and sign_in is None:
        logger.success(f"✅ {path.name}: logged in")
        return True
    if sign_in is not None:
        logger.warning(f"❌ {path.name}: not logged in")
        return False
    logger.info(f"ℹ️ {path.name}: login state unclear")
    return None
