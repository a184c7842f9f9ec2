"""Browser launch helpers: one Chromium instance and page per session."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from src.errors import SessionFatal
from src.models.config import FrameworkConfig

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

_INIT_SCRIPT = """
// Hide navigator.webdriver so sites don't branch on automation
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium with automation flags suppressed."""
    return await playwright.chromium.launch(
        headless=headless,
        args=[
            "--disable-blink-features=AutomationControlled",
            "--disable-dev-shm-usage",
            "--no-sandbox",
        ],
    )


async def create_context(
    browser: Browser,
    config: FrameworkConfig,
    user_agent: Optional[str] = None,
) -> BrowserContext:
    """Create the single browser context a session runs in."""
    context = await browser.new_context(
        viewport={"width": config.viewport.width, "height": config.viewport.height},
        user_agent=user_agent or config.user_agent or DEFAULT_USER_AGENT,
        locale="en-US",
    )
    await context.add_init_script(_INIT_SCRIPT)
    context.set_default_timeout(config.action_timeout_ms)
    context.set_default_navigation_timeout(config.navigation_timeout_ms)
    return context


@asynccontextmanager
async def browser_session(config: FrameworkConfig) -> AsyncIterator[Page]:
    """One browser, one context and one page for the lifetime of a session.

    Launch failures surface as ``SessionFatal``.
    """
    async with async_playwright() as p:
        try:
            browser = await launch_browser(p, headless=config.headless)
            context = await create_context(browser, config)
            page = await context.new_page()
        except Exception as e:
            raise SessionFatal(f"Could not launch browser: {e}") from e
        try:
            yield page
        finally:
            try:
                await browser.close()
            except Exception as e:
                logger.debug("Browser close failed: %s", e)
