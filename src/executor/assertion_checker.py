"""Assertion checker — evaluates assertion commands against page state."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from playwright.async_api import Page

from src.errors import AssertionFailed, ElementNotFound
from src.models.commands import (
    AssertPageContainsCommand,
    AssertTextContainsCommand,
    AssertTitleContainsCommand,
    AssertUrlContainsCommand,
    AssertValueCommand,
    AssertVisibleCommand,
)
from src.url_utils import path_segments
from src.utils.text import closest_match
from .locator_resolver import Scope, resolve

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 250

AssertionCommand = (
    AssertUrlContainsCommand
    | AssertPageContainsCommand
    | AssertTitleContainsCommand
    | AssertVisibleCommand
    | AssertTextContainsCommand
    | AssertValueCommand
)


class AssertionResult:
    def __init__(self, passed: bool, message: str = "", hint: str | None = None):
        self.passed = passed
        self.message = message
        self.hint = hint


async def check_assertion(
    page: Page,
    command: AssertionCommand,
    timeout_ms: int = 5000,
    locator_timeout_ms: int = 2000,
    scope: Scope | None = None,
) -> AssertionResult:
    """Evaluate a single assertion, polling until it holds or ``timeout_ms`` passes."""
    logger.debug("Checking assertion: %s", command.kind)
    scope = scope or page
    match command:
        case AssertUrlContainsCommand():
            return await _check_url_contains(page, command, timeout_ms)
        case AssertPageContainsCommand():
            return await _check_page_contains(page, command, timeout_ms)
        case AssertTitleContainsCommand():
            return await _check_title_contains(page, command, timeout_ms)
        case AssertVisibleCommand():
            return await _check_visible(page, scope, command, timeout_ms, locator_timeout_ms)
        case AssertTextContainsCommand():
            return await _check_text_contains(page, scope, command, timeout_ms, locator_timeout_ms)
        case AssertValueCommand():
            return await _check_value(page, scope, command, timeout_ms, locator_timeout_ms)
        case _:
            return AssertionResult(False, f"Unknown assertion type: {command.kind}")


async def verify(
    page: Page,
    command: AssertionCommand,
    timeout_ms: int = 5000,
    locator_timeout_ms: int = 2000,
    scope: Scope | None = None,
) -> None:
    """Like ``check_assertion`` but raises ``AssertionFailed`` on a miss."""
    result = await check_assertion(page, command, timeout_ms, locator_timeout_ms, scope)
    if not result.passed:
        raise AssertionFailed(result.message, result.hint)
    logger.debug("Assertion passed: %s", result.message)


async def wait_until(
    page: Page, check: Callable[[], Awaitable[bool]], timeout_ms: int,
) -> bool:
    """Call ``check`` every ``POLL_INTERVAL_MS`` until it returns True or time runs out.

    The bound is a wall-clock deadline: a slow check is cut off when the
    deadline passes, and the final sleep is shortened to fit.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    polls = max(1, timeout_ms // POLL_INTERVAL_MS)
    for attempt in range(polls + 1):
        remaining = deadline - loop.time()
        if attempt and remaining <= 0:
            break
        try:
            if await asyncio.wait_for(check(), timeout=max(remaining, 0.001)):
                return True
        except asyncio.TimeoutError:
            logger.debug("Assertion check still running after %dms, giving up", timeout_ms)
            return False
        except ElementNotFound:
            pass
        except Exception as e:
            logger.debug("Assertion check error: %s", e)
        remaining_ms = int((deadline - loop.time()) * 1000)
        if attempt < polls and remaining_ms > 0:
            await page.wait_for_timeout(min(POLL_INTERVAL_MS, remaining_ms))
    return False


def url_typo_hint(expected: str, url: str) -> str | None:
    """Suggest the path segment ``expected`` was probably meant to be."""
    suggestion = closest_match(expected, path_segments(url), max_distance=2)
    if suggestion is None:
        return None
    return f"Did you mean '{suggestion}'?"


async def _check_url_contains(
    page: Page, command: AssertUrlContainsCommand, timeout_ms: int,
) -> AssertionResult:
    async def check() -> bool:
        return command.expected in page.url

    if await wait_until(page, check, timeout_ms):
        return AssertionResult(True, f"URL contains '{command.expected}': {page.url}")
    current = page.url
    return AssertionResult(
        False,
        f"Expected URL to contain '{command.expected}', but it was '{current}'",
        hint=url_typo_hint(command.expected, current),
    )


async def _check_page_contains(
    page: Page, command: AssertPageContainsCommand, timeout_ms: int,
) -> AssertionResult:
    async def check() -> bool:
        body = await page.text_content("body") or ""
        return command.text.lower() in body.lower()

    if await wait_until(page, check, timeout_ms):
        return AssertionResult(True, f"Found '{command.text}' in page")
    return AssertionResult(False, f"Expected page to contain '{command.text}'")


async def _check_title_contains(
    page: Page, command: AssertTitleContainsCommand, timeout_ms: int,
) -> AssertionResult:
    title = ""

    async def check() -> bool:
        nonlocal title
        title = await page.title()
        return command.text.lower() in title.lower()

    if await wait_until(page, check, timeout_ms):
        return AssertionResult(True, f"Title contains '{command.text}'")
    return AssertionResult(
        False, f"Expected page title to contain '{command.text}', but it was '{title}'",
    )


async def _check_visible(
    page: Page, scope: Scope, command: AssertVisibleCommand,
    timeout_ms: int, locator_timeout_ms: int,
) -> AssertionResult:
    async def check() -> bool:
        await resolve(scope, command.target, command.element_hint,
                      require_visible=True, timeout_ms=locator_timeout_ms)
        return True

    if await wait_until(page, check, timeout_ms):
        return AssertionResult(True, f"'{command.target}' is visible")
    return AssertionResult(False, f"Expected '{command.target}' to be visible")


async def _check_text_contains(
    page: Page, scope: Scope, command: AssertTextContainsCommand,
    timeout_ms: int, locator_timeout_ms: int,
) -> AssertionResult:
    actual = ""

    async def check() -> bool:
        nonlocal actual
        element = await resolve(scope, command.target, timeout_ms=locator_timeout_ms)
        actual = (await element.text_content() or "").strip()
        return command.text.lower() in actual.lower()

    if await wait_until(page, check, timeout_ms):
        return AssertionResult(True, f"'{command.target}' contains '{command.text}'")
    return AssertionResult(
        False, f"Expected '{command.target}' to contain '{command.text}', got '{actual}'",
    )


async def _check_value(
    page: Page, scope: Scope, command: AssertValueCommand,
    timeout_ms: int, locator_timeout_ms: int,
) -> AssertionResult:
    actual = ""

    async def check() -> bool:
        nonlocal actual
        element = await resolve(scope, command.target, timeout_ms=locator_timeout_ms)
        actual = await element.input_value()
        return actual == command.value

    if await wait_until(page, check, timeout_ms):
        return AssertionResult(True, f"'{command.target}' has value '{command.value}'")
    return AssertionResult(
        False, f"Expected '{command.target}' to have value '{command.value}', got '{actual}'",
    )
