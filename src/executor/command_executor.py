"""Command executor — translates structured commands to Playwright calls."""

from __future__ import annotations

import logging
import re

from playwright.async_api import Locator, Page

from src.errors import ElementNotFound, QAError
from src.models.commands import (
    ASSERTION_KINDS,
    CheckUncheckCommand,
    ClickCommand,
    ConditionalCommand,
    FillCommand,
    LoginCommand,
    NavigateSpecificCommand,
    NavigateUrlCommand,
    SelectCommand,
    StructuredCommand,
    WaitCommand,
)
from src.models.config import FrameworkConfig
from src.url_utils import absolute_url, named_page_url
from .assertion_checker import verify
from .locator_resolver import Scope, resolve

logger = logging.getLogger(__name__)

FILL_STRATEGIES = ("label", "placeholder", "name", "id")

_USERNAME_FIELDS = ("email", "username", "user name", "login")
_SIGN_IN_RE = re.compile(r"log\s?in|sign\s?in", re.IGNORECASE)


def _attr_selector(attribute: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{attribute}="{escaped}"]'


def fill_candidates(
    scope: Scope, target: str, attribute: str | None = None,
) -> list[tuple[str, Locator]]:
    """Field locators for ``target``; an explicit attribute restricts the chain."""
    strategies = [attribute] if attribute else list(FILL_STRATEGIES)
    candidates: list[tuple[str, Locator]] = []
    for strategy in strategies:
        match strategy:
            case "label":
                candidates.append(("label", scope.get_by_label(target)))
            case "placeholder":
                candidates.append(("placeholder", scope.get_by_placeholder(target)))
            case "name" | "id":
                candidates.append((strategy, scope.locator(_attr_selector(strategy, target))))
    return candidates


async def first_visible(locator: Locator) -> Locator | None:
    """Return the first visible element matched by ``locator``, if any."""
    try:
        count = await locator.count()
        for i in range(count):
            candidate = locator.nth(i)
            if await candidate.is_visible():
                return candidate
    except Exception as e:
        logger.debug("Visibility check failed: %s", e)
    return None


class CommandExecutor:
    """Runs one structured command against the current page."""

    def __init__(self, config: FrameworkConfig):
        self.config = config

    async def execute(
        self,
        command: StructuredCommand,
        page: Page,
        base_url: str,
        scope: Scope | None = None,
    ) -> None:
        """Execute ``command``. Raises a ``QAError`` subclass (or Playwright error) on failure.

        ``scope`` narrows element lookup to a container such as an open modal;
        navigation and URL checks always act on the page.
        """
        scope = scope or page
        timeout = self.config.action_timeout_ms
        logger.debug("Executing command: %s", command.kind)

        match command:
            case NavigateSpecificCommand(page=name):
                path = self.config.named_pages.get(name)
                if path is None:
                    raise QAError(f"Unknown named page: '{name}'")
                await self._navigate(page, named_page_url(base_url, path))

            case NavigateUrlCommand(url=url):
                await self._navigate(page, absolute_url(base_url, url))

            case ClickCommand(target=target, element_hint=hint):
                element = await resolve(scope, target, hint, require_visible=True,
                                        timeout_ms=self.config.locator_timeout_ms)
                logger.debug("Clicking: %s", target)
                await element.click(timeout=timeout)

            case FillCommand():
                await self._fill(scope, command)

            case SelectCommand(target=target, value=value):
                element = await self._find_field(scope, target)
                logger.debug("Selecting '%s' in %s", value, target)
                try:
                    await element.select_option(label=value, timeout=timeout)
                except Exception:
                    await element.select_option(value, timeout=timeout)

            case CheckUncheckCommand(target=target, checked=checked):
                element = await resolve(scope, target, "checkbox", require_visible=True,
                                        timeout_ms=self.config.locator_timeout_ms)
                await element.set_checked(checked, timeout=timeout)

            case WaitCommand(seconds=seconds):
                logger.debug("Waiting %ss...", seconds)
                await page.wait_for_timeout(int(seconds * 1000))

            case LoginCommand():
                await self._login(scope, command)

            case ConditionalCommand(condition=condition, then=then):
                try:
                    await self.execute(condition, page, base_url, scope)
                except QAError as e:
                    logger.info("Condition not met, skipping: %s", e)
                    return
                await self.execute(then, page, base_url, scope)

            case _ if command.kind in ASSERTION_KINDS:
                await verify(page, command, self.config.assertion_timeout_ms,
                             self.config.locator_timeout_ms, scope)

            case _:
                raise QAError(f"Unsupported command: {command.kind}")

    async def _navigate(self, page: Page, url: str) -> None:
        logger.debug("Navigating to %s...", url)
        await page.goto(url, wait_until="domcontentloaded",
                        timeout=self.config.navigation_timeout_ms)
        try:
            await page.wait_for_load_state("networkidle", timeout=self.config.action_timeout_ms)
        except Exception:
            logger.debug("Network idle timeout, continuing")

    async def _fill(self, scope: Scope, command: FillCommand) -> None:
        tried: list[str] = []
        for strategy, locator in fill_candidates(scope, command.target, command.attribute):
            element = await first_visible(locator)
            tried.append(strategy)
            if element is None:
                continue
            logger.debug("Filling '%s' via %s with '%s'", command.target, strategy,
                         "***" if "password" in command.target.lower() else command.value)
            await element.fill(command.value, timeout=self.config.action_timeout_ms)
            return
        raise ElementNotFound(
            command.target, tried,
            message=f"Could not find a visible field '{command.target}' to fill "
                    f"(tried: {', '.join(tried)})",
        )

    async def _find_field(self, scope: Scope, target: str) -> Locator:
        for _strategy, locator in fill_candidates(scope, target):
            element = await first_visible(locator)
            if element is not None:
                return element
        return await resolve(scope, target, require_visible=True,
                             timeout_ms=self.config.locator_timeout_ms)

    async def _login(self, scope: Scope, command: LoginCommand) -> None:
        timeout = self.config.action_timeout_ms
        username_field = await self._first_of(
            scope, _USERNAME_FIELDS, 'input[type="email"]', "username")
        await username_field.fill(command.username, timeout=timeout)

        password_field = await self._first_of(
            scope, ("password",), 'input[type="password"]', "password")
        await password_field.fill(command.password, timeout=timeout)

        button = await first_visible(scope.get_by_role("button", name=_SIGN_IN_RE))
        if button is None:
            button = await first_visible(scope.locator('[type="submit"]'))
        if button is None:
            raise ElementNotFound("sign in button", ["role:button", "submit"])
        logger.debug("Submitting login form")
        await button.click(timeout=timeout)

    async def _first_of(
        self, scope: Scope, identifiers: tuple[str, ...], css_fallback: str, label: str,
    ) -> Locator:
        for identifier in identifiers:
            for _strategy, locator in fill_candidates(scope, identifier):
                element = await first_visible(locator)
                if element is not None:
                    return element
        element = await first_visible(scope.locator(css_fallback))
        if element is None:
            raise ElementNotFound(label, list(identifiers) + [css_fallback])
        return element
