"""Locator resolution — finds an on-page element from a human-readable name."""

from __future__ import annotations

import logging
import re
from typing import Union

from playwright.async_api import Locator, Page

from src.errors import ElementNotFound

logger = logging.getLogger(__name__)

Scope = Union[Page, Locator]

ROLE_HINTS = ("button", "link", "tab", "checkbox", "radio")
FILLER_WORDS = ("button", "btn", "tab", "field", "link", "input", "checkbox", "box", "icon", "the")

_FILLER_RE = re.compile(r"\b(?:" + "|".join(FILLER_WORDS) + r")\b", re.IGNORECASE)
_CSS_RE = re.compile(r"^[#.][A-Za-z_-][\w-]*(?:[.#\[:\s>+~].*)?$")


class LocatorResolution:
    """Result of a locator resolution attempt."""

    def __init__(self, locator: Locator, strategy_used: str, attempts: list[str]):
        self.locator = locator
        self.strategy_used = strategy_used
        self.attempts = attempts


def looks_like_css(identifier: str) -> bool:
    """True for identifiers such as ``#email`` or ``.btn-primary``."""
    return bool(_CSS_RE.match(identifier.strip()))


def clean_identifier(identifier: str) -> str:
    """Drop filler words such as "button" or "field" from an identifier."""
    cleaned = _FILLER_RE.sub(" ", identifier)
    return re.sub(r"\s+", " ", cleaned).strip()


def candidate_locators(
    scope: Scope, identifier: str, element_hint: str | None = None,
) -> list[tuple[str, Locator]]:
    """Build the ordered strategy chain for ``identifier``.

    1. Accessibility role (hinted role first) with a case-insensitive name regex
    2. Label, placeholder, visible text
    3. Test id, exact then cleaned
    4. Literal CSS, only when the identifier looks like a selector
    """
    candidates: list[tuple[str, Locator]] = []
    name_re = re.compile(re.escape(identifier.strip()), re.IGNORECASE)

    roles = list(ROLE_HINTS)
    if element_hint in ROLE_HINTS:
        roles.remove(element_hint)
        roles.insert(0, element_hint)
    for role in roles:
        candidates.append((f"role:{role}", scope.get_by_role(role, name=name_re)))

    candidates.append(("label", scope.get_by_label(identifier)))
    candidates.append(("placeholder", scope.get_by_placeholder(identifier)))
    candidates.append(("text", scope.get_by_text(identifier)))

    candidates.append(("test_id", scope.get_by_test_id(identifier)))
    cleaned = clean_identifier(identifier)
    if cleaned and cleaned != identifier:
        candidates.append(("test_id_cleaned", scope.get_by_test_id(cleaned)))

    if looks_like_css(identifier):
        candidates.append(("css", scope.locator(identifier)))

    return candidates


async def resolve_locator(
    scope: Scope,
    identifier: str,
    element_hint: str | None = None,
    *,
    require_visible: bool = False,
    timeout_ms: int = 2000,
    page: Page | None = None,
) -> LocatorResolution:
    """Walk the strategy chain and return the first element that qualifies.

    With ``require_visible`` a strategy only counts when one of its matches
    becomes visible within ``timeout_ms``, and that visible match is the one
    returned; otherwise existence is enough and the first match is returned.
    If the whole chain misses, waits briefly for the network to settle and
    walks it once more before raising ``ElementNotFound``.
    """
    attempts: list[str] = []
    for pass_label in ("", "after_idle"):
        for strategy, locator in candidate_locators(scope, identifier, element_hint):
            label = f"{strategy}:{pass_label}" if pass_label else strategy
            element = await _try_locator(locator, require_visible, timeout_ms)
            if element is not None:
                logger.debug("Resolved '%s' via %s", identifier, label)
                return LocatorResolution(element, label, attempts + [label])
            attempts.append(label)

        if pass_label:
            break
        wait_page = page or (scope if isinstance(scope, Page) else None)
        if wait_page is None:
            break
        try:
            await wait_page.wait_for_load_state("networkidle", timeout=min(2000, timeout_ms))
        except Exception:
            pass

    logger.debug("Locator resolve: all strategies failed for '%s' (%d attempts)",
                 identifier, len(attempts))
    strategies = list(dict.fromkeys(a.split(":after_idle")[0] for a in attempts))
    raise ElementNotFound(identifier, strategies)


async def resolve(
    scope: Scope,
    identifier: str,
    element_hint: str | None = None,
    *,
    require_visible: bool = False,
    timeout_ms: int = 2000,
) -> Locator:
    """Return the element for ``identifier``; raises ``ElementNotFound``."""
    result = await resolve_locator(
        scope, identifier, element_hint,
        require_visible=require_visible, timeout_ms=timeout_ms,
    )
    return result.locator


async def _try_locator(locator: Locator, require_visible: bool, timeout_ms: int) -> Locator | None:
    try:
        if await locator.count() == 0:
            return None
        if not require_visible:
            return locator.first
        # Hidden duplicates often precede the real control (responsive menus)
        visible = locator.locator("visible=true").first
        await visible.wait_for(state="visible", timeout=timeout_ms)
        return visible
    except Exception:
        return None
