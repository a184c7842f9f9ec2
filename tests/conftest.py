"""Pytest configuration and shared fixtures."""

import re
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from playwright.async_api import Page

from src.models.config import FrameworkConfig
from src.models.session import Scenario


# 1x1 pixel PNG
PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01'
    b'\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde\x00\x00'
    b'\x00\x0cIDATx\x9cc\x00\x01\x00\x00\x05\x00\x01\r\n-'
    b'\xb4\x00\x00\x00\x00IEND\xaeB`\x82'
)


# ============================================================================
# Fake DOM helpers
# ============================================================================


def create_mock_locator(
    count: int = 0,
    visible: Optional[bool] = None,
    text: str = "",
    value: str = "",
    items: Optional[list] = None,
    **elements: Any,
) -> MagicMock:
    """Create a mock Playwright locator.

    ``count`` is how many elements it matches; ``visible`` defaults to
    ``count > 0``. Pass ``items`` (locators made by this helper) to model a
    locator matching several distinct elements: ``first``/``nth`` then
    return those elements and ``visible=true`` filters them. Keyword
    ``elements`` wire nested lookups the same way as ``create_mock_page`` does.
    """
    if items is not None:
        count = len(items)
        if visible is None:
            visible = any(item.is_visible.return_value for item in items)
    if visible is None:
        visible = count > 0
    locator = MagicMock(name="locator")
    locator.count = AsyncMock(return_value=count)
    locator.is_visible = AsyncMock(return_value=visible)
    locator.wait_for = AsyncMock(side_effect=None if visible else Exception("Timeout waiting for element"))
    if items:
        locator.first = items[0]
        locator.nth = Mock(side_effect=lambda i: items[i])
    else:
        locator.first = locator
        locator.nth = Mock(return_value=locator)
    locator.click = AsyncMock()
    locator.fill = AsyncMock()
    locator.check = AsyncMock()
    locator.set_checked = AsyncMock()
    locator.select_option = AsyncMock()
    locator.text_content = AsyncMock(return_value=text)
    locator.input_value = AsyncMock(return_value=value)
    locator.evaluate = AsyncMock(return_value={})
    locator.evaluate_all = AsyncMock(return_value=[])
    wire_elements(locator, **elements)

    lookup = locator.locator.side_effect

    def filtered_lookup(selector, **kwargs):
        if selector != "visible=true":
            return lookup(selector, **kwargs)
        if items is None:
            # a single element; its own wait_for decides visibility
            return locator
        shown = [item for item in items if item.is_visible.return_value]
        return create_mock_locator(items=shown) if shown else create_mock_locator(0)

    locator.locator.side_effect = filtered_lookup
    return locator


def wire_elements(
    scope: Any,
    roles: Optional[dict[tuple[str, str], Any]] = None,
    labels: Optional[dict[str, Any]] = None,
    placeholders: Optional[dict[str, Any]] = None,
    texts: Optional[dict[str, Any]] = None,
    test_ids: Optional[dict[str, Any]] = None,
    selectors: Optional[dict[str, Any]] = None,
) -> None:
    """Give ``scope`` get_by_* / locator methods backed by small lookup tables.

    Roles are keyed by ``(role, accessible name)`` and matched against the
    name regex or string the caller passes. Labels, placeholders and texts
    match case-insensitively on substrings; test ids and selectors match
    exactly. Anything unmatched yields an empty locator.
    """
    roles = roles or {}

    def get_by_role(role, name=None, **kwargs):
        for (candidate_role, accessible_name), locator in roles.items():
            if candidate_role != role:
                continue
            if name is None:
                return locator
            if isinstance(name, re.Pattern):
                if name.search(accessible_name):
                    return locator
            elif name.lower() in accessible_name.lower():
                return locator
        return create_mock_locator(0)

    def substring_lookup(table):
        def lookup(text, **kwargs):
            for key, locator in (table or {}).items():
                if text.lower() in key.lower():
                    return locator
            return create_mock_locator(0)
        return lookup

    def exact_lookup(table):
        def lookup(key, **kwargs):
            return (table or {}).get(key) or create_mock_locator(0)
        return lookup

    scope.get_by_role = Mock(side_effect=get_by_role)
    scope.get_by_label = Mock(side_effect=substring_lookup(labels))
    scope.get_by_placeholder = Mock(side_effect=substring_lookup(placeholders))
    scope.get_by_text = Mock(side_effect=substring_lookup(texts))
    scope.get_by_test_id = Mock(side_effect=exact_lookup(test_ids))
    scope.locator = Mock(side_effect=exact_lookup(selectors))


def create_mock_page(url: str = "https://example.com/", **elements: Any) -> Mock:
    """Create a mock Playwright page wired with ``wire_elements`` lookups."""
    page = Mock(spec=Page)
    page.url = url
    page.is_closed = Mock(return_value=False)
    page.goto = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.screenshot = AsyncMock(return_value=PNG_BYTES)
    page.title = AsyncMock(return_value="Example Page")
    page.text_content = AsyncMock(return_value="")
    page.on = Mock()
    wire_elements(page, **elements)
    return page


def raw_field(index: int, label: str = "", name: str = "", placeholder: str = "", **overrides: Any) -> dict:
    """One entry as returned by the in-page field description script."""
    item = {
        "index": index,
        "visible": True,
        "usable": True,
        "tag": "input",
        "input_type": "text",
        "name": name,
        "element_id": "",
        "placeholder": placeholder,
        "label": label,
        "options": [],
    }
    item.update(overrides)
    return item


@pytest.fixture
def make_locator():
    """Fixture that provides the create_mock_locator function."""
    return create_mock_locator


@pytest.fixture
def make_page():
    """Fixture that provides the create_mock_page function."""
    return create_mock_page


@pytest.fixture
def make_raw_field():
    """Fixture that provides the raw_field function."""
    return raw_field


@pytest.fixture
def mock_page() -> Mock:
    """An empty page at https://example.com/."""
    return create_mock_page()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def framework_config(tmp_path) -> FrameworkConfig:
    """Config with short bounds so polling loops finish quickly."""
    return FrameworkConfig(
        target_url="https://example.com",
        max_step_retries=1,
        retry_backoff_ms=10,
        step_delay_ms=0,
        action_timeout_ms=1000,
        assertion_timeout_ms=500,
        locator_timeout_ms=100,
        navigation_timeout_ms=1000,
        modal_close_timeout_ms=500,
        runs_dir=str(tmp_path / "runs"),
    )


@pytest.fixture
def scenario() -> Scenario:
    return Scenario(
        title="Add an agent",
        steps=[
            'Click the "Add Agent" button',
            'Fill "Jane" into the "First name" field',
            'Verify that the page contains "Agent created"',
        ],
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_anthropic_client() -> Mock:
    """Create a mock async Anthropic client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.content = [Mock(text='{"test": "response"}')]
    mock_response.stop_reason = "end_turn"
    mock_response.usage = Mock(input_tokens=100, output_tokens=200)
    mock_client.messages.create = AsyncMock(return_value=mock_response)
    return mock_client


@pytest.fixture
def mock_planner() -> AsyncMock:
    """A planning collaborator test double with empty default answers."""
    from src.models.plan import ScenarioAnalysis, SessionAnalysis, ValidationPlan, WorkflowPlan

    planner = AsyncMock()
    planner.plan.return_value = WorkflowPlan(plan=[])
    planner.map_form_fields.return_value = {}
    planner.generate_validation_scenarios.return_value = ValidationPlan(scenarios=[])
    planner.analyze_scenario.return_value = ScenarioAnalysis(summary="ok")
    planner.analyze_session.return_value = SessionAnalysis(summary="All good", quality_score=90)
    return planner
