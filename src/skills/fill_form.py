"""FILL_FORM_HAPPY_PATH skill — fill the active form with valid data and submit it."""

from __future__ import annotations

import logging
import re

from playwright.async_api import Locator, Page

from src.ai.planning import PlanningClient
from src.errors import ElementNotFound, QAError
from src.models.config import FrameworkConfig
from src.models.plan import FormField, SkillResult
from .data_generator import DataGenerator
from .form_fields import discover_fields, field_locator

logger = logging.getLogger(__name__)

SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Submit")',
    'button:has-text("Save")',
    'button:has-text("Continue")',
    'button:has-text("Next")',
    'button:has-text("Add")',
)
_SUBMIT_NAME_RE = re.compile(r"submit|save|add|create|update|send|register|sign\s?up", re.IGNORECASE)


def context_locator(page: Page, context_selector: str) -> Locator:
    return page.locator(context_selector)


async def find_submit_button(context: Locator) -> Locator | None:
    """First visible submit-like button inside ``context``."""
    for selector in SUBMIT_SELECTORS:
        button = context.locator(selector).first
        try:
            if await button.is_visible():
                return button
        except Exception as e:
            logger.debug("Submit lookup %s failed: %s", selector, e)
    button = context.get_by_role("button", name=_SUBMIT_NAME_RE).first
    try:
        if await button.is_visible():
            return button
    except Exception as e:
        logger.debug("Submit role lookup failed: %s", e)
    return None


async def fill_field(context: Locator, field: FormField, value: str, timeout_ms: int) -> None:
    """Fill one discovered field at its own position in the context.

    Addressing by position keeps similarly labelled controls apart, e.g. a
    "Name" field next to "Username".
    """
    element = field_locator(context, field)
    if field.input_type == "checkbox":
        await element.check(timeout=timeout_ms)
    elif field.is_select:
        await element.select_option(value, timeout=timeout_ms)
    else:
        await element.fill(value, timeout=timeout_ms)


class FillFormHappyPath:
    """Fills every field in the active context with mapped fake data, then submits."""

    name = "FILL_FORM_HAPPY_PATH"

    def __init__(
        self,
        planner: PlanningClient,
        config: FrameworkConfig,
        generator: DataGenerator | None = None,
    ):
        self.planner = planner
        self.config = config
        self.generator = generator or DataGenerator()

    async def run(self, page: Page, context_selector: str = "body") -> SkillResult:
        context = context_locator(page, context_selector)
        fields = await discover_fields(context)
        if not fields:
            raise QAError(f"Fill form skill failed: no fillable fields found in '{context_selector}'")

        mappings = await self.planner.map_form_fields(fields)
        result = SkillResult(skill=self.name)
        for field in fields:
            value = self.generator.value_for(field, mappings.get(field.key))
            logger.info("Filling '%s' with '%s'", field.key,
                        "***" if field.input_type == "password" else value)
            try:
                await fill_field(context, field, value, self.config.action_timeout_ms)
                result.filled_fields.append(field.key)
            except Exception as e:
                logger.warning("Could not fill field '%s': %s", field.key, e)

        submit = await find_submit_button(context)
        if submit is None:
            raise ElementNotFound("submit button", list(SUBMIT_SELECTORS) + ["role:button"])
        await submit.click(timeout=self.config.action_timeout_ms)
        result.submitted = True

        if context_selector != "body":
            # A modal form only counts as submitted once the modal has closed
            await page.locator(context_selector).wait_for(
                state="hidden", timeout=self.config.modal_close_timeout_ms)
        else:
            try:
                await page.wait_for_load_state("networkidle", timeout=self.config.modal_close_timeout_ms)
            except Exception:
                logger.debug("Network idle timeout after submit, continuing")

        logger.info("Form submitted (%d/%d fields filled)", len(result.filled_fields), len(fields))
        return result
