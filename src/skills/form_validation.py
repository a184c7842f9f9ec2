"""TEST_FORM_VALIDATION skill — exercise a form with invalid and valid submissions.

Each validation scenario runs as an isolated pass and yields a
screenshot-backed observation. The skill records evidence only; judging
whether the form validated correctly is left to analysis downstream.
"""

from __future__ import annotations

import logging

from playwright.async_api import Page

from src.ai.planning import PlanningClient
from src.errors import QAError
from src.executor.command_executor import CommandExecutor
from src.executor.evidence_collector import to_data_url
from src.models.commands import FillCommand
from src.models.config import FrameworkConfig
from src.models.plan import (
    FormField,
    SkillResult,
    ValidationObservation,
    ValidationScenario,
    ValidationStep,
)
from .data_generator import DataGenerator
from .fill_form import context_locator, fill_field, find_submit_button
from .form_fields import discover_fields

logger = logging.getLogger(__name__)


class TestFormValidation:
    """Runs AI-generated validation scenarios against the active form."""

    __test__ = False  # not a pytest test class
    name = "TEST_FORM_VALIDATION"

    def __init__(
        self,
        planner: PlanningClient,
        executor: CommandExecutor,
        config: FrameworkConfig,
        generator: DataGenerator | None = None,
    ):
        self.planner = planner
        self.executor = executor
        self.config = config
        self.generator = generator or DataGenerator()

    async def run(self, page: Page, context_selector: str = "body") -> SkillResult:
        original_url = page.url
        fields = await discover_fields(context_locator(page, context_selector))
        if not fields:
            raise QAError("Validation test skill failed: no usable form fields found on the page")

        plan = await self.planner.generate_validation_scenarios(fields)
        await self._augment_happy_path(plan.scenarios, fields)
        logger.info("Running %d validation scenarios", len(plan.scenarios))

        result = SkillResult(skill=self.name)
        for i, scenario in enumerate(plan.scenarios):
            if i > 0:
                reset_error = await self._reset(page, original_url)
                if reset_error:
                    result.observations.append(ValidationObservation(
                        scenario_name=scenario.name, status="failed", error=reset_error))
                    continue
            result.observations.append(
                await self._run_scenario(page, context_selector, scenario, fields))
        return result

    async def _augment_happy_path(
        self, scenarios: list[ValidationScenario], fields: list[FormField],
    ) -> None:
        """Replace the happy-path scenario's values with generated realistic data."""
        happy = next((s for s in scenarios if s.is_happy_path), None)
        if happy is None:
            return
        mappings = await self.planner.map_form_fields(fields)
        happy.steps = [
            ValidationStep(target=f.key, value=self.generator.value_for(f, mappings.get(f.key)))
            for f in fields
        ]

    async def _reset(self, page: Page, url: str) -> str | None:
        try:
            await page.goto(url, wait_until="domcontentloaded",
                            timeout=self.config.navigation_timeout_ms)
            await page.wait_for_load_state("networkidle", timeout=self.config.action_timeout_ms)
        except Exception as e:
            logger.warning("Could not reset to %s: %s", url, e)
            return f"Could not reset to {url}: {e}"
        return None

    async def _run_scenario(
        self,
        page: Page,
        context_selector: str,
        scenario: ValidationScenario,
        fields: list[FormField],
    ) -> ValidationObservation:
        logger.info("Validation scenario: %s", scenario.name)
        context = context_locator(page, context_selector)
        by_key = {f.key: f for f in fields}

        for step in scenario.steps:
            field = by_key.get(step.target)
            try:
                if field is None:
                    await self.executor.execute(
                        FillCommand(target=step.target, value=step.value), page, page.url, scope=context)
                else:
                    await fill_field(context, field, step.value, self.config.action_timeout_ms)
            except Exception as e:
                # Negative scenarios may target fields that reject input
                logger.debug("Ignoring fill error in '%s' for '%s': %s",
                             scenario.name, step.target, e)

        submit = await find_submit_button(context)
        if submit is None:
            return ValidationObservation(
                scenario_name=scenario.name, status="failed",
                error="Could not find submit button.")
        await submit.click(force=True, timeout=self.config.action_timeout_ms)

        if context_selector != "body":
            try:
                await page.locator(context_selector).wait_for(
                    state="hidden", timeout=self.config.modal_close_timeout_ms)
            except Exception:
                logger.debug("Modal still open after '%s'", scenario.name)
        else:
            try:
                await page.wait_for_load_state("networkidle", timeout=self.config.modal_close_timeout_ms)
            except Exception:
                logger.debug("Network idle timeout after '%s'", scenario.name)

        screenshot = None
        try:
            screenshot = to_data_url(await page.screenshot(full_page=True))
        except Exception as e:
            logger.warning("Screenshot failed for '%s': %s", scenario.name, e)

        return ValidationObservation(
            scenario_name=scenario.name,
            status="completed",
            screenshot=screenshot,
            note=scenario.description or "Submission observed; validation messages are in the screenshot.",
        )
