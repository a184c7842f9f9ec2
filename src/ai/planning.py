"""The AI-facing planning contract used by the dispatcher and skills.

Every call is JSON in, JSON out. A response that is not valid JSON or does
not match its schema raises ``UnparsableAIResponse`` for that call only.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

from src.errors import UnparsableAIResponse
from src.models.plan import (
    FieldMapping,
    FormField,
    PageContext,
    ScenarioAnalysis,
    SessionAnalysis,
    ValidationPlan,
    WorkflowPlan,
)
from src.models.session import LogEntry, Scenario, Session
from .client import AIClient
from .prompts.analysis import (
    SCENARIO_ANALYSIS_SYSTEM_PROMPT,
    SESSION_ANALYSIS_SYSTEM_PROMPT,
    build_scenario_analysis_prompt,
    build_session_analysis_prompt,
)
from .prompts.mapping import MAPPING_SYSTEM_PROMPT, build_mapping_prompt
from .prompts.planning import PLANNING_SYSTEM_PROMPT, build_planning_prompt
from .prompts.validation import VALIDATION_SYSTEM_PROMPT, build_validation_prompt

logger = logging.getLogger(__name__)


@runtime_checkable
class PlanningClient(Protocol):
    async def plan(self, instruction: str, context: PageContext) -> WorkflowPlan: ...

    async def map_form_fields(self, fields: list[FormField]) -> dict[str, FieldMapping]: ...

    async def generate_validation_scenarios(self, fields: list[FormField]) -> ValidationPlan: ...

    async def analyze_scenario(self, scenario: Scenario, logs: list[LogEntry]) -> ScenarioAnalysis: ...

    async def analyze_session(
        self, session: Session, scenarios: list[Scenario], logs: list[LogEntry],
    ) -> SessionAnalysis: ...


class AIPlanningClient:
    """``PlanningClient`` backed by Claude."""

    def __init__(self, client: AIClient):
        self.client = client

    async def plan(self, instruction: str, context: PageContext) -> WorkflowPlan:
        data = await self._call(PLANNING_SYSTEM_PROMPT, build_planning_prompt(instruction, context),
                                max_tokens=1000)
        plan = self._validate(WorkflowPlan, data, "workflow plan")
        for step in plan.plan:
            step.skill = step.skill.strip().upper()
        logger.info("AI plan for '%s': %s", instruction,
                    ", ".join(s.skill for s in plan.plan) or "(empty)")
        return plan

    async def map_form_fields(self, fields: list[FormField]) -> dict[str, FieldMapping]:
        data = await self._call(MAPPING_SYSTEM_PROMPT, build_mapping_prompt(fields),
                                max_tokens=2000, temperature=0.2)
        mappings: dict[str, FieldMapping] = {}
        for key, raw in data.items():
            if not isinstance(raw, dict):
                raise UnparsableAIResponse(f"Field mapping for '{key}' is not an object: {raw!r}")
            mappings[key] = self._validate(FieldMapping, raw, f"field mapping '{key}'")
        logger.debug("AI mapped %d of %d fields", len(mappings), len(fields))
        return mappings

    async def generate_validation_scenarios(self, fields: list[FormField]) -> ValidationPlan:
        data = await self._call(VALIDATION_SYSTEM_PROMPT, build_validation_prompt(fields),
                                max_tokens=2000)
        return self._validate(ValidationPlan, data, "validation plan")

    async def analyze_scenario(self, scenario: Scenario, logs: list[LogEntry]) -> ScenarioAnalysis:
        data = await self._call(SCENARIO_ANALYSIS_SYSTEM_PROMPT,
                                build_scenario_analysis_prompt(scenario, logs), max_tokens=1500)
        return self._validate(ScenarioAnalysis, data, "scenario analysis")

    async def analyze_session(
        self, session: Session, scenarios: list[Scenario], logs: list[LogEntry],
    ) -> SessionAnalysis:
        data = await self._call(SESSION_ANALYSIS_SYSTEM_PROMPT,
                                build_session_analysis_prompt(session, scenarios, logs),
                                max_tokens=3000)
        return self._validate(SessionAnalysis, data, "session analysis")

    async def _call(self, system: str, user: str, max_tokens: int, temperature: float = 0.3) -> dict:
        try:
            return await self.client.complete_json(system, user, max_tokens=max_tokens,
                                                   temperature=temperature)
        except ValueError as e:
            raise UnparsableAIResponse(str(e)) from e

    @staticmethod
    def _validate(model: type[BaseModel], data: dict, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UnparsableAIResponse(f"AI returned an invalid {what}: {e}") from e
