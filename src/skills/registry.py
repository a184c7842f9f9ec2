"""Maps plan skill tags to composite behaviours."""

from __future__ import annotations

from typing import Protocol

from playwright.async_api import Page

from src.ai.planning import PlanningClient
from src.errors import UnknownSkill
from src.executor.command_executor import CommandExecutor
from src.models.config import FrameworkConfig
from src.models.plan import SkillResult
from .data_generator import DataGenerator
from .fill_form import FillFormHappyPath
from .form_validation import TestFormValidation


class Skill(Protocol):
    name: str

    async def run(self, page: Page, context_selector: str = "body") -> SkillResult: ...


class SkillRegistry:
    def __init__(self, skills: list[Skill] | None = None):
        self._skills: dict[str, Skill] = {}
        for skill in skills or []:
            self.register(skill)

    def register(self, skill: Skill) -> None:
        self._skills[skill.name.upper()] = skill

    def get(self, name: str) -> Skill:
        try:
            return self._skills[name.upper()]
        except KeyError:
            raise UnknownSkill(name) from None

    def __contains__(self, name: str) -> bool:
        return name.upper() in self._skills

    @property
    def names(self) -> list[str]:
        return list(self._skills)


def default_registry(
    planner: PlanningClient,
    executor: CommandExecutor,
    config: FrameworkConfig,
    generator: DataGenerator | None = None,
) -> SkillRegistry:
    """Registry holding the built-in form skills."""
    generator = generator or DataGenerator()
    return SkillRegistry([
        FillFormHappyPath(planner, config, generator),
        TestFormValidation(planner, executor, config, generator),
    ])
