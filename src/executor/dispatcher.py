"""Smart dispatcher — grammar fast path with AI planning for everything else."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from playwright.async_api import Page

from src.ai.planning import PlanningClient
from src.errors import QAError, UnparsableAIResponse, UnrecognizedInstruction
from src.grammar.grammar import DEFAULT_GRAMMAR, Grammar
from src.models.commands import ClickCommand, NavigateUrlCommand, StructuredCommand
from src.models.config import FrameworkConfig
from src.models.plan import PageContext, PlanStep, SkillResult, WorkflowPlan
from src.skills.registry import SkillRegistry, default_registry
from .command_executor import CommandExecutor

logger = logging.getLogger(__name__)

# Modal-like containers, most specific first
MODAL_SELECTORS = (
    '[role="dialog"]',
    '[aria-modal="true"]',
    "dialog[open]",
    ".modal",
)

_SUMMARIZE_CONTEXT_JS = """
(root) => {
    const isVisible = (el) => {
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        return rect.width > 0 && rect.height > 0
            && style.visibility !== 'hidden' && style.display !== 'none';
    };
    const textOf = (el) => (el.innerText || el.value || el.getAttribute('aria-label') || '')
        .replace(/\\s+/g, ' ').trim();
    const collect = (selector) => [...new Set(
        Array.from(root.querySelectorAll(selector)).filter(isVisible).map(textOf).filter(t => t)
    )].slice(0, 30);
    return {
        buttons: collect('button, [role="button"], input[type="submit"], input[type="button"]'),
        links: collect('a[href], [role="link"]'),
        inputs: Array.from(root.querySelectorAll(
            'input:not([type="hidden"]):not([type="submit"]):not([type="button"]), textarea, select'
        )).filter(isVisible).length,
    };
}
"""


@dataclass
class DispatchOutcome:
    """How an instruction was carried out."""
    path: Literal["grammar", "ai_plan"]
    commands: list[StructuredCommand] = field(default_factory=list)
    plan: WorkflowPlan | None = None
    skill_results: list[SkillResult] = field(default_factory=list)


async def active_context_selector(page: Page) -> str:
    """Selector of the first visible modal-like container, else ``body``."""
    for selector in MODAL_SELECTORS:
        candidate = f"{selector} >> visible=true >> nth=0"
        try:
            if await page.locator(candidate).count() > 0:
                logger.debug("Active context: %s", selector)
                return candidate
        except Exception as e:
            logger.debug("Modal lookup %s failed: %s", selector, e)
    return "body"


async def summarize_context(page: Page, context_selector: str) -> PageContext:
    """Visible button/link text and input count inside the active context."""
    try:
        data = await page.locator(context_selector).first.evaluate(_SUMMARIZE_CONTEXT_JS)
    except Exception as e:
        logger.warning("Could not summarize page context: %s", e)
        data = {}
    return PageContext(
        context_selector=context_selector,
        url=page.url,
        visible_buttons=data.get("buttons", []),
        visible_links=data.get("links", []),
        input_count=data.get("inputs", 0),
    )


class SmartDispatcher:
    """Routes one instruction to the executor (grammar match) or an AI plan."""

    def __init__(
        self,
        executor: CommandExecutor,
        config: FrameworkConfig,
        planner: PlanningClient | None = None,
        skills: SkillRegistry | None = None,
        grammar: Grammar | None = None,
    ):
        self.executor = executor
        self.config = config
        self.planner = planner
        self.grammar = grammar or DEFAULT_GRAMMAR
        if skills is None and planner is not None:
            skills = default_registry(planner, executor, config)
        self.skills = skills or SkillRegistry()

    async def dispatch(self, instruction: str, page: Page, base_url: str) -> DispatchOutcome:
        """Carry out ``instruction`` on ``page``. Raises on failure."""
        commands = self.grammar.parse_steps(instruction)
        if commands is not None:
            for command in commands:
                await self.executor.execute(command, page, base_url)
            return DispatchOutcome(path="grammar", commands=commands)

        if self.planner is None:
            raise UnrecognizedInstruction(instruction)

        logger.info("No grammar rule for '%s', asking the AI planner", instruction)
        context_selector = await active_context_selector(page)
        context = await summarize_context(page, context_selector)
        plan = await self.planner.plan(instruction, context)
        if not plan.plan:
            raise QAError(f"AI planner returned an empty plan for: \"{instruction}\"")

        outcome = DispatchOutcome(path="ai_plan", plan=plan)
        for i, step in enumerate(plan.plan):
            if i > 0:
                # An earlier step may have opened or closed a modal
                context_selector = await active_context_selector(page)
            await self._run_plan_step(step, page, base_url, context_selector, outcome)
        return outcome

    async def _run_plan_step(
        self,
        step: PlanStep,
        page: Page,
        base_url: str,
        context_selector: str,
        outcome: DispatchOutcome,
    ) -> None:
        logger.info("Plan step: %s %s", step.skill, step.target or step.url or "")
        match step.skill:
            case "CLICK":
                if not step.target:
                    raise UnparsableAIResponse("CLICK plan step has no target")
                command = ClickCommand(target=step.target)
                scope = page.locator(context_selector) if context_selector != "body" else None
                await self.executor.execute(command, page, base_url, scope=scope)
                outcome.commands.append(command)
            case "NAVIGATE":
                if not step.url:
                    raise UnparsableAIResponse("NAVIGATE plan step has no url")
                command = NavigateUrlCommand(url=step.url)
                await self.executor.execute(command, page, base_url)
                outcome.commands.append(command)
            case _:
                skill = self.skills.get(step.skill)
                outcome.skill_results.append(await skill.run(page, context_selector))
