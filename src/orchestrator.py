"""Drives the session, scenario and step loop."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from playwright.async_api import Page

from src.ai.client import AIClient, set_debug_dir
from src.ai.planning import AIPlanningClient, PlanningClient
from src.errors import SessionFatal
from src.events.channel import ProgressChannel
from src.executor.command_executor import CommandExecutor
from src.executor.dispatcher import SmartDispatcher
from src.executor.evidence_collector import EvidenceCollector
from src.golden import GoldenOverrideTable
from src.models.config import FrameworkConfig
from src.models.events import (
    LogEmitted,
    ScenarioCompleted,
    ScenarioStarted,
    ScreenshotCaptured,
    SessionCompleted,
    SessionFailed,
    StepCompleted,
    StepStarted,
)
from src.models.plan import SessionAnalysis
from src.models.session import (
    LogEntry,
    LogLevel,
    Scenario,
    Session,
    SessionResult,
    StepRecord,
    utcnow,
)
from src.persistence.backend import JsonFilePersistence, PersistenceBackend
from src.persistence.writer import PersistenceWriter
from src.utils.browser import browser_session

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ExecutionOrchestrator:
    """Runs sessions: one browser page, scenarios and steps strictly in order."""

    def __init__(
        self,
        config: FrameworkConfig,
        planner: PlanningClient | None = None,
        persistence: PersistenceBackend | None = None,
        golden: GoldenOverrideTable | None = None,
        dispatcher: SmartDispatcher | None = None,
    ):
        self.config = config
        self.planner = planner
        self.persistence = persistence
        self.golden = golden or GoldenOverrideTable()
        self.dispatcher = dispatcher or SmartDispatcher(
            CommandExecutor(config), config, planner=planner,
        )

    @classmethod
    def from_config(cls, config: FrameworkConfig) -> "ExecutionOrchestrator":
        """Wire up JSON persistence, the golden table and (if a key is set) AI planning."""
        runs_dir = Path(config.runs_dir)
        runs_dir.mkdir(parents=True, exist_ok=True)
        set_debug_dir(runs_dir / "debug")

        # Without AI, unmatched instructions fail
        planner: PlanningClient | None = None
        try:
            planner = AIPlanningClient(AIClient(model=config.ai_model, max_tokens=config.ai_max_tokens))
        except EnvironmentError as e:
            logger.warning("AI client unavailable: %s. Running grammar-only.", e)

        return cls(
            config,
            planner=planner,
            persistence=JsonFilePersistence(runs_dir),
            golden=GoldenOverrideTable.load(config.golden_scenarios_file),
        )

    async def run_session(
        self,
        session: Session,
        scenarios: list[Scenario],
        channel: ProgressChannel | None = None,
    ) -> SessionResult:
        """Execute every scenario of ``session`` and return the final state."""
        run = SessionRun(self, session, scenarios, channel or ProgressChannel(session.id))
        return await run.execute()

    def run(self, url: str, scenarios: list[Scenario]) -> SessionResult:
        """Synchronous entry point used by the CLI."""
        return asyncio.run(self.run_session(Session(url=url), scenarios))


class SessionRun:
    """State of one executing session."""

    def __init__(
        self,
        orchestrator: ExecutionOrchestrator,
        session: Session,
        scenarios: list[Scenario],
        channel: ProgressChannel,
    ):
        self.config = orchestrator.config
        self.planner = orchestrator.planner
        self.golden = orchestrator.golden
        self.dispatcher = orchestrator.dispatcher
        self.session = session
        self.scenarios = scenarios
        self.channel = channel
        self.logs: list[LogEntry] = []
        self.writer = PersistenceWriter(orchestrator.persistence)
        evidence_dir = None
        if orchestrator.persistence is not None:
            evidence_dir = Path(self.config.runs_dir) / session.id / "screenshots"
        self.collector = EvidenceCollector(evidence_dir)
        self.analysis: SessionAnalysis | None = None

    async def execute(self) -> SessionResult:
        session = self.session
        session.status = "running"
        session.started_at = utcnow()
        session.total_scenarios = len(self.scenarios)
        self.writer.update_session(session)
        self._log("info", f"Starting test session for {session.url} "
                          f"({len(self.scenarios)} scenarios)")

        try:
            async with browser_session(self.config) as page:
                self.collector.setup_listeners(page)
                for index, scenario in enumerate(self.scenarios, start=1):
                    if page.is_closed():
                        raise SessionFatal("Browser page was closed")
                    await self._run_scenario(page, scenario, index)
            await self._complete()
        except SessionFatal as e:
            self._fail(str(e))
        except Exception as e:
            logger.exception("Unexpected error outside the step loop")
            self._fail(f"Unexpected error: {e}")
        finally:
            self.collector.save_logs()
            await self.writer.close()

        return SessionResult(
            session=session, scenarios=self.scenarios, logs=self.logs, analysis=self.analysis,
        )

    # ------------------------------------------------------------------
    # Scenarios
    # ------------------------------------------------------------------

    async def _run_scenario(self, page: Page, scenario: Scenario, index: int) -> None:
        golden_steps = self.golden.lookup(scenario.title)
        if golden_steps is not None:
            scenario.steps = golden_steps
            scenario.golden_override = True

        scenario.status = "running"
        scenario.started_at = utcnow()
        self.writer.update_scenario(self.session.id, scenario)
        self.channel.publish(ScenarioStarted(
            session_id=self.session.id, scenario_id=scenario.id,
            title=scenario.title, golden_override=scenario.golden_override,
        ))
        self._log("info", f"Starting scenario {index}/{len(self.scenarios)}: {scenario.title}",
                  scenario_id=scenario.id)
        if scenario.golden_override:
            self._log("info", f"Using golden steps for '{scenario.title}'", scenario_id=scenario.id)

        reset_error = await self._reset(page, scenario)
        if reset_error:
            scenario.status = "failed"
            scenario.error_message = reset_error
        else:
            for step_index, instruction in enumerate(scenario.steps, start=1):
                record = await self._run_step(page, scenario, index, step_index, instruction)
                scenario.step_records.append(record)
                if record.status == "failed":
                    scenario.status = "failed"
                    scenario.error_message = f"Step {step_index} failed: {record.error_message}"
                    break
                if step_index < len(scenario.steps) and self.config.step_delay_ms:
                    await page.wait_for_timeout(self.config.step_delay_ms)
            else:
                scenario.status = "passed"

        scenario.completed_at = utcnow()
        self._count(scenario)
        if scenario.status == "passed":
            self._log("success", f"Scenario passed: {scenario.title}", scenario_id=scenario.id)
        else:
            self._log("error", f"Scenario failed: {scenario.title} ({scenario.error_message})",
                      scenario_id=scenario.id)
        self.channel.publish(ScenarioCompleted(
            session_id=self.session.id, scenario_id=scenario.id, title=scenario.title,
            status=scenario.status, duration_ms=scenario.duration_ms,
            error_message=scenario.error_message,
        ))
        self.writer.update_scenario(self.session.id, scenario)
        self.writer.update_session(self.session)
        await self._report_scenario(scenario)

    async def _reset(self, page: Page, scenario: Scenario) -> str | None:
        """Navigate back to the session URL. Returns an error message on failure."""
        self._log("info", f"Resetting to base URL: {self.session.url}", scenario_id=scenario.id)
        try:
            await page.goto(self.session.url, wait_until="domcontentloaded",
                            timeout=self.config.navigation_timeout_ms)
        except Exception as e:
            if page.is_closed():
                raise SessionFatal(f"Browser page closed during reset: {e}") from e
            return f"Could not load {self.session.url}: {e}"
        try:
            await page.wait_for_load_state("networkidle", timeout=self.config.action_timeout_ms)
        except Exception:
            logger.debug("Network idle timeout after reset, continuing")
        return None

    def _count(self, scenario: Scenario) -> None:
        session = self.session
        if scenario.status == "passed":
            session.passed_scenarios += 1
        else:
            session.failed_scenarios += 1
        for record in scenario.step_records:
            session.total_steps += 1
            if record.status == "passed":
                session.passed_steps += 1
            else:
                session.failed_steps += 1

    async def _report_scenario(self, scenario: Scenario) -> None:
        report: dict[str, Any] = {
            "scenario_id": scenario.id,
            "title": scenario.title,
            "status": scenario.status,
            "duration_ms": scenario.duration_ms,
            "error_message": scenario.error_message,
            "analysis": None,
        }
        if self.planner is not None and self.config.analyze_scenarios:
            scenario_logs = [e for e in self.logs if e.scenario_id == scenario.id]
            try:
                analysis = await self.planner.analyze_scenario(scenario, scenario_logs)
                report["analysis"] = analysis.model_dump()
            except Exception as e:
                logger.warning("Scenario analysis failed for '%s': %s", scenario.title, e)
        self.writer.create_scenario_report(self.session.id, scenario.id, report)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _run_step(
        self,
        page: Page,
        scenario: Scenario,
        scenario_index: int,
        step_index: int,
        instruction: str,
    ) -> StepRecord:
        progress = dict(
            session_id=self.session.id,
            current_scenario=scenario_index,
            total_scenarios=len(self.scenarios),
            current_step=step_index,
            total_steps=len(scenario.steps),
            scenario_title=scenario.title,
            step_description=instruction,
        )
        self.channel.publish(StepStarted(**progress, start_time=utcnow()))
        self._log("info", f"Step {step_index}/{len(scenario.steps)}: {instruction}",
                  scenario_id=scenario.id, step_index=step_index)

        max_attempts = self.config.max_step_retries + 1
        record = StepRecord(index=step_index, instruction=instruction)
        for attempt in range(1, max_attempts + 1):
            record.attempts = attempt
            error: Exception | None = None
            try:
                outcome = await self.dispatcher.dispatch(instruction, page, self.session.url)
                record.dispatch_path = outcome.path
            except SessionFatal:
                raise
            except Exception as e:
                error = e
                if page.is_closed():
                    raise SessionFatal(f"Browser page closed during step {step_index}: {e}") from e

            label = f"scenario{scenario_index}_step{step_index}_attempt{attempt}"
            screenshot, screenshot_path = await self.collector.take_screenshot(page, label)
            if screenshot:
                self.channel.publish(ScreenshotCaptured(session_id=self.session.id,
                                                        screenshot=screenshot))
            record.screenshot_path = screenshot_path

            if error is None:
                record.status = "passed"
                self._log("success", f"Step {step_index} passed", scenario_id=scenario.id,
                          step_index=step_index, screenshot=screenshot)
                break

            record.error_message = str(error)
            if attempt < max_attempts:
                self._log("warning",
                          f"Step {step_index} failed (attempt {attempt}/{max_attempts}): {error}. Retrying...",
                          scenario_id=scenario.id, step_index=step_index, screenshot=screenshot)
                await page.wait_for_timeout(self.config.retry_backoff_ms)
            else:
                record.status = "failed"
                self._log("error",
                          f"Step {step_index} failed after {max_attempts} attempt(s): {error}",
                          scenario_id=scenario.id, step_index=step_index, screenshot=screenshot)

        self.channel.publish(StepCompleted(
            **progress, status=record.status, attempts=record.attempts,
            error_message=record.error_message if record.status == "failed" else None,
        ))
        return record

    # ------------------------------------------------------------------
    # Session end
    # ------------------------------------------------------------------

    async def _complete(self) -> None:
        session = self.session
        session.status = "completed"
        session.completed_at = utcnow()
        self.writer.update_session(session)

        if self.planner is not None:
            try:
                self.analysis = await self.planner.analyze_session(session, self.scenarios, self.logs)
            except Exception as e:
                logger.warning("Session analysis failed: %s", e)
                self._log("warning", f"AI analysis failed: {e}")

        self.writer.create_session_report(session.id, self._session_report())
        self._log("success",
                  f"Test execution completed: {session.passed_scenarios} passed, "
                  f"{session.failed_scenarios} failed")
        self.channel.publish(SessionCompleted(session_id=session.id, results=session.counters()))

    def _fail(self, message: str) -> None:
        session = self.session
        for scenario in self.scenarios:
            if scenario.status == "running":
                scenario.status = "failed"
                scenario.error_message = f"Session aborted: {message}"
                scenario.completed_at = utcnow()
                self._count(scenario)
                self.writer.update_scenario(session.id, scenario)
        session.status = "failed"
        session.error_message = message
        session.completed_at = utcnow()
        self.writer.update_session(session)
        self._log("error", f"Test session failed: {message}")
        self.channel.publish(SessionFailed(session_id=session.id, error=message,
                                           results=session.counters()))

    def _session_report(self) -> dict[str, Any]:
        session = self.session
        return {
            "session_id": session.id,
            "url": session.url,
            "status": session.status,
            "duration_ms": session.duration_ms,
            **session.counters(),
            "scenarios": [
                {
                    "id": s.id,
                    "title": s.title,
                    "status": s.status,
                    "duration_ms": s.duration_ms,
                    "error_message": s.error_message,
                    "golden_override": s.golden_override,
                }
                for s in self.scenarios
            ],
            "analysis": self.analysis.model_dump(by_alias=True) if self.analysis else None,
        }

    def _log(
        self,
        level: LogLevel,
        message: str,
        scenario_id: str | None = None,
        step_index: int | None = None,
        screenshot: str | None = None,
    ) -> None:
        entry = LogEntry(
            session_id=self.session.id, level=level, message=message,
            scenario_id=scenario_id, step_index=step_index, screenshot=screenshot,
        )
        self.logs.append(entry)
        logger.log(_LOG_LEVELS[level], "%s", message)
        self.channel.publish(LogEmitted(session_id=self.session.id, entry=entry))
        self.writer.create_log(entry)
