"""Typed progress events broadcast on the live channel."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, Field

from .session import LogEntry, utcnow


class ProgressEvent(BaseModel):
    channel: ClassVar[str] = ""
    terminal: ClassVar[bool] = False

    session_id: str
    emitted_at: datetime = Field(default_factory=utcnow)

    def to_message(self) -> dict[str, Any]:
        """Wire form: channel name plus JSON-ready payload."""
        return {"event": self.channel, "data": self.model_dump(mode="json")}


class ScenarioStarted(ProgressEvent):
    channel: ClassVar[str] = "test-scenario-update"
    scenario_id: str
    title: str
    status: Literal["running"] = "running"
    golden_override: bool = False


class ScenarioCompleted(ProgressEvent):
    channel: ClassVar[str] = "test-scenario-update"
    scenario_id: str
    title: str
    status: Literal["passed", "failed"]
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None


class StepStarted(ProgressEvent):
    channel: ClassVar[str] = "test-progress"
    current_scenario: int
    total_scenarios: int
    current_step: int
    total_steps: int
    scenario_title: str
    step_description: str
    status: Literal["running"] = "running"
    start_time: datetime


class StepCompleted(ProgressEvent):
    channel: ClassVar[str] = "test-progress"
    current_scenario: int
    total_scenarios: int
    current_step: int
    total_steps: int
    scenario_title: str
    step_description: str
    status: Literal["passed", "failed"]
    attempts: int = 1
    error_message: Optional[str] = None


class LogEmitted(ProgressEvent):
    channel: ClassVar[str] = "test-log"
    entry: LogEntry


class ScreenshotCaptured(ProgressEvent):
    channel: ClassVar[str] = "browser-view-update"
    screenshot: str  # data URL


class SessionCompleted(ProgressEvent):
    channel: ClassVar[str] = "test-completed"
    terminal: ClassVar[bool] = True
    results: dict[str, int]


class SessionFailed(ProgressEvent):
    channel: ClassVar[str] = "test-failed"
    terminal: ClassVar[bool] = True
    error: str
    results: dict[str, int] = Field(default_factory=dict)
