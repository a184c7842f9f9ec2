"""Session, scenario and log data structures mutated by the orchestrator."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .plan import SessionAnalysis

SessionStatus = Literal["pending", "running", "completed", "failed"]
ScenarioStatus = Literal["pending", "running", "passed", "failed"]
LogLevel = Literal["info", "success", "warning", "error"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _duration_ms(started: datetime | None, completed: datetime | None) -> int | None:
    if started is None or completed is None:
        return None
    return int((completed - started).total_seconds() * 1000)


class StepRecord(BaseModel):
    """Outcome of one instruction after retries."""
    index: int
    instruction: str
    status: Literal["passed", "failed"] = "passed"
    attempts: int = 1
    error_message: Optional[str] = None
    dispatch_path: str = ""  # grammar, ai_plan
    screenshot_path: Optional[str] = None


class Scenario(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: str = ""
    steps: list[str] = Field(default_factory=list)
    status: ScenarioStatus = "pending"
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    golden_override: bool = False
    step_records: list[StepRecord] = Field(default_factory=list)

    @property
    def duration_ms(self) -> int | None:
        return _duration_ms(self.started_at, self.completed_at)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("passed", "failed")


class Session(BaseModel):
    id: str = Field(default_factory=_new_id)
    url: str
    status: SessionStatus = "pending"
    total_scenarios: int = 0
    passed_scenarios: int = 0
    failed_scenarios: int = 0
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def duration_ms(self) -> int | None:
        return _duration_ms(self.started_at, self.completed_at)

    def counters(self) -> dict[str, int]:
        return {
            "total_scenarios": self.total_scenarios,
            "passed_scenarios": self.passed_scenarios,
            "failed_scenarios": self.failed_scenarios,
            "total_steps": self.total_steps,
            "passed_steps": self.passed_steps,
            "failed_steps": self.failed_steps,
        }


class LogEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    session_id: str
    level: LogLevel = "info"
    message: str
    scenario_id: Optional[str] = None
    step_index: Optional[int] = None
    screenshot: Optional[str] = None  # data URL
    timestamp: datetime = Field(default_factory=utcnow)


class ScenarioSuite(BaseModel):
    """Scenarios file accepted by the CLI."""
    url: Optional[str] = None
    scenarios: list[Scenario] = Field(default_factory=list)


class SessionResult(BaseModel):
    session: Session
    scenarios: list[Scenario] = Field(default_factory=list)
    logs: list[LogEntry] = Field(default_factory=list)
    analysis: Optional[SessionAnalysis] = None
