"""Configuration models for the instruction runner."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class FrameworkConfig(BaseModel):
    # Target
    target_url: str

    # Browser
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    user_agent: Optional[str] = None

    # Retry policy (1 retry = 2 attempts per step)
    max_step_retries: int = 1
    retry_backoff_ms: int = 1000
    step_delay_ms: int = 500

    # Per-action bounds
    action_timeout_ms: int = 10000
    assertion_timeout_ms: int = 5000
    locator_timeout_ms: int = 2000
    navigation_timeout_ms: int = 30000
    modal_close_timeout_ms: int = 5000

    # Named pages reachable via "Navigate to the <name> page"
    named_pages: dict[str, str] = Field(
        default_factory=lambda: {
            "homepage": "/",
            "login": "/login",
            "contact": "/contact",
            "register": "/register",
        }
    )

    # AI settings
    ai_model: str = "claude-sonnet-4-20250514"
    ai_max_tokens: int = 4000
    analyze_scenarios: bool = True

    # Storage
    runs_dir: str = "./runs"
    golden_scenarios_file: Optional[str] = None

    @field_validator("max_step_retries")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_step_retries must be >= 0")
        return v

    @field_validator(
        "action_timeout_ms", "assertion_timeout_ms", "locator_timeout_ms",
        "navigation_timeout_ms", "modal_close_timeout_ms",
    )
    @classmethod
    def positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @classmethod
    def load(cls, path: str | Path) -> "FrameworkConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
