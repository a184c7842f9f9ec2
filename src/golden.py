"""Canonical step lists for known-critical scenarios.

A scenario whose title exactly matches an entry runs these steps instead of
whatever steps it was created with.

The built-in entries use placeholder credentials for a demo login page. The
table is meant to be overridden per site through the ``golden_scenarios_file``
config setting, whose entries replace built-ins with the same title.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class GoldenScenario(BaseModel):
    title: str
    steps: list[str] = Field(default_factory=list)


BUILTIN_GOLDEN_SCENARIOS: tuple[GoldenScenario, ...] = (
    GoldenScenario(
        title="Invalid login test",
        steps=[
            'Fill "abc.com" into the "email" field',
            'Click the "Login" button',
            'Verify that the page contains "Please enter a valid email address"',
        ],
    ),
    GoldenScenario(
        title="Valid email and invalid password login test",
        steps=[
            'Fill "qa.user@example.com" into the "email" field',
            'Fill "12345" into the "password" field',
            'Click the "Login" button',
            'Verify that the page contains "Incorrect password"',
        ],
    ),
    GoldenScenario(
        title="Valid login test",
        steps=[
            'Fill "qa.user@example.com" into the "email" field',
            'Fill "Harry@123" into the "password" field',
            'Click the "Login" button',
            'Verify that the page contains "Welcome to your Dashboard"',
        ],
    ),
)


class GoldenOverrideTable:
    """Exact-title lookup of canonical scenario steps."""

    def __init__(self, scenarios: list[GoldenScenario] | tuple[GoldenScenario, ...] = BUILTIN_GOLDEN_SCENARIOS):
        self._steps: dict[str, list[str]] = {}
        for scenario in scenarios:
            self._steps[scenario.title] = list(scenario.steps)

    def lookup(self, title: str) -> list[str] | None:
        """Steps for ``title``, or None. Matching is exact (case and whitespace)."""
        steps = self._steps.get(title)
        return list(steps) if steps is not None else None

    def __contains__(self, title: str) -> bool:
        return title in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def titles(self) -> list[str]:
        return list(self._steps)

    def merge_file(self, path: str | Path) -> int:
        """Add or replace entries from a JSON file.

        Accepts ``[{"title", "steps"}]`` or ``{"scenarios": [...]}``.
        Returns the number of entries loaded.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Golden scenarios file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        entries = data.get("scenarios", []) if isinstance(data, dict) else data
        loaded = [GoldenScenario.model_validate(entry) for entry in entries]
        for scenario in loaded:
            self._steps[scenario.title] = list(scenario.steps)
        logger.info("Loaded %d golden scenarios from %s", len(loaded), path)
        return len(loaded)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "GoldenOverrideTable":
        """Built-in table, optionally extended from a JSON file."""
        table = cls()
        if path:
            table.merge_file(path)
        return table
