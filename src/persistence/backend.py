"""Durable history of sessions, scenarios and logs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class PersistenceBackend(Protocol):
    async def create_log(self, session_id: str, entry: dict[str, Any]) -> None: ...

    async def update_scenario(self, session_id: str, scenario_id: str, fields: dict[str, Any]) -> None: ...

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> None: ...

    async def create_scenario_report(self, session_id: str, scenario_id: str, report: dict[str, Any]) -> None: ...

    async def create_session_report(self, session_id: str, report: dict[str, Any]) -> None: ...


class JsonFilePersistence:
    """Stores each session under ``<root>/<session_id>/`` as plain JSON files.

    Layout::

        session.json                 merged session fields
        scenarios.json               {scenario_id: merged scenario fields}
        logs.jsonl                   one log entry per line, append-only
        scenario_reports/<id>.json   per-scenario analysis
        session_report.json          final counters + analysis
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def session_dir(self, session_id: str) -> Path:
        path = self.root / session_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    async def create_log(self, session_id: str, entry: dict[str, Any]) -> None:
        with open(self.session_dir(session_id) / "logs.jsonl", "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    async def update_scenario(self, session_id: str, scenario_id: str, fields: dict[str, Any]) -> None:
        path = self.session_dir(session_id) / "scenarios.json"
        scenarios = self._read(path)
        scenarios.setdefault(scenario_id, {}).update(fields)
        self._write(path, scenarios)

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> None:
        path = self.session_dir(session_id) / "session.json"
        session = self._read(path)
        session.update(fields)
        self._write(path, session)

    async def create_scenario_report(self, session_id: str, scenario_id: str, report: dict[str, Any]) -> None:
        reports_dir = self.session_dir(session_id) / "scenario_reports"
        reports_dir.mkdir(exist_ok=True)
        self._write(reports_dir / f"{scenario_id}.json", report)

    async def create_session_report(self, session_id: str, report: dict[str, Any]) -> None:
        self._write(self.session_dir(session_id) / "session_report.json", report)

    # ------------------------------------------------------------------
    # Reading back (history)
    # ------------------------------------------------------------------

    def load_session(self, session_id: str) -> dict[str, Any]:
        return self._read(self.root / session_id / "session.json")

    def load_scenarios(self, session_id: str) -> dict[str, Any]:
        return self._read(self.root / session_id / "scenarios.json")

    def load_logs(self, session_id: str) -> list[dict[str, Any]]:
        path = self.root / session_id / "logs.jsonl"
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write(path: Path, data: dict[str, Any]) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        logger.debug("Saved %s", path)
