"""System prompts for per-scenario and whole-session result analysis."""

from __future__ import annotations

from src.models.session import LogEntry, Scenario, Session

SCENARIO_ANALYSIS_SYSTEM_PROMPT = """You are an expert test analyst reviewing one executed browser test scenario and its execution log.

CRITICAL: Return ONLY valid JSON. No markdown fences, no comments, no text before or after the JSON object.

Return exactly this JSON structure:

{"summary": "one sentence", "issues": ["..."], "recommendations": ["..."]}

- summary: what happened in the scenario, in one sentence.
- issues: specific errors or unexpected behaviour seen in the log; empty if none.
- recommendations: improvements or next steps; empty if none."""

SESSION_ANALYSIS_SYSTEM_PROMPT = """You are an expert test analyst. Analyze the results of a full browser test session and give actionable insights.

CRITICAL: Return ONLY valid JSON. No markdown fences, no comments, no text before or after the JSON object.

Return exactly this JSON structure:

{
  "summary": "executive summary",
  "keyFindings": ["..."],
  "recommendations": ["..."],
  "riskAssessment": {"level": "low|medium|high", "issues": ["..."]},
  "qualityScore": 0
}

qualityScore is an integer from 0 to 100."""

_MAX_LOG_LINES = 80


def _format_logs(logs: list[LogEntry]) -> str:
    lines = [f"- [{entry.level.upper()}] {entry.message}" for entry in logs[-_MAX_LOG_LINES:]]
    return "\n".join(lines) if lines else "(no log entries)"


def build_scenario_analysis_prompt(scenario: Scenario, logs: list[LogEntry]) -> str:
    """Build the user message for analyzing one scenario."""
    steps = "\n".join(f"  {i}. {step}" for i, step in enumerate(scenario.steps, start=1))
    return (
        f"Scenario: {scenario.title}\n"
        f"Description: {scenario.description or '-'}\n"
        f"Status: {scenario.status}\n"
        f"Duration: {scenario.duration_ms or 0}ms\n"
        f"Error: {scenario.error_message or 'none'}\n"
        f"Steps:\n{steps}\n\n"
        f"Execution log:\n{_format_logs(logs)}\n\n"
        f"Return your analysis as a single JSON object."
    )


def build_session_analysis_prompt(
    session: Session, scenarios: list[Scenario], logs: list[LogEntry],
) -> str:
    """Build the user message for the final session analysis."""
    outcome_lines = []
    for scenario in scenarios:
        line = f"- {scenario.title}: {scenario.status}"
        if scenario.error_message:
            line += f" ({scenario.error_message})"
        outcome_lines.append(line)
    errors = [entry for entry in logs if entry.level == "error"]
    return (
        f"Target URL: {session.url}\n"
        f"Status: {session.status}\n"
        f"Total Scenarios: {session.total_scenarios}\n"
        f"Passed Scenarios: {session.passed_scenarios}\n"
        f"Failed Scenarios: {session.failed_scenarios}\n"
        f"Passed Steps: {session.passed_steps}\n"
        f"Failed Steps: {session.failed_steps}\n\n"
        f"Scenario outcomes:\n" + "\n".join(outcome_lines) + "\n\n"
        f"Error log entries:\n{_format_logs(errors)}\n\n"
        f"Return your analysis as a single JSON object."
    )
