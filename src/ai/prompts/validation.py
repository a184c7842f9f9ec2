"""System prompt for generating form validation scenarios."""

from __future__ import annotations

import json

from src.models.plan import FormField

VALIDATION_SYSTEM_PROMPT = """You are a QA engineer designing validation scenarios for a single web form.

CRITICAL: Return ONLY valid JSON. No markdown fences, no comments, no text before or after the JSON object.

Return exactly this JSON structure:

{"scenarios": [{"name": "Empty submission", "description": "Submit without filling any field", "steps": []},
               {"name": "Invalid email format", "description": "...", "steps": [{"target": "Email", "value": "not-an-email"}]},
               {"name": "Happy path", "description": "All fields valid", "steps": [{"target": "Email", "value": "jane@example.com"}]}]}

Rules:
- Always include one "Empty submission" scenario with no steps.
- Add one scenario per field whose format can be violated (email, phone, number, URL, date, password length).
- Include exactly one scenario whose name contains "Happy path".
- Each step's "target" MUST be a field "key" from the input.
- Keep the whole plan to at most 6 scenarios."""


def build_validation_prompt(fields: list[FormField]) -> str:
    """Build the user message for a validation scenario call."""
    inputs = [
        {
            "key": f.key,
            "type": "select" if f.is_select else f.input_type,
            "label": f.label,
            "name": f.name,
            "placeholder": f.placeholder,
        }
        for f in fields
    ]
    return (
        f"Form inputs:\n{json.dumps(inputs, indent=2)}\n\n"
        f"Return the scenarios as a single JSON object."
    )
