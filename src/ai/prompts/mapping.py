"""System prompt for mapping form fields to fake-data generators."""

from __future__ import annotations

import json

from src.models.plan import FormField

MAPPING_SYSTEM_PROMPT = """You map web form fields to faker-js data generators so a test can fill the form with realistic values.

CRITICAL: Return ONLY valid JSON. No markdown fences, no comments, no text before or after the JSON object.

The output is a JSON object whose keys are the field "key" values from the input, and whose values are {"namespace": ..., "method": ..., "options": [...]} ("options" is optional).

Mapping guidelines:
- Names: {"namespace": "person", "method": "firstName"}, "lastName" or "fullName".
- Email: {"namespace": "internet", "method": "email"}. Passwords: {"namespace": "internet", "method": "password"}.
- Phone: {"namespace": "phone", "method": "number"}.
- Address: the "location" namespace ("streetAddress", "city", "state", "zipCode", "country").
- Company and job: {"namespace": "company", "method": "name"}, {"namespace": "person", "method": "jobTitle"}.
- Dates: {"namespace": "date", "method": "past"} or "future".
- Numbers: {"namespace": "number", "method": "int"}.
- Long text and descriptions: {"namespace": "lorem", "method": "paragraph"}.
- Select elements with options MUST use {"namespace": "helpers", "method": "arrayElement", "options": [[...the options...]]}.
- Anything else: {"namespace": "lorem", "method": "words", "options": [3]}.

Example output:
{"Full Name": {"namespace": "person", "method": "fullName"}, "Role": {"namespace": "helpers", "method": "arrayElement", "options": [["admin", "viewer"]]}}"""


def build_mapping_prompt(fields: list[FormField]) -> str:
    """Build the user message for a field mapping call."""
    inputs = []
    for field in fields:
        entry = {
            "key": field.key,
            "label": field.label,
            "name": field.name,
            "placeholder": field.placeholder,
            "type": "select" if field.is_select else field.input_type,
        }
        if field.options:
            entry["options"] = field.options
        inputs.append(entry)
    return (
        f"Form inputs:\n{json.dumps(inputs, indent=2)}\n\n"
        f"Return the mapping as a single JSON object keyed by \"key\"."
    )
