"""Error taxonomy for instruction execution."""

from __future__ import annotations


class QAError(Exception):
    """Base class for all engine errors."""


class ElementNotFound(QAError):
    """Every locator strategy was exhausted without a match."""

    def __init__(self, identifier: str, attempts: list[str] | None = None, message: str = ""):
        self.identifier = identifier
        self.attempts = attempts or []
        if not message:
            message = f"Could not find element '{identifier}'"
            if self.attempts:
                message += f" (tried: {', '.join(self.attempts)})"
        super().__init__(message)


class AssertionFailed(QAError):
    """An expectation was not met within its time bound."""

    def __init__(self, message: str, hint: str | None = None):
        self.hint = hint
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class UnparsableAIResponse(QAError):
    """The AI collaborator returned JSON that is invalid or off-schema."""


class UnknownSkill(QAError):
    """A workflow plan referenced a skill that is not registered."""

    def __init__(self, skill: str):
        self.skill = skill
        super().__init__(f"Unknown skill in workflow plan: '{skill}'")


class UnrecognizedInstruction(QAError):
    """No grammar rule matched and no AI planner is available."""

    def __init__(self, instruction: str):
        self.instruction = instruction
        super().__init__(f"Unknown or malformed step action: \"{instruction}\"")


class SessionFatal(QAError):
    """The browser session cannot continue; the whole run is aborted."""
