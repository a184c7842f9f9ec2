"""Data exchanged with the AI planning collaborator."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field


class PageContext(BaseModel):
    """Summary of the active DOM region handed to the planner."""
    context_selector: str = "body"
    url: str = ""
    visible_buttons: list[str] = Field(default_factory=list)
    visible_links: list[str] = Field(default_factory=list)
    input_count: int = 0

    @property
    def is_modal(self) -> bool:
        return self.context_selector != "body"

    @property
    def has_form(self) -> bool:
        return self.input_count >= 3


class PlanStep(BaseModel):
    skill: str  # CLICK, NAVIGATE, FILL_FORM_HAPPY_PATH, TEST_FORM_VALIDATION
    target: Optional[str] = None
    url: Optional[str] = None


class WorkflowPlan(BaseModel):
    plan: list[PlanStep] = Field(default_factory=list)


class FormField(BaseModel):
    """A fillable control discovered inside a form context."""
    key: str  # semantic label: <label> text, else name, else placeholder
    tag: str = "input"
    input_type: str = "text"
    name: str = ""
    element_id: str = ""
    placeholder: str = ""
    label: str = ""
    options: list[str] = Field(default_factory=list)
    index: int = 0  # position among the context's fillable controls

    @property
    def is_select(self) -> bool:
        return self.tag == "select"


class FieldMapping(BaseModel):
    """A faker-js style generator reference, e.g. person.firstName."""
    namespace: str
    method: str
    options: Optional[list[Any]] = None


class ValidationStep(BaseModel):
    target: str
    value: str = ""


class ValidationScenario(BaseModel):
    name: str = Field(validation_alias=AliasChoices("name", "title"))
    description: str = ""
    steps: list[ValidationStep] = Field(default_factory=list)

    @property
    def is_happy_path(self) -> bool:
        return "happy path" in self.name.lower()


class ValidationPlan(BaseModel):
    scenarios: list[ValidationScenario] = Field(default_factory=list)


class ValidationObservation(BaseModel):
    scenario_name: str
    status: Literal["completed", "failed"] = "completed"
    screenshot: Optional[str] = None  # data URL
    note: str = ""
    error: Optional[str] = None


class SkillResult(BaseModel):
    skill: str
    filled_fields: list[str] = Field(default_factory=list)
    submitted: bool = False
    observations: list[ValidationObservation] = Field(default_factory=list)


class ScenarioAnalysis(BaseModel):
    summary: str = ""
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class RiskAssessment(BaseModel):
    level: Literal["low", "medium", "high"] = "low"
    issues: list[str] = Field(default_factory=list)


class SessionAnalysis(BaseModel):
    summary: str = ""
    key_findings: list[str] = Field(default_factory=list, alias="keyFindings")
    recommendations: list[str] = Field(default_factory=list)
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment, alias="riskAssessment")
    quality_score: int = Field(default=0, ge=0, le=100, alias="qualityScore")

    model_config = {"populate_by_name": True}
