"""Validation value objects produced by the driver validator."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Component(str, Enum):
    """Artifact a validation issue is attributed to."""

    SCHEMA = "schema"
    CODE = "code"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """One problem found in a generated driver.

    Issues are plain values: they are reported, never raised.
    """

    model_config = ConfigDict(frozen=True)

    component: Component
    message: str
    path: list[str] | None = None
    severity: Severity = Severity.ERROR
    suggestion: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR


class ImprovementPlan(BaseModel):
    """Validation issues grouped by component plus a remediation prompt."""

    model_config = ConfigDict(frozen=True)

    components: list[Component] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    prompt: str = ""


class ValidationResult(BaseModel):
    """Outcome of one validation pass."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    improvement_plan: ImprovementPlan | None = None

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.errors if issue.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.errors if not issue.is_error)
