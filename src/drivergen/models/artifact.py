"""Artifact set models: the generated driver files and their checkpoint history."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from drivergen.models.validation import ImprovementPlan, ValidationIssue, ValidationResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Driver files
# ---------------------------------------------------------------------------


class FileKind(str, Enum):
    """The four artifacts every driver consists of."""

    SCHEMA = "schema"
    CODE = "code"
    DOCS = "docs"
    PACKAGE = "package"

    @property
    def filename(self) -> str:
        """The fixed file key this artifact is stored under."""
        return _FILENAMES[self]


_FILENAMES: dict[FileKind, str] = {
    FileKind.SCHEMA: "memconfig.json",
    FileKind.CODE: "index.ts",
    FileKind.DOCS: "README.md",
    FileKind.PACKAGE: "package.json",
}

_ATTRS: dict[FileKind, str] = {
    FileKind.SCHEMA: "memconfig",
    FileKind.CODE: "code",
    FileKind.DOCS: "readme",
    FileKind.PACKAGE: "package_json",
}

FILE_KEYS: tuple[str, ...] = tuple(_FILENAMES[kind] for kind in FileKind)


class DriverFiles(BaseModel):
    """The four text artifacts of a driver, under their fixed file keys.

    Instances are immutable; a stage replaces one artifact wholesale with
    :meth:`replace`, which returns a new instance.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    memconfig: str = Field(default="", alias="memconfig.json")
    code: str = Field(default="", alias="index.ts")
    readme: str = Field(default="", alias="README.md")
    package_json: str = Field(default="", alias="package.json")

    def get(self, kind: FileKind) -> str:
        return getattr(self, _ATTRS[kind])

    def replace(self, kind: FileKind, text: str) -> DriverFiles:
        """Return a copy with the *kind* artifact replaced by *text*."""
        return self.model_copy(update={_ATTRS[kind]: text})

    def as_dict(self) -> dict[str, str]:
        """Return ``{file key: content}`` for all four artifacts."""
        return {kind.filename: self.get(kind) for kind in FileKind}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> DriverFiles:
        return cls.model_validate(data)


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------


class Checkpoint(BaseModel):
    """An immutable snapshot of an artifact set's files and validity."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0)
    timestamp: datetime = Field(default_factory=_utc_now)
    message: str
    files: DriverFiles
    is_valid: bool = False
    validation_errors: list[ValidationIssue] = Field(default_factory=list)
    improvement_plan: ImprovementPlan | None = None


# ---------------------------------------------------------------------------
# Artifact set
# ---------------------------------------------------------------------------


class PipelineStatus(str, Enum):
    """Lifecycle state of an artifact set inside the pipeline."""

    GENERATING = "generating"
    VALIDATING = "validating"
    VALID = "valid"
    IMPROVING = "improving"
    IMPROVED = "improved"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStatus.VALID, PipelineStatus.EXHAUSTED)


class DriverArtifactSet(BaseModel):
    """The unit of work: one driver being generated, validated and improved.

    ``name`` and ``source_spec`` are fixed at creation. The checkpoint list is
    owned by the set and only ever appended to; ``current_checkpoint`` is
    ``-1`` until the first checkpoint exists.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(..., min_length=1, frozen=True)
    source_spec: str = Field(default="", frozen=True)
    analyzed_api: dict[str, Any] | None = None
    files: DriverFiles = Field(default_factory=DriverFiles)
    is_valid: bool = False
    validation_errors: list[ValidationIssue] = Field(default_factory=list)
    improvement_plan: ImprovementPlan | None = None
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    current_checkpoint: int = -1
    status: PipelineStatus = PipelineStatus.GENERATING
    created_at: datetime = Field(default_factory=_utc_now)

    def apply_validation(self, result: ValidationResult) -> None:
        """Record *result* as the set's current validity."""
        self.is_valid = result.is_valid
        self.validation_errors = list(result.errors)
        self.improvement_plan = result.improvement_plan

    @property
    def validation(self) -> ValidationResult:
        """The current validity as a :class:`ValidationResult`."""
        return ValidationResult(
            is_valid=self.is_valid,
            errors=list(self.validation_errors),
            improvement_plan=self.improvement_plan,
        )
