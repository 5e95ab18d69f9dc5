"""StepExecutor – typed dispatch of pipeline steps to generation agents.

Every pipeline step is a member of the closed :class:`PipelineStep` enum and
has its own frozen payload dataclass. The executor reshapes the pipeline
state into the step's payload and awaits the agent bound to the step.

Design:
- ``StepExecutor(agents)`` requires an agent for every step and raises
  ``StepRegistrationError`` otherwise, so dispatch can never miss.
- ``StepExecutor.default(gateway)`` wires the standard agents.
- ``PipelineStep.parse(text)`` is the only place a step name string is
  accepted; unknown names raise ``UnknownStepError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Protocol

from drivergen.models.artifact import DriverFiles, FileKind
from drivergen.pipeline.exceptions import StepInputError, StepRegistrationError, UnknownStepError

if TYPE_CHECKING:
    from drivergen.llm.gateway import LLMGateway
    from drivergen.llm.prompt_templates import PromptTemplate
    from drivergen.validation.validator import DriverValidator
    from drivergen.vectordb.rag import RAGIndex

logger = logging.getLogger(__name__)


class PipelineStep(str, Enum):
    """Every step the pipeline can run."""

    ANALYZE_API = "Analyze API"
    GENERATE_SCHEMA = "Generate Schema"
    GENERATE_CODE = "Generate Code"
    GENERATE_DOCS = "Generate Docs"
    GENERATE_PACKAGE_JSON = "Generate Package JSON"
    VALIDATE_DRIVER = "Validate Driver"
    IMPROVE_CODE = "Improve Code"
    IMPROVE_SCHEMA = "Improve Schema"
    IMPROVE_DOCS = "Improve Docs"
    IMPROVE_PACKAGE_JSON = "Improve Package JSON"

    @classmethod
    def parse(cls, value: str | PipelineStep) -> PipelineStep:
        """Resolve a step from its display name or enum name.

        Raises:
            UnknownStepError: If *value* names no step.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for step in cls:
            if text == step.value or text.upper() == step.name:
                return step
        raise UnknownStepError(text)


# The improvement step for each artifact a caller can target.
IMPROVEMENT_STEPS: dict[FileKind, PipelineStep] = {
    FileKind.SCHEMA: PipelineStep.IMPROVE_SCHEMA,
    FileKind.CODE: PipelineStep.IMPROVE_CODE,
    FileKind.DOCS: PipelineStep.IMPROVE_DOCS,
    FileKind.PACKAGE: PipelineStep.IMPROVE_PACKAGE_JSON,
}


# ---------------------------------------------------------------------------
# Pipeline state and step payloads
# ---------------------------------------------------------------------------


@dataclass
class StepState:
    """Everything a step may draw its payload from."""

    name: str
    spec: str = ""
    analyzed_api: dict[str, Any] | None = None
    files: DriverFiles = field(default_factory=DriverFiles)
    feedback: str = ""


@dataclass(frozen=True)
class AnalyzeApiInput:
    spec: str


@dataclass(frozen=True)
class GenerateSchemaInput:
    analyzed_api: dict[str, Any]


@dataclass(frozen=True)
class GenerateCodeInput:
    memconfig: str
    analyzed_api: dict[str, Any]


@dataclass(frozen=True)
class GenerateDocsInput:
    memconfig: str
    code: str
    name: str


@dataclass(frozen=True)
class GeneratePackageJsonInput:
    name: str
    code: str


@dataclass(frozen=True)
class ValidateDriverInput:
    code: str
    memconfig: str
    api_summary: dict[str, Any] | None


@dataclass(frozen=True)
class ImproveCodeInput:
    code: str
    feedback: str
    analyzed_api: dict[str, Any] | None


@dataclass(frozen=True)
class ImproveSchemaInput:
    schema: str
    feedback: str


@dataclass(frozen=True)
class ImproveDocsInput:
    docs: str
    code: str
    feedback: str
    name: str


@dataclass(frozen=True)
class ImprovePackageJsonInput:
    package_json: str
    feedback: str
    name: str


def _require_analysis(state: StepState) -> dict[str, Any]:
    if state.analyzed_api is None:
        raise StepInputError(f"Driver '{state.name}' has no analyzed API yet")
    return state.analyzed_api


def _require_feedback(state: StepState) -> str:
    if not state.feedback.strip():
        raise StepInputError("Improvement steps need non-empty feedback")
    return state.feedback


_PAYLOAD_BUILDERS: dict[PipelineStep, Callable[[StepState], Any]] = {
    PipelineStep.ANALYZE_API: lambda s: AnalyzeApiInput(spec=s.spec),
    PipelineStep.GENERATE_SCHEMA: lambda s: GenerateSchemaInput(
        analyzed_api=_require_analysis(s),
    ),
    PipelineStep.GENERATE_CODE: lambda s: GenerateCodeInput(
        memconfig=s.files.memconfig,
        analyzed_api=_require_analysis(s),
    ),
    PipelineStep.GENERATE_DOCS: lambda s: GenerateDocsInput(
        memconfig=s.files.memconfig,
        code=s.files.code,
        name=s.name,
    ),
    PipelineStep.GENERATE_PACKAGE_JSON: lambda s: GeneratePackageJsonInput(
        name=s.name,
        code=s.files.code,
    ),
    PipelineStep.VALIDATE_DRIVER: lambda s: ValidateDriverInput(
        code=s.files.code,
        memconfig=s.files.memconfig,
        api_summary=s.analyzed_api,
    ),
    PipelineStep.IMPROVE_CODE: lambda s: ImproveCodeInput(
        code=s.files.code,
        feedback=_require_feedback(s),
        analyzed_api=s.analyzed_api,
    ),
    PipelineStep.IMPROVE_SCHEMA: lambda s: ImproveSchemaInput(
        schema=s.files.memconfig,
        feedback=_require_feedback(s),
    ),
    PipelineStep.IMPROVE_DOCS: lambda s: ImproveDocsInput(
        docs=s.files.readme,
        code=s.files.code,
        feedback=_require_feedback(s),
        name=s.name,
    ),
    PipelineStep.IMPROVE_PACKAGE_JSON: lambda s: ImprovePackageJsonInput(
        package_json=s.files.package_json,
        feedback=_require_feedback(s),
        name=s.name,
    ),
}

PAYLOAD_TYPES: dict[PipelineStep, type] = {
    PipelineStep.ANALYZE_API: AnalyzeApiInput,
    PipelineStep.GENERATE_SCHEMA: GenerateSchemaInput,
    PipelineStep.GENERATE_CODE: GenerateCodeInput,
    PipelineStep.GENERATE_DOCS: GenerateDocsInput,
    PipelineStep.GENERATE_PACKAGE_JSON: GeneratePackageJsonInput,
    PipelineStep.VALIDATE_DRIVER: ValidateDriverInput,
    PipelineStep.IMPROVE_CODE: ImproveCodeInput,
    PipelineStep.IMPROVE_SCHEMA: ImproveSchemaInput,
    PipelineStep.IMPROVE_DOCS: ImproveDocsInput,
    PipelineStep.IMPROVE_PACKAGE_JSON: ImprovePackageJsonInput,
}


def build_payload(step: PipelineStep, state: StepState) -> Any:
    """Shape *state* into the payload of *step*.

    Raises:
        StepInputError: If the state lacks something the step needs.
    """
    return _PAYLOAD_BUILDERS[step](state)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class Agent(Protocol):
    """Anything that turns a step payload into a step result."""

    async def execute(self, payload: Any) -> Any:
        ...


class StepExecutor:
    """Run pipeline steps through the agents bound to them.

    Args:
        agents: One agent per :class:`PipelineStep`.

    Raises:
        StepRegistrationError: If any step has no agent.

    Example::

        executor = StepExecutor.default(gateway)
        schema = await executor.execute(PipelineStep.GENERATE_SCHEMA, state)
    """

    def __init__(self, agents: Mapping[PipelineStep, Agent]) -> None:
        missing = [step.value for step in PipelineStep if step not in agents]
        if missing:
            raise StepRegistrationError(missing)
        self._agents: dict[PipelineStep, Agent] = dict(agents)

    def agent_for(self, step: PipelineStep | str) -> Agent:
        return self._agents[PipelineStep.parse(step)]

    async def execute(self, step: PipelineStep | str, state: StepState) -> Any:
        """Build the payload for *step* from *state* and run its agent."""
        resolved = PipelineStep.parse(step)
        return await self.run(resolved, build_payload(resolved, state))

    async def run(self, step: PipelineStep | str, payload: Any) -> Any:
        """Run *step* on an already shaped *payload*.

        Raises:
            StepInputError: If *payload* is not the step's payload type.
        """
        resolved = PipelineStep.parse(step)
        expected = PAYLOAD_TYPES[resolved]
        if not isinstance(payload, expected):
            raise StepInputError(
                f"Step '{resolved.value}' expects {expected.__name__}, "
                f"got {type(payload).__name__}"
            )
        logger.info("Executing step: %s", resolved.value)
        return await self._agents[resolved].execute(payload)

    @classmethod
    def default(
        cls,
        gateway: LLMGateway,
        rag: RAGIndex | None = None,
        validator: DriverValidator | None = None,
        templates: PromptTemplate | None = None,
    ) -> StepExecutor:
        """Build an executor with the standard agents.

        Import is deferred to avoid circular imports at module load time.
        """
        from drivergen.pipeline.agents import build_default_agents

        return cls(build_default_agents(gateway, rag=rag, validator=validator, templates=templates))
