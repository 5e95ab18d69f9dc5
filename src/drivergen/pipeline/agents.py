"""Generation and improvement agents bound to the pipeline steps.

Each agent renders its instruction template, assembles a plain-text context
from its payload and asks the LLM gateway for one completion. Generation
agents add reference material from the RAG index when one is configured.

Usage::

    from drivergen.pipeline.agents import build_default_agents
    from drivergen.pipeline.steps import StepExecutor

    executor = StepExecutor(build_default_agents(gateway, rag=rag))
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from drivergen.llm.exceptions import TemplateError
from drivergen.llm.gateway import LLMGateway, strip_code_fences
from drivergen.llm.models import ContextBlock
from drivergen.llm.prompt_templates import PromptTemplate
from drivergen.models.api_summary import ApiSummary
from drivergen.models.validation import ValidationResult
from drivergen.pipeline.exceptions import AgentOutputError
from drivergen.pipeline.steps import (
    AnalyzeApiInput,
    GenerateCodeInput,
    GenerateDocsInput,
    GeneratePackageJsonInput,
    GenerateSchemaInput,
    ImproveCodeInput,
    ImproveDocsInput,
    ImprovePackageJsonInput,
    ImproveSchemaInput,
    PipelineStep,
    ValidateDriverInput,
)
from drivergen.validation.validator import DriverValidator
from drivergen.vectordb.rag import RAGIndex

logger = logging.getLogger(__name__)


def _dump(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2)


def _sections(*pairs: tuple[str, str]) -> str:
    """Join ``(title, body)`` pairs into ``Title:\\nbody`` sections."""
    return "\n\n".join(f"{title}:\n{body}" for title, body in pairs)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class BaseAgent:
    """Shared plumbing: template rendering, RAG lookup and the LLM call.

    Subclasses set the ``step`` they serve, which selects the instruction
    template and labels the token usage, and, when they benefit from
    reference material, ``rag_query`` and ``rag_task``.
    """

    step: PipelineStep
    rag_query: str | None = None
    rag_task: str = "default"

    def __init__(
        self,
        gateway: LLMGateway,
        templates: PromptTemplate | None = None,
        rag: RAGIndex | None = None,
    ) -> None:
        self._gateway = gateway
        self._templates = templates or PromptTemplate()
        self._rag = rag

    async def get_context(self, query: str, task: str) -> str:
        """Return reference material for *query*, or ``""`` without an index."""
        if self._rag is None:
            return ""
        return await self._rag.get_relevant_context(query, task)

    async def _generate(self, context: str, **variables: Any) -> str:
        instruction = self._templates.render_step(self.step.value, **variables)
        blocks: list[ContextBlock] = []
        if self.rag_query:
            reference = await self.get_context(self.rag_query, self.rag_task)
            if reference:
                blocks.append(ContextBlock.user(f"Reference material:\n{reference}"))
        text = strip_code_fences(
            await self._gateway.generate(
                instruction, context, context_blocks=blocks, step=self.step.value
            )
        )
        if not text:
            raise AgentOutputError(f"{type(self).__name__} returned an empty response")
        return text


# ---------------------------------------------------------------------------
# Generation agents
# ---------------------------------------------------------------------------


class ApiAnalyzerAgent(BaseAgent):
    """Turn API documentation into the analyzed-API JSON object."""

    step = PipelineStep.ANALYZE_API
    rag_query = "API analysis techniques and best practices"
    rag_task = "api_analysis"

    async def execute(self, payload: AnalyzeApiInput) -> dict[str, Any]:
        raw = await self._generate(_sections(("API Specification", payload.spec)))
        return self._parse_response(raw)

    @staticmethod
    def _parse_response(text: str) -> dict[str, Any]:
        """Parse the analysis, tolerating prose around the JSON object.

        Raises:
            AgentOutputError: If no JSON object describing an API is found.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            start, end = text.find("{"), text.rfind("}")
            if start == -1 or end <= start:
                raise AgentOutputError(
                    f"API analysis is not valid JSON. Response preview: {text[:200]}"
                ) from None
            try:
                data = json.loads(text[start:end + 1])
            except json.JSONDecodeError as exc:
                raise AgentOutputError(
                    f"API analysis is not valid JSON: {exc}. Response preview: {text[:200]}"
                ) from exc

        if not isinstance(data, dict):
            raise AgentOutputError(
                f"API analysis must be a JSON object, got {type(data).__name__}"
            )
        try:
            summary = ApiSummary.from_data(data)
        except ValidationError as exc:
            raise AgentOutputError(f"API analysis does not match the expected shape: {exc}") from exc

        logger.info(
            "Analyzed API: %d endpoint(s), %d data model(s)",
            len(summary.endpoints),
            len(summary.data_models),
        )
        return data


class SchemaGeneratorAgent(BaseAgent):
    step = PipelineStep.GENERATE_SCHEMA
    rag_query = "driver schema design"
    rag_task = "schema_design"

    async def execute(self, payload: GenerateSchemaInput) -> str:
        return await self._generate(_sections(("Analyzed API", _dump(payload.analyzed_api))))


class CodeGeneratorAgent(BaseAgent):
    step = PipelineStep.GENERATE_CODE
    rag_query = "driver code structure and best practices"
    rag_task = "code_generation"

    async def execute(self, payload: GenerateCodeInput) -> str:
        return await self._generate(
            _sections(
                ("memconfig", payload.memconfig),
                ("Analyzed API", _dump(payload.analyzed_api)),
            )
        )


class DocsGeneratorAgent(BaseAgent):
    step = PipelineStep.GENERATE_DOCS
    rag_query = "driver documentation best practices"

    async def execute(self, payload: GenerateDocsInput) -> str:
        return await self._generate(
            _sections(("memconfig.json", payload.memconfig), ("Code", payload.code)),
            name=payload.name,
        )


class PackageJsonGeneratorAgent(BaseAgent):
    step = PipelineStep.GENERATE_PACKAGE_JSON

    async def execute(self, payload: GeneratePackageJsonInput) -> str:
        return await self._generate(_sections(("Code", payload.code)), name=payload.name)


# ---------------------------------------------------------------------------
# Improvement agents
# ---------------------------------------------------------------------------


class ImproveSchemaAgent(BaseAgent):
    step = PipelineStep.IMPROVE_SCHEMA

    async def execute(self, payload: ImproveSchemaInput) -> str:
        return await self._generate(
            _sections(
                ("Original memconfig.json", payload.schema),
                ("Feedback", payload.feedback),
            )
        )


class ImproveCodeAgent(BaseAgent):
    step = PipelineStep.IMPROVE_CODE

    async def execute(self, payload: ImproveCodeInput) -> str:
        return await self._generate(
            _sections(
                ("Original Code", payload.code),
                ("Feedback", payload.feedback),
                ("API Summary", _dump(payload.analyzed_api)),
            )
        )


class ImproveDocsAgent(BaseAgent):
    step = PipelineStep.IMPROVE_DOCS

    async def execute(self, payload: ImproveDocsInput) -> str:
        return await self._generate(
            _sections(
                ("Original README", payload.docs),
                ("Feedback", payload.feedback),
                ("Driver Code", payload.code),
            ),
            name=payload.name,
        )


class ImprovePackageJsonAgent(BaseAgent):
    step = PipelineStep.IMPROVE_PACKAGE_JSON

    async def execute(self, payload: ImprovePackageJsonInput) -> str:
        return await self._generate(
            _sections(
                ("Original package.json", payload.package_json),
                ("Feedback", payload.feedback),
            ),
            name=payload.name,
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidatorAgent:
    """Run the deterministic validator as a pipeline step."""

    def __init__(self, validator: DriverValidator | None = None) -> None:
        self._validator = validator or DriverValidator()

    async def execute(self, payload: ValidateDriverInput) -> ValidationResult:
        return self._validator.execute(payload.code, payload.memconfig, payload.api_summary)


def build_default_agents(
    gateway: LLMGateway,
    rag: RAGIndex | None = None,
    validator: DriverValidator | None = None,
    templates: PromptTemplate | None = None,
) -> dict[PipelineStep, Any]:
    """Bind the standard agent to every pipeline step.

    Raises:
        TemplateError: If *templates* lacks the instruction of some step.
    """
    templates = templates or PromptTemplate()
    missing = templates.missing_templates()
    if missing:
        raise TemplateError(f"Missing instruction template(s): {', '.join(missing)}")

    def make(cls: type[BaseAgent]) -> BaseAgent:
        return cls(gateway, templates=templates, rag=rag)

    return {
        PipelineStep.ANALYZE_API: make(ApiAnalyzerAgent),
        PipelineStep.GENERATE_SCHEMA: make(SchemaGeneratorAgent),
        PipelineStep.GENERATE_CODE: make(CodeGeneratorAgent),
        PipelineStep.GENERATE_DOCS: make(DocsGeneratorAgent),
        PipelineStep.GENERATE_PACKAGE_JSON: make(PackageJsonGeneratorAgent),
        PipelineStep.VALIDATE_DRIVER: ValidatorAgent(validator),
        PipelineStep.IMPROVE_CODE: make(ImproveCodeAgent),
        PipelineStep.IMPROVE_SCHEMA: make(ImproveSchemaAgent),
        PipelineStep.IMPROVE_DOCS: make(ImproveDocsAgent),
        PipelineStep.IMPROVE_PACKAGE_JSON: make(ImprovePackageJsonAgent),
    }
