"""Unit tests for StepExecutor, step payloads and the generation agents."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from drivergen.llm.exceptions import TemplateError
from drivergen.llm.prompt_templates import PromptTemplate
from drivergen.models.artifact import DriverFiles
from drivergen.models.validation import ValidationResult
from drivergen.pipeline.agents import (
    ApiAnalyzerAgent,
    CodeGeneratorAgent,
    DocsGeneratorAgent,
    ImproveCodeAgent,
    ImprovePackageJsonAgent,
    SchemaGeneratorAgent,
    ValidatorAgent,
    build_default_agents,
)
from drivergen.pipeline.exceptions import (
    AgentOutputError,
    StepInputError,
    StepRegistrationError,
    UnknownStepError,
)
from drivergen.pipeline.steps import (
    AnalyzeApiInput,
    GenerateCodeInput,
    GenerateDocsInput,
    GenerateSchemaInput,
    ImproveCodeInput,
    ImprovePackageJsonInput,
    ImproveSchemaInput,
    PipelineStep,
    StepExecutor,
    StepState,
    ValidateDriverInput,
    build_payload,
)

_FILES = DriverFiles(memconfig='{"schema": {}}', code="export const Root = {};", readme="# R", package_json="{}")
_API = {"baseUrl": "https://api.example.com", "endpoints": []}


def _agents(result: object = "ok") -> dict[PipelineStep, MagicMock]:
    agents = {}
    for step in PipelineStep:
        agent = MagicMock()
        agent.execute = AsyncMock(return_value=result)
        agents[step] = agent
    return agents


def _gateway(response: str = "generated") -> MagicMock:
    gateway = MagicMock()
    gateway.generate = AsyncMock(return_value=response)
    return gateway


# ---------------------------------------------------------------------------
# Step enum and payloads
# ---------------------------------------------------------------------------


class TestPipelineStep:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Generate Schema", PipelineStep.GENERATE_SCHEMA),
            ("generate_schema", PipelineStep.GENERATE_SCHEMA),
            (" Improve Package JSON ", PipelineStep.IMPROVE_PACKAGE_JSON),
            (PipelineStep.VALIDATE_DRIVER, PipelineStep.VALIDATE_DRIVER),
        ],
    )
    def test_parse(self, text: str, expected: PipelineStep) -> None:
        assert PipelineStep.parse(text) is expected

    def test_unknown(self) -> None:
        with pytest.raises(UnknownStepError, match="Deploy Driver"):
            PipelineStep.parse("Deploy Driver")


class TestBuildPayload:
    def test_generate_code_payload(self) -> None:
        state = StepState(name="petstore", analyzed_api=_API, files=_FILES)
        payload = build_payload(PipelineStep.GENERATE_CODE, state)
        assert payload == GenerateCodeInput(memconfig=_FILES.memconfig, analyzed_api=_API)

    def test_docs_payload_carries_name(self) -> None:
        payload = build_payload(PipelineStep.GENERATE_DOCS, StepState(name="petstore", files=_FILES))
        assert payload == GenerateDocsInput(memconfig=_FILES.memconfig, code=_FILES.code, name="petstore")

    def test_validate_payload(self) -> None:
        payload = build_payload(
            PipelineStep.VALIDATE_DRIVER, StepState(name="p", analyzed_api=_API, files=_FILES)
        )
        assert payload == ValidateDriverInput(code=_FILES.code, memconfig=_FILES.memconfig, api_summary=_API)

    @pytest.mark.parametrize("step", [PipelineStep.GENERATE_SCHEMA, PipelineStep.GENERATE_CODE])
    def test_generation_needs_analysis(self, step: PipelineStep) -> None:
        with pytest.raises(StepInputError, match="no analyzed API"):
            build_payload(step, StepState(name="petstore", files=_FILES))

    @pytest.mark.parametrize(
        "step",
        [
            PipelineStep.IMPROVE_CODE,
            PipelineStep.IMPROVE_SCHEMA,
            PipelineStep.IMPROVE_DOCS,
            PipelineStep.IMPROVE_PACKAGE_JSON,
        ],
    )
    def test_improvement_needs_feedback(self, step: PipelineStep) -> None:
        with pytest.raises(StepInputError, match="feedback"):
            build_payload(step, StepState(name="p", files=_FILES, feedback="  "))

    def test_improve_schema_payload(self) -> None:
        payload = build_payload(
            PipelineStep.IMPROVE_SCHEMA, StepState(name="p", files=_FILES, feedback="add create")
        )
        assert payload == ImproveSchemaInput(schema=_FILES.memconfig, feedback="add create")


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class TestStepExecutor:
    def test_every_step_needs_an_agent(self) -> None:
        agents = _agents()
        del agents[PipelineStep.IMPROVE_DOCS]
        del agents[PipelineStep.ANALYZE_API]
        with pytest.raises(StepRegistrationError) as exc_info:
            StepExecutor(agents)
        assert exc_info.value.missing == ["Analyze API", "Improve Docs"]

    async def test_execute_dispatches_shaped_payload(self) -> None:
        agents = _agents(result="schema text")
        executor = StepExecutor(agents)

        result = await executor.execute("Generate Schema", StepState(name="p", analyzed_api=_API))

        assert result == "schema text"
        agents[PipelineStep.GENERATE_SCHEMA].execute.assert_awaited_once_with(
            GenerateSchemaInput(analyzed_api=_API)
        )
        agents[PipelineStep.GENERATE_CODE].execute.assert_not_awaited()

    async def test_run_rejects_wrong_payload(self) -> None:
        executor = StepExecutor(_agents())
        with pytest.raises(StepInputError, match="expects AnalyzeApiInput"):
            await executor.run(PipelineStep.ANALYZE_API, GenerateSchemaInput(analyzed_api=_API))

    async def test_unknown_step_name(self) -> None:
        executor = StepExecutor(_agents())
        with pytest.raises(UnknownStepError):
            await executor.execute("Publish", StepState(name="p"))

    def test_agent_for(self) -> None:
        agents = _agents()
        executor = StepExecutor(agents)
        assert executor.agent_for("Validate Driver") is agents[PipelineStep.VALIDATE_DRIVER]

    def test_default_binds_every_step(self) -> None:
        executor = StepExecutor.default(_gateway())
        assert isinstance(executor.agent_for(PipelineStep.VALIDATE_DRIVER), ValidatorAgent)
        assert isinstance(executor.agent_for(PipelineStep.ANALYZE_API), ApiAnalyzerAgent)


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


class TestApiAnalyzerAgent:
    async def test_fenced_json(self) -> None:
        gateway = _gateway(f"```json\n{json.dumps(_API)}\n```")
        agent = ApiAnalyzerAgent(gateway)

        result = await agent.execute(AnalyzeApiInput(spec="openapi: 3.0.0"))

        assert result == _API
        instruction, context = gateway.generate.await_args.args
        assert context == "API Specification:\nopenapi: 3.0.0"

    def test_json_surrounded_by_prose(self) -> None:
        text = f"Here is the analysis:\n{json.dumps(_API)}\nLet me know!"
        assert ApiAnalyzerAgent._parse_response(text) == _API

    @pytest.mark.parametrize(
        "text",
        ["no json here", "[1, 2, 3]", "{broken", '{"endpoints": "not a list"}'],
    )
    def test_unusable_output(self, text: str) -> None:
        with pytest.raises(AgentOutputError):
            ApiAnalyzerAgent._parse_response(text)


class TestGenerationAgents:
    async def test_schema_agent_context(self) -> None:
        gateway = _gateway("```json\n{\"schema\": {}}\n```")
        result = await SchemaGeneratorAgent(gateway).execute(GenerateSchemaInput(analyzed_api=_API))

        assert result == '{"schema": {}}'
        context = gateway.generate.await_args.args[1]
        assert context == "Analyzed API:\n" + json.dumps(_API, indent=2)

    async def test_rag_reference_added_as_context_block(self) -> None:
        gateway = _gateway("code")
        rag = MagicMock()
        rag.get_relevant_context = AsyncMock(return_value="Driver_code:\nID: x#0")
        agent = CodeGeneratorAgent(gateway, rag=rag)

        await agent.execute(GenerateCodeInput(memconfig="{}", analyzed_api=_API))

        rag.get_relevant_context.assert_awaited_once_with(
            "driver code structure and best practices", "code_generation"
        )
        blocks = gateway.generate.await_args.kwargs["context_blocks"]
        assert [b.text for b in blocks] == ["Reference material:\nDriver_code:\nID: x#0"]

    async def test_empty_reference_adds_no_block(self) -> None:
        gateway = _gateway("# Docs")
        rag = MagicMock()
        rag.get_relevant_context = AsyncMock(return_value="")
        await DocsGeneratorAgent(gateway, rag=rag).execute(
            GenerateDocsInput(memconfig="{}", code="code", name="petstore")
        )
        assert gateway.generate.await_args.kwargs["context_blocks"] == []
        assert "petstore" in gateway.generate.await_args.args[0]

    async def test_empty_response_raises(self) -> None:
        with pytest.raises(AgentOutputError, match="SchemaGeneratorAgent"):
            await SchemaGeneratorAgent(_gateway("```\n```")).execute(GenerateSchemaInput(analyzed_api=_API))

    async def test_improve_code_sections(self) -> None:
        gateway = _gateway("fixed")
        await ImproveCodeAgent(gateway).execute(
            ImproveCodeInput(code="old", feedback="use token", analyzed_api=None)
        )
        assert gateway.generate.await_args.args[1] == (
            "Original Code:\nold\n\nFeedback:\nuse token\n\nAPI Summary:\n"
        )

    async def test_improve_package_sections(self) -> None:
        gateway = _gateway('{"name": "petstore"}')
        result = await ImprovePackageJsonAgent(gateway).execute(
            ImprovePackageJsonInput(package_json="{}", feedback="add deps", name="petstore")
        )
        assert result == '{"name": "petstore"}'
        assert gateway.generate.await_args.args[1].startswith("Original package.json:\n{}")


class TestValidatorAgent:
    async def test_delegates_to_validator(self) -> None:
        validator = MagicMock()
        validator.execute.return_value = ValidationResult(is_valid=True)
        result = await ValidatorAgent(validator).execute(
            ValidateDriverInput(code="c", memconfig="m", api_summary=_API)
        )
        assert result.is_valid
        validator.execute.assert_called_once_with("c", "m", _API)


def test_build_default_agents_covers_every_step() -> None:
    agents = build_default_agents(_gateway())
    assert set(agents) == set(PipelineStep)


def test_every_llm_step_has_an_instruction() -> None:
    prompts = PromptTemplate()
    llm_steps = set(PipelineStep) - {PipelineStep.VALIDATE_DRIVER}
    assert set(prompts.steps) == {step.value for step in llm_steps}
    assert prompts.missing_templates() == []


def test_build_default_agents_rejects_incomplete_template_dir(tmp_path: Path) -> None:
    (tmp_path / "api_analysis.jinja2").write_text("Analyse the API.")
    with pytest.raises(TemplateError, match="schema_generation"):
        build_default_agents(_gateway(), templates=PromptTemplate(tmp_path))


async def test_agent_books_usage_under_its_step() -> None:
    gateway = _gateway("# Petstore")
    await DocsGeneratorAgent(gateway).execute(
        GenerateDocsInput(memconfig="{}", code="code", name="petstore")
    )
    assert gateway.generate.await_args.kwargs["step"] == "Generate Docs"
