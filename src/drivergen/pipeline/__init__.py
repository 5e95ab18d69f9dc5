"""Driver pipeline: step dispatch, orchestration, checkpoints and storage."""

from drivergen.pipeline.agents import (
    ApiAnalyzerAgent,
    BaseAgent,
    CodeGeneratorAgent,
    DocsGeneratorAgent,
    ImproveCodeAgent,
    ImproveDocsAgent,
    ImprovePackageJsonAgent,
    ImproveSchemaAgent,
    PackageJsonGeneratorAgent,
    SchemaGeneratorAgent,
    ValidatorAgent,
    build_default_agents,
)
from drivergen.pipeline.checkpoint import CheckpointManager
from drivergen.pipeline.exceptions import (
    AgentOutputError,
    CheckpointNotFoundError,
    DriverGenError,
    DriverNotFoundError,
    DuplicateDriverError,
    StepInputError,
    StepRegistrationError,
    UnknownStepError,
)
from drivergen.pipeline.export import RemoteFileSystem, RemoteFileSystemError, export_driver
from drivergen.pipeline.manager import GENERATION_STAGES, PipelineManager
from drivergen.pipeline.steps import (
    IMPROVEMENT_STEPS,
    PipelineStep,
    StepExecutor,
    StepState,
    build_payload,
)
from drivergen.pipeline.store import DriverStore, JsonDriverStore

__all__ = [
    "AgentOutputError",
    "ApiAnalyzerAgent",
    "BaseAgent",
    "CheckpointManager",
    "CheckpointNotFoundError",
    "CodeGeneratorAgent",
    "DocsGeneratorAgent",
    "DriverGenError",
    "DriverNotFoundError",
    "DriverStore",
    "DuplicateDriverError",
    "GENERATION_STAGES",
    "IMPROVEMENT_STEPS",
    "ImproveCodeAgent",
    "ImproveDocsAgent",
    "ImprovePackageJsonAgent",
    "ImproveSchemaAgent",
    "JsonDriverStore",
    "PackageJsonGeneratorAgent",
    "PipelineManager",
    "PipelineStep",
    "RemoteFileSystem",
    "RemoteFileSystemError",
    "SchemaGeneratorAgent",
    "StepExecutor",
    "StepInputError",
    "StepRegistrationError",
    "StepState",
    "UnknownStepError",
    "ValidatorAgent",
    "build_default_agents",
    "build_payload",
    "export_driver",
]
