"""drivergen data models – artifact sets, checkpoints, validation values and grammars.

- :class:`DriverArtifactSet` – One driver with its files and checkpoint history
- :class:`DriverFiles` – The four driver files under fixed keys
- :class:`ValidationIssue` / :class:`ValidationResult` – Validator output
- :class:`Memconfig` – Strict memconfig.json grammar
- :class:`ApiSummary` – Lenient analyzed-API summary
"""

from drivergen.models.api_summary import (
    ApiDataModel,
    ApiEndpoint,
    ApiModelField,
    ApiParameter,
    ApiSummary,
    PaginationInfo,
    WebhookInfo,
)
from drivergen.models.artifact import (
    FILE_KEYS,
    Checkpoint,
    DriverArtifactSet,
    DriverFiles,
    FileKind,
    PipelineStatus,
)
from drivergen.models.memconfig import (
    COLLECTION_SUFFIX,
    ROOT_TYPE,
    Memconfig,
    MemconfigMember,
    MemconfigParam,
    MemconfigSchema,
    MemconfigType,
)
from drivergen.models.validation import (
    Component,
    ImprovementPlan,
    Severity,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "COLLECTION_SUFFIX",
    "FILE_KEYS",
    "ROOT_TYPE",
    "ApiDataModel",
    "ApiEndpoint",
    "ApiModelField",
    "ApiParameter",
    "ApiSummary",
    "Checkpoint",
    "Component",
    "DriverArtifactSet",
    "DriverFiles",
    "FileKind",
    "ImprovementPlan",
    "Memconfig",
    "MemconfigMember",
    "MemconfigParam",
    "MemconfigSchema",
    "MemconfigType",
    "PaginationInfo",
    "PipelineStatus",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "WebhookInfo",
]
