"""drivergen validation – structural and coverage checks for generated drivers.

- :class:`DriverValidator` – Runs every check and builds the improvement plan
- :func:`parse_memconfig` – Grammar check of memconfig.json
- :func:`check_api_coverage` – Schema coverage of the analyzed API
- :func:`check_code_implementation` – tree-sitter conformance of index.ts
"""

from drivergen.validation.code_check import CodeModel, check_code_implementation, parse_code
from drivergen.validation.coverage import (
    CollectionIndex,
    check_api_coverage,
    check_data_models,
    check_endpoints,
    check_pagination,
    check_webhooks,
    to_camel_case,
)
from drivergen.validation.grammar import parse_memconfig
from drivergen.validation.plan import PROMPT_HEADER, build_improvement_plan
from drivergen.validation.validator import DriverValidator, load_api_summary

__all__ = [
    "PROMPT_HEADER",
    "CodeModel",
    "CollectionIndex",
    "DriverValidator",
    "build_improvement_plan",
    "check_api_coverage",
    "check_code_implementation",
    "check_data_models",
    "check_endpoints",
    "check_pagination",
    "check_webhooks",
    "load_api_summary",
    "parse_code",
    "parse_memconfig",
    "to_camel_case",
]
