"""DriverValidator – grammar, API coverage and code conformance in one pass."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from drivergen.models.api_summary import ApiSummary
from drivergen.models.validation import ValidationIssue, ValidationResult
from drivergen.validation.code_check import check_code_implementation
from drivergen.validation.coverage import check_api_coverage
from drivergen.validation.grammar import parse_memconfig
from drivergen.validation.plan import build_improvement_plan

logger = logging.getLogger(__name__)


def load_api_summary(api_summary: ApiSummary | dict[str, Any] | str | None) -> ApiSummary:
    """Coerce the analyzed API in any of its stored shapes into an ApiSummary.

    Text that is not JSON, or JSON that does not describe an API, yields an
    empty summary so that coverage checks are skipped rather than guessed.
    """
    if isinstance(api_summary, str):
        if not api_summary.strip():
            return ApiSummary()
        try:
            api_summary = json.loads(api_summary)
        except json.JSONDecodeError:
            logger.warning("API summary is not JSON; skipping coverage checks")
            return ApiSummary()
    if api_summary is not None and not isinstance(api_summary, (dict, ApiSummary)):
        logger.warning("API summary is a %s; skipping coverage checks", type(api_summary).__name__)
        return ApiSummary()
    try:
        return ApiSummary.from_data(api_summary)
    except ValidationError as exc:
        logger.warning("API summary is malformed; skipping coverage checks: %s", exc)
        return ApiSummary()


class DriverValidator:
    """Validate a generated driver against its schema and the analyzed API.

    Validation is pure and deterministic: the same inputs always produce the
    same issues in the same order.

    Example::

        result = DriverValidator().execute(code, memconfig_text, analyzed_api)
        if not result.is_valid:
            print(result.improvement_plan.prompt)
    """

    def execute(
        self,
        code: str,
        schema: str | dict[str, Any],
        api_summary: ApiSummary | dict[str, Any] | str | None = None,
    ) -> ValidationResult:
        memconfig, issues = parse_memconfig(schema)
        if memconfig is None:
            # A structurally broken schema can not be compared with anything.
            return self._result(issues)

        summary = load_api_summary(api_summary)
        issues = list(check_api_coverage(memconfig, summary))
        issues.extend(check_code_implementation(code, memconfig))
        return self._result(issues)

    @staticmethod
    def _result(issues: list[ValidationIssue]) -> ValidationResult:
        for issue in issues:
            if issue.is_error:
                logger.info("[%s] %s", issue.component.value, issue.message)
            else:
                logger.warning("[%s] %s", issue.component.value, issue.message)
        return ValidationResult(
            is_valid=not issues,
            errors=issues,
            improvement_plan=build_improvement_plan(issues),
        )
