"""Unit tests for drivergen.cli.progress."""

from __future__ import annotations

import io

from rich.console import Console

from drivergen.cli.progress import (
    checkpoints_table,
    drivers_table,
    issues_table,
    spinner,
    summary_panel,
    usage_table,
)
from drivergen.llm.token_tracker import TokenTracker
from drivergen.models.artifact import DriverArtifactSet, PipelineStatus
from drivergen.models.validation import Component, Severity, ValidationIssue, ValidationResult
from drivergen.pipeline.checkpoint import CheckpointManager

_ISSUE = ValidationIssue(
    component=Component.SCHEMA,
    message="Missing event for webhook: item.created",
    severity=Severity.WARNING,
    suggestion='Add event "itemCreated" to handle webhook item.created',
)


def _render(renderable: object) -> str:
    buffer = io.StringIO()
    Console(file=buffer, width=200, color_system=None).print(renderable)
    return buffer.getvalue()


def _driver(valid: bool) -> DriverArtifactSet:
    driver = DriverArtifactSet(name="petstore", status=PipelineStatus.EXHAUSTED)
    result = ValidationResult(is_valid=True) if valid else ValidationResult(is_valid=False, errors=[_ISSUE])
    driver.apply_validation(result)
    CheckpointManager().create_checkpoint(driver, "Initial generation")
    return driver


class TestTables:
    def test_issues_table(self) -> None:
        text = _render(issues_table([_ISSUE]))
        assert "warning" in text
        assert "Missing event for webhook: item.created" in text
        assert "itemCreated" in text

    def test_checkpoints_table_marks_current(self) -> None:
        driver = _driver(valid=False)
        CheckpointManager().create_checkpoint(driver, "Before improvements iteration 1")
        text = _render(checkpoints_table(driver.checkpoints, current=0))
        first_row = next(line for line in text.splitlines() if "Initial generation" in line)
        assert "*" in first_row
        assert "Before improvements iteration 1" in text

    def test_drivers_table(self) -> None:
        text = _render(drivers_table([_driver(valid=False)]))
        assert "petstore" in text
        assert "exhausted" in text


class TestSummaryPanel:
    def test_valid(self) -> None:
        assert "petstore is valid" in _render(summary_panel(_driver(valid=True)))

    def test_invalid(self) -> None:
        text = _render(summary_panel(_driver(valid=False)))
        assert "petstore has 1 validation issue(s)" in text
        assert "Checkpoints: 1" in text


def test_spinner_runs_body() -> None:
    ran = []
    with spinner("Generating petstore...", console=Console(file=io.StringIO())):
        ran.append(True)
    assert ran == [True]


def test_usage_table_rows_per_step_and_total() -> None:
    tracker = TokenTracker()
    tracker.record("gpt-4o-mini", 1_000_000, 0, step="Analyze API")
    tracker.record("gpt-4o-mini", 2000, 500, step="Generate Code")

    lines = _render(usage_table(tracker)).splitlines()

    analyze = next(line for line in lines if "Analyze API" in line)
    assert "1,000,000" in analyze and "0.1500" in analyze
    assert any("Generate Code" in line and "2,000" in line for line in lines)
    assert any("total" in line and "1,002,000" in line for line in lines)
