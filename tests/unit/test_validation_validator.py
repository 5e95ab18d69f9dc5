"""Unit tests for DriverValidator and the improvement plan."""

from __future__ import annotations

import json

from drivergen.models.api_summary import ApiSummary
from drivergen.models.validation import Component, Severity, ValidationIssue
from drivergen.validation.plan import PROMPT_HEADER, build_improvement_plan
from drivergen.validation.validator import DriverValidator, load_api_summary

SCHEMA = json.dumps(
    {
        "schema": {
            "types": [
                {
                    "name": "Root",
                    "fields": [{"name": "widgets", "type": "WidgetCollection"}],
                    "actions": [{"name": "endpoint", "type": "String"}],
                },
                {
                    "name": "WidgetCollection",
                    "fields": [
                        {"name": "one", "type": "Widget", "params": [{"name": "id", "type": "String"}]}
                    ],
                    "actions": [
                        {"name": "create", "type": "Widget", "params": [{"name": "name", "type": "String"}]}
                    ],
                },
                {"name": "Widget", "fields": [{"name": "id", "type": "String"}]},
            ]
        }
    }
)

CODE = """\
export const Root = {
  widgets: () => ({}),
  async endpoint() {
    return "";
  },
};

export const WidgetCollection = {
  one: async ({ id }) => ({ id }),
  create: async ({ name }) => ({ name }),
};

export const Widget = {
  id: (_, { obj }) => obj.id,
};
"""

API = {
    "baseUrl": "https://api.example.com",
    "endpoints": [
        {"path": "/widgets/{id}", "method": "GET"},
        {"path": "/widgets", "method": "POST"},
    ],
    "dataModels": [{"name": "Widget", "fields": [{"name": "id", "type": "string"}]}],
    "pagination": {"type": "none"},
    "webhooks": {"supported": False},
}


def _issue(component: Component, severity: Severity, message: str, suggestion: str | None = "fix") -> ValidationIssue:
    return ValidationIssue(component=component, message=message, severity=severity, suggestion=suggestion)


class TestBuildImprovementPlan:
    def test_no_issues(self) -> None:
        assert build_improvement_plan([]) is None

    def test_grouped_by_component_errors_first(self) -> None:
        plan = build_improvement_plan(
            [
                _issue(Component.SCHEMA, Severity.WARNING, "w1", "add event"),
                _issue(Component.CODE, Severity.ERROR, "c1", "add export"),
                _issue(Component.SCHEMA, Severity.ERROR, "s1", "add type"),
            ]
        )
        assert plan.components == [Component.SCHEMA, Component.CODE]
        assert plan.suggestions == [
            "SCHEMA Improvements:\nERROR: s1\nadd type\n\nWARNING: w1\nadd event",
            "CODE Improvements:\nERROR: c1\nadd export",
        ]
        assert plan.prompt == PROMPT_HEADER + "\n\n" + "\n\n".join(plan.suggestions)

    def test_issue_without_suggestion_omitted(self) -> None:
        plan = build_improvement_plan(
            [
                _issue(Component.CODE, Severity.ERROR, "c1", None),
                _issue(Component.CODE, Severity.ERROR, "c2", "do it"),
            ]
        )
        assert plan.suggestions == ["CODE Improvements:\nERROR: c2\ndo it"]


class TestLoadApiSummary:
    def test_dict_with_aliases(self) -> None:
        summary = load_api_summary(API)
        assert summary.base_url == "https://api.example.com"
        assert [m.name for m in summary.data_models] == ["Widget"]

    def test_json_text(self) -> None:
        assert len(load_api_summary(json.dumps(API)).endpoints) == 2

    def test_passthrough(self) -> None:
        summary = ApiSummary()
        assert load_api_summary(summary) is summary

    def test_unusable_inputs_give_empty_summary(self) -> None:
        for value in ("", "not json", "[1, 2]", None, ["x"]):
            assert load_api_summary(value) == ApiSummary()

    def test_malformed_shape_gives_empty_summary(self) -> None:
        assert load_api_summary({"endpoints": [{"method": "GET"}]}) == ApiSummary()


class TestDriverValidator:
    def test_conforming_driver_is_valid(self) -> None:
        result = DriverValidator().execute(CODE, SCHEMA, API)
        assert result.is_valid
        assert result.errors == []
        assert result.improvement_plan is None

    def test_repeated_runs_give_identical_issues(self) -> None:
        validator = DriverValidator()
        broken = CODE.replace("async endpoint", "endpoint")
        first = validator.execute(broken, SCHEMA, API)
        second = validator.execute(broken, SCHEMA, API)
        assert not first.is_valid
        assert first.errors == second.errors
        assert first.improvement_plan == second.improvement_plan

    def test_broken_schema_skips_other_checks(self) -> None:
        result = DriverValidator().execute("", "{", API)
        assert not result.is_valid
        assert len(result.errors) == 1
        assert result.errors[0].component == Component.SCHEMA

    def test_warning_alone_makes_driver_invalid(self) -> None:
        api = dict(API, webhooks={"supported": True, "events": ["item.created"]})
        result = DriverValidator().execute(CODE, SCHEMA, api)

        assert not result.is_valid
        assert result.error_count == 0
        assert result.warning_count == 1
        assert result.improvement_plan.suggestions[0].startswith("SCHEMA Improvements:\nWARNING:")

    def test_schema_and_code_issues_combined(self) -> None:
        schema = json.loads(SCHEMA)
        schema["schema"]["types"][1]["actions"] = [{"name": "archive", "type": "Void"}]
        result = DriverValidator().execute(CODE, json.dumps(schema), API)

        components = [i.component for i in result.errors]
        assert components == [Component.SCHEMA, Component.CODE]
        assert result.errors[0].message == "Endpoint not covered: POST /widgets"
        assert result.errors[1].message == "Missing action implementation: archive in WidgetCollection"

    def test_without_api_summary(self) -> None:
        assert DriverValidator().execute(CODE, SCHEMA).is_valid
