"""Improvement plan: validation issues turned into a remediation prompt."""

from __future__ import annotations

from drivergen.models.validation import Component, ImprovementPlan, ValidationIssue

PROMPT_HEADER = "Please address the following validation issues:"


def build_improvement_plan(issues: list[ValidationIssue]) -> ImprovementPlan | None:
    """Group *issues* by component and synthesize the follow-up prompt.

    Components appear in order of their first issue; inside a component,
    errors come before warnings and otherwise keep their order. Returns
    ``None`` when there is nothing to improve.
    """
    if not issues:
        return None

    grouped: dict[Component, list[ValidationIssue]] = {}
    for issue in issues:
        grouped.setdefault(issue.component, []).append(issue)

    suggestions: list[str] = []
    for component, component_issues in grouped.items():
        ordered = sorted(component_issues, key=lambda i: 0 if i.is_error else 1)
        entries = [
            f"{i.severity.value.upper()}: {i.message}\n{i.suggestion}"
            for i in ordered
            if i.suggestion
        ]
        suggestions.append(
            f"{component.value.upper()} Improvements:\n" + "\n\n".join(entries)
        )

    return ImprovementPlan(
        components=list(grouped),
        suggestions=suggestions,
        prompt=f"{PROMPT_HEADER}\n\n" + "\n\n".join(suggestions),
    )
