"""Agent instructions for the pipeline steps, rendered from Jinja2 templates.

Each LLM-backed step has exactly one instruction template. The catalogue in
:data:`STEP_PROMPTS` names that template and the variables it must be given;
``Validate Driver`` is deterministic and has none.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, UndefinedError

from drivergen.llm.exceptions import TemplateError

TEMPLATE_SUFFIX = ".jinja2"
_BUILTIN_DIR = Path(__file__).parent / "templates"


@dataclass(frozen=True)
class StepPrompt:
    """The instruction template of one step and the variables it takes."""

    template: str
    variables: frozenset[str] = frozenset()


_NAMED = frozenset({"name"})

# Keyed by pipeline step name.
STEP_PROMPTS: dict[str, StepPrompt] = {
    "Analyze API": StepPrompt("api_analysis"),
    "Generate Schema": StepPrompt("schema_generation"),
    "Generate Code": StepPrompt("code_generation"),
    "Generate Docs": StepPrompt("docs_generation", _NAMED),
    "Generate Package JSON": StepPrompt("package_generation", _NAMED),
    "Improve Code": StepPrompt("improve_code"),
    "Improve Schema": StepPrompt("improve_schema"),
    "Improve Docs": StepPrompt("improve_docs", _NAMED),
    "Improve Package JSON": StepPrompt("improve_package", _NAMED),
}


class PromptTemplate:
    """Render the instruction of a pipeline step.

    Templates are looked up in *template_dir* (the built-in ``templates/``
    directory by default), so a project can override individual prompts by
    pointing at a directory holding its own copies.

    Example::

        prompts = PromptTemplate()
        instruction = prompts.render_step("Generate Docs", name="petstore")
    """

    def __init__(
        self,
        template_dir: Path | None = None,
        prompts: Mapping[str, StepPrompt] | None = None,
    ) -> None:
        self._template_dir = template_dir or _BUILTIN_DIR
        if not self._template_dir.is_dir():
            raise TemplateError(f"Template directory does not exist: {self._template_dir}")
        self._prompts = dict(prompts if prompts is not None else STEP_PROMPTS)
        self._env = Environment(
            loader=FileSystemLoader(str(self._template_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @property
    def steps(self) -> list[str]:
        return list(self._prompts)

    def prompt_for(self, step: str) -> StepPrompt:
        """Return the catalogue entry of *step*.

        Raises:
            TemplateError: If *step* has no instruction template.
        """
        try:
            return self._prompts[step]
        except KeyError:
            raise TemplateError(f"No instruction template for step '{step}'") from None

    def render_step(self, step: str, **variables: Any) -> str:
        """Render the instruction of *step*.

        *variables* must be exactly the ones the step declares.

        Raises:
            TemplateError: For an unknown step, a missing or unexpected
                variable, or a template that can not be loaded or rendered.
        """
        prompt = self.prompt_for(step)
        missing = prompt.variables.difference(variables)
        if missing:
            raise TemplateError(f"Step '{step}' needs variable(s): {', '.join(sorted(missing))}")
        unexpected = set(variables) - prompt.variables
        if unexpected:
            raise TemplateError(
                f"Step '{step}' does not take variable(s): {', '.join(sorted(unexpected))}"
            )

        filename = prompt.template + TEMPLATE_SUFFIX
        try:
            return self._env.get_template(filename).render(**variables)
        except TemplateNotFound:
            raise TemplateError(f"Template '{filename}' not found in {self._template_dir}") from None
        except UndefinedError as exc:
            raise TemplateError(f"Template '{filename}' uses an undeclared variable: {exc}") from exc

    def missing_templates(self) -> list[str]:
        """Catalogue templates absent from the template directory."""
        available = set(self._env.list_templates())
        return sorted(
            {p.template for p in self._prompts.values()}
            - {name.removesuffix(TEMPLATE_SUFFIX) for name in available}
        )
