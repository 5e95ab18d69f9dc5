"""Pipeline exception hierarchy.

All operational errors raised by the pipeline are subclasses of
``DriverGenError`` so callers can catch them with a single except clause.

Error taxonomy:

Caller misuse (raised immediately, never retried):
    DriverNotFoundError      no artifact set with that name
    DuplicateDriverError     an artifact set with that name already exists
    CheckpointNotFoundError  checkpoint id unknown for the artifact set
    UnknownStepError         step name is not a pipeline step
    StepInputError           payload does not match the step

Programming errors (raised at construction):
    StepRegistrationError    a pipeline step has no agent bound to it

External output (the stage is aborted):
    AgentOutputError         an agent's LLM output could not be used

Coverage and grammar problems in generated drivers are never raised; they
are reported as validation issues.
"""
from __future__ import annotations


class DriverGenError(Exception):
    """Base class for all pipeline exceptions."""


class DriverNotFoundError(DriverGenError):
    """No artifact set is registered under *name*."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Driver '{name}' not found")


class DuplicateDriverError(DriverGenError):
    """An artifact set named *name* already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Driver '{name}' already exists. Delete it first or choose another name."
        )


class CheckpointNotFoundError(DriverGenError):
    """The artifact set has no checkpoint with the requested id.

    Attributes:
        name:          Artifact set name.
        checkpoint_id: The id that was requested.
    """

    def __init__(self, name: str, checkpoint_id: int) -> None:
        self.name = name
        self.checkpoint_id = checkpoint_id
        super().__init__(f"Checkpoint {checkpoint_id} not found for driver '{name}'")


class UnknownStepError(DriverGenError):
    """A step name does not correspond to any pipeline step."""

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Unknown pipeline step '{step}'")


class StepRegistrationError(DriverGenError):
    """The step executor was built without an agent for some steps.

    Attributes:
        missing: Names of the steps with no agent.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"No agent registered for step(s): {', '.join(missing)}")


class StepInputError(DriverGenError):
    """The pipeline state can not be shaped into the step's payload."""


class AgentOutputError(DriverGenError):
    """An agent produced output that can not be used.

    Examples: API analysis that is not a JSON object.
    """
