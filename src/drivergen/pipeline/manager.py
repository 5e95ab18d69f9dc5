"""PipelineManager – generate, validate and repair drivers.

The manager owns the state machine of every artifact set:

    generating -> validating -> valid
                             -> improving -> improved -> ... -> valid | exhausted

Generation runs the five stages strictly in order, each stage reading the
outputs of the stages before it. Validation never raises for problems in the
generated driver; those come back as issues and drive the repair loop. Every
change to an artifact set's files is followed by a checkpoint, and the store
persists the set after every operation.

Usage::

    manager = PipelineManager(StepExecutor.default(gateway), JsonDriverStore(".drivergen/drivers"))
    driver = await manager.generate_driver(api_docs, "petstore")
    if not driver.is_valid:
        driver = await manager.validate_and_improve("petstore")
"""

from __future__ import annotations

import logging

from drivergen.models.artifact import (
    Checkpoint,
    DriverArtifactSet,
    FileKind,
    PipelineStatus,
)
from drivergen.models.validation import Component, ValidationIssue, ValidationResult
from drivergen.pipeline.checkpoint import CheckpointManager
from drivergen.pipeline.steps import IMPROVEMENT_STEPS, PipelineStep, StepExecutor, StepState
from drivergen.pipeline.store import DriverStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 3

# Generation stages in execution order, with the file each one produces.
GENERATION_STAGES: tuple[tuple[PipelineStep, FileKind | None], ...] = (
    (PipelineStep.ANALYZE_API, None),
    (PipelineStep.GENERATE_SCHEMA, FileKind.SCHEMA),
    (PipelineStep.GENERATE_CODE, FileKind.CODE),
    (PipelineStep.GENERATE_DOCS, FileKind.DOCS),
    (PipelineStep.GENERATE_PACKAGE_JSON, FileKind.PACKAGE),
)


def _state(artifact_set: DriverArtifactSet, feedback: str = "") -> StepState:
    return StepState(
        name=artifact_set.name,
        spec=artifact_set.source_spec,
        analyzed_api=artifact_set.analyzed_api,
        files=artifact_set.files,
        feedback=feedback,
    )


class PipelineManager:
    """Orchestrates the generate -> validate -> improve loop.

    Args:
        step_executor: Runs the individual pipeline steps.
        store:         Registry of artifact sets. Defaults to an in-memory store.
        checkpoints:   Checkpoint manager. Defaults to a new one.
        max_iterations: Upper bound on repair iterations per
                        :meth:`validate_and_improve` call.
    """

    def __init__(
        self,
        step_executor: StepExecutor,
        store: DriverStore | None = None,
        checkpoints: CheckpointManager | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self._executor = step_executor
        self._store = store if store is not None else DriverStore()
        self._checkpoints = checkpoints or CheckpointManager()
        self.max_iterations = max_iterations

    @property
    def store(self) -> DriverStore:
        return self._store

    @property
    def checkpoints(self) -> CheckpointManager:
        return self._checkpoints

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_driver(self, spec: str, name: str) -> DriverArtifactSet:
        """Generate all four driver files for *name* from the API documentation *spec*.

        The set is registered and returned whether or not it validates. If a
        stage fails, the remaining stages are skipped and the set is
        registered with the files produced so far, marked invalid with the
        failure as its only issue.

        Raises:
            DuplicateDriverError: If *name* is already registered.
        """
        self._store.ensure_available(name)
        logger.info("Starting driver generation for %s", name)

        state = StepState(name=name, spec=spec)
        failure: Exception | None = None
        for step, kind in GENERATION_STAGES:
            logger.info("[%s] %s", name, step.value)
            try:
                output = await self._executor.execute(step, state)
            except Exception as exc:
                logger.error("Driver generation failed for %s at %s: %s", name, step.value, exc)
                failure = exc
                break
            if kind is None:
                state.analyzed_api = output
            else:
                state.files = state.files.replace(kind, output)

        artifact_set = DriverArtifactSet(
            name=name,
            source_spec=spec,
            analyzed_api=state.analyzed_api,
            files=state.files,
            status=PipelineStatus.VALIDATING,
        )
        if failure is not None:
            result = ValidationResult(
                is_valid=False,
                errors=[ValidationIssue(component=Component.CODE, message=str(failure))],
            )
            artifact_set.apply_validation(result)
            self._checkpoints.create_checkpoint(artifact_set, "Generation failed", result)
            self._store.add(artifact_set)
            return artifact_set

        result = await self._validate(artifact_set)
        artifact_set.status = self._settled_status(artifact_set)
        self._checkpoints.create_checkpoint(artifact_set, "Initial generation", result)
        self._store.add(artifact_set)

        logger.info(
            "Driver generation %s for %s",
            "succeeded" if result.is_valid else "completed with validation errors",
            name,
        )
        return artifact_set

    # ------------------------------------------------------------------
    # Validation and repair
    # ------------------------------------------------------------------

    async def validate_driver(self, name: str) -> ValidationResult:
        """Validate the current files of *name* and checkpoint the outcome."""
        artifact_set = self._store.get(name)
        result = await self._validate(artifact_set)
        outcome = "succeeded" if result.is_valid else "failed"
        self._checkpoints.create_checkpoint(artifact_set, f"Validation {outcome}", result)
        artifact_set.status = self._settled_status(artifact_set)
        self._store.save(artifact_set)
        return result

    async def validate_and_improve(self, name: str) -> DriverArtifactSet:
        """Validate *name* and repair it until it is valid or the bound is hit.

        Each repair iteration improves the schema using the first suggestion
        of the improvement plan, then regenerates the code against the new
        schema. An invalid driver with no suggestions stops the loop early.

        Returns:
            The artifact set; its status is ``valid`` or ``exhausted``.
        """
        artifact_set = self._store.get(name)
        logger.info("Starting driver validation loop for %s", name)
        try:
            for iteration in range(1, self.max_iterations + 1):
                logger.info("Validation iteration %d/%d", iteration, self.max_iterations)
                result = await self._validate(artifact_set)
                if result.is_valid:
                    self._finish_valid(artifact_set, f"Validation succeeded iteration {iteration}", result)
                    return artifact_set

                plan = result.improvement_plan
                if plan is None or not plan.suggestions:
                    logger.warning("No improvement suggestions for %s; stopping", name)
                    self._checkpoints.create_checkpoint(
                        artifact_set, f"No improvement suggestions iteration {iteration}", result
                    )
                    artifact_set.status = PipelineStatus.EXHAUSTED
                    return artifact_set

                await self._repair(artifact_set, iteration, plan.suggestions[0], result)

            # The code regenerated by the last iteration has not been checked yet.
            result = await self._validate(artifact_set)
            if result.is_valid:
                self._finish_valid(
                    artifact_set, f"Validation succeeded after iteration {self.max_iterations}", result
                )
                return artifact_set

            logger.warning("Reached maximum of %d iterations for %s", self.max_iterations, name)
            self._checkpoints.create_checkpoint(artifact_set, "Max iterations reached", result)
            artifact_set.status = PipelineStatus.EXHAUSTED
            return artifact_set
        finally:
            if not artifact_set.status.is_terminal:
                artifact_set.status = self._settled_status(artifact_set)
            self._store.save(artifact_set)

    async def _repair(
        self,
        artifact_set: DriverArtifactSet,
        iteration: int,
        suggestion: str,
        result: ValidationResult,
    ) -> None:
        artifact_set.status = PipelineStatus.IMPROVING
        self._checkpoints.create_checkpoint(
            artifact_set, f"Before improvements iteration {iteration}", result
        )

        logger.info("Applying schema improvements")
        schema = await self._executor.execute(
            PipelineStep.IMPROVE_SCHEMA, _state(artifact_set, feedback=suggestion)
        )
        artifact_set.files = artifact_set.files.replace(FileKind.SCHEMA, schema)
        self._checkpoints.create_checkpoint(
            artifact_set, f"Schema improved iteration {iteration}", result
        )

        logger.info("Regenerating code with updated schema")
        code = await self._executor.execute(PipelineStep.GENERATE_CODE, _state(artifact_set))
        artifact_set.files = artifact_set.files.replace(FileKind.CODE, code)
        self._checkpoints.create_checkpoint(
            artifact_set, f"Code regenerated iteration {iteration}", result
        )
        artifact_set.status = PipelineStatus.IMPROVED

    async def improve_specific_part(
        self,
        name: str,
        feedback: str,
        target: FileKind | str,
    ) -> DriverArtifactSet:
        """Improve one file of *name* using caller-supplied *feedback*.

        A checkpoint is taken before the attempt and another after it,
        labelled by the outcome of a follow-up validation. If the
        improvement step itself fails, the set is rolled back to the
        pre-improvement checkpoint and the error propagates.

        Raises:
            ValueError: If *target* is not a file kind.
        """
        kind = FileKind(target)
        artifact_set = self._store.get(name)
        step = IMPROVEMENT_STEPS[kind]

        before = self._checkpoints.create_checkpoint(
            artifact_set, f"Pre-{kind.value}-improvement: {feedback[:50]}..."
        )
        artifact_set.status = PipelineStatus.IMPROVING
        try:
            improved = await self._executor.execute(step, _state(artifact_set, feedback=feedback))
        except Exception:
            logger.error("%s failed for %s; restoring checkpoint %d", step.value, name, before.id)
            self._checkpoints.rollback_to_checkpoint(artifact_set, before.id)
            artifact_set.status = self._settled_status(artifact_set)
            self._store.save(artifact_set)
            raise

        artifact_set.files = artifact_set.files.replace(kind, improved)
        result = await self._validate(artifact_set)
        outcome = "Successful" if result.is_valid else "Failed"
        self._checkpoints.create_checkpoint(
            artifact_set, f"{outcome} {kind.value} improvement", result
        )
        artifact_set.status = PipelineStatus.VALID if result.is_valid else PipelineStatus.IMPROVED
        self._store.save(artifact_set)
        return artifact_set

    # ------------------------------------------------------------------
    # Checkpoints and registry
    # ------------------------------------------------------------------

    async def rollback_driver(self, name: str, checkpoint_id: int) -> DriverArtifactSet:
        """Restore *name* to checkpoint *checkpoint_id*.

        Raises:
            DriverNotFoundError: If *name* is not registered.
            CheckpointNotFoundError: If the checkpoint does not exist.
        """
        artifact_set = self._store.get(name)
        self._checkpoints.rollback_to_checkpoint(artifact_set, checkpoint_id)
        artifact_set.status = self._settled_status(artifact_set)
        self._store.save(artifact_set)
        return artifact_set

    async def rollback_to_last_valid(self, name: str) -> bool:
        """Restore *name* to its latest valid checkpoint, if it has one."""
        artifact_set = self._store.get(name)
        restored = self._checkpoints.rollback_to_last_valid_checkpoint(artifact_set)
        if restored:
            artifact_set.status = self._settled_status(artifact_set)
            self._store.save(artifact_set)
        return restored

    def get_driver_checkpoints(self, name: str) -> list[Checkpoint]:
        return self._checkpoints.get_all_checkpoints(self._store.get(name))

    def get_driver(self, name: str) -> DriverArtifactSet:
        """Return the artifact set *name*.

        Raises:
            DriverNotFoundError: If *name* is not registered.
        """
        return self._store.get(name)

    def list_drivers(self) -> list[DriverArtifactSet]:
        """Return every registered artifact set, ordered by name."""
        return [self._store.get(name) for name in self._store.names()]

    def delete_driver(self, name: str) -> None:
        """Remove *name* and its checkpoints.

        Raises:
            DriverNotFoundError: If *name* is not registered.
        """
        artifact_set = self._store.get(name)
        self._store.delete(name)
        self._checkpoints.clear(artifact_set)
        logger.info("Deleted driver %s", name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _validate(self, artifact_set: DriverArtifactSet) -> ValidationResult:
        artifact_set.status = PipelineStatus.VALIDATING
        result: ValidationResult = await self._executor.execute(
            PipelineStep.VALIDATE_DRIVER, _state(artifact_set)
        )
        artifact_set.apply_validation(result)
        if result.is_valid:
            logger.info("Validation passed for %s", artifact_set.name)
        else:
            logger.info(
                "Validation failed for %s: %d error(s), %d warning(s)",
                artifact_set.name,
                result.error_count,
                result.warning_count,
            )
        return result

    def _finish_valid(
        self, artifact_set: DriverArtifactSet, message: str, result: ValidationResult
    ) -> None:
        self._checkpoints.create_checkpoint(artifact_set, message, result)
        artifact_set.status = PipelineStatus.VALID

    @staticmethod
    def _settled_status(artifact_set: DriverArtifactSet) -> PipelineStatus:
        # Outside of a running operation an invalid set is waiting for repair.
        return PipelineStatus.VALID if artifact_set.is_valid else PipelineStatus.VALIDATING
