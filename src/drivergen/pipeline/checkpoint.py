"""Checkpoint management for driver artifact sets.

Checkpoints live on the artifact set itself; the manager only mediates
access. Every snapshot and every rollback copies deeply, so no checkpoint
ever shares mutable state with the live artifact set or with another
checkpoint.
"""

from __future__ import annotations

import logging

from drivergen.models.artifact import Checkpoint, DriverArtifactSet
from drivergen.models.validation import ValidationResult
from drivergen.pipeline.exceptions import CheckpointNotFoundError

logger = logging.getLogger(__name__)


class CheckpointManager:
    """Create, inspect and roll back checkpoints of an artifact set.

    Checkpoint ids are dense and increasing (0, 1, 2, ...) per artifact set,
    and ``current_checkpoint`` always points at the checkpoint most recently
    created or rolled back to.

    Example::

        checkpoints = CheckpointManager()
        checkpoints.create_checkpoint(driver, "Initial generation")
        driver.files = driver.files.replace(FileKind.CODE, new_code)
        checkpoints.rollback_to_checkpoint(driver, 0)
    """

    def create_checkpoint(
        self,
        artifact_set: DriverArtifactSet,
        message: str,
        validation: ValidationResult | None = None,
    ) -> Checkpoint:
        """Snapshot the artifact set's files and validity.

        Args:
            artifact_set: The artifact set to snapshot.
            message: Free-text description of the pipeline stage.
            validation: Validity to record instead of the set's current one.

        Returns:
            The new checkpoint, already appended to the set.
        """
        result = validation or artifact_set.validation
        checkpoint = Checkpoint(
            id=len(artifact_set.checkpoints),
            message=message,
            files=artifact_set.files.model_copy(deep=True),
            is_valid=result.is_valid,
            validation_errors=[e.model_copy(deep=True) for e in result.errors],
            improvement_plan=(
                result.improvement_plan.model_copy(deep=True)
                if result.improvement_plan is not None
                else None
            ),
        )
        artifact_set.checkpoints.append(checkpoint)
        artifact_set.current_checkpoint = checkpoint.id
        logger.debug(
            "Checkpoint %d for %s: %s (valid=%s)",
            checkpoint.id,
            artifact_set.name,
            message,
            checkpoint.is_valid,
        )
        return checkpoint

    def get_checkpoint(self, artifact_set: DriverArtifactSet, checkpoint_id: int) -> Checkpoint:
        """Return checkpoint *checkpoint_id*.

        Raises:
            CheckpointNotFoundError: If the id does not exist for this set.
        """
        if not 0 <= checkpoint_id < len(artifact_set.checkpoints):
            raise CheckpointNotFoundError(artifact_set.name, checkpoint_id)
        return artifact_set.checkpoints[checkpoint_id]

    def rollback_to_checkpoint(
        self, artifact_set: DriverArtifactSet, checkpoint_id: int
    ) -> Checkpoint:
        """Restore files and validity from checkpoint *checkpoint_id* in place.

        Raises:
            CheckpointNotFoundError: If the id does not exist for this set.
        """
        checkpoint = self.get_checkpoint(artifact_set, checkpoint_id)
        artifact_set.files = checkpoint.files.model_copy(deep=True)
        artifact_set.is_valid = checkpoint.is_valid
        artifact_set.validation_errors = [
            e.model_copy(deep=True) for e in checkpoint.validation_errors
        ]
        artifact_set.improvement_plan = (
            checkpoint.improvement_plan.model_copy(deep=True)
            if checkpoint.improvement_plan is not None
            else None
        )
        artifact_set.current_checkpoint = checkpoint.id
        logger.info(
            "Rolled back %s to checkpoint %d (%s)",
            artifact_set.name,
            checkpoint.id,
            checkpoint.message,
        )
        return checkpoint

    def rollback_to_last_valid_checkpoint(self, artifact_set: DriverArtifactSet) -> bool:
        """Roll back to the valid checkpoint with the highest id.

        Returns:
            ``True`` if a valid checkpoint existed, ``False`` otherwise (the
            artifact set is left untouched).
        """
        for checkpoint in reversed(artifact_set.checkpoints):
            if checkpoint.is_valid:
                self.rollback_to_checkpoint(artifact_set, checkpoint.id)
                return True
        return False

    def get_current_checkpoint(self, artifact_set: DriverArtifactSet) -> Checkpoint | None:
        if artifact_set.current_checkpoint < 0:
            return None
        return artifact_set.checkpoints[artifact_set.current_checkpoint]

    def get_all_checkpoints(self, artifact_set: DriverArtifactSet) -> list[Checkpoint]:
        """Return every checkpoint ordered by id."""
        return list(artifact_set.checkpoints)

    def get_latest_checkpoint(self, artifact_set: DriverArtifactSet) -> Checkpoint | None:
        return artifact_set.checkpoints[-1] if artifact_set.checkpoints else None

    def clear(self, artifact_set: DriverArtifactSet) -> None:
        """Discard all checkpoints and reset the pointer."""
        artifact_set.checkpoints = []
        artifact_set.current_checkpoint = -1
