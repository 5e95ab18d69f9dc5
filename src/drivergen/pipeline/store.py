"""Artifact set stores: the registry of drivers keyed by name.

``DriverStore`` keeps artifact sets in memory for the lifetime of the
object. ``JsonDriverStore`` additionally writes each set to
``<directory>/<name>.json`` so drivers survive process restarts.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from drivergen.fsutil import atomic_write_text
from drivergen.models.artifact import DriverArtifactSet
from drivergen.pipeline.exceptions import DriverGenError, DriverNotFoundError, DuplicateDriverError

logger = logging.getLogger(__name__)

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class DriverStore:
    """In-memory registry of artifact sets.

    Example::

        store = DriverStore()
        store.add(DriverArtifactSet(name="petstore", source_spec=spec))
        driver = store.get("petstore")
    """

    def __init__(self) -> None:
        self._drivers: dict[str, DriverArtifactSet] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._drivers

    def __len__(self) -> int:
        return len(self._drivers)

    def ensure_available(self, name: str) -> None:
        """Check that *name* can be registered, before any work is done for it.

        Raises:
            DuplicateDriverError: If the name is already taken.
        """
        if name in self._drivers:
            raise DuplicateDriverError(name)

    def add(self, artifact_set: DriverArtifactSet) -> None:
        """Register a new artifact set.

        Raises:
            DuplicateDriverError: If the name is already taken.
        """
        self.ensure_available(artifact_set.name)
        self._drivers[artifact_set.name] = artifact_set
        self.save(artifact_set)

    def get(self, name: str) -> DriverArtifactSet:
        """Return the artifact set *name*.

        Raises:
            DriverNotFoundError: If no such set exists.
        """
        try:
            return self._drivers[name]
        except KeyError:
            raise DriverNotFoundError(name) from None

    def save(self, artifact_set: DriverArtifactSet) -> None:
        """Persist the current state of a registered artifact set.

        The in-memory store holds live objects, so there is nothing to write.
        """
        if artifact_set.name not in self._drivers:
            raise DriverNotFoundError(artifact_set.name)

    def delete(self, name: str) -> None:
        """Remove the artifact set *name*.

        Raises:
            DriverNotFoundError: If no such set exists.
        """
        if name not in self._drivers:
            raise DriverNotFoundError(name)
        del self._drivers[name]

    def names(self) -> list[str]:
        return sorted(self._drivers)


class JsonDriverStore(DriverStore):
    """Artifact set registry backed by one JSON file per set.

    All files under *directory* are loaded at construction. Writes go
    through a temp file + rename so a crash never leaves a torn file.
    """

    def __init__(self, directory: str | Path) -> None:
        super().__init__()
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._load_all()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, name: str) -> Path:
        if not _SAFE_NAME_RE.match(name):
            raise DriverGenError(
                f"Driver name '{name}' can not be stored; use letters, digits, '.', '_' or '-'"
            )
        return self._directory / f"{name}.json"

    def _load_all(self) -> None:
        for path in sorted(self._directory.glob("*.json")):
            try:
                artifact_set = DriverArtifactSet.model_validate_json(
                    path.read_text(encoding="utf-8")
                )
            except ValidationError as exc:
                raise DriverGenError(f"Malformed driver file {path}: {exc}") from exc
            self._drivers[artifact_set.name] = artifact_set
        logger.debug("Loaded %d driver(s) from %s", len(self._drivers), self._directory)

    def ensure_available(self, name: str) -> None:
        self._path(name)
        super().ensure_available(name)

    def save(self, artifact_set: DriverArtifactSet) -> None:
        super().save(artifact_set)
        data = artifact_set.model_dump(mode="json", by_alias=True)
        atomic_write_text(self._path(artifact_set.name), json.dumps(data, indent=2))

    def delete(self, name: str) -> None:
        super().delete(name)
        path = self._path(name)
        if path.exists():
            path.unlink()
