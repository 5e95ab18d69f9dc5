"""Writing a driver's four files somewhere other than the store.

``export_driver`` writes them into a local directory. ``RemoteFileSystem``
uploads them to a remote filesystem API with bearer-token auth::

    async with RemoteFileSystem(token=token) as fs:
        await fs.save_driver(driver)
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from types import TracebackType

import httpx

from drivergen.fsutil import atomic_write_text
from drivergen.models.artifact import DriverArtifactSet
from drivergen.pipeline.exceptions import DriverGenError

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_URL = "http://api.membrane.io"
DEFAULT_TIMEOUT = 30.0


class RemoteFileSystemError(DriverGenError):
    """The remote filesystem rejected a request or could not be reached.

    Attributes:
        status_code: HTTP status of the failed response, if there was one.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def export_driver(artifact_set: DriverArtifactSet, directory: str | Path) -> list[Path]:
    """Write the driver's files into *directory*, creating it if needed.

    Returns:
        The written paths, in file-key order.
    """
    target = Path(directory)
    written = [
        atomic_write_text(target / filename, content)
        for filename, content in artifact_set.files.as_dict().items()
    ]
    logger.info("Exported %s to %s", artifact_set.name, target)
    return written


class RemoteFileSystem:
    """Minimal client for the remote filesystem API.

    Args:
        token:    Bearer token sent with every request.
        base_url: API root.
        client:   Pre-built ``httpx.AsyncClient``; the caller keeps ownership.
        timeout:  Request timeout in seconds for the client built here.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_REMOTE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not token:
            raise RemoteFileSystemError("Auth token not set for the remote filesystem")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=httpx.Timeout(timeout)
        )

    async def __aenter__(self) -> RemoteFileSystem:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, str],
        content: str | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                endpoint,
                params=params,
                headers=self._headers,
                content=content,
            )
        except httpx.HTTPError as exc:
            raise RemoteFileSystemError(f"{method} {endpoint} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Filesystem operations
    # ------------------------------------------------------------------

    async def stat(self, path: str) -> bool:
        """Return whether *path* exists."""
        response = await self._request("GET", "/fs/stat", {"path": f"/{path}"})
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise RemoteFileSystemError(
            f"Could not stat /{path}: HTTP {response.status_code}", response.status_code
        )

    async def mkdir(self, path: str) -> None:
        response = await self._request("PUT", "/fs/dir", {"path": f"/{path}"})
        if not response.is_success:
            raise RemoteFileSystemError(
                f"Failed to create directory /{path}: HTTP {response.status_code}",
                response.status_code,
            )
        logger.info("Directory /%s created", path)

    async def write(self, path: str, content: str) -> None:
        """Write *content* to *path*, replacing any existing file.

        The body is sent base64-encoded as plain text.
        """
        body = base64.b64encode(content.encode("utf-8")).decode("ascii")
        response = await self._request(
            "PUT", "/fs/file", {"path": f"/{path}", "overwrite": "true"}, content=body
        )
        if not response.is_success:
            raise RemoteFileSystemError(
                f"Failed to save file /{path}: HTTP {response.status_code}",
                response.status_code,
            )

    async def save_driver(self, artifact_set: DriverArtifactSet) -> list[str]:
        """Upload the driver's files under ``/<name>/``.

        Returns:
            The remote paths written.
        """
        name = artifact_set.name
        if not await self.stat(name):
            await self.mkdir(name)

        files = artifact_set.files.as_dict()
        paths = [f"{name}/{filename}" for filename in files]
        await asyncio.gather(
            *(self.write(path, content) for path, content in zip(paths, files.values()))
        )
        logger.info("Saved %d files for %s", len(paths), name)
        return paths
