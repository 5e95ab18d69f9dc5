"""Unit tests for local export and the remote filesystem client."""

from __future__ import annotations

import base64
from pathlib import Path

import httpx
import pytest

from drivergen.models.artifact import DriverArtifactSet, DriverFiles
from drivergen.pipeline.export import RemoteFileSystem, RemoteFileSystemError, export_driver

_FILES = DriverFiles(
    memconfig='{"schema": {"types": []}}',
    code="export const Root = {};",
    readme="# Petstore ✓",
    package_json='{"name": "petstore"}',
)


def _driver() -> DriverArtifactSet:
    return DriverArtifactSet(name="petstore", files=_FILES)


class _FakeRemote:
    """Records requests and answers like the remote filesystem API."""

    def __init__(self, existing: set[str] | None = None, fail_path: str | None = None) -> None:
        self.existing = existing or set()
        self.fail_path = fail_path
        self.requests: list[httpx.Request] = []
        self.files: dict[str, str] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.params["path"]
        if request.url.path == "/fs/stat":
            return httpx.Response(200 if path in self.existing else 404)
        if path == self.fail_path:
            return httpx.Response(500)
        if request.url.path == "/fs/dir":
            self.existing.add(path)
            return httpx.Response(201)
        if request.url.path == "/fs/file":
            self.files[path] = base64.b64decode(request.content).decode("utf-8")
            return httpx.Response(200)
        return httpx.Response(404)


def _client(handler: _FakeRemote) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://fs.test")


class TestExportDriver:
    def test_writes_all_files(self, tmp_path: Path) -> None:
        written = export_driver(_driver(), tmp_path / "out")

        assert [p.name for p in written] == ["memconfig.json", "index.ts", "README.md", "package.json"]
        assert (tmp_path / "out" / "README.md").read_text(encoding="utf-8") == "# Petstore ✓"

    def test_overwrites_existing(self, tmp_path: Path) -> None:
        (tmp_path / "index.ts").write_text("old")
        export_driver(_driver(), tmp_path)
        assert (tmp_path / "index.ts").read_text() == "export const Root = {};"


class TestRemoteFileSystem:
    def test_token_required(self) -> None:
        with pytest.raises(RemoteFileSystemError, match="token"):
            RemoteFileSystem(token="")

    async def test_save_driver_creates_directory(self) -> None:
        remote = _FakeRemote()
        async with _client(remote) as client:
            fs = RemoteFileSystem(token="secret", client=client)
            paths = await fs.save_driver(_driver())

        assert paths == [
            "petstore/memconfig.json",
            "petstore/index.ts",
            "petstore/README.md",
            "petstore/package.json",
        ]
        assert "/petstore" in remote.existing
        assert remote.files["/petstore/README.md"] == "# Petstore ✓"
        assert all(r.headers["Authorization"] == "Bearer secret" for r in remote.requests)
        assert [r.url.path for r in remote.requests[:2]] == ["/fs/stat", "/fs/dir"]

    async def test_existing_directory_not_recreated(self) -> None:
        remote = _FakeRemote(existing={"/petstore"})
        async with _client(remote) as client:
            await RemoteFileSystem(token="t", client=client).save_driver(_driver())

        assert not any(r.url.path == "/fs/dir" for r in remote.requests)
        file_requests = [r for r in remote.requests if r.url.path == "/fs/file"]
        assert len(file_requests) == 4
        assert all(r.url.params["overwrite"] == "true" for r in file_requests)
        assert all(r.method == "PUT" for r in file_requests)

    async def test_failed_write(self) -> None:
        remote = _FakeRemote(fail_path="/petstore/index.ts")
        async with _client(remote) as client:
            fs = RemoteFileSystem(token="t", client=client)
            with pytest.raises(RemoteFileSystemError) as exc_info:
                await fs.save_driver(_driver())
        assert exc_info.value.status_code == 500

    async def test_failed_mkdir(self) -> None:
        remote = _FakeRemote(fail_path="/petstore")
        async with _client(remote) as client:
            with pytest.raises(RemoteFileSystemError, match="create directory"):
                await RemoteFileSystem(token="t", client=client).mkdir("petstore")

    async def test_stat_unexpected_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://fs.test") as client:
            with pytest.raises(RemoteFileSystemError) as exc_info:
                await RemoteFileSystem(token="t", client=client).stat("petstore")
        assert exc_info.value.status_code == 403

    async def test_transport_error_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://fs.test") as client:
            with pytest.raises(RemoteFileSystemError, match="connection refused"):
                await RemoteFileSystem(token="t", client=client).stat("petstore")

    async def test_borrowed_client_left_open(self) -> None:
        async with _client(_FakeRemote()) as client:
            async with RemoteFileSystem(token="t", client=client):
                pass
            assert not client.is_closed
