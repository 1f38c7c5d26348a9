"""Download Gno packages from a chain node over JSON-RPC, with caching."""

from __future__ import annotations

import base64
import binascii
import json
import os
import shutil
import time
from collections import deque
from pathlib import Path
from typing import Iterable

import httpx

from .cache import CacheError, HybridCache
from .dependency import DependencyError, DependencyResolver, PackageDependency
from .parallel import DownloadManager, DownloadSummary, DownloadTask, ParallelDownloadOptions
from .query import RpcParams, RpcRequest, parse_response

DEFAULT_RPC_ENDPOINT = "https://rpc.gno.land:443"

MAX_ENTRIES = 1_000
TTL = 24 * 3600


class PackageManagerError(Exception):
    """Base class for package download failures."""


class HttpError(PackageManagerError):
    """The HTTP request or the decoding of its reply failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"HTTP request failed: {message}")


class RpcError(PackageManagerError):
    """The node answered with an error."""

    def __init__(self, message: str) -> None:
        super().__init__(f"RPC error: {message}")


class DirectoryCreationError(PackageManagerError):
    """The target directory could not be created."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to create target directory: {message}")


class PackageFilesError(PackageManagerError):
    """The list of files of a package could not be obtained."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to get package files: {message}")


class FileContentError(PackageManagerError):
    """The content of one file could not be obtained."""

    def __init__(self, file: str, error: str) -> None:
        super().__init__(f"Failed to get file content for {file}: {error}")
        self.file = file
        self.error = error


class PackageManager:
    """Fetches package files from an RPC endpoint, caching lists and contents."""

    def __init__(
        self,
        rpc_endpoint: str | None = None,
        cache_dir: str | os.PathLike[str] = "cache",
    ) -> None:
        self._rpc_endpoint = rpc_endpoint if rpc_endpoint is not None else DEFAULT_RPC_ENDPOINT
        self._http = httpx.AsyncClient()
        self._cache = HybridCache(cache_dir, TTL, MAX_ENTRIES)

    def rpc_endpoint(self) -> str:
        """Return the RPC endpoint in use."""
        return self._rpc_endpoint

    async def __aenter__(self) -> PackageManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client and stop the cache's background cleanup."""
        await self._http.aclose()
        await self._cache.__aexit__(None, None, None)

    async def download_package(self, pkg_path: str, target_dir: str | os.PathLike[str]) -> None:
        """Download every file of a package into target_dir."""
        target_dir = Path(target_dir)
        if not target_dir.exists():
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DirectoryCreationError(str(exc)) from exc

        files_key = f"files:{pkg_path}"
        raw = await self._cache_get(files_key)
        if raw is not None:
            try:
                files = json.loads(raw)
            except ValueError as exc:
                raise PackageManagerError(
                    f"JSON serialization/deserialization error: {exc}"
                ) from exc
        else:
            try:
                files = await self._get_package_files(pkg_path)
            except PackageManagerError as exc:
                raise PackageFilesError(str(exc)) from exc
            await self._cache_set(files_key, json.dumps(files))

        for file in files:
            trimmed = file.strip()
            if not trimmed:
                continue
            file_path = f"{pkg_path}/{trimmed}"
            content_key = f"file:{file_path}"
            content = await self._cache_get(content_key)
            if content is None:
                try:
                    content = await self._get_file_content(file_path)
                except PackageManagerError as exc:
                    raise FileContentError(file, str(exc)) from exc
                await self._cache_set(content_key, content)

            target = target_dir / file
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            except OSError as exc:
                raise PackageManagerError(f"IO error: {exc}") from exc
            print(f"Downloaded: {target}")

    async def download_package_atomic(
        self, pkg_path: str, target_dir: str | os.PathLike[str]
    ) -> None:
        """Download into a temporary directory, then move it over target_dir."""
        target_dir = Path(target_dir)
        temp_dir = target_dir.parent / f"{target_dir.name or 'package'}_tmp_{time.time_ns()}"
        try:
            await self.download_package(pkg_path, temp_dir)
            try:
                if target_dir.exists():
                    shutil.rmtree(target_dir)
            except OSError as exc:
                raise PackageManagerError(f"IO error: {exc}") from exc
            if not target_dir.parent.exists():
                try:
                    target_dir.parent.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    raise DirectoryCreationError(str(exc)) from exc
            try:
                temp_dir.rename(target_dir)
            except OSError as exc:
                raise PackageManagerError(f"IO error: {exc}") from exc
        finally:
            if temp_dir.exists():
                shutil.rmtree(temp_dir, ignore_errors=True)

    async def validate_package(self, target_dir: str | os.PathLike[str]) -> None:
        """Check that every .gno file below target_dir parses and that there is one."""
        resolver = DependencyResolver()
        try:
            packages = resolver.extract_dependencies_from_directory(target_dir)
        except DependencyError as exc:
            raise PackageManagerError(f"Dependency error: {exc}") from exc
        if not packages:
            raise PackageFilesError("No .gno files found")

    async def download_packages_parallel(
        self,
        packages: Iterable[str],
        target_dir: str | os.PathLike[str],
        options: ParallelDownloadOptions | None = None,
    ) -> DownloadSummary:
        """Download several packages concurrently; earlier packages get higher priority."""
        options = options if options is not None else ParallelDownloadOptions()
        target_dir = Path(target_dir)
        packages = list(packages)
        manager = DownloadManager(options.max_concurrent)
        for idx, package in enumerate(packages):
            await manager.queue_download(
                DownloadTask(
                    package_id=package,
                    package_path=package,
                    target_dir=target_dir / package,
                    priority=(len(packages) - idx) & 0xFF,
                    retry_config=options.retry_config,
                )
            )

        async def download(task: DownloadTask) -> None:
            await self.download_package(task.package_path, task.target_dir)

        summary = await manager.process_queue(download)
        if options.show_progress:
            print(f"\n{summary}")
        return summary

    async def download_with_deps_parallel(
        self,
        package: str,
        target_dir: str | os.PathLike[str],
        options: ParallelDownloadOptions | None = None,
    ) -> DownloadSummary:
        """Download a package together with every gno.land package it depends on."""
        print(f"Analyzing dependencies for {package}...")
        all_deps = await self._resolve_all_dependencies(package)
        packages = sorted(all_deps)
        print(f"Found {len(packages)} packages to download")
        return await self.download_packages_parallel(packages, target_dir, options)

    async def _resolve_all_dependencies(self, root_pkg: str) -> dict[str, str]:
        all_deps: dict[str, str] = {}
        pending: deque[str] = deque([root_pkg])
        analyzed: set[str] = set()
        while pending:
            pkg_path = pending.popleft()
            if pkg_path in analyzed:
                continue
            dependency = await self._analyze_package_dependencies(pkg_path)
            for imported in sorted(dependency.imports):
                if imported not in analyzed and imported not in pending:
                    pending.append(imported)
            all_deps[pkg_path] = dependency.name
            analyzed.add(pkg_path)
        return all_deps

    async def _analyze_package_dependencies(self, pkg_path: str) -> PackageDependency:
        resolver = DependencyResolver()
        all_imports: set[str] = set()
        for file in await self._get_package_files(pkg_path):
            trimmed = file.strip()
            if not trimmed or not trimmed.endswith(".gno"):
                continue
            content = await self._get_file_content(f"{pkg_path}/{trimmed}")
            try:
                _, imports = resolver.extract_dependencies(content)
            except DependencyError as exc:
                raise PackageManagerError(f"Dependency error: {exc}") from exc
            all_imports |= imports
        return PackageDependency(name=pkg_path, imports=all_imports)

    async def _get_package_files(self, pkg_path: str) -> list[str]:
        listing = await self._query_file(pkg_path)
        return [line.strip() for line in listing.splitlines() if line.strip()]

    async def _get_file_content(self, file_path: str) -> str:
        return await self._query_file(file_path)

    async def _query_file(self, path: str) -> str:
        encoded = base64.b64encode(path.encode("utf-8")).decode("ascii")
        data = await self._query_rpc(encoded)
        try:
            decoded = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PackageManagerError(f"Base64 decoding error: {exc}") from exc
        return decoded.decode("utf-8", errors="replace")

    async def _query_rpc(self, data: str) -> str:
        request = RpcRequest(
            jsonrpc="2.0",
            id=1,
            method="abci_query",
            params=RpcParams(path="vm/qfile", data=data),
        )
        try:
            response = await self._http.post(self._rpc_endpoint, json=request.to_dict())
            rpc_response = parse_response(response.content)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise HttpError(str(exc)) from exc
        error = rpc_response.response_base.error
        if error is not None:
            raise RpcError(f"RPC error: {json.dumps(error)}")
        return rpc_response.response_base.data

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except CacheError as exc:
            raise PackageManagerError(f"Cache error: {exc}") from exc

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self._cache.set(key, value)
        except CacheError as exc:
            raise PackageManagerError(f"Cache error: {exc}") from exc