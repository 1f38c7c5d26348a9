"""Concurrent, prioritised package downloads with retries and progress events."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

DownloadFn = Callable[["DownloadTask"], Awaitable[object]]


class DownloadError(Exception):
    """Base class for download failures."""


class NetworkError(DownloadError):
    """A transfer failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Network error: {message}")
        self.message = message


class DownloadTimeoutError(DownloadError):
    """A download took longer than allowed; timeout is in seconds."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Timeout after {timeout}s")
        self.timeout = timeout


class ChecksumMismatchError(DownloadError):
    """Downloaded content did not match its checksum."""

    def __init__(self) -> None:
        super().__init__("Checksum mismatch")


class DownloadCancelledError(DownloadError):
    """A download was cancelled."""

    def __init__(self) -> None:
        super().__init__("Download cancelled")


class MaxRetriesExceededError(DownloadError):
    """Every allowed attempt failed."""

    def __init__(self, attempts: int = 0) -> None:
        super().__init__("Max retries exceeded")
        self.attempts = attempts


@dataclass
class RetryConfig:
    """Retry policy; durations are in seconds."""

    max_attempts: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    multiplier: float = 2.0


@dataclass
class DownloadTask:
    """One package to download; higher priority runs first."""

    package_id: str
    package_path: str
    target_dir: Path
    priority: int = 0
    retry_config: RetryConfig = field(default_factory=RetryConfig)


class DownloadState(enum.Enum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PackageProgress:
    """Latest known state of one package."""

    package_id: str
    state: DownloadState
    started_at: float
    eta: float | None = None
    percent: float = 0.0
    error: str | None = None


@dataclass
class FailedDownload:
    package: str
    error: Exception
    retry_count: int = 0


@dataclass
class DownloadSummary:
    """Outcome of processing a download queue; duration is in seconds."""

    total_packages: int
    successful: int
    failed: list[FailedDownload]
    duration: float

    def __str__(self) -> str:
        return (
            f"Downloaded {self.total_packages} packages in {self.duration:.3f}s "
            f"({self.successful} successful, {len(self.failed)} failed)"
        )


@dataclass
class ParallelDownloadOptions:
    max_concurrent: int = 4
    show_progress: bool = True
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout: float = 300.0


class ProgressKind(enum.Enum):
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressUpdate:
    kind: ProgressKind
    package_id: str
    percent: float | None = None
    error: str | None = None


class ProgressTracker:
    """Records per-package progress and publishes updates on a bounded queue.

    Updates that arrive while the queue is full are dropped from the queue but
    still recorded in the progress table.
    """

    def __init__(self, buffer: int = 100) -> None:
        self._progress: dict[str, PackageProgress] = {}
        self._updates: asyncio.Queue[ProgressUpdate] = asyncio.Queue(maxsize=buffer)

    async def update(self, update: ProgressUpdate) -> None:
        self._record(update)
        with contextlib.suppress(asyncio.QueueFull):
            self._updates.put_nowait(update)

    async def get_progress(self) -> dict[str, PackageProgress]:
        return dict(self._progress)

    def get_update_receiver(self) -> asyncio.Queue[ProgressUpdate]:
        return self._updates

    def _record(self, update: ProgressUpdate) -> None:
        previous = self._progress.get(update.package_id)
        started_at = previous.started_at if previous is not None else time.monotonic()
        if update.kind is ProgressKind.STARTED:
            state, percent, error = DownloadState.DOWNLOADING, 0.0, None
        elif update.kind is ProgressKind.PROGRESS:
            state, percent, error = DownloadState.DOWNLOADING, update.percent or 0.0, None
        elif update.kind is ProgressKind.COMPLETED:
            state, percent, error = DownloadState.COMPLETED, 100.0, None
        else:
            percent = previous.percent if previous is not None else 0.0
            state, error = DownloadState.FAILED, update.error
        self._progress[update.package_id] = PackageProgress(
            package_id=update.package_id,
            state=state,
            started_at=started_at,
            percent=percent,
            error=error,
        )


class DownloadManager:
    """Runs queued downloads with bounded concurrency, in priority order."""

    def __init__(self, max_concurrent: int) -> None:
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._progress = ProgressTracker()
        self._queue: deque[DownloadTask] = deque()

    async def queue_download(self, task: DownloadTask) -> None:
        """Queue a task ahead of every task with lower priority."""
        position = next(
            (i for i, queued in enumerate(self._queue) if queued.priority < task.priority),
            len(self._queue),
        )
        self._queue.insert(position, task)

    async def process_queue(self, download_fn: DownloadFn) -> DownloadSummary:
        """Run every queued task through download_fn and summarise the outcome."""
        start = time.monotonic()
        running: list[tuple[str, asyncio.Task[None]]] = []
        while self._queue:
            task = self._queue.popleft()
            await self._progress.update(ProgressUpdate(ProgressKind.STARTED, task.package_id))
            running.append((task.package_id, asyncio.create_task(self._run(task, download_fn))))

        successful = 0
        failed: list[FailedDownload] = []
        for package_id, handle in running:
            try:
                await handle
            except MaxRetriesExceededError as exc:
                failed.append(FailedDownload(package_id, exc, max(exc.attempts - 1, 0)))
            except Exception as exc:
                failed.append(FailedDownload(package_id, NetworkError(f"Task panic: {exc}")))
            else:
                successful += 1

        return DownloadSummary(
            total_packages=len(running),
            successful=successful,
            failed=failed,
            duration=time.monotonic() - start,
        )

    def progress(self) -> ProgressTracker:
        return self._progress

    async def _run(self, task: DownloadTask, download_fn: DownloadFn) -> None:
        async with self._semaphore:
            try:
                await self._download_with_retry(task, download_fn)
            except Exception as exc:
                await self._progress.update(
                    ProgressUpdate(ProgressKind.FAILED, task.package_id, error=str(exc))
                )
                raise
            await self._progress.update(ProgressUpdate(ProgressKind.COMPLETED, task.package_id))

    @staticmethod
    async def _download_with_retry(task: DownloadTask, download_fn: DownloadFn) -> None:
        config = task.retry_config
        backoff = config.initial_backoff
        attempts = 0
        while True:
            attempts += 1
            try:
                await download_fn(task)
                return
            except Exception as exc:
                if attempts >= config.max_attempts:
                    raise MaxRetriesExceededError(attempts) from exc
                print(
                    f"Download failed for {task.package_id}: {exc}. Retrying in {backoff}s "
                    f"(attempt {attempts}/{config.max_attempts})",
                    file=sys.stderr,
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * config.multiplier, config.max_backoff)