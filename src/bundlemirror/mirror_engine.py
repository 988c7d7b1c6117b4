from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
import posixpath
import time
from typing import Protocol

from bundlemirror.errors import ListingError, MirrorError, TransferError
from bundlemirror.ignore_engine import IgnoreEngine
from bundlemirror.listing import ListingSource, RemoteTreeLister
from bundlemirror.models import MirrorStats, RemoteEntry, TransferTarget
from bundlemirror.progress import (
    EventSink,
    LogEvent,
    LogLevel,
    LoggingReporter,
    ProgressEvent,
    ProgressScope,
    ProgressState,
    percent_of,
)
from bundlemirror.retry import AttemptState, FileAttempts, RetryPolicy
from bundlemirror.transfer import CHUNK_SIZE, FileSource, transfer_file


logger = logging.getLogger("bundlemirror.engine")


class RemoteSession(ListingSource, FileSource, Protocol):
    pass


def child_address(parent: str, name: str) -> str:
    return posixpath.join(parent, name)


class MirrorEngine:
    """Recursive remote-tree walker with an estimation pass and a transfer pass.

    Both passes recurse once per remote directory; trees are assumed to be far
    shallower than the interpreter's recursion limit.
    """

    def __init__(
        self,
        session: RemoteSession,
        *,
        lister: RemoteTreeLister | None = None,
        retry_policy: RetryPolicy | None = None,
        chunk_size: int = CHUNK_SIZE,
        ignore: IgnoreEngine | None = None,
        on_event: EventSink | None = None,
        verify_size: bool = True,
    ) -> None:
        self.session = session
        self.lister = lister or RemoteTreeLister(session)
        self.retry_policy = retry_policy or RetryPolicy()
        self.chunk_size = chunk_size
        self.ignore = ignore or IgnoreEngine([])
        self.on_event = on_event or LoggingReporter()
        self.verify_size = verify_size

    def _emit(self, event: ProgressEvent | LogEvent) -> None:
        self.on_event(event)

    def _entries(self, remote_address: str, relative: PurePosixPath) -> list[tuple[RemoteEntry, PurePosixPath]]:
        kept: list[tuple[RemoteEntry, PurePosixPath]] = []
        for entry in self.lister.list(remote_address):
            if entry.name in (".", "..") or "/" in entry.name or "\\" in entry.name:
                raise ListingError(remote_address, f"refusing unsafe entry name {entry.name!r}")
            rel_path = relative / entry.name
            if self.ignore.is_ignored(rel_path, is_dir=entry.is_dir):
                logger.debug("Excluded %s", child_address(remote_address, entry.name))
                continue
            kept.append((entry, rel_path))
        return kept

    # estimation pass

    def estimate_size(self, remote_address: str) -> int:
        return self._estimate(remote_address, PurePosixPath())

    def _estimate(self, remote_address: str, relative: PurePosixPath) -> int:
        total = 0
        for entry, rel_path in self._entries(remote_address, relative):
            address = child_address(remote_address, entry.name)
            if entry.is_dir:
                total += self._estimate(address, rel_path)
            else:
                total += entry.size_bytes or 0
        return total

    # transfer pass

    def mirror(
        self,
        remote_address: str,
        local_path: Path,
        progress: ProgressState | None = None,
        create_parents: bool = True,
    ) -> MirrorStats:
        if progress is None:
            progress = ProgressState(total_bytes_estimated=self.estimate_size(remote_address))

        stats = MirrorStats()
        local_path.mkdir(parents=create_parents, exist_ok=True)
        self._mirror(remote_address, local_path, PurePosixPath(), progress, stats)
        return stats

    def _mirror(
        self,
        remote_address: str,
        local_path: Path,
        relative: PurePosixPath,
        progress: ProgressState,
        stats: MirrorStats,
    ) -> None:
        for entry, rel_path in self._entries(remote_address, relative):
            target = TransferTarget(
                remote_address=child_address(remote_address, entry.name),
                local_path=local_path / entry.name,
            )
            if entry.is_dir:
                target.local_path.mkdir(exist_ok=True)
                stats.directories += 1
                self._mirror(target.remote_address, target.local_path, rel_path, progress, stats)
                continue

            written = self._transfer_with_retry(target, entry.size_bytes or 0, progress, stats)
            stats.files += 1
            stats.bytes_transferred += written

    def _transfer_with_retry(
        self,
        target: TransferTarget,
        size_bytes: int,
        progress: ProgressState,
        stats: MirrorStats,
    ) -> int:
        attempts = FileAttempts(self.retry_policy)

        while True:
            committed = progress.snapshot()

            def on_chunk(file_bytes: int, delta: int) -> None:
                self._emit(progress.overall_event(committed + file_bytes, target.remote_address))
                self._emit(
                    ProgressEvent(
                        scope=ProgressScope.FILE,
                        bytes_done=file_bytes,
                        bytes_total=size_bytes,
                        percent=percent_of(file_bytes, size_bytes),
                        address=target.remote_address,
                    )
                )

            try:
                written = transfer_file(
                    self.session,
                    target.remote_address,
                    target.local_path,
                    on_chunk=on_chunk,
                    chunk_size=self.chunk_size,
                )
                if self.verify_size and written != size_bytes:
                    raise TransferError(
                        target.remote_address,
                        f"size mismatch: listed {size_bytes} bytes, received {written}",
                    )
            except TransferError as exc:
                cause = exc.cause if isinstance(exc.cause, BaseException) else exc
                if attempts.fail(cause) is AttemptState.FAILED:
                    raise MirrorError(target.remote_address, cause, attempts.failures) from exc
                stats.retries += 1
                self._emit(
                    LogEvent(
                        LogLevel.WARNING,
                        f"Transfer of {target.remote_address} failed "
                        f"(attempt {attempts.failures}/{self.retry_policy.max_attempts}): {cause}; retrying",
                    )
                )
                # the aborted attempt's bytes were never committed
                self._emit(progress.overall_event(progress.snapshot(), target.remote_address))
                if self.retry_policy.delay_seconds:
                    time.sleep(self.retry_policy.delay_seconds)
                continue

            progress.commit(written)
            attempts.succeed()
            if attempts.recovered:
                self._emit(
                    LogEvent(
                        LogLevel.INFO,
                        f"Retry succeeded for {target.remote_address} "
                        f"after {attempts.failures} failed attempt(s)",
                    )
                )
            if written == 0:
                self._emit(progress.overall_event(progress.snapshot(), target.remote_address))
                self._emit(
                    ProgressEvent(
                        scope=ProgressScope.FILE,
                        bytes_done=0,
                        bytes_total=size_bytes,
                        percent=percent_of(0, size_bytes),
                        address=target.remote_address,
                    )
                )
            return written
