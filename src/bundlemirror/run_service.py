from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
import logging
from typing import Callable

from bundlemirror.config import DirectoryConfig, JobConfig, get_job, load_config, resolve_target_for_directory
from bundlemirror.errors import BundleMirrorError
from bundlemirror.ftp_session import FtpSession
from bundlemirror.ignore_engine import build_ignore_engine
from bundlemirror.mirror_engine import MirrorEngine, RemoteSession
from bundlemirror.models import MirrorStats
from bundlemirror.progress import EventSink, LoggingReporter, ProgressState
from bundlemirror.retry import RetryPolicy


EXIT_SUCCESS = 0
EXIT_RUNTIME_OR_CONFIG_ERROR = 1
EXIT_PARTIAL_FAILURES = 2
EXIT_INVALID_CONFIG = 3

SessionFactory = Callable[[JobConfig], RemoteSession]


@dataclass(slots=True)
class RunSummary:
    estimated_bytes: int = 0
    transferred_bytes: int = 0
    files: int = 0
    directories: int = 0
    retries: int = 0
    processed_directories: int = 0
    partial_failures: bool = False

    def absorb(self, stats: MirrorStats) -> None:
        self.transferred_bytes += stats.bytes_transferred
        self.files += stats.files
        self.directories += stats.directories
        self.retries += stats.retries
        self.processed_directories += 1


def select_directories(
    job: JobConfig,
    directory_filter: str | None,
) -> tuple[list[DirectoryConfig], str | None]:
    if not directory_filter:
        return job.directories, None

    exact = [directory for directory in job.directories if directory.remote == directory_filter]
    if exact:
        return exact, None

    by_name = [
        directory
        for directory in job.directories
        if PurePosixPath(directory.remote).name == directory_filter
    ]
    if len(by_name) > 1:
        return [], f"[{job.name}] directory filter '{directory_filter}' is ambiguous; use full remote path"
    if len(by_name) == 1:
        return by_name, None

    return [], f"[{job.name}] no directory matched filter '{directory_filter}'"


def _default_session_factory(job: JobConfig) -> RemoteSession:
    return FtpSession.from_job(job)


def _build_engine(
    job: JobConfig,
    directory: DirectoryConfig,
    session: RemoteSession,
    on_event: EventSink,
) -> MirrorEngine:
    return MirrorEngine(
        session,
        retry_policy=RetryPolicy(max_attempts=job.max_attempts, delay_seconds=job.retry_delay_seconds),
        chunk_size=job.chunk_size,
        ignore=build_ignore_engine(job, directory),
        on_event=on_event,
    )


def _run_job(
    job: JobConfig,
    directories: list[DirectoryConfig],
    session: RemoteSession,
    dry_run: bool,
    summary: RunSummary,
    log: logging.Logger,
    on_event: EventSink,
) -> None:
    engines = [(directory, _build_engine(job, directory, session, on_event)) for directory in directories]

    grand_total = 0
    for directory, engine in engines:
        size = engine.estimate_size(directory.remote)
        log.info("[%s] %s: %s bytes", job.name, directory.remote, size)
        grand_total += size
    summary.estimated_bytes += grand_total
    log.info("[%s] estimated total: %s bytes in %s directory(ies)", job.name, grand_total, len(engines))

    if dry_run:
        return

    targets = [resolve_target_for_directory(job, directory) for directory, _ in engines]
    if not job.create_target_dirs_if_missing:
        for target in targets:
            if not target.parent.is_dir():
                raise ValueError(f"Target location does not exist: {target.parent}")

    progress = ProgressState(total_bytes_estimated=grand_total)
    for (directory, engine), target in zip(engines, targets):
        stats = engine.mirror(
            directory.remote,
            target,
            progress,
            create_parents=job.create_target_dirs_if_missing,
        )
        summary.absorb(stats)
        log.info(
            "[%s] %s -> %s | files=%s directories=%s bytes=%s retries=%s",
            job.name,
            directory.remote,
            target,
            stats.files,
            stats.directories,
            stats.bytes_transferred,
            stats.retries,
        )

    log.info(
        "[%s] mirrored %s of %s estimated bytes",
        job.name,
        progress.total_bytes_transferred,
        progress.total_bytes_estimated,
    )


def run_bundle_jobs(
    config_path: Path,
    job_name: str | None = None,
    directory_filter: str | None = None,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
    session_factory: SessionFactory | None = None,
    on_event: EventSink | None = None,
) -> tuple[int, RunSummary]:
    log = logger or logging.getLogger("bundlemirror.run")
    open_session = session_factory or _default_session_factory

    try:
        config = load_config(config_path)
        jobs = get_job(config, job_name)
    except Exception as exc:
        log.error("Config error: %s", exc)
        return EXIT_INVALID_CONFIG, RunSummary(partial_failures=True)

    summary = RunSummary()
    reporter = on_event or LoggingReporter(log.getChild("progress"))

    for job in jobs:
        selected, error_message = select_directories(job, directory_filter)
        if error_message:
            log.error("%s", error_message)
            summary.partial_failures = True
            continue

        session = open_session(job)
        try:
            _run_job(job, selected, session, dry_run, summary, log, reporter)
        except (BundleMirrorError, ValueError, OSError) as exc:
            summary.partial_failures = True
            log.error("[%s] mirror aborted: %s", job.name, exc)
            return EXIT_RUNTIME_OR_CONFIG_ERROR, summary
        finally:
            close = getattr(session, "close", None)
            if close is not None:
                close()

    exit_code = EXIT_PARTIAL_FAILURES if summary.partial_failures else EXIT_SUCCESS
    return exit_code, summary
