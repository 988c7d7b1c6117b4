from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from bundlemirror.config import get_job, load_config, resolve_target_for_directory
from bundlemirror.run_service import (
    EXIT_INVALID_CONFIG,
    EXIT_PARTIAL_FAILURES,
    EXIT_RUNTIME_OR_CONFIG_ERROR,
    EXIT_SUCCESS,
    run_bundle_jobs,
    select_directories,
)


LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundle-mirror",
        description="Mirror remote FTP directory trees into a local offline bundle",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Estimate and mirror the configured directories")
    run_parser.add_argument("--config", required=True, type=Path)
    run_parser.add_argument("--job", help="Run only one job by name")
    run_parser.add_argument(
        "--directory",
        help="Run only one configured directory (full remote path or unique folder name)",
    )
    run_parser.add_argument("--dry-run", action="store_true", help="Only estimate the transfer size")
    run_parser.add_argument("--log-file", type=Path, default=None)
    run_parser.add_argument("--verbose", action="store_true", help="Log per-file progress")

    validate_parser = subparsers.add_parser("validate-config", help="Validate config")
    validate_parser.add_argument("--config", required=True, type=Path)

    list_parser = subparsers.add_parser("list", help="List jobs and directory target mappings")
    list_parser.add_argument("--config", required=True, type=Path)
    list_parser.add_argument("--job", help="List only one job by name")
    list_parser.add_argument(
        "--directory",
        help="List only one configured directory (full remote path or unique folder name)",
    )

    return parser


def configure_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger("bundlemirror")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def cmd_validate(config_path: Path) -> int:
    try:
        config = load_config(config_path)
    except Exception as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    print(f"Valid config: {config_path} ({len(config.jobs)} job(s))")
    for job in config.jobs:
        print(
            f"  - job={job.name} "
            f"host={job.host}:{job.port} "
            f"directories={len(job.directories)} "
            f"fallbackTarget={job.fallback_target} "
            f"maxAttempts={job.max_attempts}"
        )
    return EXIT_SUCCESS


def cmd_list(config_path: Path, job_name: str | None, directory_filter: str | None) -> int:
    try:
        config = load_config(config_path)
        jobs = get_job(config, job_name)
    except Exception as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    partial_failures = False

    for job in jobs:
        selected, error_message = select_directories(job, directory_filter)
        if error_message:
            print(error_message, file=sys.stderr)
            partial_failures = True
            continue

        print(f"job: {job.name} (ftp://{job.host}:{job.port})")
        for directory in selected:
            resolved_target = resolve_target_for_directory(job, directory)
            marker = "explicit" if directory.target else "fallback"
            print(f"  - {directory.remote} -> {resolved_target} ({marker})")
    return EXIT_PARTIAL_FAILURES if partial_failures else EXIT_SUCCESS


def cmd_run(
    config_path: Path,
    job_name: str | None,
    directory_filter: str | None,
    dry_run: bool,
    log_file: Path | None,
    verbose: bool,
) -> int:
    logger = configure_logging(log_file=log_file, verbose=verbose)
    exit_code, summary = run_bundle_jobs(
        config_path=config_path,
        job_name=job_name,
        directory_filter=directory_filter,
        dry_run=dry_run,
        logger=logger.getChild("run"),
    )
    if dry_run:
        print(f"Estimated {summary.estimated_bytes} bytes")
    elif exit_code != EXIT_INVALID_CONFIG:
        print(
            f"Mirrored {summary.files} file(s) in {summary.directories} directory(ies): "
            f"{summary.transferred_bytes} of {summary.estimated_bytes} bytes, "
            f"retries={summary.retries}"
        )
    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "validate-config":
        return cmd_validate(args.config)
    if args.command == "list":
        return cmd_list(
            config_path=args.config,
            job_name=args.job,
            directory_filter=args.directory,
        )
    if args.command == "run":
        return cmd_run(
            config_path=args.config,
            job_name=args.job,
            directory_filter=args.directory,
            dry_run=args.dry_run,
            log_file=args.log_file,
            verbose=args.verbose,
        )

    parser.print_help()
    return EXIT_RUNTIME_OR_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
