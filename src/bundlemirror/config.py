from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import json
import yaml


DEFAULT_CHUNK_SIZE = 1024 * 1024
DEFAULT_MAX_ATTEMPTS = 3


@dataclass(slots=True)
class DirectoryConfig:
    remote: str
    target: Path | None = None
    additional_excludes: list[str] = field(default_factory=list)


@dataclass(slots=True)
class JobConfig:
    name: str
    host: str
    fallback_target: Path
    directories: list[DirectoryConfig]
    port: int = 21
    user: str = "anonymous"
    password: str = ""
    timeout: float | None = 60.0
    passive: bool = True
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_seconds: float = 0.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    create_target_dirs_if_missing: bool = True
    additional_excludes: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AppConfig:
    jobs: list[JobConfig]


def _as_path(value: Any, field_name: str) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string path")
    return Path(value).expanduser()


def _as_remote_path(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty remote path")
    return str(PurePosixPath("/" + value.strip().lstrip("/")))


def _as_str(value: Any, field_name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ValueError(f"{field_name} must be a boolean")


def _as_int(value: Any, field_name: str, default: int, minimum: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")
    return value


def _as_seconds(value: Any, field_name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number of seconds")
    if value < 0:
        raise ValueError(f"{field_name} must not be negative")
    return float(value)


def _as_list_of_strings(value: Any, field_name: str, default: list[str] | None = None) -> list[str]:
    if value is None:
        return list(default or [])
    if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
        raise ValueError(f"{field_name} must be a list of strings")
    return [item for item in value if item.strip()]


def _load_raw_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ValueError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    if suffix in {".yml", ".yaml"}:
        loaded = yaml.safe_load(text)
    elif suffix == ".json":
        loaded = json.loads(text)
    else:
        raise ValueError("Config file must be .yaml/.yml or .json")

    if not isinstance(loaded, dict):
        raise ValueError("Config root must be an object")
    return loaded


def _load_directories(raw_directories: Any, prefix: str) -> list[DirectoryConfig]:
    if not isinstance(raw_directories, list) or not raw_directories:
        raise ValueError(f"{prefix}.directories must be a non-empty list")

    directories: list[DirectoryConfig] = []
    for index, raw_directory in enumerate(raw_directories):
        field_prefix = f"{prefix}.directories[{index}]"
        # a bare string is shorthand for {remote: ...}
        if isinstance(raw_directory, str):
            raw_directory = {"remote": raw_directory}
        if not isinstance(raw_directory, dict):
            raise ValueError(f"{field_prefix} must be an object or a remote path")

        raw_target = raw_directory.get("target")
        directories.append(
            DirectoryConfig(
                remote=_as_remote_path(raw_directory.get("remote"), f"{field_prefix}.remote"),
                target=_as_path(raw_target, f"{field_prefix}.target") if raw_target else None,
                additional_excludes=_as_list_of_strings(
                    raw_directory.get("additionalExcludes"),
                    f"{field_prefix}.additionalExcludes",
                ),
            )
        )
    return directories


def load_config(config_path: Path) -> AppConfig:
    raw = _load_raw_config(config_path)
    raw_jobs = raw.get("jobs")
    if not isinstance(raw_jobs, list) or not raw_jobs:
        raise ValueError("Config must contain non-empty 'jobs' list")

    jobs: list[JobConfig] = []
    names: set[str] = set()

    for index, raw_job in enumerate(raw_jobs):
        prefix = f"jobs[{index}]"
        if not isinstance(raw_job, dict):
            raise ValueError(f"{prefix} must be an object")

        name = raw_job.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"{prefix}.name must be a non-empty string")
        if name in names:
            raise ValueError(f"Duplicate job name: {name}")
        names.add(name)

        host = raw_job.get("host")
        if not isinstance(host, str) or not host.strip():
            raise ValueError(f"{prefix}.host must be a non-empty string")

        timeout = _as_seconds(raw_job.get("timeout"), f"{prefix}.timeout", default=60.0)

        jobs.append(
            JobConfig(
                name=name,
                host=host.strip(),
                fallback_target=_as_path(raw_job.get("fallbackTarget"), f"{prefix}.fallbackTarget"),
                directories=_load_directories(raw_job.get("directories"), prefix),
                port=_as_int(raw_job.get("port"), f"{prefix}.port", default=21, minimum=1),
                user=_as_str(raw_job.get("user"), f"{prefix}.user", default="anonymous"),
                password=_as_str(raw_job.get("password"), f"{prefix}.password", default=""),
                timeout=timeout or None,
                passive=_as_bool(raw_job.get("passive"), f"{prefix}.passive", default=True),
                max_attempts=_as_int(
                    raw_job.get("maxAttempts"),
                    f"{prefix}.maxAttempts",
                    default=DEFAULT_MAX_ATTEMPTS,
                    minimum=1,
                ),
                retry_delay_seconds=_as_seconds(
                    raw_job.get("retryDelaySeconds"), f"{prefix}.retryDelaySeconds", default=0.0
                ),
                chunk_size=_as_int(
                    raw_job.get("chunkSize"),
                    f"{prefix}.chunkSize",
                    default=DEFAULT_CHUNK_SIZE,
                    minimum=1,
                ),
                create_target_dirs_if_missing=_as_bool(
                    raw_job.get("createTargetDirsIfMissing"),
                    f"{prefix}.createTargetDirsIfMissing",
                    default=True,
                ),
                additional_excludes=_as_list_of_strings(
                    raw_job.get("additionalExcludes"), f"{prefix}.additionalExcludes"
                ),
            )
        )

    return AppConfig(jobs=jobs)


def resolve_target_for_directory(job: JobConfig, directory: DirectoryConfig) -> Path:
    if directory.target is not None:
        return directory.target
    leaf = PurePosixPath(directory.remote).name
    if not leaf:
        raise ValueError(f"Cannot infer directory name for fallback target: {directory.remote}")
    return job.fallback_target / leaf


def get_job(config: AppConfig, job_name: str | None) -> list[JobConfig]:
    if not job_name:
        return config.jobs
    matched = [job for job in config.jobs if job.name == job_name]
    if not matched:
        raise ValueError(f"No job named '{job_name}' found")
    return matched
