from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable

import pathspec

from bundlemirror.config import DirectoryConfig, JobConfig


class IgnoreEngine:
    """Gitignore-style excludes matched against paths relative to a mirrored root."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self._patterns = [pattern for pattern in patterns if pattern.strip()]
        self._spec = pathspec.PathSpec.from_lines("gitwildmatch", self._patterns)

    def is_ignored(self, relative_path: PurePosixPath, is_dir: bool = False) -> bool:
        if not self._patterns:
            return False
        candidate = relative_path.as_posix()
        if is_dir and not candidate.endswith("/"):
            candidate = f"{candidate}/"
        return self._spec.match_file(candidate)


def build_ignore_engine(job: JobConfig, directory: DirectoryConfig) -> IgnoreEngine:
    patterns: list[str] = []
    patterns.extend(job.additional_excludes)
    patterns.extend(directory.additional_excludes)
    return IgnoreEngine(patterns)
