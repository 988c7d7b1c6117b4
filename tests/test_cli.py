from pathlib import Path

import pytest

from bundlemirror import run_service
from bundlemirror.cli import EXIT_INVALID_CONFIG, EXIT_PARTIAL_FAILURES, EXIT_SUCCESS, main


def _write_config(tmp_path: Path) -> Path:
    config_file = tmp_path / "bundle.yaml"
    config_file.write_text(
        f"""
jobs:
  - name: j
    host: ftp.example.com
    fallbackTarget: {(tmp_path / 'bundle').as_posix()}
    directories:
      - remote: /builds/supernova
      - remote: /builds/common
        target: {(tmp_path / 'shared').as_posix()}
""".strip(),
        encoding="utf-8",
    )
    return config_file


def test_validate_config_prints_job_summary(tmp_path: Path, capsys) -> None:
    exit_code = main(["validate-config", "--config", str(_write_config(tmp_path))])

    output = capsys.readouterr().out
    assert exit_code == EXIT_SUCCESS
    assert "job=j" in output
    assert "host=ftp.example.com:21" in output
    assert "directories=2" in output
    assert "maxAttempts=3" in output


def test_validate_config_reports_invalid_file(tmp_path: Path, capsys) -> None:
    config_file = tmp_path / "bundle.toml"
    config_file.write_text("", encoding="utf-8")

    exit_code = main(["validate-config", "--config", str(config_file)])

    assert exit_code == EXIT_INVALID_CONFIG
    assert "Invalid config" in capsys.readouterr().err


def test_list_shows_fallback_and_explicit_targets(tmp_path: Path, capsys) -> None:
    exit_code = main(["list", "--config", str(_write_config(tmp_path))])

    output = capsys.readouterr().out
    assert exit_code == EXIT_SUCCESS
    assert f"/builds/supernova -> {tmp_path / 'bundle' / 'supernova'} (fallback)" in output
    assert f"/builds/common -> {tmp_path / 'shared'} (explicit)" in output


def test_list_directory_filter_missing_returns_partial_failure(tmp_path: Path, capsys) -> None:
    exit_code = main(["list", "--config", str(_write_config(tmp_path)), "--directory", "work"])

    err = capsys.readouterr().err
    assert exit_code == EXIT_PARTIAL_FAILURES
    assert "no directory matched filter 'work'" in err


def test_run_dry_run_prints_estimate(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch, fake_remote
) -> None:
    remote = fake_remote(
        {"builds": {"supernova": {"a.txt": b"a" * 10}, "common": {"c.txt": b"c" * 5}}}
    )
    monkeypatch.setattr(run_service, "_default_session_factory", lambda job: remote)

    exit_code = main(["run", "--config", str(_write_config(tmp_path)), "--dry-run"])

    assert exit_code == EXIT_SUCCESS
    assert "Estimated 15 bytes" in capsys.readouterr().out
    assert remote.opened == []


def test_run_writes_log_file(
    tmp_path: Path, capsys, monkeypatch: pytest.MonkeyPatch, fake_remote
) -> None:
    remote = fake_remote({"builds": {"supernova": {"a.txt": b"a" * 10}, "common": {}}})
    monkeypatch.setattr(run_service, "_default_session_factory", lambda job: remote)
    log_file = tmp_path / "logs" / "mirror.log"

    exit_code = main(["run", "--config", str(_write_config(tmp_path)), "--log-file", str(log_file)])

    assert exit_code == EXIT_SUCCESS
    assert "Mirrored 1 file(s)" in capsys.readouterr().out
    assert (tmp_path / "bundle" / "supernova" / "a.txt").exists()
    assert "estimated total: 10 bytes" in log_file.read_text(encoding="utf-8")
