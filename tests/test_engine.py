from __future__ import annotations

import asyncio
import os
import stat
from pathlib import Path

import pytest

from upxt import engine
from upxt.engine import process_job, process_job_async
from upxt.errors import ToolNotFoundError
from upxt.results import JobFailure, JobSuccess
from upxt.settings import JobSpec


@pytest.fixture
def exe(tmp_path: Path) -> Path:
    p = tmp_path / "app.exe"
    p.write_bytes(b"M" * 1000)
    return p


def test_compress_to_new_file(fake_upx, upx_path: Path, exe: Path, tmp_path: Path) -> None:
    out = tmp_path / "app_packed.exe"
    fake_upx.output_bytes = b"P" * 400

    report = process_job(JobSpec("compress", str(exe), str(out), compression_level="best"), upx_path)

    assert isinstance(report, JobSuccess)
    assert report.ratio_percent == 40
    assert report.original_size == 1000
    assert fake_upx.job_calls == [
        [str(upx_path), "--best", str(exe), "-o", str(out), "--force-overwrite"],
    ]
    # the tool is probed with --version before the real run
    assert fake_upx.calls[0] == [str(upx_path), "--version"]


def test_in_place_with_backup(fake_upx, upx_path: Path, exe: Path) -> None:
    fake_upx.output_bytes = b"P" * 250

    report = process_job(JobSpec("compress", str(exe), str(exe), backup=True), upx_path)

    assert isinstance(report, JobSuccess)
    assert report.ratio_percent == 25
    backup = Path(f"{exe}.bak")
    assert backup.read_bytes() == b"M" * 1000
    assert exe.read_bytes() == b"P" * 250
    assert "-o" not in fake_upx.job_calls[0]


def test_missing_input_is_rejected_before_running(fake_upx, upx_path: Path, tmp_path: Path) -> None:
    missing = tmp_path / "nope.exe"

    report = process_job(JobSpec("compress", str(missing), str(missing)), upx_path)

    assert isinstance(report, JobFailure)
    assert report.diagnosis == f"Input file does not exist: {missing}"
    assert fake_upx.job_calls == []


def test_read_only_input_in_place(fake_upx, upx_path: Path, exe: Path) -> None:
    os.chmod(exe, stat.S_IREAD)
    try:
        report = process_job(JobSpec("compress", str(exe), str(exe)), upx_path)
    finally:
        os.chmod(exe, stat.S_IREAD | stat.S_IWRITE)

    assert isinstance(report, JobFailure)
    assert "read-only" in report.diagnosis
    assert fake_upx.job_calls == []


def test_read_only_input_is_fine_when_writing_elsewhere(fake_upx, upx_path: Path, exe: Path, tmp_path: Path) -> None:
    os.chmod(exe, stat.S_IREAD)
    try:
        report = process_job(JobSpec("compress", str(exe), str(tmp_path / "o.exe")), upx_path)
    finally:
        os.chmod(exe, stat.S_IREAD | stat.S_IWRITE)

    assert isinstance(report, JobSuccess)


def test_backup_failure_aborts_job(fake_upx, upx_path: Path, tmp_path: Path) -> None:
    # A directory passes the existence check but cannot be copied as a file.
    folder = tmp_path / "weird.exe"
    folder.mkdir()

    report = process_job(
        JobSpec("compress", str(folder), str(tmp_path / "out.exe"), backup=True),
        upx_path,
    )

    assert isinstance(report, JobFailure)
    assert report.diagnosis.startswith("Failed to back up file:")
    assert fake_upx.job_calls == []


def test_tool_not_invocable(monkeypatch: pytest.MonkeyPatch, upx_path: Path, exe: Path) -> None:
    def boom(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory")

    monkeypatch.setattr("upxt.runner.subprocess.run", boom)

    report = process_job(JobSpec("compress", str(exe), str(exe)), upx_path)

    assert isinstance(report, JobFailure)
    assert report.diagnosis == "UPX tool cannot be executed!"


def test_launch_error_is_not_classified(fake_upx, upx_path: Path, exe: Path) -> None:
    fake_upx.launch_error = PermissionError(13, "Permission denied")

    report = process_job(JobSpec("decompress", str(exe), str(exe)), upx_path)

    assert isinstance(report, JobFailure)
    assert report.diagnosis.startswith("Failed to run UPX:")
    assert "[Error]" not in report.diagnosis


def test_tool_failure_goes_through_classifier(fake_upx, upx_path: Path, exe: Path) -> None:
    fake_upx.returncode = 2
    fake_upx.stderr = b"upx: app.exe: NotPackedException: not packed by UPX\n"

    report = process_job(JobSpec("decompress", str(exe), str(exe)), upx_path)

    assert isinstance(report, JobFailure)
    assert report.diagnosis.startswith("[Error] The file is not packed")


def test_no_tool_found(monkeypatch: pytest.MonkeyPatch, exe: Path) -> None:
    def not_found(override=None):
        raise ToolNotFoundError("UPX tool not found! Make sure the installation is complete.")

    monkeypatch.setattr(engine, "require_upx_path", not_found)

    report = process_job(JobSpec("compress", str(exe), str(exe)))

    assert isinstance(report, JobFailure)
    assert report.diagnosis.startswith("UPX tool not found!")


def test_async_job(fake_upx, upx_path: Path, exe: Path, tmp_path: Path) -> None:
    fake_upx.output_bytes = b"P" * 500
    spec = JobSpec("compress", str(exe), str(tmp_path / "a_packed.exe"), compression_level=3)

    report = asyncio.run(process_job_async(spec, upx_path))

    assert isinstance(report, JobSuccess)
    assert report.ratio_percent == 50
