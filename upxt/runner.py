from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Sequence

from .classify import diagnose, filter_output_lines
from .errors import LaunchError, PreconditionError
from .results import JobFailure, JobReport, JobSuccess, RawExecutionResult, ratio_percent


logger = logging.getLogger(__name__)

# UPX prints in the console code page of the machine it runs on; the
# builds we ship are decoded as GBK whatever the host locale is.
OUTPUT_ENCODING = "gbk"

# CREATE_NO_WINDOW flag prevents console window from appearing
CREATE_NO_WINDOW = 0x08000000


def _popen_kwargs() -> dict:
    if os.name == "nt":
        return {"creationflags": CREATE_NO_WINDOW}
    return {}


def _decode(data: bytes) -> str:
    return data.decode(OUTPUT_ENCODING, errors="replace")


def run_upx(tool_path: Path, args: Sequence[str]) -> RawExecutionResult:
    cmd: List[str] = [str(tool_path), *args]
    logger.debug("Running %s", cmd)

    try:
        p = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            check=False,
            **_popen_kwargs(),
        )
    except OSError as e:
        raise LaunchError(f"Failed to run UPX: {e}") from e

    logger.debug("UPX exited with %s", p.returncode)
    return RawExecutionResult(
        stdout=_decode(p.stdout or b""),
        stderr=_decode(p.stderr or b""),
        success=p.returncode == 0,
    )


def check_invocable(tool_path: Path) -> None:
    """A no-op `--version` call must at least start."""
    try:
        run_upx(tool_path, ["--version"])
    except LaunchError as e:
        raise PreconditionError("UPX tool cannot be executed!") from e


def upx_version(tool_path: Path) -> str:
    """First line of `upx --version`, e.g. 'upx 4.2.4'."""
    raw = run_upx(tool_path, ["--version"])
    for line in raw.stdout.splitlines():
        return line
    raise PreconditionError("Could not read the UPX version.")


def execute(
    tool_path: Path,
    args: Sequence[str],
    output_path: str,
    original_size: int,
) -> JobReport:
    """
    Run UPX once and turn the outcome into a report.

    LaunchError propagates: a process that never started has no output to
    classify.
    """
    raw = run_upx(tool_path, args)

    if not raw.success:
        return JobFailure(diagnose(raw.stdout, raw.stderr))

    output_size = _file_size(Path(output_path))
    return JobSuccess(
        output_path=output_path,
        original_size=original_size,
        output_size=output_size,
        ratio_percent=ratio_percent(original_size, output_size),
        filtered_log=tuple(filter_output_lines(raw.stdout + raw.stderr)),
    )


def _file_size(p: Path) -> int:
    try:
        return p.stat().st_size
    except OSError:
        return 0
