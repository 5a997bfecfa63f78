from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Optional

from .args import build_args
from .errors import PreconditionError, UpxToolsError
from .locator import require_upx_path
from .results import JobFailure, JobReport
from .runner import check_invocable, execute
from .settings import JobSpec


logger = logging.getLogger(__name__)


def process_job(spec: JobSpec, tool_path: Optional[Path] = None) -> JobReport:
    """
    Run one compress/decompress job end to end.

    Never raises for job-level problems: every upxt error becomes a
    JobFailure carrying its message.
    """
    try:
        report = _process_job(spec, tool_path)
    except UpxToolsError as e:
        logger.info("Job for %s failed: %s", spec.input_path, e.message.splitlines()[0])
        return JobFailure(e.message)

    if report.ok:
        logger.info("Job for %s done", spec.input_path)
    else:
        logger.info("UPX rejected %s", spec.input_path)
    return report


async def process_job_async(spec: JobSpec, tool_path: Optional[Path] = None) -> JobReport:
    return await asyncio.to_thread(process_job, spec, tool_path)


def _process_job(spec: JobSpec, tool_path: Optional[Path]) -> JobReport:
    upx = require_upx_path(tool_path)

    _validate_tool_and_input(upx, spec.input_path)

    in_place = spec.in_place
    if in_place:
        _validate_writable(spec.input_path)

    if spec.backup:
        create_backup(spec.input_path)

    original_size = _file_size(Path(spec.input_path))

    args = build_args(spec, in_place)
    return execute(upx, args, spec.output_path, original_size)


def _validate_tool_and_input(upx: Path, input_path: str) -> None:
    check_invocable(upx)

    if not Path(input_path).exists():
        raise PreconditionError(f"Input file does not exist: {input_path}")


def _validate_writable(path: str) -> None:
    try:
        mode = os.stat(path).st_mode
    except OSError as e:
        raise PreconditionError(f"Cannot read file attributes: {e}") from e

    if not mode & stat.S_IWRITE:
        raise PreconditionError("File is read-only, change its attributes first.")


def create_backup(path: str) -> Path:
    backup_path = Path(f"{path}.bak")
    try:
        shutil.copy2(path, backup_path)
    except OSError as e:
        raise PreconditionError(f"Failed to back up file: {e}") from e
    logger.debug("Backed up %s to %s", path, backup_path)
    return backup_path


def _file_size(p: Path) -> int:
    try:
        return p.stat().st_size
    except OSError:
        return 0
