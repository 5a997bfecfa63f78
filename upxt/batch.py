from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence
import threading

from .engine import process_job
from .errors import ScanError
from .results import JobFailure, JobReport, JobSuccess
from .settings import AppConfig, JobSpec, Mode


logger = logging.getLogger(__name__)

SUPPORTED_EXTS = {".exe", ".dll"}

# app.exe -> app_packed.exe when not overwriting
OUTPUT_SUFFIX = {
    "compress": "_packed",
    "decompress": "_unpacked",
}


@dataclass(frozen=True)
class BatchSummary:
    total: int
    succeeded: int
    failed: int
    total_original_bytes: int
    total_output_bytes: int

    @property
    def saved_bytes(self) -> int:
        return max(0, self.total_original_bytes - self.total_output_bytes)

    @property
    def saved_percent(self) -> float:
        if self.total_original_bytes <= 0:
            return 0.0
        return (self.saved_bytes / self.total_original_bytes) * 100.0


def scan_folder(folder: Path, include_subfolders: bool = False) -> List[Path]:
    """
    List .exe/.dll files under `folder`, sorted.

    Only the top level is read unless include_subfolders is set.
    """
    folder = Path(folder)

    if not folder.exists():
        raise ScanError(f"Path does not exist: {folder}")
    if not folder.is_dir():
        raise ScanError(f"Not a folder: {folder}")

    pattern = "**/*" if include_subfolders else "*"
    found = [
        f for f in folder.glob(pattern)
        if f.is_file() and f.suffix.lower() in SUPPORTED_EXTS
    ]
    found.sort()
    logger.debug("Scanned %s: %d candidate(s)", folder, len(found))
    return found


def make_jobs(
    files: Sequence[Path],
    mode: Mode,
    config: AppConfig,
    output_dir: Optional[Path] = None,
) -> List[JobSpec]:
    """Build one JobSpec per file from the saved defaults."""
    jobs: List[JobSpec] = []
    for f in files:
        src = str(f)
        if config.overwrite and output_dir is None:
            out = src
        else:
            out = str(_build_output_path(Path(f), mode, output_dir))

        jobs.append(
            JobSpec(
                mode=mode,
                input_path=src,
                output_path=out,
                compression_level=config.compression_level,
                backup=config.backup,
                ultra_brute=config.ultra_brute,
                force=config.force_compress,
            )
        )
    return jobs


def _build_output_path(src: Path, mode: Mode, output_dir: Optional[Path]) -> Path:
    name = f"{src.stem}{OUTPUT_SUFFIX[mode]}{src.suffix}"
    parent = output_dir if output_dir is not None else src.parent
    return parent / name


def default_concurrency() -> int:
    """Two jobs per core, at least 2 and at most 16."""
    return max(2, min((os.cpu_count() or 4) * 2, 16))


def _run_one(spec: JobSpec, tool_path: Optional[Path]) -> JobReport:
    if not spec.in_place:
        try:
            Path(spec.output_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create output folder for %s: %s", spec.output_path, e)
            return JobFailure(f"Cannot create output folder: {e}")
    return process_job(spec, tool_path)


def process_batch(
    jobs: Sequence[JobSpec],
    tool_path: Optional[Path] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> tuple[List[JobReport], BatchSummary]:
    results: List[JobReport] = []
    total = len(jobs)

    for idx, spec in enumerate(jobs, start=1):
        if cancel_event and cancel_event.is_set():
            break

        if progress_callback:
            progress_callback(idx, total)

        results.append(_run_one(spec, tool_path))

    return results, summarize(results)


async def run_jobs_async(
    jobs: Sequence[JobSpec],
    tool_path: Optional[Path] = None,
    limit: Optional[int] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> List[JobReport]:
    """
    Run jobs on worker threads, at most `limit` at a time.

    Results come back in job order. progress_callback(done, total) fires as
    each job finishes.
    """
    if limit is None:
        limit = default_concurrency()
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    sem = asyncio.Semaphore(limit)
    total = len(jobs)
    done = 0

    async def run(spec: JobSpec) -> JobReport:
        nonlocal done
        async with sem:
            report = await asyncio.to_thread(_run_one, spec, tool_path)
        done += 1
        if progress_callback:
            progress_callback(done, total)
        return report

    return list(await asyncio.gather(*(run(spec) for spec in jobs)))


def summarize(results: Sequence[JobReport]) -> BatchSummary:
    succeeded = [r for r in results if isinstance(r, JobSuccess)]
    return BatchSummary(
        total=len(results),
        succeeded=len(succeeded),
        failed=len(results) - len(succeeded),
        total_original_bytes=sum(r.original_size for r in succeeded),
        total_output_bytes=sum(r.output_size for r in succeeded),
    )
