from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from .batch import BatchSummary
from .results import JobReport, JobSuccess
from .settings import JobSpec


@dataclass(frozen=True)
class FileReport:
    input_path: str
    output_path: Optional[str]
    ok: bool
    original_size: Optional[int]
    output_size: Optional[int]
    ratio_percent: Optional[int]
    message: str


@dataclass(frozen=True)
class BatchReport:
    created_utc: str
    summary: dict
    files: List[FileReport]


def build_report(
    jobs: Sequence[JobSpec],
    results: Sequence[JobReport],
    summary: BatchSummary,
) -> BatchReport:
    created_utc = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")

    files: List[FileReport] = []
    # A cancelled batch has fewer results than jobs; zip stops at the shorter.
    for spec, r in zip(jobs, results):
        if isinstance(r, JobSuccess):
            files.append(
                FileReport(
                    input_path=spec.input_path,
                    output_path=r.output_path,
                    ok=True,
                    original_size=r.original_size,
                    output_size=r.output_size,
                    ratio_percent=r.ratio_percent,
                    message="\n".join(r.filtered_log),
                )
            )
        else:
            files.append(
                FileReport(
                    input_path=spec.input_path,
                    output_path=None,
                    ok=False,
                    original_size=None,
                    output_size=None,
                    ratio_percent=None,
                    message=r.render(),
                )
            )

    summary_dict = {
        "total": summary.total,
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "total_original_bytes": summary.total_original_bytes,
        "total_output_bytes": summary.total_output_bytes,
        "saved_bytes": summary.saved_bytes,
        "saved_percent": round(summary.saved_percent, 2),
    }

    return BatchReport(created_utc=created_utc, summary=summary_dict, files=files)


def save_report_json(report: BatchReport, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(asdict(report), f, indent=2, ensure_ascii=False)
