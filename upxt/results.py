from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class RawExecutionResult:
    """Decoded output of one UPX run, consumed once by the executor."""
    stdout: str
    stderr: str
    success: bool


@dataclass(frozen=True)
class JobSuccess:
    """
    Output of a job that UPX finished with exit status 0.

    Keeping it immutable (frozen=True) makes it easier to reason about.
    """
    output_path: str
    original_size: int
    output_size: int
    ratio_percent: int
    filtered_log: Tuple[str, ...] = ()

    ok = True

    @property
    def saved_bytes(self) -> int:
        return max(0, self.original_size - self.output_size)

    def render(self) -> str:
        text = (
            "Operation succeeded!\n"
            f"Output: {self.output_path}\n"
            f"Original size: {format_bytes(self.original_size)}\n"
            f"Processed size: {format_bytes(self.output_size)}\n"
            f"Ratio: {self.ratio_percent}%"
        )
        if self.filtered_log:
            text += "\n\nUPX output:\n" + "\n".join(self.filtered_log)
        return text


@dataclass(frozen=True)
class JobFailure:
    diagnosis: str

    ok = False

    def render(self) -> str:
        return self.diagnosis


JobReport = Union[JobSuccess, JobFailure]


def ratio_percent(original_size: int, output_size: int) -> int:
    if original_size <= 0:
        return 100
    # Half up: 12.5 -> 13.
    return (output_size * 200 + original_size) // (2 * original_size)


def format_bytes(n: int) -> str:
    kb = 1024
    mb = kb * 1024
    gb = mb * 1024

    if n >= gb:
        return f"{n / gb:.2f} GB"
    if n >= mb:
        return f"{n / mb:.2f} MB"
    if n >= kb:
        return f"{n / kb:.2f} KB"
    return f"{n} bytes"
