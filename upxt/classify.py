from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple


# Banner, copyright and table-header lines UPX prints on every run.
IGNORED_PREFIXES: Tuple[str, ...] = (
    "---",
    "File size",
    "Ratio",
    "Format",
    "Name",
    "Ultimate Packer",
    "Copyright",
    "UPX ",
)


@dataclass(frozen=True)
class ErrorRule:
    markers: Tuple[str, ...]
    message: str

    def matches(self, text: str) -> bool:
        return any(m in text for m in self.markers)


# Checked top to bottom; the first rule with any marker in the text wins.
ERROR_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule(
        ("AlreadyPackedException", "already packed"),
        "[Error] The file is already packed with UPX\n\n"
        "Solutions:\n"
        "  - To recompress it, unpack it first with Decompress\n"
        "  - Or pick a file that is not packed",
    ),
    ErrorRule(
        ("NotPackedException", "not packed"),
        "[Error] The file is not packed with UPX and cannot be unpacked\n\n"
        "Solutions:\n"
        "  - Check that the file was packed with UPX\n"
        "  - Or use Compress instead",
    ),
    ErrorRule(
        ("CantPackException",),
        "[Error] This file cannot be compressed\n\n"
        "Possible causes:\n"
        "  - The file format is not supported\n"
        "  - The file is damaged\n"
        "  - The file is protected (try enabling Force)",
    ),
    ErrorRule(
        ("OverlayException",),
        "[Error] The file contains overlay data\n\n"
        "Solutions:\n"
        "  - Some files carry extra data appended after the image\n"
        "  - Try enabling Force\n"
        "  - Or strip the overlay with another tool",
    ),
    ErrorRule(
        ("IOException", "can't open"),
        "[Error] The file could not be accessed\n\n"
        "Possible causes:\n"
        "  - The file is in use by another program\n"
        "  - Insufficient permissions\n"
        "  - The path contains special characters",
    ),
    ErrorRule(
        ("NotCompressibleException",),
        "[Error] The file is not compressible\n\n"
        "Possible causes:\n"
        "  - The file is already highly compressed\n"
        "  - Compression would make it bigger\n"
        "  - UPX skipped the file",
    ),
)

GENERIC_FAILURE = "[Error] UPX processing failed"


def filter_output_lines(text: str) -> List[str]:
    lines: List[str] = []
    for line in text.splitlines():
        t = line.strip()
        if not t:
            continue
        if t.startswith(IGNORED_PREFIXES):
            continue
        lines.append(t)
    return lines


def diagnose(stdout: str, stderr: str) -> str:
    combined = stdout + stderr

    for rule in ERROR_RULES:
        if rule.matches(combined):
            return rule.message

    lines = filter_output_lines(combined)
    if not lines:
        return f"{GENERIC_FAILURE}\n\nCheck that the file is intact, or try other options."
    return f"{GENERIC_FAILURE}\n\nError output:\n" + "\n".join(lines)
