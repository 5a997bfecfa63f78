from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union


APP_VERSION = "1.4.0"

# "compress" packs the executable, "decompress" restores it.
Mode = Literal["compress", "decompress"]

# 0-9 or the literal "best".
CompressionLevel = Union[int, Literal["best"]]

MODES = ("compress", "decompress")


def parse_level(value: object) -> CompressionLevel:
    """
    Normalize a compression level coming from the CLI or a config file.

    Accepts ints 0-9, their string forms and "best" (any case).
    """
    if isinstance(value, str):
        t = value.strip().lower()
        if t == "best":
            return "best"
        if not t.isdigit():
            raise ValueError(f"Invalid compression level: {value!r}")
        value = int(t)

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Invalid compression level: {value!r}")
    if not 0 <= value <= 9:
        raise ValueError("Compression level must be between 0 and 9 (or 'best').")
    return value


@dataclass(frozen=True)
class JobSpec:
    """
    One compress/decompress request.

    Pure data, like the rest of the settings layer. Whether the job runs in
    place is decided only by `output_path == input_path`.
    """

    mode: Mode
    input_path: str
    output_path: str
    compression_level: CompressionLevel = 9
    backup: bool = False
    ultra_brute: bool = False
    force: bool = False

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode: {self.mode!r}")
        # Validates only; frozen, so keep whatever form the caller passed
        parse_level(self.compression_level)

    @property
    def in_place(self) -> bool:
        return self.input_path == self.output_path


@dataclass(frozen=True)
class AppConfig:
    """
    UI-facing defaults, persisted as one JSON document.

    Saved wholesale, never patched field by field.
    """

    compression_level: int = 9
    overwrite: bool = True
    backup: bool = False
    ultra_brute: bool = False
    include_subfolders: bool = False
    force_compress: bool = False
