from __future__ import annotations

from typing import List

from .settings import JobSpec


def build_args(spec: JobSpec, in_place: bool) -> List[str]:
    if spec.mode == "compress":
        return build_compress_args(spec, in_place)
    if spec.mode == "decompress":
        return build_decompress_args(spec, in_place)
    raise ValueError(f"Unknown mode: {spec.mode!r}")


def build_compress_args(spec: JobSpec, in_place: bool) -> List[str]:
    args: List[str] = []

    # Ultra-brute replaces the level entirely
    if spec.ultra_brute:
        args += ["--ultra-brute", "--no-lzma"]
    elif spec.compression_level == "best":
        args.append("--best")
    else:
        args.append(f"-{spec.compression_level}")

    if spec.force:
        args.append("--force")

    args.append(spec.input_path)
    args += _output_tail(spec, in_place)
    return args


def build_decompress_args(spec: JobSpec, in_place: bool) -> List[str]:
    args = ["-d", spec.input_path]
    if spec.force:
        args.append("--force")
    args += _output_tail(spec, in_place)
    return args


def _output_tail(spec: JobSpec, in_place: bool) -> List[str]:
    # --force-overwrite is always passed: overwrite policy is decided before
    # UPX runs, so its own prompt must never appear.
    tail: List[str] = []
    if not in_place:
        tail += ["-o", spec.output_path]
    tail.append("--force-overwrite")
    return tail
