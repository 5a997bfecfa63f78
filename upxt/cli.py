from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import asdict
from pathlib import Path

from .batch import default_concurrency, make_jobs, process_batch, run_jobs_async, scan_folder, summarize
from .config import config_path, load_config, save_config
from .engine import process_job
from .errors import UpxToolsError
from .locator import require_upx_path
from .report import build_report, save_report_json
from .results import format_bytes
from .runner import upx_version
from .settings import APP_VERSION, AppConfig, JobSpec, parse_level
from .update import check_update, download_and_install


def _level(text: str):
    try:
        return parse_level(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _jobs(text: str) -> int:
    try:
        n = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}")
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return n


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="upxt",
        description="UPX Tools (pack/unpack executables with UPX)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--upx", type=Path, default=None, help="Use this UPX binary instead of looking one up")
    sub = p.add_subparsers(dest="command", required=True)

    comp = sub.add_parser("compress", help="Pack an executable")
    comp.add_argument("input", help="File to pack")
    comp.add_argument("-o", "--output", default=None, help="Output file (default: overwrite input)")
    comp.add_argument("--level", type=_level, default=9, help="0-9 or 'best' (default: 9)")
    comp.add_argument("--ultra-brute", action="store_true", help="Slowest, most thorough compression")
    comp.add_argument("--force", action="store_true", help="Pack even if UPX hesitates")
    comp.add_argument("--backup", action="store_true", help="Copy input to <input>.bak first")

    dec = sub.add_parser("decompress", help="Unpack an executable")
    dec.add_argument("input", help="File to unpack")
    dec.add_argument("-o", "--output", default=None, help="Output file (default: overwrite input)")
    dec.add_argument("--force", action="store_true", help="Pass --force to UPX")
    dec.add_argument("--backup", action="store_true", help="Copy input to <input>.bak first")

    bat = sub.add_parser("batch", help="Run every .exe/.dll in a folder with the saved defaults")
    bat.add_argument("folder", help="Folder to scan")
    bat.add_argument("mode", choices=["compress", "decompress"])
    bat.add_argument("--subfolders", action="store_true", default=None, help="Include subfolders")
    bat.add_argument("--out", default=None, help="Write results here instead of overwriting")
    bat.add_argument("--report", default=None, help="Write a JSON report to this path")
    bat.add_argument(
        "--jobs",
        type=_jobs,
        default=None,
        help="Files to process at once (default: 2 per CPU core, 2..16)",
    )

    scan = sub.add_parser("scan", help="List .exe/.dll files in a folder")
    scan.add_argument("folder")
    scan.add_argument("--subfolders", action="store_true", help="Include subfolders")

    sub.add_parser("version", help="Show app and UPX versions")

    upd = sub.add_parser("update", help="Check GitHub for a newer release")
    upd.add_argument("--install", action="store_true", help="Download and launch the installer")

    cfg = sub.add_parser("config", help="Show or reset saved defaults")
    cfg.add_argument("action", choices=["show", "reset"])

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return _dispatch(args)
    except UpxToolsError as e:
        print(e.message)
        return 1


def _dispatch(args: argparse.Namespace) -> int:
    if args.command in ("compress", "decompress"):
        spec = JobSpec(
            mode=args.command,
            input_path=args.input,
            output_path=args.output or args.input,
            compression_level=getattr(args, "level", 9),
            backup=bool(args.backup),
            ultra_brute=bool(getattr(args, "ultra_brute", False)),
            force=bool(args.force),
        )
        report = process_job(spec, args.upx)
        print(report.render())
        return 0 if report.ok else 1

    if args.command == "batch":
        return _run_batch(args)

    if args.command == "scan":
        for f in scan_folder(Path(args.folder), include_subfolders=bool(args.subfolders)):
            print(f)
        return 0

    if args.command == "version":
        print(f"UPX Tools v{APP_VERSION}")
        print(upx_version(require_upx_path(args.upx)))
        return 0

    if args.command == "update":
        return _run_update(args)

    if args.command == "config":
        if args.action == "reset":
            path = save_config(AppConfig())
            print("Config reset:", path)
            return 0
        print("Config file:", config_path())
        for k, v in asdict(load_config()).items():
            print(f"  {k}: {v}")
        return 0

    return 2


def _run_batch(args: argparse.Namespace) -> int:
    config = load_config()
    subfolders = config.include_subfolders if args.subfolders is None else args.subfolders

    files = scan_folder(Path(args.folder), include_subfolders=subfolders)
    out_dir = Path(args.out) if args.out else None
    jobs = make_jobs(files, args.mode, config, output_dir=out_dir)

    limit = args.jobs or default_concurrency()

    if limit == 1:
        def on_progress(current: int, total: int) -> None:
            print(f"[{current}/{total}] {jobs[current - 1].input_path}")

        results, summary = process_batch(jobs, args.upx, progress_callback=on_progress)
    else:
        def on_done(done: int, total: int) -> None:
            print(f"[{done}/{total}] done")

        results = asyncio.run(run_jobs_async(jobs, args.upx, limit=limit, progress_callback=on_done))
        summary = summarize(results)

    for spec, r in zip(jobs, results):
        if not r.ok:
            print(f"\n{spec.input_path}:\n{r.render()}")

    print("\n=== Batch Summary ===")
    print("Total    :", summary.total)
    print("Succeeded:", summary.succeeded)
    print("Failed   :", summary.failed)
    print(f"Saved    : {format_bytes(summary.saved_bytes)} ({summary.saved_percent:.1f}%)")

    if args.report:
        report = build_report(jobs, results, summary)
        save_report_json(report, Path(args.report))
        print("\nReport written:", args.report)

    return 0 if summary.failed == 0 else 1


def _run_update(args: argparse.Namespace) -> int:
    info = check_update()

    if not info.has_update:
        print(f"Up to date ({info.current_version}, latest {info.latest_version}).")
        return 0

    print(f"New version available: {info.latest_version} (running {info.current_version})")
    print(f"{info.release_name}  {info.published_at}")
    print(info.release_url)
    if info.notes:
        print()
        print(info.notes)

    if not info.download_url:
        print("\nNo downloadable installer attached to this release.")
        return 0

    print(f"\nDownload: {info.download_url} ({format_bytes(info.download_size or 0)})")
    if args.install:
        filename = info.download_url.rsplit("/", 1)[-1]
        path = download_and_install(info.download_url, filename)
        print("Installer started:", path)
    return 0
