from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.config import get_settings
from .core.errors import ProbeError, TransformError
from .core.logging import configure_logging, level_from_name
from .media.probe import MediaProbe, classify_dimensions
from .media.transform import MediaTransformer

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    # stdout carries command output; logs go to stderr.
    configure_logging(level=level_from_name(get_settings().log_level), stream=sys.stderr)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Tubely ingest developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Classify a video's orientation with ffprobe")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    faststart_parser = subparsers.add_parser("faststart", help="Write a fast-start copy next to the source file")
    faststart_parser.add_argument("--file", required=True, help="Path to the source MP4 file")
    faststart_parser.set_defaults(func=_cmd_faststart)

    cleanup_parser = subparsers.add_parser("cleanup-tmp", help="Delete stale scratch files under the assets root")
    cleanup_parser.add_argument(
        "--max-age-hours",
        type=float,
        default=24.0,
        help="Remove files older than this many hours (default 24).",
    )
    cleanup_parser.add_argument("--dry-run", action="store_true", help="List files without deleting them")
    cleanup_parser.set_defaults(func=_cmd_cleanup_tmp)
    return parser


def _existing_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.is_file():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_probe(args: argparse.Namespace) -> None:
    """Print the orientation class of a media file.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    media_path = _existing_file(args.file)
    probe = MediaProbe(settings.ffprobe_bin, timeout_s=settings.subprocess_timeout_s)
    try:
        width, height = probe.dimensions(media_path)
        orientation = classify_dimensions(width, height)
    except ProbeError as exc:
        console.print(f"[red]ffprobe failed:[/] {exc.message}")
        sys.exit(3)
    console.print_json(data={"file": str(media_path), "width": width, "height": height, "orientation": orientation.value})


def _cmd_faststart(args: argparse.Namespace) -> None:
    """Write ``<file>.processed`` with the index moved to the front.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    media_path = _existing_file(args.file)
    transformer = MediaTransformer(settings.ffmpeg_bin, timeout_s=settings.subprocess_timeout_s)
    try:
        output = transformer.fast_start_rewrite(media_path)
    except TransformError as exc:
        transformer.output_path_for(media_path).unlink(missing_ok=True)
        console.print(f"[red]ffmpeg failed:[/] {exc.message}")
        sys.exit(3)
    console.print(f"[green]Fast-start copy written to {output}[/]")


def find_stale_files(root: Path, max_age_s: float, *, now: float | None = None) -> list[Path]:
    """Return regular files directly under ``root`` older than ``max_age_s``."""
    if not root.exists():
        return []
    cutoff = (now if now is not None else time.time()) - max_age_s
    return sorted(p for p in root.iterdir() if p.is_file() and p.stat().st_mtime < cutoff)


def _cmd_cleanup_tmp(args: argparse.Namespace) -> None:
    """Delete scratch files left behind by interrupted uploads.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    stale = find_stale_files(Path(settings.assets_root), args.max_age_hours * 3600)
    for path in stale:
        if args.dry_run:
            console.print(f"[dim]would remove {path}[/]")
            continue
        path.unlink(missing_ok=True)
        console.print(f"removed {path}")
    console.print(f"[green]{len(stale)} stale file(s) {'found' if args.dry_run else 'removed'}[/]")


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    checks = {
        "ffmpeg": [settings.ffmpeg_bin, "-version"],
        "ffprobe": [settings.ffprobe_bin, "-version"],
    }
    results = {}
    for label, cmd in checks.items():
        try:
            subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True)
            results[label] = True
        except (OSError, subprocess.CalledProcessError):
            results[label] = False

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg to process uploads.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
