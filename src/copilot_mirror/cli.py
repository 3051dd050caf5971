"""Command-line entry point for copilot-mirror."""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .core.client import GitHubContentsClient
from .errors import PublishError
from .logger import setup_logging
from .publish import combine_categories, normalize_tree, publish
from .sync import (
    ManifestStore,
    Reconciler,
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .sync.engine import STATUS_FILE

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _bootstrap(args: argparse.Namespace) -> Config:
    """Load .env, YAML and CLI values, configure logging, return Config.

    Raises:
        ValueError: Invalid configuration.
    """
    load_dotenv()

    unified = UnifiedConfig()
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format or unified.logging.format,
        level=unified.logging.level,
    )
    if config_files:
        logger.info("Configuration loaded from: %s", config_files[0])

    allow_delete: bool | None = None
    if getattr(args, "no_delete", False):
        allow_delete = False

    return load_config(
        repo=args.repo,
        branch=args.branch,
        cache_dir=args.cache_dir,
        categories=getattr(args, "category", None),
        allow_delete=allow_delete,
        run_timeout=getattr(args, "timeout", None),
        debug=args.debug,
        yaml_fallbacks=to_fallbacks(unified),
    )


# ------------------------------------------------------------------
# Subcommands
# ------------------------------------------------------------------


def cmd_sync(args: argparse.Namespace, config: Config) -> int:
    if not args.dry_run:
        try:
            config.cache_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            _stderr_print(f"ERROR: cannot prepare {config.cache_root}: {exc}")
            return 1

    reconciler = Reconciler(GitHubContentsClient(config), config)
    try:
        report = reconciler.run(dry_run=args.dry_run)
    except OSError as exc:
        _stderr_print(f"ERROR: sync failed while writing {config.cache_root}: {exc}")
        return 1

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    elif args.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))
    return 0


def cmd_verify(args: argparse.Namespace, config: Config) -> int:
    result = ManifestStore(config.cache_root).verify(check_files=args.files)
    if result.ok:
        print(f"OK: manifest sha256 {result.manifest_sha256}")
        return 0
    print("FAILED:")
    for problem in result.problems:
        print(f"  {problem}")
    return 1


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    status = config.cache_root / STATUS_FILE
    if not status.is_file():
        _stderr_print(f"No status file at {status}; run 'copilot-mirror sync' first")
        return 1
    print(status.read_text(encoding="utf-8").rstrip())
    return 0


def cmd_combine(args: argparse.Namespace, config: Config) -> int:
    output = Path(args.output).expanduser() if args.output else config.combined_root
    result = combine_categories(config.cache_root, config.categories, output)
    print(
        f"Combined into {result.output_dir}: {len(result.copied)} copied, "
        f"{len(result.unchanged)} unchanged, {len(result.duplicates)} duplicates, "
        f"{len(result.conflicts)} conflicts, {len(result.removed)} removed"
    )
    return 0


def cmd_publish(args: argparse.Namespace, config: Config) -> int:
    targets = [Path(t) for t in (args.target or config.publish_targets)]
    if not targets:
        _stderr_print("No publish targets; pass --target or set publish.targets")
        return 1
    try:
        results = publish(
            config.combined_root, targets, force_copy=args.copy or config.force_copy
        )
    except PublishError as exc:
        _stderr_print(f"ERROR: {exc}")
        return 1
    for r in results:
        if r.success:
            print(f"{r.target}: {r.strategy}")
        else:
            print(f"{r.target}: FAILED ({r.error})")
    return 0 if all(r.success for r in results) else 1


def cmd_normalize(args: argparse.Namespace, config: Config) -> int:
    moves = normalize_tree(Path(args.root).expanduser(), dry_run=args.dry_run)
    prefix = "would move" if args.dry_run else "moved"
    for move in moves:
        print(f"{prefix} {move.source} -> {move.destination}")
    if not moves:
        print("Nothing to normalize.")
    return 0


def cmd_init_config(args: argparse.Namespace, config: Config) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


# ------------------------------------------------------------------
# Parser
# ------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copilot-mirror",
        description="Mirror Copilot chatmodes, instructions, prompts and collections locally",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mirror everything into the default cache
  copilot-mirror sync

  # Preview what would change for prompts only
  copilot-mirror sync --category prompts --dry-run

  # Never delete files that disappeared upstream
  copilot-mirror sync --no-delete

  # Check the manifest against its integrity marker
  copilot-mirror verify --files

  # Merge and expose the collection in a VS Code profile
  copilot-mirror combine && copilot-mirror publish --target ~/.config/Code/User/prompts
        """,
    )
    parser.add_argument("--repo", help="Source repository owner/name")
    parser.add_argument("--branch", help="Git ref to mirror")
    parser.add_argument("--cache-dir", help="Local destination root")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--log-format", choices=["text", "json"], help="Log line format"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"copilot-mirror version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_sync = sub.add_parser("sync", help="Mirror remote categories into the cache")
    p_sync.add_argument(
        "--category",
        action="append",
        help="Category to sync (repeatable; default: all configured)",
    )
    p_sync.add_argument("--dry-run", action="store_true", help="Plan only")
    p_sync.add_argument(
        "--no-delete", action="store_true", help="Do not propagate upstream deletions"
    )
    p_sync.add_argument("--timeout", type=float, help="Run deadline in seconds")
    p_sync.add_argument("--json", action="store_true", help="Print JSON report")
    p_sync.set_defaults(func=cmd_sync)

    p_verify = sub.add_parser("verify", help="Check manifest integrity")
    p_verify.add_argument(
        "--files", action="store_true", help="Also hash every mirrored file"
    )
    p_verify.set_defaults(func=cmd_verify)

    p_status = sub.add_parser("status", help="Show the last run summary")
    p_status.set_defaults(func=cmd_status)

    p_combine = sub.add_parser("combine", help="Merge categories into one directory")
    p_combine.add_argument("--output", help="Output directory")
    p_combine.set_defaults(func=cmd_combine)

    p_publish = sub.add_parser("publish", help="Link or copy the combined collection")
    p_publish.add_argument("--target", action="append", help="Target path (repeatable)")
    p_publish.add_argument("--copy", action="store_true", help="Always copy")
    p_publish.set_defaults(func=cmd_publish)

    p_normalize = sub.add_parser("normalize", help="Move misfiled resources")
    p_normalize.add_argument("--root", required=True, help="Directory to normalize")
    p_normalize.add_argument("--dry-run", action="store_true", help="Plan only")
    p_normalize.set_defaults(func=cmd_normalize)

    p_init = sub.add_parser("init-config", help="Write a starter config file")
    p_init.set_defaults(func=cmd_init_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = _bootstrap(args)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as exc:
        _stderr_print(f"ERROR: Configuration error: {exc}")
        return 1
    return args.func(args, config)


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    run()
