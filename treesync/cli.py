#!/usr/bin/env python3
"""
treesync  —  one-way and bi-directional directory synchronization
=================================================================

Subcommands:
  init      Create a .treesync profile file in the current directory.
  sync      Synchronize SOURCE and DESTINATION (once, or continuously).
  status    Show the changes the next sync would make, without applying them.

Run 'treesync <subcommand> --help' for more details.
"""
import signal
import sys
import argparse
import threading
from pathlib import Path

import yaml

from treesync.utils.logging import error, warn

DEFAULT_IGNORE = """# treesync ignore patterns (glob syntax, one per line)
# "*" stays inside one path segment, "**" spans several.
.git/**
**/__pycache__/**
**/*.pyc
**/*.swp
.DS_Store
Thumbs.db
"""


# ── shared helpers ───────────────────────────────────────────────────────────

def _resolve_config(args):
    """Profile from the nearest .treesync, overridden by explicit arguments."""
    from treesync import config as _cfg

    profile, base_dir = _cfg.load_profile(args.profile or "default")
    if args.verbose and base_dir is not None:
        print(f"[config] Using {base_dir / _cfg.PROFILE_FILE}")
    return _cfg.build_config(
        profile,
        base_dir=base_dir,
        source=args.source,
        destination=args.destination,
        mode=args.mode,
        delete_orphans=args.delete_orphans,
        interval=getattr(args, "interval", None),
        continuous=getattr(args, "continuous", None),
        debug=args.verbose or None,
        workers=args.workers,
        dry_run=getattr(args, "dry_run", None),
        cache_hashes=getattr(args, "cache_hashes", None),
    )


def _config_or_exit(args):
    from treesync.errors import ConfigError

    try:
        return _resolve_config(args)
    except ConfigError as exc:
        error(str(exc))
        sys.exit(1)


def _watch_for_quit(cancel):
    """Stop the loop when the user types 'q' + Enter (interactive stdin only)."""
    def reader():
        for line in sys.stdin:
            if line.strip().lower() == "q":
                cancel.cancel("'q' pressed")
                return

    t = threading.Thread(target=reader, name="treesync-stdin", daemon=True)
    t.start()


def _install_sigint(cancel):
    """First Ctrl-C finishes the current phase and stops; the second one aborts."""
    def handler(signum, frame):
        if cancel.cancelled:
            raise KeyboardInterrupt
        cancel.cancel("interrupted by user")
        warn("Stopping after the current phase … (Ctrl-C again to abort)")

    return signal.signal(signal.SIGINT, handler)


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args):
    """Create a .treesync profile file in the current directory."""
    from treesync import config as _cfg
    from treesync.errors import ConfigError

    target = Path.cwd() / _cfg.PROFILE_FILE

    if target.exists() and not args.force:
        error(f"{_cfg.PROFILE_FILE} already exists in {Path.cwd()}")
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    g_defaults = _cfg.load_global_config().get("defaults") or {}

    source = args.source or str(Path.cwd())
    destination = args.destination
    if not destination and sys.stdin.isatty():
        destination = input("Destination directory: ").strip()
    if not destination:
        error("destination is required.")
        sys.exit(1)

    try:
        mode, no_delete = _cfg.split_mode(
            args.mode or g_defaults.get("mode", _cfg.DEFAULT_MODE))
    except ConfigError as exc:
        error(str(exc))
        sys.exit(1)

    profile = {
        "name": args.profile or "default",
        # forward slashes keep the YAML portable across platforms
        "source": source.replace("\\", "/"),
        "destination": destination.replace("\\", "/"),
        "mode": mode.value,
        "delete_orphans": bool(args.delete_orphans) and not no_delete,
        "interval": args.interval if args.interval is not None
        else float(g_defaults.get("interval", _cfg.DEFAULT_INTERVAL)),
        "continuous": bool(args.continuous),
    }

    header = (
        f"# {_cfg.PROFILE_FILE} — treesync project configuration\n"
        "#\n"
        "# profiles: list of sync profiles for this project.\n"
        "# Relative source/destination paths are resolved against this file's directory.\n"
        "# mode is one-way or bi-directional.\n"
    )
    content = header + yaml.safe_dump({"profiles": [profile]}, sort_keys=False,
                                      allow_unicode=True)

    ignore_path = Path(source).expanduser() / _cfg.IGNORE_FILE

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        if not ignore_path.exists():
            print(f"[dry-run] Would write {ignore_path}:")
            print(DEFAULT_IGNORE)
        return

    target.write_text(content, encoding="utf-8")
    print(f"Created {target}")

    if ignore_path.parent.is_dir() and not ignore_path.exists():
        ignore_path.write_text(DEFAULT_IGNORE, encoding="utf-8")
        print(f"Created {ignore_path}")
    elif args.verbose:
        print(f"{ignore_path} not created (exists, or source missing).")

    if args.verbose:
        print(content)


# ── sync ─────────────────────────────────────────────────────────────────────

def cmd_sync(args):
    """Run the sync loop; exit 0 on a clean stop."""
    from treesync.cancel import CancelToken
    from treesync.core.sync_engine import run_sync

    config = _config_or_exit(args)

    cancel = CancelToken()
    previous = _install_sigint(cancel)
    if config.continuous and sys.stdin is not None and sys.stdin.isatty():
        print("Press 'q' + Enter or Ctrl-C to stop.")
        _watch_for_quit(cancel)
    try:
        reports = run_sync(config, cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    if config.continuous or cancel.cancelled:
        return
    last = reports[-1] if reports else None
    if last is not None and not last.ok:
        sys.exit(1)


# ── status ────────────────────────────────────────────────────────────────────

def cmd_status(args):
    """Show pending actions and conflicts."""
    from treesync.core.sync_engine import SyncLoop
    from treesync.core.diff_engine import plan_summary

    config = _config_or_exit(args)

    print(f"\nSource      : {config.source}")
    print(f"Destination : {config.destination}")
    print(f"Mode        : {config.mode.value}"
          f"{'  (delete orphans)' if config.delete_orphans else ''}")

    plan = SyncLoop(config).preview()
    if plan is None:
        error("could not scan both trees.")
        sys.exit(1)

    print(f"Pending     : {plan_summary(plan)}")
    if not plan and not plan.conflicts:
        print("\nAlready in sync ✓")
        return
    print()
    for action in plan.actions:
        print(f"  {action}")
    for conflict in plan.conflicts:
        print(f"  CONFLICT {conflict.path}: {conflict.reason}")


# ── main ──────────────────────────────────────────────────────────────────────

def _add_tree_args(p, *, with_loop: bool):
    p.add_argument("source", nargs="?", metavar="SOURCE",
                   help="Source directory (default: from .treesync)")
    p.add_argument("destination", nargs="?", metavar="DESTINATION",
                   help="Destination directory (default: from .treesync)")
    p.add_argument("mode", nargs="?", metavar="MODE",
                   help="one-way (one) or bi-directional (bi), optionally with "
                        "+no_delete; default: one-way")
    p.add_argument("--profile", metavar="NAME", default="default",
                   help="Profile to use (default: default)")
    p.add_argument("--delete-orphans", action="store_true", default=None,
                   help="One-way: delete destination files missing from the source")
    p.add_argument("-w", "--workers", type=int, default=None, metavar="N",
                   help="Worker threads for scanning and copying (default: 4)")
    p.add_argument("-d", "--debug", "-v", "--verbose", dest="verbose",
                   action="store_true", help="Show every file, not just actions")
    if with_loop:
        p.add_argument("-c", "--continuous", action="store_true", default=None,
                       help="Keep syncing until interrupted")
        p.add_argument("-i", "--interval", type=float, default=None, metavar="N",
                       help="Seconds between cycles in continuous mode (default: 10)")
        p.add_argument("-n", "--dry-run", action="store_true", default=None,
                       help="Preview without applying changes")
        p.add_argument("--cache-hashes", action="store_true", default=None,
                       help="Reuse hashes of unchanged files between cycles")


def main():
    """CLI entry point for treesync"""
    parser = argparse.ArgumentParser(
        prog="treesync",
        description="One-way and bi-directional directory synchronization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Create a .treesync profile file in the current directory",
        description="Create a .treesync YAML profile file for this project.",
    )
    init_p.add_argument("--source", metavar="PATH",
                        help="Source directory (default: current directory)")
    init_p.add_argument("--destination", metavar="PATH",
                        help="Destination directory")
    init_p.add_argument("--mode", metavar="MODE",
                        help="one-way or bi-directional, optionally with +no_delete "
                             "(default: one-way)")
    init_p.add_argument("--delete-orphans", action="store_true",
                        help="Delete destination files missing from the source")
    init_p.add_argument("--interval", type=float, metavar="N",
                        help="Seconds between cycles in continuous mode")
    init_p.add_argument("--continuous", action="store_true",
                        help="Sync continuously by default")
    init_p.add_argument("--profile", metavar="NAME", default="default",
                        help="Profile name to create (default: default)")
    init_p.add_argument("--force", action="store_true",
                        help="Overwrite existing .treesync")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")
    init_p.add_argument("-v", "--verbose", action="store_true",
                        help="Show extra output")

    # ── sync ──────────────────────────────────────────────────────────────────
    sync_p = subparsers.add_parser(
        "sync",
        help="Synchronize SOURCE and DESTINATION",
        description="Synchronize two directory trees, once or continuously.",
    )
    _add_tree_args(sync_p, with_loop=True)

    # ── status ────────────────────────────────────────────────────────────────
    status_p = subparsers.add_parser(
        "status",
        help="Show the changes the next sync would make",
        description="Scan both trees and list pending actions and conflicts.",
    )
    _add_tree_args(status_p, with_loop=False)

    args = parser.parse_args()

    if args.command == "init":
        cmd_init(args)
    elif args.command == "sync":
        cmd_sync(args)
    elif args.command == "status":
        cmd_status(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
