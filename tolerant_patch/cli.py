"""
`tolerant-patch` command line interface.

Commands
--------
tolerant-patch apply response.md                 -- apply every block, asking first
tolerant-patch apply - --yes < response.md       -- read stdin, approve everything
tolerant-patch apply response.md --dry-run       -- show what would change
tolerant-patch apply response.md --commit "msg"  -- commit the modified files
tolerant-patch embed src/app.py                  -- print a file fenced for a prompt
tolerant-patch stats --last 20                   -- edit statistics as JSON
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from .cli_display import render_outcomes, render_summary, setup_logger
from .config import Config
from .diff_display import CONFIRM_MODES, make_confirm
from .editing import (
    FencePair,
    NoEditBlocksError,
    PatchApplier,
    embed_for_prompt,
    format_failure_report,
    parse_and_apply,
    read_edit_stats,
)
from .git_utils import commit_paths, is_git_repo

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_NO_BLOCKS = 2

_DEFAULT_COMMIT_MESSAGE = "Apply SEARCH/REPLACE edits"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_response(source: str) -> str | None:
    """Read the model response from a file, or stdin for ``-``."""
    if source == "-":
        return sys.stdin.read()
    try:
        with open(source, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Cannot read response {source}: {exc}", file=sys.stderr)
        return None


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_apply(args: argparse.Namespace, config: Config) -> int:
    """Apply every SEARCH/REPLACE block in a response."""
    response = _read_response(args.response)
    if response is None:
        return EXIT_NO_BLOCKS

    setup_logger(config.LOG_DIR)

    mode = "auto" if args.yes else (args.confirm or config.CONFIRM_MODE)
    confirm = make_confirm(mode)

    if args.fence:
        fence = FencePair(*args.fence)
    else:
        fence = config.build_fence_selector().choose_existing_fence(response)

    base = os.path.abspath(args.base)
    record = config.RECORD_METRICS and not args.no_metrics and not args.dry_run
    applier = PatchApplier(dry_run=args.dry_run, hint_threshold=config.HINT_THRESHOLD)

    try:
        result = parse_and_apply(
            response,
            base,
            confirm,
            fence=fence,
            locator=config.build_locator(),
            applier=applier,
            metrics_root=base if record else None,
            metrics_dir=config.METRICS_DIR,
        )
    except NoEditBlocksError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        for err in exc.errors:
            print(f"  {err}", file=sys.stderr)
        return EXIT_NO_BLOCKS

    for line in render_outcomes(result, color=sys.stdout.isatty()):
        print(line)
    print(render_summary(result))

    if args.report:
        report = format_failure_report(result, fence)
        if report:
            print()
            print(report)

    if args.commit is not None and result.files_modified and not args.dry_run:
        if not is_git_repo(base):
            print(f"Not a git repository: {base}, skipping commit", file=sys.stderr)
        else:
            ok, output = commit_paths(result.files_modified, args.commit, cwd=base)
            if ok:
                print(f"Committed {len(result.files_modified)} file(s)")
            else:
                print(f"Commit failed: {output}", file=sys.stderr)

    return EXIT_OK if result.success else EXIT_INCOMPLETE


def _cmd_embed(args: argparse.Namespace, config: Config) -> int:
    """Print a file wrapped in a collision-free fence."""
    try:
        with open(args.file, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return EXIT_NO_BLOCKS

    name = args.name or args.file
    sys.stdout.write(embed_for_prompt(name, content, config.build_fence_selector()))
    return EXIT_OK


def _cmd_stats(args: argparse.Namespace, config: Config) -> int:
    """Show rolling edit statistics as JSON."""
    stats = read_edit_stats(
        last_n=args.last_n,
        project_root=os.path.abspath(args.base),
        metrics_dir=config.METRICS_DIR,
    )
    print(json.dumps(stats, indent=2))
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tolerant-patch",
        description="Apply SEARCH/REPLACE edit blocks from an LLM response",
    )
    config_help = "Path to a .tolerant_patch.yaml file (default: search CWD, then home)"
    parser.add_argument("--config", default=None, help=config_help)

    # Also accepted after the sub-command; SUPPRESS keeps a value given
    # before it from being reset.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=argparse.SUPPRESS, help=config_help)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # --- apply ---
    apply_p = subparsers.add_parser(
        "apply", parents=[common], help="Apply the blocks in a response"
    )
    apply_p.add_argument("response", help="Response file, or - for stdin")
    apply_p.add_argument(
        "--base", default=".",
        help="Directory relative block paths are resolved against (default: CWD)",
    )
    apply_p.add_argument(
        "--confirm", choices=CONFIRM_MODES, default=None,
        help="How to ask before each change (default: from config)",
    )
    apply_p.add_argument(
        "--yes", "-y", action="store_true",
        help="Approve every change without asking (same as --confirm auto)",
    )
    apply_p.add_argument(
        "--fence", nargs=2, metavar=("OPEN", "CLOSE"), default=None,
        help="Fence used in the response (default: detect)",
    )
    apply_p.add_argument(
        "--dry-run", action="store_true",
        help="Locate and preview every change but write nothing",
    )
    apply_p.add_argument(
        "--commit", nargs="?", const=_DEFAULT_COMMIT_MESSAGE, default=None,
        metavar="MSG", help="Commit the modified files to git",
    )
    apply_p.add_argument(
        "--no-metrics", action="store_true",
        help="Do not record edit metrics for this run",
    )
    apply_p.add_argument(
        "--report", action="store_true",
        help="Print a retry message for blocks that failed to match",
    )
    apply_p.set_defaults(func=_cmd_apply)

    # --- embed ---
    embed_p = subparsers.add_parser(
        "embed", parents=[common], help="Print a file fenced for a prompt"
    )
    embed_p.add_argument("file", help="File to embed")
    embed_p.add_argument(
        "--as", dest="name", default=None,
        help="Path to show in the prompt (default: FILE)",
    )
    embed_p.set_defaults(func=_cmd_embed)

    # --- stats ---
    stats_p = subparsers.add_parser(
        "stats", parents=[common], help="Show rolling edit statistics"
    )
    stats_p.add_argument(
        "--last", dest="last_n", type=int, default=50,
        help="Number of recent edits to include (default: 50)",
    )
    stats_p.add_argument(
        "--base", default=".",
        help="Project root holding the metrics directory (default: CWD)",
    )
    stats_p.set_defaults(func=_cmd_stats)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for ``tolerant-patch``.

    Parameters
    ----------
    argv:
        Argument list without the program name. Defaults to sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    # Configure logging if not already configured
    if not logging.root.handlers:
        # The file log runs at DEBUG; keep the console at WARNING.
        console = logging.StreamHandler()
        console.setLevel(logging.WARNING)
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s  %(name)s  %(message)s",
            handlers=[console],
        )

    parser = _build_parser()
    args = parser.parse_args(argv)
    config = Config.load(args.config)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
