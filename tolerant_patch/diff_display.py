"""
Diff display — build unified-diff previews for pending edits and ask the
user to approve them.

Includes a Textual-based approval screen that pauses the run so the user
can review each change before it is written to disk, with a plain console
prompt as fallback.
"""

from __future__ import annotations

import difflib
import logging
import sys
from typing import Callable

logger = logging.getLogger(__name__)

CONFIRM_MODES = ("textual", "console", "auto")


def build_preview(path: str, old_text: str, new_text: str) -> str:
    """Return a unified diff of *old_text* → *new_text* for *path*.

    An unchanged file yields just the two header lines so the prompt still
    names the file.
    """
    old_lines = old_text.splitlines(keepends=True)
    new_lines = new_text.splitlines(keepends=True)

    diff = difflib.unified_diff(
        old_lines, new_lines,
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    )
    diff_text = "\n".join(line.rstrip("\r\n") for line in diff)
    if not diff_text.strip():
        return f"--- a/{path}\n+++ b/{path}\n(no changes)"
    return diff_text


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a unified diff string.

    Green for additions (+), red for deletions (-), cyan for @@ hunks.
    """
    colored: list[str] = []
    for line in diff_text.splitlines():
        if line.startswith("+++") or line.startswith("---"):
            colored.append(f"\033[1m{line}\033[0m")  # bold
        elif line.startswith("@@"):
            colored.append(f"\033[36m{line}\033[0m")  # cyan
        elif line.startswith("+"):
            colored.append(f"\033[32m{line}\033[0m")  # green
        elif line.startswith("-"):
            colored.append(f"\033[31m{line}\033[0m")  # red
        else:
            colored.append(line)
    return "\n".join(colored)


def _format_rich_diff(diff_text: str) -> str:
    """Convert unified diff text to Rich markup for Textual display."""
    markup_lines: list[str] = []
    for line in diff_text.splitlines():
        escaped = line.replace("[", "\\[")
        if line.startswith("+++") or line.startswith("---"):
            markup_lines.append(f"[bold white]{escaped}[/bold white]")
        elif line.startswith("@@"):
            markup_lines.append(f"[cyan]{escaped}[/cyan]")
        elif line.startswith("+"):
            markup_lines.append(f"[green]{escaped}[/green]")
        elif line.startswith("-"):
            markup_lines.append(f"[red]{escaped}[/red]")
        else:
            markup_lines.append(escaped)
    return "\n".join(markup_lines)


# ══════════════════════════════════════════════════════════════════
#  Confirmation callbacks
# ══════════════════════════════════════════════════════════════════

def console_confirm(preview: str) -> bool:
    """Print *preview* and ask for a yes/no answer on stdin.

    EOF and Ctrl-C count as "no".
    """
    print(f"\n{'─' * 60}")
    print(format_colored_diff(preview))
    print(f"{'─' * 60}")

    while True:
        try:
            choice = input("  Apply? [y/n]: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        if choice in ("y", "yes"):
            return True
        if choice in ("n", "no"):
            return False
        print("  Invalid choice. Use y or n.")


def auto_confirm(preview: str) -> bool:
    """Approve everything, logging what was approved."""
    logger.info("[auto] Approved:\n%s", preview)
    return True


def textual_confirm(preview: str) -> bool:
    """Show *preview* in a Textual viewer and wait for approve/reject.

    Falls back to :func:`console_confirm` when no terminal is attached.
    """
    if not (sys.stdin.isatty() and sys.stdout.isatty()):
        logger.info("[Confirm] No TTY attached, using console prompt")
        return console_confirm(preview)
    return _textual_approval(preview)


def _textual_approval(preview: str) -> bool:
    """Launch a Textual app to display one preview and get approval."""
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, VerticalScroll
    from textual.widgets import Button, Footer, Static

    class DiffApprovalApp(App):
        """Interactive diff viewer with approve/reject."""

        CSS = """
        Screen {
            background: $surface;
        }
        #title-bar {
            dock: top;
            height: 3;
            background: #1a1a2e;
            color: #e94560;
            text-align: center;
            padding: 1;
            text-style: bold;
        }
        #diff-scroll {
            height: 1fr;
            margin: 1 2;
            border: round #444;
            padding: 1;
        }
        #action-buttons {
            dock: bottom;
            height: 3;
            align: center middle;
            padding: 0 2;
        }
        #action-buttons Button {
            margin: 0 2;
            min-width: 20;
        }
        #summary {
            dock: bottom;
            height: 1;
            text-align: center;
            color: #888;
        }
        """

        BINDINGS = [
            Binding("a", "approve", "Approve"),
            Binding("y", "approve", "Approve"),
            Binding("escape", "reject", "Reject"),
            Binding("r", "reject", "Reject"),
            Binding("n", "reject", "Reject"),
        ]

        def __init__(self, preview: str) -> None:
            super().__init__()
            self._preview = preview
            self.approved: bool = False

        def compose(self) -> ComposeResult:
            yield Static(" ━━  Review pending edit  ━━ ", id="title-bar")
            with VerticalScroll(id="diff-scroll"):
                yield Static(_format_rich_diff(self._preview))
            yield Static(
                "Press [bold]A[/bold] to approve, [bold]R[/bold] or Esc to reject",
                id="summary",
            )
            with Horizontal(id="action-buttons"):
                yield Button("✔ Approve", id="approve-btn", variant="success")
                yield Button("✕ Reject", id="reject-btn", variant="error")
            yield Footer()

        def on_button_pressed(self, event: Button.Pressed) -> None:
            self.approved = event.button.id == "approve-btn"
            self.exit()

        def action_approve(self) -> None:
            self.approved = True
            self.exit()

        def action_reject(self) -> None:
            self.approved = False
            self.exit()

    app = DiffApprovalApp(preview)
    app.run()
    return app.approved


def make_confirm(mode: str) -> Callable[[str], bool]:
    """Return the confirmation callback for *mode*."""
    callbacks = {
        "textual": textual_confirm,
        "console": console_confirm,
        "auto": auto_confirm,
    }
    try:
        return callbacks[mode]
    except KeyError:
        raise ValueError(
            f"unknown confirm mode {mode!r}; expected one of {', '.join(CONFIRM_MODES)}"
        ) from None
