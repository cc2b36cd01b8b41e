"""
Failure feedback — the message sent back to the model when SEARCH blocks
do not match.
"""

from __future__ import annotations

from .block_parser import render_block
from .errors import NoMatchError, PathResolutionError
from .fences import FencePair, choose_fence
from .patch_applier import ApplyResult, PatchOutcome
from .pipeline import read_file


def _no_match_failures(result: ApplyResult) -> list[PatchOutcome]:
    return [
        o for o in result.failed
        if isinstance(o.error, NoMatchError) and o.block is not None
    ]


def _replacement_already_present(outcome: PatchOutcome) -> bool:
    replacement = outcome.block.replacement if outcome.block else ""
    if not replacement.strip():
        return False
    try:
        content = read_file(outcome.path)
    except PathResolutionError:
        return False
    return bool(content) and replacement.replace("\r\n", "\n") in content.replace("\r\n", "\n")


def format_failure_report(result: ApplyResult, fence: FencePair | None = None) -> str:
    """Describe every unmatched block so the model can retry.

    Returns an empty string when no block failed to match.
    """
    failures = _no_match_failures(result)
    if not failures:
        return ""

    blocks = "block" if len(failures) == 1 else "blocks"
    parts = [f"# {len(failures)} SEARCH/REPLACE {blocks} failed to match!\n"]

    for outcome in failures:
        block = outcome.block
        error: NoMatchError = outcome.error  # type: ignore[assignment]
        active = fence or choose_fence(block.original + block.replacement)

        parts.append(
            f"\n## SearchReplaceNoExactMatch: This SEARCH block failed to "
            f"exactly match lines in {block.path}\n"
        )
        parts.append(render_block(block, active))
        parts.append(f"\nBest similarity found: {error.best_score:.2f}\n")

        if error.hint:
            hint_fence = choose_fence(error.hint)
            parts.append(
                f"\nDid you mean to match some of these actual lines from {block.path}?\n\n"
                f"{hint_fence.open}\n{error.hint}\n{hint_fence.close}\n"
            )

        if _replacement_already_present(outcome):
            parts.append(
                "\nAre you sure you need this SEARCH/REPLACE block?\n"
                f"The REPLACE lines are already in {block.path}!\n"
            )

    parts.append(
        "\nThe SEARCH section must exactly match an existing block of lines "
        "including all white space, comments, indentation, docstrings, etc.\n"
    )

    applied = len(result) - len(result.failed) - len(result.skipped)
    if applied:
        done = "block was" if applied == 1 else "blocks were"
        parts.append(
            f"\n# The other {applied} SEARCH/REPLACE {done} applied successfully.\n"
            "Don't re-send them.\n"
            "Just reply with fixed versions of the blocks above that failed to match.\n"
        )

    return "".join(parts)
