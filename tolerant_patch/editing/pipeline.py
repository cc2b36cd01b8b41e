"""
Pipeline — parse a model response, locate every block and apply it.

This is the entry point callers use; the individual stages live in
``block_parser``, ``match_locator`` and ``patch_applier``.
"""

from __future__ import annotations

import logging
import os

from .block_parser import BlockParser, EditBlock
from .errors import NoEditBlocksError, ParseError, PathResolutionError
from .fences import FencePair, FenceSelector, choose_existing_fence
from .match_locator import MatchLocator, MatchResult
from .metrics import DEFAULT_METRICS_DIR, log_edit_metric
from .patch_applier import (
    ApplyResult,
    ConfirmFn,
    OutcomeStatus,
    PatchApplier,
    PatchOutcome,
    detect_newline,
    to_newline,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

def resolve_path(base_path: str, path: str) -> str:
    """Resolve a block's declared *path* against *base_path*.

    Absolute paths are accepted as-is. Nothing is sandboxed: a response can
    name any file the process may write.
    """
    if not path or not path.strip():
        raise PathResolutionError("empty file path")

    if os.path.isabs(path):
        resolved = os.path.normpath(path)
    else:
        resolved = os.path.normpath(os.path.join(base_path, path))

    if os.path.isdir(resolved):
        raise PathResolutionError(f"{path} is a directory")
    return resolved


def read_file(path: str) -> str | None:
    """Return the file's text with line endings untouched, or None if missing."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError as exc:
        raise PathResolutionError(f"cannot decode {path} as UTF-8: {exc}") from exc
    except OSError as exc:
        raise PathResolutionError(f"cannot read {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def parse_and_apply(
    response: str,
    base_path: str,
    confirm: ConfirmFn,
    *,
    fence: FencePair | None = None,
    locator: MatchLocator | None = None,
    applier: PatchApplier | None = None,
    metrics_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> ApplyResult:
    """Apply every SEARCH/REPLACE block in *response*, in order.

    Parameters
    ----------
    response:
        The raw model response.
    base_path:
        Directory that relative block paths are resolved against.
    confirm:
        Approval callback, asked before each file creation and each edit.
    fence:
        Fence used in the response. Detected from the response when omitted.
    locator, applier:
        Pre-configured stages; defaults are built when omitted.
    metrics_root:
        When given, one metrics entry per block is appended under this root.

    Returns
    -------
    ApplyResult
        One outcome per parsed block, malformed ones included.

    Raises
    ------
    NoEditBlocksError
        When the response holds no valid block at all.
    """
    if fence is None:
        fence = choose_existing_fence(response)
    locator = locator or MatchLocator()
    applier = applier or PatchApplier()

    result = ApplyResult()
    parse_errors: list[ParseError] = []
    valid_blocks = 0
    # Dry runs write nothing, so later blocks read earlier edits from here.
    pending: dict[str, str] | None = {} if applier.dry_run else None

    for item in BlockParser().parse(response, fence):
        if isinstance(item, ParseError):
            parse_errors.append(item)
            result.outcomes.append(PatchOutcome(
                OutcomeStatus.SKIPPED, "", f"malformed block: {item}", error=item,
            ))
            continue

        valid_blocks += 1
        outcome = _apply_block(item, base_path, confirm, locator, applier, pending)
        result.outcomes.append(outcome)
        if metrics_root is not None:
            _record_metric(outcome, metrics_root, metrics_dir)

    if valid_blocks == 0:
        raise NoEditBlocksError(
            "No SEARCH/REPLACE blocks found in response", errors=parse_errors
        )

    logger.info(
        "[Pipeline] %d block(s): %d applied, %d skipped, %d failed",
        len(result), len(result) - len(result.failed) - len(result.skipped),
        len(result.skipped), len(result.failed),
    )
    return result


def _apply_block(
    block: EditBlock,
    base_path: str,
    confirm: ConfirmFn,
    locator: MatchLocator,
    applier: PatchApplier,
    pending: dict[str, str] | None = None,
) -> PatchOutcome:
    try:
        path = resolve_path(base_path, block.path)
        if pending is not None and path in pending:
            file_text: str | None = pending[path]
        else:
            file_text = read_file(path)
    except PathResolutionError as exc:
        logger.warning("[Pipeline] Cannot use %s: %s", block.path, exc)
        return PatchOutcome(
            OutcomeStatus.FAILED, block.path, str(exc), block, None, exc,
        )

    if file_text is None:
        match = MatchResult.insertion()
    else:
        original = to_newline(block.original, detect_newline(file_text))
        match = locator.locate(file_text, original)

    outcome = applier.apply(path, file_text, match, block.replacement, confirm, block=block)
    if pending is not None and outcome.applied and outcome.new_text is not None:
        pending[path] = outcome.new_text
    return outcome


def _record_metric(outcome: PatchOutcome, metrics_root: str, metrics_dir: str) -> None:
    match = outcome.match
    log_edit_metric(
        {
            "file": outcome.path,
            "status": outcome.status.value,
            "strategy": match.strategy.value if match else None,
            "score": match.score if match else None,
            "reason": outcome.reason,
        },
        project_root=metrics_root,
        metrics_dir=metrics_dir,
    )


def embed_for_prompt(
    path: str,
    content: str,
    selector: FenceSelector | None = None,
) -> str:
    """Wrap *content* in a collision-free fence for inclusion in a prompt."""
    return (selector or FenceSelector()).wrap(content, path)
