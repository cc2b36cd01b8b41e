"""SEARCH/REPLACE editing — parse model edit blocks, locate and apply them."""

from .errors import (
    EditError, ParseError, MissingFilenameError, NoEditBlocksError,
    PathResolutionError, NoMatchError, UserDeclinedError, PatchWriteError,
)
from .fences import (
    FencePair, FenceSelector, DEFAULT_FENCES,
    choose_fence, choose_best_fence, choose_existing_fence,
)
from .block_parser import BlockParser, EditBlock, parse_edit_blocks, render_block
from .match_locator import MatchLocator, MatchResult, MatchStrategy, adapt_indentation
from .patch_applier import (
    PatchApplier, PatchOutcome, ApplyResult, OutcomeStatus, ConfirmFn,
)
from .pipeline import parse_and_apply, embed_for_prompt, resolve_path
from .feedback import format_failure_report
from .metrics import log_edit_metric, read_edit_stats

__all__ = [
    "EditError", "ParseError", "MissingFilenameError", "NoEditBlocksError",
    "PathResolutionError", "NoMatchError", "UserDeclinedError", "PatchWriteError",
    "FencePair", "FenceSelector", "DEFAULT_FENCES",
    "choose_fence", "choose_best_fence", "choose_existing_fence",
    "BlockParser", "EditBlock", "parse_edit_blocks", "render_block",
    "MatchLocator", "MatchResult", "MatchStrategy", "adapt_indentation",
    "PatchApplier", "PatchOutcome", "ApplyResult", "OutcomeStatus", "ConfirmFn",
    "parse_and_apply", "embed_for_prompt", "resolve_path",
    "format_failure_report",
    "log_edit_metric", "read_edit_stats",
]
