"""
Patch applier — splices located replacements into files, gated by a
confirmation callback, with atomic writes.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional

from ..diff_display import build_preview
from .block_parser import EditBlock
from .errors import EditError, NoMatchError, PatchWriteError, UserDeclinedError
from .match_locator import (
    DEFAULT_HINT_THRESHOLD,
    MatchResult,
    MatchStrategy,
    adapt_indentation,
    suggest_similar_lines,
)

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PatchOutcome:
    """Result of applying one edit block."""
    status: OutcomeStatus
    path: str
    reason: str = ""
    block: Optional[EditBlock] = None
    match: Optional[MatchResult] = None
    error: Optional[EditError] = None
    # File content after the edit; set on applied outcomes.
    new_text: Optional[str] = field(default=None, repr=False)

    @property
    def applied(self) -> bool:
        return self.status is OutcomeStatus.APPLIED

    def describe(self) -> str:
        text = f"{self.status.value}: {self.path or '<unknown>'}"
        if self.reason:
            text += f" ({self.reason})"
        return text


@dataclass
class ApplyResult:
    """Per-block outcomes for one response, in block order."""
    outcomes: list[PatchOutcome] = field(default_factory=list)

    def __iter__(self) -> Iterator[PatchOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def __getitem__(self, index: int) -> PatchOutcome:
        return self.outcomes[index]

    @property
    def success(self) -> bool:
        return bool(self.outcomes) and all(o.applied for o in self.outcomes)

    @property
    def files_modified(self) -> list[str]:
        seen: dict[str, None] = {}
        for outcome in self.outcomes:
            if outcome.applied:
                seen.setdefault(outcome.path, None)
        return list(seen)

    @property
    def failed(self) -> list[PatchOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def skipped(self) -> list[PatchOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.SKIPPED]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def detect_newline(text: str) -> str:
    """Return the file's line terminator convention."""
    return "\r\n" if "\r\n" in text else "\n"


def to_newline(text: str, newline: str) -> str:
    normalized = text.replace("\r\n", "\n")
    if newline == "\n":
        return normalized
    return normalized.replace("\n", newline)


def splice(
    file_text: str,
    match: MatchResult,
    replacement: str,
    original: str = "",
) -> str:
    """Return *file_text* with *replacement* put in place of the match.

    Content outside the matched span is left byte-identical.
    """
    if match.strategy is MatchStrategy.INSERTION:
        if not file_text:
            return replacement
        newline = detect_newline(file_text)
        separator = "" if file_text.endswith(("\n", "\r")) else newline
        return file_text + separator + to_newline(replacement, newline)

    if match.span is None:
        raise ValueError(f"cannot splice a {match.strategy.value} match")

    start, end = match.span
    newline = detect_newline(file_text)
    removed = file_text[start:end]
    replacement = to_newline(replacement, newline)

    if match.strategy is MatchStrategy.WHITESPACE_NORMALIZED and original:
        replacement = adapt_indentation(removed, original, replacement)

    if removed.endswith(("\n", "\r")) and replacement and not replacement.endswith(("\n", "\r")):
        replacement += newline

    return file_text[:start] + replacement + file_text[end:]


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------

class PatchApplier:
    """Apply one located edit to one file."""

    def __init__(
        self,
        dry_run: bool = False,
        hint_threshold: float = DEFAULT_HINT_THRESHOLD,
    ) -> None:
        self._dry_run = dry_run
        self._hint_threshold = hint_threshold

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def apply(
        self,
        path: str,
        file_text: str | None,
        match: MatchResult,
        replacement: str,
        confirm: ConfirmFn,
        block: EditBlock | None = None,
    ) -> PatchOutcome:
        """Apply *replacement* at *match* inside *path*.

        Parameters
        ----------
        path:
            Resolved file path.
        file_text:
            Current file content, or None when the file does not exist.
        match:
            Result from the MatchLocator.
        replacement:
            Text to put in place of the matched region.
        confirm:
            Called with a preview; returning False skips the block.
        block:
            The originating edit block, used for indentation repair and
            failure hints.

        Returns
        -------
        PatchOutcome
            APPLIED, SKIPPED or FAILED. Block-scoped errors are captured
            on the outcome instead of being raised.
        """
        if file_text is None:
            if not confirm(f"Create new file {path}?"):
                logger.warning("[Patch] Creation of %s declined", path)
                return self._skipped(path, "user declined file creation", block, match)
            if not self._dry_run:
                try:
                    self._safe_write(path, "")
                except PatchWriteError as exc:
                    return self._failed(path, f"cannot create file: {exc}", block, match, exc)
                logger.info("[Patch] Created empty file %s", path)
            file_text = ""
            match = MatchResult.insertion()

        if not match.found:
            best = match.score or 0.0
            hint = ""
            if block is not None:
                hint = suggest_similar_lines(block.original, file_text, self._hint_threshold)
            error = NoMatchError(path, best, hint)
            logger.warning("[Patch] %s", error)
            return self._failed(
                path, f"no matching region (best similarity {best:.2f})", block, match, error
            )

        original = block.original if block is not None else ""
        new_text = splice(file_text, match, replacement, original)

        if not confirm(build_preview(path, file_text, new_text)):
            logger.warning("[Patch] Edit to %s declined", path)
            return self._skipped(path, "user declined edit", block, match)

        if self._dry_run:
            return PatchOutcome(
                OutcomeStatus.APPLIED, path, "dry run", block, match, new_text=new_text
            )

        if new_text != file_text:
            try:
                self._safe_write(path, new_text)
            except PatchWriteError as exc:
                return self._failed(path, f"write failed: {exc}", block, match, exc)

        logger.info("[Patch] Applied %s edit to %s", match.strategy.value, path)
        return PatchOutcome(OutcomeStatus.APPLIED, path, "", block, match, new_text=new_text)

    @staticmethod
    def _skipped(
        path: str,
        reason: str,
        block: EditBlock | None,
        match: MatchResult | None,
    ) -> PatchOutcome:
        return PatchOutcome(
            OutcomeStatus.SKIPPED, path, reason, block, match, UserDeclinedError(reason)
        )

    @staticmethod
    def _failed(
        path: str,
        reason: str,
        block: EditBlock | None,
        match: MatchResult | None,
        error: EditError,
    ) -> PatchOutcome:
        logger.warning("[Patch] Block for %s failed: %s", path, reason)
        return PatchOutcome(OutcomeStatus.FAILED, path, reason, block, match, error)

    # ------------------------------------------------------------------
    # Atomic file write
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_write(file_path: str, content: str) -> None:
        """Write content atomically via a sibling temp file + os.replace."""
        abs_path = os.path.abspath(file_path)
        directory = os.path.dirname(abs_path)
        tmp_path: str | None = None

        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=".tolerant_patch_", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            if os.path.exists(abs_path):
                shutil.copymode(abs_path, tmp_path)
            else:
                # mkstemp creates 0600; new files get the usual umask default.
                umask = os.umask(0)
                os.umask(umask)
                os.chmod(tmp_path, 0o666 & ~umask)
            os.replace(tmp_path, abs_path)
        except (OSError, ValueError) as exc:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise PatchWriteError(f"failed to write {file_path}: {exc}") from exc
