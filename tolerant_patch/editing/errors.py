"""
Edit errors — block-scoped failures raised while parsing and applying
SEARCH/REPLACE blocks.
"""

from __future__ import annotations


class EditError(Exception):
    """Base class for every error raised by the patch engine."""


class ParseError(EditError):
    """A single edit block in a response is malformed."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        super().__init__(message)
        self.line_number = line_number

    def __str__(self) -> str:
        message = super().__str__()
        if self.line_number is not None:
            return f"line {self.line_number}: {message}"
        return message


class MissingFilenameError(ParseError):
    """No file path could be found for an edit block."""


class NoEditBlocksError(ParseError):
    """A response contained no usable edit block at all."""

    def __init__(self, message: str, errors: list[ParseError] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class PathResolutionError(EditError):
    """The declared path is empty, a directory, or cannot be read."""


class NoMatchError(EditError):
    """The locator could not find the block's original text."""

    def __init__(self, path: str, best_score: float = 0.0, hint: str = "") -> None:
        super().__init__(
            f"no matching region in {path} (best similarity {best_score:.2f})"
        )
        self.path = path
        self.best_score = best_score
        self.hint = hint


class UserDeclinedError(EditError):
    """The confirmation callback refused a file creation or an edit."""


class PatchWriteError(EditError, OSError):
    """Writing the patched file failed; the original is left untouched."""
