"""
Block parser — extracts SEARCH/REPLACE edit blocks from a free-form LLM
response.

A well-formed block looks like::

    path/to/file.py
    ```python
    <<<<<<< SEARCH
    original lines
    =======
    replacement lines
    >>>>>>> REPLACE
    ```

Malformed blocks are reported as ``ParseError`` values in the output
stream instead of aborting the whole response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from .errors import MissingFilenameError, ParseError
from .fences import (
    DIVIDER,
    HEAD,
    TRIPLE_BACKTICKS,
    UPDATED,
    FencePair,
    choose_existing_fence,
)

logger = logging.getLogger(__name__)

_SEPARATORS = (HEAD, DIVIDER, UPDATED)


@dataclass(frozen=True)
class EditBlock:
    """One proposed change: replace ``original`` with ``replacement`` in ``path``."""
    path: str
    original: str
    replacement: str

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("EditBlock.path must be non-empty")

    @property
    def is_insertion(self) -> bool:
        return not self.original.strip()


# ---------------------------------------------------------------------------
# Filename helpers
# ---------------------------------------------------------------------------

def _is_fence_line(line: str, fence: FencePair) -> bool:
    return line.startswith(fence.open) or line.startswith(TRIPLE_BACKTICKS)


def _looks_like_path(name: str) -> bool:
    return "." in name or "/" in name or "\\" in name


def _clean_filename(name: str) -> str | None:
    name = name.rstrip(":")
    name = name.lstrip("#").strip()
    name = name.strip("*").strip()
    quoted = len(name) > 1 and name[0] == name[-1] and name[0] in "`\"'"
    name = name.strip("`*").strip()
    name = name.strip("\"'").strip()
    name = name.replace("\\_", "_")
    if not name:
        return None
    # Several words are prose unless quoted as a single name.
    if any(ch.isspace() for ch in name) and not quoted:
        return None
    return name


def strip_filename(line: str, fence: FencePair) -> str | None:
    """Turn the line above an edit block into a file path, or None."""
    filename = line.strip()
    if not filename or filename == "..." or filename in _SEPARATORS:
        return None

    for token in (fence.open, TRIPLE_BACKTICKS):
        if filename.startswith(token):
            # Either a bare language tag (```python) or a path glued to the fence.
            candidate = filename[len(token):].strip()
            if candidate and _looks_like_path(candidate):
                return _clean_filename(candidate)
            return None

    return _clean_filename(filename)


def _previous_nonblank(lines: list[str], index: int) -> int | None:
    while index >= 0:
        if lines[index].strip():
            return index
        index -= 1
    return None


def find_filename(lines: list[str], head_index: int, fence: FencePair) -> str | None:
    """Find the path declared above the SEARCH marker at *head_index*."""
    j = _previous_nonblank(lines, head_index - 1)
    if j is None:
        return None

    line = lines[j].strip()
    if not _is_fence_line(line, fence):
        return strip_filename(line, fence)

    glued = strip_filename(line, fence)
    if glued:
        return glued

    k = _previous_nonblank(lines, j - 1)
    if k is None:
        return None
    candidate = lines[k].strip()
    if _is_fence_line(candidate, fence):
        # Closing fence of the previous block: no path for this one.
        return None
    return strip_filename(candidate, fence)


def strip_fence_wrapping(text: str, fence: FencePair) -> str:
    """Drop fence lines that wrap an entire SEARCH or REPLACE section."""
    lines = text.splitlines(keepends=True)
    if (
        len(lines) >= 2
        and lines[0].strip().startswith(fence.open)
        and lines[-1].strip().startswith(fence.close)
    ):
        return "".join(lines[1:-1])
    return text


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _marker_of(line: str) -> str | None:
    stripped = line.strip()
    if stripped in _SEPARATORS:
        return stripped
    return None


def _read_section(lines: list[str], start: int) -> tuple[list[str], int, str | None]:
    """Collect lines until the next separator.

    Returns (section_lines, separator_index, separator) with a ``None``
    separator when the response ends first.
    """
    section: list[str] = []
    i = start
    while i < len(lines):
        marker = _marker_of(lines[i])
        if marker is not None:
            return section, i, marker
        section.append(lines[i])
        i += 1
    return section, i, None


def _skip_block(lines: list[str], start: int) -> tuple[int, bool]:
    """Skip the rest of a broken block.

    Returns the index just past the `>>>>>>> REPLACE` that closes it and
    True, or the index of the next SEARCH marker (or the end) and False.
    """
    i = start
    while i < len(lines):
        marker = _marker_of(lines[i])
        if marker == UPDATED:
            return i + 1, True
        if marker == HEAD:
            return i, False
        i += 1
    return i, False


class BlockParser:
    """Parse SEARCH/REPLACE blocks out of an LLM response."""

    def parse(
        self,
        response: str,
        fence: FencePair | None = None,
    ) -> Iterator[EditBlock | ParseError]:
        """Yield edit blocks in document order.

        Parameters
        ----------
        response:
            The raw completion text.
        fence:
            Fence used around the blocks. Defaults to the fence the
            response already uses.

        Yields
        ------
        EditBlock | ParseError
            A parsed block, or the error for a malformed block. Parsing
            always continues with the rest of the response.
        """
        if fence is None:
            fence = choose_existing_fence(response)

        lines = response.splitlines(keepends=True)
        previous_path: str | None = None
        i = 0

        while i < len(lines):
            marker = _marker_of(lines[i])
            if marker is None:
                i += 1
                continue

            if marker != HEAD:
                # A divider or REPLACE marker outside any block.
                resume, closed = _skip_block(lines, i)
                if closed:
                    yield self._error(f"Expected `{HEAD}` before `{marker}`", i, marker)
                    i = resume
                else:
                    i += 1
                continue

            head_index = i
            path = find_filename(lines, head_index, fence) or previous_path

            original, i, marker = _read_section(lines, head_index + 1)
            if marker != DIVIDER:
                yield self._error(
                    f"Expected `{DIVIDER}` after `{HEAD}`", i, marker
                )
                i = i if marker == HEAD else i + 1
                continue

            replacement, i, marker = _read_section(lines, i + 1)
            if marker != UPDATED:
                if marker == DIVIDER:
                    message = f"More than one `{DIVIDER}` in block"
                else:
                    message = f"Expected `{UPDATED}` after `{DIVIDER}`"
                yield self._error(message, i, marker)
                if marker == DIVIDER:
                    i, _ = _skip_block(lines, i)
                continue

            if not path:
                logger.warning(
                    "[EditBlock] Missing filename for block at line %d",
                    head_index + 1,
                )
                yield MissingFilenameError(
                    "Bad/missing filename. The filename must be alone on the "
                    f"line before the opening fence {fence.open}",
                    line_number=head_index + 1,
                )
                i += 1
                continue

            previous_path = path
            yield EditBlock(
                path=path,
                original=strip_fence_wrapping("".join(original), fence),
                replacement=strip_fence_wrapping("".join(replacement), fence),
            )
            i += 1

    @staticmethod
    def _error(message: str, index: int, marker: str | None) -> ParseError:
        if marker is None:
            message += " (reached end of response)"
        logger.warning("[EditBlock] Malformed block at line %d: %s", index + 1, message)
        return ParseError(message, line_number=index + 1)


def parse_edit_blocks(
    response: str,
    fence: FencePair | None = None,
) -> tuple[list[EditBlock], list[ParseError]]:
    """Eagerly parse *response* into (blocks, errors)."""
    blocks: list[EditBlock] = []
    errors: list[ParseError] = []
    for item in BlockParser().parse(response, fence):
        if isinstance(item, ParseError):
            errors.append(item)
        else:
            blocks.append(item)
    return blocks, errors


def render_block(block: EditBlock, fence: FencePair) -> str:
    """Format *block* in the SEARCH/REPLACE syntax the parser reads."""

    def _terminated(text: str) -> str:
        return text if not text or text.endswith("\n") else text + "\n"

    return (
        f"{block.path}\n"
        f"{fence.open}\n"
        f"{HEAD}\n"
        f"{_terminated(block.original)}"
        f"{DIVIDER}\n"
        f"{_terminated(block.replacement)}"
        f"{UPDATED}\n"
        f"{fence.close}\n"
    )
