"""
Fence selector — picks the open/close delimiter pair used to embed file
content in a prompt and to find edit blocks in a response.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, NamedTuple

logger = logging.getLogger(__name__)

HEAD = "<<<<<<< SEARCH"
DIVIDER = "======="
UPDATED = ">>>>>>> REPLACE"


class FencePair(NamedTuple):
    """An open/close delimiter pair wrapping embedded text."""
    open: str
    close: str


def wrap_tag(name: str) -> FencePair:
    return FencePair(f"<{name}>", f"</{name}>")


TRIPLE_BACKTICKS = "`" * 3

DEFAULT_FENCES: tuple[FencePair, ...] = (
    FencePair(TRIPLE_BACKTICKS, TRIPLE_BACKTICKS),
    wrap_tag("code"),
    wrap_tag("source"),
    wrap_tag("pre"),
    wrap_tag("codeblock"),
    wrap_tag("sourcecode"),
)


class FenceSelector:
    """Choose collision-free fences from a fixed, ordered catalog."""

    def __init__(self, catalog: Iterable[FencePair] = DEFAULT_FENCES) -> None:
        pairs = tuple(FencePair(*pair) for pair in catalog)
        if not pairs:
            raise ValueError("fence catalog must contain at least one pair")
        for pair in pairs:
            if not pair.open or not pair.close:
                raise ValueError(f"fence tokens must be non-empty: {pair!r}")
        self._catalog = pairs

    @property
    def catalog(self) -> tuple[FencePair, ...]:
        return self._catalog

    @property
    def default(self) -> FencePair:
        return self._catalog[0]

    def choose_fence(self, content: str) -> FencePair:
        """Return the first pair whose tokens never occur in *content*.

        When every pair collides the highest-priority pair is returned
        anyway; callers must treat that result as best-effort.
        """
        for pair in self._catalog:
            if pair.open in content or pair.close in content:
                continue
            return pair

        logger.warning(
            "[Fence] Every fence collides with the content, falling back to %r",
            self.default.open,
        )
        return self.default

    def choose_existing_fence(self, content: str) -> FencePair:
        """Return the first pair already used to wrap an edit block in *content*.

        A pair qualifies when an open token is followed by a close token,
        the enclosed text contains a SEARCH marker and the text just before
        the close token ends with a REPLACE marker.
        """
        for pair in self._catalog:
            if self._wraps_edit_block(content, pair):
                return pair
        return self.default

    @staticmethod
    def _wraps_edit_block(content: str, pair: FencePair) -> bool:
        open_idx = content.find(pair.open)
        while open_idx != -1:
            body_start = open_idx + len(pair.open)
            close_idx = content.find(pair.close, body_start)
            if close_idx == -1:
                return False

            body = content[body_start:close_idx]
            if HEAD in body and body.rstrip().endswith(UPDATED):
                return True

            # Identical open/close tokens: the close we found may be the
            # opening fence of the next block.
            if pair.open == pair.close:
                open_idx = close_idx
            else:
                open_idx = content.find(pair.open, close_idx + len(pair.close))
        return False

    def wrap(self, content: str, path: str) -> str:
        """Embed *content* for a prompt, tagged with the file's extension."""
        pair = self.choose_fence(content)
        ext = os.path.splitext(path)[1].lstrip(".")
        body = content if content.endswith("\n") else content + "\n"
        return f"{path}\n{pair.open}{ext}\n{body}{pair.close}\n"


_default_selector = FenceSelector()


def choose_fence(content: str) -> FencePair:
    return _default_selector.choose_fence(content)


# Name used by prompt construction.
choose_best_fence = choose_fence


def choose_existing_fence(content: str) -> FencePair:
    return _default_selector.choose_existing_fence(content)
