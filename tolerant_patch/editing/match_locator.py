"""
Match locator — finds the region of a file that an edit block's SEARCH
text refers to.

Strategies run in a fixed order and the first hit wins:

1. exact substring search
2. insertion (empty SEARCH text)
3. line-by-line comparison ignoring leading/trailing whitespace
4. sliding-window Levenshtein similarity with a hard acceptance floor
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from itertools import accumulate
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.8
DEFAULT_WINDOW_SCALE = 0.1
DEFAULT_HINT_THRESHOLD = 0.6

_BOUND_SLACK = 1e-9


class MatchStrategy(str, Enum):
    EXACT = "exact"
    WHITESPACE_NORMALIZED = "whitespace_normalized"
    FUZZY = "fuzzy"
    INSERTION = "insertion"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class MatchResult:
    """Where (and how) a block's original text was found."""
    strategy: MatchStrategy
    span: tuple[int, int] | None = None   # [start, end) offsets into the file text
    score: float | None = None

    @property
    def found(self) -> bool:
        return self.strategy is not MatchStrategy.NOT_FOUND

    @classmethod
    def insertion(cls) -> "MatchResult":
        return cls(MatchStrategy.INSERTION)

    @classmethod
    def not_found(cls, best_score: float = 0.0) -> "MatchResult":
        return cls(MatchStrategy.NOT_FOUND, score=best_score)


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------

def split_lines(text: str) -> tuple[list[str], list[int]]:
    """Split *text* into lines (keeping terminators) and their start offsets.

    The offsets list has one extra trailing entry equal to ``len(text)``.
    """
    lines = text.splitlines(keepends=True)
    offsets: list[int] = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line)
    offsets.append(pos)
    return lines, offsets


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _terminated(line: str) -> str:
    return line if line.endswith(("\n", "\r")) else line + "\n"


def _leading(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


# ---------------------------------------------------------------------------
# Levenshtein distance
# ---------------------------------------------------------------------------

def _pattern_bits(pattern: str) -> dict[str, int]:
    peq: dict[str, int] = {}
    for i, ch in enumerate(pattern):
        peq[ch] = peq.get(ch, 0) | (1 << i)
    return peq


def _bit_parallel_scan(peq: dict[str, int], m: int, segments: list[str]) -> list[int]:
    # Myers/Hyyrö bit-vector edit distance; one column of the DP matrix
    # per character of text, with the pattern packed into an int. The
    # distance to each growing prefix is read off after every segment.
    full = (1 << m) - 1
    mask = 1 << (m - 1)
    vp = full
    vn = 0
    dist = m
    out: list[int] = []
    for segment in segments:
        for ch in segment:
            x = peq.get(ch, 0) | vn
            d0 = (((x & vp) + vp) ^ vp) | x
            hp = vn | ~(d0 | vp)
            hn = vp & d0
            if hp & mask:
                dist += 1
            elif hn & mask:
                dist -= 1
            hp = (hp << 1) | 1
            hn = hn << 1
            vp = (hn | ~(d0 | hp)) & full
            vn = hp & d0 & full
        out.append(dist)
    return out


def _bit_parallel_distance(peq: dict[str, int], m: int, text: str) -> int:
    return _bit_parallel_scan(peq, m, [text])[-1]


def levenshtein(a: str, b: str) -> int:
    """Classic character-level Levenshtein distance."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    return _bit_parallel_distance(_pattern_bits(a), len(a), b)


def similarity(a: str, b: str) -> float:
    """``1 - levenshtein / max(len)``, in [0, 1]."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def find_exact(file_text: str, original: str) -> Optional[MatchResult]:
    if not original.strip():
        return None
    start = file_text.find(original)
    if start == -1:
        return None
    return MatchResult(MatchStrategy.EXACT, (start, start + len(original)), 1.0)


def find_insertion(file_text: str, original: str) -> Optional[MatchResult]:
    if original.strip():
        return None
    return MatchResult.insertion()


def find_whitespace_normalized(file_text: str, original: str) -> Optional[MatchResult]:
    """Compare stripped lines; map the hit back to whole raw lines."""
    part = [line.strip() for line in original.splitlines()]
    start = 0
    while start < len(part) and not part[start]:
        start += 1
    end = len(part)
    while end > start and not part[end - 1]:
        end -= 1
    part = part[start:end]
    if not part:
        return None

    lines, offsets = split_lines(file_text)
    whole = [line.strip() for line in lines]
    n = len(part)

    for i in range(len(whole) - n + 1):
        if whole[i : i + n] != part:
            continue
        span_end = offsets[i + n]
        if not original.endswith(("\n", "\r")):
            last = lines[i + n - 1]
            span_end -= len(last) - len(_strip_eol(last))
        return MatchResult(
            MatchStrategy.WHITESPACE_NORMALIZED, (offsets[i], span_end), 1.0
        )

    return None


def _pairs(text: str) -> Counter:
    return Counter(zip(text, text[1:]))


def _score_bound(part_chars: Counter, part_pairs: Counter, m: int, chunk: str) -> float:
    """Upper bound on the similarity of the pattern to any prefix of *chunk*.

    Every matched character needs a shared character, and one edit
    destroys at most two shared character pairs; both give a floor on
    the distance that holds for every prefix.
    """
    common_chars = sum((part_chars & Counter(chunk)).values())
    common_pairs = sum((part_pairs & _pairs(chunk)).values())
    return min(common_chars / m, 0.5 + (1 + common_pairs) / (2 * m), 1.0)


def find_fuzzy(
    file_text: str,
    original: str,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    scale: float = DEFAULT_WINDOW_SCALE,
) -> MatchResult:
    """Slide a line window over the file and keep the most similar one.

    Window heights range over ``n * (1 ± scale)`` lines around the
    SEARCH text's own height ``n``; the exact height ranks first at
    every start line. Ties keep the earliest window.

    Start lines are visited best-first by an upper bound on the score
    their windows can reach, and the search stops once no remaining
    start can beat the best window. All heights at one start share a
    single distance scan.
    """
    lines, offsets = split_lines(file_text)
    n = len(original.splitlines())
    if n == 0 or not lines:
        return MatchResult.not_found()

    part = "".join(_terminated(line) for line in original.splitlines(keepends=True))
    m = len(part)
    peq = _pattern_bits(part)
    part_chars = Counter(part)
    part_pairs = _pairs(part)

    min_len = max(1, math.floor(n * (1 - scale)))
    max_len = max(min_len, math.ceil(n * (1 + scale)))
    heights = sorted(range(min_len, max_len + 1), key=lambda h: (abs(h - n), h))
    rank = {height: i for i, height in enumerate(heights)}
    terminated = [_terminated(line) for line in lines]

    starts: list[tuple[float, int]] = []
    for start in range(len(lines) - min_len + 1):
        chunk = "".join(terminated[start : start + max_len])
        starts.append((_score_bound(part_chars, part_pairs, m, chunk), start))
    starts.sort(key=lambda item: (-item[0], item[1]))

    best_score = 0.0
    best_key: tuple[int, int] | None = None
    best_window: tuple[int, int] | None = None
    scanned = 0

    for bound, start in starts:
        if bound < best_score - _BOUND_SLACK:
            break
        if bound < best_score + _BOUND_SLACK and best_key is not None and start > best_key[0]:
            continue
        scanned += 1
        segments = terminated[start : start + max_len]
        distances = _bit_parallel_scan(peq, m, segments)
        lengths = list(accumulate(len(segment) for segment in segments))
        for height in heights:
            if height > len(segments):
                continue
            longest = max(lengths[height - 1], m)
            score = (longest - distances[height - 1]) / longest
            key = (start, rank[height])
            if score > best_score or (
                score == best_score and best_key is not None and key < best_key
            ):
                best_score = score
                best_key = key
                best_window = (start, start + height)

    logger.debug("[Locate] Fuzzy search scanned %d of %d start lines", scanned, len(starts))

    if best_window is None or best_score < threshold:
        logger.debug(
            "[Locate] Fuzzy search rejected (best %.3f < %.3f)", best_score, threshold
        )
        return MatchResult.not_found(best_score)

    start, stop = best_window
    span_end = offsets[stop]
    if not original.endswith(("\n", "\r")):
        last = lines[stop - 1]
        span_end -= len(last) - len(_strip_eol(last))
    return MatchResult(MatchStrategy.FUZZY, (offsets[start], span_end), best_score)


Strategy = Callable[[str, str], Optional[MatchResult]]


class MatchLocator:
    """Run the strategy cascade with a fixed threshold and window scale."""

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        window_scale: float = DEFAULT_WINDOW_SCALE,
    ) -> None:
        if not 0.0 < similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be in (0, 1]")
        if not math.isfinite(window_scale) or window_scale < 0.0:
            raise ValueError("window_scale must be a finite number >= 0")
        self._threshold = similarity_threshold
        self._scale = window_scale
        self._strategies: tuple[Strategy, ...] = (
            find_exact,
            find_insertion,
            find_whitespace_normalized,
            self._find_fuzzy,
        )

    @property
    def similarity_threshold(self) -> float:
        return self._threshold

    @property
    def window_scale(self) -> float:
        return self._scale

    def _find_fuzzy(self, file_text: str, original: str) -> MatchResult:
        return find_fuzzy(file_text, original, self._threshold, self._scale)

    def locate(self, file_text: str, original: str) -> MatchResult:
        """Return the first strategy's result that locates *original*."""
        for strategy in self._strategies:
            result = strategy(file_text, original)
            if result is not None:
                logger.debug(
                    "[Locate] %s (span=%s, score=%s)",
                    result.strategy.value, result.span, result.score,
                )
                return result
        return MatchResult.not_found()


# ---------------------------------------------------------------------------
# Indentation repair & hints
# ---------------------------------------------------------------------------

def _reindent(replacement: str, fix: Callable[[str], str]) -> str:
    out: list[str] = []
    for line in replacement.splitlines(keepends=True):
        if line.strip():
            lead = _leading(line)
            out.append(fix(lead) + line[len(lead):])
        else:
            out.append(line)
    return "".join(out)


def adapt_indentation(matched_text: str, original: str, replacement: str) -> str:
    """Re-indent *replacement* the way the file indents *original*.

    Handles a constant extra (or missing) prefix and a constant integer
    ratio between space indents, e.g. 2-space text matched in a 4-space
    file. Anything less regular is returned unchanged.
    """
    matched = [line for line in matched_text.splitlines() if line.strip()]
    claimed = [line for line in original.splitlines() if line.strip()]
    if not matched or len(matched) != len(claimed):
        return replacement

    pairs = [(_leading(m), _leading(o)) for m, o in zip(matched, claimed)]
    if all(m == o for m, o in pairs):
        return replacement

    if all(m.endswith(o) for m, o in pairs):
        extra = {m[: len(m) - len(o)] for m, o in pairs}
        if len(extra) == 1:
            prefix = extra.pop()
            return _reindent(replacement, lambda lead: prefix + lead)

    if all(o.endswith(m) for m, o in pairs):
        missing = {o[: len(o) - len(m)] for m, o in pairs}
        if len(missing) == 1:
            prefix = missing.pop()
            return _reindent(
                replacement,
                lambda lead: lead[len(prefix):] if lead.startswith(prefix) else lead,
            )

    if not all(set(m) <= {" "} and set(o) <= {" "} for m, o in pairs):
        return replacement

    ratio = _indent_ratio([(len(m), len(o)) for m, o in pairs])
    if ratio is not None:
        return _reindent(replacement, lambda lead: _scale_spaces(lead, ratio))

    inverse = _indent_ratio([(len(o), len(m)) for m, o in pairs])
    if inverse is not None:
        return _reindent(replacement, lambda lead: _scale_spaces(lead, 1 / inverse))

    return replacement


def _indent_ratio(widths: list[tuple[int, int]]) -> int | None:
    ratios: set[int] = set()
    for big, small in widths:
        if small == 0:
            if big != 0:
                return None
            continue
        if big % small:
            return None
        ratios.add(big // small)
    if len(ratios) != 1:
        return None
    ratio = ratios.pop()
    return ratio if ratio > 1 else None


def _scale_spaces(lead: str, factor: float) -> str:
    if set(lead) - {" "}:
        return lead
    width = len(lead) * factor
    if width != int(width):
        return lead
    return " " * int(width)


def suggest_similar_lines(
    original: str,
    file_text: str,
    threshold: float = DEFAULT_HINT_THRESHOLD,
    context_lines: int = 5,
) -> str:
    """Return the file lines that *original* most likely meant, or ``""``."""
    search = original.splitlines()
    content = file_text.splitlines()
    if not search or not content:
        return ""

    best_ratio = 0.0
    best_index = -1
    for i in range(max(1, len(content) - len(search) + 1)):
        chunk = content[i : i + len(search)]
        ratio = SequenceMatcher(None, search, chunk).ratio()
        if ratio > best_ratio:
            best_ratio = ratio
            best_index = i

    if best_ratio < threshold or best_index < 0:
        return ""

    best = content[best_index : best_index + len(search)]
    if best and best[0] == search[0] and best[-1] == search[-1]:
        return "\n".join(best)

    start = max(0, best_index - context_lines)
    stop = min(len(content), best_index + len(search) + context_lines)
    return "\n".join(content[start:stop])
