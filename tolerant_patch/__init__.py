"""
tolerant_patch — apply SEARCH/REPLACE edit blocks proposed by an LLM.

Public API for library usage::

    from tolerant_patch import parse_and_apply

    result = parse_and_apply(response, base_path=".", confirm=lambda preview: True)
    print(result.files_modified)
"""

from .editing import (
    ApplyResult,
    EditBlock,
    NoEditBlocksError,
    PatchOutcome,
    embed_for_prompt,
    parse_and_apply,
)

__version__ = "0.1.0"

__all__ = [
    "parse_and_apply", "embed_for_prompt",
    "ApplyResult", "PatchOutcome", "EditBlock", "NoEditBlocksError",
]
