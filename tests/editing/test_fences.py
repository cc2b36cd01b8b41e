"""Tests for fence selection and prompt embedding."""

import logging

import pytest

from tolerant_patch.editing.fences import (
    DEFAULT_FENCES,
    FencePair,
    FenceSelector,
    choose_best_fence,
    choose_existing_fence,
    choose_fence,
)

TICKS = "`" * 3

BACKTICK_RESPONSE = f"""\
app.py
{TICKS}python
<<<<<<< SEARCH
a = 1
=======
a = 2
>>>>>>> REPLACE
{TICKS}
"""

SOURCE_RESPONSE = """\
app.py
<source>
<<<<<<< SEARCH
a = 1
=======
a = 2
>>>>>>> REPLACE
</source>
"""


class TestCatalog:
    def test_default_order(self):
        assert [pair.open for pair in DEFAULT_FENCES] == [
            TICKS, "<code>", "<source>", "<pre>", "<codeblock>", "<sourcecode>",
        ]
        assert DEFAULT_FENCES[1].close == "</code>"

    def test_pairs_unpack_like_tuples(self):
        open_, close = DEFAULT_FENCES[2]
        assert (open_, close) == ("<source>", "</source>")

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValueError):
            FenceSelector([])

    def test_empty_token_rejected(self):
        with pytest.raises(ValueError):
            FenceSelector([("", "</x>")])

    def test_custom_catalog_accepts_plain_tuples(self):
        selector = FenceSelector([("<<", ">>")])
        assert selector.default == FencePair("<<", ">>")


class TestChooseFence:
    def test_plain_content_gets_backticks(self):
        assert choose_fence("print('hello')\n") == DEFAULT_FENCES[0]

    def test_skips_colliding_pair(self):
        content = f"Example:\n{TICKS}\ncode\n{TICKS}\n"
        assert choose_fence(content) == FencePair("<code>", "</code>")

    def test_close_token_alone_counts_as_collision(self):
        content = f"{TICKS}\ntext with </code> inside\n{TICKS}\n"
        assert choose_fence(content) == FencePair("<source>", "</source>")

    def test_falls_back_when_everything_collides(self, caplog):
        content = TICKS + "".join(f"{p.open}{p.close}" for p in DEFAULT_FENCES)
        with caplog.at_level(logging.WARNING):
            assert choose_fence(content) == DEFAULT_FENCES[0]
        assert "falling back" in caplog.text

    def test_best_fence_alias(self):
        assert choose_best_fence is choose_fence


class TestChooseExistingFence:
    def test_detects_backticks(self):
        assert choose_existing_fence(BACKTICK_RESPONSE) == DEFAULT_FENCES[0]

    def test_detects_tag_fence(self):
        assert choose_existing_fence(SOURCE_RESPONSE) == FencePair("<source>", "</source>")

    def test_no_edit_block_falls_back_to_default(self):
        assert choose_existing_fence("<code>x = 1</code>") == DEFAULT_FENCES[0]

    def test_unfenced_response_gets_default(self):
        assert choose_existing_fence("no fences here") == DEFAULT_FENCES[0]

    def test_skips_unrelated_backtick_block(self):
        response = f"Look:\n{TICKS}\nls -la\n{TICKS}\n\n" + BACKTICK_RESPONSE
        assert choose_existing_fence(response) == DEFAULT_FENCES[0]


class TestWrap:
    def test_wrap_uses_extension_tag(self):
        wrapped = FenceSelector().wrap("print('hi')", "src/app.py")
        assert wrapped == f"src/app.py\n{TICKS}py\nprint('hi')\n{TICKS}\n"

    def test_wrap_keeps_single_trailing_newline(self):
        wrapped = FenceSelector().wrap("x = 1\n", "a.py")
        assert wrapped == f"a.py\n{TICKS}py\nx = 1\n{TICKS}\n"

    def test_wrap_avoids_colliding_fence(self):
        wrapped = FenceSelector().wrap(f"x = '{TICKS}'\n", "notes.md")
        assert wrapped == f"notes.md\n<code>md\nx = '{TICKS}'\n</code>\n"

    def test_wrap_without_extension(self):
        wrapped = FenceSelector().wrap("all:\n", "Makefile")
        assert wrapped == f"Makefile\n{TICKS}\nall:\n{TICKS}\n"
