"""Tests for diff previews and confirmation callbacks."""

import io

import pytest

from tolerant_patch import diff_display
from tolerant_patch.diff_display import (
    auto_confirm,
    build_preview,
    console_confirm,
    format_colored_diff,
    make_confirm,
    textual_confirm,
)


class TestBuildPreview:
    def test_unified_diff_headers(self):
        preview = build_preview("src/app.py", "a = 1\nb = 2\n", "a = 10\nb = 2\n")
        lines = preview.splitlines()
        assert lines[0] == "--- a/src/app.py"
        assert lines[1] == "+++ b/src/app.py"
        assert "-a = 1" in lines
        assert "+a = 10" in lines

    def test_new_file(self):
        preview = build_preview("new.py", "", "x = 1\n")
        assert "+x = 1" in preview.splitlines()

    def test_unchanged(self):
        preview = build_preview("same.py", "x\n", "x\n")
        assert "a/same.py" in preview
        assert "(no changes)" in preview

    def test_crlf_lines_shown_without_carriage_returns(self):
        preview = build_preview("w.txt", "a\r\n", "b\r\n")
        assert "\r" not in preview


class TestColoredDiff:
    def test_colors(self):
        colored = format_colored_diff("--- a/x\n+++ b/x\n@@ -1 +1 @@\n-old\n+new\n ctx")
        lines = colored.splitlines()
        assert lines[0].startswith("\033[1m")
        assert lines[2].startswith("\033[36m")
        assert lines[3] == "\033[31m-old\033[0m"
        assert lines[4] == "\033[32m+new\033[0m"
        assert lines[5] == " ctx"


class TestConsoleConfirm:
    @pytest.mark.parametrize("answer, expected", [
        ("y", True), ("YES", True), ("n", False), ("no", False),
    ])
    def test_answers(self, monkeypatch, answer, expected):
        monkeypatch.setattr("builtins.input", lambda prompt="": answer)
        assert console_confirm("--- a/x\n+++ b/x") is expected

    def test_reprompts_on_invalid(self, monkeypatch, capsys):
        answers = iter(["maybe", "y"])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
        assert console_confirm("diff") is True
        assert "Invalid choice" in capsys.readouterr().out

    def test_eof_means_no(self, monkeypatch):
        def _eof(prompt=""):
            raise EOFError

        monkeypatch.setattr("builtins.input", _eof)
        assert console_confirm("diff") is False


class TestOtherModes:
    def test_auto_confirm(self, caplog):
        with caplog.at_level("INFO"):
            assert auto_confirm("+added line") is True
        assert "+added line" in caplog.text

    def test_textual_without_tty_uses_console(self, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        calls = []
        monkeypatch.setattr(diff_display, "console_confirm",
                            lambda preview: calls.append(preview) or True)
        assert textual_confirm("diff text") is True
        assert calls == ["diff text"]

    def test_make_confirm(self):
        assert make_confirm("auto") is auto_confirm
        assert make_confirm("console") is console_confirm
        assert make_confirm("textual") is textual_confirm

    def test_make_confirm_unknown(self):
        with pytest.raises(ValueError):
            make_confirm("psychic")
