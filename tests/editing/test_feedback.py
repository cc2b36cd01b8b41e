"""Tests for the failed-match report."""

from tolerant_patch.editing.block_parser import EditBlock, render_block
from tolerant_patch.editing.feedback import format_failure_report
from tolerant_patch.editing.fences import DEFAULT_FENCES
from tolerant_patch.editing.pipeline import parse_and_apply

FENCE = DEFAULT_FENCES[0]

SOURCE = """\
def helper():
    return 42


def other():
    pass
"""


def _approve(preview: str) -> bool:
    return True


def _run(tmp_path, *blocks: EditBlock):
    (tmp_path / "a.py").write_text(SOURCE)
    response = "\n".join(render_block(b, FENCE) for b in blocks)
    return parse_and_apply(response, str(tmp_path), _approve)


class TestFailureReport:
    def test_empty_when_everything_applied(self, tmp_path):
        result = _run(tmp_path, EditBlock("a.py", "    return 42\n", "    return 43\n"))
        assert result.success
        assert format_failure_report(result, FENCE) == ""

    def test_reports_failed_block(self, tmp_path):
        block = EditBlock("a.py", "class Nothing:\n    x = 1\n", "class Nothing:\n    x = 2\n")
        result = _run(tmp_path, block)
        report = format_failure_report(result, FENCE)

        assert report.startswith("# 1 SEARCH/REPLACE block failed to match!")
        assert "<<<<<<< SEARCH\nclass Nothing:\n    x = 1\n=======" in report
        assert "Best similarity found:" in report
        assert "must exactly match" in report

    def test_did_you_mean_hint(self, tmp_path):
        block = EditBlock(
            "a.py",
            "def helper():\n    value = compute_value_here()\n    return 42\n",
            "def helper():\n    return 0\n",
        )
        report = format_failure_report(_run(tmp_path, block), FENCE)
        assert "Did you mean to match some of these actual lines from a.py?" in report
        assert f"{FENCE.open}\ndef helper():" in report

    def test_replacement_already_present(self, tmp_path):
        block = EditBlock(
            "a.py",
            "def completely_different_function_name(arguments):\n    return None\n",
            "def other():\n    pass\n",
        )
        report = format_failure_report(_run(tmp_path, block), FENCE)
        assert "Are you sure you need this SEARCH/REPLACE block?" in report
        assert "The REPLACE lines are already in a.py!" in report

    def test_counts_applied_blocks(self, tmp_path):
        good = EditBlock("a.py", "    pass\n", "    return None\n")
        bad = EditBlock("a.py", "import nothing_here\n", "import os\n")
        report = format_failure_report(_run(tmp_path, good, bad), FENCE)
        assert report.startswith("# 1 SEARCH/REPLACE block failed")
        assert "The other 1 SEARCH/REPLACE block was applied successfully." in report

    def test_counts_several_applied_blocks(self, tmp_path):
        first = EditBlock("a.py", "    pass\n", "    return None\n")
        second = EditBlock("a.py", "    return 42\n", "    return 43\n")
        bad = EditBlock("a.py", "import nothing_here\n", "import os\n")
        report = format_failure_report(_run(tmp_path, first, second, bad), FENCE)
        assert "The other 2 SEARCH/REPLACE blocks were applied successfully." in report

    def test_hint_fence_avoids_backticks_in_file(self, tmp_path):
        (tmp_path / "doc.py").write_text(
            "def helper():\n"
            '    """Example:\n'
            "\n"
            "    ```\n"
            "    helper()\n"
            "    ```\n"
            '    """\n'
            "    return 42\n"
        )
        block = EditBlock(
            "doc.py",
            "def helper():\n"
            '    """Example:\n'
            "\n"
            "    ```\n"
            "    helper_with_a_very_long_name_that_does_not_exist(alpha, beta)\n"
            "    ```\n"
            '    """\n'
            "    return compute_the_answer_to_everything_with_a_long_name(1, 2, 3)\n",
            "def helper():\n    return 0\n",
        )
        response = render_block(block, FENCE)
        result = parse_and_apply(response, str(tmp_path), _approve, fence=FENCE)
        report = format_failure_report(result, FENCE)

        hint_section = report.split("actual lines from doc.py?\n\n", 1)[1]
        assert hint_section.startswith("<code>\ndef helper():")
        assert "    ```\n    helper()\n    ```\n" in hint_section
        assert "</code>\n" in hint_section
