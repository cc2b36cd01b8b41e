"""Tests for log setup and outcome rendering."""

import logging
import os

from tolerant_patch.cli_display import render_outcomes, render_summary, setup_logger
from tolerant_patch.editing.match_locator import MatchResult, MatchStrategy
from tolerant_patch.editing.patch_applier import ApplyResult, OutcomeStatus, PatchOutcome


def _result() -> ApplyResult:
    return ApplyResult([
        PatchOutcome(OutcomeStatus.APPLIED, "a.py",
                     match=MatchResult(MatchStrategy.FUZZY, (0, 4), 0.9)),
        PatchOutcome(OutcomeStatus.SKIPPED, "b.py", "user declined edit"),
        PatchOutcome(OutcomeStatus.FAILED, "c.py", "no matching region (best similarity 0.42)"),
    ])


class TestSetupLogger:
    def test_creates_log_file(self, tmp_path):
        log_dir = tmp_path / "logs"
        logger = setup_logger(str(log_dir))
        try:
            assert logger.name == "tolerant_patch"
            files = os.listdir(log_dir)
            assert len(files) == 1
            assert files[0].startswith("patch_") and files[0].endswith(".log")

            logging.getLogger("tolerant_patch.editing.pipeline").debug("hello from test")
            for handler in logger.handlers:
                handler.flush()
            assert "hello from test" in (log_dir / files[0]).read_text()
        finally:
            for handler in list(logger.handlers):
                if isinstance(handler, logging.FileHandler):
                    logger.removeHandler(handler)
                    handler.close()

    def test_second_call_adds_no_handler(self, tmp_path):
        first = setup_logger(str(tmp_path / "one"))
        try:
            setup_logger(str(tmp_path / "two"))
            handlers = [h for h in first.handlers if isinstance(h, logging.FileHandler)]
            assert len(handlers) == 1
            assert not (tmp_path / "two").exists()
        finally:
            for handler in list(first.handlers):
                if isinstance(handler, logging.FileHandler):
                    first.removeHandler(handler)
                    handler.close()


class TestRenderOutcomes:
    def test_one_line_per_outcome(self):
        lines = render_outcomes(_result(), color=False)
        assert len(lines) == 3
        assert "#1 applied: a.py [fuzzy]" in lines[0]
        assert "skipped: b.py (user declined edit)" in lines[1]
        assert "failed: c.py (no matching region" in lines[2]

    def test_colored(self):
        lines = render_outcomes(_result())
        assert lines[0].startswith("\033[32m")
        assert lines[2].startswith("\033[31m")

    def test_summary(self):
        assert render_summary(_result()) == "1 applied, 1 skipped, 1 failed"
