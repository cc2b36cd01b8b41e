"""Tests for the tolerant-patch command line."""

import io
import json
import logging

import pytest

from tolerant_patch.cli import EXIT_INCOMPLETE, EXIT_NO_BLOCKS, EXIT_OK, main
from tolerant_patch.editing.block_parser import EditBlock, render_block
from tolerant_patch.editing.fences import DEFAULT_FENCES, FencePair

TICKS = "`" * 3


@pytest.fixture(autouse=True)
def project(tmp_path, monkeypatch):
    """Run every command inside a throwaway project directory."""
    for key in ("PATCH_CONFIRM_MODE", "PATCH_RECORD_METRICS", "PATCH_METRICS_DIR",
                "PATCH_LOG_DIR", "PATCH_SIMILARITY_THRESHOLD"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    (tmp_path / "app.py").write_text("from flask import Flask\n")
    yield tmp_path
    _close_file_handlers()


def _file_handlers() -> list[logging.FileHandler]:
    logger = logging.getLogger("tolerant_patch")
    return [h for h in logger.handlers if isinstance(h, logging.FileHandler)]


def _close_file_handlers() -> None:
    for handler in _file_handlers():
        logging.getLogger("tolerant_patch").removeHandler(handler)
        handler.close()


def _response(project, *blocks: EditBlock, fence: FencePair = DEFAULT_FENCES[0]) -> str:
    path = project / "response.md"
    path.write_text("Here you go.\n\n" + "\n".join(render_block(b, fence) for b in blocks))
    return str(path)


FLASK = EditBlock("app.py", "from flask import Flask\n", "import math\nfrom flask import Flask\n")
MISSING = EditBlock("app.py", "class NotThere:\n    pass\n", "x = 1\n")


class TestApply:
    def test_applies_and_exits_zero(self, project, capsys):
        code = main(["apply", _response(project, FLASK), "--yes"])
        assert code == EXIT_OK
        assert (project / "app.py").read_text() == "import math\nfrom flask import Flask\n"
        assert "1 applied, 0 skipped, 0 failed" in capsys.readouterr().out

    def test_failure_exits_one_and_reports(self, project, capsys):
        code = main(["apply", _response(project, MISSING), "--yes", "--report"])
        assert code == EXIT_INCOMPLETE
        out = capsys.readouterr().out
        assert "0 applied, 0 skipped, 1 failed" in out
        assert "SEARCH/REPLACE block failed to match!" in out

    def test_no_blocks_exits_two(self, project, capsys):
        path = project / "prose.md"
        path.write_text("Nothing to change here.\n")
        assert main(["apply", str(path), "--yes"]) == EXIT_NO_BLOCKS
        assert "No SEARCH/REPLACE blocks" in capsys.readouterr().err

    def test_unreadable_response_exits_two(self, project):
        assert main(["apply", str(project / "missing.md"), "--yes"]) == EXIT_NO_BLOCKS

    def test_reads_stdin(self, project, monkeypatch):
        text = render_block(FLASK, DEFAULT_FENCES[0])
        monkeypatch.setattr("sys.stdin", io.StringIO(text))
        assert main(["apply", "-", "--yes"]) == EXIT_OK
        assert (project / "app.py").read_text().startswith("import math\n")

    def test_dry_run_leaves_files(self, project):
        code = main(["apply", _response(project, FLASK), "--yes", "--dry-run"])
        assert code == EXIT_OK
        assert (project / "app.py").read_text() == "from flask import Flask\n"
        assert not (project / ".tolerant_patch" / "edit_metrics.jsonl").exists()

    def test_explicit_fence(self, project):
        fence = FencePair("<source>", "</source>")
        response = _response(project, FLASK, fence=fence)
        code = main(["apply", response, "--yes", "--fence", "<source>", "</source>"])
        assert code == EXIT_OK

    def test_base_directory(self, project):
        sub = project / "sub"
        sub.mkdir()
        (sub / "app.py").write_text("from flask import Flask\n")
        main(["apply", _response(project, FLASK), "--yes", "--base", str(sub)])
        assert (sub / "app.py").read_text().startswith("import math\n")
        assert (project / "app.py").read_text() == "from flask import Flask\n"

    def test_console_decline(self, project, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt="": "n")
        code = main(["apply", _response(project, FLASK), "--confirm", "console"])
        assert code == EXIT_INCOMPLETE
        assert (project / "app.py").read_text() == "from flask import Flask\n"

    def test_config_file_confirm_mode(self, project):
        config = project / "patch.yaml"
        config.write_text("confirm_mode: auto\n")
        code = main(["--config", str(config), "apply", _response(project, FLASK)])
        assert code == EXIT_OK

    def test_config_after_subcommand(self, project):
        config = project / "patch.yaml"
        config.write_text("confirm_mode: auto\n")
        code = main(["apply", _response(project, FLASK), "--config", str(config)])
        assert code == EXIT_OK
        assert (project / "app.py").read_text().startswith("import math\n")

    def test_repeated_runs_share_one_log_handler(self, project):
        main(["apply", _response(project, FLASK), "--yes"])
        main(["apply", _response(project, MISSING), "--yes"])
        assert len(_file_handlers()) == 1


class TestMetricsAndStats:
    def test_metrics_recorded_then_reported(self, project, capsys):
        main(["apply", _response(project, FLASK), "--yes"])
        capsys.readouterr()

        assert main(["stats"]) == EXIT_OK
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_edits"] == 1
        assert stats["success_rate"] == 100.0
        assert stats["strategies"] == {"exact": 100.0}

    def test_no_metrics_flag(self, project):
        main(["apply", _response(project, FLASK), "--yes", "--no-metrics"])
        assert not (project / ".tolerant_patch" / "edit_metrics.jsonl").exists()


class TestEmbed:
    def test_embed_file(self, project, capsys):
        assert main(["embed", "app.py"]) == EXIT_OK
        assert capsys.readouterr().out == f"app.py\n{TICKS}py\nfrom flask import Flask\n{TICKS}\n"

    def test_embed_with_display_name(self, project, capsys):
        main(["embed", "app.py", "--as", "src/server.py"])
        assert capsys.readouterr().out.startswith("src/server.py\n")

    def test_embed_missing_file(self, project):
        assert main(["embed", "nope.py"]) == EXIT_NO_BLOCKS
