"""
Git integration — stage and commit the files an edit run modified.
"""

import subprocess


def _run_git(args: list[str], cwd: str | None = None) -> tuple[bool, str]:
    """Run a git command and return ``(success, output)``."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
        output = (result.stdout + result.stderr).strip()
        return result.returncode == 0, output
    except OSError as e:
        return False, str(e)


def is_git_repo(cwd: str | None = None) -> bool:
    """Return ``True`` if *cwd* is inside a git repository."""
    ok, output = _run_git(["rev-parse", "--is-inside-work-tree"], cwd)
    return ok and output.strip() == "true"


def stage_paths(paths: list[str], cwd: str | None = None) -> tuple[bool, str]:
    """Stage exactly *paths*."""
    if not paths:
        return True, ""
    return _run_git(["add", "--", *paths], cwd)


def commit_paths(paths: list[str], message: str,
                 cwd: str | None = None) -> tuple[bool, str]:
    """Stage *paths* and commit only them with *message*."""
    if not paths:
        return False, "nothing to commit"
    ok, output = stage_paths(paths, cwd)
    if not ok:
        return ok, output
    return _run_git(["commit", "-m", message, "--", *paths], cwd)
