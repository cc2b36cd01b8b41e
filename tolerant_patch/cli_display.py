import logging
import os
from datetime import datetime

from .editing.patch_applier import ApplyResult, OutcomeStatus

_STATUS_STYLE = {
    OutcomeStatus.APPLIED: ("\033[32m", "✔"),   # green
    OutcomeStatus.SKIPPED: ("\033[33m", "−"),   # yellow
    OutcomeStatus.FAILED: ("\033[31m", "✕"),    # red
}
_RESET = "\033[0m"


def setup_logger(log_dir: str = ".tolerant_patch/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    logger = logging.getLogger("tolerant_patch")
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return logger

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"patch_{timestamp}.log")

    logger.setLevel(logging.DEBUG)

    # File handler captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


def render_outcomes(result: ApplyResult, color: bool = True) -> list[str]:
    """One summary line per block outcome, for terminal output."""
    lines: list[str] = []
    for index, outcome in enumerate(result, start=1):
        colour, icon = _STATUS_STYLE[outcome.status]
        strategy = ""
        if outcome.match is not None and outcome.applied:
            strategy = f" [{outcome.match.strategy.value}]"
        text = f"  {icon} #{index} {outcome.describe()}{strategy}"
        lines.append(f"{colour}{text}{_RESET}" if color else text)
    return lines


def render_summary(result: ApplyResult) -> str:
    applied = len(result) - len(result.failed) - len(result.skipped)
    return (
        f"{applied} applied, {len(result.skipped)} skipped, "
        f"{len(result.failed)} failed"
    )
