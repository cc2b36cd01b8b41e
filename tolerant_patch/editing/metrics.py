"""
Edit metrics — tracks how edit blocks resolve in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DEFAULT_METRICS_DIR = ".tolerant_patch"
_METRICS_FILE = "edit_metrics.jsonl"


def _metrics_path(
    project_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> str:
    """Return the absolute path to the metrics file."""
    base = project_root or os.getcwd()
    return os.path.join(base, metrics_dir, _METRICS_FILE)


def log_edit_metric(
    data: dict,
    project_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> None:
    """Append a single edit metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (file, status, strategy, score, reason).
    project_root:
        Optional project root directory. Defaults to CWD.
    metrics_dir:
        Directory under *project_root* holding the log.
    """
    path = _metrics_path(project_root, metrics_dir)

    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Metrics] Failed to write metrics: %s", exc)


def _read_entries(path: str) -> list[dict]:
    entries: list[dict] = []
    if not os.path.isfile(path):
        return entries
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(entry, dict):
                    entries.append(entry)
    except OSError as exc:
        logger.warning("[Metrics] Failed to read metrics: %s", exc)
    return entries


def read_edit_stats(
    last_n: int = 50,
    project_root: str | None = None,
    metrics_dir: str = DEFAULT_METRICS_DIR,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    last_n:
        Number of most-recent entries to include.
    project_root:
        Optional project root directory.
    metrics_dir:
        Directory under *project_root* holding the log.

    Returns
    -------
    dict
        total_edits, success_rate, skip_rate, failure_rate (percent),
        avg_fuzzy_score and the percentage share of each strategy.
    """
    entries = _read_entries(_metrics_path(project_root, metrics_dir))
    if last_n > 0:
        entries = entries[-last_n:]

    if not entries:
        return {
            "total_edits": 0,
            "success_rate": 0.0,
            "skip_rate": 0.0,
            "failure_rate": 0.0,
            "avg_fuzzy_score": 0.0,
            "strategies": {},
        }

    total = len(entries)
    statuses = Counter(e.get("status", "unknown") for e in entries)
    fuzzy_scores = [
        e["score"] for e in entries
        if e.get("strategy") == "fuzzy" and isinstance(e.get("score"), (int, float))
    ]
    strategies = Counter(e.get("strategy", "unknown") for e in entries)

    return {
        "total_edits": total,
        "success_rate": statuses["applied"] / total * 100,
        "skip_rate": statuses["skipped"] / total * 100,
        "failure_rate": statuses["failed"] / total * 100,
        "avg_fuzzy_score": (
            sum(fuzzy_scores) / len(fuzzy_scores)
            if fuzzy_scores else 0.0
        ),
        "strategies": {
            strategy: count / total * 100
            for strategy, count in strategies.most_common()
        },
    }
