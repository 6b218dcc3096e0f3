"""Metrics exporter for observability."""
import json
import time
from pathlib import Path
from typing import Any, Dict
import aiofiles

from coverage_sync.config import METRICS_FILE


class MetricsExporter:
    """Appends one JSON line per run to ``metrics.jsonl``."""

    def __init__(self, run_id: str, metrics_file: Path = METRICS_FILE):
        self.run_id = run_id
        self.metrics_file = Path(metrics_file)

    async def export_metrics(self, state: str, summary: Dict[str, Any]) -> None:
        """Export metrics to JSONL file."""
        metrics = {
            "ts": time.time(),
            "run_id": self.run_id,
            "state": state,
            **summary,
        }

        line = json.dumps(metrics, default=str) + "\n"
        self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.metrics_file, "a") as f:
            await f.write(line)


def read_recent(metrics_file: Path = METRICS_FILE, limit: int = 100) -> list[dict]:
    """Last ``limit`` exported lines, oldest first."""
    if not metrics_file.exists():
        return []
    lines = []
    with open(metrics_file, "r") as f:
        for line in f:
            if line.strip():
                lines.append(json.loads(line))
    return lines[-limit:]
