"""Metrics tracking for a sync run."""
import time
import logging
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)


class Metrics:
    """Counters for one run plus elapsed time."""

    def __init__(self):
        self.start_time = time.time()
        self.counters: Dict[str, int] = defaultdict(int)

    def increment(self, key: str, amount: int = 1) -> None:
        """Increment a counter."""
        self.counters[key] += amount

    def merge(self, prefix: str, values: Dict[str, int]) -> None:
        """Fold a component's counters in under ``prefix``."""
        for key, value in values.items():
            self.increment(f"{prefix}_{key}", value)

    def elapsed(self) -> float:
        return time.time() - self.start_time

    def report(self) -> None:
        """Log current metrics."""
        logger.info(
            f"API calls: {self.counters.get('api_calls', 0)} | "
            f"Purchases added: {self.counters.get('compras_added', 0)} "
            f"(cache hits: {self.counters.get('compras_cache_hits', 0)}) | "
            f"Sales added: {self.counters.get('vendas_added', 0)} "
            f"(cache hits: {self.counters.get('vendas_cache_hits', 0)}) | "
            f"SKUs: {self.counters.get('skus_reconciled', 0)} | "
            f"Failed calls: {self.counters.get('failed_calls', 0)}"
        )

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        return {**self.counters, "elapsed_seconds": round(self.elapsed(), 2)}
