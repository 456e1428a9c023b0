"""Run metrics, published to the log at the end of an export."""

from collections import Counter
from typing import Dict, List, Set

from bridgex.logging_config import get_logger
from bridgex.objects.worker_result import ExportSummary

logger = get_logger(__name__)


class Metrics:
    """Counters, unique-value sets and key/value lists for one run.

    Only the thread that collects worker results writes to this object.
    """

    def __init__(self) -> None:
        self.counters: Counter = Counter()
        self.set_counters: Dict[str, Set[str]] = {}
        self.key_values: Dict[str, List[str]] = {}

    def increment_counter(self, name: str, amount: int = 1) -> None:
        self.counters[name] += amount

    def add_set_values(self, name: str, values: List[str]) -> None:
        self.set_counters.setdefault(name, set()).update(values)

    def add_key_value(self, name: str, value: str) -> None:
        self.key_values.setdefault(name, []).append(value)

    def record_summary(self, summary: ExportSummary) -> None:
        self.increment_counter("skippedRecords", summary.skipped_records)
        for table_key, reason in summary.provisioning_failures.items():
            self.add_key_value("provisioningFailures", f"{table_key}: {reason}")
        for result in summary.results:
            self.increment_counter(f"lineCount[{result.table_key}]", result.line_count)
            self.increment_counter(f"errorCount[{result.table_key}]", result.error_count)
            self.add_key_value("uploadTimeSeconds", f"{result.table_key}={result.upload_seconds:.1f}")
            if result.failed:
                self.add_key_value("failedTables", result.table_key)
            for name, values in result.extra_metrics.items():
                self.add_set_values(name, values)


def publish_metrics(metrics: Metrics) -> None:
    for name, count in sorted(metrics.counters.items()):
        logger.info(f"{name}: {count}")
    for name, values in sorted(metrics.set_counters.items()):
        logger.info(f"{name}: {len(values)} ({', '.join(sorted(values))})")
    for name, values in sorted(metrics.key_values.items()):
        logger.info(f"{name}: {', '.join(values)}")
