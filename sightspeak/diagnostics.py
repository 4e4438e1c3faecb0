"""
Diagnostics and monitoring for SightSpeak
"""

import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import config

# Rich console for pretty output
console = Console()


def enable_diagnostics(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format: str = "%(message)s",
    use_rich: bool = True,
):
    """Enable logging with the configured level and handlers.

    Level and log file default to ``SS_LOG_LEVEL`` / ``SS_LOG_FILE``.
    """
    level = level or config.get("SS_LOG_LEVEL", "INFO")
    log_file = log_file if log_file is not None else config.get("SS_LOG_FILE", "")
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    if getattr(root_logger, "_sightspeak_configured", False):
        root_logger.setLevel(log_level)
        logging.getLogger("sightspeak").setLevel(log_level)
        return

    if use_rich:
        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False
        )
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format))

    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)
    root_logger._sightspeak_configured = True

    if log_file:
        try:
            fh = logging.FileHandler(log_file)
        except OSError:
            fh = logging.NullHandler()
        fh.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root_logger.addHandler(fh)

    logging.getLogger("sightspeak").setLevel(log_level)


class Metrics:
    """Timing metrics for named operations"""

    def __init__(self):
        self._metrics = defaultdict(lambda: {
            'processed': 0,
            'errors': 0,
            'total_time': 0.0,
            'min_time': float('inf'),
            'max_time': 0.0,
            'last_update': None
        })
        self._lock = threading.Lock()

    @contextmanager
    def track(self, name: str):
        """Context manager to track metrics for a named operation"""
        start_time = time.time()
        error = False

        try:
            yield
        except BaseException:
            error = True
            raise
        finally:
            elapsed = time.time() - start_time

            with self._lock:
                metric = self._metrics[name]
                metric['processed'] += 1
                if error:
                    metric['errors'] += 1
                metric['total_time'] += elapsed
                metric['min_time'] = min(metric['min_time'], elapsed)
                metric['max_time'] = max(metric['max_time'], elapsed)
                metric['last_update'] = datetime.now()

    def get_stats(self, name: str) -> Dict[str, Any]:
        """Get statistics for a named metric"""
        with self._lock:
            if name not in self._metrics:
                return {}
            stats = self._metrics[name].copy()

        if stats['processed'] > 0:
            stats['avg_time'] = stats['total_time'] / stats['processed']
        else:
            stats['avg_time'] = 0.0
        return stats

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get statistics for all tracked metrics"""
        with self._lock:
            names = list(self._metrics.keys())
        return {name: self.get_stats(name) for name in names}

    def reset(self):
        """Reset all metrics"""
        with self._lock:
            self._metrics.clear()

    def print_summary(self):
        """Print metrics summary table"""
        table = Table(title="SightSpeak Metrics")
        table.add_column("Operation", style="cyan")
        table.add_column("Count", justify="right")
        table.add_column("Errors", justify="right", style="red")
        table.add_column("Avg (ms)", justify="right")
        table.add_column("Max (ms)", justify="right")

        for name, stats in self.get_all_stats().items():
            table.add_row(
                name,
                str(stats['processed']),
                str(stats['errors']),
                f"{stats['avg_time'] * 1000:.1f}",
                f"{stats['max_time'] * 1000:.1f}",
            )

        console.print(table)
