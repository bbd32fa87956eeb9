"""Elapsed-time reporting for pipeline stages."""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def log_elapsed(label: str, log: logging.Logger | None = None) -> Iterator[None]:
    """Log how long the wrapped block took, even when it raises."""
    log = log or logger
    start_time = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log.info(f"{label} elapsed time: {elapsed_ms:.1f} ms")
