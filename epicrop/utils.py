"""Utility helpers for epicrop."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def timer(label: str = "") -> Generator[None, None, None]:
    """Context-manager timer. Logs elapsed time at DEBUG on exit."""
    start = time.perf_counter()
    yield
    elapsed = time.perf_counter() - start
    logger.debug("[%s] %.3fs", label or "elapsed", elapsed)
