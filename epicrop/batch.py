"""Batch runs over many locations or parameter sets.

Each job is an independent simulate() call with its own weather and
parameters; jobs share no mutable state, so they can run on a thread
pool. Results come back keyed by job label, in job order.

A failing job propagates its error to the caller; no partial batch is
returned.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Sequence

from epicrop.config import SimulationParameters
from epicrop.model import SimulationResult, simulate
from epicrop.utils import timer
from epicrop.weather import WeatherRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchJob:
    """One simulation in a batch."""
    label: str
    weather: WeatherRecord
    params: SimulationParameters


def _run_job(job: BatchJob) -> SimulationResult:
    logger.debug("running batch job %s", job.label)
    return simulate(job.weather, job.params)


def run_batch(jobs: Sequence[BatchJob],
              max_workers: int = 1) -> Dict[str, SimulationResult]:
    """Run every job and return {label: result}.

    Args:
        jobs: Jobs with unique labels.
        max_workers: 1 runs serially in the calling thread; >1 uses a
            ThreadPoolExecutor with that many workers.

    Raises:
        ValueError: Duplicate labels or max_workers < 1.
        EpicropError: The first failing job's error, re-raised.
    """
    labels = [job.label for job in jobs]
    if len(set(labels)) != len(labels):
        raise ValueError("batch job labels must be unique")
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    with timer(f"batch of {len(jobs)}"):
        if max_workers == 1:
            results = [_run_job(job) for job in jobs]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                results = list(pool.map(_run_job, jobs))
    return dict(zip(labels, results))
