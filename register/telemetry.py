from __future__ import annotations

import logging
from dataclasses import dataclass


LOGGER = logging.getLogger("telemetry")


@dataclass(frozen=True)
class TimingRecord:
    method: str
    sequence: int
    elapsed_ms: float
    budget_ms: float
    good_matches: int


def log_timing(method: str, sequence: int, elapsed_ms: float, budget_ms: float, good_matches: int = 0) -> TimingRecord:
    record = TimingRecord(
        method=method,
        sequence=sequence,
        elapsed_ms=elapsed_ms,
        budget_ms=budget_ms,
        good_matches=good_matches,
    )
    LOGGER.info(
        "register.timing method=%s seq=%d elapsed_ms=%.3f budget_ms=%.3f good_matches=%d",
        record.method,
        record.sequence,
        record.elapsed_ms,
        record.budget_ms,
        record.good_matches,
    )
    if elapsed_ms > budget_ms:
        LOGGER.warning(
            "register.timing_budget_exceeded method=%s seq=%d elapsed_ms=%.3f budget_ms=%.3f",
            record.method,
            record.sequence,
            record.elapsed_ms,
            record.budget_ms,
        )
    return record
