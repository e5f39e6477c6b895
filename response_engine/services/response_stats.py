"""Running response statistics

Explicitly owned, lock-guarded counters and incremental means for the
orchestrator.  Every mutation happens under one ``threading.RLock`` so
concurrent turns (on one loop or several threads) keep the running-mean
invariant: after ``n`` successes each mean equals the arithmetic mean of the
``n`` recorded values.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class StatsSnapshot:
    total_requests: int
    successful_responses: int
    failed_responses: int
    average_processing_time_ms: float
    average_quality_score: float
    last_processing_time: float
    strategy_distribution: Dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.successful_responses / self.total_requests

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_responses": self.successful_responses,
            "failed_responses": self.failed_responses,
            "average_processing_time_ms": round(self.average_processing_time_ms, 3),
            "average_quality_score": round(self.average_quality_score, 4),
            "success_rate": round(self.success_rate, 4),
            "last_processing_time": self.last_processing_time,
            "strategy_distribution": dict(self.strategy_distribution),
        }


class ResponseStats:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._total_requests = 0
        self._successful = 0
        self._failed = 0
        self._avg_processing_ms = 0.0
        self._avg_quality = 0.0
        self._last_processing_time = time.time()
        self._strategies: Counter = Counter()

    def record_request(self) -> None:
        with self._lock:
            self._total_requests += 1

    def record_success(
        self,
        processing_time_ms: float,
        quality_score: Optional[float] = None,
        strategy: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._successful += 1
            n = self._successful
            self._avg_processing_ms += (max(0.0, float(processing_time_ms)) - self._avg_processing_ms) / n
            if quality_score is not None:
                self._avg_quality += (float(quality_score) - self._avg_quality) / n
            if strategy:
                self._strategies[strategy] += 1
            self._last_processing_time = time.time()

    def record_failure(self) -> None:
        with self._lock:
            self._failed += 1
            self._last_processing_time = time.time()

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                total_requests=self._total_requests,
                successful_responses=self._successful,
                failed_responses=self._failed,
                average_processing_time_ms=self._avg_processing_ms,
                average_quality_score=self._avg_quality,
                last_processing_time=self._last_processing_time,
                strategy_distribution=dict(self._strategies),
            )

    def reset(self) -> None:
        with self._lock:
            self._total_requests = 0
            self._successful = 0
            self._failed = 0
            self._avg_processing_ms = 0.0
            self._avg_quality = 0.0
            self._strategies.clear()
