"""
Learning Store & Feedback Channel

The learning store owns the quality baseline (population mean / standard
deviation of graded scores).  Graders never write to it directly: they enqueue
samples on a bounded :class:`FeedbackChannel` whose background worker forwards
each sample to the store and to the quality predictor's ``learn`` hook.
Submission never awaits delivery and drops samples when the queue is full.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

import numpy as np
import structlog

from response_engine.core.config import FEEDBACK_QUEUE_MAXSIZE, QUALITY_HISTORY_LIMIT
from response_engine.models.analysis import QualityBaseline
from response_engine.utils.async_utils import call_collaborator
from response_engine.utils.error_handling import log_exception, safely
from response_engine.utils.text_utils import clamp_unit

logger = structlog.get_logger(__name__)

DEFAULT_BASELINE_AVERAGE = 0.5
DEFAULT_BASELINE_STD_DEV = 0.1


@dataclass
class FeedbackSample:
    """One graded response headed for the learning store"""

    text: str
    user_id: Optional[str]
    score: float
    timestamp: datetime
    observed: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "user_id": self.user_id,
            "score": self.score,
            "observed_score": self.observed,
            "metadata": {"user_id": self.user_id},
            "timestamp": self.timestamp.isoformat(),
        }


class InMemoryLearningStore:
    """Bounded in-process store of graded scores.

    The baseline is recomputed from the retained window on every read; with no
    samples it is ``{average: 0.5, std_dev: 0.1}``.
    """

    def __init__(self, history_limit: int = QUALITY_HISTORY_LIMIT):
        self._scores: Deque[float] = deque(maxlen=max(1, int(history_limit)))
        self._samples: Deque[Dict[str, Any]] = deque(maxlen=max(1, int(history_limit)))
        self._lock = threading.Lock()

    def get_quality_baseline(self) -> QualityBaseline:
        with self._lock:
            scores = list(self._scores)
        if not scores:
            return QualityBaseline(
                average=DEFAULT_BASELINE_AVERAGE,
                std_dev=DEFAULT_BASELINE_STD_DEV,
                count=0,
            )
        values = np.asarray(scores, dtype=float)
        return QualityBaseline(
            average=float(values.mean()),
            std_dev=float(values.std()),
            count=len(scores),
        )

    def record_feedback(self, sample: Dict[str, Any]) -> None:
        score = clamp_unit(sample.get("score"))
        with self._lock:
            self._scores.append(score)
            self._samples.append(dict(sample, score=score))

    def recent_samples(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._samples)[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._scores)


class FeedbackChannel:
    """Bounded fire-and-forget outbound queue to the learning collaborators"""

    def __init__(
        self,
        store: Any,
        predictor: Any = None,
        *,
        maxsize: int = FEEDBACK_QUEUE_MAXSIZE,
    ):
        self.store = store
        self.predictor = predictor
        self._maxsize = max(1, int(maxsize))
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self.submitted = 0
        self.delivered = 0
        self.dropped = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _ensure_started(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        if self._queue is None or self._loop is not loop:
            # A queue is bound to the loop that first uses it
            self._queue = asyncio.Queue(maxsize=self._maxsize)
            self._loop = loop
            self._task = None
        if not self.running:
            self._task = loop.create_task(self._worker(self._queue), name="feedback_channel_worker")
        return self._queue

    async def start(self) -> None:
        """Start the delivery worker (also started lazily by ``submit``)."""
        self._ensure_started()
        logger.info("Feedback channel started", maxsize=self._maxsize)

    def submit(
        self,
        text: str,
        user_id: Optional[str],
        score: float,
        observed: Optional[float] = None,
    ) -> bool:
        """Enqueue a sample without waiting; returns False when it was dropped.

        ``observed`` is an outcome measured independently of ``score`` (the
        weighted response metrics) that predictors calibrate against.
        """
        sample = FeedbackSample(
            text=text,
            user_id=user_id,
            score=clamp_unit(score),
            timestamp=datetime.now(timezone.utc),
            observed=None if observed is None else clamp_unit(observed),
        )
        queue = self._ensure_started()
        try:
            queue.put_nowait(sample)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "feedback_dropped_queue_full",
                maxsize=self._maxsize,
                dropped=self.dropped,
            )
            return False
        self.submitted += 1
        return True

    async def _deliver(self, sample: FeedbackSample) -> None:
        payload = sample.as_dict()
        try:
            await call_collaborator(self.store.record_feedback, payload)
        except Exception as exc:
            self.failed += 1
            log_exception("learning_store_submission_failed", exc, user_id=sample.user_id)
            return

        if self.predictor is not None and hasattr(self.predictor, "learn"):
            with safely("quality_predictor_learning_failed", non_fatal=True, user_id=sample.user_id):
                await call_collaborator(self.predictor.learn, payload, sample.score)
        self.delivered += 1

    async def _worker(self, queue: asyncio.Queue) -> None:
        while True:
            sample = await queue.get()
            try:
                await self._deliver(sample)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every sample submitted so far has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Deliver what is queued, then stop the worker."""
        if self._task is None:
            return
        try:
            await self.drain()
        finally:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(
            "Feedback channel stopped",
            delivered=self.delivered,
            dropped=self.dropped,
            failed=self.failed,
        )

    def stats(self) -> Dict[str, int]:
        return {
            "submitted": self.submitted,
            "delivered": self.delivered,
            "dropped": self.dropped,
            "failed": self.failed,
            "pending": self._queue.qsize() if self._queue is not None else 0,
        }
