import threading

import pytest

from response_engine.services.response_stats import ResponseStats


def test_running_means_match_arithmetic_means():
    stats = ResponseStats()
    times = [12.0, 30.0, 18.0, 40.0]
    scores = [0.4, 0.9, 0.6, 0.7]
    for t, s in zip(times, scores):
        stats.record_request()
        stats.record_success(t, s, "balanced")

    snapshot = stats.snapshot()
    assert snapshot.average_processing_time_ms == pytest.approx(sum(times) / len(times))
    assert snapshot.average_quality_score == pytest.approx(sum(scores) / len(scores))
    assert snapshot.success_rate == 1.0


def test_failures_do_not_move_means():
    stats = ResponseStats()
    stats.record_request()
    stats.record_success(10.0, 0.8)
    stats.record_request()
    stats.record_failure()

    snapshot = stats.snapshot()
    assert snapshot.total_requests == 2
    assert snapshot.failed_responses == 1
    assert snapshot.average_processing_time_ms == pytest.approx(10.0)
    assert snapshot.average_quality_score == pytest.approx(0.8)
    assert snapshot.success_rate == pytest.approx(0.5)


def test_concurrent_updates_keep_invariant():
    stats = ResponseStats()

    def worker(value):
        for _ in range(200):
            stats.record_request()
            stats.record_success(value, value / 100.0)

    threads = [threading.Thread(target=worker, args=(v,)) for v in (10.0, 20.0, 30.0, 40.0)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snapshot = stats.snapshot()
    assert snapshot.total_requests == 800
    assert snapshot.successful_responses == 800
    assert snapshot.average_processing_time_ms == pytest.approx(25.0)
    assert snapshot.average_quality_score == pytest.approx(0.25)


def test_snapshot_dict_and_reset():
    stats = ResponseStats()
    stats.record_request()
    stats.record_success(5.0, 0.5, "technical")
    data = stats.snapshot().as_dict()
    assert data["strategy_distribution"] == {"technical": 1}
    assert data["success_rate"] == 1.0

    stats.reset()
    assert stats.snapshot().total_requests == 0
    assert stats.snapshot().success_rate == 0.0
