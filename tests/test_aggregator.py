"""
Tests for the join barrier and the match aggregator.
"""

import threading

import pytest

from secretscan.scanner.aggregator import MatchAggregator, WaitGroup
from secretscan.scanner.models import FileError, Match


def _match(path: str, line: int = 1) -> Match:
    return Match(rule_id="r", path=path, line_number=line, line_text="x")


class TestWaitGroup:
    """Test WaitGroup counting semantics."""

    def test_wait_returns_immediately_at_zero(self):
        assert WaitGroup().wait(timeout=0.1)

    def test_negative_count_rejected(self):
        group = WaitGroup()

        with pytest.raises(ValueError):
            group.done()

    def test_wait_times_out_with_outstanding_work(self):
        group = WaitGroup()
        group.add()

        assert not group.wait(timeout=0.05)
        assert group.count == 1

    def test_wait_released_when_all_done(self):
        group = WaitGroup()
        group.add(8)

        threads = [threading.Thread(target=group.done) for _ in range(8)]
        for thread in threads:
            thread.start()

        assert group.wait(timeout=5)
        for thread in threads:
            thread.join()
        assert group.count == 0


class TestMatchAggregator:
    """Test MatchAggregator collection and lifecycle."""

    def test_collects_from_many_publishers(self):
        aggregator = MatchAggregator(channel_size=4)
        aggregator.start()

        def publish(worker: int) -> None:
            for i in range(50):
                aggregator.publish_match(_match(f"w{worker}", i))
                aggregator.publish_file_done(f"w{worker}/{i}")

        threads = [threading.Thread(target=publish, args=(w,)) for w in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        aggregator.close()
        result = aggregator.finalize(duration_seconds=1.5)

        assert len(result.matches) == 200
        assert result.files_scanned == 200
        assert result.duration_seconds == 1.5
        assert not result.cancelled

    def test_errors_are_collected_separately(self):
        aggregator = MatchAggregator()
        aggregator.start()
        aggregator.publish_error(FileError(path="a", message="denied"))
        aggregator.publish_match(_match("b"))
        aggregator.close()

        result = aggregator.finalize()

        assert result.error_count == 1
        assert result.errors[0].path == "a"
        assert result.files_scanned == 0
        assert len(result.matches) == 1

    def test_preserves_publish_order_from_one_thread(self):
        aggregator = MatchAggregator()
        aggregator.start()
        for i in range(10):
            aggregator.publish_match(_match("a", i))
        aggregator.close()

        result = aggregator.finalize()

        assert [m.line_number for m in result.matches] == list(range(10))

    def test_finalize_before_close_rejected(self):
        aggregator = MatchAggregator()
        aggregator.start()

        with pytest.raises(RuntimeError):
            aggregator.finalize()

        aggregator.close()

    def test_publish_after_close_rejected(self):
        aggregator = MatchAggregator()
        aggregator.start()
        aggregator.close()

        with pytest.raises(RuntimeError):
            aggregator.publish_match(_match("late"))

    def test_close_without_start_drains_inline(self):
        aggregator = MatchAggregator()
        aggregator.publish_match(_match("a"))
        aggregator.close()

        assert len(aggregator.finalize().matches) == 1

    def test_close_is_idempotent(self):
        aggregator = MatchAggregator()
        aggregator.start()
        aggregator.close()
        aggregator.close()

        assert aggregator.finalize(cancelled=True).cancelled

    def test_invalid_channel_size(self):
        with pytest.raises(ValueError):
            MatchAggregator(channel_size=0)
