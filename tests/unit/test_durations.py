"""Tests for duration percentiles and buckets."""

import pytest

from histreport.analysis.durations import (
    MAX_BUCKETS,
    duration_buckets,
    nearest_rank,
    percentiles,
)


class TestNearestRank:
    """Tests for nearest-rank percentiles."""

    def test_p95_of_three_samples(self) -> None:
        """Test that p95 over [10, 20, 30] is the top sample."""
        assert nearest_rank([10, 20, 30], 95) == 30

    def test_single_sample(self) -> None:
        for p in (1, 50, 99, 100):
            assert nearest_rank([42], p) == 42

    def test_two_samples(self) -> None:
        assert nearest_rank([10, 20], 50) == 10
        assert nearest_rank([10, 20], 51) == 20

    def test_unsorted_input(self) -> None:
        assert nearest_rank([30, 10, 20], 50) == 20

    def test_exact_ranks(self) -> None:
        samples = list(range(1, 101))

        assert nearest_rank(samples, 50) == 50
        assert nearest_rank(samples, 90) == 90
        assert nearest_rank(samples, 99) == 99
        assert nearest_rank(samples, 100) == 100

    def test_no_interpolation(self) -> None:
        assert nearest_rank([0, 1000], 75) == 1000

    def test_empty_samples(self) -> None:
        with pytest.raises(ValueError, match="no samples"):
            nearest_rank([], 50)

    @pytest.mark.parametrize("percentile", [0, 101, -5])
    def test_out_of_range(self, percentile: int) -> None:
        with pytest.raises(ValueError, match="Percentile"):
            nearest_rank([1, 2], percentile)

    def test_percentiles(self) -> None:
        assert percentiles([10, 20, 30]) == {50: 20, 90: 30, 95: 30, 99: 30}


class TestDurationBuckets:
    """Tests for duration bucketing."""

    def test_empty(self) -> None:
        assert duration_buckets([]) == []

    def test_single_value(self) -> None:
        buckets = duration_buckets([100, 100])

        assert len(buckets) == 1
        assert (buckets[0].from_ms, buckets[0].to_ms, buckets[0].count) == (100, 100, 2)

    def test_at_most_five_buckets(self) -> None:
        buckets = duration_buckets(list(range(0, 1000, 7)))
        assert len(buckets) <= MAX_BUCKETS

    def test_equal_width_buckets(self) -> None:
        buckets = duration_buckets([0, 1, 2, 3, 4, 5, 6, 7, 8, 9])

        assert [(b.from_ms, b.to_ms) for b in buckets] == [
            (0, 1),
            (2, 3),
            (4, 5),
            (6, 7),
            (8, 9),
        ]
        assert all(b.count == 2 for b in buckets)

    def test_counts_add_up(self) -> None:
        durations = [5, 17, 230, 231, 999, 1200, 40]
        buckets = duration_buckets(durations)

        assert sum(b.count for b in buckets) == len(durations)
        assert buckets[0].from_ms == 5
        assert buckets[-1].to_ms == 1200

    def test_empty_buckets_omitted(self) -> None:
        buckets = duration_buckets([0, 100])

        assert len(buckets) == 2
        assert buckets[0].count == 1
        assert buckets[1].count == 1
