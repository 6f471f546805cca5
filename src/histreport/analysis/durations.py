"""Duration distribution helpers."""

from collections.abc import Sequence

from histreport.models.report import DurationBucket

MAX_BUCKETS = 5
DEFAULT_PERCENTILES = (50, 90, 95, 99)


def nearest_rank(samples: Sequence[int], percentile: int) -> int:
    """Nearest-rank percentile, no interpolation.

    The rank is ``ceil(percentile / 100 * n)`` computed in integers, so
    ``[10, 20, 30]`` gives 30 for p95 and a single sample is returned as is.

    Raises:
        ValueError: If there are no samples or the percentile is out of range.
    """
    if not samples:
        msg = "Cannot compute a percentile of no samples"
        raise ValueError(msg)
    if not 0 < percentile <= 100:
        msg = f"Percentile must be in (0, 100], got {percentile}"
        raise ValueError(msg)

    ordered = sorted(samples)
    n = len(ordered)
    rank = -(-percentile * n // 100)
    return ordered[min(max(rank, 1), n) - 1]


def percentiles(
    samples: Sequence[int],
    points: Sequence[int] = DEFAULT_PERCENTILES,
) -> dict[int, int]:
    """Nearest-rank values for several percentiles at once."""
    return {p: nearest_rank(samples, p) for p in points}


def duration_buckets(
    durations: Sequence[int],
    max_buckets: int = MAX_BUCKETS,
) -> list[DurationBucket]:
    """Group durations into at most ``max_buckets`` equal-width integer buckets.

    Buckets span ``min..max`` inclusively; only buckets holding at least one
    duration are returned, in ascending order.
    """
    if not durations:
        return []

    low, high = min(durations), max(durations)
    size = max(1, -(-(high - low + 1) // max_buckets))

    counts: dict[int, int] = {}
    for duration in durations:
        index = (duration - low) // size
        counts[index] = counts.get(index, 0) + 1

    buckets: list[DurationBucket] = []
    for index in sorted(counts):
        start = low + index * size
        buckets.append(
            DurationBucket(
                from_ms=start,
                to_ms=min(start + size - 1, high),
                count=counts[index],
            )
        )
    return buckets
