"""
Tests for market fee estimation.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import httpx
import pytest

from htncore.errors import EstimationUnavailableError, NodeBackendError
from htncore.models import FeePriority, MempoolEntry
from htnwallet.wallet.fee_estimator import (
    FeeEstimator,
    build_recommendations,
    fallback_recommendations,
    filter_outliers_iqr,
    observed_fee_rates,
    percentile_rank,
    quartiles,
)


def decimals(*values: int | str) -> list[Decimal]:
    return [Decimal(v) for v in values]


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


class TestObservedRates:
    """Tests for deriving fee rates from mempool entries."""

    def test_rate_is_fee_over_mass(self) -> None:
        entries = [MempoolEntry(fee=6653 * 2, input_count=5, output_count=2)]
        assert observed_fee_rates(entries) == [Decimal(2)]

    def test_invalid_shapes_skipped(self) -> None:
        """Entries without inputs or outputs have no mass and are ignored."""
        entries = [
            MempoolEntry(fee=100, input_count=0, output_count=1),
            MempoolEntry(fee=1929, input_count=1, output_count=2),
        ]
        assert observed_fee_rates(entries) == [Decimal(1)]


class TestIqrFilter:
    """Tests for outlier filtering."""

    def test_quartiles_interpolate(self) -> None:
        q1, median, q3 = quartiles(decimals(1, 2, 3, 4, 5, 6, 100))
        assert (q1, median, q3) == (Decimal("2.5"), Decimal(4), Decimal("5.5"))

    def test_drops_values_outside_fences(self) -> None:
        """With Q1=2.5 and Q3=5.5 the fences are -2 and 10."""
        assert filter_outliers_iqr(decimals(1, 2, 3, 4, 5, 6, 100)) == decimals(1, 2, 3, 4, 5, 6)

    def test_keeps_values_on_fence(self) -> None:
        values = decimals(1, 2, 3, 4, 5, 6, 10)
        assert filter_outliers_iqr(values) == values

    def test_multiplier_is_tunable(self) -> None:
        values = decimals(1, 2, 3, 4, 5, 6, 9)
        assert Decimal(9) in filter_outliers_iqr(values)
        assert Decimal(9) not in filter_outliers_iqr(values, Decimal("0.5"))

    def test_uniform_sample_kept(self) -> None:
        values = decimals(3, 3, 3, 3, 3)
        assert filter_outliers_iqr(values) == values

    def test_tiny_samples_unchanged(self) -> None:
        assert filter_outliers_iqr([]) == []
        assert filter_outliers_iqr(decimals(7)) == decimals(7)

    def test_percentile_rank(self) -> None:
        sample = decimals(1, 2, 3, 4, 5, 6)
        assert percentile_rank(sample, Decimal("3.5")) == 50
        assert percentile_rank(sample, Decimal(7)) == 100
        assert percentile_rank([], Decimal(1)) == 0


class TestBuildRecommendations:
    """Tests for deriving tiers from a sample."""

    def test_tiers_from_median(self) -> None:
        """Median 3.5 gives tiers x0.5, x1, x2, x5, priced for 1 input / 2 outputs."""
        recs = build_recommendations(decimals(1, 2, 3, 4, 5, 6, 100))

        assert recs.is_fallback is False
        assert recs.sample_size == 6
        assert recs.median_fee_rate == Decimal("3.5")
        assert recs.average_fee_rate == Decimal("3.5")

        assert recs.low.fee_rate == Decimal("1.75")
        assert recs.normal.fee_rate == Decimal("3.5")
        assert recs.high.fee_rate == Decimal(7)
        assert recs.urgent.fee_rate == Decimal("17.5")

        assert recs.low.total_fee == 3376
        assert recs.normal.total_fee == 6752
        assert recs.high.total_fee == 13503
        assert recs.urgent.total_fee == 33758
        assert recs.normal.mass == 1929

        assert recs.normal.percentile == 50
        assert recs.high.percentile == 100
        assert recs.normal.based_on_samples == 6

    def test_tiers_floored_at_relay_minimum(self) -> None:
        """Half of a 1 sompi/mass median would be below the relay minimum."""
        recs = build_recommendations(decimals(1, 1, 1, 1, 1))
        assert recs.low.fee_rate == Decimal(1)
        assert recs.normal.fee_rate == Decimal(1)
        assert recs.urgent.fee_rate == Decimal(5)

    def test_tiers_never_decrease(self) -> None:
        recs = build_recommendations(decimals("0.3", "2.7", "4.1", "4.4", "9.9", "12"))
        rates = [recs.for_priority(p).fee_rate for p in FeePriority]
        assert rates == sorted(rates)

    def test_too_few_samples(self) -> None:
        with pytest.raises(EstimationUnavailableError):
            build_recommendations(decimals(1, 2, 3))
        with pytest.raises(EstimationUnavailableError):
            build_recommendations([])

    def test_min_samples_is_tunable(self) -> None:
        recs = build_recommendations(decimals(1, 2, 3), min_samples=3)
        assert recs.median_fee_rate == Decimal(2)


class TestFallback:
    """Tests for the fixed fallback table."""

    def test_fallback_table(self) -> None:
        recs = fallback_recommendations()

        assert recs.is_fallback is True
        assert recs.sample_size == 0
        assert [recs.for_priority(p).fee_rate for p in FeePriority] == decimals(1, 10, 20, 50)
        assert [recs.for_priority(p).total_fee for p in FeePriority] == [
            1929,
            19290,
            38580,
            96450,
        ]
        assert recs.normal.percentile is None

    def test_api_shape(self) -> None:
        data = fallback_recommendations().to_api_dict()
        assert data["normal"] == {
            "feeRate": 10.0,
            "totalFee": "19290",
            "priority": "normal",
            "percentile": None,
            "basedOnSamples": 0,
        }
        assert data["mempoolSize"] == 0


class TestFeeEstimator:
    """Tests for the caching estimator."""

    @pytest.mark.asyncio
    async def test_recommendations_from_mempool(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([1, 2, 3, 4, 5, 6, 100])
        estimator = FeeEstimator(mock_backend)

        recs = await estimator.get_recommendations()

        assert recs.is_fallback is False
        assert recs.sample_size == 6
        assert recs.normal.fee_rate == Decimal("3.5")

    @pytest.mark.asyncio
    async def test_empty_mempool_uses_fallback(self, mock_backend) -> None:
        """An empty sample gives exactly the fallback table."""
        estimator = FeeEstimator(mock_backend)

        recs = await estimator.get_recommendations()

        assert recs.is_fallback is True
        assert [recs.for_priority(p).fee_rate for p in FeePriority] == decimals(1, 10, 20, 50)

    @pytest.mark.asyncio
    async def test_small_sample_fallback_is_cached(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([5, 6, 7])
        estimator = FeeEstimator(mock_backend)

        first = await estimator.get_recommendations()
        second = await estimator.get_recommendations()

        assert first.is_fallback is True
        assert second is first
        assert mock_backend.get_mempool_entries.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [httpx.ConnectError("connection refused"), NodeBackendError("bad gateway")]
    )
    async def test_backend_failure_degrades_to_fallback(self, mock_backend, error) -> None:
        """Failures are not raised and not cached."""
        mock_backend.get_mempool_entries.side_effect = error
        estimator = FeeEstimator(mock_backend)

        recs = await estimator.get_recommendations()
        assert recs.is_fallback is True

        await estimator.get_recommendations()
        assert mock_backend.get_mempool_entries.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_ttl(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([1, 2, 3, 4, 5])
        clock = FakeClock()
        estimator = FeeEstimator(mock_backend, cache_ttl=60, clock=clock)

        first = await estimator.get_recommendations()
        clock.now += 59
        assert await estimator.get_recommendations() is first
        assert mock_backend.get_mempool_entries.await_count == 1

        clock.now += 1
        assert await estimator.get_recommendations() is not first
        assert mock_backend.get_mempool_entries.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([1, 2, 3, 4, 5])
        estimator = FeeEstimator(mock_backend)

        await estimator.get_recommendations()
        await estimator.get_recommendations(force_refresh=True)

        assert mock_backend.get_mempool_entries.await_count == 2

    @pytest.mark.asyncio
    async def test_clear_cache(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([1, 2, 3, 4, 5])
        estimator = FeeEstimator(mock_backend)

        await estimator.get_recommendations()
        estimator.clear_cache()
        await estimator.get_recommendations()

        assert mock_backend.get_mempool_entries.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self, mock_backend, mempool_at_rates) -> None:
        entries = mempool_at_rates([1, 2, 3, 4, 5])

        async def slow_fetch() -> list[MempoolEntry]:
            await asyncio.sleep(0.01)
            return entries

        mock_backend.get_mempool_entries.side_effect = slow_fetch
        estimator = FeeEstimator(mock_backend)

        results = await asyncio.gather(*(estimator.get_recommendations() for _ in range(5)))

        assert mock_backend.get_mempool_entries.await_count == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_cancellation_keeps_previous_cache(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([1, 2, 3, 4, 5])
        clock = FakeClock()
        estimator = FeeEstimator(mock_backend, cache_ttl=60, clock=clock)
        cached = await estimator.get_recommendations()

        clock.now += 120
        mock_backend.get_mempool_entries.side_effect = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await estimator.get_recommendations()

        assert estimator._cached is cached

    @pytest.mark.asyncio
    async def test_estimate_fee(self, mock_backend) -> None:
        """Fallback normal rate 10 for 5 inputs / 2 outputs."""
        estimator = FeeEstimator(mock_backend)

        estimate = await estimator.estimate_fee("normal", 5, 2)

        assert estimate.priority == FeePriority.NORMAL
        assert estimate.mass == 6653
        assert estimate.fee_rate == Decimal(10)
        assert estimate.total_fee == 66530

    @pytest.mark.asyncio
    async def test_estimate_fee_with_payload(self, mock_backend, mempool_at_rates) -> None:
        mock_backend.get_mempool_entries.return_value = mempool_at_rates([2, 2, 2, 2, 2])
        estimator = FeeEstimator(mock_backend)

        estimate = await estimator.estimate_fee(FeePriority.URGENT, 1, 1, payload_size=45)

        assert estimate.fee_rate == Decimal(10)
        assert estimate.mass == 1600
        assert estimate.total_fee == 16000
