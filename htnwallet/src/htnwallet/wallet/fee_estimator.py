"""
Market fee estimation from a mempool snapshot.

Observed fee rates (fee / mass) of pending transactions are filtered for
outliers with the interquartile-range rule, and the median of what remains
anchors four priority tiers. Without a usable sample a fixed fallback table
is used instead, so fee estimation never blocks transaction construction.
"""

from __future__ import annotations

import asyncio
import statistics
import time
from collections.abc import Callable, Sequence
from decimal import ROUND_CEILING, Decimal

import httpx
from loguru import logger

from htncore.constants import (
    DEFAULT_FEE_CACHE_TTL,
    DEFAULT_IQR_MULTIPLIER,
    DEFAULT_MIN_FEE_SAMPLES,
    MINIMUM_RELAY_FEE_RATE,
    REFERENCE_INPUT_COUNT,
    REFERENCE_OUTPUT_COUNT,
)
from htncore.errors import (
    EstimationUnavailableError,
    InvalidMassParametersError,
    NodeBackendError,
)
from htncore.mass import compute_mass, fee_for_rate
from htncore.models import FeeEstimate, FeePriority, FeeRecommendations, MempoolEntry
from htnwallet.backends.base import NodeBackend

PRIORITY_MULTIPLIERS: dict[FeePriority, Decimal] = {
    FeePriority.LOW: Decimal("0.5"),
    FeePriority.NORMAL: Decimal("1"),
    FeePriority.HIGH: Decimal("2"),
    FeePriority.URGENT: Decimal("5"),
}

FALLBACK_FEE_RATES: dict[FeePriority, Decimal] = {
    FeePriority.LOW: Decimal(1),
    FeePriority.NORMAL: Decimal(10),
    FeePriority.HIGH: Decimal(20),
    FeePriority.URGENT: Decimal(50),
}

FEE_RATE_QUANTUM = Decimal("0.0001")


def observed_fee_rates(entries: Sequence[MempoolEntry]) -> list[Decimal]:
    """Fee rate of each pending transaction; entries with an invalid shape are skipped."""
    rates = []
    for entry in entries:
        try:
            mass = compute_mass(entry.input_count, entry.output_count, entry.payload_size)
        except InvalidMassParametersError:
            continue
        rates.append(Decimal(entry.fee) / Decimal(mass))
    return rates


def quartiles(values: Sequence[Decimal]) -> tuple[Decimal, Decimal, Decimal]:
    """Q1, median, Q3 with linear interpolation between closest ranks."""
    q1, q2, q3 = statistics.quantiles(sorted(values), n=4, method="inclusive")
    return q1, q2, q3


def filter_outliers_iqr(
    values: Sequence[Decimal], multiplier: Decimal = DEFAULT_IQR_MULTIPLIER
) -> list[Decimal]:
    """Drop values outside [Q1 - k*IQR, Q3 + k*IQR]."""
    if len(values) < 2:
        return list(values)
    q1, _, q3 = quartiles(values)
    iqr = q3 - q1
    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr
    return [v for v in values if lower <= v <= upper]


def percentile_rank(sample: Sequence[Decimal], value: Decimal) -> int:
    """Share of the sample at or below value, in whole percent."""
    if not sample:
        return 0
    at_or_below = sum(1 for v in sample if v <= value)
    return round(100 * at_or_below / len(sample))


def _tier_rate(median: Decimal, priority: FeePriority) -> Decimal:
    rate = (median * PRIORITY_MULTIPLIERS[priority]).quantize(
        FEE_RATE_QUANTUM, rounding=ROUND_CEILING
    )
    return max(rate, Decimal(MINIMUM_RELAY_FEE_RATE))


def _reference_estimate(
    priority: FeePriority, rate: Decimal, percentile: int | None, samples: int
) -> FeeEstimate:
    mass = compute_mass(REFERENCE_INPUT_COUNT, REFERENCE_OUTPUT_COUNT)
    return FeeEstimate(
        fee_rate=rate,
        total_fee=fee_for_rate(mass, rate),
        priority=priority,
        mass=mass,
        percentile=percentile,
        based_on_samples=samples,
    )


def fallback_recommendations() -> FeeRecommendations:
    tiers = {p: _reference_estimate(p, FALLBACK_FEE_RATES[p], None, 0) for p in FeePriority}
    return FeeRecommendations(
        low=tiers[FeePriority.LOW],
        normal=tiers[FeePriority.NORMAL],
        high=tiers[FeePriority.HIGH],
        urgent=tiers[FeePriority.URGENT],
        sample_size=0,
        median_fee_rate=FALLBACK_FEE_RATES[FeePriority.NORMAL],
        average_fee_rate=FALLBACK_FEE_RATES[FeePriority.NORMAL],
        is_fallback=True,
    )


def build_recommendations(
    rates: Sequence[Decimal],
    min_samples: int = DEFAULT_MIN_FEE_SAMPLES,
    iqr_multiplier: Decimal = DEFAULT_IQR_MULTIPLIER,
) -> FeeRecommendations:
    """
    Derive tiered recommendations from observed fee rates.

    Raises:
        EstimationUnavailableError: fewer than min_samples rates survive filtering
    """
    sample = filter_outliers_iqr(rates, iqr_multiplier)
    if not sample or len(sample) < min_samples:
        raise EstimationUnavailableError(
            f"Only {len(sample)} usable mempool sample(s), need {min_samples}"
        )

    median = statistics.median(sample)
    average = statistics.mean(sample)

    tiers = {}
    for priority in FeePriority:
        rate = _tier_rate(median, priority)
        tiers[priority] = _reference_estimate(
            priority, rate, percentile_rank(sample, rate), len(sample)
        )

    return FeeRecommendations(
        low=tiers[FeePriority.LOW],
        normal=tiers[FeePriority.NORMAL],
        high=tiers[FeePriority.HIGH],
        urgent=tiers[FeePriority.URGENT],
        sample_size=len(sample),
        median_fee_rate=median,
        average_fee_rate=average,
        is_fallback=False,
    )


class FeeEstimator:
    """
    Caching market fee estimator.

    Results are kept for cache_ttl seconds. Concurrent callers that miss the
    cache wait on one lock, so a single mempool fetch serves all of them. If
    the fetch is cancelled or fails, the previous cache entry is left as is.
    """

    def __init__(
        self,
        backend: NodeBackend,
        cache_ttl: float = DEFAULT_FEE_CACHE_TTL,
        min_samples: int = DEFAULT_MIN_FEE_SAMPLES,
        iqr_multiplier: Decimal | float | str = DEFAULT_IQR_MULTIPLIER,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.cache_ttl = cache_ttl
        self.min_samples = min_samples
        self.iqr_multiplier = Decimal(str(iqr_multiplier))
        self._clock = clock
        self._cached: FeeRecommendations | None = None
        self._cached_at: float = 0.0
        self._lock = asyncio.Lock()

    def _cache_valid(self) -> bool:
        return self._cached is not None and self._clock() - self._cached_at < self.cache_ttl

    def clear_cache(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    async def get_recommendations(self, force_refresh: bool = False) -> FeeRecommendations:
        if not force_refresh and self._cache_valid():
            logger.debug("Fee recommendations served from cache")
            return self._cached  # type: ignore[return-value]

        async with self._lock:
            # Another caller may have refreshed while we waited
            if not force_refresh and self._cache_valid():
                return self._cached  # type: ignore[return-value]

            try:
                entries = await self.backend.get_mempool_entries()
            except (httpx.HTTPError, NodeBackendError) as e:
                logger.warning(f"Mempool snapshot unavailable, using fallback fee rates: {e}")
                return fallback_recommendations()

            rates = observed_fee_rates(entries)
            try:
                recommendations = build_recommendations(
                    rates, self.min_samples, self.iqr_multiplier
                )
                logger.debug(
                    f"Fee recommendations from {recommendations.sample_size} sample(s): "
                    f"median={recommendations.median_fee_rate:.4f} sompi/mass"
                )
            except EstimationUnavailableError as e:
                logger.warning(f"{e}; using fallback fee rates")
                recommendations = fallback_recommendations()

            self._cached = recommendations
            self._cached_at = self._clock()
            return recommendations

    async def estimate_fee(
        self,
        priority: FeePriority | str,
        input_count: int,
        output_count: int,
        payload_size: int = 0,
    ) -> FeeEstimate:
        """Price a transaction shape at the rate of the given priority tier."""
        priority = FeePriority(priority)
        mass = compute_mass(input_count, output_count, payload_size)
        tier = (await self.get_recommendations()).for_priority(priority)
        return FeeEstimate(
            fee_rate=tier.fee_rate,
            total_fee=fee_for_rate(mass, tier.fee_rate),
            priority=priority,
            mass=mass,
            percentile=tier.percentile,
            based_on_samples=tier.based_on_samples,
        )
