"""
Significance of Moran's I.

Two independent reference distributions are available under the null of
spatial independence:

* an analytic normal approximation with moments derived from the weights
  (S0, S1, S2) under either the normality or the randomization assumption;
* a Monte Carlo permutation test that shuffles the attribute over the fixed
  spatial positions and scores each draw with the unchanged weights.
"""
import logging
import math
from typing import Any, List, Optional

import numpy as np
from scipy import sparse, stats

from spatial_autocorrelation.computation.parallel import CancelSignal, parallel_map
from spatial_autocorrelation.core.decorators import performance_context, performance_tracker
from spatial_autocorrelation.core.exceptions import (
    ConfigurationError, DegenerateInputError, SimulationCancelledError
)
from spatial_autocorrelation.statistics.moran import deviations, moran_from_deviations
from spatial_autocorrelation.statistics.schemas import (
    AnalyticMoranTest, MoranResult, PermutationMoranTest, SignificanceSettings
)
from spatial_autocorrelation.weights.spatial_weights import SpatialWeights

logger = logging.getLogger(__name__)

METHODS = ('both', 'analytic', 'permutation')


def _p_from_z(z_score: float, alternative: str) -> float:
    if alternative == 'greater':
        return float(stats.norm.sf(z_score))
    if alternative == 'less':
        return float(stats.norm.cdf(z_score))
    return float(2.0 * stats.norm.sf(abs(z_score)))


def moran_variance(
    z: np.ndarray, weights: SpatialWeights, assumption: str = 'randomization'
) -> float:
    """
    Variance of Moran's I under the null.

    Args:
        z: Deviations of the attribute from its mean.
        weights: Spatial weights.
        assumption: 'normality' or 'randomization'. The randomization
            variance depends on the sample kurtosis of the attribute.

    Raises:
        DegenerateInputError: If there are too few units for the formula.
        ConfigurationError: If the assumption is unknown.
    """
    n = float(weights.n)
    s0, s1, s2 = weights.s0, weights.s1, weights.s2
    expected = -1.0 / (n - 1.0)

    if assumption == 'normality':
        if n < 3:
            raise DegenerateInputError(f"Analytic variance needs at least 3 units, got {int(n)}")
        second_moment = (n * n * s1 - n * s2 + 3.0 * s0 * s0) / ((n * n - 1.0) * s0 * s0)
    elif assumption == 'randomization':
        if n < 4:
            raise DegenerateInputError(f"Randomization variance needs at least 4 units, got {int(n)}")
        kurtosis = (np.sum(z ** 4) / n) / (np.sum(z ** 2) / n) ** 2
        a = n * ((n * n - 3.0 * n + 3.0) * s1 - n * s2 + 3.0 * s0 * s0)
        b = kurtosis * ((n * n - n) * s1 - 2.0 * n * s2 + 6.0 * s0 * s0)
        second_moment = (a - b) / ((n - 1.0) * (n - 2.0) * (n - 3.0) * s0 * s0)
    else:
        raise ConfigurationError(f"Unknown variance assumption '{assumption}'")

    return float(second_moment - expected * expected)


def analytic_test(
    attribute: Any,
    weights: SpatialWeights,
    assumption: Optional[str] = None,
    alternative: Optional[str] = None,
) -> AnalyticMoranTest:
    """
    Analytic test of Moran's I against its normal approximation.

    ``E[I] = -1/(N-1)``; the variance follows :func:`moran_variance`.

    Args:
        attribute: Numeric vector with one value per unit.
        weights: Spatial weights over the same units.
        assumption: 'randomization' (default) or 'normality'.
        alternative: 'two-sided' (default), 'greater' or 'less'.

    Returns:
        AnalyticMoranTest with the statistic, moments, z-score and p-value.

    Raises:
        DimensionMismatchError: If the attribute length differs from the number of units.
        DegenerateInputError: If the attribute is constant or the variance is not positive.
        ConfigurationError: If the assumption or alternative is unknown.
    """
    settings = SignificanceSettings.from_config(assumption=assumption, alternative=alternative)

    z, sum_squares = deviations(attribute, weights)
    statistic = moran_from_deviations(z, sum_squares, weights)
    expected = -1.0 / (weights.n - 1.0)
    variance = moran_variance(z, weights, settings.assumption)
    if not variance > 0.0:
        raise DegenerateInputError(f"Analytic variance of Moran's I is not positive ({variance})")

    z_score = (statistic - expected) / math.sqrt(variance)
    p_value = _p_from_z(z_score, settings.alternative)

    logger.info(
        f"Moran's I analytic test ({settings.assumption}): I={statistic:.4f}, "
        f"z={z_score:.4f}, p={p_value:.4g}"
    )
    return AnalyticMoranTest(
        statistic=statistic,
        expected=expected,
        variance=variance,
        z_score=z_score,
        p_value=p_value,
        assumption=settings.assumption,
        alternative=settings.alternative,
    )


def count_greater(observed: float, simulated: Any) -> int:
    """Number of simulated values strictly greater than ``observed``."""
    return int(np.sum(np.asarray(simulated, dtype=float) > observed))


def pseudo_p_value(observed: float, simulated: Any) -> float:
    """
    Rank-based pseudo p-value of a permutation test.

    With ``G`` simulated values strictly above ``observed`` out of ``n``,
    ``p = min(G + 1, n + 1 - G) / (n + 1)``, which lies in ``[1/(n+1), 1]``.
    """
    n = int(np.size(simulated))
    if n < 1:
        raise ConfigurationError("At least one simulated value is required")
    greater = count_greater(observed, simulated)
    return min(greater + 1, n + 1 - greater) / (n + 1)


def _simulate_chunk(
    z: np.ndarray,
    matrix: sparse.csr_matrix,
    scale: float,
    sum_squares: float,
    size: int,
    seed_sequence: np.random.SeedSequence,
    cancel_event: Optional[CancelSignal] = None,
) -> np.ndarray:
    """
    Moran's I of ``size`` random permutations of ``z``.

    Permuting the attribute permutes its deviations and leaves their sum of
    squares unchanged. The returned array is shorter than ``size`` when the
    cancellation signal fires.
    """
    rng = np.random.default_rng(seed_sequence)
    out = np.empty(size, dtype=float)
    for i in range(size):
        if cancel_event is not None and cancel_event.is_set():
            return out[:i]
        zp = rng.permutation(z)
        out[i] = scale * (zp @ (matrix @ zp)) / sum_squares
    return out


@performance_tracker(level="info")
def permutation_test(
    attribute: Any,
    weights: SpatialWeights,
    permutations: Optional[int] = None,
    seed: Optional[int] = None,
    n_jobs: Optional[int] = None,
    chunk_size: Optional[int] = None,
    cancel_event: Optional[CancelSignal] = None,
) -> PermutationMoranTest:
    """
    Monte Carlo permutation test of Moran's I.

    Draws are split into chunks of ``chunk_size`` with one independent random
    stream per chunk spawned from ``seed``, so a fixed seed reproduces the same
    simulated distribution whatever the number of workers.

    Args:
        attribute: Numeric vector with one value per unit.
        weights: Spatial weights over the same units.
        permutations: Number of draws (default 599 via configuration).
        seed: Seed of the random source. When None, fresh entropy is drawn and
            reported in the result so the run can be repeated.
        n_jobs: Worker processes; 1 runs in-process, negative uses all but one core.
        chunk_size: Draws per chunk.
        cancel_event: Cooperative cancellation signal, checked between draws
            in-process and between chunks in worker processes.

    Returns:
        PermutationMoranTest with the ordered simulated distribution and pseudo p-value.

    Raises:
        ConfigurationError: If ``permutations`` is not positive.
        DimensionMismatchError: If the attribute length differs from the number of units.
        DegenerateInputError: If the attribute has zero variance.
        SimulationCancelledError: If the cancellation signal fires before all draws finish.
    """
    if permutations is not None and permutations <= 0:
        raise ConfigurationError(f"Number of permutations must be positive, got {permutations}")
    settings = SignificanceSettings.from_config(
        permutations=permutations, seed=seed, n_jobs=n_jobs, chunk_size=chunk_size
    )

    z, sum_squares = deviations(attribute, weights)
    observed = moran_from_deviations(z, sum_squares, weights)
    scale = weights.n / weights.s0

    root = np.random.SeedSequence(settings.seed)
    sizes = [settings.chunk_size] * (settings.permutations // settings.chunk_size)
    if settings.permutations % settings.chunk_size:
        sizes.append(settings.permutations % settings.chunk_size)
    streams = root.spawn(len(sizes))
    matrix = weights.sparse

    logger.info(
        f"Running {settings.permutations} permutations in {len(sizes)} chunks "
        f"with {settings.workers} worker(s)"
    )

    chunks: List[Optional[np.ndarray]] = []
    with performance_context("Moran's I permutations"):
        if settings.workers == 1 or len(sizes) == 1:
            for size, stream in zip(sizes, streams):
                chunk = _simulate_chunk(z, matrix, scale, sum_squares, size, stream, cancel_event)
                chunks.append(chunk)
                if len(chunk) < size:
                    break
        else:
            tasks = [(z, matrix, scale, sum_squares, size, stream) for size, stream in zip(sizes, streams)]
            chunks = parallel_map(_simulate_chunk, tasks, max_workers=settings.workers, cancel_event=cancel_event)

    finished = [chunk for chunk in chunks if chunk is not None]
    completed = int(sum(len(chunk) for chunk in finished))
    if completed < settings.permutations or any(chunk is None for chunk in chunks):
        logger.warning(f"Permutation test cancelled after {completed} of {settings.permutations} draws")
        raise SimulationCancelledError(completed, settings.permutations)

    simulated = np.concatenate(finished)
    greater = count_greater(observed, simulated)
    p_value = pseudo_p_value(observed, simulated)

    logger.info(
        f"Moran's I permutation test: I={observed:.4f}, {greater}/{settings.permutations} "
        f"draws greater, p={p_value:.4g}"
    )
    return PermutationMoranTest(
        statistic=observed,
        simulated=tuple(simulated.tolist()),
        n_greater=greater,
        p_value=p_value,
        permutations=settings.permutations,
        seed=int(root.entropy),
    )


def moran_test(
    attribute: Any,
    weights: SpatialWeights,
    method: str = 'both',
    permutations: Optional[int] = None,
    seed: Optional[int] = None,
    alternative: Optional[str] = None,
    assumption: Optional[str] = None,
    n_jobs: Optional[int] = None,
    cancel_event: Optional[CancelSignal] = None,
) -> MoranResult:
    """
    Moran's I with analytic and/or permutation significance.

    Args:
        attribute: Numeric vector with one value per unit.
        weights: Spatial weights over the same units.
        method: 'both', 'analytic' or 'permutation'.
        permutations: Number of permutation draws.
        seed: Seed for the permutation test.
        alternative: Alternative hypothesis of the analytic test.
        assumption: Variance assumption of the analytic test.
        n_jobs: Worker processes for the permutation test.
        cancel_event: Cooperative cancellation signal for the permutation test.

    Returns:
        MoranResult combining the requested tests.

    Raises:
        ConfigurationError: If the method is unknown or a setting is invalid.
    """
    if method not in METHODS:
        raise ConfigurationError(f"Unknown method '{method}', expected one of {METHODS}")

    settings = SignificanceSettings.from_config(alternative=alternative, assumption=assumption)
    fields = {
        'n': weights.n,
        'expected': -1.0 / (weights.n - 1.0) if weights.n > 1 else float('nan'),
        'alternative': settings.alternative,
        'assumption': settings.assumption,
    }

    if method in ('both', 'analytic'):
        analytic = analytic_test(attribute, weights, settings.assumption, settings.alternative)
        fields.update(
            statistic=analytic.statistic,
            expected=analytic.expected,
            variance=analytic.variance,
            z_score=analytic.z_score,
            p_value_analytic=analytic.p_value,
        )

    if method in ('both', 'permutation'):
        simulation = permutation_test(
            attribute, weights,
            permutations=permutations, seed=seed, n_jobs=n_jobs, cancel_event=cancel_event,
        )
        fields.update(
            statistic=simulation.statistic,
            p_value_sim=simulation.p_value,
            simulated=simulation.simulated,
            permutations=simulation.permutations,
            seed=simulation.seed,
        )

    result = MoranResult(**fields)
    logger.info(result.summary().replace("\n", "; "))
    return result
