"""
Unit tests for the significance tests of Moran's I.
"""
import threading
import unittest

import numpy as np
from scipy import stats
from shapely.geometry import box

from spatial_autocorrelation.core.exceptions import (
    ConfigurationError, DegenerateInputError, SimulationCancelledError
)
from spatial_autocorrelation.statistics import (
    MoranResult, analytic_test, count_greater, moran_test, moran_variance, morans_i,
    permutation_test, pseudo_p_value
)
from spatial_autocorrelation.statistics.moran import deviations
from spatial_autocorrelation.weights import SpatialWeights, contiguity_neighbors


def grid_weights(rows=6, cols=6, criterion='queen', style='W'):
    polygons = [box(c, r, c + 1, r + 1) for r in range(rows) for c in range(cols)]
    return SpatialWeights.from_graph(contiguity_neighbors(polygons, criterion=criterion), style=style)


class CountingSignal:
    """Cancellation signal that fires after a fixed number of checks."""

    def __init__(self, after):
        self.after = after
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.after


class TestPseudoPValue(unittest.TestCase):
    """Test cases for the rank-based pseudo p-value."""

    def test_formula_for_599_draws(self):
        """p = min(G + 1, 600 - G) / 600 for every G."""
        observed = 0.0
        for greater in (0, 1, 17, 299, 300, 301, 598, 599):
            simulated = np.concatenate([np.full(greater, 1.0), np.full(599 - greater, -1.0)])
            self.assertEqual(count_greater(observed, simulated), greater)
            self.assertEqual(
                pseudo_p_value(observed, simulated), min(greater + 1, 600 - greater) / 600
            )

    def test_ties_are_not_greater(self):
        """Only strictly greater draws count."""
        self.assertEqual(count_greater(0.5, [0.5, 0.5, 0.7]), 1)

    def test_range(self):
        """The pseudo p-value lies in [1/(n+1), 1]."""
        rng = np.random.default_rng(11)
        for n in (1, 2, 9, 99):
            for observed in (-10.0, 0.0, 10.0):
                p = pseudo_p_value(observed, rng.normal(size=n))
                self.assertGreaterEqual(p, 1.0 / (n + 1))
                self.assertLessEqual(p, 1.0)

    def test_empty_distribution(self):
        """At least one draw is required."""
        with self.assertRaises(ConfigurationError):
            pseudo_p_value(0.1, [])


class TestAnalyticTest(unittest.TestCase):
    """Test cases for the analytic normal approximation."""

    def setUp(self):
        """Set up test fixtures."""
        self.weights = grid_weights()
        self.rng = np.random.default_rng(5)
        self.x = np.array([r + c for r in range(6) for c in range(6)], dtype=float)
        self.x += self.rng.normal(scale=0.5, size=36)

    def test_expectation(self):
        """E[I] = -1/(N-1)."""
        result = analytic_test(self.x, self.weights)
        self.assertAlmostEqual(result.expected, -1.0 / 35.0)
        self.assertAlmostEqual(result.statistic, morans_i(self.x, self.weights))

    def test_normality_variance(self):
        """Normality variance matches the textbook formula."""
        w = self.weights.dense()
        n = 36.0
        s0 = w.sum()
        s1 = 0.5 * ((w + w.T) ** 2).sum()
        s2 = ((w.sum(axis=0) + w.sum(axis=1)) ** 2).sum()
        expected = (n * n * s1 - n * s2 + 3 * s0 * s0) / ((n * n - 1) * s0 * s0) - (1 / (n - 1)) ** 2

        result = analytic_test(self.x, self.weights, assumption='normality')
        self.assertAlmostEqual(result.variance, expected)

    def test_randomization_variance_decreases_with_kurtosis(self):
        """Heavy tails shrink the randomization variance; normality ignores them."""
        light = np.array([(-1.0) ** i for i in range(36)])
        heavy = np.zeros(36)
        heavy[0] = 10.0
        z_light, _ = deviations(light, self.weights)
        z_heavy, _ = deviations(heavy, self.weights)

        self.assertGreater(
            moran_variance(z_light, self.weights, 'randomization'),
            moran_variance(z_heavy, self.weights, 'randomization'),
        )
        self.assertAlmostEqual(
            moran_variance(z_light, self.weights, 'normality'),
            moran_variance(z_heavy, self.weights, 'normality'),
        )

    def test_unknown_assumption_in_variance(self):
        """The variance helper rejects unknown assumptions."""
        z, _ = deviations(self.x, self.weights)
        with self.assertRaises(ConfigurationError):
            moran_variance(z, self.weights, 'bootstrap')

    def test_alternatives(self):
        """One-sided p-values relate to the two-sided one through the z-score."""
        two = analytic_test(self.x, self.weights, alternative='two-sided')
        greater = analytic_test(self.x, self.weights, alternative='greater')
        less = analytic_test(self.x, self.weights, alternative='less')

        self.assertGreater(two.z_score, 0)
        self.assertAlmostEqual(two.p_value, 2 * stats.norm.sf(two.z_score))
        self.assertAlmostEqual(greater.p_value, two.p_value / 2)
        self.assertAlmostEqual(less.p_value, 1 - greater.p_value)
        self.assertLess(greater.p_value, 0.001)

    def test_invalid_settings(self):
        """Unknown assumptions or alternatives are configuration errors."""
        with self.assertRaises(ConfigurationError):
            analytic_test(self.x, self.weights, assumption='bootstrap')
        with self.assertRaises(ConfigurationError):
            analytic_test(self.x, self.weights, alternative='sideways')

    def test_too_few_units(self):
        """The randomization variance needs four units."""
        weights = grid_weights(rows=1, cols=3, criterion='rook')
        with self.assertRaises(DegenerateInputError):
            analytic_test([1.0, 2.0, 4.0], weights)

    def test_constant_attribute(self):
        """Zero variance raises DegenerateInputError."""
        with self.assertRaises(DegenerateInputError):
            analytic_test(np.ones(36), self.weights)


class TestPermutationTest(unittest.TestCase):
    """Test cases for the Monte Carlo permutation test."""

    def setUp(self):
        """Set up test fixtures."""
        self.weights = grid_weights()
        rng = np.random.default_rng(8)
        self.x = np.array([r * c for r in range(6) for c in range(6)], dtype=float)
        self.x += rng.normal(size=36)

    def test_reproducible_with_seed(self):
        """Identical seeds give identical distributions and p-values."""
        first = permutation_test(self.x, self.weights, permutations=199, seed=123)
        second = permutation_test(self.x, self.weights, permutations=199, seed=123)

        self.assertEqual(first.simulated, second.simulated)
        self.assertEqual(first.p_value, second.p_value)
        self.assertEqual(first.seed, 123)

    def test_different_seeds_differ(self):
        """Different seeds give different draws."""
        first = permutation_test(self.x, self.weights, permutations=50, seed=1)
        second = permutation_test(self.x, self.weights, permutations=50, seed=2)
        self.assertNotEqual(first.simulated, second.simulated)

    def test_unseeded_run_reports_entropy(self):
        """An unseeded run reports the seed that reproduces it."""
        first = permutation_test(self.x, self.weights, permutations=30)
        again = permutation_test(self.x, self.weights, permutations=30, seed=first.seed)
        self.assertEqual(first.simulated, again.simulated)

    def test_result_consistency(self):
        """Length, rank count and p-value are consistent."""
        result = permutation_test(self.x, self.weights, permutations=599, seed=42)

        self.assertEqual(len(result.simulated), 599)
        self.assertEqual(result.permutations, 599)
        greater = int(np.sum(result.simulated_array > result.statistic))
        self.assertEqual(result.n_greater, greater)
        self.assertEqual(result.p_value, min(greater + 1, 600 - greater) / 600)
        self.assertGreaterEqual(result.p_value, 1 / 600)
        self.assertLessEqual(result.p_value, 1.0)

    def test_strong_pattern_is_extreme(self):
        """A smooth surface ranks above every permutation."""
        result = permutation_test(self.x, self.weights, permutations=199, seed=0)
        self.assertEqual(result.n_greater, 0)
        self.assertAlmostEqual(result.p_value, 1 / 200)
        self.assertGreater(result.z_score, 3)

    def test_null_distribution_is_centered(self):
        """Draws are centered near E[I] = -1/(N-1)."""
        result = permutation_test(self.x, self.weights, permutations=999, seed=9)
        self.assertAlmostEqual(result.expected, -1 / 35, delta=0.02)

    def test_chunking_does_not_change_sample_size(self):
        """Uneven chunks still produce the requested number of draws."""
        result = permutation_test(self.x, self.weights, permutations=101, seed=3, chunk_size=25)
        self.assertEqual(len(result.simulated), 101)

    def test_worker_count_does_not_change_results(self):
        """Parallel and in-process runs with the same seed agree."""
        serial = permutation_test(self.x, self.weights, permutations=60, seed=77, chunk_size=20, n_jobs=1)
        parallel = permutation_test(self.x, self.weights, permutations=60, seed=77, chunk_size=20, n_jobs=2)
        self.assertEqual(serial.simulated, parallel.simulated)

    def test_invalid_permutations(self):
        """The number of permutations must be positive."""
        for n in (0, -5):
            with self.assertRaises(ConfigurationError):
                permutation_test(self.x, self.weights, permutations=n)

    def test_cancellation_between_draws(self):
        """A fired signal stops the loop and reports progress."""
        with self.assertRaises(SimulationCancelledError) as ctx:
            permutation_test(
                self.x, self.weights, permutations=500, seed=1, cancel_event=CountingSignal(after=10)
            )
        self.assertEqual(ctx.exception.completed, 10)
        self.assertEqual(ctx.exception.requested, 500)

    def test_cancellation_before_start(self):
        """A signal set before the run cancels immediately."""
        event = threading.Event()
        event.set()
        with self.assertRaises(SimulationCancelledError) as ctx:
            permutation_test(self.x, self.weights, permutations=50, cancel_event=event)
        self.assertEqual(ctx.exception.completed, 0)


class TestMoranTest(unittest.TestCase):
    """Test cases for the combined test."""

    def setUp(self):
        """Set up test fixtures."""
        self.weights = grid_weights()
        self.x = np.random.default_rng(21).normal(size=36)

    def test_both_methods(self):
        """Both routes populate the result."""
        result = moran_test(self.x, self.weights, permutations=99, seed=4)

        self.assertIsInstance(result, MoranResult)
        self.assertEqual(result.n, 36)
        self.assertAlmostEqual(result.statistic, morans_i(self.x, self.weights))
        self.assertIsNotNone(result.p_value_analytic)
        self.assertIsNotNone(result.p_value_sim)
        self.assertEqual(len(result.simulated), 99)
        self.assertEqual(result.seed, 4)
        self.assertIn("Moran's I", result.summary())

    def test_analytic_only(self):
        """The analytic route leaves permutation fields empty."""
        result = moran_test(self.x, self.weights, method='analytic')
        self.assertIsNone(result.p_value_sim)
        self.assertIsNone(result.simulated_array)
        self.assertEqual(result.permutations, 0)

    def test_permutation_only(self):
        """The permutation route leaves analytic fields empty."""
        result = moran_test(self.x, self.weights, method='permutation', permutations=20, seed=1)
        self.assertIsNone(result.p_value_analytic)
        self.assertIsNone(result.variance)
        self.assertAlmostEqual(result.expected, -1 / 35)

    def test_result_is_immutable(self):
        """Results cannot be modified after construction."""
        result = moran_test(self.x, self.weights, method='analytic')
        with self.assertRaises(Exception):
            result.statistic = 0.0

    def test_unknown_method(self):
        """Unknown methods are configuration errors."""
        with self.assertRaises(ConfigurationError):
            moran_test(self.x, self.weights, method='bayesian')


if __name__ == '__main__':
    unittest.main()
