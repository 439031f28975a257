"""
Unit tests for the Moran's I statistic.

The closed form and the scatterplot regression are cross-checked against each
other on random attributes and every weights style.
"""
import unittest

import numpy as np
import pandas as pd
from shapely.geometry import box

from spatial_autocorrelation.core.exceptions import DegenerateInputError, DimensionMismatchError
from spatial_autocorrelation.statistics import moran_scatter_frame, morans_i, morans_i_regression
from spatial_autocorrelation.weights import (
    NeighborGraph, SpatialWeights, ZeroPolicy, contiguity_neighbors, lag
)


def grid_weights(rows=5, cols=5, criterion='rook', style='W'):
    polygons = [box(c, r, c + 1, r + 1) for r in range(rows) for c in range(cols)]
    return SpatialWeights.from_graph(contiguity_neighbors(polygons, criterion=criterion), style=style)


class TestMoransI(unittest.TestCase):
    """Test cases for the closed-form statistic."""

    def setUp(self):
        """Set up test fixtures."""
        self.rng = np.random.default_rng(2024)
        self.weights = grid_weights()

    def test_hand_computed_path(self):
        """A four-unit path with a linear trend."""
        graph = NeighborGraph({0: [1], 1: [0, 2], 2: [1, 3], 3: [2]})
        weights = SpatialWeights.from_graph(graph, style='B')
        # z = [-1.5, -0.5, 0.5, 1.5]; sum w z z = 2 * (0.75 - 0.25 + 0.75); sum z^2 = 5; S0 = 6
        self.assertAlmostEqual(morans_i([1, 2, 3, 4], weights), (4 / 6) * 2.5 / 5)

    def test_checkerboard_is_negative(self):
        """Alternating values under rook contiguity give I = -1."""
        x = np.array([(r + c) % 2 for r in range(5) for c in range(5)], dtype=float)
        self.assertAlmostEqual(morans_i(x, self.weights), -1.0)

    def test_gradient_is_positive(self):
        """A smooth gradient is positively autocorrelated."""
        x = np.array([r + c for r in range(5) for c in range(5)], dtype=float)
        self.assertGreater(morans_i(x, self.weights), 0.5)

    def test_invariant_to_affine_transform(self):
        """Shifting and scaling the attribute leaves I unchanged."""
        x = self.rng.normal(size=25)
        self.assertAlmostEqual(morans_i(x, self.weights), morans_i(3.0 * x - 40.0, self.weights))

    def test_accepts_series(self):
        """Pandas input gives the same value as the array."""
        x = self.rng.normal(size=25)
        self.assertAlmostEqual(morans_i(pd.Series(x), self.weights), morans_i(x, self.weights))

    def test_constant_attribute(self):
        """Zero variance raises DegenerateInputError."""
        with self.assertRaises(DegenerateInputError):
            morans_i(np.full(25, 3.2), self.weights)
        with self.assertRaises(DegenerateInputError):
            morans_i_regression(np.full(25, 3.2), self.weights)

    def test_dimension_mismatch(self):
        """Attribute length must equal the number of units."""
        with self.assertRaises(DimensionMismatchError):
            morans_i(np.arange(24.0), self.weights)

    def test_all_zero_weights(self):
        """Weights without links leave the statistic undefined."""
        weights = SpatialWeights.from_graph(NeighborGraph({0: [], 1: [], 2: []}), zero_policy='allow')
        with self.assertRaises(DegenerateInputError):
            morans_i([1.0, 2.0, 4.0], weights)


class TestRegressionForm(unittest.TestCase):
    """Test cases for the Moran scatterplot regression."""

    def setUp(self):
        """Set up test fixtures."""
        self.rng = np.random.default_rng(7)

    def test_slope_equals_statistic_for_row_standardized(self):
        """Without isolates the W-style slope is Moran's I itself."""
        weights = grid_weights(criterion='queen')
        x = self.rng.lognormal(mean=10, sigma=0.5, size=25)
        regression = morans_i_regression(x, weights)

        self.assertAlmostEqual(regression.scale, 1.0)
        self.assertGreaterEqual(regression.r_squared, 0.0)
        np.testing.assert_allclose(regression.slope, morans_i(x, weights), rtol=1e-6)

    def test_slope_of_raw_lag_on_raw_values(self):
        """Regressing lag(x) on x recovers the same slope under W-style weights."""
        weights = grid_weights()
        x = self.rng.normal(50, 10, size=25)
        slope = np.polyfit(x, lag(weights, x), 1)[0]
        np.testing.assert_allclose(slope, morans_i(x, weights), rtol=1e-6)

    def test_forms_agree_for_every_style(self):
        """Closed form and regression agree for all styles and random inputs."""
        for style in ('B', 'W', 'C', 'U', 'S'):
            weights = grid_weights(criterion='queen', style=style)
            for _ in range(5):
                x = self.rng.normal(size=25)
                closed = morans_i(x, weights)
                regression = morans_i_regression(x, weights).statistic
                np.testing.assert_allclose(regression, closed, rtol=1e-6, atol=1e-12, err_msg=style)

    def test_forms_agree_with_isolated_units(self):
        """Agreement holds when zero rows are allowed."""
        graph = NeighborGraph({0: [1, 2], 1: [0], 2: [0, 3], 3: [2], 4: [], 5: [3]})
        weights = SpatialWeights.from_graph(graph, style='W', zero_policy=ZeroPolicy.ALLOW)
        x = self.rng.normal(size=6)

        np.testing.assert_allclose(
            morans_i_regression(x, weights).statistic, morans_i(x, weights), rtol=1e-6
        )


class TestScatterFrame(unittest.TestCase):
    """Test cases for the Moran scatterplot table."""

    def test_columns_and_quadrants(self):
        """Standardized values and quadrant labels are consistent."""
        weights = grid_weights()
        x = pd.Series(np.arange(25.0), index=[f"unit_{i}" for i in range(25)])
        frame = moran_scatter_frame(x, weights)

        self.assertEqual(list(frame.columns), ['value', 'lag', 'z', 'lag_z', 'quadrant'])
        self.assertEqual(frame.index[0], 'unit_0')
        self.assertAlmostEqual(frame['z'].mean(), 0.0)
        self.assertEqual(frame.loc['unit_0', 'quadrant'], 'Low-Low')
        self.assertEqual(frame.loc['unit_24', 'quadrant'], 'High-High')

    def test_default_labels_from_weights(self):
        """Array input is labelled with the unit ids."""
        graph = NeighborGraph({0: [1], 1: [0]}, ids=['north', 'south'])
        weights = SpatialWeights.from_graph(graph)
        frame = moran_scatter_frame([1.0, 2.0], weights)
        self.assertEqual(list(frame.index), ['north', 'south'])
        self.assertEqual(list(frame['quadrant']), ['Low-High', 'High-Low'])


if __name__ == '__main__':
    unittest.main()
