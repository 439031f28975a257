"""Spatial autocorrelation of areal data.

This package provides the computational core of global spatial
autocorrelation analysis: neighbor graphs from polygon contiguity or
centroid distance bands, normalized spatial weights, the spatial lag,
Moran's I by closed form and by regression, and its analytic and Monte
Carlo permutation significance tests.
"""

__version__ = '0.1.0'

from spatial_autocorrelation.core import (
    get_config, initialize_config, setup_logging,
    SpatialAnalysisError, GeometryError, ConfigurationError, IsolatedUnitError,
    DimensionMismatchError, DegenerateInputError, SimulationCancelledError,
)
from spatial_autocorrelation.weights import (
    NeighborGraph, SpatialWeights, ZeroPolicy,
    contiguity_neighbors, distance_band_neighbors, knn_neighbors, polygon_centroids,
    lag, graph_diagnostics,
)
from spatial_autocorrelation.statistics import (
    MoranResult, morans_i, morans_i_regression, moran_scatter_frame,
    analytic_test, permutation_test, moran_test, pseudo_p_value,
)

__all__ = [
    '__version__',
    'get_config', 'initialize_config', 'setup_logging',
    'SpatialAnalysisError', 'GeometryError', 'ConfigurationError', 'IsolatedUnitError',
    'DimensionMismatchError', 'DegenerateInputError', 'SimulationCancelledError',
    'NeighborGraph', 'SpatialWeights', 'ZeroPolicy',
    'contiguity_neighbors', 'distance_band_neighbors', 'knn_neighbors', 'polygon_centroids',
    'lag', 'graph_diagnostics',
    'MoranResult', 'morans_i', 'morans_i_regression', 'moran_scatter_frame',
    'analytic_test', 'permutation_test', 'moran_test', 'pseudo_p_value',
]
