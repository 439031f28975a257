"""
Neighbor graphs, spatial weights and the spatial lag operator.
"""
from .graph import NeighborGraph
from .geometry import as_polygon, coerce_polygons, coerce_coordinates, polygon_centroids
from .contiguity import contiguity_neighbors
from .distance import distance_band_neighbors, knn_neighbors
from .spatial_weights import SpatialWeights, ZeroPolicy, STYLES
from .lag import lag, as_attribute
from .diagnostics import graph_diagnostics, cardinality_table, cardinality_distribution

__all__ = [
    'NeighborGraph',
    'as_polygon', 'coerce_polygons', 'coerce_coordinates', 'polygon_centroids',
    'contiguity_neighbors', 'distance_band_neighbors', 'knn_neighbors',
    'SpatialWeights', 'ZeroPolicy', 'STYLES',
    'lag', 'as_attribute',
    'graph_diagnostics', 'cardinality_table', 'cardinality_distribution',
]
