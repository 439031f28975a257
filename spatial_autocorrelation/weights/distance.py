"""
Distance-based neighbors on unit centroids.

Distance bands and k-nearest neighbors are both answered from a scipy
``cKDTree`` so construction stays near-linear in the number of units.
"""
import logging
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from spatial_autocorrelation.core.decorators import performance_tracker
from spatial_autocorrelation.core.exceptions import ConfigurationError
from spatial_autocorrelation.weights.geometry import coerce_coordinates
from spatial_autocorrelation.weights.graph import NeighborGraph

logger = logging.getLogger(__name__)

LOWER_BOUNDS = ('GE', 'GT')
UPPER_BOUNDS = ('LE', 'LT')


def _validate_band(r0: float, r1: float, bounds: Tuple[str, str]) -> Tuple[str, str]:
    if r0 is None or r1 is None or not np.isfinite(r0) or not np.isfinite(r1):
        raise ConfigurationError(f"Distance band radii must be finite numbers, got r0={r0}, r1={r1}")
    if r0 < 0 or r1 < 0:
        raise ConfigurationError(f"Distance band radii must be non-negative, got r0={r0}, r1={r1}")
    if r0 > r1:
        raise ConfigurationError(f"Inner radius r0={r0} exceeds outer radius r1={r1}")

    lower, upper = (b.upper() for b in bounds)
    if lower not in LOWER_BOUNDS or upper not in UPPER_BOUNDS:
        raise ConfigurationError(
            f"Invalid bounds {bounds}; lower must be one of {LOWER_BOUNDS}, upper one of {UPPER_BOUNDS}"
        )
    return lower, upper


@performance_tracker()
def distance_band_neighbors(
    coords: Any,
    r1: float,
    r0: float = 0.0,
    bounds: Tuple[str, str] = ('GE', 'LE'),
    ids: Optional[Sequence[Hashable]] = None,
) -> NeighborGraph:
    """
    Build a distance-band neighbor graph from centroid coordinates.

    Units ``i != j`` are neighbors when their Euclidean distance ``d`` lies in
    the band. With the default bounds ``('GE', 'LE')`` the band is
    ``r0 <= d <= r1``; 'GT' makes the inner bound exclusive and 'LT' the outer.
    ``r0 = 0`` with the default bounds is a plain disk of radius ``r1``.

    Args:
        coords: (N, 2) centroid coordinates or point geometries.
        r1: Outer radius.
        r0: Inner radius.
        bounds: Inclusivity of the inner and outer bound.
        ids: Unit labels.

    Returns:
        NeighborGraph with neighbors in ascending index order.

    Raises:
        ConfigurationError: If a radius is negative or the band is inverted.
        GeometryError: If the coordinates are malformed.
    """
    lower, upper = _validate_band(r0, r1, bounds)
    points = coerce_coordinates(coords)
    n = len(points)
    logger.info(f"Creating distance band neighbors for {n} units with r0={r0}, r1={r1}, bounds={lower}/{upper}")

    tree = cKDTree(points)
    pairs = tree.query_pairs(r=r1, output_type='ndarray')

    if len(pairs):
        d = np.linalg.norm(points[pairs[:, 0]] - points[pairs[:, 1]], axis=1)
        keep = d >= r0 if lower == 'GE' else d > r0
        keep &= d <= r1 if upper == 'LE' else d < r1
        pairs = pairs[keep]

    adjacency: Dict[int, List[int]] = {i: [] for i in range(n)}
    for i, j in pairs.tolist():
        adjacency[i].append(j)
        adjacency[j].append(i)

    graph = NeighborGraph(
        {i: sorted(nbrs) for i, nbrs in adjacency.items()},
        ids=ids,
        params={'type': 'distance_band', 'r0': r0, 'r1': r1, 'bounds': (lower, upper)},
    )
    if graph.isolated:
        logger.info(f"{len(graph.isolated)} units have no neighbor within the band")
    logger.info(f"Created distance band graph with {graph.n_links} links")
    return graph


@performance_tracker()
def knn_neighbors(
    coords: Any, k: int, ids: Optional[Sequence[Hashable]] = None
) -> NeighborGraph:
    """
    Build a k-nearest-neighbor graph from centroid coordinates.

    The relation is generally asymmetric. Ties at the k-th distance are
    broken by the tree's query order.

    Raises:
        ConfigurationError: If ``k`` is not in ``1..N-1``.
    """
    points = coerce_coordinates(coords)
    n = len(points)
    if int(k) != k or k < 1 or k >= n:
        raise ConfigurationError(f"k must be an integer in 1..{n - 1}, got {k}")
    k = int(k)
    logger.info(f"Creating {k}-nearest neighbors for {n} units")

    tree = cKDTree(points)
    _, indices = tree.query(points, k=k + 1)

    adjacency: Dict[int, List[int]] = {}
    for i, row in enumerate(indices.tolist()):
        # Coincident points can push the unit itself out of first place
        others = [j for j in row if j != i][:k]
        adjacency[i] = sorted(others)

    return NeighborGraph(adjacency, ids=ids, params={'type': 'knn', 'k': k})
