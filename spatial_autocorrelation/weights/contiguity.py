"""
Polygon contiguity neighbors.

Two units are queen neighbors when their boundaries share at least one point
and rook neighbors when they share a boundary segment of positive length.
Floating-point coincidence is resolved with an absolute ``tolerance``:
boundaries closer than the tolerance touch, and for the rook test one
boundary is snapped onto the other before the shared length is measured.
"""
import logging
from typing import Any, Dict, Hashable, Optional, Sequence, Set

import numpy as np
import shapely
from shapely import STRtree

from spatial_autocorrelation.core.config import get_config
from spatial_autocorrelation.core.decorators import performance_tracker
from spatial_autocorrelation.core.exceptions import ConfigurationError
from spatial_autocorrelation.weights.geometry import coerce_polygons
from spatial_autocorrelation.weights.graph import NeighborGraph

logger = logging.getLogger(__name__)

CRITERIA = ('queen', 'rook')


def _candidate_pairs(geoms: np.ndarray, tolerance: float) -> np.ndarray:
    """Pairs ``i < j`` whose bounding boxes, grown by the tolerance, intersect."""
    bounds = shapely.bounds(geoms)
    boxes = shapely.box(
        bounds[:, 0] - tolerance, bounds[:, 1] - tolerance,
        bounds[:, 2] + tolerance, bounds[:, 3] + tolerance,
    )
    tree = STRtree(geoms)
    left, right = tree.query(boxes)
    keep = left < right
    return np.column_stack([left[keep], right[keep]])


@performance_tracker()
def contiguity_neighbors(
    polygons: Any,
    criterion: Optional[str] = None,
    tolerance: Optional[float] = None,
    ids: Optional[Sequence[Hashable]] = None,
) -> NeighborGraph:
    """
    Build a contiguity neighbor graph from polygons.

    Args:
        polygons: GeoDataFrame, GeoSeries, or a sequence of shapely polygons
            or (m, 2) vertex arrays.
        criterion: 'queen' (shared point) or 'rook' (shared edge). Defaults to
            ``weights.contiguity.criterion`` from the configuration.
        tolerance: Absolute distance under which boundaries are considered
            coincident. Defaults to ``weights.contiguity.tolerance``.
        ids: Unit labels.

    Returns:
        NeighborGraph with neighbors listed in ascending index order. Units
        without a contiguous neighbor get an empty entry.

    Raises:
        GeometryError: If any polygon is malformed.
        ConfigurationError: If the criterion is unknown or the tolerance negative.
    """
    config = get_config()
    criterion = (criterion or config.get('weights.contiguity.criterion', 'queen')).lower()
    if tolerance is None:
        tolerance = float(config.get('weights.contiguity.tolerance', 1e-9))

    if criterion not in CRITERIA:
        raise ConfigurationError(f"Unknown contiguity criterion '{criterion}', expected one of {CRITERIA}")
    if tolerance < 0:
        raise ConfigurationError(f"Contiguity tolerance must be non-negative, got {tolerance}")

    geoms, labels = coerce_polygons(polygons, ids)
    n = len(geoms)
    logger.info(f"Creating {criterion} contiguity neighbors for {n} polygons (tolerance={tolerance:g})")

    pairs = _candidate_pairs(geoms, tolerance)
    boundaries = shapely.boundary(geoms)

    if len(pairs):
        left, right = boundaries[pairs[:, 0]], boundaries[pairs[:, 1]]
        touching = shapely.distance(left, right) <= tolerance
        pairs, left, right = pairs[touching], left[touching], right[touching]

        if criterion == 'rook' and len(pairs):
            snapped = shapely.snap(left, right, tolerance)
            shared = shapely.length(shapely.intersection(snapped, right))
            pairs = pairs[shared > tolerance]

    adjacency: Dict[int, Set[int]] = {i: set() for i in range(n)}
    for i, j in pairs.tolist():
        adjacency[i].add(j)
        adjacency[j].add(i)

    graph = NeighborGraph(
        {i: sorted(nbrs) for i, nbrs in adjacency.items()},
        ids=labels,
        params={'type': criterion, 'tolerance': tolerance},
    )

    if graph.isolated:
        logger.info(f"{len(graph.isolated)} polygons have no {criterion} neighbor")
    logger.info(f"Created {criterion} contiguity graph with {graph.n_links} links")
    return graph
