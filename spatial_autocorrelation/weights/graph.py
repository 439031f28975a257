"""
Neighbor graph for areal units.

This module provides the NeighborGraph class, the adjacency relation over a
fixed set of N spatial units from which spatial weights are derived.
"""
import logging
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import sparse

from spatial_autocorrelation.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class NeighborGraph:
    """
    Immutable adjacency relation over N spatial units.

    Units are addressed by 0-based index. Every index in ``0..N-1`` has an
    entry, possibly empty for an isolated unit. Self-loops are not allowed.
    Symmetry is expected but not enforced.

    Attributes:
        n (int): Number of spatial units.
        ids (Tuple[Hashable, ...]): Unit labels, one per index.
        params (Dict[str, Any]): Parameters of the construction that produced the graph.
    """

    def __init__(
        self,
        neighbors: Mapping[int, Iterable[int]],
        ids: Optional[Sequence[Hashable]] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the neighbor graph.

        Args:
            neighbors: Mapping from unit index to its neighbor indices.
            ids: Labels of the units. Defaults to the indices themselves.
            params: Construction parameters kept for inspection.

        Raises:
            ConfigurationError: If indices are missing, out of range or self-referencing.
        """
        n = len(neighbors)
        expected = set(range(n))
        if set(neighbors) != expected:
            missing = sorted(expected - set(neighbors))
            extra = sorted(set(neighbors) - expected)
            raise ConfigurationError(
                f"Neighbor mapping must have keys 0..{n - 1}; missing={missing[:10]}, unexpected={extra[:10]}"
            )

        adjacency: List[Tuple[int, ...]] = []
        for i in range(n):
            row: List[int] = []
            seen = set()
            for j in neighbors[i]:
                j = int(j)
                if j == i:
                    raise ConfigurationError(f"Unit {i} lists itself as a neighbor")
                if j < 0 or j >= n:
                    raise ConfigurationError(f"Unit {i} has out-of-range neighbor {j}")
                if j not in seen:
                    seen.add(j)
                    row.append(j)
            adjacency.append(tuple(row))
        self._neighbors: Tuple[Tuple[int, ...], ...] = tuple(adjacency)

        if ids is None:
            self.ids: Tuple[Hashable, ...] = tuple(range(n))
        else:
            if len(ids) != n:
                raise ConfigurationError(f"Got {len(ids)} ids for {n} units")
            self.ids = tuple(ids)

        self.params = dict(params or {})

    @property
    def n(self) -> int:
        return len(self._neighbors)

    def __len__(self) -> int:
        return self.n

    def __getitem__(self, i: int) -> Tuple[int, ...]:
        return self._neighbors[i]

    def __iter__(self):
        return iter(range(self.n))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NeighborGraph):
            return NotImplemented
        return self._neighbors == other._neighbors

    def __repr__(self) -> str:
        return f"NeighborGraph(n={self.n}, links={self.n_links})"

    @property
    def neighbors(self) -> Dict[int, Tuple[int, ...]]:
        """Copy of the adjacency as a plain dictionary."""
        return {i: row for i, row in enumerate(self._neighbors)}

    @property
    def cardinalities(self) -> np.ndarray:
        """Number of neighbors of every unit."""
        return np.fromiter((len(row) for row in self._neighbors), dtype=int, count=self.n)

    @property
    def n_links(self) -> int:
        """Number of directed neighbor links."""
        return int(self.cardinalities.sum()) if self.n else 0

    @property
    def isolated(self) -> Tuple[int, ...]:
        """Indices of units without neighbors."""
        return tuple(i for i, row in enumerate(self._neighbors) if not row)

    def is_symmetric(self) -> bool:
        """Whether every link ``i -> j`` has its reverse ``j -> i``."""
        links = {(i, j) for i, row in enumerate(self._neighbors) for j in row}
        return all((j, i) in links for i, j in links)

    def to_sparse(self) -> sparse.csr_matrix:
        """Binary adjacency as a CSR matrix."""
        rows = np.repeat(np.arange(self.n), self.cardinalities)
        cols = np.fromiter(
            (j for row in self._neighbors for j in row), dtype=int, count=int(rows.size)
        )
        data = np.ones(rows.size, dtype=float)
        return sparse.csr_matrix((data, (rows, cols)), shape=(self.n, self.n))

    @classmethod
    def from_sparse(
        cls, matrix: Any, ids: Optional[Sequence[Hashable]] = None
    ) -> 'NeighborGraph':
        """Build a graph from the non-zero pattern of a square matrix."""
        coo = sparse.coo_matrix(matrix)
        if coo.shape[0] != coo.shape[1]:
            raise ConfigurationError(f"Adjacency matrix must be square, got {coo.shape}")
        keep = (coo.row != coo.col) & (coo.data != 0)
        neighbors: Dict[int, List[int]] = {i: [] for i in range(coo.shape[0])}
        for i, j in sorted(zip(coo.row[keep].tolist(), coo.col[keep].tolist())):
            neighbors[i].append(j)
        return cls(neighbors, ids=ids, params={'type': 'matrix'})

    @classmethod
    def from_polygons(
        cls,
        polygons: Any,
        criterion: Optional[str] = None,
        tolerance: Optional[float] = None,
        ids: Optional[Sequence[Hashable]] = None,
    ) -> 'NeighborGraph':
        """Build a contiguity graph; see :func:`contiguity_neighbors`."""
        from spatial_autocorrelation.weights.contiguity import contiguity_neighbors

        return contiguity_neighbors(polygons, criterion=criterion, tolerance=tolerance, ids=ids)

    @classmethod
    def from_distance_band(
        cls,
        coords: Any,
        r1: float,
        r0: float = 0.0,
        bounds: Tuple[str, str] = ('GE', 'LE'),
        ids: Optional[Sequence[Hashable]] = None,
    ) -> 'NeighborGraph':
        """Build a distance-band graph; see :func:`distance_band_neighbors`."""
        from spatial_autocorrelation.weights.distance import distance_band_neighbors

        return distance_band_neighbors(coords, r1=r1, r0=r0, bounds=bounds, ids=ids)

    @classmethod
    def from_knn(
        cls, coords: Any, k: int, ids: Optional[Sequence[Hashable]] = None
    ) -> 'NeighborGraph':
        """Build a k-nearest-neighbor graph; see :func:`knn_neighbors`."""
        from spatial_autocorrelation.weights.distance import knn_neighbors

        return knn_neighbors(coords, k=k, ids=ids)
