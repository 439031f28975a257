"""
Spatial weights module.

This module provides the SpatialWeights class, an immutable sparse weight
matrix derived from a NeighborGraph and a normalization style.
"""
import enum
import logging
from typing import Dict, Hashable, Optional, Tuple, Union

import numpy as np
from scipy import sparse

from spatial_autocorrelation.core.config import get_config
from spatial_autocorrelation.core.exceptions import ConfigurationError, IsolatedUnitError
from spatial_autocorrelation.weights.graph import NeighborGraph

logger = logging.getLogger(__name__)

STYLES = ('B', 'W', 'C', 'U', 'S')


class ZeroPolicy(str, enum.Enum):
    """How units without neighbors are treated when building weights."""

    REJECT = 'reject'
    ALLOW = 'allow'

    @classmethod
    def parse(cls, value: Union['ZeroPolicy', str, bool]) -> 'ZeroPolicy':
        """Accept the enum, its value, or a boolean ``allow`` flag."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.ALLOW if value else cls.REJECT
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown zero policy '{value}', expected one of {[p.value for p in cls]}"
            ) from None


def _style_values(binary: sparse.csr_matrix, style: str, n_effective: int) -> np.ndarray:
    """Weight of every stored link of ``binary`` under ``style``."""
    counts = np.diff(binary.indptr)
    row_of_link = np.repeat(np.arange(binary.shape[0]), counts)
    total_links = float(binary.nnz)

    if style == 'B':
        return np.ones(binary.nnz)
    if style == 'W':
        return 1.0 / counts[row_of_link]
    if style == 'C':
        return np.full(binary.nnz, n_effective / total_links)
    if style == 'U':
        return np.full(binary.nnz, 1.0 / total_links)

    # 'S': row-wise 1/sqrt(k_i), then rescaled so the weights sum to the effective N
    scaled = 1.0 / np.sqrt(counts[row_of_link])
    return scaled * (n_effective / scaled.sum())


class SpatialWeights:
    """
    Spatial weights matrix for N areal units.

    Instances are immutable. Changing the neighbor definition or the style
    means building a new value through :meth:`from_graph` or :meth:`transform`.

    Attributes:
        graph (NeighborGraph): Neighbor graph the weights were derived from.
        style (str): Normalization style, one of B, W, C, U, S.
        zero_policy (ZeroPolicy): Policy applied to units without neighbors.
    """

    def __init__(
        self,
        graph: NeighborGraph,
        matrix: sparse.csr_matrix,
        style: str,
        zero_policy: ZeroPolicy,
    ):
        self.graph = graph
        self.style = style
        self.zero_policy = zero_policy
        self._matrix = matrix.tocsr()
        self._matrix.sort_indices()

        self._row_sums = np.asarray(self._matrix.sum(axis=1)).ravel()
        col_sums = np.asarray(self._matrix.sum(axis=0)).ravel()
        symmetric_part = self._matrix + self._matrix.T
        self.s0 = float(self._row_sums.sum())
        self.s1 = float(0.5 * symmetric_part.multiply(symmetric_part).sum())
        self.s2 = float(np.sum((self._row_sums + col_sums) ** 2))

    @classmethod
    def from_graph(
        cls,
        graph: NeighborGraph,
        style: Optional[str] = None,
        zero_policy: Optional[Union[ZeroPolicy, str, bool]] = None,
    ) -> 'SpatialWeights':
        """
        Derive spatial weights from a neighbor graph.

        Args:
            graph: Neighbor graph over N units.
            style: 'B' binary, 'W' row-standardized, 'C' globally standardized,
                'U' globally standardized divided by N, 'S' variance stabilizing.
                Defaults to ``weights.style`` from the configuration.
            zero_policy: REJECT raises on units without neighbors, ALLOW keeps
                them as all-zero rows and logs a warning. Defaults to
                ``weights.zero_policy``.

        Returns:
            SpatialWeights instance.

        Raises:
            ConfigurationError: If the style or zero policy is unknown.
            IsolatedUnitError: If a unit has no neighbors under the REJECT policy.
        """
        config = get_config()
        style = str(style or config.get('weights.style', 'W')).upper()
        if style not in STYLES:
            raise ConfigurationError(f"Unknown weights style '{style}', expected one of {STYLES}")
        policy = ZeroPolicy.parse(
            zero_policy if zero_policy is not None else config.get('weights.zero_policy', 'reject')
        )

        isolated = graph.isolated
        if isolated:
            if policy is ZeroPolicy.REJECT:
                logger.error(f"{len(isolated)} units have no neighbors: {list(isolated[:10])}")
                raise IsolatedUnitError(isolated)
            logger.warning(
                f"{len(isolated)} units have no neighbors and get all-zero weight rows: {list(isolated[:10])}"
            )

        binary = graph.to_sparse()
        binary.sort_indices()
        if binary.nnz == 0:
            matrix = binary
        else:
            n_effective = graph.n - len(isolated)
            values = _style_values(binary, style, n_effective)
            matrix = sparse.csr_matrix(
                (values, binary.indices.copy(), binary.indptr.copy()), shape=binary.shape
            )

        logger.info(f"Created {style} spatial weights for {graph.n} units ({binary.nnz} links)")
        return cls(graph, matrix, style, policy)

    def transform(self, style: str) -> 'SpatialWeights':
        """Return weights over the same graph under another style."""
        return SpatialWeights.from_graph(self.graph, style=style, zero_policy=self.zero_policy)

    @property
    def n(self) -> int:
        return self.graph.n

    @property
    def ids(self) -> Tuple[Hashable, ...]:
        return self.graph.ids

    @property
    def sparse(self) -> sparse.csr_matrix:
        """Copy of the weights as a CSR matrix."""
        return self._matrix.copy()

    def dense(self) -> np.ndarray:
        """Weights as a dense N x N array."""
        return self._matrix.toarray()

    @property
    def row_sums(self) -> np.ndarray:
        return self._row_sums.copy()

    @property
    def isolated(self) -> Tuple[int, ...]:
        return self.graph.isolated

    @property
    def cardinalities(self) -> np.ndarray:
        return self.graph.cardinalities

    def neighbors_of(self, unit: int) -> Tuple[int, ...]:
        """Neighbor indices of ``unit``."""
        return self.graph[unit]

    def weights_of(self, unit: int) -> Dict[int, float]:
        """Mapping of neighbor index to weight for ``unit``."""
        if unit < 0 or unit >= self.n:
            raise IndexError(f"Unit {unit} out of range for {self.n} units")
        start, end = self._matrix.indptr[unit], self._matrix.indptr[unit + 1]
        return dict(zip(self._matrix.indices[start:end].tolist(), self._matrix.data[start:end].tolist()))

    def dot(self, vector: np.ndarray) -> np.ndarray:
        """Matrix-vector product without validation, for internal hot loops."""
        return self._matrix @ vector

    def __repr__(self) -> str:
        return f"SpatialWeights(n={self.n}, style='{self.style}', s0={self.s0:.4g})"
