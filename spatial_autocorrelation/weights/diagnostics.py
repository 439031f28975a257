"""Neighbor graph diagnostics."""

import logging
from typing import Any, Dict

import numpy as np
import pandas as pd
from scipy.sparse.csgraph import connected_components

from spatial_autocorrelation.weights.graph import NeighborGraph

logger = logging.getLogger(__name__)


def graph_diagnostics(graph: NeighborGraph) -> Dict[str, Any]:
    """
    Compute diagnostic statistics for a neighbor graph.

    Parameters
    ----------
    graph : NeighborGraph
        Graph to inspect.

    Returns
    -------
    dict
        Unit and link counts, degree summary, isolated units, connected
        components, symmetry and sparsity.
    """
    degree = graph.cardinalities
    adjacency = graph.to_sparse()

    n_components, labels = connected_components(adjacency, directed=False, return_labels=True)
    component_sizes = pd.Series(labels).value_counts().sort_values(ascending=False)

    diagnostics = {
        "n_units": graph.n,
        "n_links": graph.n_links,
        "degree": {
            "mean": float(degree.mean()),
            "median": float(np.median(degree)),
            "min": int(degree.min()),
            "max": int(degree.max()),
            "std": float(degree.std()),
        },
        "connected_components": {
            "n_components": int(n_components),
            "largest_component_size": int(component_sizes.iloc[0]),
        },
        "isolated_units": list(graph.isolated),
        "symmetric": graph.is_symmetric(),
        "sparsity": float(1 - (graph.n_links / (graph.n ** 2))),
    }

    logger.info(
        f"Graph diagnostics: {diagnostics['n_links']} links, "
        f"{diagnostics['degree']['mean']:.1f} avg neighbors, "
        f"{diagnostics['connected_components']['n_components']} components"
    )

    return diagnostics


def cardinality_table(graph: NeighborGraph) -> pd.Series:
    """Number of neighbors per unit, indexed by unit label."""
    return pd.Series(graph.cardinalities, index=pd.Index(graph.ids, name="unit"), name="n_neighbors")


def cardinality_distribution(graph: NeighborGraph) -> pd.Series:
    """Count of units by number of neighbors."""
    return pd.Series(graph.cardinalities).value_counts().sort_index()
