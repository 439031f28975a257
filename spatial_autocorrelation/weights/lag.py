"""
Spatial lag operator.
"""
import logging
from typing import Any, Union

import numpy as np
import pandas as pd

from spatial_autocorrelation.core.exceptions import ConfigurationError, DimensionMismatchError
from spatial_autocorrelation.weights.spatial_weights import SpatialWeights

logger = logging.getLogger(__name__)


def as_attribute(attribute: Any, n: int) -> np.ndarray:
    """
    Validate an attribute vector against N units.

    Raises:
        DimensionMismatchError: If the length differs from ``n``.
        ConfigurationError: If the values are not finite numbers.
    """
    try:
        values = np.asarray(attribute, dtype=float)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Attribute is not numeric ({e})") from e

    # Column vectors are accepted
    if values.ndim == 2 and 1 in values.shape:
        values = values.ravel()
    if values.ndim != 1:
        raise ConfigurationError(f"Attribute must be one-dimensional, got shape {values.shape}")
    if values.size != n:
        raise DimensionMismatchError(expected=n, actual=values.size)
    if not np.isfinite(values).all():
        raise ConfigurationError("Attribute contains NaN or infinite values")
    return values


def lag(weights: SpatialWeights, attribute: Any) -> Union[np.ndarray, pd.Series]:
    """
    Spatially lagged attribute, ``lag[i] = sum_j w_ij * x_j``.

    Units without neighbors (allowed by the zero policy) have a lag of 0.
    A pandas Series comes back as a Series with the same index and name.

    Raises:
        DimensionMismatchError: If the attribute length differs from the number of units.
    """
    values = as_attribute(attribute, weights.n)
    lagged = weights.dot(values)
    if isinstance(attribute, pd.Series):
        return pd.Series(lagged, index=attribute.index, name=f"lag_{attribute.name}" if attribute.name else None)
    return lagged
