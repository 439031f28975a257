"""
Global Moran's I.

Two equivalent routes are provided: the closed form

    I = (N / S0) * sum_ij w_ij z_i z_j / sum_i z_i^2,   z = x - mean(x)

and the Moran scatterplot regression, an OLS fit of the lagged deviations on
the deviations whose slope, scaled by N / S0, is the same statistic. Under
row-standardized weights without isolated units N / S0 = 1 and the slope is
Moran's I itself.
"""
import logging
from typing import Any, Hashable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from spatial_autocorrelation.core.exceptions import DegenerateInputError
from spatial_autocorrelation.statistics.schemas import MoranRegression
from spatial_autocorrelation.weights.lag import as_attribute
from spatial_autocorrelation.weights.spatial_weights import SpatialWeights

logger = logging.getLogger(__name__)


def deviations(attribute: Any, weights: SpatialWeights) -> Tuple[np.ndarray, float]:
    """
    Deviations from the mean and their sum of squares.

    Raises:
        DimensionMismatchError: If the attribute length differs from the number of units.
        DegenerateInputError: If the attribute is constant or the weights are all zero.
    """
    values = as_attribute(attribute, weights.n)
    z = values - values.mean()
    sum_squares = float(z @ z)
    if sum_squares <= 0.0 or np.all(values == values[0]):
        raise DegenerateInputError("Attribute has zero variance; Moran's I is undefined")
    if weights.s0 <= 0.0:
        raise DegenerateInputError("Sum of weights is zero; Moran's I is undefined")
    return z, sum_squares


def moran_from_deviations(
    z: np.ndarray, sum_squares: float, weights: SpatialWeights
) -> float:
    """Closed-form statistic for pre-validated deviations."""
    return float((weights.n / weights.s0) * (z @ weights.dot(z)) / sum_squares)


def morans_i(attribute: Any, weights: SpatialWeights) -> float:
    """
    Moran's I by the closed-form double sum.

    Args:
        attribute: Numeric vector with one value per unit.
        weights: Spatial weights over the same units.

    Returns:
        The statistic.

    Raises:
        DimensionMismatchError: If the attribute length differs from the number of units.
        DegenerateInputError: If the attribute has zero variance.
    """
    z, sum_squares = deviations(attribute, weights)
    statistic = moran_from_deviations(z, sum_squares, weights)
    logger.debug(f"Moran's I = {statistic:.6f} (n={weights.n}, style={weights.style})")
    return statistic


def morans_i_regression(attribute: Any, weights: SpatialWeights) -> MoranRegression:
    """
    Moran's I as the slope of the Moran scatterplot.

    Fits ``lag(z) = a + b * z`` by ordinary least squares with an intercept.

    Returns:
        MoranRegression with the slope, intercept, R-squared and the implied statistic.

    Raises:
        DimensionMismatchError: If the attribute length differs from the number of units.
        DegenerateInputError: If the attribute has zero variance.
    """
    z, _ = deviations(attribute, weights)
    lagged = weights.dot(z)

    model = sm.OLS(lagged, sm.add_constant(z, has_constant='add')).fit()
    intercept, slope = (float(p) for p in model.params)
    scale = weights.n / weights.s0
    # A constant lag (e.g. all zero) leaves R-squared undefined
    r_squared = float(model.rsquared) if np.isfinite(model.rsquared) else 0.0

    result = MoranRegression(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        scale=scale,
        statistic=slope * scale,
    )
    logger.debug(f"Moran scatterplot slope = {slope:.6f}, implied I = {result.statistic:.6f}")
    return result


def _quadrant(z: np.ndarray, lagged: np.ndarray) -> np.ndarray:
    return np.select(
        [(z >= 0) & (lagged >= 0), (z < 0) & (lagged < 0), (z < 0) & (lagged >= 0)],
        ['High-High', 'Low-Low', 'Low-High'],
        default='High-Low',
    )


def moran_scatter_frame(
    attribute: Any,
    weights: SpatialWeights,
    labels: Optional[Sequence[Hashable]] = None,
) -> pd.DataFrame:
    """
    Table behind the Moran scatterplot.

    Columns: ``value``, ``lag``, ``z`` (standardized value), ``lag_z``
    (lag of the standardized value) and ``quadrant``. Rows are indexed by
    ``labels``, the attribute's index for a Series, or the weights' unit ids.
    """
    values = as_attribute(attribute, weights.n)
    sd = values.std()
    if sd <= 0.0:
        raise DegenerateInputError("Attribute has zero variance; Moran's I is undefined")
    z = (values - values.mean()) / sd
    lag_z = weights.dot(z)

    if labels is None:
        labels = attribute.index if isinstance(attribute, pd.Series) else list(weights.ids)

    return pd.DataFrame(
        {
            'value': values,
            'lag': weights.dot(values),
            'z': z,
            'lag_z': lag_z,
            'quadrant': _quadrant(z, lag_z),
        },
        index=pd.Index(labels, name='unit'),
    )
