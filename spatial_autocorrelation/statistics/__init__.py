"""
Moran's I and its significance tests.
"""
from .schemas import (
    SignificanceSettings, MoranRegression, AnalyticMoranTest, PermutationMoranTest, MoranResult
)
from .moran import morans_i, morans_i_regression, moran_scatter_frame, deviations
from .significance import (
    analytic_test, permutation_test, moran_test, moran_variance,
    pseudo_p_value, count_greater
)

__all__ = [
    'SignificanceSettings', 'MoranRegression', 'AnalyticMoranTest', 'PermutationMoranTest', 'MoranResult',
    'morans_i', 'morans_i_regression', 'moran_scatter_frame', 'deviations',
    'analytic_test', 'permutation_test', 'moran_test', 'moran_variance',
    'pseudo_p_value', 'count_greater',
]
