"""
Pydantic schemas for settings and results of Moran's I analysis.
"""
import os
from typing import Any, Dict, Literal, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spatial_autocorrelation.core.config import Config, get_config
from spatial_autocorrelation.core.exceptions import ConfigurationError

Alternative = Literal['two-sided', 'greater', 'less']
Assumption = Literal['randomization', 'normality']


class SignificanceSettings(BaseModel):
    """Schema for significance testing configuration."""
    model_config = ConfigDict(validate_assignment=True)

    permutations: int = Field(599, ge=1)
    seed: Optional[int] = Field(None, ge=0)
    alternative: Alternative = 'two-sided'
    assumption: Assumption = 'randomization'
    n_jobs: int = 1
    chunk_size: int = Field(100, ge=1)

    @field_validator('n_jobs')
    @classmethod
    def check_n_jobs(cls, v):
        """Zero workers is meaningless; negative values mean 'all but one core'."""
        if v == 0:
            raise ValueError("n_jobs must be non-zero")
        return v

    @property
    def workers(self) -> int:
        """Resolved number of worker processes."""
        if self.n_jobs > 0:
            return self.n_jobs
        return max(1, (os.cpu_count() or 2) - 1)

    @classmethod
    def from_config(cls, config: Optional[Config] = None, **overrides: Any) -> 'SignificanceSettings':
        """
        Build settings from the ``significance`` configuration section.

        Keyword overrides that are None fall back to the configured value.

        Raises:
            ConfigurationError: If a value fails validation.
        """
        config = config or get_config()
        values: Dict[str, Any] = dict(config.get('significance', {}) or {})
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid significance settings: {e}") from e


class MoranRegression(BaseModel):
    """OLS fit of the lagged deviations on the deviations (Moran scatterplot)."""
    model_config = ConfigDict(frozen=True)

    slope: float
    intercept: float
    r_squared: float
    scale: float = Field(..., description="N / S0; 1 for row-standardized weights without isolates")
    statistic: float = Field(..., description="Moran's I implied by the slope, slope * N / S0")


class AnalyticMoranTest(BaseModel):
    """Normal approximation of Moran's I under spatial independence."""
    model_config = ConfigDict(frozen=True)

    statistic: float
    expected: float
    variance: float
    z_score: float
    p_value: float
    assumption: Assumption
    alternative: Alternative


class PermutationMoranTest(BaseModel):
    """Monte Carlo permutation test of Moran's I."""
    model_config = ConfigDict(frozen=True)

    statistic: float
    simulated: Tuple[float, ...]
    n_greater: int
    p_value: float
    permutations: int
    seed: Optional[int] = None

    @property
    def simulated_array(self) -> np.ndarray:
        return np.asarray(self.simulated, dtype=float)

    @property
    def expected(self) -> float:
        """Mean of the reference distribution."""
        return float(np.mean(self.simulated))

    @property
    def variance(self) -> float:
        """Variance of the reference distribution."""
        return float(np.var(self.simulated, ddof=1)) if len(self.simulated) > 1 else 0.0

    @property
    def z_score(self) -> Optional[float]:
        """Standardized statistic against the reference distribution."""
        sd = np.sqrt(self.variance)
        return float((self.statistic - self.expected) / sd) if sd > 0 else None


class MoranResult(BaseModel):
    """
    Global Moran's I with its significance.

    Analytic fields are None when only the permutation test ran, permutation
    fields are None when only the analytic test ran.
    """
    model_config = ConfigDict(frozen=True)

    statistic: float
    expected: float
    n: int
    variance: Optional[float] = None
    z_score: Optional[float] = None
    p_value_analytic: Optional[float] = None
    p_value_sim: Optional[float] = None
    simulated: Optional[Tuple[float, ...]] = None
    permutations: int = 0
    seed: Optional[int] = None
    alternative: Alternative = 'two-sided'
    assumption: Assumption = 'randomization'

    @property
    def simulated_array(self) -> Optional[np.ndarray]:
        if self.simulated is None:
            return None
        return np.asarray(self.simulated, dtype=float)

    def summary(self) -> str:
        """Short human-readable summary."""
        lines = [
            "Moran's I",
            "---------",
            f"Units: {self.n}",
            f"Statistic: {self.statistic:.6f} (expected {self.expected:.6f})",
        ]
        if self.p_value_analytic is not None:
            lines.append(
                f"Analytic ({self.assumption}, {self.alternative}): "
                f"variance={self.variance:.6g}, z={self.z_score:.4f}, p={self.p_value_analytic:.4g}"
            )
        if self.p_value_sim is not None:
            lines.append(f"Permutation ({self.permutations} draws): p={self.p_value_sim:.4g}")
        return "\n".join(lines)
