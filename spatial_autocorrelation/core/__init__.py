"""
Core module for spatial autocorrelation analysis.
"""
from .config import Config, config, get_config, initialize_config
from .decorators import performance_tracker, performance_context
from .exceptions import (
    SpatialAnalysisError, GeometryError, ConfigurationError, IsolatedUnitError,
    DimensionMismatchError, DegenerateInputError, SimulationCancelledError
)
from .logging_setup import setup_logging, setup_logging_from_config, JsonFormatter

__all__ = [
    'Config', 'config', 'get_config', 'initialize_config',
    'performance_tracker', 'performance_context',
    'SpatialAnalysisError', 'GeometryError', 'ConfigurationError', 'IsolatedUnitError',
    'DimensionMismatchError', 'DegenerateInputError', 'SimulationCancelledError',
    'setup_logging', 'setup_logging_from_config', 'JsonFormatter'
]
