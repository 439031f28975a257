"""
Computation module for spatial autocorrelation analysis.
"""
from .parallel import parallel_map, resolve_workers, CancelSignal

__all__ = ['parallel_map', 'resolve_workers', 'CancelSignal']
