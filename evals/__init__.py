"""
Evaluation Scripts
==================
Quality evaluation and metrics for the temporal patterns outputs.
"""

from .eval_temporal_patterns import run_evaluation

__all__ = [
    'run_evaluation',
]
