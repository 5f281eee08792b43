"""Evaluation utilities for MINT integration results."""

from .metrics import (
    balanced_error_rate,
    misclassification_rate,
    marker_overlap,
    compute_integration_metrics,
)
from .visualization import plot_components, plot_tuning, plot_marker_overlap

__all__ = [
    'balanced_error_rate',
    'misclassification_rate',
    'marker_overlap',
    'compute_integration_metrics',
    'plot_components',
    'plot_tuning',
    'plot_marker_overlap',
]
