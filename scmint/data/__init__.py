"""Data utilities for loading, checking, preprocessing, and generating data."""

from .loader import (
    load_data,
    count_levels,
    detect_batch_key,
    detect_label_key,
    class_batch_table,
)
from .preprocessing import (
    LOG_THRESHOLD,
    log_transform_if_needed,
    preprocess_data,
    subset_data,
)
from .running_time import append_running_time, get_running_time
from .synthetic import generate_synthetic_data

__all__ = [
    'load_data',
    'detect_batch_key',
    'detect_label_key',
    'count_levels',
    'class_batch_table',
    'LOG_THRESHOLD',
    'log_transform_if_needed',
    'preprocess_data',
    'subset_data',
    'append_running_time',
    'get_running_time',
    'generate_synthetic_data',
]
