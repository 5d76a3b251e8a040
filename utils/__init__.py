"""Utilities for the anonymous voting system."""

from .utils import (
    setup_logging,
    save_results,
    create_results_summary,
    PerformanceMetrics,
    PerformanceMonitor,
    create_performance_report,
    get_system_info,
    format_duration,
)

__all__ = [
    'setup_logging',
    'save_results',
    'create_results_summary',
    'PerformanceMetrics',
    'PerformanceMonitor',
    'create_performance_report',
    'get_system_info',
    'format_duration',
]
