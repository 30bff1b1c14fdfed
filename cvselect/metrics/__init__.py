"""Metric registry and confusion table."""

from .metrics_wrapper import MetricsWrapper, MetricSpec, ConfusionTable

__all__ = ['MetricsWrapper', 'MetricSpec', 'ConfusionTable']
