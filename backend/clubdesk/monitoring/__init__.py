"""Prometheus metrics for the scheduling core."""
