"""Interval matching, filtering, aggregation and map marker helpers."""
