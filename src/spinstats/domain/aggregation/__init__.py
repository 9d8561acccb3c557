"""Aggregation pipeline and the statistics engine built on it."""

from __future__ import annotations

from .engine import AggregationEngine
from .pipeline import (
    AggregationPipeline,
    Filter,
    Group,
    GroupBy,
    Limit,
    Normalize,
    PipelineBuilder,
    Project,
    Sort,
)

__all__ = [
    "AggregationEngine",
    "AggregationPipeline",
    "Filter",
    "Group",
    "GroupBy",
    "Limit",
    "Normalize",
    "PipelineBuilder",
    "Project",
    "Sort",
]
