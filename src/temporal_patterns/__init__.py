"""
Temporal Patterns Module
========================
Instacart temporal buying patterns: how hour of day and day of week shape
reorder speed and order size, condensed into the Repurchase Momentum Index.

Stages:
1. Order Loader - Read orders and prior order lines, check schema
2. Temporal Metrics - One fact row per prior order
3. Segment Aggregation - Hour, day, weekday/weekend and hour x day summaries
4. Repurchase Momentum Index - Raw and 0-10 rescaled RMI per hour x day
5. Behavioral Context - Lifts and z-scores per hour x day
"""

from .config import PipelineConfig
from .errors import (
    TemporalPatternsError,
    SchemaMismatchError,
    InvalidDomainError,
    DomainError,
)
from .stage1_order_loader import OrderLoader, OrderTables, load_orders
from .stage2_temporal_metrics import TemporalMetricsBuilder
from .stage3_segment_aggregates import SegmentAggregator, SegmentAggregates, GlobalStats
from .stage4_momentum_scores import MomentumScorer
from .stage5_behavioral_context import BehavioralContextBuilder

__all__ = [
    'PipelineConfig',
    # Errors
    'TemporalPatternsError',
    'SchemaMismatchError',
    'InvalidDomainError',
    'DomainError',
    # Pipeline stages
    'OrderLoader',
    'OrderTables',
    'load_orders',
    'TemporalMetricsBuilder',
    'SegmentAggregator',
    'SegmentAggregates',
    'GlobalStats',
    'MomentumScorer',
    'BehavioralContextBuilder',
]
