"""
Stage 5: Supporting Behavioral Metrics
======================================
Adds statistical context to each hour x day segment:
- Order size lift (segment - global, positive = larger orders)
- Repurchase cycle lift (global - segment, positive = faster return)
- Segment standard deviations of both measures
- Z-scores of both lifts against the global standard deviation

Output: hour_day_metrics
"""

import logging
import pandas as pd
import numpy as np

from .labels import round_half_away
from .stage3_segment_aggregates import GlobalStats

logger = logging.getLogger(__name__)


class BehavioralContextBuilder:
    """Lift and z-score statistics per hour x day segment."""

    KEYS = ['order_dow', 'order_hour_of_day']

    OUTPUT_COLUMNS = [
        'hour_day_label', 'order_dow', 'order_hour_of_day', 'number_of_orders',
        'avg_order_size', 'avg_repurchase_cycle',
        'stddev_order_size', 'stddev_repurchase_cycle',
        'order_size_lift', 'repurchase_cycle_lift',
        'zscore_order_size', 'zscore_repurchase_cycle'
    ]

    def __init__(self, decimals: int = 2):
        self.decimals = decimals

    def run(
        self,
        hour_day: pd.DataFrame,
        metrics: pd.DataFrame,
        global_stats: GlobalStats
    ) -> pd.DataFrame:
        """
        Build the behavioral context relation.

        Parameters
        ----------
        hour_day : pd.DataFrame
            Hour x day segment aggregates with unrounded means
            (SegmentAggregates.hour_day_means)
        metrics : pd.DataFrame
            Order metric table (for segment standard deviations)
        global_stats : GlobalStats
            Dataset-wide means and standard deviations

        Returns
        -------
        pd.DataFrame
            One row per hour x day segment, sorted by day then hour
        """
        logger.info("Stage 5: Supporting Behavioral Metrics")

        context = hour_day.merge(self._segment_stddevs(metrics), on=self.KEYS, how='left')

        logger.info("Step 1: Computing lifts...")
        size_lift = context['avg_order_size'] - global_stats.avg_order_size
        cycle_lift = global_stats.avg_repurchase_cycle - context['avg_repurchase_cycle']
        context['order_size_lift'] = round_half_away(size_lift, self.decimals)
        context['repurchase_cycle_lift'] = round_half_away(cycle_lift, self.decimals)

        logger.info("Step 2: Computing z-scores...")
        context['zscore_order_size'] = self._zscore(size_lift, global_stats.stddev_order_size)
        context['zscore_repurchase_cycle'] = self._zscore(
            cycle_lift, global_stats.stddev_repurchase_cycle
        )

        for col in ['avg_order_size', 'avg_repurchase_cycle']:
            context[col] = round_half_away(context[col], self.decimals)

        if global_stats.stddev_order_size == 0:
            logger.warning("  - Global order size stddev is 0; order size z-scores are null")
        if global_stats.stddev_repurchase_cycle == 0:
            logger.warning("  - Global repurchase cycle stddev is 0; cycle z-scores are null")

        context = context.sort_values(self.KEYS).reset_index(drop=True)
        logger.info(f"  - Segments: {len(context):,}")

        return context[self.OUTPUT_COLUMNS]

    def _segment_stddevs(self, metrics: pd.DataFrame) -> pd.DataFrame:
        """Population standard deviation of each measure within each segment."""
        stddevs = metrics.groupby(self.KEYS).agg(
            stddev_order_size=('order_size', lambda x: x.std(ddof=0)),
            stddev_repurchase_cycle=('repurchase_cycle', lambda x: x.std(ddof=0)),
        ).reset_index()

        for col in ['stddev_order_size', 'stddev_repurchase_cycle']:
            stddevs[col] = round_half_away(stddevs[col], self.decimals)

        return stddevs

    def _zscore(self, lift: pd.Series, stddev: float) -> pd.Series:
        """Lift over the global stddev; null when the stddev is zero."""
        if pd.isna(stddev) or stddev == 0:
            return pd.Series(np.nan, index=lift.index, dtype=float)
        return round_half_away(lift / stddev, self.decimals)
