"""
Stage 3: Segment Aggregation
============================
Summarises the order metric table per time segment:
1. Hour of day (sorted 12 AM -> 11 PM)
2. Day of week (sorted Sunday -> Saturday)
3. Weekday vs. Weekend
4. Hour x Day cross

Each segment carries a repurchase-cycle family (non-null cycles only) and an
order-size family (non-null sizes only). The two filters are independent: a
first order with line items counts towards size but not towards cycle.

Also computes the global statistics shared by the momentum and context stages.
"""

import logging
import pandas as pd
import numpy as np
from dataclasses import dataclass, asdict
from typing import Dict, List, Any

from .labels import hour_label, day_name, hour_day_label, round_half_away

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentAggregates:
    """Aggregates for the four grouping dimensions."""
    by_hour: pd.DataFrame
    by_day: pd.DataFrame
    by_weekday_or_weekend: pd.DataFrame
    by_hour_day: pd.DataFrame
    # Hour x day aggregates with full-precision means, for lifts and z-scores
    hour_day_means: pd.DataFrame


@dataclass(frozen=True)
class GlobalStats:
    """Dataset-wide cycle and size statistics (population stddev)."""
    avg_repurchase_cycle: float
    stddev_repurchase_cycle: float
    repurchase_orders: int
    avg_order_size: float
    stddev_order_size: float
    number_of_orders: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SegmentAggregator:
    """
    Parametrised group-by over the order metric table.

    The same aggregation runs for every dimension; only the key columns and
    the label columns attached afterwards differ.
    """

    DIMENSIONS: Dict[str, List[str]] = {
        'hour': ['order_hour_of_day'],
        'day': ['order_dow'],
        'weekday_or_weekend': ['weekday_or_weekend'],
        'hour_day': ['order_dow', 'order_hour_of_day'],
    }

    def __init__(self, decimals: int = 2):
        """
        Parameters
        ----------
        decimals : int
            Decimal places for mean-like outputs (default: 2)
        """
        self.decimals = decimals

    def run(self, metrics: pd.DataFrame) -> SegmentAggregates:
        """
        Aggregate the order metric table by every dimension.

        Parameters
        ----------
        metrics : pd.DataFrame
            Output of TemporalMetricsBuilder

        Returns
        -------
        SegmentAggregates
        """
        logger.info("Stage 3: Segment Aggregation")

        results = {}
        for name, keys in self.DIMENSIONS.items():
            results[name] = self.aggregate(metrics, keys)
            logger.info(f"  - {name}: {len(results[name]):,} segments")

        hour_day_means = self.aggregate(metrics, self.DIMENSIONS['hour_day'], rounded=False)

        return SegmentAggregates(
            by_hour=results['hour'],
            by_day=results['day'],
            by_weekday_or_weekend=results['weekday_or_weekend'],
            by_hour_day=results['hour_day'],
            hour_day_means=hour_day_means,
        )

    def aggregate(
        self,
        metrics: pd.DataFrame,
        keys: List[str],
        rounded: bool = True
    ) -> pd.DataFrame:
        """
        Summarise repurchase cycle and order size per segment.

        Parameters
        ----------
        metrics : pd.DataFrame
            Order metric table
        keys : list of str
            Grouping columns defining the segment
        rounded : bool
            Round the mean columns (default: True). Unrounded means feed
            the lift and z-score computations.

        Returns
        -------
        pd.DataFrame
            keys, labels, avg_repurchase_cycle, repurchase_orders,
            avg_order_size, number_of_orders, total_item_volume
        """
        # mean/count skip NaN, which applies each family's null filter
        agg = metrics.groupby(keys, sort=True).agg(
            avg_repurchase_cycle=('repurchase_cycle', 'mean'),
            repurchase_orders=('repurchase_cycle', 'count'),
            avg_order_size=('order_size', 'mean'),
            number_of_orders=('order_size', 'count'),
            total_item_volume=('order_size', 'sum'),
        ).reset_index()

        # Segments whose rows qualify for neither family are not emitted
        agg = agg[(agg['repurchase_orders'] > 0) | (agg['number_of_orders'] > 0)].copy()

        if rounded:
            agg['avg_repurchase_cycle'] = round_half_away(agg['avg_repurchase_cycle'], self.decimals)
            agg['avg_order_size'] = round_half_away(agg['avg_order_size'], self.decimals)
        agg['total_item_volume'] = agg['total_item_volume'].where(agg['number_of_orders'] > 0)
        agg['total_item_volume'] = agg['total_item_volume'].round().astype('Int64')
        agg['repurchase_orders'] = agg['repurchase_orders'].astype(np.int64)
        agg['number_of_orders'] = agg['number_of_orders'].astype(np.int64)

        agg = self._add_labels(agg, keys)

        # Hour and day keys are numeric, so sort=True already gives clock
        # order and Sunday -> Saturday; Weekday/Weekend sorts alphabetically.
        return agg.reset_index(drop=True)

    def _add_labels(self, agg: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
        """Attach human-readable labels right after the key columns."""
        labels = []
        if 'order_hour_of_day' in keys:
            agg['hour_of_day'] = agg['order_hour_of_day'].map(hour_label).astype(object)
            labels.append('hour_of_day')
        if 'order_dow' in keys:
            agg['day_of_week'] = agg['order_dow'].map(day_name).astype(object)
            labels.append('day_of_week')
        if 'order_dow' in keys and 'order_hour_of_day' in keys:
            agg['hour_day_label'] = [
                hour_day_label(dow, hour)
                for dow, hour in zip(agg['order_dow'], agg['order_hour_of_day'])
            ]
            labels.append('hour_day_label')

        value_cols = [c for c in agg.columns if c not in keys and c not in labels]
        return agg[keys + labels + value_cols]

    def global_stats(self, metrics: pd.DataFrame) -> GlobalStats:
        """
        Compute dataset-wide mean and population stddev of cycle and size.

        Each measure is taken over the rows non-null for that measure.
        """
        cycles = metrics['repurchase_cycle'].dropna()
        sizes = metrics['order_size'].dropna()

        stats = GlobalStats(
            avg_repurchase_cycle=self._round_scalar(cycles.mean()),
            stddev_repurchase_cycle=self._round_scalar(cycles.std(ddof=0)),
            repurchase_orders=int(len(cycles)),
            avg_order_size=self._round_scalar(sizes.mean()),
            stddev_order_size=self._round_scalar(sizes.std(ddof=0)),
            number_of_orders=int(len(sizes)),
        )

        logger.info(
            f"  - Global repurchase cycle: {stats.avg_repurchase_cycle} "
            f"(std {stats.stddev_repurchase_cycle}, n={stats.repurchase_orders:,})"
        )
        logger.info(
            f"  - Global order size: {stats.avg_order_size} "
            f"(std {stats.stddev_order_size}, n={stats.number_of_orders:,})"
        )

        return stats

    def _round_scalar(self, value: float) -> float:
        return round_half_away(float(value), self.decimals) if pd.notna(value) else float('nan')
