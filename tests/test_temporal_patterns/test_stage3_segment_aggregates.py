"""
Tests for Stage 3: Segment Aggregation
======================================
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.temporal_patterns.stage1_order_loader import OrderLoader
from src.temporal_patterns.stage2_temporal_metrics import TemporalMetricsBuilder
from src.temporal_patterns.stage3_segment_aggregates import (
    SegmentAggregator,
    SegmentAggregates,
    GlobalStats,
)


def make_metrics(rows):
    """Order metric frame from (order_id, dow, hour, cycle, size) tuples."""
    df = pd.DataFrame(rows, columns=[
        'order_id', 'order_dow', 'order_hour_of_day', 'repurchase_cycle', 'order_size'
    ])
    df['repurchase_cycle'] = df['repurchase_cycle'].astype(float)
    df['order_size'] = df['order_size'].astype(float)
    df['weekday_or_weekend'] = np.where(df['order_dow'] <= 4, 'Weekday', 'Weekend')
    return df


class TestSegmentAggregator:
    """Test suite for SegmentAggregator."""

    def test_run_returns_all_dimensions(self, mini_orders):
        """Test all four dimensions are produced."""
        tables = OrderLoader().run(*mini_orders)
        metrics = TemporalMetricsBuilder().run(tables)
        segments = SegmentAggregator().run(metrics)

        assert isinstance(segments, SegmentAggregates)
        assert len(segments.by_day) <= 7
        assert len(segments.by_hour) <= 24
        assert set(segments.by_weekday_or_weekend['weekday_or_weekend']) <= {'Weekday', 'Weekend'}
        assert len(segments.by_hour_day) <= 7 * 24

    def test_end_to_end_example(self, order_factory):
        """Test the two-order example: size counts both, cycle counts one."""
        make_orders, make_line_items = order_factory
        orders = make_orders([(1, 3, 9, np.nan), (2, 3, 9, 7.0)])
        tables = OrderLoader().run(orders, make_line_items({1: 2, 2: 2}))
        metrics = TemporalMetricsBuilder().run(tables)

        hour_day = SegmentAggregator().run(metrics).by_hour_day
        assert len(hour_day) == 1

        row = hour_day.iloc[0]
        assert row['order_hour_of_day'] == 9
        assert row['order_dow'] == 3
        assert row['number_of_orders'] == 2
        assert row['avg_order_size'] == 2.00
        assert row['repurchase_orders'] == 1
        assert row['avg_repurchase_cycle'] == 7.00
        assert row['total_item_volume'] == 4
        assert row['hour_day_label'] == 'Wednesday at 9 AM'

    def test_volume_equals_mean_times_count(self, mini_orders):
        """Test total volume matches mean size x orders within rounding."""
        tables = OrderLoader().run(*mini_orders)
        metrics = TemporalMetricsBuilder().run(tables)
        segments = SegmentAggregator().run(metrics)

        for df in [segments.by_hour, segments.by_day,
                   segments.by_weekday_or_weekend, segments.by_hour_day]:
            sized = df[df['number_of_orders'] > 0]
            expected = sized['avg_order_size'] * sized['number_of_orders']
            deviation = (sized['total_item_volume'].astype(float) - expected).abs()
            assert (deviation <= 0.01 * sized['number_of_orders'] + 1e-9).all()


class TestNullFiltering:
    """Test the independent cycle and size filters."""

    def test_families_filtered_independently(self):
        """Test a row can count for size but not cycle, and vice versa."""
        metrics = make_metrics([
            (1, 0, 9, np.nan, 4),    # first order: size only
            (2, 0, 9, 10.0, np.nan), # no items: cycle only
            (3, 0, 9, 20.0, 2),
        ])
        row = SegmentAggregator().aggregate(metrics, ['order_hour_of_day']).iloc[0]

        assert row['repurchase_orders'] == 2
        assert row['avg_repurchase_cycle'] == 15.0
        assert row['number_of_orders'] == 2
        assert row['avg_order_size'] == 3.0
        assert row['total_item_volume'] == 6

    def test_segment_without_qualifying_rows_dropped(self):
        """Test a segment with neither cycle nor size is not emitted."""
        metrics = make_metrics([
            (1, 0, 3, np.nan, np.nan),
            (2, 0, 9, 5.0, 2),
        ])
        by_hour = SegmentAggregator().aggregate(metrics, ['order_hour_of_day'])

        assert by_hour['order_hour_of_day'].tolist() == [9]

    def test_cycle_only_segment_has_null_size(self):
        """Test a segment without sizes carries null size aggregates."""
        metrics = make_metrics([
            (1, 0, 3, 5.0, np.nan),
            (2, 0, 9, 5.0, 2),
        ])
        by_hour = SegmentAggregator().aggregate(metrics, ['order_hour_of_day'])
        row = by_hour[by_hour['order_hour_of_day'] == 3].iloc[0]

        assert row['number_of_orders'] == 0
        assert pd.isna(row['avg_order_size'])
        assert pd.isna(row['total_item_volume'])


class TestOrderingAndLabels:
    """Test output ordering and label columns."""

    def test_hours_sorted_numerically(self):
        """Test hours follow the clock, not the label text."""
        metrics = make_metrics([
            (1, 0, 13, 5.0, 1),
            (2, 0, 2, 5.0, 1),
            (3, 0, 0, 5.0, 1),
            (4, 0, 10, 5.0, 1),
        ])
        by_hour = SegmentAggregator().aggregate(metrics, ['order_hour_of_day'])

        assert by_hour['order_hour_of_day'].tolist() == [0, 2, 10, 13]
        assert by_hour['hour_of_day'].tolist() == ['12 AM', '2 AM', '10 AM', '1 PM']

    def test_days_in_week_order(self):
        """Test days run Sunday to Saturday."""
        metrics = make_metrics([(i, dow, 9, 5.0, 1) for i, dow in enumerate([6, 2, 0, 4])])
        by_day = SegmentAggregator().aggregate(metrics, ['order_dow'])

        assert by_day['day_of_week'].tolist() == ['Sunday', 'Tuesday', 'Thursday', 'Saturday']

    def test_weekday_weekend_alphabetical(self):
        """Test Weekday precedes Weekend."""
        metrics = make_metrics([(1, 6, 9, 5.0, 1), (2, 1, 9, 5.0, 1)])
        result = SegmentAggregator().aggregate(metrics, ['weekday_or_weekend'])

        assert result['weekday_or_weekend'].tolist() == ['Weekday', 'Weekend']

    def test_label_columns_follow_keys(self):
        """Test hour x day output puts keys, then labels, then values."""
        metrics = make_metrics([(1, 4, 9, 5.0, 1)])
        result = SegmentAggregator().aggregate(metrics, ['order_dow', 'order_hour_of_day'])

        assert list(result.columns[:5]) == [
            'order_dow', 'order_hour_of_day', 'hour_of_day', 'day_of_week', 'hour_day_label'
        ]
        assert result['hour_day_label'].iloc[0] == 'Thursday at 9 AM'


class TestRounding:
    """Test rounding of mean-like outputs."""

    def test_two_decimals(self):
        """Test means are rounded to 2 decimals."""
        metrics = make_metrics([(1, 0, 9, 1.0, 1), (2, 0, 9, 1.0, 1), (3, 0, 9, 2.0, 2)])
        row = SegmentAggregator().aggregate(metrics, ['order_dow']).iloc[0]

        assert row['avg_order_size'] == 1.33
        assert row['avg_repurchase_cycle'] == 1.33

    def test_half_away_from_zero(self):
        """Test a mean of 1.005 rounds up to 1.01."""
        metrics = make_metrics([(1, 0, 9, 1.0, 1), (2, 0, 9, 1.01, 1)])
        row = SegmentAggregator().aggregate(metrics, ['order_dow']).iloc[0]

        assert row['avg_repurchase_cycle'] == 1.01

    def test_unrounded_means(self):
        """Test rounded=False keeps full-precision means."""
        metrics = make_metrics([(1, 0, 9, 1.0, 1), (2, 0, 9, 1.0, 1), (3, 0, 9, 1.01, 2)])
        row = SegmentAggregator().aggregate(metrics, ['order_dow'], rounded=False).iloc[0]

        assert row['avg_repurchase_cycle'] == pytest.approx(3.01 / 3)
        assert row['avg_order_size'] == pytest.approx(4 / 3)
        assert row['total_item_volume'] == 4

    def test_run_keeps_unrounded_hour_day_means(self):
        """Test the hour x day means used for lifts are not rounded."""
        metrics = make_metrics([(1, 0, 9, 9.99, 2), (2, 0, 9, 10.0, 2), (3, 1, 9, 10.005, 2)])
        segments = SegmentAggregator().run(metrics)

        exact = segments.hour_day_means.set_index('hour_day_label')
        shown = segments.by_hour_day.set_index('hour_day_label')
        assert exact.loc['Sunday at 9 AM', 'avg_repurchase_cycle'] == pytest.approx(9.995)
        assert shown.loc['Sunday at 9 AM', 'avg_repurchase_cycle'] == 10.0
        assert list(exact.columns) == list(shown.columns)


class TestGlobalStats:
    """Test dataset-wide statistics."""

    def test_population_statistics(self):
        """Test means and population stddevs over non-null values."""
        metrics = make_metrics([
            (1, 0, 9, np.nan, 2),
            (2, 0, 9, 7.0, 2),
            (3, 1, 10, 3.0, 4),
        ])
        stats = SegmentAggregator().global_stats(metrics)

        assert isinstance(stats, GlobalStats)
        assert stats.avg_repurchase_cycle == 5.0
        assert stats.stddev_repurchase_cycle == 2.0
        assert stats.repurchase_orders == 2
        assert stats.avg_order_size == 2.67
        assert stats.stddev_order_size == 0.94
        assert stats.number_of_orders == 3

    def test_single_value_has_zero_stddev(self):
        """Test a single observation gives stddev 0, not NaN."""
        metrics = make_metrics([(1, 0, 9, 7.0, 3)])
        stats = SegmentAggregator().global_stats(metrics)

        assert stats.stddev_repurchase_cycle == 0.0
        assert stats.stddev_order_size == 0.0

    def test_to_dict(self):
        """Test serialisable representation."""
        stats = SegmentAggregator().global_stats(make_metrics([(1, 0, 9, 7.0, 3)]))
        assert set(stats.to_dict()) == {
            'avg_repurchase_cycle', 'stddev_repurchase_cycle', 'repurchase_orders',
            'avg_order_size', 'stddev_order_size', 'number_of_orders'
        }
