"""
Stage 2: Temporal Metrics
=========================
Builds the order-level fact table every downstream aggregation reads from:
one row per prior order with its time dimensions, repurchase cycle and size.

Input: OrderTables
Output: time_order_metrics
    order_id, order_hour_of_day, order_dow, weekday_or_weekend,
    repurchase_cycle, order_size
"""

import logging
import pandas as pd
from typing import Iterable

from .errors import InvalidDomainError
from .labels import weekday_or_weekend
from .stage1_order_loader import OrderTables

logger = logging.getLogger(__name__)


class TemporalMetricsBuilder:
    """
    Derives per-order time and behaviour metrics.

    Steps:
    1. Time dimensions: hour, day-of-week, Weekday/Weekend label, repurchase cycle
    2. Order sizes: line-item count per order
    3. Left join so every qualifying order appears exactly once
    """

    OUTPUT_COLUMNS = [
        'order_id', 'order_hour_of_day', 'order_dow', 'weekday_or_weekend',
        'repurchase_cycle', 'order_size'
    ]

    def __init__(
        self,
        eval_set: str = 'prior',
        weekday_days: Iterable[int] = (0, 1, 2, 3, 4)
    ):
        """
        Parameters
        ----------
        eval_set : str
            Evaluation-set tag of the orders to keep (default: 'prior')
        weekday_days : iterable of int
            Day-of-week values labelled 'Weekday' (default: Sunday-Thursday)
        """
        self.eval_set = eval_set
        self.weekday_days = tuple(weekday_days)

    def run(self, tables: OrderTables) -> pd.DataFrame:
        """
        Build the order metric relation.

        Parameters
        ----------
        tables : OrderTables
            Loaded orders and line items

        Returns
        -------
        pd.DataFrame
            One row per qualifying order
        """
        logger.info("Stage 2: Temporal Metrics")

        logger.info("Step 1: Extracting time dimensions...")
        time_dims = self._time_dimensions(tables.orders)
        logger.info(f"  - {self.eval_set} orders: {len(time_dims):,}")

        logger.info("Step 2: Counting order sizes...")
        order_sizes = self._order_sizes(tables.line_items)
        logger.info(f"  - Orders with line items: {len(order_sizes):,}")

        logger.info("Step 3: Joining time dimensions and order sizes...")
        metrics = time_dims.merge(order_sizes, on='order_id', how='left', validate='one_to_one')

        missing_size = metrics['order_size'].isna().sum()
        first_orders = metrics['repurchase_cycle'].isna().sum()
        logger.info(f"  - Orders without line items: {missing_size:,}")
        logger.info(f"  - First orders (no repurchase cycle): {first_orders:,}")

        return metrics[self.OUTPUT_COLUMNS]

    def _time_dimensions(self, orders: pd.DataFrame) -> pd.DataFrame:
        """Filter to the evaluation set and derive the time dimensions."""
        df = orders[orders['eval_set'] == self.eval_set]

        bad_hours = ~df['order_hour_of_day'].between(0, 23)
        if bad_hours.any():
            raise InvalidDomainError(
                "order_hour_of_day must be in 0-23, got "
                f"{sorted(df.loc[bad_hours, 'order_hour_of_day'].unique().tolist())}"
            )

        time_dims = pd.DataFrame({
            'order_id': df['order_id'],
            'order_hour_of_day': df['order_hour_of_day'],
            'order_dow': df['order_dow'],
            'weekday_or_weekend': weekday_or_weekend(df['order_dow'], self.weekday_days),
            'repurchase_cycle': df['days_since_prior_order'].astype(float),
        })

        return time_dims.reset_index(drop=True)

    def _order_sizes(self, line_items: pd.DataFrame) -> pd.DataFrame:
        """Count line items per order. Float so orders without items can carry NaN."""
        sizes = line_items.groupby('order_id').size().reset_index(name='order_size')
        sizes['order_size'] = sizes['order_size'].astype(float)
        return sizes
