"""
Stage 1: Order Loader
=====================
Reads the orders and prior order-line records into two in-memory relations
and checks them against the expected schema.

Input: orders.csv, order_products__prior.csv (or DataFrames)
Output: OrderTables(orders, line_items)
"""

import logging
import pandas as pd
import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

from .errors import SchemaMismatchError

logger = logging.getLogger(__name__)

Source = Union[str, Path, pd.DataFrame]


@dataclass(frozen=True)
class OrderTables:
    """The two loaded relations. Stages read them and never write back."""
    orders: pd.DataFrame
    line_items: pd.DataFrame


class OrderLoader:
    """
    Loads and schema-checks the order relations.

    Semantic types:
    - 'int': integral, non-null (integral floats are normalised to int64)
    - 'float': numeric, nulls allowed
    - 'str': textual, non-null
    """

    ORDER_SCHEMA: Dict[str, str] = {
        'order_id': 'int',
        'user_id': 'int',
        'eval_set': 'str',
        'order_number': 'int',
        'order_dow': 'int',
        'order_hour_of_day': 'int',
        'days_since_prior_order': 'float',
    }

    LINE_ITEM_SCHEMA: Dict[str, str] = {
        'order_id': 'int',
        'product_id': 'int',
        'add_to_cart_order': 'int',
        'reordered': 'int',
    }

    def run(self, orders: Source, line_items: Source) -> OrderTables:
        """
        Load both relations.

        Parameters
        ----------
        orders : str, Path or pd.DataFrame
            Order records (orders.csv layout)
        line_items : str, Path or pd.DataFrame
            Prior order-line records (order_products__prior.csv layout)

        Returns
        -------
        OrderTables
        """
        logger.info("Stage 1: Order Loader")

        orders_df = self._validate(self._read(orders), self.ORDER_SCHEMA, 'orders')
        if orders_df['order_id'].duplicated().any():
            dupes = orders_df.loc[orders_df['order_id'].duplicated(), 'order_id']
            raise SchemaMismatchError(
                'orders',
                f"order_id must be unique, found {dupes.nunique():,} duplicated ids",
                ['order_id']
            )

        items_df = self._validate(self._read(line_items), self.LINE_ITEM_SCHEMA, 'line_items')

        logger.info(
            f"  - Orders: {len(orders_df):,} rows, "
            f"{orders_df['user_id'].nunique():,} users"
        )
        logger.info(
            f"  - Line items: {len(items_df):,} rows, "
            f"{items_df['order_id'].nunique():,} orders, "
            f"{items_df['product_id'].nunique():,} products"
        )
        for eval_set, count in orders_df['eval_set'].value_counts().sort_index().items():
            logger.info(f"    {eval_set}: {count:,} orders")

        return OrderTables(orders=orders_df, line_items=items_df)

    def _read(self, source: Source) -> pd.DataFrame:
        if isinstance(source, pd.DataFrame):
            return source.copy()
        path = Path(source)
        logger.info(f"  Loading {path}...")
        return pd.read_csv(path)

    def _validate(
        self,
        df: pd.DataFrame,
        schema: Dict[str, str],
        relation: str
    ) -> pd.DataFrame:
        """Check required columns and their semantic types; keep schema columns only."""
        missing = [col for col in schema if col not in df.columns]
        if missing:
            raise SchemaMismatchError(relation, f"missing required columns {missing}", missing)

        df = df[list(schema)].copy()

        for col, kind in schema.items():
            if kind == 'int':
                df[col] = self._coerce_int(df[col], relation)
            elif kind == 'float':
                if pd.api.types.is_bool_dtype(df[col]) or not pd.api.types.is_numeric_dtype(df[col]):
                    raise SchemaMismatchError(
                        relation, f"column '{col}' must be numeric, got {df[col].dtype}", [col]
                    )
                df[col] = df[col].astype(float)
            elif kind == 'str':
                if not (pd.api.types.is_string_dtype(df[col]) or pd.api.types.is_object_dtype(df[col])):
                    raise SchemaMismatchError(
                        relation, f"column '{col}' must be text, got {df[col].dtype}", [col]
                    )
                if df[col].isna().any() or not df[col].map(lambda v: isinstance(v, str)).all():
                    raise SchemaMismatchError(
                        relation, f"column '{col}' must contain non-null text values", [col]
                    )

        return df.reset_index(drop=True)

    @staticmethod
    def _coerce_int(series: pd.Series, relation: str) -> pd.Series:
        """Accept integer columns, or float columns holding whole numbers only."""
        col = series.name
        if pd.api.types.is_bool_dtype(series) or not pd.api.types.is_numeric_dtype(series):
            raise SchemaMismatchError(
                relation, f"column '{col}' must be integer, got {series.dtype}", [col]
            )
        if series.isna().any():
            raise SchemaMismatchError(
                relation, f"column '{col}' must not contain nulls", [col]
            )
        if not pd.api.types.is_integer_dtype(series):
            values = series.to_numpy(dtype=float)
            if not np.all(np.isfinite(values)) or not np.all(values == np.floor(values)):
                raise SchemaMismatchError(
                    relation, f"column '{col}' must hold whole numbers", [col]
                )
        return series.astype(np.int64)


def load_orders(
    orders_path: Union[str, Path],
    line_items_path: Union[str, Path]
) -> OrderTables:
    """Load orders.csv and order_products__prior.csv from disk."""
    return OrderLoader().run(orders_path, line_items_path)
