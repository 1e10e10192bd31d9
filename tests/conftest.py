"""
Pytest Configuration and Fixtures
==================================
Shared fixtures for the temporal patterns tests.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import tempfile
import shutil


@pytest.fixture(scope="session")
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def sample_orders(project_root):
    """Load sample orders and prior order lines for testing."""
    orders_path = project_root / 'raw_data' / 'orders.csv'
    items_path = project_root / 'raw_data' / 'order_products__prior.csv'
    if orders_path.exists() and items_path.exists():
        orders = pd.read_csv(orders_path, nrows=5000)
        items = pd.read_csv(items_path, nrows=50000)
        return orders, items[items['order_id'].isin(orders['order_id'])]
    else:
        # Generate synthetic data for CI environments
        return generate_synthetic_orders(200)


@pytest.fixture(scope="session")
def mini_orders():
    """Generate minimal synthetic orders for unit tests."""
    return generate_synthetic_orders(30)


def generate_synthetic_orders(n_users: int, seed: int = 42):
    """
    Generate synthetic orders and prior order lines.

    Each user gets 3-10 orders; the last one is 'train' or 'test', the rest
    'prior'. days_since_prior_order is NaN exactly for the first order, and
    every prior order has 1-15 order lines.
    """
    rng = np.random.RandomState(seed)

    order_rows = []
    item_rows = []
    order_id = 1

    for user_id in range(1, n_users + 1):
        n_orders = rng.randint(3, 11)
        for order_number in range(1, n_orders + 1):
            is_last = order_number == n_orders
            eval_set = rng.choice(['train', 'test']) if is_last else 'prior'
            order_rows.append({
                'order_id': order_id,
                'user_id': user_id,
                'eval_set': eval_set,
                'order_number': order_number,
                'order_dow': rng.randint(0, 7),
                'order_hour_of_day': rng.randint(6, 23),
                'days_since_prior_order': (
                    np.nan if order_number == 1 else float(rng.randint(1, 31))
                ),
            })

            if eval_set == 'prior':
                n_items = rng.randint(1, 16)
                products = rng.choice(np.arange(1, 500), size=n_items, replace=False)
                for position, product_id in enumerate(products, start=1):
                    item_rows.append({
                        'order_id': order_id,
                        'product_id': int(product_id),
                        'add_to_cart_order': position,
                        'reordered': int(rng.rand() < 0.6),
                    })

            order_id += 1

    return pd.DataFrame(order_rows), pd.DataFrame(item_rows)


def make_orders(rows):
    """
    Build an orders frame from (order_id, dow, hour, days_since_prior) tuples.

    All rows are prior orders of user 1.
    """
    return pd.DataFrame({
        'order_id': [r[0] for r in rows],
        'user_id': 1,
        'eval_set': 'prior',
        'order_number': list(range(1, len(rows) + 1)),
        'order_dow': [r[1] for r in rows],
        'order_hour_of_day': [r[2] for r in rows],
        'days_since_prior_order': pd.Series([r[3] for r in rows], dtype=float),
    })


def make_line_items(sizes):
    """Build order lines from an {order_id: n_items} mapping."""
    rows = []
    for order_id, n_items in sizes.items():
        for position in range(1, n_items + 1):
            rows.append({
                'order_id': order_id,
                'product_id': 100 + position,
                'add_to_cart_order': position,
                'reordered': 0,
            })
    columns = ['order_id', 'product_id', 'add_to_cart_order', 'reordered']
    return pd.DataFrame(rows, columns=columns).astype('int64')


@pytest.fixture(scope="session")
def order_factory():
    """Expose the frame builders to test modules."""
    return make_orders, make_line_items


@pytest.fixture(scope="function")
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp)
