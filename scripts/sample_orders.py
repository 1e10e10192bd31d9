"""
Sample Orders Data
==================
Creates a smaller, user-consistent sample of the Instacart exports: the most
active users by prior order count, all of their orders, and the prior order
lines belonging to those orders.

Uses chunked reading for order_products__prior.csv (~32M rows).

Usage:
    python scripts/sample_orders.py --top-users 20000
    python scripts/sample_orders.py --top-users 5000 --output-dir raw_data/sample_5k
"""

import argparse
import pandas as pd
from pathlib import Path
import time


def get_top_users(orders_df: pd.DataFrame, top_n: int, eval_set: str = 'prior') -> set:
    """
    Get the top N users by number of orders in the given evaluation set.

    Parameters
    ----------
    orders_df : pd.DataFrame
        Orders with columns user_id, eval_set
    top_n : int
        Number of users to select
    eval_set : str
        Evaluation set the activity is counted over

    Returns
    -------
    set
        Selected user IDs
    """
    counts = orders_df.loc[orders_df['eval_set'] == eval_set, 'user_id'].value_counts()
    # Stable tie-break on user_id so reruns select the same users
    counts = counts.rename('n_orders').reset_index().rename(columns={'index': 'user_id'})
    counts = counts.sort_values(['n_orders', 'user_id'], ascending=[False, True])
    top_users = set(counts['user_id'].head(top_n))

    if top_users:
        top_counts = counts['n_orders'].head(top_n)
        print(f"\nTop {len(top_users):,} users:")
        print(f"  Min orders: {top_counts.min():,}")
        print(f"  Max orders: {top_counts.max():,}")

    return top_users


def extract_line_items(
    input_path: Path,
    output_path: Path,
    target_orders: set,
    chunk_size: int = 1_000_000
) -> int:
    """
    Extract all order lines for the target orders.

    Parameters
    ----------
    input_path : Path
        Path to order_products__prior.csv
    output_path : Path
        Path to output sampled file
    target_orders : set
        Order IDs to keep
    chunk_size : int
        Rows to read per chunk

    Returns
    -------
    int
        Number of order lines extracted
    """
    print(f"\nExtracting order lines for {len(target_orders):,} orders...")

    total_extracted = 0
    chunk_num = 0
    first_chunk = True

    for chunk in pd.read_csv(input_path, chunksize=chunk_size):
        chunk_num += 1
        filtered = chunk[chunk['order_id'].isin(target_orders)]

        # Header is written even when nothing matched, so the output stays readable
        if len(filtered) > 0 or first_chunk:
            filtered.to_csv(
                output_path,
                mode='w' if first_chunk else 'a',
                header=first_chunk,
                index=False
            )
            first_chunk = False
            total_extracted += len(filtered)

        if chunk_num % 10 == 0:
            print(f"  Chunk {chunk_num}: extracted {total_extracted:,} order lines so far...")

    print(f"  Total extracted: {total_extracted:,} order lines")
    return total_extracted


def sample_orders(
    orders_path: Path,
    line_items_path: Path,
    output_dir: Path,
    top_users: int,
    chunk_size: int = 1_000_000
) -> dict:
    """Write orders.csv and order_products__prior.csv for the top users into output_dir."""
    output_dir.mkdir(parents=True, exist_ok=True)

    orders_df = pd.read_csv(orders_path)
    print(f"Loaded {len(orders_df):,} orders, {orders_df['user_id'].nunique():,} users")

    users = get_top_users(orders_df, top_users)
    sampled_orders = orders_df[orders_df['user_id'].isin(users)]
    sampled_orders.to_csv(output_dir / 'orders.csv', index=False)

    n_lines = extract_line_items(
        line_items_path,
        output_dir / 'order_products__prior.csv',
        set(sampled_orders['order_id']),
        chunk_size
    )

    return {
        'users': len(users),
        'orders': len(sampled_orders),
        'order_lines': n_lines,
    }


def main():
    parser = argparse.ArgumentParser(description='Sample orders for the most active users')
    parser.add_argument(
        '--top-users',
        type=int,
        default=20_000,
        help='Number of most active users to include (default: 20000)'
    )
    parser.add_argument('--orders', type=str, default=None, help='Input orders.csv path')
    parser.add_argument(
        '--order-products',
        type=str,
        default=None,
        help='Input order_products__prior.csv path'
    )
    parser.add_argument('--output-dir', type=str, default=None, help='Output directory')
    parser.add_argument(
        '--chunk-size',
        type=int,
        default=1_000_000,
        help='Chunk size for reading (default: 1000000)'
    )

    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    raw_dir = project_root / 'raw_data'
    orders_path = Path(args.orders) if args.orders else raw_dir / 'orders.csv'
    line_items_path = (
        Path(args.order_products) if args.order_products
        else raw_dir / 'order_products__prior.csv'
    )
    output_dir = (
        Path(args.output_dir) if args.output_dir
        else raw_dir / f'sample_top{args.top_users // 1000}k'
    )

    print("=" * 60)
    print("Order Sampling Script")
    print("=" * 60)
    print(f"\nOrders: {orders_path}")
    print(f"Order lines: {line_items_path}")
    print(f"Output: {output_dir}")

    start_time = time.time()
    summary = sample_orders(orders_path, line_items_path, output_dir, args.top_users, args.chunk_size)

    print("\n" + "=" * 60)
    print("SAMPLING COMPLETE")
    print("=" * 60)
    print(f"\nUsers: {summary['users']:,}")
    print(f"Orders: {summary['orders']:,}")
    print(f"Order lines: {summary['order_lines']:,}")
    print(f"Time elapsed: {time.time() - start_time:.1f}s")


if __name__ == '__main__':
    main()
