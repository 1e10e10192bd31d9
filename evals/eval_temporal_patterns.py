"""
Evaluation Script: Temporal Patterns Outputs
============================================
Evaluates quality and correctness of the written pipeline outputs.

Metrics:
- Order metric uniqueness and null coverage
- Segment volume consistency (total = mean size x orders)
- RMI range and degenerate-case handling
- Behavioral context z-score nullity
"""

import pandas as pd
import numpy as np
from pathlib import Path
import json
from typing import Dict, Any, Optional


def evaluate_order_metrics(metrics_df: pd.DataFrame) -> Dict[str, Any]:
    """
    Evaluate the order-level fact table.

    Returns metrics on cardinality and null coverage.
    """
    metrics = {}

    metrics['total_orders'] = len(metrics_df)
    metrics['duplicate_orders'] = int(metrics_df['order_id'].duplicated().sum())
    metrics['null_repurchase_cycle'] = int(metrics_df['repurchase_cycle'].isna().sum())
    metrics['null_order_size'] = int(metrics_df['order_size'].isna().sum())
    metrics['invalid_dow'] = int((~metrics_df['order_dow'].between(0, 6)).sum())
    metrics['invalid_hour'] = int((~metrics_df['order_hour_of_day'].between(0, 23)).sum())

    if len(metrics_df) > 0:
        metrics['first_order_pct'] = metrics['null_repurchase_cycle'] / len(metrics_df)
        metrics['weekday_pct'] = float((metrics_df['weekday_or_weekend'] == 'Weekday').mean())

    quality_score = 100
    if metrics['total_orders'] == 0:
        quality_score = 0
    if metrics['duplicate_orders'] > 0:
        quality_score -= 40
    if metrics['invalid_dow'] > 0 or metrics['invalid_hour'] > 0:
        quality_score -= 30
    if metrics['total_orders'] > 0 and metrics['null_order_size'] > metrics['total_orders'] * 0.01:
        quality_score -= 10

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def evaluate_segments(segments_df: pd.DataFrame, tolerance: float = 0.01) -> Dict[str, Any]:
    """
    Evaluate one segment aggregate relation.

    total_item_volume is an exact sum while avg_order_size is rounded, so the
    consistency check allows tolerance per order.
    """
    metrics = {}

    metrics['num_segments'] = len(segments_df)
    sized = segments_df[segments_df['number_of_orders'] > 0]
    volume = sized['total_item_volume'].astype(float)
    expected = sized['avg_order_size'].astype(float) * sized['number_of_orders']
    deviation = (volume - expected).abs() / sized['number_of_orders']

    metrics['volume_inconsistent'] = int((deviation > tolerance + 1e-9).sum())
    metrics['max_volume_deviation'] = float(deviation.max()) if len(deviation) > 0 else 0.0
    metrics['empty_segments'] = int(
        ((segments_df['number_of_orders'] == 0) & (segments_df['repurchase_orders'] == 0)).sum()
    )

    if len(sized) > 0:
        metrics['avg_order_size_min'] = float(sized['avg_order_size'].min())
        metrics['avg_order_size_max'] = float(sized['avg_order_size'].max())
    cycles = segments_df['avg_repurchase_cycle'].dropna()
    if len(cycles) > 0:
        metrics['avg_repurchase_cycle_min'] = float(cycles.min())
        metrics['avg_repurchase_cycle_max'] = float(cycles.max())

    quality_score = 100
    if metrics['num_segments'] == 0:
        quality_score = 0
    if metrics['volume_inconsistent'] > 0:
        quality_score -= 40
    if metrics['empty_segments'] > 0:
        quality_score -= 20

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def evaluate_momentum(momentum_df: pd.DataFrame, scale_max: float = 10.0) -> Dict[str, Any]:
    """
    Evaluate the RMI relation.

    Returns metrics on score range, ordering and label uniqueness.
    """
    metrics = {}

    metrics['num_segments'] = len(momentum_df)
    scores = momentum_df['rmi_scaled'].astype(float)

    metrics['out_of_range'] = int(((scores < 0) | (scores > scale_max)).sum())
    metrics['null_scores'] = int(scores.isna().sum())
    metrics['duplicate_labels'] = int(momentum_df['hour_day_label'].duplicated().sum())
    metrics['sorted_descending'] = bool(scores.is_monotonic_decreasing)

    if len(momentum_df) > 0:
        metrics['score_mean'] = float(scores.mean())
        metrics['score_median'] = float(scores.median())
        metrics['degenerate'] = bool(momentum_df['raw_rmi'].nunique() == 1)
        metrics['top_segment'] = momentum_df.iloc[scores.values.argmax()]['hour_day_label']

    quality_score = 100
    if metrics['num_segments'] == 0:
        quality_score = 0
    if metrics['out_of_range'] > 0 or metrics['null_scores'] > 0:
        quality_score -= 40
    if metrics['duplicate_labels'] > 0:
        quality_score -= 20
    if not metrics['sorted_descending']:
        quality_score -= 10

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def evaluate_context(context_df: pd.DataFrame, global_stats: Dict[str, Any]) -> Dict[str, Any]:
    """
    Evaluate the behavioral context relation.

    A z-score column must be entirely null exactly when its global stddev is 0.
    """
    metrics = {}

    metrics['num_segments'] = len(context_df)

    checks = [
        ('order_size', 'stddev_order_size'),
        ('repurchase_cycle', 'stddev_repurchase_cycle'),
    ]
    mismatches = 0
    for measure, std_key in checks:
        lift = context_df[f'{measure}_lift']
        z = context_df[f'zscore_{measure}']
        zero_std = global_stats.get(std_key) == 0
        if zero_std:
            bad = z.notna()
        else:
            bad = lift.notna() & z.isna()
        metrics[f'zscore_{measure}_mismatch'] = int(bad.sum())
        mismatches += int(bad.sum())

        valid = z.dropna()
        if len(valid) > 0:
            metrics[f'zscore_{measure}_max_abs'] = float(valid.abs().max())

    quality_score = 100
    if metrics['num_segments'] == 0:
        quality_score = 0
    if mismatches > 0:
        quality_score -= 40

    metrics['quality_score'] = max(quality_score, 0)

    return metrics


def _read_table(output_dir: Path, name: str) -> Optional[pd.DataFrame]:
    for suffix, reader in (('.parquet', pd.read_parquet), ('.csv', pd.read_csv)):
        path = output_dir / f'{name}{suffix}'
        if path.exists():
            return reader(path)
    return None


def run_evaluation(output_dir: Path) -> Dict[str, Dict[str, Any]]:
    """
    Run evaluation over a pipeline output directory.

    Parameters
    ----------
    output_dir : Path
        Directory written by TemporalPatternsPipeline.save

    Returns
    -------
    Dict containing evaluation results for each output
    """
    output_dir = Path(output_dir)
    results = {}

    print("=" * 60)
    print("Temporal Patterns Evaluation")
    print("=" * 60)

    stats_path = output_dir / 'global_stats.json'
    global_stats = {}
    if stats_path.exists():
        with open(stats_path) as f:
            global_stats = json.load(f)['global_stats']

    print("\n--- Order Metrics ---")
    metrics_df = _read_table(output_dir, 'time_order_metrics')
    if metrics_df is not None:
        results['order_metrics'] = evaluate_order_metrics(metrics_df)
        print(f"  Orders: {results['order_metrics']['total_orders']:,}")
        print(f"  Quality Score: {results['order_metrics']['quality_score']}/100")
    else:
        print("  [MISSING] time_order_metrics")
        results['order_metrics'] = {'quality_score': 0, 'error': 'file not found'}

    for name in ['segments_by_hour', 'segments_by_day',
                 'segments_weekday_or_weekend', 'segments_by_hour_day']:
        print(f"\n--- {name} ---")
        segments_df = _read_table(output_dir, name)
        if segments_df is not None:
            results[name] = evaluate_segments(segments_df)
            print(f"  Segments: {results[name]['num_segments']:,}")
            print(f"  Quality Score: {results[name]['quality_score']}/100")
        else:
            print(f"  [MISSING] {name}")
            results[name] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Repurchase Momentum Index ---")
    momentum_df = _read_table(output_dir, 'rmi_by_hour_day')
    if momentum_df is not None:
        results['momentum'] = evaluate_momentum(momentum_df)
        if 'top_segment' in results['momentum']:
            print(f"  Top segment: {results['momentum']['top_segment']}")
        print(f"  Quality Score: {results['momentum']['quality_score']}/100")
    else:
        print("  [MISSING] rmi_by_hour_day")
        results['momentum'] = {'quality_score': 0, 'error': 'file not found'}

    print("\n--- Behavioral Context ---")
    context_df = _read_table(output_dir, 'hour_day_metrics')
    if context_df is not None:
        results['context'] = evaluate_context(context_df, global_stats)
        print(f"  Quality Score: {results['context']['quality_score']}/100")
    else:
        print("  [MISSING] hour_day_metrics")
        results['context'] = {'quality_score': 0, 'error': 'file not found'}

    scores = [r['quality_score'] for r in results.values() if 'quality_score' in r]
    overall_score = np.mean(scores) if scores else 0

    print("\n" + "=" * 60)
    print(f"Overall Quality Score: {overall_score:.1f}/100")
    print("=" * 60)

    results['overall'] = {
        'quality_score': float(overall_score),
        'outputs_evaluated': len(scores),
        'all_files_present': all('error' not in r for r in results.values())
    }

    return results


def main():
    """Run evaluation and save results."""
    project_root = Path(__file__).parent.parent
    results = run_evaluation(project_root / 'data' / 'output')

    output_path = project_root / 'evals' / 'temporal_patterns_results.json'
    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    print(f"\nResults saved to: {output_path}")

    return results


if __name__ == '__main__':
    main()
