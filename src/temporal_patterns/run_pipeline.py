"""
Temporal Patterns Pipeline Runner
=================================
Runs all 5 stages sequentially and writes the output relations for the
dashboard.

Usage:
    python -m src.temporal_patterns.run_pipeline
    python -m src.temporal_patterns.run_pipeline --format parquet --top 5
    python -m src.temporal_patterns.run_pipeline --rmi-baseline -50 120

Output files (in data/output/):
    - time_order_metrics.<fmt>
    - segments_by_hour.<fmt>
    - segments_by_day.<fmt>
    - segments_weekday_or_weekend.<fmt>
    - segments_by_hour_day.<fmt>
    - rmi_by_hour_day.<fmt>
    - hour_day_metrics.<fmt>
    - global_stats.json
"""

import argparse
import json
import logging
import time
import pandas as pd
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union
import sys

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from src.temporal_patterns.config import PipelineConfig
from src.temporal_patterns.stage1_order_loader import OrderLoader, Source
from src.temporal_patterns.stage2_temporal_metrics import TemporalMetricsBuilder
from src.temporal_patterns.stage3_segment_aggregates import (
    SegmentAggregator,
    SegmentAggregates,
    GlobalStats,
)
from src.temporal_patterns.stage4_momentum_scores import MomentumScorer
from src.temporal_patterns.stage5_behavioral_context import BehavioralContextBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Every relation produced by one pipeline run."""
    metrics: pd.DataFrame
    segments: SegmentAggregates
    global_stats: GlobalStats
    momentum: pd.DataFrame
    context: pd.DataFrame

    def tables(self) -> Dict[str, pd.DataFrame]:
        """Output relations keyed by their file stem."""
        return {
            'time_order_metrics': self.metrics,
            'segments_by_hour': self.segments.by_hour,
            'segments_by_day': self.segments.by_day,
            'segments_weekday_or_weekend': self.segments.by_weekday_or_weekend,
            'segments_by_hour_day': self.segments.by_hour_day,
            'rmi_by_hour_day': self.momentum,
            'hour_day_metrics': self.context,
        }


class TemporalPatternsPipeline:
    """
    Orchestrates the five stages.

    Data flows strictly forward; each stage receives the previous stage's
    output as an argument and returns a new DataFrame.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

        self.loader = OrderLoader()
        self.metrics_builder = TemporalMetricsBuilder(
            eval_set=self.config.eval_set,
            weekday_days=self.config.weekday_days
        )
        self.aggregator = SegmentAggregator(decimals=self.config.decimals)
        self.scorer = MomentumScorer(
            decimals=self.config.decimals,
            scale_max=self.config.scale_max,
            degenerate_score=self.config.degenerate_score,
            baseline=self.config.rmi_baseline
        )
        self.context_builder = BehavioralContextBuilder(decimals=self.config.decimals)

    def run(self, orders: Source, line_items: Source) -> PipelineResult:
        """
        Run all stages.

        Parameters
        ----------
        orders : str, Path or pd.DataFrame
            Order records
        line_items : str, Path or pd.DataFrame
            Prior order-line records

        Returns
        -------
        PipelineResult
        """
        stage_start = time.time()
        tables = self.loader.run(orders, line_items)
        logger.info(f"Stage 1 completed in {time.time() - stage_start:.1f}s")

        stage_start = time.time()
        metrics = self.metrics_builder.run(tables)
        logger.info(f"Stage 2 completed in {time.time() - stage_start:.1f}s")

        stage_start = time.time()
        segments = self.aggregator.run(metrics)
        global_stats = self.aggregator.global_stats(metrics)
        logger.info(f"Stage 3 completed in {time.time() - stage_start:.1f}s")

        # Scoring needs the complete hour x day set for its min/max pass
        stage_start = time.time()
        momentum = self.scorer.run(segments.hour_day_means, global_stats.avg_repurchase_cycle)
        logger.info(f"Stage 4 completed in {time.time() - stage_start:.1f}s")

        stage_start = time.time()
        context = self.context_builder.run(segments.hour_day_means, metrics, global_stats)
        logger.info(f"Stage 5 completed in {time.time() - stage_start:.1f}s")

        return PipelineResult(
            metrics=metrics,
            segments=segments,
            global_stats=global_stats,
            momentum=momentum,
            context=context,
        )

    def save(self, result: PipelineResult, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Write every output relation plus global_stats.json.

        Returns
        -------
        Dict[str, Path]
            File stem -> written path
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        fmt = self.config.output_format

        written = {}
        for name, df in result.tables().items():
            path = output_dir / f'{name}.{fmt}'
            if fmt == 'parquet':
                df.to_parquet(path, index=False)
            else:
                df.to_csv(path, index=False)
            written[name] = path
            logger.info(f"Saved {name}: {len(df):,} rows -> {path}")

        stats_path = output_dir / 'global_stats.json'
        with open(stats_path, 'w') as f:
            json.dump(
                {'global_stats': result.global_stats.to_dict(), 'config': self.config.to_dict()},
                f, indent=2, default=str
            )
        written['global_stats'] = stats_path

        return written


def run_full_pipeline(
    orders_path: Path,
    line_items_path: Path,
    output_dir: Path,
    config: Optional[PipelineConfig] = None,
    top: int = 10
) -> PipelineResult:
    """Run the pipeline from CSV exports, save outputs and print a summary."""
    print("=" * 70)
    print("Instacart Temporal Buying Patterns")
    print("=" * 70)

    total_start = time.time()
    pipeline = TemporalPatternsPipeline(config)
    result = pipeline.run(orders_path, line_items_path)
    written = pipeline.save(result, output_dir)

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"\nTotal time: {time.time() - total_start:.1f}s")

    print(f"\nOutput files:")
    for path in written.values():
        print(f"  - {path}")

    stats = result.global_stats
    print(f"\nData Summary:")
    print(f"  - Orders: {len(result.metrics):,}")
    print(f"  - Global avg repurchase cycle: {stats.avg_repurchase_cycle:.2f} days")
    print(f"  - Global avg order size: {stats.avg_order_size:.2f} items")
    print(f"  - Hour x day segments scored: {len(result.momentum):,}")

    if top > 0 and len(result.momentum) > 0:
        print(f"\nTop {min(top, len(result.momentum))} segments by RMI:")
        cols = ['hour_day_label', 'avg_repurchase_cycle', 'number_of_orders', 'rmi_scaled']
        print(result.momentum[cols].head(top).to_string(index=False))

    return result


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    parser = argparse.ArgumentParser(description='Run Instacart temporal patterns pipeline')
    parser.add_argument(
        '--orders',
        type=str,
        default=str(project_root / 'raw_data' / 'orders.csv'),
        help='Path to orders.csv'
    )
    parser.add_argument(
        '--order-products',
        type=str,
        default=str(project_root / 'raw_data' / 'order_products__prior.csv'),
        help='Path to order_products__prior.csv'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default=str(project_root / 'data' / 'output'),
        help='Output directory for result tables'
    )
    parser.add_argument(
        '--format',
        type=str,
        choices=['csv', 'parquet'],
        default='csv',
        help='Output file format (default: csv)'
    )
    parser.add_argument(
        '--eval-set',
        type=str,
        default='prior',
        help="Evaluation set of orders to analyse (default: prior)"
    )
    parser.add_argument(
        '--rmi-baseline',
        type=float,
        nargs=2,
        metavar=('MIN', 'MAX'),
        default=None,
        help='Fixed raw RMI range for rescaling (default: per-run min/max)'
    )
    parser.add_argument(
        '--top',
        type=int,
        default=10,
        help='Number of top RMI segments to print (default: 10)'
    )
    args = parser.parse_args()

    config = PipelineConfig(
        eval_set=args.eval_set,
        rmi_baseline=tuple(args.rmi_baseline) if args.rmi_baseline else None,
        output_format=args.format
    )

    run_full_pipeline(
        orders_path=Path(args.orders),
        line_items_path=Path(args.order_products),
        output_dir=Path(args.output_dir),
        config=config,
        top=args.top
    )


if __name__ == '__main__':
    main()
