"""
Stage 4: Repurchase Momentum Index
==================================
Scores each hour x day segment by combining how much faster customers
return than average with how much volume the segment carries:

    repurchase_cycle_lift = global_avg_cycle - segment_avg_cycle
    log_item_volume       = ln(total_item_volume)
    raw_rmi               = repurchase_cycle_lift * log_item_volume

then min-max rescales raw_rmi to [0, 10]. The baseline is recomputed per run
unless a fixed one is configured, so by default scores only compare within
a single run.

Output: rmi_by_hour_day
"""

import logging
import pandas as pd
import numpy as np
from typing import Optional, Tuple

from .errors import DomainError
from .labels import round_half_away

logger = logging.getLogger(__name__)


class MomentumScorer:
    """
    Computes and rescales the Repurchase Momentum Index (RMI).

    Steps:
    1. Repurchase cycle lift against the global average
    2. Log total item volume
    3. Raw RMI
    4. Rescale: first pass finds min/max, second pass maps every segment
    """

    OUTPUT_COLUMNS = [
        'hour_day_label', 'order_dow', 'order_hour_of_day',
        'avg_repurchase_cycle', 'avg_order_size', 'number_of_orders',
        'repurchase_cycle_lift', 'log_item_volume', 'raw_rmi', 'rmi_scaled'
    ]

    def __init__(
        self,
        decimals: int = 2,
        scale_max: float = 10.0,
        degenerate_score: float = 5.0,
        baseline: Optional[Tuple[float, float]] = None
    ):
        """
        Parameters
        ----------
        decimals : int
            Decimal places for lifts, log volume and scaled scores
        scale_max : float
            Upper end of the rescaled range (default: 10)
        degenerate_score : float
            Score given to every segment when all raw scores are equal
        baseline : tuple of float, optional
            Fixed (min, max) raw RMI range. None recomputes it per run.
        """
        self.decimals = decimals
        self.scale_max = scale_max
        self.degenerate_score = degenerate_score
        self.baseline = baseline

    def run(self, hour_day: pd.DataFrame, global_avg_repurchase_cycle: float) -> pd.DataFrame:
        """
        Score every hour x day segment.

        Parameters
        ----------
        hour_day : pd.DataFrame
            Hour x day segment aggregates with unrounded means
            (SegmentAggregates.hour_day_means)
        global_avg_repurchase_cycle : float
            Global mean repurchase cycle

        Returns
        -------
        pd.DataFrame
            One row per scored segment, sorted by rmi_scaled descending
        """
        logger.info("Stage 4: Repurchase Momentum Index")

        scorable = hour_day['avg_repurchase_cycle'].notna() & hour_day['total_item_volume'].notna()
        scored = hour_day[scorable].copy()
        skipped = len(hour_day) - len(scored)
        if skipped:
            logger.warning(
                f"  - {skipped:,} segments lack a repurchase cycle or item volume and are not scored"
            )

        if scored.empty:
            logger.warning("  - No segments to score")
            return pd.DataFrame(columns=self.OUTPUT_COLUMNS)

        logger.info("Step 1: Computing repurchase cycle lift...")
        scored['repurchase_cycle_lift'] = round_half_away(
            global_avg_repurchase_cycle - scored['avg_repurchase_cycle'], self.decimals
        )
        for col in ['avg_repurchase_cycle', 'avg_order_size']:
            scored[col] = round_half_away(scored[col], self.decimals)

        logger.info("Step 2: Computing log item volume...")
        scored['log_item_volume'] = self._log_volume(scored)

        logger.info("Step 3: Computing raw RMI...")
        raw = scored['repurchase_cycle_lift'] * scored['log_item_volume']

        logger.info("Step 4: Rescaling RMI...")
        scored['rmi_scaled'] = self.rescale(raw)
        scored['raw_rmi'] = round_half_away(raw, self.decimals)

        scored = scored.sort_values(['order_dow', 'order_hour_of_day'])
        scored = scored.sort_values('rmi_scaled', ascending=False, kind='mergesort')

        top = scored.iloc[0]
        logger.info(f"  - Scored segments: {len(scored):,}")
        logger.info(f"  - Strongest segment: {top['hour_day_label']} ({top['rmi_scaled']:.2f})")

        return scored[self.OUTPUT_COLUMNS].reset_index(drop=True)

    def _log_volume(self, scored: pd.DataFrame) -> pd.Series:
        volume = scored['total_item_volume'].astype(float)
        bad = ~(volume > 0)
        if bad.any():
            labels = scored.loc[bad, 'hour_day_label'].tolist()
            raise DomainError(
                f"total_item_volume must be > 0 to take its logarithm; "
                f"offending segments: {labels}"
            )
        return round_half_away(np.log(volume), self.decimals)

    def rescale(self, raw: pd.Series) -> pd.Series:
        """
        Min-max rescale raw scores to [0, scale_max].

        Returns degenerate_score for every row when min == max.
        """
        if self.baseline is not None:
            min_r, max_r = self.baseline
        else:
            min_r, max_r = float(raw.min()), float(raw.max())

        if max_r == min_r:
            return pd.Series(self.degenerate_score, index=raw.index, dtype=float)

        scaled = (raw - min_r) / (max_r - min_r) * self.scale_max
        if self.baseline is not None:
            scaled = scaled.clip(0, self.scale_max)

        return round_half_away(scaled, self.decimals)
