"""
Pipeline Configuration
======================
"""

from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict, Any


@dataclass
class PipelineConfig:
    """Configuration for TemporalPatternsPipeline."""
    # Input filtering
    eval_set: str = 'prior'  # only prior orders carry complete user history

    # Segmentation
    weekday_days: Tuple[int, ...] = (0, 1, 2, 3, 4)  # Sunday-Thursday

    # Numeric output
    decimals: int = 2

    # RMI rescaling
    scale_max: float = 10.0
    degenerate_score: float = 5.0  # all raw scores identical
    rmi_baseline: Optional[Tuple[float, float]] = None  # fixed (min, max); None = per run

    # Output
    output_format: str = 'csv'  # 'csv' or 'parquet'

    def __post_init__(self):
        if self.output_format not in ('csv', 'parquet'):
            raise ValueError(f"Unsupported output format: {self.output_format}")
        if self.rmi_baseline is not None:
            low, high = self.rmi_baseline
            if not high > low:
                raise ValueError(f"rmi_baseline must satisfy min < max, got {self.rmi_baseline}")
            self.rmi_baseline = (float(low), float(high))
        self.weekday_days = tuple(self.weekday_days)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
