"""Copyright © 2025 Pixelgen Technologies AB."""

from .base import SampleReport
from .reads_flow import ReadTrackingReport
from .summary_statistics import SummaryStatistics

__all__ = [
    "ReadTrackingReport",
    "SampleReport",
    "SummaryStatistics",
]
