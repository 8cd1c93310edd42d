"""Reporting models for denoiseq.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.report.models import ReadTrackingReport, SampleReport, SummaryStatistics

__all__ = ["ReadTrackingReport", "SampleReport", "SummaryStatistics"]
