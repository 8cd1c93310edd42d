"""Report model of the pair merging stage.

Copyright © 2025 Pixelgen Technologies AB.
"""

import typing

import pydantic

from denoiseq.merge.process import MergeStatistics
from denoiseq.report.models.base import SampleReport


class MergeSampleReport(SampleReport):
    """Model for a pair merging sample report."""

    report_type: typing.Literal["merge"] = "merge"

    input_pairs: int = pydantic.Field(
        ..., description="The number of denoised read pairs that were merged."
    )
    merged_pairs: int = pydantic.Field(
        ..., description="The number of read pairs that overlapped well enough to merge."
    )
    rejected_pairs: int = pydantic.Field(
        ...,
        description="The number of read pairs that did not overlap well enough to merge.",
    )
    merged_sequences: int = pydantic.Field(
        ..., description="The number of distinct merged sequences."
    )
    fraction_merged: float = pydantic.Field(
        ..., description="The fraction of read pairs that were merged."
    )

    @classmethod
    def from_statistics(cls, sample_id: str, stats: MergeStatistics) -> "MergeSampleReport":
        """Create a report from the statistics of a merge."""
        return cls(
            sample_id=sample_id,
            input_pairs=stats.input_pairs,
            merged_pairs=stats.merged_pairs,
            rejected_pairs=stats.rejected_pairs,
            merged_sequences=stats.merged_sequences,
            fraction_merged=stats.fraction_merged,
        )
