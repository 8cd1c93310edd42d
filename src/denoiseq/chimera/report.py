"""Report model of the chimera removal stage.

Copyright © 2025 Pixelgen Technologies AB.
"""

import typing

import pydantic

from denoiseq.report.models.base import SampleReport
from denoiseq.table import SequenceTable


class ChimeraReport(SampleReport):
    """Model for the chimera removal of one sample."""

    report_type: typing.Literal["chimera"] = "chimera"

    input_reads: int = pydantic.Field(
        ..., description="The number of merged reads before chimera removal."
    )
    output_reads: int = pydantic.Field(
        ..., description="The number of merged reads left after chimera removal."
    )
    input_sequences: int = pydantic.Field(
        ..., description="The number of distinct sequences before chimera removal."
    )
    output_sequences: int = pydantic.Field(
        ..., description="The number of distinct sequences left after chimera removal."
    )

    @pydantic.computed_field(  # type: ignore
        return_type=float,
        description="The fraction of merged reads removed as chimeric.",
    )
    @property
    def fraction_chimeric(self) -> float:  # noqa: D102
        if self.input_reads == 0:
            return 0.0
        return 1.0 - self.output_reads / self.input_reads

    @classmethod
    def from_tables(
        cls, sample_id: str, before: SequenceTable, after: SequenceTable
    ) -> "ChimeraReport":
        """Compare a sample before and after chimera removal."""
        counts_before = before.sample_counts(sample_id)
        counts_after = after.sample_counts(sample_id)
        return cls(
            sample_id=sample_id,
            input_reads=sum(counts_before.values()),
            output_reads=sum(counts_after.values()),
            input_sequences=len(counts_before),
            output_sequences=len(counts_after),
        )
