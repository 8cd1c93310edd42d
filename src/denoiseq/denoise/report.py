"""Report model of the denoising stage.

Copyright © 2025 Pixelgen Technologies AB.
"""

import typing

import pydantic

from denoiseq.denoise.engine import DenoiseResult
from denoiseq.report.models.base import SampleReport
from denoiseq.report.models.summary_statistics import SummaryStatistics


class DirectionDenoiseStatistics(pydantic.BaseModel):
    """Denoising statistics of one read direction."""

    input_reads: int = pydantic.Field(
        ..., description="The number of reads that were denoised."
    )
    unique_sequences: int = pydantic.Field(
        ..., description="The number of distinct sequences among the input reads."
    )
    variants: int = pydantic.Field(
        ..., description="The number of inferred sequence variants."
    )
    iterations: int = pydantic.Field(
        ..., description="The number of reassignment passes that were run."
    )
    converged: bool = pydantic.Field(
        ...,
        description="False if the iteration cap was reached before the partition was stable.",
    )
    variant_abundance: SummaryStatistics = pydantic.Field(
        ..., description="The distribution of variant abundances."
    )

    @classmethod
    def from_result(cls, result: DenoiseResult) -> "DirectionDenoiseStatistics":
        """Summarize a denoising result."""
        return cls(
            input_reads=result.dereplicated.n_reads,
            unique_sequences=len(result.dereplicated),
            variants=len(result),
            iterations=result.iterations,
            converged=result.converged,
            variant_abundance=SummaryStatistics.from_series(
                [v.abundance for v in result.variants]
            ),
        )


class DenoiseSampleReport(SampleReport):
    """Model for the denoising of the forward and reverse reads of a sample."""

    report_type: typing.Literal["denoise"] = "denoise"

    forward: DirectionDenoiseStatistics
    reverse: DirectionDenoiseStatistics

    @classmethod
    def from_results(
        cls, sample_id: str, forward: DenoiseResult, reverse: DenoiseResult
    ) -> "DenoiseSampleReport":
        """Create a report from the results of both read directions."""
        return cls(
            sample_id=sample_id,
            forward=DirectionDenoiseStatistics.from_result(forward),
            reverse=DirectionDenoiseStatistics.from_result(reverse),
        )
