"""Model for flow of read counts through the processing stages.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import typing

import pydantic

from denoiseq.report.models.base import SampleReport


class ReadTrackingReport(SampleReport):
    """Model for tracking the read counts of a sample through all stages."""

    report_type: typing.Literal["read_tracking"] = "read_tracking"

    input: int = pydantic.Field(
        ..., description="The number of input read pairs."
    )

    filtered: int = pydantic.Field(
        ..., description="The number of read pairs that passed quality filtering."
    )

    denoised_forward: int = pydantic.Field(
        ..., description="The number of forward reads assigned to a denoised variant."
    )

    denoised_reverse: int = pydantic.Field(
        ..., description="The number of reverse reads assigned to a denoised variant."
    )

    merged: int = pydantic.Field(
        ..., description="The number of read pairs that were merged."
    )

    nonchimeric: int = pydantic.Field(
        ..., description="The number of merged read pairs left after chimera removal."
    )

    @pydantic.computed_field(  # type: ignore
        return_type=float,
        description="The fraction of input read pairs that made it to the final table.",
    )
    @property
    def fraction_retained(self) -> float:  # noqa: D102
        return self.nonchimeric / self.input if self.input else 0.0
