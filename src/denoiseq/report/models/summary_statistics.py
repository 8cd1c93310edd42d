"""Quartile summary of a distribution, e.g. the abundances of the variants of a sample.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pydantic

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

if TYPE_CHECKING:
    import numpy.typing as npt
    import pandas as pd

_QUARTILES = (0.25, 0.5, 0.75)


class SummaryStatistics(pydantic.BaseModel):
    """Mean, spread and quartiles of a set of values."""

    mean: float = 0.0
    std: float = 0.0
    min: float = 0.0
    q1: float = 0.0
    q2: float = 0.0
    q3: float = 0.0
    max: float = 0.0
    count: int = 0

    @pydantic.computed_field(  # type: ignore
        return_type=float,
        description="The distance between the first and the third quartile.",
    )
    @property
    def iqr(self) -> float:  # noqa: D102
        return self.q3 - self.q1

    @classmethod
    def from_series(cls, distribution: pd.Series | npt.ArrayLike) -> Self:
        """Summarize the values of a series or an array.

        All statistics are zero for an empty input.
        """
        values = np.asarray(distribution, dtype=np.float64)
        if values.size == 0:
            return cls()

        q1, q2, q3 = (float(q) for q in np.quantile(values, _QUARTILES))
        return cls(
            mean=float(values.mean()),
            std=float(values.std()),
            min=float(values.min()),
            q1=q1,
            q2=q2,
            q3=q3,
            max=float(values.max()),
            count=int(values.size),
        )
