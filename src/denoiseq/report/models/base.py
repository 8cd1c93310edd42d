"""Base class of the per-sample JSON reports.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic

from denoiseq.types import PathType

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self


class SampleReport(pydantic.BaseModel):
    """Statistics of one pipeline stage for one sample.

    :ivar sample_id: the sample the statistics belong to
    """

    sample_id: str

    @classmethod
    def from_json(cls, path: PathType) -> Self:
        """Read and validate a report written by :meth:`write_json_file`."""
        return cls.model_validate_json(Path(path).read_text())

    def to_json(self, **kwargs: Any) -> str:
        """Serialize the report, computed fields included.

        :param kwargs: passed on to `model_dump_json`, e.g. `indent`
        """
        return self.model_dump_json(**kwargs)

    def write_json_file(self, path: PathType, **kwargs: Any) -> None:
        """Write the report to a JSON file, creating missing parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_json(**kwargs))
