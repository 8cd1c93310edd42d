"""Chimera detection and removal.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.chimera.bimera import (
    ChimeraVotes,
    filter_chimeras,
    find_bimeras,
    is_bimera,
    sample_bimeras,
)
from denoiseq.chimera.report import ChimeraReport

__all__ = [
    "ChimeraReport",
    "ChimeraVotes",
    "filter_chimeras",
    "find_bimeras",
    "is_bimera",
    "sample_bimeras",
]
