"""
This module contains helper typehints for the denoiseq package.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePath
from typing import Literal, Union

# type alias for path-like objects
PathType = Union[str, Path, PurePath, os.PathLike]

# the read direction of a paired-end run
ReadDirection = Literal["forward", "reverse"]

ChimeraMode = Literal["per-sample", "consensus"]
