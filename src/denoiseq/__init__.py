"""Top-level package for denoiseq.

Copyright © 2025 Pixelgen Technologies AB.
"""

from importlib import metadata

__version__ = "0.0.0"

try:
    __version__ = metadata.version("denoiseq")
except metadata.PackageNotFoundError:
    pass


# Shortcuts to be able to run the main stages like
# import denoiseq
# denoiseq.denoise(...)
from denoiseq.chimera import filter_chimeras  # noqa
from denoiseq.config import DenoiseConfig  # noqa
from denoiseq.denoise import denoise, denoise_sample  # noqa
from denoiseq.dereplicate import dereplicate  # noqa
from denoiseq.merge import merge_pairs  # noqa
from denoiseq.pipeline import run_pipeline  # noqa
from denoiseq.table import SequenceTable, build_table  # noqa

__all__ = [
    "DenoiseConfig",
    "SequenceTable",
    "build_table",
    "denoise",
    "denoise_sample",
    "dereplicate",
    "filter_chimeras",
    "merge_pairs",
    "run_pipeline",
]
