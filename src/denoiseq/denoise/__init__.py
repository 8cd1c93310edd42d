"""Denoising engine.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.denoise.engine import (
    DenoisedVariant,
    DenoiseResult,
    denoise,
    denoise_sample,
    learn_errors,
    pool_uniques,
    step,
)
from denoiseq.denoise.report import DenoiseSampleReport, DirectionDenoiseStatistics
from denoiseq.denoise.state import Cluster, EngineState, initial_state

__all__ = [
    "Cluster",
    "DenoisedVariant",
    "DenoiseResult",
    "DenoiseSampleReport",
    "DirectionDenoiseStatistics",
    "EngineState",
    "denoise",
    "denoise_sample",
    "initial_state",
    "learn_errors",
    "pool_uniques",
    "step",
]
