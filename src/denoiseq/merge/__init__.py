"""Pair merging of denoised reads.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.merge.process import (
    MergedRead,
    MergeStatistics,
    Overlap,
    merge_pair,
    merge_pairs,
    merged_abundances,
)
from denoiseq.merge.report import MergeSampleReport

__all__ = [
    "MergedRead",
    "MergeSampleReport",
    "MergeStatistics",
    "Overlap",
    "merge_pair",
    "merge_pairs",
    "merged_abundances",
]
