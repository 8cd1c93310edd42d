"""Reads, samples and read input.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.reads.filtering import FilterStatistics, filter_and_trim
from denoiseq.reads.io import read_paired_fastq, write_fasta
from denoiseq.reads.models import Read, Sample

__all__ = [
    "FilterStatistics",
    "Read",
    "Sample",
    "filter_and_trim",
    "read_paired_fastq",
    "write_fasta",
]
