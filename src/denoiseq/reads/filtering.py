"""Quality truncation and filtering of read pairs.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional

import numpy as np

from denoiseq.config import DenoiseConfig
from denoiseq.reads.models import Read, Sample

logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class FilterStatistics:
    """Counts of read pairs kept and discarded by :func:`filter_and_trim`."""

    input_pairs: int = 0
    output_pairs: int = 0
    too_short: int = 0
    too_many_n: int = 0
    too_many_expected_errors: int = 0

    @property
    def discarded_pairs(self) -> int:
        """Return the number of discarded pairs."""
        return self.input_pairs - self.output_pairs


def expected_errors(read: Read) -> float:
    """Return the sum of the Phred error probabilities of a read."""
    return float(np.sum(np.power(10.0, -read.qualities.astype(np.float64) / 10.0)))


def trim_read(
    read: Read, trunc_len: Optional[int], trunc_q: int, min_len: int
) -> Optional[Read]:
    """Truncate a read at its first low quality base and to a fixed length.

    Reads that end up shorter than `trunc_len` (or `min_len`) are discarded.

    :returns: the trimmed read or None if it was discarded
    """
    low_quality = np.flatnonzero(read.qualities <= trunc_q)
    end = int(low_quality[0]) if len(low_quality) else len(read)

    if trunc_len is not None:
        if end < trunc_len:
            return None
        end = trunc_len

    if end < min_len:
        return None

    if end == len(read):
        return read
    return Read(read.sequence[:end], read.qualities[:end])


def filter_and_trim(sample: Sample, config: DenoiseConfig) -> tuple[Sample, FilterStatistics]:
    """Trim and filter the read pairs of a sample.

    A pair is only kept if both reads pass.

    :param sample: the sample to filter
    :param config: the run configuration
    :returns: the filtered sample and the filter statistics
    """
    stats = FilterStatistics(input_pairs=sample.n_pairs)
    forward: list[Read] = []
    reverse: list[Read] = []

    for fwd, rev in zip(sample.forward, sample.reverse):
        fwd_trimmed = trim_read(
            fwd, config.trunc_len_forward, config.trunc_q, config.min_len
        )
        rev_trimmed = trim_read(
            rev, config.trunc_len_reverse, config.trunc_q, config.min_len
        )
        if fwd_trimmed is None or rev_trimmed is None:
            stats.too_short += 1
            continue

        if (
            fwd_trimmed.sequence.count("N") > config.max_n
            or rev_trimmed.sequence.count("N") > config.max_n
        ):
            stats.too_many_n += 1
            continue

        if config.max_ee is not None and (
            expected_errors(fwd_trimmed) > config.max_ee
            or expected_errors(rev_trimmed) > config.max_ee
        ):
            stats.too_many_expected_errors += 1
            continue

        forward.append(fwd_trimmed)
        reverse.append(rev_trimmed)

    stats.output_pairs = len(forward)
    logger.debug(
        "Sample %s: kept %s of %s read pairs after filtering",
        sample.sample_id,
        stats.output_pairs,
        stats.input_pairs,
    )
    return Sample(sample.sample_id, forward, reverse), stats
