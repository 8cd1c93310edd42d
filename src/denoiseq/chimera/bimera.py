"""Detection and removal of two-parent chimeras (bimeras).

A bimera is a sequence that is the join of a prefix of one more abundant
sequence and a suffix of another. Chimeras are formed during amplification,
so they are always less abundant than their parents.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Mapping, Sequence

import numpy as np
import numpy.typing as npt
from joblib import delayed
from scipy.sparse import lil_matrix

from denoiseq.config import DenoiseConfig
from denoiseq.encoding import encode
from denoiseq.table import SequenceTable
from denoiseq.utils import get_joblib_executor

logger = logging.getLogger(__name__)

# Mismatch count of positions a parent does not cover
_UNCOVERED = np.iinfo(np.int32).max // 4


def _prefix_mismatches(
    candidate: npt.NDArray[np.uint8], parent: npt.NDArray[np.uint8]
) -> npt.NDArray[np.int64]:
    """Return the mismatches of `candidate[:k]` against `parent[:k]` for all k."""
    n = min(len(candidate), len(parent))
    out = np.full(len(candidate) + 1, _UNCOVERED, dtype=np.int64)
    out[0] = 0
    out[1 : n + 1] = np.cumsum(candidate[:n] != parent[:n])
    return out


def _suffix_mismatches(
    candidate: npt.NDArray[np.uint8], parent: npt.NDArray[np.uint8]
) -> npt.NDArray[np.int64]:
    """Return the mismatches of `candidate[k:]` against the end of `parent` for all k."""
    reversed_prefix = _prefix_mismatches(candidate[::-1], parent[::-1])
    return reversed_prefix[::-1]


def _two_smallest(
    values: npt.NDArray[np.int64],
) -> tuple[npt.NDArray[np.int64], npt.NDArray[np.int64], npt.NDArray[np.int64]]:
    """Return the argmin, min and second min of every column."""
    order = np.argsort(values, axis=0, kind="stable")
    cols = np.arange(values.shape[1])
    return order[0], values[order[0], cols], values[order[1], cols]


def is_bimera(candidate: str, parents: Sequence[str], max_mismatch: int = 0) -> bool:
    """Check if a sequence is a join of a prefix and a suffix of two parents.

    The prefix and suffix are aligned without gaps, the prefix to the start
    and the suffix to the end of their parents. The candidate is a bimera if
    some breakpoint gives a join of two different parents with at most
    `max_mismatch` mismatches in total, and no single parent matches the
    candidate equally well or better.

    :param candidate: the sequence to test
    :param parents: the possible parents of the candidate
    :param max_mismatch: the largest number of mismatches allowed in the join
    :returns: True if the candidate is a bimera of the parents
    """
    if len(parents) < 2 or len(candidate) < 2:
        return False

    cand = encode(candidate)
    encoded = [encode(p) for p in parents]
    left = np.stack([_prefix_mismatches(cand, p) for p in encoded])
    right = np.stack([_suffix_mismatches(cand, p) for p in encoded])

    # A single parent of the same length covers the whole candidate
    best_single = min(
        (int(left[i, -1]) for i, p in enumerate(encoded) if len(p) == len(cand)),
        default=_UNCOVERED,
    )

    # Breakpoints with a non-empty prefix and suffix
    left_arg, left_min, left_second = _two_smallest(left[:, 1 : len(cand)])
    right_arg, right_min, right_second = _two_smallest(right[:, 1 : len(cand)])
    joined = np.where(
        left_arg != right_arg,
        left_min + right_min,
        np.minimum(left_min + right_second, left_second + right_min),
    )
    best_join = int(joined.min())

    return best_join <= max_mismatch and best_join < best_single


def sample_bimeras(
    counts: Mapping[str, int],
    chimera_ratio: float,
    max_mismatch: int = 0,
) -> set[str]:
    """Find the bimeras among the sequences of one sample.

    The possible parents of a sequence are the sequences of the sample with an
    abundance of at least `chimera_ratio` times its own abundance.

    :param counts: the abundance of every sequence in the sample
    :param chimera_ratio: the minimum abundance ratio of a parent to the candidate
    :param max_mismatch: the largest number of mismatches allowed in the join
    :returns: the sequences that are bimeras
    """
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    flagged = set()
    for idx, (sequence, abundance) in enumerate(ordered):
        parents = [
            seq
            for seq, parent_abundance in ordered[:idx]
            if parent_abundance >= chimera_ratio * abundance
        ]
        if is_bimera(sequence, parents, max_mismatch):
            flagged.add(sequence)
    return flagged


@dataclasses.dataclass(frozen=True, slots=True)
class ChimeraVotes:
    """Per sample bimera decisions of a sequence table.

    :ivar flagged: for each sample, the sequences that are bimeras in that sample
    :ivar occurrences: for each sequence, the number of samples it occurs in
    """

    flagged: dict[str, frozenset[str]]
    occurrences: dict[str, int]

    def n_flagged(self, sequence: str) -> int:
        """Return the number of samples in which the sequence was flagged."""
        return sum(sequence in seqs for seqs in self.flagged.values())

    def consensus(self) -> set[str]:
        """Return the sequences flagged in a strict majority of the samples they occur in."""
        votes: dict[str, int] = {}
        for seqs in self.flagged.values():
            for seq in seqs:
                votes[seq] = votes.get(seq, 0) + 1
        return {
            seq for seq, n in votes.items() if 2 * n > self.occurrences.get(seq, 0)
        }


def find_bimeras(
    table: SequenceTable, config: DenoiseConfig, n_jobs: int = 1
) -> ChimeraVotes:
    """Collect the bimera decision of every sequence in every sample.

    Samples are independent and are processed in parallel when `n_jobs` > 1.

    :param table: the sequence table
    :param config: the run configuration
    :param n_jobs: the number of worker processes
    :returns: the votes of all samples
    """
    samples = list(table.iter_samples())
    if n_jobs > 1 and len(samples) > 1:
        with get_joblib_executor(nbr_cores=n_jobs) as parallel:
            results = parallel(
                delayed(sample_bimeras)(
                    counts, config.chimera_ratio, config.chimera_max_mismatch
                )
                for _, counts in samples
            )
    else:
        results = [
            sample_bimeras(counts, config.chimera_ratio, config.chimera_max_mismatch)
            for _, counts in samples
        ]

    occurrences: dict[str, int] = {}
    for _, counts in samples:
        for seq in counts:
            occurrences[seq] = occurrences.get(seq, 0) + 1

    return ChimeraVotes(
        flagged={
            sample_id: frozenset(flagged)
            for (sample_id, _), flagged in zip(samples, results)
        },
        occurrences=occurrences,
    )


def filter_chimeras(
    table: SequenceTable, config: DenoiseConfig, n_jobs: int = 1
) -> SequenceTable:
    """Remove bimeras from a sequence table.

    In `per-sample` mode a sequence is removed from each sample in which it is
    a bimera. In `consensus` mode all sample decisions are collected first and
    a sequence is removed from the whole table when it is a bimera in more
    than half of the samples it occurs in. Removed counts are dropped.

    :param table: the sequence table
    :param config: the run configuration
    :param n_jobs: the number of worker processes
    :returns: the table without bimeras
    """
    votes = find_bimeras(table, config, n_jobs=n_jobs)

    if config.chimera_mode == "consensus":
        chimeras = votes.consensus()
        filtered = table.drop_sequences(chimeras)
        logger.info(
            "Removed %s of %s sequences as bimeras", len(chimeras), len(table.sequences)
        )
    else:
        counts = lil_matrix(table.counts)
        column = {seq: i for i, seq in enumerate(table.sequences)}
        for row, sample_id in enumerate(table.samples):
            for seq in votes.flagged[sample_id]:
                counts[row, column[seq]] = 0
        filtered = table.with_counts(counts.tocsr())
        logger.info(
            "Removed %s bimeric sample sequences, %s of %s sequences left",
            sum(len(f) for f in votes.flagged.values()),
            len(filtered.sequences),
            len(table.sequences),
        )

    return filtered
