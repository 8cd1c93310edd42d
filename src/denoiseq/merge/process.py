"""Merge denoised forward and reverse reads into full length sequences.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from typing import Iterable, Optional, Sequence

import numpy as np
import numpy.typing as npt

from denoiseq.config import DenoiseConfig
from denoiseq.denoise import DenoiseResult, DenoisedVariant
from denoiseq.encoding import encode
from denoiseq.utils import reverse_complement

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class MergedRead:
    """The merge of one forward and one reverse denoised variant.

    :ivar sequence: the merged sequence, empty if the merge was rejected
    :ivar abundance: the number of read pairs this merge represents
    :ivar forward: the index of the forward variant
    :ivar reverse: the index of the reverse variant
    :ivar n_match: the number of matching bases in the overlap
    :ivar n_mismatch: the number of mismatching bases in the overlap
    :ivar overlap: the length of the overlap, 0 if no overlap was found
    :ivar accepted: False if the pair did not overlap well enough
    """

    sequence: str
    abundance: int
    forward: int
    reverse: int
    n_match: int
    n_mismatch: int
    overlap: int
    accepted: bool


@dataclasses.dataclass(frozen=True, slots=True)
class MergeStatistics:
    """Read pair counts of a merge.

    :ivar input_pairs: the number of read pairs with a denoised forward and reverse read
    :ivar merged_pairs: the number of read pairs in accepted merges
    :ivar rejected_pairs: the number of read pairs in rejected merges
    :ivar merged_sequences: the number of distinct merged sequences
    """

    input_pairs: int
    merged_pairs: int
    rejected_pairs: int
    merged_sequences: int

    @property
    def fraction_merged(self) -> float:
        """Return the fraction of input read pairs that were merged."""
        return self.merged_pairs / self.input_pairs if self.input_pairs else 0.0

    @classmethod
    def from_merged(cls, merged: Iterable[MergedRead]) -> "MergeStatistics":
        """Summarize a list of merges."""
        merged_pairs = 0
        rejected_pairs = 0
        sequences = set()
        for m in merged:
            if m.accepted:
                merged_pairs += m.abundance
                sequences.add(m.sequence)
            else:
                rejected_pairs += m.abundance
        return cls(
            input_pairs=merged_pairs + rejected_pairs,
            merged_pairs=merged_pairs,
            rejected_pairs=rejected_pairs,
            merged_sequences=len(sequences),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class Overlap:
    """An ungapped overlap of a forward and a reverse read."""

    length: int
    n_match: int
    n_mismatch: int


def _best_overlap(
    forward: npt.NDArray[np.uint8],
    reverse: npt.NDArray[np.uint8],
    min_overlap: int,
    max_mismatch_rate: float,
) -> Optional[Overlap]:
    """Find the best ungapped overlap of the end of `forward` with the start of `reverse`.

    Overlaps are ranked by matches minus mismatches, ties go to the longer
    overlap. Only overlaps with a mismatch rate of at most `max_mismatch_rate`
    are considered.
    """
    best = None
    best_key = None
    for length in range(min_overlap, min(len(forward), len(reverse)) + 1):
        fwd_end = forward[len(forward) - length :]
        n_mismatch = int(np.count_nonzero(fwd_end != reverse[:length]))
        if n_mismatch > max_mismatch_rate * length:
            continue
        n_match = length - n_mismatch
        key = (n_match - n_mismatch, length)
        if best_key is None or key > best_key:
            best_key = key
            best = Overlap(length=length, n_match=n_match, n_mismatch=n_mismatch)
    return best


def merge_pair(
    forward: DenoisedVariant,
    reverse: DenoisedVariant,
    min_overlap: int,
    max_mismatch_rate: float,
) -> tuple[str, Optional[Overlap]]:
    """Merge a forward variant with a reverse variant.

    The reverse variant is reverse complemented before it is overlapped with
    the forward variant. The merged sequence is the forward sequence up to
    the overlap, the consensus of the overlap and the rest of the reverse
    sequence. In the overlap the base with the higher quality is kept,
    the forward base on equal quality.

    :param forward: the forward variant
    :param reverse: the reverse variant, in the orientation it was sequenced in
    :param min_overlap: the minimum overlap length
    :param max_mismatch_rate: the largest allowed fraction of mismatches in the overlap
    :returns: the merged sequence and the overlap, an empty sequence and None
        if no acceptable overlap exists
    """
    fwd_seq = forward.sequence
    rev_seq = reverse_complement(reverse.sequence)
    rev_quality = reverse.quality[::-1]

    overlap = _best_overlap(
        encode(fwd_seq), encode(rev_seq), min_overlap, max_mismatch_rate
    )
    if overlap is None:
        return "", None

    start = len(fwd_seq) - overlap.length
    fwd_part = np.array(list(fwd_seq[start:]))
    rev_part = np.array(list(rev_seq[: overlap.length]))
    take_reverse = rev_quality[: overlap.length] > forward.quality[start:]
    consensus = "".join(np.where(take_reverse, rev_part, fwd_part))

    return fwd_seq[:start] + consensus + rev_seq[overlap.length :], overlap


def merge_pairs(
    forward: DenoiseResult,
    reverse: DenoiseResult,
    config: DenoiseConfig,
) -> list[MergedRead]:
    """Merge the denoised read pairs of a sample.

    Read pairs are matched index by index: read `i` of the forward result was
    sequenced together with read `i` of the reverse result. All pairs with the
    same forward and reverse variant are merged once and counted. Pairs that
    do not overlap by at least `min_overlap` bases with a mismatch rate of at
    most `max_mismatch_rate` are returned with `accepted` set to False.

    :param forward: the denoising result of the forward reads
    :param reverse: the denoising result of the reverse reads
    :param config: the run configuration
    :returns: one merge per distinct (forward, reverse) variant pair, accepted
        merges first ordered by decreasing abundance
    :raises ValueError: if the two results do not cover the same number of reads
    """
    fwd_map = forward.read_map()
    rev_map = reverse.read_map()
    if len(fwd_map) != len(rev_map):
        raise ValueError(
            f"Forward ({len(fwd_map)}) and reverse ({len(rev_map)}) results "
            "do not describe the same read pairs"
        )

    pairs = Counter(
        (int(f), int(r)) for f, r in zip(fwd_map, rev_map) if f >= 0 and r >= 0
    )

    merged = []
    for (f, r), count in pairs.items():
        sequence, overlap = merge_pair(
            forward.variants[f],
            reverse.variants[r],
            config.min_overlap,
            config.max_mismatch_rate,
        )
        merged.append(
            MergedRead(
                sequence=sequence,
                abundance=count,
                forward=f,
                reverse=r,
                n_match=overlap.n_match if overlap else 0,
                n_mismatch=overlap.n_mismatch if overlap else 0,
                overlap=overlap.length if overlap else 0,
                accepted=overlap is not None,
            )
        )

    merged.sort(key=lambda m: (not m.accepted, -m.abundance, m.forward, m.reverse))
    stats = MergeStatistics.from_merged(merged)
    logger.debug(
        "Merged %s of %s read pairs into %s sequences",
        stats.merged_pairs,
        stats.input_pairs,
        stats.merged_sequences,
    )
    return merged


def merged_abundances(merged: Sequence[MergedRead]) -> dict[str, int]:
    """Return the total abundance of every accepted merged sequence."""
    totals: Counter[str] = Counter()
    for m in merged:
        if m.accepted:
            totals[m.sequence] += m.abundance
    return dict(totals)
