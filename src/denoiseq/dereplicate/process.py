"""Collapse identical reads into unique sequences.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from typing import Iterator, Sequence

import numpy as np
import numpy.typing as npt

from denoiseq.reads.models import Read

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class UniqueSequence:
    """A distinct read sequence and the reads that share it.

    :ivar sequence: the base sequence
    :ivar abundance: the number of reads with exactly this sequence
    :ivar quality: the mean quality score at each position over those reads
    """

    sequence: str
    abundance: int
    quality: npt.NDArray[np.float64]

    def __post_init__(self):
        if self.abundance < 1:
            raise ValueError("A unique sequence must have an abundance of at least 1")
        quality = np.asarray(self.quality, dtype=np.float64)
        if len(quality) != len(self.sequence):
            raise ValueError("The quality profile must have one value per base")
        quality.setflags(write=False)
        object.__setattr__(self, "quality", quality)

    def __len__(self) -> int:
        return len(self.sequence)


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class DereplicatedReads:
    """The unique sequences of a collection of reads.

    Uniques are ordered by decreasing abundance, ties broken by sequence.

    :ivar uniques: the unique sequences
    :ivar read_map: for each input read, the index of its unique sequence
    """

    uniques: tuple[UniqueSequence, ...]
    read_map: npt.NDArray[np.int64]

    def __len__(self) -> int:
        return len(self.uniques)

    def __iter__(self) -> Iterator[UniqueSequence]:
        return iter(self.uniques)

    def __getitem__(self, idx: int) -> UniqueSequence:
        return self.uniques[idx]

    @property
    def n_reads(self) -> int:
        """Return the total number of reads."""
        return int(sum(u.abundance for u in self.uniques))

    @property
    def abundances(self) -> npt.NDArray[np.int64]:
        """Return the abundance of each unique as an array."""
        return np.array([u.abundance for u in self.uniques], dtype=np.int64)

    @property
    def sequences(self) -> list[str]:
        """Return the sequence of each unique."""
        return [u.sequence for u in self.uniques]

    @classmethod
    def from_sequences(
        cls, sequences: Sequence[str], quality: int = 40
    ) -> "DereplicatedReads":
        """Dereplicate plain sequences that all carry the same quality score."""
        reads = [
            Read(seq, np.full(len(seq), quality, dtype=np.uint8)) for seq in sequences
        ]
        return dereplicate(reads)


def dereplicate(reads: Sequence[Read]) -> DereplicatedReads:
    """Collapse reads with identical sequences into unique sequences.

    The quality profile of a unique is the per-position mean of the quality
    scores of its reads. Reads of different length are never collapsed since
    their sequences differ.

    :param reads: the reads to dereplicate
    :returns: the unique sequences and the read to unique mapping
    """
    groups: dict[str, list[int]] = defaultdict(list)
    for idx, read in enumerate(reads):
        groups[read.sequence].append(idx)

    ordered = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0]))

    uniques = []
    read_map = np.empty(len(reads), dtype=np.int64)
    for unique_idx, (sequence, read_indices) in enumerate(ordered):
        qualities = np.stack([reads[i].qualities for i in read_indices])
        uniques.append(
            UniqueSequence(
                sequence=sequence,
                abundance=len(read_indices),
                quality=qualities.mean(axis=0, dtype=np.float64),
            )
        )
        read_map[read_indices] = unique_idx

    logger.debug("Dereplicated %s reads into %s uniques", len(reads), len(uniques))
    return DereplicatedReads(uniques=tuple(uniques), read_map=read_map)
