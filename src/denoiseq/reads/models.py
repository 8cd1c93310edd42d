"""Reads and samples entering the pipeline.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
from typing import Sequence

import numpy as np
import numpy.typing as npt

from denoiseq.exception import SampleValidationError

VALID_BASES = frozenset("ACGTN")
PHRED_OFFSET = 33


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class Read:
    """A sequenced read with one quality score per base.

    :ivar sequence: the bases of the read (A, C, G, T or N)
    :ivar qualities: the quality scores as a read-only uint8 array
    """

    sequence: str
    qualities: npt.NDArray[np.uint8]

    def __post_init__(self):
        scores = np.asarray(self.qualities)
        if scores.size and scores.min() < 0:
            raise SampleValidationError("Read has negative quality scores")
        qualities = np.asarray(scores, dtype=np.uint8)
        if len(qualities) != len(self.sequence):
            raise SampleValidationError(
                f"Read of length {len(self.sequence)} has {len(qualities)} quality scores"
            )
        if not VALID_BASES.issuperset(self.sequence):
            raise SampleValidationError(
                f"Read contains bases outside of ACGTN: {self.sequence}"
            )
        qualities.setflags(write=False)
        object.__setattr__(self, "qualities", qualities)

    @classmethod
    def from_fastq(cls, sequence: str, qualities: str, offset: int = PHRED_OFFSET):
        """Create a read from the sequence and quality lines of a FASTQ record.

        :raises SampleValidationError: if a quality character is not ascii or
            encodes a score below zero
        """
        try:
            codes = np.frombuffer(qualities.encode("ascii"), dtype=np.uint8)
        except UnicodeEncodeError as exc:
            raise SampleValidationError(
                f"Quality line contains non-ascii characters: {qualities}"
            ) from exc
        if codes.size and codes.min() < offset:
            raise SampleValidationError(
                f"Quality line contains characters below {chr(offset)!r}: {qualities}"
            )
        return cls(sequence.upper(), codes - offset)

    def __len__(self) -> int:
        return len(self.sequence)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Read):
            return NotImplemented
        return self.sequence == other.sequence and np.array_equal(
            self.qualities, other.qualities
        )

    def __hash__(self) -> int:
        return hash((self.sequence, self.qualities.tobytes()))


@dataclasses.dataclass(frozen=True, slots=True)
class Sample:
    """The paired-end reads of one sample.

    Forward and reverse reads are index aligned, i.e. `forward[i]` and
    `reverse[i]` are the two ends of the same fragment.
    """

    sample_id: str
    forward: Sequence[Read]
    reverse: Sequence[Read]

    def __post_init__(self):
        if len(self.forward) != len(self.reverse):
            raise SampleValidationError(
                f"Mismatched number of forward ({len(self.forward)}) "
                f"and reverse ({len(self.reverse)}) reads",
                sample_id=self.sample_id,
            )

    @property
    def n_pairs(self) -> int:
        """Return the number of read pairs."""
        return len(self.forward)
