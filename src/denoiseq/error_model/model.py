"""Quality aware substitution error model.

The model is a table of transition probabilities indexed by the base of the
true sequence (the reference, i.e. the cluster center), the base observed in
the read and the quality score of the observed base. For every context
(reference base, quality score) the probabilities of the four bases it can be
read as sum to one.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import numpy.typing as npt
import pandas as pd

from denoiseq.dereplicate import UniqueSequence
from denoiseq.encoding import BASES, N_CODE, base_index, encode
from denoiseq.types import PathType

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUALITY = 41

# Bounds on the per-base error probability of the Phred prior.
# 0.75 is the error rate of a uniformly random base call.
MIN_ERROR_PROBABILITY = 1e-7
MAX_ERROR_PROBABILITY = 0.75


def phred_error_probability(quality: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Convert quality scores to clamped error probabilities: 10^(-Q/10)."""
    q = np.asarray(quality, dtype=np.float64)
    return np.clip(
        np.power(10.0, -q / 10.0), MIN_ERROR_PROBABILITY, MAX_ERROR_PROBABILITY
    )


def transition_labels() -> list[str]:
    """Return the transition labels in table order, e.g. `A2C`."""
    return [f"{ref}2{obs}" for ref in BASES for obs in BASES]


class ErrorModel:
    """Substitution probabilities stratified by quality score.

    :ivar probabilities: array of shape (4, 4, max_quality + 1) indexed by
        [reference base, observed base, quality]
    :ivar observations: the number of observed base calls per context used to
        fit the model, zero for a model that was never fitted
    """

    def __init__(
        self,
        probabilities: npt.NDArray[np.float64],
        observations: npt.NDArray[np.float64] | None = None,
    ) -> None:
        """Create an error model from a probability table.

        :param probabilities: the transition probabilities
        :param observations: the observation count per (reference, quality) context
        :raises ValueError: if the table has the wrong shape or does not sum to one
        """
        probabilities = np.asarray(probabilities, dtype=np.float64)
        if probabilities.ndim != 3 or probabilities.shape[:2] != (4, 4):
            raise ValueError(
                f"Expected a (4, 4, n_qualities) table, got {probabilities.shape}"
            )

        sums = probabilities.sum(axis=1)
        if not np.allclose(sums, 1.0):
            raise ValueError("Transition probabilities must sum to one per context")

        self.probabilities = probabilities
        self.probabilities.setflags(write=False)
        if observations is None:
            observations = np.zeros((4, probabilities.shape[2]), dtype=np.float64)
        self.observations = observations
        self._log_table: npt.NDArray[np.float64] | None = None

    @property
    def max_quality(self) -> int:
        """Return the highest quality score in the table."""
        return self.probabilities.shape[2] - 1

    @classmethod
    def initialize(cls, max_quality: int = DEFAULT_MAX_QUALITY) -> Self:
        """Create the default model from the Phred quality transform.

        A base with quality Q is read correctly with probability 1 - 10^(-Q/10)
        and as each of the three other bases with a third of the remainder.

        :param max_quality: the highest quality score in the table
        :returns: the default error model
        """
        p_err = phred_error_probability(np.arange(max_quality + 1))
        table = np.empty((4, 4, max_quality + 1), dtype=np.float64)
        table[:, :, :] = p_err / 3.0
        for b in range(4):
            table[b, b, :] = 1.0 - p_err
        return cls(table)

    def fit(
        self,
        uniques: Sequence[UniqueSequence],
        partition: npt.ArrayLike,
        prior_weight: float = 1.0,
    ) -> "ErrorModel":
        """Re-estimate the transition probabilities from a partition of uniques.

        Each unique is compared position by position to the center of the
        cluster it is assigned to. Observations are weighted by the abundance
        of the unique and binned by its rounded mean quality at the position.
        Contexts without any observations keep the Phred default, observed
        contexts are blended with the default using `prior_weight` pseudo
        observations.

        :param uniques: the unique sequences
        :param partition: for each unique, the index of the unique that is the
            center of its cluster, or -1 if it is not assigned
        :param prior_weight: the weight of the default model in observed contexts
        :returns: a new fitted error model
        """
        partition = np.asarray(partition, dtype=np.int64)
        if len(partition) != len(uniques):
            raise ValueError("The partition must have one entry per unique")

        n_q = self.max_quality + 1
        counts = np.zeros(4 * 4 * n_q, dtype=np.float64)

        for idx, center_idx in enumerate(partition):
            if center_idx < 0:
                continue
            unique = uniques[idx]
            center = uniques[center_idx]
            # Uniques are only clustered with centers of the same length
            if len(center) != len(unique):
                continue

            observed = encode(unique.sequence).astype(np.int64)
            reference = encode(center.sequence).astype(np.int64)
            quality = np.clip(np.rint(unique.quality), 0, self.max_quality).astype(
                np.int64
            )
            mask = (observed != N_CODE) & (reference != N_CODE)
            flat = (reference[mask] * 4 + observed[mask]) * n_q + quality[mask]
            counts += np.bincount(
                flat, weights=np.full(len(flat), unique.abundance), minlength=len(counts)
            )

        counts = counts.reshape(4, 4, n_q)
        totals = counts.sum(axis=1)
        default = ErrorModel.initialize(self.max_quality).probabilities

        with np.errstate(invalid="ignore", divide="ignore"):
            blended = (counts + prior_weight * default) / (
                totals[:, None, :] + prior_weight
            )
        table = np.where(totals[:, None, :] > 0, blended, default)

        logger.debug("Fitted error model from %s base calls", int(totals.sum()))
        return ErrorModel(table, observations=totals)

    def transition_probability(
        self, observed_base: str | int, quality: int, reference_base: str | int
    ) -> float:
        """Return the probability of reading `reference_base` as `observed_base`.

        :param observed_base: the base in the read (letter or code)
        :param quality: the quality score of the observed base, clamped to the table
        :param reference_base: the base of the true sequence (letter or code)
        :returns: the transition probability
        """
        obs = base_index(observed_base) if isinstance(observed_base, str) else observed_base
        ref = (
            base_index(reference_base)
            if isinstance(reference_base, str)
            else reference_base
        )
        if obs == N_CODE or ref == N_CODE:
            return 1.0
        q = int(np.clip(quality, 0, self.max_quality))
        return float(self.probabilities[ref, obs, q])

    def log_table(self) -> npt.NDArray[np.float64]:
        """Return the log probabilities extended with N as a fifth base.

        The returned array has shape (5, 5, max_quality + 1) and is indexed by
        [reference base, observed base, quality]. Any transition to or from N
        has a log probability of zero.
        """
        if self._log_table is None:
            table = np.zeros((5, 5, self.max_quality + 1), dtype=np.float64)
            table[:4, :4, :] = np.log(self.probabilities)
            table.setflags(write=False)
            self._log_table = table
        return self._log_table

    def error_rates(self) -> npt.NDArray[np.float64]:
        """Return the total substitution probability per reference base and quality."""
        diagonal = np.stack([self.probabilities[b, b, :] for b in range(4)])
        return 1.0 - diagonal

    def to_dataframe(self) -> pd.DataFrame:
        """Return the model as a transitions x quality score data frame."""
        n_q = self.max_quality + 1
        return pd.DataFrame(
            self.probabilities.reshape(16, n_q),
            index=pd.Index(transition_labels(), name="transition"),
            columns=[str(q) for q in range(n_q)],
        )

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> Self:
        """Create a model from a data frame produced by :meth:`to_dataframe`."""
        df = df.loc[transition_labels()]
        table = df.to_numpy(dtype=np.float64).reshape(4, 4, df.shape[1])
        return cls(table)

    def write_tsv(self, path: PathType) -> None:
        """Write the model to a tab separated file."""
        self.to_dataframe().to_csv(path, sep="\t")

    @classmethod
    def read_tsv(cls, path: PathType) -> Self:
        """Read a model written by :meth:`write_tsv`."""
        df = pd.read_csv(path, sep="\t", index_col="transition")
        return cls.from_dataframe(df)

    def __repr__(self) -> str:
        return f"ErrorModel(max_quality={self.max_quality}, observations={int(self.observations.sum())})"
