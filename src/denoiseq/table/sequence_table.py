"""Sample by sequence abundance table.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Iterator, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
import polars as pl
from scipy.sparse import csr_matrix

from denoiseq.merge import MergedRead, merged_abundances
from denoiseq.reads.io import write_fasta
from denoiseq.types import PathType

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

logger = logging.getLogger(__name__)

SAMPLE_COLUMN = "sample"

# Columns of the read summary, in processing order
STAGES = (
    "input",
    "filtered",
    "denoised_forward",
    "denoised_reverse",
    "merged",
    "nonchimeric",
)


class SequenceTable:
    """Sparse abundance counts of distinct sequences across samples.

    Rows are samples in the order they were given, columns are sequences
    ordered by decreasing total abundance (ties by sequence).

    The table can carry the read counts of the upstream stages of each sample
    (see :meth:`with_stage_counts`), which :meth:`read_summary` combines with
    the counts left in the table.
    """

    def __init__(
        self,
        samples: Sequence[str],
        sequences: Sequence[str],
        counts: csr_matrix,
        stage_counts: Optional[pd.DataFrame] = None,
    ) -> None:
        """Create a sequence table.

        :param samples: the sample ids, one per row
        :param sequences: the sequences, one per column
        :param counts: the integer abundance matrix
        :param stage_counts: per sample read counts of the upstream stages
        :raises ValueError: if the matrix does not match the labels
        """
        counts = csr_matrix(counts, dtype=np.int64)
        if counts.shape != (len(samples), len(sequences)):
            raise ValueError(
                f"Count matrix of shape {counts.shape} does not match "
                f"{len(samples)} samples and {len(sequences)} sequences"
            )
        if len(set(samples)) != len(samples):
            raise ValueError("Sample ids must be unique")
        if len(set(sequences)) != len(sequences):
            raise ValueError("Sequences must be unique")

        self.samples = list(samples)
        self.sequences = list(sequences)
        self.counts = counts
        if stage_counts is None:
            stage_counts = pd.DataFrame(
                index=pd.Index(self.samples, name=SAMPLE_COLUMN), dtype="Int64"
            )
        self.stage_counts = stage_counts
        self._sample_index = {s: i for i, s in enumerate(self.samples)}
        self._sequence_index = {s: i for i, s in enumerate(self.sequences)}

    @property
    def shape(self) -> tuple[int, int]:
        """Return the number of samples and sequences."""
        return self.counts.shape

    def __repr__(self) -> str:
        return f"SequenceTable(samples={len(self.samples)}, sequences={len(self.sequences)})"

    @classmethod
    def from_abundances(
        cls, abundances: Mapping[str, Mapping[str, int]]
    ) -> Self:
        """Create a table from the sequence abundances of each sample.

        Zero abundances are not stored and sequences without any counts are
        left out.

        :param abundances: a mapping of sample id to a mapping of sequence to abundance
        :returns: a new table
        """
        totals: Counter[str] = Counter()
        for sample_abundances in abundances.values():
            for seq, count in sample_abundances.items():
                if count:
                    totals[seq] += count
        sequences = sorted(totals, key=lambda s: (-totals[s], s))
        column = {s: i for i, s in enumerate(sequences)}

        rows, cols, data = [], [], []
        for row, sample_abundances in enumerate(abundances.values()):
            for seq, count in sample_abundances.items():
                if count:
                    rows.append(row)
                    cols.append(column[seq])
                    data.append(count)

        counts = csr_matrix(
            (
                np.array(data, dtype=np.int64),
                (np.array(rows, dtype=np.int64), np.array(cols, dtype=np.int64)),
            ),
            shape=(len(abundances), len(sequences)),
        )
        return cls(list(abundances.keys()), sequences, counts)

    def abundance(self, sample: str, sequence: str) -> int:
        """Return the abundance of a sequence in a sample, 0 if it is absent."""
        row = self._sample_index[sample]
        col = self._sequence_index.get(sequence)
        if col is None:
            return 0
        return int(self.counts[row, col])

    def sample_totals(self) -> pd.Series:
        """Return the total abundance of each sample."""
        totals = np.asarray(self.counts.sum(axis=1)).ravel().astype(np.int64)
        return pd.Series(totals, index=pd.Index(self.samples, name=SAMPLE_COLUMN))

    def sequence_totals(self) -> pd.Series:
        """Return the total abundance of each sequence."""
        totals = np.asarray(self.counts.sum(axis=0)).ravel().astype(np.int64)
        return pd.Series(totals, index=pd.Index(self.sequences, name="sequence"))

    def sample_counts(self, sample: str) -> dict[str, int]:
        """Return the non-zero abundances of one sample."""
        row = self.counts.getrow(self._sample_index[sample])
        return {
            self.sequences[col]: int(count)
            for col, count in zip(row.indices, row.data)
            if count
        }

    def iter_sequences(self) -> Iterator[tuple[str, dict[str, int]]]:
        """Iterate over the sequences and their non-zero abundance per sample.

        Sequences are visited in column order. This is the hook for
        annotating the sequences, e.g. with a taxonomy, once the table is final.
        """
        by_column = self.counts.tocsc()
        for col, sequence in enumerate(self.sequences):
            start, end = by_column.indptr[col], by_column.indptr[col + 1]
            rows = by_column.indices[start:end]
            data = by_column.data[start:end]
            yield sequence, {
                self.samples[r]: int(c) for r, c in zip(rows, data) if c
            }

    def iter_samples(self) -> Iterator[tuple[str, dict[str, int]]]:
        """Iterate over the samples and their non-zero sequence abundances."""
        for sample in self.samples:
            yield sample, self.sample_counts(sample)

    def with_counts(self, counts: csr_matrix) -> Self:
        """Return a table with the same labels and new counts.

        Columns that are left without any counts are dropped.
        """
        counts = csr_matrix(counts, dtype=np.int64)
        counts.eliminate_zeros()
        keep = np.flatnonzero(np.asarray(counts.sum(axis=0)).ravel() > 0)
        return type(self)(
            self.samples,
            [self.sequences[i] for i in keep],
            counts[:, keep],
            stage_counts=self.stage_counts,
        )

    def drop_sequences(self, sequences: Iterable[str]) -> Self:
        """Return a table without the given sequences, counts are not redistributed."""
        drop = set(sequences)
        keep = [i for i, s in enumerate(self.sequences) if s not in drop]
        return type(self)(
            self.samples,
            [self.sequences[i] for i in keep],
            self.counts[:, keep],
            stage_counts=self.stage_counts,
        )

    def with_stage_counts(self, stage_counts: pd.DataFrame) -> Self:
        """Return the table with upstream read counts attached.

        :param stage_counts: a data frame indexed by sample with any of the
            columns `input`, `filtered`, `denoised_forward`, `denoised_reverse`
            and `merged`
        :returns: a new table sharing the counts of this one
        :raises ValueError: if unknown columns are given
        """
        unknown = set(stage_counts.columns) - set(STAGES[:-1])
        if unknown:
            raise ValueError(f"Unknown read count columns: {sorted(unknown)}")
        merged = stage_counts.astype("Int64").combine_first(self.stage_counts)
        return type(self)(
            self.samples, self.sequences, self.counts, stage_counts=merged
        )

    def read_summary(self) -> pd.DataFrame:
        """Return the number of reads of each sample left after every stage.

        The `nonchimeric` column always holds the totals of this table, the
        other columns are filled from the attached upstream counts and are
        missing where no counts were attached.
        """
        summary = self.stage_counts.reindex(
            index=pd.Index(self.samples, name=SAMPLE_COLUMN), columns=list(STAGES[:-1])
        ).astype("Int64")
        summary["nonchimeric"] = self.sample_totals().astype("Int64")
        return summary

    def to_dataframe(self) -> pd.DataFrame:
        """Return the table as a dense samples x sequences data frame."""
        return pd.DataFrame(
            self.counts.toarray(),
            index=pd.Index(self.samples, name=SAMPLE_COLUMN),
            columns=self.sequences,
        )

    def to_polars(self) -> pl.DataFrame:
        """Return the table as a dense polars data frame with a sample column."""
        dense = self.counts.toarray()
        columns = {SAMPLE_COLUMN: self.samples}
        for col, sequence in enumerate(self.sequences):
            columns[sequence] = dense[:, col]
        return pl.DataFrame(columns, schema_overrides={SAMPLE_COLUMN: pl.Utf8})

    def write_tsv(self, path: PathType) -> None:
        """Write the table as tab separated text, samples as rows and sequences as columns."""
        self.to_polars().write_csv(path, separator="\t")

    @classmethod
    def read_tsv(cls, path: PathType) -> Self:
        """Read a table written by :meth:`write_tsv`."""
        df = pl.read_csv(path, separator="\t", schema_overrides={SAMPLE_COLUMN: pl.Utf8})
        samples = df.get_column(SAMPLE_COLUMN).to_list()
        sequences = [c for c in df.columns if c != SAMPLE_COLUMN]
        dense = (
            df.select(sequences).to_numpy().astype(np.int64)
            if sequences
            else np.zeros((len(samples), 0), dtype=np.int64)
        )
        return cls(samples, sequences, csr_matrix(dense))

    def fasta_records(self, prefix: str = "ASV") -> dict[str, str]:
        """Return FASTA records of the sequences, named by rank and total abundance."""
        totals = self.sequence_totals()
        return {
            f"{prefix}_{rank};size={int(totals[seq])}": seq
            for rank, seq in enumerate(self.sequences, start=1)
        }

    def write_fasta(self, path: PathType, prefix: str = "ASV") -> None:
        """Write the sequences of the table to a FASTA file."""
        write_fasta(self.fasta_records(prefix), path)


def build_table(samples: Mapping[str, Sequence[MergedRead]]) -> SequenceTable:
    """Aggregate the merged reads of several samples into a sequence table.

    Only accepted merges are counted. The row total of each sample equals the
    summed abundance of its accepted merges and is also recorded as the
    `merged` read count of the sample.

    :param samples: a mapping of sample id to the merged reads of the sample
    :returns: the sequence table
    """
    abundances = {
        sample_id: merged_abundances(merged) for sample_id, merged in samples.items()
    }
    table = SequenceTable.from_abundances(abundances)
    table = table.with_stage_counts(
        pd.DataFrame(
            {"merged": table.sample_totals()},
            index=pd.Index(table.samples, name=SAMPLE_COLUMN),
        )
    )
    logger.debug(
        "Built sequence table of %s samples and %s sequences",
        len(table.samples),
        len(table.sequences),
    )
    return table

