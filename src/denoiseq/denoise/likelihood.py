"""Log-likelihood scoring of uniques against cluster centers.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
import math

import numpy as np
import numpy.typing as npt
from joblib import delayed
from scipy.stats import poisson

from denoiseq.dereplicate import DereplicatedReads
from denoiseq.encoding import encode_many
from denoiseq.utils import batched, get_joblib_executor

logger = logging.getLogger(__name__)

# Upper bound on the number of (unique, center, position) terms scored at once
CHUNK_ELEMENTS = 2**24

# Log likelihoods closer than this are considered tied
TIE_TOLERANCE = 1e-9


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class BestCenters:
    """The best scoring center of each unique.

    :ivar center: the index of the best center, -1 if no center is a candidate
    :ivar log_likelihood: the log likelihood of the unique given that center
    :ivar self_log_likelihood: the log likelihood of an error-free copy of the unique
    """

    center: npt.NDArray[np.int64]
    log_likelihood: npt.NDArray[np.float64]
    self_log_likelihood: npt.NDArray[np.float64]


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class _LengthGroup:
    unique_idx: npt.NDArray[np.int64]
    codes: npt.NDArray[np.uint8]
    qualities: npt.NDArray[np.int64]


def _length_groups(
    dereplicated: DereplicatedReads, max_quality: int
) -> dict[int, _LengthGroup]:
    by_length: dict[int, list[int]] = {}
    for idx, unique in enumerate(dereplicated):
        by_length.setdefault(len(unique), []).append(idx)

    groups = {}
    for length, indices in by_length.items():
        uniques = [dereplicated[i] for i in indices]
        qualities = (
            np.stack([u.quality for u in uniques])
            if length > 0
            else np.zeros((len(uniques), 0))
        )
        groups[length] = _LengthGroup(
            unique_idx=np.array(indices, dtype=np.int64),
            codes=encode_many([u.sequence for u in uniques]).reshape(len(uniques), length),
            qualities=np.clip(np.rint(qualities), 0, max_quality).astype(np.int64),
        )
    return groups


def _score_chunk(
    unique_idx: npt.NDArray[np.int64],
    codes: npt.NDArray[np.uint8],
    qualities: npt.NDArray[np.int64],
    is_center: npt.NDArray[np.bool_],
    center_idx: npt.NDArray[np.int64],
    center_codes: npt.NDArray[np.uint8],
    center_abundance: npt.NDArray[np.int64],
    log_table: npt.NDArray[np.float64],
) -> tuple[npt.NDArray[np.int64], npt.NDArray[np.float64]]:
    """Find the best center for a chunk of equal length uniques.

    Ties are broken by the larger cluster abundance and then by the center rank.
    A unique that is itself a center may only be explained by a center of higher
    rank (a lower index).
    """
    n = len(unique_idx)
    best_center = np.full(n, -1, dtype=np.int64)
    best_loglik = np.full(n, -np.inf, dtype=np.float64)
    if len(center_idx) == 0:
        return best_center, best_loglik

    # (n, m, L) -> (n, m)
    loglik = log_table[
        center_codes[None, :, :], codes[:, None, :], qualities[:, None, :]
    ].sum(axis=2)

    not_allowed = is_center[:, None] & (center_idx[None, :] >= unique_idx[:, None])
    loglik[not_allowed] = -np.inf

    for row in range(n):
        scores = loglik[row]
        top = scores.max()
        if not np.isfinite(top):
            continue
        tied = np.flatnonzero(scores >= top - TIE_TOLERANCE)
        order = np.lexsort((center_idx[tied], -center_abundance[tied]))
        pick = tied[order[0]]
        best_center[row] = center_idx[pick]
        best_loglik[row] = scores[pick]

    return best_center, best_loglik


def score_best_centers(
    dereplicated: DereplicatedReads,
    centers: npt.NDArray[np.int64],
    center_abundance: npt.NDArray[np.int64],
    log_table: npt.NDArray[np.float64],
    n_jobs: int = 1,
) -> BestCenters:
    """Score every unique against every center of the same length.

    The log likelihood of unique `i` given center `j` is the sum over all
    positions of `log P(observed base | center base, quality)`. Scoring only
    reads the current centers and error model, so chunks of uniques are
    scored independently (in worker threads when `n_jobs` > 1) and the results
    are joined before any assignment is changed.

    :param dereplicated: the uniques to score
    :param centers: the indices of the current centers, in rank order
    :param center_abundance: the abundance of each center's cluster
    :param log_table: the extended log table of the error model
    :param n_jobs: the number of worker threads
    :returns: the best center of each unique
    """
    n = len(dereplicated)
    max_quality = log_table.shape[2] - 1
    best_center = np.full(n, -1, dtype=np.int64)
    best_loglik = np.full(n, -np.inf, dtype=np.float64)
    self_loglik = np.zeros(n, dtype=np.float64)

    center_set = np.zeros(n, dtype=np.bool_)
    center_set[centers] = True
    abundance_by_center = dict(zip(centers.tolist(), center_abundance.tolist()))

    tasks = []
    for length, group in _length_groups(dereplicated, max_quality).items():
        self_loglik[group.unique_idx] = log_table[
            group.codes, group.codes, group.qualities
        ].sum(axis=1)

        group_centers = group.unique_idx[center_set[group.unique_idx]]
        if len(group_centers) == 0:
            continue

        position = {u: k for k, u in enumerate(group.unique_idx.tolist())}
        center_rows = np.array([position[c] for c in group_centers.tolist()])
        center_codes = group.codes[center_rows]
        group_abundance = np.array(
            [abundance_by_center[c] for c in group_centers.tolist()], dtype=np.int64
        )

        chunk_size = max(1, CHUNK_ELEMENTS // max(1, len(group_centers) * length))
        for rows in batched(range(len(group.unique_idx)), chunk_size):
            rows_arr = np.array(rows, dtype=np.int64)
            idx = group.unique_idx[rows_arr]
            tasks.append(
                (
                    idx,
                    (
                        idx,
                        group.codes[rows_arr],
                        group.qualities[rows_arr],
                        center_set[idx],
                        group_centers,
                        center_codes,
                        group_abundance,
                        log_table,
                    ),
                )
            )

    if n_jobs > 1 and len(tasks) > 1:
        with get_joblib_executor(nbr_cores=n_jobs, prefer="threads") as parallel:
            results = parallel(delayed(_score_chunk)(*args) for _, args in tasks)
    else:
        results = [_score_chunk(*args) for _, args in tasks]

    for (idx, _), (chunk_center, chunk_loglik) in zip(tasks, results):
        best_center[idx] = chunk_center
        best_loglik[idx] = chunk_loglik

    return BestCenters(
        center=best_center,
        log_likelihood=best_loglik,
        self_log_likelihood=self_loglik,
    )


def abundance_log_pvalue(abundance: int, expected: float) -> float:
    """Return the log p-value of seeing `abundance` copies given `expected` copies.

    The number of error copies is Poisson distributed. Since a unique was
    observed at least once the p-value is conditioned on one or more copies:
    `P(X >= abundance | X >= 1)`. A unique seen once is never significant.

    :param abundance: the observed abundance of the unique
    :param expected: the expected number of error copies
    :returns: the natural log of the p-value
    """
    if abundance <= 1:
        return 0.0
    if expected <= 0.0:
        return -math.inf
    log_tail = float(poisson.logsf(abundance - 1, expected))
    log_nonzero = math.log(-math.expm1(-expected))
    log_pvalue = log_tail - log_nonzero
    if math.isnan(log_pvalue):
        return -math.inf
    return min(0.0, log_pvalue)
