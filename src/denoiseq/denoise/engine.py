"""Infer true sequence variants from dereplicated reads.

The engine partitions the uniques of a sample into clusters. Each pass scores
every unique against the current cluster centers under the current error
model, reassigns all uniques at once, and refits the error model from the new
partition. The loop stops when a pass leaves the partition unchanged or when
the iteration cap is reached.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from typing import Optional

import numpy as np
import numpy.typing as npt

from denoiseq.config import DenoiseConfig
from denoiseq.dereplicate import DereplicatedReads, UniqueSequence, dereplicate
from denoiseq.denoise.likelihood import abundance_log_pvalue, score_best_centers
from denoiseq.denoise.state import UNASSIGNED, EngineState, initial_state
from denoiseq.error_model import ErrorModel
from denoiseq.reads import Sample

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class DenoisedVariant:
    """An inferred true sequence.

    :ivar sequence: the sequence of the cluster center
    :ivar abundance: the number of reads assigned to the cluster
    :ivar n_uniques: the number of uniques in the cluster
    :ivar quality: the abundance weighted mean quality profile of the cluster
    :ivar center: the index of the center among the dereplicated uniques
    """

    sequence: str
    abundance: int
    n_uniques: int
    quality: npt.NDArray[np.float64]
    center: int


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class DenoiseResult:
    """The outcome of a denoising run.

    :ivar variants: the variants ordered by decreasing abundance
    :ivar converged: False if the iteration cap was reached before the partition was stable
    :ivar iterations: the number of passes that were run
    :ivar error_model: the error model of the final partition
    :ivar unique_map: for each unique, the index of its variant
    :ivar dereplicated: the uniques that were denoised
    """

    variants: tuple[DenoisedVariant, ...]
    converged: bool
    iterations: int
    error_model: ErrorModel
    unique_map: npt.NDArray[np.int64]
    dereplicated: DereplicatedReads

    def __len__(self) -> int:
        return len(self.variants)

    @property
    def n_reads(self) -> int:
        """Return the number of reads assigned to a variant."""
        return int(sum(v.abundance for v in self.variants))

    def read_map(self) -> npt.NDArray[np.int64]:
        """Return, for each input read, the index of the variant it was assigned to."""
        return self.unique_map[self.dereplicated.read_map]

    def sequences(self) -> list[str]:
        """Return the variant sequences."""
        return [v.sequence for v in self.variants]


def step(
    state: EngineState,
    dereplicated: DereplicatedReads,
    config: DenoiseConfig,
    refit: bool = True,
    n_jobs: int = 1,
) -> EngineState:
    """Run one reassignment pass and return the next state.

    Every unique is compared to its best center (maximum likelihood, ties to
    the larger cluster). The expected number of error copies of the unique
    from that center is the likelihood ratio against an error-free copy
    times the abundance of the rest of the cluster. If the abundance p-value
    falls below the significance threshold, or no center of the same length
    exists, the unique founds a new cluster. A center that is explained by a
    center of higher rank is dissolved into it.

    The input state is not modified.

    :param state: the current partition and error model
    :param dereplicated: the uniques being partitioned
    :param config: the run configuration
    :param refit: refit the error model when the partition changed
    :param n_jobs: the number of worker threads used for scoring
    :returns: the state after the pass
    """
    old = state.assignment
    centers = state.centers
    is_center = state.is_center()
    cluster_abundance = state.cluster_abundances(dereplicated)
    abundance_by_center = dict(zip(centers.tolist(), cluster_abundance.tolist()))

    best = score_best_centers(
        dereplicated,
        centers,
        cluster_abundance,
        state.error_model.log_table(),
        n_jobs=n_jobs,
    )

    log_threshold = math.log(config.significance_threshold)
    abundances = dereplicated.abundances
    proposed = old.copy()
    founded = 0
    dissolved = 0

    for idx in range(len(dereplicated)):
        center = int(best.center[idx])
        abundance = int(abundances[idx])

        if center == UNASSIGNED:
            if not is_center[idx]:
                proposed[idx] = idx
                founded += 1
            continue

        background = abundance_by_center[center]
        if old[idx] == center:
            background -= abundance
        ratio = min(0.0, best.log_likelihood[idx] - best.self_log_likelihood[idx])
        expected = math.exp(ratio) * background
        significant = abundance_log_pvalue(abundance, expected) < log_threshold

        if is_center[idx]:
            if not significant:
                proposed[idx] = center
                dissolved += 1
        elif significant:
            proposed[idx] = idx
            founded += 1
        else:
            proposed[idx] = center

    assignment = _resolve_absorbed(proposed)
    changed = bool(np.any(assignment != old))

    model = state.error_model
    if changed and refit:
        model = model.fit(
            dereplicated.uniques, assignment, prior_weight=config.error_prior_weight
        )

    logger.debug(
        "Pass %s: %s clusters, %s founded, %s dissolved",
        state.iteration + 1,
        int(np.sum(assignment == np.arange(len(assignment)))),
        founded,
        dissolved,
    )
    return EngineState(
        assignment=assignment,
        error_model=model,
        iteration=state.iteration + 1,
        changed=changed,
        founded=founded,
        dissolved=dissolved,
    )


def _resolve_absorbed(proposed: npt.NDArray[np.int64]) -> npt.NDArray[np.int64]:
    """Point every unique at a surviving center.

    A dissolved center may itself have been the target of other uniques in the
    same pass. Dissolved centers always point at a center of higher rank, so
    following the chain terminates at a center that points at itself.
    """
    resolved = proposed.copy()
    for idx in range(len(resolved)):
        target = resolved[idx]
        while target != UNASSIGNED and resolved[target] != target:
            target = resolved[target]
        resolved[idx] = target
    return resolved


def _collect_variants(
    state: EngineState, dereplicated: DereplicatedReads
) -> tuple[tuple[DenoisedVariant, ...], npt.NDArray[np.int64]]:
    variants = []
    for cluster in state.clusters(dereplicated):
        members = list(cluster.members)
        weights = dereplicated.abundances[members].astype(np.float64)
        quality = np.average(
            np.stack([dereplicated[m].quality for m in members]),
            axis=0,
            weights=weights,
        )
        variants.append(
            DenoisedVariant(
                sequence=cluster.sequence,
                abundance=cluster.abundance,
                n_uniques=len(members),
                quality=quality,
                center=cluster.center,
            )
        )

    variants.sort(key=lambda v: (-v.abundance, v.sequence))
    variant_by_center = {v.center: k for k, v in enumerate(variants)}
    unique_map = np.array(
        [variant_by_center.get(int(c), UNASSIGNED) for c in state.assignment],
        dtype=np.int64,
    )
    return tuple(variants), unique_map


def denoise(
    dereplicated: DereplicatedReads,
    config: DenoiseConfig,
    error_model: Optional[ErrorModel] = None,
    refit: bool = True,
    n_jobs: int = 1,
) -> DenoiseResult:
    """Partition dereplicated reads into denoised sequence variants.

    :param dereplicated: the uniques of one read direction of one sample
    :param config: the run configuration
    :param error_model: the starting error model, the Phred default if not given
    :param refit: refit the error model from the partition after every changing pass
    :param n_jobs: the number of worker threads used for scoring
    :returns: the variants, the convergence flag and the final error model
    """
    model = error_model or ErrorModel.initialize(config.max_quality)

    if len(dereplicated) == 0:
        return DenoiseResult(
            variants=(),
            converged=True,
            iterations=0,
            error_model=model,
            unique_map=np.zeros(0, dtype=np.int64),
            dereplicated=dereplicated,
        )

    state = initial_state(dereplicated, model, config.min_cluster_abundance)
    converged = False
    while state.iteration < config.max_iterations:
        state = step(state, dereplicated, config, refit=refit, n_jobs=n_jobs)
        if not state.changed:
            converged = True
            break

    if not converged:
        logger.warning(
            "Denoising did not converge within %s iterations", config.max_iterations
        )

    model = state.error_model
    if refit:
        # Fit to the final partition, also when no pass changed it
        model = model.fit(
            dereplicated.uniques,
            state.assignment,
            prior_weight=config.error_prior_weight,
        )

    variants, unique_map = _collect_variants(state, dereplicated)
    logger.debug(
        "Denoised %s uniques into %s variants in %s iterations",
        len(dereplicated),
        len(variants),
        state.iteration,
    )
    return DenoiseResult(
        variants=variants,
        converged=converged,
        iterations=state.iteration,
        error_model=model,
        unique_map=unique_map,
        dereplicated=dereplicated,
    )


def denoise_sample(
    sample: Sample,
    config: DenoiseConfig,
    error_models: tuple[Optional[ErrorModel], Optional[ErrorModel]] = (None, None),
    n_jobs: int = 1,
) -> tuple[DenoiseResult, DenoiseResult]:
    """Dereplicate and denoise the forward and reverse reads of a sample.

    When error models are given they are used as is, otherwise each direction
    starts from the Phred default and is refitted while denoising.

    :param sample: the sample to denoise
    :param config: the run configuration
    :param error_models: optional fixed error models for the forward and reverse reads
    :param n_jobs: the number of worker threads used for scoring
    :returns: the forward and reverse results
    """
    results = []
    for reads, model in zip((sample.forward, sample.reverse), error_models):
        results.append(
            denoise(
                dereplicate(reads),
                config,
                error_model=model,
                refit=model is None,
                n_jobs=n_jobs,
            )
        )
    forward, reverse = results
    return forward, reverse


def learn_errors(
    dereplicated: list[DereplicatedReads],
    config: DenoiseConfig,
    n_jobs: int = 1,
) -> DenoiseResult:
    """Learn one error model from the pooled reads of several samples.

    The uniques of all samples are pooled (identical sequences are combined
    and their quality profiles averaged by abundance) and denoised with
    refitting enabled. The error model of the result is the learned model.

    :param dereplicated: the dereplicated reads of each sample
    :param config: the run configuration
    :param n_jobs: the number of worker threads used for scoring
    :returns: the denoising result of the pooled uniques
    """
    return denoise(pool_uniques(dereplicated), config, refit=True, n_jobs=n_jobs)


def pool_uniques(dereplicated: list[DereplicatedReads]) -> DereplicatedReads:
    """Combine the uniques of several samples into one set of uniques."""
    pooled: dict[str, tuple[int, npt.NDArray[np.float64]]] = {}
    for derep in dereplicated:
        for unique in derep:
            abundance, quality_sum = pooled.get(
                unique.sequence, (0, np.zeros(len(unique), dtype=np.float64))
            )
            pooled[unique.sequence] = (
                abundance + unique.abundance,
                quality_sum + unique.quality * unique.abundance,
            )

    ordered = sorted(pooled.items(), key=lambda item: (-item[1][0], item[0]))
    uniques = tuple(
        UniqueSequence(sequence, abundance, quality_sum / abundance)
        for sequence, (abundance, quality_sum) in ordered
    )
    read_map = np.repeat(
        np.arange(len(uniques), dtype=np.int64), [u.abundance for u in uniques]
    )
    return DereplicatedReads(uniques=uniques, read_map=read_map)
