"""Explicit state of the iterative denoising engine.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses

import numpy as np
import numpy.typing as npt

from denoiseq.dereplicate import DereplicatedReads
from denoiseq.error_model import ErrorModel

UNASSIGNED = -1


@dataclasses.dataclass(frozen=True, slots=True)
class Cluster:
    """A hypothesized true sequence and the uniques assigned to it.

    :ivar center: the index of the unique that is the center of the cluster
    :ivar sequence: the sequence of the center
    :ivar members: the indices of all uniques in the cluster, the center included
    :ivar abundance: the summed abundance of all members
    """

    center: int
    sequence: str
    members: tuple[int, ...]
    abundance: int


@dataclasses.dataclass(frozen=True, slots=True, eq=False)
class EngineState:
    """A partition of the uniques together with the error model it was scored with.

    The uniques of the :class:`DereplicatedReads` are ranked by their index
    (decreasing abundance, ties by sequence). The partition is stored as one
    entry per unique: the index of the center of its cluster, the index of the
    unique itself for a center, or `UNASSIGNED`.

    :ivar assignment: the center index of each unique
    :ivar error_model: the error model used for the next scoring pass
    :ivar iteration: the number of completed passes
    :ivar changed: whether the last pass changed the partition
    :ivar founded: the number of clusters founded in the last pass
    :ivar dissolved: the number of clusters absorbed by other clusters in the last pass
    """

    assignment: npt.NDArray[np.int64]
    error_model: ErrorModel
    iteration: int = 0
    changed: bool = True
    founded: int = 0
    dissolved: int = 0

    @property
    def centers(self) -> npt.NDArray[np.int64]:
        """Return the indices of the current cluster centers in rank order."""
        return np.flatnonzero(self.assignment == np.arange(len(self.assignment)))

    def is_center(self) -> npt.NDArray[np.bool_]:
        """Return a boolean mask of the uniques that are cluster centers."""
        return self.assignment == np.arange(len(self.assignment))

    def cluster_abundances(
        self, dereplicated: DereplicatedReads
    ) -> npt.NDArray[np.int64]:
        """Return the abundance of every cluster, aligned with :attr:`centers`."""
        totals = np.zeros(len(self.assignment), dtype=np.int64)
        assigned = self.assignment != UNASSIGNED
        np.add.at(
            totals, self.assignment[assigned], dereplicated.abundances[assigned]
        )
        return totals[self.centers]

    def clusters(self, dereplicated: DereplicatedReads) -> list[Cluster]:
        """Return the clusters of the partition in rank order of their centers."""
        out = []
        for center in self.centers:
            members = np.flatnonzero(self.assignment == center)
            out.append(
                Cluster(
                    center=int(center),
                    sequence=dereplicated[center].sequence,
                    members=tuple(int(m) for m in members),
                    abundance=int(dereplicated.abundances[members].sum()),
                )
            )
        return out


def initial_state(
    dereplicated: DereplicatedReads,
    error_model: ErrorModel,
    min_cluster_abundance: int,
) -> EngineState:
    """Create the starting partition of the engine.

    Every unique with an abundance above `min_cluster_abundance` is the center
    of its own cluster, all other uniques are unassigned. When no unique is
    abundant enough the most abundant one seeds the first cluster.

    :param dereplicated: the uniques to partition
    :param error_model: the error model for the first pass
    :param min_cluster_abundance: the seeding abundance threshold
    :returns: the initial engine state
    """
    n = len(dereplicated)
    assignment = np.full(n, UNASSIGNED, dtype=np.int64)
    seeds = np.flatnonzero(dereplicated.abundances > min_cluster_abundance)
    if len(seeds) == 0 and n > 0:
        seeds = np.array([0])
    assignment[seeds] = seeds
    return EngineState(assignment=assignment, error_model=error_model)
