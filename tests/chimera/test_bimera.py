"""Tests for the detection and removal of bimeras.

Copyright © 2025 Pixelgen Technologies AB.
"""

import pytest
from synthetic import AMPLICON_A, AMPLICON_B, CHIMERA_AB

from denoiseq.chimera import (
    ChimeraReport,
    filter_chimeras,
    find_bimeras,
    is_bimera,
    sample_bimeras,
)
from denoiseq.config import DenoiseConfig
from denoiseq.table import SequenceTable


def test_exact_join_is_a_bimera():
    assert is_bimera(CHIMERA_AB, [AMPLICON_A, AMPLICON_B])


def test_parent_order_does_not_matter():
    assert is_bimera(CHIMERA_AB, [AMPLICON_B, AMPLICON_A])


def test_unrelated_sequence_is_not_a_bimera():
    unrelated = "GGGGCCCCAAAATTTTGGGGCCCCAAAATTTTGGGGCCCC"
    assert not is_bimera(unrelated, [AMPLICON_A, AMPLICON_B])


def test_one_parent_is_not_enough():
    assert not is_bimera(CHIMERA_AB, [AMPLICON_A])


def test_parent_itself_is_not_a_bimera():
    assert not is_bimera(AMPLICON_A, [AMPLICON_A, AMPLICON_B])


def test_mismatch_tolerance():
    noisy = CHIMERA_AB[:5] + ("A" if CHIMERA_AB[5] != "A" else "C") + CHIMERA_AB[6:]
    assert not is_bimera(noisy, [AMPLICON_A, AMPLICON_B], max_mismatch=0)
    assert is_bimera(noisy, [AMPLICON_A, AMPLICON_B], max_mismatch=1)


def test_sample_bimeras_requires_abundant_parents():
    counts = {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 10}
    assert sample_bimeras(counts, chimera_ratio=2.0) == {CHIMERA_AB}
    # B is not 8 times as abundant as the chimera
    assert sample_bimeras(counts, chimera_ratio=8.0) == set()


def _table(abundances):
    return SequenceTable.from_abundances(abundances)


@pytest.fixture(name="chimeric_table")
def chimeric_table_fixture():
    return _table(
        {
            "s1": {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 10},
            "s2": {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 10},
            # Too abundant to be a chimera here
            "s3": {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 50},
        }
    )


def test_find_bimeras_collects_votes(chimeric_table):
    votes = find_bimeras(chimeric_table, DenoiseConfig())

    assert votes.flagged["s1"] == {CHIMERA_AB}
    assert votes.flagged["s3"] == set()
    assert votes.occurrences[CHIMERA_AB] == 3
    assert votes.n_flagged(CHIMERA_AB) == 2


def test_consensus_removes_table_wide(chimeric_table):
    config = DenoiseConfig(chimera_mode="consensus")
    filtered = filter_chimeras(chimeric_table, config)

    assert CHIMERA_AB not in filtered.sequences
    assert filtered.sample_totals().to_dict() == {"s1": 160, "s2": 160, "s3": 160}


def test_consensus_tie_keeps_the_sequence():
    table = _table(
        {
            "s1": {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 10},
            "s2": {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 50},
        }
    )
    filtered = filter_chimeras(table, DenoiseConfig(chimera_mode="consensus"))

    assert CHIMERA_AB in filtered.sequences
    assert filtered.abundance("s1", CHIMERA_AB) == 10


def test_per_sample_removes_only_where_flagged(chimeric_table):
    config = DenoiseConfig(chimera_mode="per-sample")
    filtered = filter_chimeras(chimeric_table, config)

    assert filtered.abundance("s1", CHIMERA_AB) == 0
    assert filtered.abundance("s2", CHIMERA_AB) == 0
    assert filtered.abundance("s3", CHIMERA_AB) == 50
    assert filtered.abundance("s1", AMPLICON_A) == 100


def test_removed_counts_are_not_redistributed(chimeric_table):
    filtered = filter_chimeras(chimeric_table, DenoiseConfig())
    before = chimeric_table.sequence_totals()
    after = filtered.sequence_totals()

    for sequence in filtered.sequences:
        assert after[sequence] == before[sequence]


def test_parallel_votes_match_serial(chimeric_table):
    config = DenoiseConfig()
    serial = find_bimeras(chimeric_table, config)
    parallel = find_bimeras(chimeric_table, config, n_jobs=2)

    assert serial == parallel


def test_chimera_report(chimeric_table):
    filtered = filter_chimeras(chimeric_table, DenoiseConfig())
    report = ChimeraReport.from_tables("s1", chimeric_table, filtered)

    assert report.input_reads == 170
    assert report.output_reads == 160
    assert report.input_sequences == 3
    assert report.output_sequences == 2
    assert report.fraction_chimeric == pytest.approx(10 / 170)
