"""Tests for the denoising engine.

Copyright © 2025 Pixelgen Technologies AB.
"""

import numpy as np
import pytest
from synthetic import AMPLICON_A, AMPLICON_B, make_reads, make_sample

from denoiseq.config import DenoiseConfig
from denoiseq.denoise import (
    denoise,
    denoise_sample,
    initial_state,
    learn_errors,
    pool_uniques,
    step,
)
from denoiseq.denoise import likelihood as likelihood_module
from denoiseq.dereplicate import DereplicatedReads, dereplicate
from denoiseq.error_model import ErrorModel


def _example_reads(quality):
    return make_reads("AAAACCCC", 100, quality) + make_reads("AAAAGCCC", 5, quality)


def test_identical_reads_give_one_cluster_in_one_iteration(config):
    result = denoise(dereplicate(make_reads(AMPLICON_A, 50)), config)

    assert result.converged
    assert result.iterations == 1
    assert len(result) == 1
    assert result.variants[0].sequence == AMPLICON_A
    assert result.variants[0].abundance == 50


def test_high_quality_substitution_is_kept_apart(config):
    result = denoise(dereplicate(_example_reads(40)), config)

    assert result.converged
    assert [v.sequence for v in result.variants] == ["AAAACCCC", "AAAAGCCC"]
    assert [v.abundance for v in result.variants] == [100, 5]


def test_default_threshold_absorbs_a_rare_high_quality_substitution():
    result = denoise(dereplicate(_example_reads(40)), DenoiseConfig())

    assert result.converged
    assert [(v.sequence, v.abundance) for v in result.variants] == [("AAAACCCC", 105)]


def test_low_quality_substitution_is_absorbed(config):
    result = denoise(dereplicate(_example_reads(2)), config)

    assert result.converged
    assert len(result) == 1
    assert result.variants[0].sequence == "AAAACCCC"
    assert result.variants[0].abundance == 105
    assert result.variants[0].n_uniques == 2


def test_distant_groups_are_separated(config):
    reads = make_reads(AMPLICON_A[:30], 80) + make_reads(AMPLICON_B[:30], 40)
    result = denoise(dereplicate(reads), config)

    assert result.converged
    assert sorted(result.sequences()) == sorted([AMPLICON_A[:30], AMPLICON_B[:30]])
    assert result.n_reads == 120


def test_singleton_errors_are_absorbed(config):
    error = "AAAACCCT"
    reads = make_reads("AAAACCCC", 20) + make_reads(error, 1)
    result = denoise(dereplicate(reads), config)

    assert len(result) == 1
    assert result.variants[0].abundance == 21


def test_denoise_is_deterministic(config):
    reads = (
        make_reads("AAAACCCC", 50)
        + make_reads("AAAAGCCC", 7)
        + make_reads("AAAAGCCG", 3)
        + make_reads("TAAACCCC", 1)
        + make_reads("AAAACC", 4)
    )
    first = denoise(dereplicate(reads), config)
    second = denoise(dereplicate(list(reversed(reads))), config)

    assert first.sequences() == second.sequences()
    assert [v.abundance for v in first.variants] == [
        v.abundance for v in second.variants
    ]
    np.testing.assert_array_equal(first.unique_map, second.unique_map)


def test_different_lengths_are_never_clustered(config):
    reads = make_reads("AAAACCCC", 50) + make_reads("AAAACCC", 2)
    result = denoise(dereplicate(reads), config)

    assert sorted(result.sequences()) == ["AAAACCC", "AAAACCCC"]


def test_read_map_points_at_variants(config):
    reads = _example_reads(40)
    result = denoise(dereplicate(reads), config)
    read_map = result.read_map()

    assert len(read_map) == len(reads)
    for read, variant in zip(reads, read_map):
        assert result.variants[variant].sequence == read.sequence


def test_denoise_empty_input(config):
    result = denoise(dereplicate([]), config)
    assert result.converged
    assert result.iterations == 0
    assert len(result) == 0


def test_iteration_cap_is_reported(caplog):
    config = DenoiseConfig(significance_threshold=1e-6, max_iterations=1)
    result = denoise(dereplicate(_example_reads(2)), config)

    assert not result.converged
    assert result.iterations == 1
    assert "did not converge" in caplog.text


def test_step_does_not_modify_the_input_state(config):
    derep = dereplicate(_example_reads(2))
    state = initial_state(derep, ErrorModel.initialize(41), 1)
    before = state.assignment.copy()

    new_state = step(state, derep, config)

    np.testing.assert_array_equal(state.assignment, before)
    assert new_state.iteration == 1
    assert new_state.changed
    assert new_state.dissolved == 1
    np.testing.assert_array_equal(new_state.assignment, [0, 0])


def test_step_without_refit_keeps_the_model(config):
    derep = dereplicate(_example_reads(2))
    model = ErrorModel.initialize(41)
    state = initial_state(derep, model, 1)

    new_state = step(state, derep, config, refit=False)

    assert new_state.error_model is model


def test_threaded_scoring_gives_the_same_result(config, mocker):
    mocker.patch.object(likelihood_module, "CHUNK_ELEMENTS", 16)
    reads = _example_reads(40) + make_reads("TTTTCCCC", 9) + make_reads("AAAACCCG", 1)
    serial = denoise(dereplicate(reads), config)
    threaded = denoise(dereplicate(reads), config, n_jobs=2)

    assert serial.sequences() == threaded.sequences()
    np.testing.assert_array_equal(serial.unique_map, threaded.unique_map)


def test_denoise_sample(config):
    sample = make_sample("s1", {AMPLICON_A: 30, AMPLICON_B: 20})
    forward, reverse = denoise_sample(sample, config)

    assert len(forward) == 2
    assert len(reverse) == 2
    assert forward.n_reads == reverse.n_reads == 50


def test_denoise_sample_with_fixed_models(config):
    sample = make_sample("s1", {AMPLICON_A: 30})
    model = ErrorModel.initialize(config.max_quality)
    forward, reverse = denoise_sample(sample, config, error_models=(model, model))

    assert forward.error_model is model
    assert reverse.error_model is model


def test_pool_uniques():
    first = DereplicatedReads.from_sequences(["AAAA"] * 3 + ["CCCC"], quality=30)
    second = DereplicatedReads.from_sequences(["CCCC"] * 4, quality=20)

    pooled = pool_uniques([first, second])

    assert pooled.sequences == ["CCCC", "AAAA"]
    np.testing.assert_array_equal(pooled.abundances, [5, 3])
    np.testing.assert_allclose(pooled[0].quality, np.full(4, (30 + 4 * 20) / 5))
    assert pooled.n_reads == 8


def test_learn_errors_pools_samples(config):
    first = dereplicate(_example_reads(30))
    second = dereplicate(make_reads("AAAACCCC", 40, 30))

    result = learn_errors([first, second], config)

    assert result.dereplicated.n_reads == 145
    assert result.error_model.observations.sum() > 0
    np.testing.assert_allclose(result.error_model.probabilities.sum(axis=1), 1.0)


@pytest.mark.parametrize("min_cluster_abundance", [0, 1, 10])
def test_initial_state(min_cluster_abundance):
    derep = dereplicate(_example_reads(40))
    state = initial_state(derep, ErrorModel.initialize(41), min_cluster_abundance)
    expected = [0, 1] if min_cluster_abundance < 5 else [0, -1]
    np.testing.assert_array_equal(state.assignment, expected)


def test_initial_state_seeds_most_abundant():
    derep = DereplicatedReads.from_sequences(["AAAA", "CCCC"])
    state = initial_state(derep, ErrorModel.initialize(41), 1)
    np.testing.assert_array_equal(state.assignment, [0, -1])
