"""Tests for the quality aware error model.

Copyright © 2025 Pixelgen Technologies AB.
"""

import numpy as np
import pytest

from denoiseq.dereplicate import DereplicatedReads
from denoiseq.error_model import ErrorModel
from denoiseq.error_model.model import phred_error_probability


def test_phred_error_probability_is_clamped():
    p = phred_error_probability([0, 10, 20, 93])
    assert p[0] == pytest.approx(0.75)
    assert p[1] == pytest.approx(0.1)
    assert p[2] == pytest.approx(0.01)
    assert p[3] == pytest.approx(1e-7)


def test_initialize_sums_to_one():
    model = ErrorModel.initialize(41)
    assert model.probabilities.shape == (4, 4, 42)
    np.testing.assert_allclose(model.probabilities.sum(axis=1), 1.0)


def test_transition_probability():
    model = ErrorModel.initialize(41)
    assert model.transition_probability("A", 20, "A") == pytest.approx(0.99)
    assert model.transition_probability("C", 20, "A") == pytest.approx(0.01 / 3)
    # Quality scores beyond the table are clamped
    assert model.transition_probability("A", 60, "A") == model.transition_probability(
        "A", 41, "A"
    )
    assert model.transition_probability("N", 20, "A") == 1.0


def test_transition_probabilities_sum_to_one_for_every_context():
    model = ErrorModel.initialize(10)
    for reference in "ACGT":
        for quality in range(11):
            total = sum(
                model.transition_probability(observed, quality, reference)
                for observed in "ACGT"
            )
            assert total == pytest.approx(1.0)


def test_fit_counts_substitutions():
    derep = DereplicatedReads.from_sequences(
        ["AAAA"] * 90 + ["AAAC"] * 10, quality=30
    )
    partition = np.array([0, 0])
    model = ErrorModel.initialize(41).fit(derep.uniques, partition, prior_weight=0.0)

    # A at quality 30 was observed 400 times, 10 of them read as C
    assert model.transition_probability("C", 30, "A") == pytest.approx(10 / 400)
    assert model.transition_probability("A", 30, "A") == pytest.approx(390 / 400)
    np.testing.assert_allclose(model.probabilities.sum(axis=1), 1.0)


def test_fit_falls_back_to_default_for_empty_contexts():
    derep = DereplicatedReads.from_sequences(["AAAA"] * 5, quality=30)
    default = ErrorModel.initialize(41)
    model = default.fit(derep.uniques, np.array([0]))

    np.testing.assert_array_equal(
        model.probabilities[:, :, 20], default.probabilities[:, :, 20]
    )
    np.testing.assert_array_equal(
        model.probabilities[1, :, 30], default.probabilities[1, :, 30]
    )


def test_fit_blends_with_prior():
    derep = DereplicatedReads.from_sequences(["AAAA"] * 5, quality=30)
    model = ErrorModel.initialize(41).fit(derep.uniques, np.array([0]), prior_weight=1.0)
    # No substitution was observed but the probability stays above zero
    assert 0.0 < model.transition_probability("C", 30, "A") < 0.001 / 3


def test_fit_ignores_unassigned_uniques():
    derep = DereplicatedReads.from_sequences(["AAAA"] * 5 + ["CCCC"], quality=30)
    model = ErrorModel.initialize(41).fit(
        derep.uniques, np.array([0, -1]), prior_weight=0.0
    )
    assert model.observations[0, 30] == 20
    assert model.observations[1, 30] == 0


def test_fit_requires_full_partition():
    derep = DereplicatedReads.from_sequences(["AAAA", "CCCC"])
    with pytest.raises(ValueError):
        ErrorModel.initialize().fit(derep.uniques, np.array([0]))


def test_invalid_tables_are_rejected():
    with pytest.raises(ValueError):
        ErrorModel(np.full((4, 4, 3), 0.5))
    with pytest.raises(ValueError):
        ErrorModel(np.full((5, 4, 3), 0.25))


def test_log_table_extends_with_n():
    model = ErrorModel.initialize(41)
    table = model.log_table()
    assert table.shape == (5, 5, 42)
    assert np.all(table[4, :, :] == 0)
    assert np.all(table[:, 4, :] == 0)
    assert table[0, 0, 20] == pytest.approx(np.log(0.99))


def test_tsv_roundtrip(tmp_path):
    derep = DereplicatedReads.from_sequences(["AAAA"] * 9 + ["AAAC"], quality=30)
    model = ErrorModel.initialize(41).fit(derep.uniques, np.array([0, 0]))
    path = tmp_path / "errors.tsv"

    model.write_tsv(path)
    loaded = ErrorModel.read_tsv(path)

    np.testing.assert_allclose(loaded.probabilities, model.probabilities)


def test_error_rates():
    rates = ErrorModel.initialize(41).error_rates()
    assert rates.shape == (4, 42)
    assert rates[2, 10] == pytest.approx(0.1)
