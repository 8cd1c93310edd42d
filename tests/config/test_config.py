"""Tests for the run configuration.

Copyright © 2025 Pixelgen Technologies AB.
"""

import pydantic
import pytest

from denoiseq.config import DenoiseConfig, load_yaml_file
from denoiseq.exception import ConfigurationError


def test_defaults():
    config = DenoiseConfig()
    assert config.min_cluster_abundance == 1
    assert config.significance_threshold == 1e-40
    assert config.max_iterations == 10
    assert config.min_overlap == 12
    assert config.max_mismatch_rate == 0.0
    assert config.chimera_mode == "consensus"


def test_options_by_name_and_alias():
    by_name = DenoiseConfig.create(min_cluster_abundance=3, chimera_mode="per-sample")
    by_alias = DenoiseConfig.create(minClusterAbundance=3, chimeraMode="per-sample")
    assert by_name == by_alias


@pytest.mark.parametrize(
    "options",
    [
        {"significance_threshold": 0},
        {"significance_threshold": 2.0},
        {"max_iterations": 0},
        {"max_mismatch_rate": 1.0},
        {"chimera_mode": "sometimes"},
        {"chimera_ratio": 0.5},
        {"unknown_option": 1},
        {"trunc_len_forward": 10, "min_len": 20},
    ],
)
def test_invalid_options(options):
    with pytest.raises(ConfigurationError):
        DenoiseConfig.create(**options)


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        DenoiseConfig.create(max_iterations=-1)


def test_config_is_frozen():
    config = DenoiseConfig()
    with pytest.raises(pydantic.ValidationError):
        config.max_iterations = 3


def test_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("maxIterations: 4\nchimera_mode: per-sample\nminOverlap: 20\n")

    config = DenoiseConfig.from_yaml(path)

    assert config.max_iterations == 4
    assert config.chimera_mode == "per-sample"
    assert config.min_overlap == 20


def test_from_empty_yaml(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("")
    assert DenoiseConfig.from_yaml(path) == DenoiseConfig()


def test_from_yaml_requires_a_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        DenoiseConfig.from_yaml(path)


def test_load_yaml_file_errors(tmp_path):
    with pytest.raises(FileExistsError):
        load_yaml_file(tmp_path / "missing.yaml")

    path = tmp_path / "config.txt"
    path.write_text("a: 1\n")
    with pytest.raises(TypeError):
        load_yaml_file(path)


def test_updated_ignores_unset_options():
    config = DenoiseConfig(max_iterations=4)
    updated = config.updated(max_iterations=None, min_overlap=20)

    assert updated.max_iterations == 4
    assert updated.min_overlap == 20
    assert config.min_overlap == 12


def test_updated_validates():
    with pytest.raises(ConfigurationError):
        DenoiseConfig().updated(max_iterations=0)
