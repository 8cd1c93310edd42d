"""Configuration and shared files/objects for the testing framework.

Copyright © 2025 Pixelgen Technologies AB.
"""

from pathlib import Path

import pytest
from synthetic import AMPLICON_A, AMPLICON_B, CHIMERA_AB, make_sample, write_fastq_pair

from denoiseq.config import DenoiseConfig
from denoiseq.reads import Sample


@pytest.fixture(name="config")
def config_fixture() -> DenoiseConfig:
    """Return a configuration suited to the short synthetic reads of the tests."""
    return DenoiseConfig(
        significance_threshold=1e-6,
        min_len=8,
        min_overlap=12,
    )


@pytest.fixture(name="two_samples")
def two_samples_fixture() -> list[Sample]:
    """Return two samples of amplicon A and B, the first with a chimera of both."""
    return [
        make_sample("s1", {AMPLICON_A: 100, AMPLICON_B: 60, CHIMERA_AB: 10}),
        make_sample("s2", {AMPLICON_A: 50, AMPLICON_B: 80}),
    ]


@pytest.fixture(name="fastq_dir")
def fastq_dir_fixture(tmp_path, two_samples) -> Path:
    """Write the two samples as FASTQ files and return the directory."""
    directory = tmp_path / "fastq"
    directory.mkdir()
    for sample in two_samples:
        write_fastq_pair(directory, sample.sample_id, sample)
    return directory
