"""Test the denoiseq CLI.

Copyright © 2025 Pixelgen Technologies AB.
"""

import json

import pytest
from click.testing import CliRunner
from synthetic import AMPLICON_A, AMPLICON_B

from denoiseq.cli.main import main_cli
from denoiseq.error_model import ErrorModel
from denoiseq.table import SequenceTable

TEST_OPTIONS = ["--significance-threshold", "1e-6", "--min-len", "8"]


@pytest.fixture(name="fastq_files")
def fastq_files_fixture(fastq_dir):
    return sorted(str(p) for p in fastq_dir.iterdir())


def test_run(fastq_files, tmp_path):
    runner = CliRunner()
    output = tmp_path / "out"

    cmd = runner.invoke(
        main_cli,
        ["--cores", "1", "run", *fastq_files, *TEST_OPTIONS, "--output", str(output)],
    )

    assert cmd.exit_code == 0, cmd.output
    run_dir = output / "run"
    for name in (
        "seqtab.tsv",
        "seqtab.nochim.tsv",
        "asvs.fasta",
        "read_summary.tsv",
        "s1.report.json",
        "s2.report.json",
        "parameters.meta.json",
    ):
        assert (run_dir / name).is_file(), name

    table = SequenceTable.read_tsv(run_dir / "seqtab.nochim.tsv")
    assert table.sequences == [AMPLICON_A, AMPLICON_B]

    params = json.loads((run_dir / "parameters.meta.json").read_text())
    assert params["cli"]["options"]["--min-len"] == 8


def test_run_with_config_file(fastq_files, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("significanceThreshold: 1.0e-6\nminLen: 8\nchimeraMode: per-sample\n")
    output = tmp_path / "out"

    cmd = CliRunner().invoke(
        main_cli,
        ["--cores", "1", "run", *fastq_files, "--config", str(config), "--output", str(output)],
    )

    assert cmd.exit_code == 0, cmd.output
    table = SequenceTable.read_tsv(output / "run" / "seqtab.nochim.tsv")
    assert table.sequences == [AMPLICON_A, AMPLICON_B]


def test_run_with_invalid_configuration(fastq_files, tmp_path):
    cmd = CliRunner().invoke(
        main_cli,
        [
            "--cores",
            "1",
            "run",
            *fastq_files,
            "--trunc-len-forward",
            "10",
            "--min-len",
            "20",
            "--output",
            str(tmp_path / "out"),
        ],
    )

    assert cmd.exit_code != 0
    assert "configuration" in cmd.output


def test_run_requires_read_pairs(fastq_files, tmp_path):
    cmd = CliRunner().invoke(
        main_cli,
        ["--cores", "1", "run", fastq_files[0], "--output", str(tmp_path / "out")],
    )

    assert cmd.exit_code != 0


def test_learn_errors_and_run_with_models(fastq_files, tmp_path):
    runner = CliRunner()
    output = tmp_path / "out"

    cmd = runner.invoke(
        main_cli,
        ["--cores", "1", "learn-errors", *fastq_files, *TEST_OPTIONS, "--output", str(output)],
    )

    assert cmd.exit_code == 0, cmd.output
    forward = output / "errors" / "errors.forward.tsv"
    reverse = output / "errors" / "errors.reverse.tsv"
    assert ErrorModel.read_tsv(forward).max_quality == 41

    cmd = runner.invoke(
        main_cli,
        [
            "--cores",
            "1",
            "run",
            *fastq_files,
            *TEST_OPTIONS,
            "--error-model-forward",
            str(forward),
            "--error-model-reverse",
            str(reverse),
            "--output",
            str(output),
        ],
    )

    assert cmd.exit_code == 0, cmd.output
    table = SequenceTable.read_tsv(output / "run" / "seqtab.nochim.tsv")
    assert table.sequences == [AMPLICON_A, AMPLICON_B]


def test_list_options():
    cmd = CliRunner().invoke(main_cli, ["list-options"])

    assert cmd.exit_code == 0, cmd.output
    names = [line.split("\t")[0] for line in cmd.output.splitlines()]
    assert "min_cluster_abundance" in names
    assert "chimera_mode" in names


def test_list_options_camel_case():
    cmd = CliRunner().invoke(main_cli, ["list-options", "--camel-case"])

    assert cmd.exit_code == 0, cmd.output
    assert "minClusterAbundance\t1\t" in cmd.output


def test_unknown_option(fastq_files, tmp_path):
    cmd = CliRunner().invoke(
        main_cli,
        ["run", *fastq_files, "--not-an-option", "--output", str(tmp_path)],
    )
    assert cmd.exit_code == 2
