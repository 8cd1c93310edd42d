"""Tests for running all stages of the pipeline over several samples.

Copyright © 2025 Pixelgen Technologies AB.
"""

import json

import pandas as pd
import pytest
from synthetic import AMPLICON_A, AMPLICON_B, CHIMERA_AB, make_sample, write_fastq_pair

from denoiseq.config import DenoiseConfig
from denoiseq.pipeline import (
    PairedFastq,
    process_sample,
    run_pipeline,
    write_outputs,
)
from denoiseq.table import SequenceTable


@pytest.fixture(name="pipeline_result")
def pipeline_result_fixture(two_samples, config):
    return run_pipeline(two_samples, config)


def test_process_sample(two_samples, config):
    result = process_sample(two_samples[0], config)

    assert result.status.success
    assert not result.status.low_output
    assert result.input_pairs == 170
    assert result.filter_statistics.output_pairs == 170
    assert len(result.forward) == 3
    assert len(result.reverse) == 3
    assert result.merged_pairs == 170
    assert {m.sequence for m in result.merged} == {AMPLICON_A, AMPLICON_B, CHIMERA_AB}
    assert result.stage_counts() == {
        "input": 170,
        "filtered": 170,
        "denoised_forward": 170,
        "denoised_reverse": 170,
        "merged": 170,
    }


def test_process_sample_without_filtering(two_samples, config):
    result = process_sample(two_samples[1], config, filter_reads=False)

    assert result.filter_statistics is None
    assert result.stage_counts()["filtered"] == 130


def test_run_pipeline_recovers_the_amplicons(pipeline_result):
    table = pipeline_result.table
    assert table.samples == ["s1", "s2"]
    assert table.sequences == [AMPLICON_A, AMPLICON_B, CHIMERA_AB]
    assert table.abundance("s1", AMPLICON_A) == 100
    assert table.abundance("s2", AMPLICON_B) == 80


def test_run_pipeline_removes_the_chimera(pipeline_result):
    nonchimeric = pipeline_result.nonchimeric
    assert nonchimeric.sequences == [AMPLICON_A, AMPLICON_B]
    assert nonchimeric.sample_totals().to_dict() == {"s1": 160, "s2": 130}


def test_read_summary(pipeline_result):
    summary = pipeline_result.read_summary()

    assert summary.loc["s1"].to_dict() == {
        "input": 170,
        "filtered": 170,
        "denoised_forward": 170,
        "denoised_reverse": 170,
        "merged": 170,
        "nonchimeric": 160,
    }
    assert summary.loc["s2", "nonchimeric"] == 130


def test_read_counts_never_increase(pipeline_result):
    summary = pipeline_result.read_summary().astype(int)
    for sample_id, row in summary.iterrows():
        values = [row[col] for col in ("input", "filtered", "merged", "nonchimeric")]
        assert values == sorted(values, reverse=True), sample_id


def test_failed_sample_does_not_stop_the_run(two_samples, config, tmp_path):
    missing = PairedFastq(
        "missing", tmp_path / "missing_R1.fastq.gz", tmp_path / "missing_R2.fastq.gz"
    )
    result = run_pipeline([*two_samples, missing], config)

    assert result.failed == ["missing"]
    assert result.statuses["missing"].error is not None
    assert result.statuses["s1"].success
    assert result.nonchimeric.samples == ["s1", "s2"]


def test_unequal_read_counts_fail_the_sample(config, tmp_path):
    (tmp_path / "full").mkdir()
    (tmp_path / "short").mkdir()
    read1, _ = write_fastq_pair(
        tmp_path / "full", "uneven", make_sample("uneven", {AMPLICON_A: 20})
    )
    _, read2 = write_fastq_pair(
        tmp_path / "short", "uneven", make_sample("uneven", {AMPLICON_A: 19})
    )
    good = make_sample("good", {AMPLICON_A: 20})

    result = run_pipeline([good, PairedFastq("uneven", read1, read2)], config)

    assert result.failed == ["uneven"]
    assert result.nonchimeric.samples == ["good"]


def test_truncated_gzip_fails_only_its_sample(config, tmp_path):
    read1, read2 = write_fastq_pair(
        tmp_path, "truncated", make_sample("truncated", {AMPLICON_A: 200})
    )
    data = read1.read_bytes()
    read1.write_bytes(data[: len(data) // 2])
    good = make_sample("good", {AMPLICON_A: 20})

    result = run_pipeline([good, PairedFastq("truncated", read1, read2)], config)

    assert result.statuses["truncated"].success is False
    assert result.statuses["truncated"].error is not None
    assert result.statuses["good"].success
    assert result.table.samples == ["good"]


def test_fasta_input_fails_only_its_sample(config, tmp_path):
    read1 = tmp_path / "fasta_R1.fasta"
    read2 = tmp_path / "fasta_R2.fasta"
    read1.write_text(">r1\nACGTACGTACGT\n>r2\nACGTACGTACGT\n")
    read2.write_text(">r1\nTTTTGGGGCCCC\n>r2\nTTTTGGGGCCCC\n")
    good = make_sample("good", {AMPLICON_A: 20})

    result = run_pipeline([good, PairedFastq("fasta", read1, read2)], config)

    assert result.statuses["fasta"].success is False
    assert "quality" in result.statuses["fasta"].error
    assert result.statuses["good"].success
    assert result.table.samples == ["good"]


def test_low_output_is_flagged(two_samples):
    config = DenoiseConfig(significance_threshold=1e-6, min_len=8, min_output_reads=150)
    result = run_pipeline(two_samples, config)

    assert not result.statuses["s1"].low_output
    assert result.statuses["s2"].low_output
    assert result.statuses["s2"].success


def test_duplicate_sample_ids_are_rejected(two_samples, config):
    with pytest.raises(ValueError):
        run_pipeline([two_samples[0], two_samples[0]], config)


def test_samples_from_fastq_files(fastq_dir, config):
    samples = [
        PairedFastq(
            sample_id,
            fastq_dir / f"{sample_id}_R1.fastq.gz",
            fastq_dir / f"{sample_id}_R2.fastq.gz",
        )
        for sample_id in ("s1", "s2")
    ]
    result = run_pipeline(samples, config)

    assert result.failed == []
    assert result.nonchimeric.sequences == [AMPLICON_A, AMPLICON_B]


@pytest.mark.slow
def test_parallel_run_matches_serial(two_samples, config, pipeline_result):
    parallel = run_pipeline(two_samples, config, n_jobs=2)

    pd.testing.assert_frame_equal(
        parallel.nonchimeric.to_dataframe(), pipeline_result.nonchimeric.to_dataframe()
    )


def test_write_outputs(pipeline_result, tmp_path):
    files = write_outputs(pipeline_result, tmp_path / "out")

    assert all(path.is_file() for path in files.values())
    nochim = SequenceTable.read_tsv(files["seqtab_nochim"])
    assert nochim.sequences == [AMPLICON_A, AMPLICON_B]
    assert files["fasta"].read_text().startswith(">ASV_1;size=150\n" + AMPLICON_A)

    summary = pd.read_csv(files["read_summary"], sep="\t", index_col=0)
    assert summary.loc["s2", "nonchimeric"] == 130

    report = json.loads((tmp_path / "out" / "s1.report.json").read_text())
    assert report["success"]
    assert report["read_tracking"]["nonchimeric"] == 160
    assert report["chimera"]["input_sequences"] == 3
    assert report["merge"]["merged_pairs"] == 170
    assert report["denoise"]["forward"]["variants"] == 3
