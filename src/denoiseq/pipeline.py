"""Run all stages of the denoising pipeline over a set of samples.

Samples are processed independently, in parallel worker processes when more
than one core is used. The per sample results are joined into one sequence
table from which chimeras are removed in a last, table wide, step.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import dataclasses
import logging
import typing
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import pandas as pd
import pydantic
from joblib import delayed

from denoiseq.chimera import ChimeraReport, filter_chimeras
from denoiseq.config import DenoiseConfig
from denoiseq.denoise import DenoiseResult, DenoiseSampleReport, denoise_sample
from denoiseq.error_model import ErrorModel
from denoiseq.exception import DenoiseqError
from denoiseq.merge import MergedRead, MergeSampleReport, MergeStatistics, merge_pairs
from denoiseq.reads import FilterStatistics, Sample, filter_and_trim, read_paired_fastq
from denoiseq.report import ReadTrackingReport, SampleReport
from denoiseq.table import SequenceTable, build_table
from denoiseq.types import PathType
from denoiseq.utils import get_joblib_executor

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class PairedFastq:
    """A sample that is read from a pair of FASTQ files when it is processed."""

    sample_id: str
    read1: PathType
    read2: PathType

    def load(self) -> Sample:
        """Read the sample from its files."""
        return read_paired_fastq(self.read1, self.read2, sample_id=self.sample_id)


SampleInput = Union[Sample, PairedFastq]


@dataclasses.dataclass(frozen=True, slots=True)
class SampleStatus:
    """The outcome of processing one sample.

    :ivar sample_id: the sample id
    :ivar success: False if processing of the sample was aborted
    :ivar error: the reason processing was aborted
    :ivar low_output: True if fewer reads than `min_output_reads` were merged
    """

    sample_id: str
    success: bool
    error: Optional[str] = None
    low_output: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class SampleResult:
    """Everything produced for one sample before the table is built."""

    sample_id: str
    status: SampleStatus
    input_pairs: int = 0
    filter_statistics: Optional[FilterStatistics] = None
    forward: Optional[DenoiseResult] = None
    reverse: Optional[DenoiseResult] = None
    merged: Sequence[MergedRead] = ()

    @property
    def merged_pairs(self) -> int:
        """Return the number of read pairs in accepted merges."""
        return sum(m.abundance for m in self.merged if m.accepted)

    def stage_counts(self) -> dict[str, int]:
        """Return the number of reads left after each stage up to merging."""
        filtered = (
            self.filter_statistics.output_pairs
            if self.filter_statistics is not None
            else self.input_pairs
        )
        return {
            "input": self.input_pairs,
            "filtered": filtered,
            "denoised_forward": self.forward.n_reads if self.forward else 0,
            "denoised_reverse": self.reverse.n_reads if self.reverse else 0,
            "merged": self.merged_pairs,
        }


class SampleRunReport(SampleReport):
    """Model for all reports of one sample in a pipeline run."""

    report_type: typing.Literal["sample"] = "sample"

    success: bool = pydantic.Field(
        ..., description="False if processing of the sample was aborted."
    )
    error: Optional[str] = pydantic.Field(
        None, description="The reason processing of the sample was aborted."
    )
    low_output: bool = pydantic.Field(
        False, description="True if fewer reads than the configured floor were merged."
    )
    read_tracking: Optional[ReadTrackingReport] = None
    denoise: Optional[DenoiseSampleReport] = None
    merge: Optional[MergeSampleReport] = None
    chimera: Optional[ChimeraReport] = None


@dataclasses.dataclass(frozen=True, slots=True)
class PipelineResult:
    """The joined results of a pipeline run.

    :ivar table: the sequence table before chimera removal
    :ivar nonchimeric: the sequence table after chimera removal
    :ivar samples: the per sample results in input order
    """

    table: SequenceTable
    nonchimeric: SequenceTable
    samples: dict[str, SampleResult]

    @property
    def statuses(self) -> dict[str, SampleStatus]:
        """Return the status of every sample."""
        return {sample_id: r.status for sample_id, r in self.samples.items()}

    @property
    def failed(self) -> list[str]:
        """Return the ids of the samples that could not be processed."""
        return [s for s, r in self.samples.items() if not r.status.success]

    def read_summary(self) -> pd.DataFrame:
        """Return the number of reads of each processed sample after every stage."""
        return self.nonchimeric.read_summary()

    def tracking_reports(self) -> dict[str, ReadTrackingReport]:
        """Return a read tracking report for every processed sample."""
        summary = self.read_summary()
        return {
            str(sample_id): ReadTrackingReport(
                sample_id=str(sample_id),
                **{col: int(value) for col, value in row.items()},
            )
            for sample_id, row in summary.iterrows()
        }

    def sample_reports(self) -> list[SampleRunReport]:
        """Return the combined report of every sample."""
        tracking = self.tracking_reports()
        reports = []
        for sample_id, result in self.samples.items():
            if not result.status.success:
                reports.append(
                    SampleRunReport(
                        sample_id=sample_id,
                        success=False,
                        error=result.status.error,
                    )
                )
                continue

            reports.append(
                SampleRunReport(
                    sample_id=sample_id,
                    success=True,
                    low_output=result.status.low_output,
                    read_tracking=tracking[sample_id],
                    denoise=DenoiseSampleReport.from_results(
                        sample_id, result.forward, result.reverse
                    ),
                    merge=MergeSampleReport.from_statistics(
                        sample_id, MergeStatistics.from_merged(result.merged)
                    ),
                    chimera=ChimeraReport.from_tables(
                        sample_id, self.table, self.nonchimeric
                    ),
                )
            )
        return reports


def process_sample(
    sample: SampleInput,
    config: DenoiseConfig,
    error_models: tuple[Optional[ErrorModel], Optional[ErrorModel]] = (None, None),
    filter_reads: bool = True,
    n_jobs: int = 1,
) -> SampleResult:
    """Run filtering, denoising and pair merging on one sample.

    A sample that cannot be processed (unreadable input, unequal number of
    forward and reverse reads) gives a failed :class:`SampleResult` instead of
    an exception so that the other samples of a run are not affected.

    :param sample: the sample or the files to read it from
    :param config: the run configuration
    :param error_models: optional fixed forward and reverse error models
    :param filter_reads: trim and filter the reads before denoising
    :param n_jobs: the number of threads used to denoise the sample
    :returns: the result of the sample
    """
    try:
        if isinstance(sample, PairedFastq):
            sample = sample.load()

        input_pairs = sample.n_pairs
        filter_stats = None
        if filter_reads:
            sample, filter_stats = filter_and_trim(sample, config)

        forward, reverse = denoise_sample(
            sample, config, error_models=error_models, n_jobs=n_jobs
        )
        merged = merge_pairs(forward, reverse, config)
    except DenoiseqError as exc:
        logger.error("Sample %s failed: %s", sample.sample_id, exc)
        return SampleResult(
            sample_id=sample.sample_id,
            status=SampleStatus(sample.sample_id, success=False, error=str(exc)),
        )

    for direction, result in (("forward", forward), ("reverse", reverse)):
        if not result.converged:
            logger.warning(
                "Sample %s: denoising of the %s reads did not converge in %s iterations",
                sample.sample_id,
                direction,
                result.iterations,
            )

    result = SampleResult(
        sample_id=sample.sample_id,
        status=SampleStatus(sample.sample_id, success=True),
        input_pairs=input_pairs,
        filter_statistics=filter_stats,
        forward=forward,
        reverse=reverse,
        merged=merged,
    )

    if result.merged_pairs < config.min_output_reads:
        logger.warning(
            "Sample %s: only %s of %s read pairs were merged (minimum %s)",
            sample.sample_id,
            result.merged_pairs,
            input_pairs,
            config.min_output_reads,
        )
        result = dataclasses.replace(
            result,
            status=dataclasses.replace(result.status, low_output=True),
        )

    logger.info(
        "Sample %s: %s input pairs, %s variants forward, %s variants reverse, %s merged pairs",
        sample.sample_id,
        input_pairs,
        len(forward),
        len(reverse),
        result.merged_pairs,
    )
    return result


def run_pipeline(
    samples: Iterable[SampleInput],
    config: DenoiseConfig,
    n_jobs: int = 1,
    error_models: tuple[Optional[ErrorModel], Optional[ErrorModel]] = (None, None),
    filter_reads: bool = True,
) -> PipelineResult:
    """Denoise and merge all samples, build the sequence table and remove chimeras.

    :param samples: the samples to process
    :param config: the run configuration
    :param n_jobs: the number of worker processes used over samples
    :param error_models: optional fixed forward and reverse error models
    :param filter_reads: trim and filter the reads before denoising
    :returns: the joined results of all samples
    :raises ValueError: if two samples share a sample id
    """
    samples = list(samples)
    sample_ids = [s.sample_id for s in samples]
    if len(set(sample_ids)) != len(sample_ids):
        raise ValueError("Sample ids must be unique")

    logger.info("Processing %s samples", len(samples))
    if n_jobs > 1 and len(samples) > 1:
        with get_joblib_executor(nbr_cores=n_jobs) as parallel:
            results = parallel(
                delayed(process_sample)(
                    sample, config, error_models=error_models, filter_reads=filter_reads
                )
                for sample in samples
            )
    else:
        results = [
            process_sample(
                sample,
                config,
                error_models=error_models,
                filter_reads=filter_reads,
                n_jobs=n_jobs,
            )
            for sample in samples
        ]

    by_sample = {r.sample_id: r for r in results}
    succeeded = [r for r in results if r.status.success]
    if len(succeeded) < len(results):
        logger.warning(
            "%s of %s samples could not be processed",
            len(results) - len(succeeded),
            len(results),
        )

    table = build_table({r.sample_id: r.merged for r in succeeded})
    table = table.with_stage_counts(
        pd.DataFrame.from_dict(
            {r.sample_id: r.stage_counts() for r in succeeded}, orient="index"
        )
    )
    nonchimeric = filter_chimeras(table, config, n_jobs=n_jobs)

    return PipelineResult(table=table, nonchimeric=nonchimeric, samples=by_sample)


def write_outputs(result: PipelineResult, output: PathType) -> dict[str, Path]:
    """Write the tables, the sequences and the reports of a run to a directory.

    :param result: the result of a pipeline run
    :param output: the directory to write to
    :returns: the written files by kind
    """
    output = Path(output)
    output.mkdir(parents=True, exist_ok=True)

    files = {
        "seqtab": output / "seqtab.tsv",
        "seqtab_nochim": output / "seqtab.nochim.tsv",
        "fasta": output / "asvs.fasta",
        "read_summary": output / "read_summary.tsv",
    }
    result.table.write_tsv(files["seqtab"])
    result.nonchimeric.write_tsv(files["seqtab_nochim"])
    result.nonchimeric.write_fasta(files["fasta"])
    result.read_summary().to_csv(files["read_summary"], sep="\t")

    for report in result.sample_reports():
        report.write_json_file(output / f"{report.sample_id}.report.json", indent=4)

    logger.debug("Wrote outputs to %s", output)
    return files
