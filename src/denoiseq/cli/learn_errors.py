"""Console script to learn error models from the reads of several samples.

Copyright © 2025 Pixelgen Technologies AB.
"""

import logging

import click

from denoiseq.cli.common import build_config, config_options, output_option
from denoiseq.denoise import learn_errors as learn_errors_from_uniques
from denoiseq.dereplicate import dereplicate
from denoiseq.exception import DenoiseqError
from denoiseq.reads import filter_and_trim, read_paired_fastq
from denoiseq.utils import (
    FASTQ_EXTENSIONS,
    create_output_stage_dir,
    group_input_reads,
    log_step_start,
    sanity_check_inputs,
    timer,
    write_parameters_file,
)

logger = logging.getLogger(__name__)


@click.command(
    "learn-errors",
    short_help="Learn forward and reverse error models from pooled samples.",
    options_metavar="<options>",
)
@click.argument(
    "input_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True),
    metavar="FASTQ_FILES",
)
@config_options
@click.option(
    "--skip-filtering",
    is_flag=True,
    default=False,
    help="Do not truncate and filter reads before learning",
)
@output_option
@click.pass_context
@timer
def learn_errors(ctx, input_files, config_file, skip_filtering, output, **options):
    """Learn one forward and one reverse error model from all given samples.

    The models are written as `errors.forward.tsv` and `errors.reverse.tsv`
    and can be passed to the run command.
    """
    log_step_start(
        "learn-errors",
        input_files=list(input_files),
        output=output,
        config_file=config_file,
        skip_filtering=skip_filtering,
        **options,
    )

    sanity_check_inputs(input_files, allowed_extensions=FASTQ_EXTENSIONS)
    grouped = group_input_reads(input_files)
    config = build_config(config_file, **options)

    forward, reverse = [], []
    for sample_id, (read1, read2) in grouped.items():
        try:
            sample = read_paired_fastq(read1, read2, sample_id=sample_id)
        except DenoiseqError as exc:
            raise click.ClickException(str(exc)) from exc

        if not skip_filtering:
            sample, _ = filter_and_trim(sample, config)
        forward.append(dereplicate(sample.forward))
        reverse.append(dereplicate(sample.reverse))

    errors_output = create_output_stage_dir(output, "errors")
    write_parameters_file(ctx, errors_output / "parameters.meta.json")

    cores = ctx.obj.get("CORES", 1)
    for direction, dereplicated in (("forward", forward), ("reverse", reverse)):
        result = learn_errors_from_uniques(dereplicated, config, n_jobs=cores)
        if not result.converged:
            logger.warning(
                "Learning the %s error model did not converge in %s iterations",
                direction,
                result.iterations,
            )
        path = errors_output / f"errors.{direction}.tsv"
        result.error_model.write_tsv(path)
        logger.info(
            "Learned %s error model from %s reads, written to %s",
            direction,
            result.n_reads,
            path,
        )
