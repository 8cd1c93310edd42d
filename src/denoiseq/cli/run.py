"""Console script to run the complete denoising pipeline.

Copyright © 2025 Pixelgen Technologies AB.
"""

import logging
from pathlib import Path

import click

from denoiseq.cli.common import build_config, config_options, output_option
from denoiseq.error_model import ErrorModel
from denoiseq.pipeline import PairedFastq, run_pipeline, write_outputs
from denoiseq.utils import (
    FASTQ_EXTENSIONS,
    click_echo,
    create_output_stage_dir,
    group_input_reads,
    log_step_start,
    sanity_check_inputs,
    timer,
    write_parameters_file,
)

logger = logging.getLogger(__name__)


@click.command(
    "run",
    short_help="Denoise paired-end amplicon reads into a sequence table.",
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
    "--error-model-forward",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="A forward error model written by learn-errors, learned per sample if not given",
)
@click.option(
    "--error-model-reverse",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="A reverse error model written by learn-errors, learned per sample if not given",
)
@click.option(
    "--skip-filtering",
    is_flag=True,
    default=False,
    help="Do not truncate and filter reads before denoising",
)
@output_option
@click.pass_context
@timer
def run(
    ctx,
    input_files,
    config_file,
    error_model_forward,
    error_model_reverse,
    skip_filtering,
    output,
    **options,
):
    """Denoise, merge and tabulate the read pairs of one or more samples.

    The R1 and R2 files of each sample are matched by their file names.
    """
    log_step_start(
        "run",
        input_files=list(input_files),
        output=output,
        config_file=config_file,
        error_model_forward=error_model_forward,
        error_model_reverse=error_model_reverse,
        skip_filtering=skip_filtering,
        **options,
    )

    sanity_check_inputs(input_files, allowed_extensions=FASTQ_EXTENSIONS)
    grouped = group_input_reads(input_files)
    config = build_config(config_file, **options)

    error_models = (
        ErrorModel.read_tsv(error_model_forward) if error_model_forward else None,
        ErrorModel.read_tsv(error_model_reverse) if error_model_reverse else None,
    )

    run_output = create_output_stage_dir(output, "run")
    write_parameters_file(ctx, run_output / "parameters.meta.json")

    samples = [
        PairedFastq(sample_id, read1, read2)
        for sample_id, (read1, read2) in grouped.items()
    ]
    result = run_pipeline(
        samples,
        config,
        n_jobs=ctx.obj.get("CORES", 1),
        error_models=error_models,
        filter_reads=not skip_filtering,
    )
    write_outputs(result, run_output)

    click_echo(result.read_summary().to_string())
    for sample_id in result.failed:
        click_echo(f"Sample {sample_id} failed: {result.statuses[sample_id].error}")

    if len(result.failed) == len(samples):
        raise click.ClickException("No sample could be processed")
