"""Main console script for denoiseq.

Copyright © 2025 Pixelgen Technologies AB.
"""

import atexit
import multiprocessing
import sys

import click
import yappi

from denoiseq import __version__
from denoiseq.cli.common import OrderedGroup, logger
from denoiseq.cli.learn_errors import learn_errors
from denoiseq.cli.misc import list_options
from denoiseq.cli.run import run
from denoiseq.logging import LoggingSetup
from denoiseq.utils import click_echo


def _report_profile() -> None:
    yappi.stop()
    logger.info("Profiling completed")
    for thread in yappi.get_thread_stats():
        click_echo(f"Function stats for {thread.name} {thread.id}")
        yappi.get_func_stats(ctx_id=thread.id).print_all()


@click.group(cls=OrderedGroup, name="denoiseq")
@click.version_option(__version__)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Log debug messages with timestamps",
)
@click.option(
    "--profile",
    is_flag=True,
    default=False,
    help="Profile all threads with yappi and print the stats on exit",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(exists=False, dir_okay=False),
    help="Also write all messages to this file",
)
@click.option(
    "--cores",
    default=max(1, multiprocessing.cpu_count() - 1),
    type=click.IntRange(min=1),
    show_default=True,
    help="The number of worker processes used for samples",
)
@click.pass_context
def main_cli(ctx, verbose: bool, profile: bool, log_file: str, cores: int):
    """Denoise paired-end amplicon sequencing reads."""
    if ctx.resilient_parsing or any(x in sys.argv for x in ("--help", "--version")):
        return 0

    ctx.ensure_object(dict)
    ctx.obj["LOGGER"] = ctx.with_resource(LoggingSetup(log_file, verbose=verbose))
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["CORES"] = cores

    logger.debug("Using %s cores", cores)
    if profile:
        logger.info("Running in profiling mode")
        yappi.start()
        atexit.register(_report_profile)
    return 0


main_cli.add_command(run)
main_cli.add_command(learn_errors)
main_cli.add_command(list_options)


if __name__ == "__main__":
    sys.exit(main_cli())  # pragma: no cover
