"""Common click CLI helpers for denoiseq.

Copyright © 2025 Pixelgen Technologies AB.
"""

import functools
import logging
from typing import Any, Optional

import click

from denoiseq.config import DenoiseConfig
from denoiseq.exception import ConfigurationError

logger = logging.getLogger("denoiseq.cli")


class OrderedGroup(click.Group):
    """A click group that lists its subcommands in the order they were added."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return the names of the subcommands in insertion order."""
        return list(self.commands)


def output_option(func):
    """Add the required --output directory option to a command."""

    @click.option(
        "--output",
        required=True,
        type=click.Path(exists=False, file_okay=False),
        help="The directory to write the results to, it is created if needed",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def config_options(func):
    """Decorate a click command with the options of :class:`DenoiseConfig`.

    Options that are not given on the command line are left as None so that
    values from the --config file, or the defaults, are used for them.
    """

    @click.option(
        "--config",
        "config_file",
        required=False,
        default=None,
        type=click.Path(exists=True, dir_okay=False),
        help="A yaml file with configuration options, command line options take precedence",
    )
    @click.option(
        "--min-cluster-abundance",
        default=None,
        type=click.IntRange(min=0),
        help="Unique sequences with an abundance above this value seed the initial clusters [default: 1]",
    )
    @click.option(
        "--significance-threshold",
        default=None,
        type=click.FloatRange(min=0, max=1, min_open=True),
        help="Abundance p-value below which a unique sequence founds a new cluster [default: 1e-40]",
    )
    @click.option(
        "--max-iterations",
        default=None,
        type=click.IntRange(min=1),
        help="The maximum number of reassign and refit iterations [default: 10]",
    )
    @click.option(
        "--min-overlap",
        default=None,
        type=click.IntRange(min=1),
        help="The minimum overlap between forward and reverse reads [default: 12]",
    )
    @click.option(
        "--max-mismatch-rate",
        default=None,
        type=click.FloatRange(min=0, max=1, max_open=True),
        help="The largest allowed fraction of mismatches in the overlap [default: 0]",
    )
    @click.option(
        "--chimera-ratio",
        default=None,
        type=click.FloatRange(min=1),
        help="Parents must be at least this many times as abundant as a chimera [default: 2]",
    )
    @click.option(
        "--chimera-mode",
        default=None,
        type=click.Choice(["per-sample", "consensus"]),
        help="Decide on chimeras per sample or by consensus over samples [default: consensus]",
    )
    @click.option(
        "--trunc-len-forward",
        default=None,
        type=click.IntRange(min=1),
        help="Truncate forward reads to this length and discard shorter reads",
    )
    @click.option(
        "--trunc-len-reverse",
        default=None,
        type=click.IntRange(min=1),
        help="Truncate reverse reads to this length and discard shorter reads",
    )
    @click.option(
        "--max-ee",
        default=None,
        type=click.FloatRange(min=0, min_open=True),
        help="Discard read pairs where a read has more expected errors than this",
    )
    @click.option(
        "--min-len",
        default=None,
        type=click.IntRange(min=1),
        help="Discard read pairs where a read is shorter than this after truncation [default: 20]",
    )
    @click.option(
        "--min-output-reads",
        default=None,
        type=click.IntRange(min=0),
        help="Flag samples with fewer merged reads than this [default: 0]",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def build_config(config_file: Optional[str], **options: Any) -> DenoiseConfig:
    """Create the run configuration from a config file and command line options.

    :param config_file: an optional yaml file with options
    :param options: the command line options, None for options that were not given
    :returns: the validated configuration
    :raises click.BadParameter: if the configuration is invalid
    """
    try:
        config = (
            DenoiseConfig.from_yaml(config_file)
            if config_file is not None
            else DenoiseConfig()
        )
        return config.updated(**options)
    except ConfigurationError as exc:
        raise click.BadParameter(str(exc), param_hint="configuration") from exc
