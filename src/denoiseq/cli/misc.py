"""Miscellaneous CLI functions for denoiseq.

Copyright © 2025 Pixelgen Technologies AB.
"""

import click
from pydantic.alias_generators import to_camel

from denoiseq.config import DenoiseConfig
from denoiseq.utils import click_echo


@click.command(
    "list-options",
    short_help="List the configuration options and their defaults.",
    options_metavar="<options>",
)
@click.option(
    "--camel-case",
    is_flag=True,
    default=False,
    help="Show the camelCase names accepted in configuration files",
)
def list_options(camel_case: bool):
    """List the configuration options, their defaults and descriptions."""
    for name, field in DenoiseConfig.model_fields.items():
        label = to_camel(name) if camel_case else name
        click_echo(f"{label}\t{field.default}\t{field.description}")
