"""Common functions and utilities for denoiseq.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import itertools
import json
import logging
import multiprocessing
import re
import textwrap
import time
from functools import wraps
from pathlib import Path
from typing import Iterable, Iterator, Literal, Optional, Sequence, TypeVar, Union

import click
from joblib import Parallel

from denoiseq.types import PathType

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COMPLEMENT = str.maketrans("ACGTN", "TGCAN")

FASTQ_EXTENSIONS = (
    ".fastq.gz",
    ".fq.gz",
    ".fastq",
    ".fq",
    ".fastq.zst",
    ".fq.zst",
)

# A read number suffix: `.R1`, `_R1`, `_1` (any case), optionally followed by an
# Illumina chunk number such as `_001` that is kept in the sample name
_READ_SUFFIX = {
    "r1": re.compile(r"(?:\.[Rr]1|_[Rr]?1)(?P<chunk>_[0-9]{3})?$"),
    "r2": re.compile(r"(?:\.[Rr]2|_[Rr]?2)(?P<chunk>_[0-9]{3})?$"),
}


def click_echo(msg: str, multiline: bool = False):
    """Print a message to the console, optionally wrapped at 100 characters."""
    click.echo(textwrap.fill(textwrap.dedent(msg), width=100) if multiline else msg)


def create_output_stage_dir(root: PathType, name: str) -> Path:
    """Create the directory `name` under `root` if it does not exist and return it."""
    output = Path(root) / name
    output.mkdir(parents=True, exist_ok=True)
    return output


def batched(iterable: Iterable[T], n: int) -> Iterator[tuple[T, ...]]:
    """Split an iterable into tuples of length n, the last one may be shorter."""
    if n < 1:
        raise ValueError("n must be at least one")
    it = iter(iterable)
    while batch := tuple(itertools.islice(it, n)):
        yield batch


def _read_stem(read: PathType) -> str:
    name = Path(read).name
    for ext in FASTQ_EXTENSIONS:
        if name.endswith(ext):
            return name[: -len(ext)]
    raise ValueError(
        "Invalid file extension: expected .fq or .fastq (with .gz or .zst compression)"
    )


def get_read_sample_name(read: PathType) -> str:
    """Derive the sample name from the file name of a read file.

    The FASTQ extension and the read number suffix are removed. Recognized
    suffixes are `_R1`, `_r1`, `_1`, `.R1` and `.r1` (and the same for read
    2). An Illumina chunk number after the suffix (`_R1_001`) is kept.

    :param read: the path to a FASTQ file
    :returns: the sample name
    :raises ValueError: if the file is not a FASTQ file or has no unambiguous
        read number suffix
    """
    stem = _read_stem(read)
    matches = [m for m in (p.search(stem) for p in _READ_SUFFIX.values()) if m]
    if len(matches) != 1:
        raise ValueError(f"Invalid R1/R2 suffix in {read}")

    match = matches[0]
    return stem[: match.start()] + (match.group("chunk") or "")


def is_read_file(read: PathType, read_type: Literal["r1", "r2"]) -> bool:
    """Check if a FASTQ file name carries the given read number suffix.

    :param read: the path to a FASTQ file
    :param read_type: `r1` or `r2`
    :returns: True if the file is a read 1 (or read 2) file
    :raises ValueError: if the file is not a FASTQ file
    :raises AssertionError: if the read type is not `r1` or `r2`
    """
    if read_type not in _READ_SUFFIX:
        raise AssertionError("Invalid read type: expected 'r1' or 'r2'")
    return _READ_SUFFIX[read_type].search(_read_stem(read)) is not None


def group_input_reads(inputs: Sequence[PathType]) -> dict[str, list[Path]]:
    """Pair up read files by sample name.

    :param inputs: FASTQ files of one or more samples
    :returns: for each sample, in sorted order, its read 1 and read 2 file
    :raises click.ClickException: if a sample does not have exactly one read 1
        and one read 2 file
    """
    by_sample: dict[str, list[Path]] = {}
    for path in map(Path, inputs):
        by_sample.setdefault(get_read_sample_name(path), []).append(path)

    grouped = {}
    for sample_id in sorted(by_sample):
        files = by_sample[sample_id]
        read1 = [f for f in files if is_read_file(f, "r1")]
        read2 = [f for f in files if is_read_file(f, "r2")]
        if len(read1) != 1 or len(read2) != 1:
            raise click.ClickException(
                f"Expected exactly one R1 and one R2 file for sample {sample_id}, "
                f"got {', '.join(str(f) for f in files)}"
            )
        grouped[sample_id] = [read1[0], read2[0]]
    return grouped


def log_step_start(
    step_name: str,
    input_files: Optional[list[str] | str] = None,
    output: Optional[str] = None,
    **kwargs,
) -> None:
    """Log the start of a command with its inputs, output and parameters."""
    from denoiseq import __version__

    logger.info("Start denoiseq %s %s", step_name, __version__)

    if isinstance(input_files, list):
        logger.info("Input file(s) %s", ",".join(input_files))
    elif isinstance(input_files, str):
        logger.info("Input file %s", input_files)

    if output is not None:
        logger.info("Output %s", output)

    if kwargs:
        params = ",".join(f"{k.replace('_', '-')}={v}" for k, v in kwargs.items())
        logger.info("Parameters:%s", params)


def reverse_complement(seq: str) -> str:
    """Return the reverse complement of a DNA sequence."""
    return seq.translate(_COMPLEMENT)[::-1]


def sanity_check_inputs(
    input_files: Sequence[PathType] | PathType,
    allowed_extensions: Union[Sequence[str], str, None] = None,
) -> None:
    """Check that input files exist, are not empty and have an allowed extension.

    :param input_files: one or more files
    :param allowed_extensions: an extension, e.g. `fastq.gz`, or a sequence of them
    :raises AssertionError: if any check fails
    """
    files = (
        [input_files] if isinstance(input_files, (str, Path)) else list(input_files)
    )
    extensions = (
        (allowed_extensions,)
        if isinstance(allowed_extensions, str)
        else tuple(allowed_extensions or ())
    )

    for input_file in map(Path, files):
        logger.debug("Sanity checking %s", input_file)

        if not input_file.is_file():
            raise AssertionError(f"{input_file} is not a file")

        if input_file.stat().st_size == 0:
            raise AssertionError(f"{input_file} is an empty file")

        if extensions and not str(input_file).endswith(extensions):
            raise AssertionError(
                f"{input_file} does not have any of the extensions {', '.join(extensions)}"
            )


def timer(func):
    """Log the run time of a command."""

    @wraps(func)
    def wrapper(*args, **kwds):
        start_time = time.perf_counter()
        res = func(*args, **kwds)
        logger.info(
            "Finished denoiseq %s in %.2fs",
            func.__name__,
            time.perf_counter() - start_time,
        )
        return res

    return wrapper


def write_parameters_file(
    click_context: click.Context, output_file: Path, command_path: Optional[str] = None
) -> None:
    """Write the options a command was called with to a JSON file.

    Path options are written as absolute paths.

    :param click_context: the context of the command
    :param output_file: the JSON file to write
    :param command_path: the command name to record, the context command path if not given
    """
    options = {}
    for param in click_context.command.params:
        if not isinstance(param, click.Option):
            continue
        value = click_context.params.get(str(param.name))
        if value is not None and isinstance(param.type, click.Path):
            value = str(Path(value).resolve())
        options[param.opts[0]] = value

    data = {
        "cli": {
            "command": command_path or click_context.command_path,
            "options": options,
        }
    }

    logger.debug("Writing parameters file to %s", output_file)
    with open(output_file, "w") as fh:
        json.dump(data, fh, indent=4)


class _ParallelWithLogging(Parallel):
    def _print(self, msg):
        logger.debug(msg)


def get_joblib_executor(nbr_cores: int | None = None, **kwargs) -> Parallel:
    """Return a joblib executor that logs its progress at debug level.

    The number of workers is taken from `nbr_cores`, the click context
    (`--cores`) or the number of available cpus, in that order.
    """
    ctx = click.get_current_context(silent=True)
    click_nbr_cores = ctx.obj.get("CORES") if ctx and ctx.obj else None
    n_jobs = nbr_cores or click_nbr_cores or multiprocessing.cpu_count()
    return _ParallelWithLogging(n_jobs=n_jobs, **kwargs)
