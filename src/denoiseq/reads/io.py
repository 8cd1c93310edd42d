"""Read paired-end FASTQ files into samples.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
import zlib
from pathlib import Path

import dnaio

from denoiseq.exception import InputFileError, SampleValidationError
from denoiseq.reads.models import Read, Sample
from denoiseq.types import PathType
from denoiseq.utils import get_read_sample_name

logger = logging.getLogger(__name__)


def _check_input(path: Path) -> None:
    if not path.is_file():
        raise InputFileError(f"{path} is not a file", path)
    if path.stat().st_size == 0:
        raise InputFileError(f"{path} is an empty file", path)


def read_paired_fastq(
    read1: PathType, read2: PathType, sample_id: str | None = None
) -> Sample:
    """Load a pair of FASTQ files into a :class:`Sample`.

    :param read1: the forward read file
    :param read2: the reverse read file
    :param sample_id: the sample name, derived from `read1` if not given
    :returns: the sample with index aligned forward and reverse reads
    :raises InputFileError: if either file is missing, empty or cannot be decompressed
    :raises SampleValidationError: if the files are not valid FASTQ or do not
        contain the same number of reads
    """
    read1, read2 = Path(read1), Path(read2)
    _check_input(read1)
    _check_input(read2)

    if sample_id is None:
        sample_id = get_read_sample_name(read1)

    forward: list[Read] = []
    reverse: list[Read] = []

    logger.debug("Reading %s and %s for sample %s", read1, read2, sample_id)
    try:
        with dnaio.open(read1, file2=read2) as reader:
            for r1, r2 in reader:
                if r1.qualities is None or r2.qualities is None:
                    raise SampleValidationError(
                        f"{read1} and {read2} have no quality scores, FASTQ input is required",
                        sample_id=sample_id,
                    )
                forward.append(Read.from_fastq(r1.sequence, r1.qualities))
                reverse.append(Read.from_fastq(r2.sequence, r2.qualities))
    except dnaio.FileFormatError as exc:
        raise SampleValidationError(str(exc), sample_id=sample_id) from exc
    except (EOFError, OSError, zlib.error) as exc:
        raise InputFileError(
            f"Could not read {read1} and {read2}: {exc}", read1
        ) from exc

    logger.debug("Read %s pairs for sample %s", len(forward), sample_id)
    return Sample(sample_id=sample_id, forward=forward, reverse=reverse)


def write_fasta(records: dict[str, str], path: PathType) -> None:
    """Write named sequences to a FASTA file."""
    with dnaio.open(path, mode="w", fileformat="fasta") as writer:
        for name, sequence in records.items():
            writer.write(dnaio.SequenceRecord(name, sequence))
