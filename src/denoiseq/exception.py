"""
This module contains all the extra exception classes and handling
defined by denoiseq

Copyright © 2025 Pixelgen Technologies AB.
"""

from pathlib import Path
from typing import Union


class DenoiseqError(Exception):
    """Base class for all errors raised by denoiseq."""


class ConfigurationError(DenoiseqError, ValueError):
    """Raised when the pipeline configuration is malformed."""


class SampleValidationError(DenoiseqError, ValueError):
    """
    Raised when the reads of a sample cannot be processed.

    Attributes:
        msg: the error message to output
        sample_id: the sample that failed validation
    """

    def __init__(self, msg: str, sample_id: str | None = None):
        super().__init__(msg)
        self.msg = msg
        self.sample_id = sample_id

    def __str__(self) -> str:
        if self.sample_id is None:
            return self.msg
        return f"{self.sample_id}: {self.msg}"


class InputFileError(DenoiseqError):
    """
    Class to manage missing or empty fastq file exceptions.

    Attributes:
        msg: the error message to output
        fname: the name of the file
    """

    def __init__(self, msg: str, fname: Union[str, Path]):
        super().__init__(msg)
        self.msg = msg
        self.fname = fname
