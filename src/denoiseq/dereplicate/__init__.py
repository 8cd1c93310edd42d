"""Dereplication of reads.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.dereplicate.process import DereplicatedReads, UniqueSequence, dereplicate

__all__ = ["DereplicatedReads", "UniqueSequence", "dereplicate"]
