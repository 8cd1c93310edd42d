"""Sequence abundance tables.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.table.sequence_table import STAGES, SequenceTable, build_table

__all__ = ["STAGES", "SequenceTable", "build_table"]
