"""Integer encoding of nucleotide sequences.

Copyright © 2025 Pixelgen Technologies AB.
"""

import numpy as np
import numpy.typing as npt

BASES = "ACGT"
N_CODE = 4

# Lookup table from ascii code to base code; everything unknown maps to N
_ENCODE_TABLE = np.full(256, N_CODE, dtype=np.uint8)
for _code, _base in enumerate(BASES):
    _ENCODE_TABLE[ord(_base)] = _code
    _ENCODE_TABLE[ord(_base.lower())] = _code


def encode(sequence: str) -> npt.NDArray[np.uint8]:
    """Encode a DNA sequence as an array of base codes.

    A, C, G and T are encoded as 0-3 and any other character as 4 (N).

    :param sequence: the sequence to encode
    :return: an uint8 array with one code per base
    """
    return _ENCODE_TABLE[np.frombuffer(sequence.encode("ascii"), dtype=np.uint8)]


def encode_many(sequences: list[str]) -> npt.NDArray[np.uint8]:
    """Encode equal length sequences as a 2D array with one row per sequence."""
    if not sequences:
        return np.zeros((0, 0), dtype=np.uint8)
    joined = "".join(sequences)
    return encode(joined).reshape(len(sequences), len(sequences[0]))


def base_index(base: str) -> int:
    """Return the code of a single base."""
    if len(base) != 1:
        raise ValueError(f"Expected a single base, got {base!r}")
    return int(_ENCODE_TABLE[ord(base)])
