"""Error model used by the denoising engine.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.error_model.model import (
    DEFAULT_MAX_QUALITY,
    ErrorModel,
    phred_error_probability,
    transition_labels,
)

__all__ = [
    "DEFAULT_MAX_QUALITY",
    "ErrorModel",
    "phred_error_probability",
    "transition_labels",
]
