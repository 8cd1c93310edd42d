"""Configuration of the denoiseq pipeline.

Copyright © 2025 Pixelgen Technologies AB.
"""

from denoiseq.config.config_class import DenoiseConfig
from denoiseq.config.utils import load_yaml_file

__all__ = ["DenoiseConfig", "load_yaml_file"]
