"""Reading of yaml configuration files.

Copyright © 2025 Pixelgen Technologies AB.
"""

from pathlib import Path
from typing import Any

from ruamel import yaml

from denoiseq.types import PathType

YAML_SUFFIXES = (".yaml", ".yml")


def load_yaml_file(path: PathType) -> Any:
    """Parse a yaml file with the safe loader.

    :param path: a file ending in .yaml or .yml
    :returns: the parsed document, None for an empty file
    :raises FileExistsError: if there is no file at `path`
    :raises TypeError: if the file does not have a yaml suffix
    """
    path = Path(path)
    if not path.is_file():
        raise FileExistsError(f"{path} is not a file")
    if path.suffix not in YAML_SUFFIXES:
        raise TypeError(f"{path} is not a yaml file")

    return yaml.YAML(typ="safe").load(path.read_text())
