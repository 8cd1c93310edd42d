#!/usr/bin/env python3
"""Copyright © 2025 Pixelgen Technologies AB.

Check that every python file of denoiseq carries a copyright notice in its
module docstring.

Do not delete the shebang on top of the file or it will stop working
"""

import ast
import sys
from itertools import chain
from pathlib import Path
from typing import Iterable, Optional

ROOT_DIR = Path(__file__).parent / ".."
SOURCE_DIR = ROOT_DIR / "src/denoiseq"
TEST_DIR = ROOT_DIR / "tests"
PYTHON_DIRS = [SOURCE_DIR, TEST_DIR]
NOTICE = "Copyright © "


class CopyrightNoticeMissing(Exception):
    """A python source file without a copyright notice.

    :param message: a message of exception
    :param offending_file: the file with no copyright
    """

    def __init__(self, message: str, offending_file: Path) -> None:
        """Construct instance."""
        super().__init__(message)
        self.file = offending_file


def check_file_for_copyright(py_file: Path) -> Optional[CopyrightNoticeMissing]:
    """Check a file for the presence of the copyright notice.

    :param py_file: a python file
    :return: the missing notice error if the file has no copyright
    """
    tree = ast.parse(py_file.read_text())
    module_docstring = ast.get_docstring(tree, clean=True)
    if not module_docstring:
        return CopyrightNoticeMissing("Module docstring missing", py_file.resolve())
    if NOTICE not in module_docstring:
        return CopyrightNoticeMissing(
            "Copyright notice missing from module docstring", py_file.resolve()
        )
    return None


def check_copyright(files: Optional[Iterable[Path]]) -> int:
    """Check a list of files, or all source and test files, for copyright.

    :param files: files to check
    :return: the exit code, 1 if any file is missing a notice
    """
    files_to_check = files or chain.from_iterable(
        directory.rglob("*.py") for directory in PYTHON_DIRS
    )
    found_errors = [
        error
        for error in (check_file_for_copyright(f) for f in files_to_check)
        if error
    ]

    if found_errors:
        print("A copyright notice is missing from the following files:")
        for exception in found_errors:
            print(exception.file, str(exception), sep=": ")
        return 1

    print("All .py files have a copyright notice")
    return 0


if __name__ == "__main__":
    paths = [Path(p) for p in sys.argv[1:]] or None
    sys.exit(check_copyright(paths))
