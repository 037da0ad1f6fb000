"""Build file discovery."""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterable, List, Optional, Union

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from .models import BuildFile, BuildFileType

logger = logging.getLogger(__name__)

_NUMBER_PATTERN = re.compile(r"(\d+)")


def number_aware_key(text: str):
    """Sort key ordering embedded numbers numerically, ``module2`` before ``module10``."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in _NUMBER_PATTERN.split(text)
        if part
    ]


def find_build_files(path: Union[str, Path], max_depth: Optional[int] = None) -> List[BuildFile]:
    """Find build files below a path.

    Args:
        path: File or directory to search
        max_depth: Directory levels to descend below ``path``, unlimited when None

    Returns:
        Build files sorted by parent directory then file name

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If max_depth is negative.
    """
    root = Path(path)
    if not root.exists():
        raise FileNotFoundError(f"No such file or directory: {root}")
    if max_depth is not None and max_depth < 0:
        raise ValueError(f"Invalid max depth: {max_depth} (expected >= 0)")

    found: List[BuildFile] = []
    if root.is_file():
        file_type = BuildFileType.from_file_name(root.name)
        if file_type is not None:
            found.append(BuildFile(file_type, root))
    else:
        root_depth = len(root.parts)
        for directory, dir_names, file_names in os.walk(root):
            depth = len(Path(directory).parts) - root_depth
            if max_depth is not None and depth >= max_depth:
                dir_names[:] = []
            for file_name in file_names:
                file_type = BuildFileType.from_file_name(file_name)
                if file_type is not None:
                    found.append(BuildFile(file_type, Path(directory) / file_name))

    found.sort(key=lambda b: (number_aware_key(str(b.file.parent)), number_aware_key(b.file.name)))
    if is_debug_enabled(logger):
        logger.debug(
            "Build files discovered",
            extra=extra_context(
                event="discovery",
                component="discovery",
                action="find_build_files",
                count=len(found),
                target=str(root),
                max_depth=max_depth,
            )
        )
    return found


def is_in_output_directory(build_file: BuildFile, root: Union[str, Path, None] = None) -> bool:
    """Return True if the build file sits below a build output directory.

    Only directories between ``root`` and the file are considered, so a search
    started inside an output directory still sees its build files.
    """
    parent = build_file.file.parent
    if root is not None:
        try:
            parent = parent.relative_to(Path(root))
        except ValueError:
            pass
    return any(part in Constants.OUTPUT_DIRECTORY_NAMES for part in parent.parts)


def filter_build_files(
    build_files: Iterable[BuildFile],
    root: Union[str, Path, None] = None,
) -> List[BuildFile]:
    """Drop build files copied into output directories (``target``, ``build``)."""
    return [build_file for build_file in build_files if not is_in_output_directory(build_file, root)]
