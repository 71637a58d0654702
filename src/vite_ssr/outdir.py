"""
Output directory preparation for the two-phase build.

Both builds write into the same directory, so the host's own clearing is
switched off and done once here, before the client sub-build runs.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from vite_ssr.host import ResolvedConfig

logger = logging.getLogger(__name__)

# Never removed when clearing an output directory
PRESERVED_NAMES = frozenset({".git"})


def empty_dir(directory: Path, skip: Iterable[str] = ()) -> None:
    """Remove everything inside ``directory`` except top-level names in ``skip``."""
    skipped = set(skip)
    for entry in directory.iterdir():
        if entry.name in skipped:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def prepare_out_dir(out_dir: Path, empty_out_dir: bool | None, config: ResolvedConfig) -> bool:
    """
    Clear ``out_dir`` before a build.

    An unset preference only clears directories inside the project root;
    outside the root the directory is left alone with a warning. An explicit
    True clears wherever it is, an explicit False never clears.

    Returns:
        True if the directory was emptied.
    """
    if not out_dir.exists():
        return False

    if empty_out_dir is None and not config.is_inside_root(out_dir):
        logger.warning(
            "(!) outDir %s is not inside project root and will not be emptied. "
            "Set build.emptyOutDir to override.",
            out_dir,
        )
        return False

    if empty_out_dir is False:
        return False

    empty_dir(out_dir, PRESERVED_NAMES)
    logger.debug("Emptied %s", out_dir)
    return True
