"""Verified deletion of directory trees.

Deleting a file doesn't guarantee that it is gone, e.g. a file that is still open by a node
process may survive on some platforms. Every deleted path is therefore checked afterwards and
a surviving path is reported as a failure instead of a silent success.
"""

import dataclasses
import logging
import os
import pathlib as pl
import typing as tp

from es_cluster_runner.utils import exceptions
from es_cluster_runner.utils import types as ttypes

LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class DeletionReport:
    root: pl.Path
    deleted: tuple[pl.Path, ...] = ()
    failed: tuple[pl.Path, ...] = ()

    @property
    def success(self) -> bool:
        return not self.failed


def _is_real_dir(path: pl.Path) -> bool:
    # Symlinks to directories are removed as links, never followed
    return path.is_dir() and not path.is_symlink()


def iter_postorder(root: pl.Path) -> tp.Iterator[pl.Path]:
    """Iterate over the tree, yielding directory content before the directory itself."""
    stack: list[tuple[pl.Path, bool]] = [(root, False)]
    while stack:
        path, expanded = stack.pop()
        if expanded or not _is_real_dir(path):
            yield path
            continue
        stack.append((path, True))
        stack.extend((child, False) for child in sorted(path.iterdir(), reverse=True))


def _delete_path(path: pl.Path) -> None:
    if _is_real_dir(path):
        path.rmdir()
    else:
        path.unlink()


def delete_tree(root: ttypes.FileType) -> DeletionReport:
    """Delete the directory tree and verify that every deleted path no longer exists.

    The first failure stops the walk. Whatever was deleted so far stays deleted and the rest of
    the tree is left on disk for inspection.
    """
    root = pl.Path(root).expanduser()
    if not os.path.lexists(root):
        LOGGER.debug(f"Nothing to delete, '{root}' doesn't exist.")
        return DeletionReport(root=root)

    deleted: list[pl.Path] = []

    def _fail(path: pl.Path, msg: str) -> exceptions.DeletionVerificationFailure:
        report = DeletionReport(root=root, deleted=tuple(deleted), failed=(path,))
        return exceptions.DeletionVerificationFailure(msg, path=path, report=report)

    walk = iter_postorder(root)
    while True:
        try:
            path = next(walk)
        except StopIteration:
            break
        except OSError as exc:
            failed_path = pl.Path(exc.filename) if exc.filename else root
            msg = f"Failed to list '{failed_path}': {exc}"
            raise _fail(failed_path, msg) from exc

        try:
            _delete_path(path)
        except OSError as exc:
            msg = f"Failed to delete '{path}': {exc}"
            raise _fail(path, msg) from exc

        if os.path.lexists(path):
            msg = f"Failed to delete '{path}': path still exists"
            raise _fail(path, msg)

        deleted.append(path)

    LOGGER.debug(f"Deleted {len(deleted)} paths under '{root}'.")
    return DeletionReport(root=root, deleted=tuple(deleted))
