#!/usr/bin/env python3

"""
walker.py

Lazy enumeration of the files under an archive root.

Entries are visited depth-first in name order (a lexical walk: "a.txt",
"sub/b.txt", "z.txt"), so the sequence is stable across runs. Only regular
files are yielded; symlinks are neither followed nor archived. The first
filesystem error aborts the walk.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Union

from s3archiver.errors import WalkError
from s3archiver.logger import get_logger


@dataclass(frozen=True)
class LocalFile:
    path: Path
    key: str
    size: int = 0


def remote_key(root: Union[str, Path], path: Union[str, Path]) -> str:
    """
    Map `path` to its object key: the path relative to `root`, "/"-separated,
    without a leading separator.
    """
    rel = os.path.relpath(path, root)
    if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep):
        raise ValueError(f"{path} is not below {root}")
    rel = rel.replace(os.sep, "/")
    if os.altsep:
        rel = rel.replace(os.altsep, "/")
    return rel.lstrip("/")


def _sorted_entries(directory: Path) -> Iterator[os.DirEntry]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise WalkError(directory, e) from e
    return iter(entries)


def walk_tree(root: Union[str, Path]) -> Iterator[LocalFile]:
    """
    Yield a LocalFile for every regular file below `root`.

    Raises WalkError wrapping the first OSError (missing root, permission
    denied, entry removed mid-walk).
    """
    logger = get_logger(__name__)
    root = Path(root)
    # one iterator per open directory level, innermost last
    stack = [_sorted_entries(root)]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                stack.append(_sorted_entries(Path(entry.path)))
                continue
            if not entry.is_file(follow_symlinks=False):
                logger.debug(f"Skipping non-regular file {entry.path}")
                continue
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            raise WalkError(entry.path, e) from e
        yield LocalFile(path=Path(entry.path), key=remote_key(root, entry.path), size=size)
