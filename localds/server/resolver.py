"""Mapping of `{org}/{dataset}/{path}` addresses onto files below the dataset root.

Some datasets are packaged with one extra "subset" directory between the dataset
root and its real content, e.g. `acme/robotset/VLA_Arena/meta/info.json`. The name
of that directory is not known in advance, so when the direct path is missing the
resolver looks one level down. Deeper nesting is not searched.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DatasetAddress:
    org: str
    dataset: str
    rel_path: str

    @classmethod
    def from_segments(cls, segments: Sequence[str]) -> DatasetAddress | None:
        """Split `[org, dataset, *rest]`; returns None when fewer than three segments are given."""
        parts = [s for s in segments if s]
        if len(parts) < 3:
            return None
        return cls(org=parts[0], dataset=parts[1], rel_path='/'.join(parts[2:]))

    def dataset_dir(self, root: str | os.PathLike) -> str:
        return os.path.join(root, self.org, self.dataset)

    def __str__(self) -> str:
        return f'{self.org}/{self.dataset}/{self.rel_path}'


@dataclass(frozen=True)
class Found:
    path: str


class _NotFound:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'NOT_FOUND'


NOT_FOUND = _NotFound()
Resolution = Found | _NotFound


def _exists(path: str) -> bool:
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def _subset_dirs(dataset_dir: str) -> list[str]:
    with os.scandir(dataset_dir) as entries:
        names = []
        for entry in entries:
            try:
                if entry.is_dir() and not entry.name.startswith('.'):
                    names.append(entry.name)
            except OSError:
                continue
    # Sorted so that several matching subsets always resolve to the same one.
    return sorted(names)


def resolve_with_subset_prefix(dataset_dir: str | os.PathLike, rel_path: str) -> Resolution:
    """Find `rel_path` inside `dataset_dir`, directly or under one subset directory.

    Never raises: unreadable or missing directories are reported as `NOT_FOUND`.
    """
    dataset_dir = os.fspath(dataset_dir)
    direct = os.path.join(dataset_dir, rel_path)
    if _exists(direct):
        return Found(direct)

    try:
        subsets = _subset_dirs(dataset_dir)
    except (OSError, ValueError):
        return NOT_FOUND

    for name in subsets:
        candidate = os.path.join(dataset_dir, name, rel_path)
        if _exists(candidate):
            return Found(candidate)
    return NOT_FOUND


def is_within_root(path: str | os.PathLike, root: str | os.PathLike) -> bool:
    """True if the canonical form of `path` is `root` itself or lies below it."""
    real_path = Path(os.path.realpath(path))
    real_root = Path(os.path.realpath(root))
    return real_path.is_relative_to(real_root)
