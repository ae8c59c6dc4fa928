"""Path helpers and the path-keyed set difference used by the sync engine."""

import os
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any, Optional, TypeVar

from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def get_file_name(path: str) -> str:
    """Return the last component of a path, accepting both separators."""
    return path.replace(os.sep, "/").rsplit("/", 1)[-1]


def get_extension(filename: str) -> Optional[str]:
    """Return the extension of a file name without the dot, or None."""
    name = get_file_name(filename)
    if "." not in name:
        return None
    return name.rsplit(".", 1)[-1]


def path_of(item: Any) -> Hashable:
    """Reconciliation key of an item: its ``path`` key or attribute."""
    if isinstance(item, Mapping):
        return item["path"]
    return item.path


def to_map(values: Iterable[T], key: Callable[[T], Hashable] = path_of) -> dict[Hashable, T]:
    """Index values by key; later values win on duplicate keys."""
    return {key(value): value for value in values}


def documents_to_delete_or_create(
    synced: list[T],
    unsynced: list[T],
    key: Callable[[T], Hashable] = path_of,
) -> tuple[list[T], list[T]]:
    """Compute the delta between what is indexed and what should be.

    Items are matched by path, not by id.

    Args:
        synced: Items currently in the index
        unsynced: Items that should be in the index
        key: Function returning the matching key of an item

    Returns:
        ``(to_delete, to_create)``: synced items whose path is gone, and
        unsynced items whose path is not indexed yet, each in input order
    """
    synced_keys = {key(item) for item in synced}
    unsynced_keys = {key(item) for item in unsynced}

    to_create = [item for item in unsynced if key(item) not in synced_keys]
    to_delete = [item for item in synced if key(item) not in unsynced_keys]

    logger.debug(f"documents_to_delete_or_create: create={len(to_create)} delete={len(to_delete)}")
    return to_delete, to_create
