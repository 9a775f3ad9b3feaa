"""
Etag reconciliation between a remote address book and the local store.

The diff is keyed by revision token, not by contact identity: an edited
remote item shows up once in ``deleted`` (its old etag) and once in
``needed`` (the href carrying its new etag).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from math import ceil
from typing import TypeVar

T = TypeVar("T")


@dataclass
class ChangeSet:
    """
    Result of comparing the remote etag listing with local etags.

    Attributes:
        needed: Hrefs whose etag is not stored locally, in listing order
        deleted: Local etags that no longer appear remotely
        remote_count: Number of items in the remote listing
        local_count: Number of distinct local etags
    """

    needed: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    remote_count: int = 0
    local_count: int = 0

    def has_changes(self) -> bool:
        return bool(self.needed or self.deleted)

    def batch_count(self, batch_size: int) -> int:
        return ceil(len(self.needed) / batch_size)


def compute_changes(remote: Mapping[str, str], local: Iterable[str]) -> ChangeSet:
    """
    Diff a remote etag -> href mapping against the local etag set.

    Args:
        remote: Remote listing, one entry per item
        local: Etags currently stored for the book

    Returns:
        ChangeSet with the hrefs to fetch and the etags to delete
    """
    local_etags = set(local)
    needed = [href for etag, href in remote.items() if etag not in local_etags]
    deleted = [etag for etag in local_etags if etag not in remote]
    return ChangeSet(
        needed=needed,
        deleted=deleted,
        remote_count=len(remote),
        local_count=len(local_etags),
    )


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Yield consecutive slices of ``items`` holding at most ``size`` elements.

    Raises:
        ValueError: If size is smaller than 1
    """
    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
