# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Logical partitions of a device program.

The same program text runs on every device; wrapping a region in a
partition keyed by, say, a group id makes every call-site inside it keep a
separate history (and a separate set of neighbour exports) per key.
Nested partitions concatenate their keys.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Hashable, Iterator, List, Tuple, TypeVar

T = TypeVar("T")


class PartitionScope:
    """Stack of partition keys active for one device round."""

    def __init__(self, base: Tuple[Hashable, ...] = ()) -> None:
        """Initialize the instance."""
        self._keys: List[Hashable] = list(base)

    @property
    def path(self) -> Tuple[Hashable, ...]:
        """Return the active partition path."""
        return tuple(self._keys)

    @property
    def depth(self) -> int:
        return len(self._keys)

    @contextmanager
    def enter(self, key: Hashable) -> Iterator[Tuple[Hashable, ...]]:
        """Append `key` to the partition path for the duration of the block."""
        self._keys.append(key)
        try:
            yield self.path
        finally:
            self._keys.pop()

    def with_partition(self, key: Hashable, body: Callable[[], T]) -> T:
        """Run `body()` inside the partition `key` and return its result."""
        with self.enter(key):
            return body()
