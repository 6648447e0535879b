# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Execution context of one device round.

A device program is a plain function of a `RoundContext`. Call-sites are
identified by explicit labels nested under `call()` frames, e.g. the label
"velocity" evaluated inside `with ctx.call("reach_on_streets")` inside
`with ctx.call("group_walk")` is the site `group_walk/reach_on_streets/velocity`.
Together with the partition path opened through `partition()` this forms
the key of the round-state slot and of the neighbour exports.

The context works on copies of the device position, storage and random
generator; `execute_round` writes them back only when the program completes.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Tuple, TypeVar

from geometry_utils.vector2D import Vector2D
from partition_scope import PartitionScope

logger = logging.getLogger("sim.round")

T = TypeVar("T")
_UNSET = object()


class RoundContext:
    """Per-round view of one device over the shared stores."""

    def __init__(
        self,
        device,
        round_index: int,
        time: float,
        period: float,
        store,
        channel,
        navigator=None,
        map_size: Tuple[float, float] = (1200.0, 800.0),
        positions: Optional[Dict[int, Vector2D]] = None,
    ) -> None:
        """Initialize the instance."""
        self.device = device
        self.uid = device.uid
        self.round = round_index
        self.time = time
        self.period = period
        self.store = store
        self.channel = channel
        self.navigator = navigator
        self.low = Vector2D(0, 0)
        self.high = Vector2D(*map_size)
        self.position = device.get_position()
        self.storage = dict(device.storage)
        self.random = device.get_random_generator()
        self._rng_state = self.random.getstate()
        self._positions = positions or {}
        self._neighbours = channel.neighbours(self.uid)
        self.scope = PartitionScope()
        self._frames: List[str] = []

    # ----- Call-site identity -------------------------------------------------

    @contextmanager
    def call(self, name: str) -> Iterator[None]:
        """Nest every call-site evaluated in the block under `name`."""
        self._frames.append(name)
        try:
            yield
        finally:
            self._frames.pop()

    def site(self, label: str) -> Tuple[str, ...]:
        """Return the full call-site identity of `label` at this point."""
        return tuple(self._frames) + (label,)

    # ----- Partitions ---------------------------------------------------------

    def partition(self, key: Hashable):
        """Context manager running the block in the partition `key`."""
        return self.scope.enter(key)

    def split(self, key: Hashable, body: Callable[[], T]) -> T:
        """Run `body()` independently for each value of `key`."""
        return self.scope.with_partition(key, body)

    # ----- Round state --------------------------------------------------------

    def old(self, label: str, default: Any, value: Any) -> Any:
        """Store `value` and return the one stored at this site last round."""
        site = self.site(label)
        previous = self.store.read_or_init(self.uid, site, self.scope.path, default)
        self.store.commit(self.uid, site, self.scope.path, value)
        return previous

    def rep(self, label: str, default: Any, update: Callable[[Any], Any]) -> Any:
        """Store and return `update(previous)`; `previous` is `default` on first use."""
        site = self.site(label)
        previous = self.store.read_or_init(self.uid, site, self.scope.path, default)
        value = update(previous)
        self.store.commit(self.uid, site, self.scope.path, value)
        return value

    def constant(self, label: str, factory: Callable[[], T]) -> T:
        """Return the value `factory()` produced the first time this site ran."""
        site = self.site(label)
        previous = self.store.read_or_init(self.uid, site, self.scope.path, _UNSET)
        value = factory() if previous is _UNSET else previous
        self.store.commit(self.uid, site, self.scope.path, value)
        return value

    def consecutive(self, label: str, condition: bool) -> int:
        """Return for how many consecutive rounds (this one included) `condition` held."""
        return self.rep(label, 0, lambda count: count + 1 if condition else 0)

    # ----- Neighbourhood ------------------------------------------------------

    def nbr(self, label: str, value: Any) -> Dict[int, Any]:
        """Export `value` and return the values neighbours exported at this site."""
        site = self.site(label)
        self.channel.export(self.uid, site, self.scope.path, self.round, value)
        return self.channel.import_values(self.uid, site, self.scope.path, self.round)

    def nbr_dist(self) -> Dict[int, float]:
        """Return `{neighbour: distance}` for the current neighbourhood."""
        return dict(self._neighbours)

    def hood(self, label: str, value: Any, include_self: bool = True) -> List[Any]:
        """Return the neighbourhood values of `value`, own value first when included."""
        values = list(self.nbr(label, value).values())
        if include_self:
            values.insert(0, value)
        return values

    def sum_hood(self, label: str, value: float, include_self: bool = True) -> float:
        return sum(self.hood(label, value, include_self))

    def count_hood(self, label: str, flag: bool, include_self: bool = True) -> int:
        """Count the neighbourhood members for which `flag` holds."""
        return sum(1 for v in self.hood(label, bool(flag), include_self) if v)

    def max_hood(self, label: str, value: Any, default: Any = None, include_self: bool = True) -> Any:
        values = self.hood(label, value, include_self)
        return max(values) if values else default

    def any_hood(self, label: str, flag: bool, include_self: bool = True) -> bool:
        return any(self.hood(label, bool(flag), include_self))

    def all_hood(self, label: str, flag: bool, include_self: bool = True) -> bool:
        return all(self.hood(label, bool(flag), include_self))

    # ----- World access -------------------------------------------------------

    def node_position(self, uid: int) -> Optional[Vector2D]:
        """Return the start-of-round position of device `uid`, if it is live."""
        if uid == self.uid:
            return self.position
        return self._positions.get(uid)

    def rollback(self) -> None:
        """Undo the side effects on the device random generator."""
        self.random.setstate(self._rng_state)


def execute_round(device, program: Callable[[RoundContext], Any], **context) -> RoundContext:
    """
    Run `program` for `device` and commit its round atomically.

    The round state and the exports are closed only when the program
    returns; if it raises, every staged write is dropped and the exception
    propagates.
    """
    store = context["store"]
    channel = context["channel"]
    store.begin_round(device.uid, context["round_index"])
    ctx = RoundContext(device, **context)
    try:
        program(ctx)
    except Exception:
        store.abort_round(device.uid)
        channel.discard(device.uid)
        ctx.rollback()
        logger.error("%s failed in round %s", device.get_name(), ctx.round)
        raise
    store.end_round(device.uid)
    channel.publish(device.uid)
    device.set_position(ctx.position)
    device.storage = ctx.storage
    device.rounds += 1
    return ctx
