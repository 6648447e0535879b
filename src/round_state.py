# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Round-persistent memory for call-sites.

Every device owns one slot per (call-site, partition path). A slot read
during round r returns what the same device committed at that slot during
round r-1; the value staged during round r becomes visible only when the
device's round is closed with `end_round`. Slots that were not touched in a
round are dropped at the end of that round, so a read never reaches further
back than the previous round.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, Tuple

logger = logging.getLogger("sim.round_state")

SiteKey = Tuple[str, ...]
PartitionPath = Tuple[Hashable, ...]
SlotKey = Tuple[SiteKey, PartitionPath]


class RoundStateError(RuntimeError):
    """Raised when a slot is used outside an active round or twice in one round."""


class RoundStateStore:
    """Per-device mapping of call-site slots, committed once per round."""

    def __init__(self) -> None:
        """Initialize the instance."""
        self._committed: Dict[int, Dict[SlotKey, Any]] = {}
        self._staged: Dict[int, Dict[SlotKey, Any]] = {}
        self._visited: Dict[int, set] = {}
        self._active_round: Dict[int, int] = {}

    def begin_round(self, device: int, round_index: int) -> None:
        """Open `round_index` for `device`."""
        if device in self._active_round:
            raise RoundStateError(
                f"device {device} is already running round {self._active_round[device]}"
            )
        self._active_round[device] = round_index
        self._staged[device] = {}
        self._visited[device] = set()

    def read_or_init(self, device: int, site: SiteKey, partition_path: PartitionPath, default: Any) -> Any:
        """Return last round's value of the slot, or `default` on first use."""
        key = self._checked_key(device, site, partition_path, "read")
        visited = self._visited[device]
        if key in visited:
            raise RoundStateError(
                f"call-site {'/'.join(site)} evaluated twice under partition {partition_path!r} "
                f"in round {self._active_round[device]} of device {device}"
            )
        visited.add(key)
        return self._committed.get(device, {}).get(key, default)

    def commit(self, device: int, site: SiteKey, partition_path: PartitionPath, value: Any) -> None:
        """Stage `value` as the slot content for the next round."""
        key = self._checked_key(device, site, partition_path, "write")
        self._visited[device].add(key)
        self._staged[device][key] = value

    def end_round(self, device: int) -> None:
        """Close the device round, replacing its state with the staged slots."""
        if device not in self._active_round:
            raise RoundStateError(f"device {device} has no active round to close")
        self._committed[device] = self._staged.pop(device)
        self._visited.pop(device, None)
        self._active_round.pop(device)

    def abort_round(self, device: int) -> None:
        """Discard everything staged by `device` in its current round."""
        if self._active_round.pop(device, None) is None:
            return
        self._staged.pop(device, None)
        self._visited.pop(device, None)
        logger.debug("device %s round aborted, state left at previous round", device)

    def slots(self, device: int) -> Dict[SlotKey, Any]:
        """Return a copy of the committed slots of `device`."""
        return dict(self._committed.get(device, {}))

    def _checked_key(self, device: int, site: SiteKey, partition_path: PartitionPath, action: str) -> SlotKey:
        """Validate the access and build the slot key."""
        if device not in self._active_round:
            raise RoundStateError(
                f"attempted to {action} call-site {'/'.join(site)} of device {device} outside an active round"
            )
        return (tuple(site), tuple(partition_path))
