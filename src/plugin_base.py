# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Core plugin base classes used by the simulator.

The aggregate program run by every device is assembled from three kinds of
models (movement, detection, logic) looked up by name in the registry.
Models are stateless: whatever they need to remember between rounds is
kept in the round context they receive, never on the model instance, so a
single instance can serve every device.
"""

from typing import Any, Dict, Iterable, Optional, Protocol

class MovementModel(Protocol):
    """
    Interface for movement models.

    A movement model updates the working position of the device owning
    `ctx` for the current round.
    """
    def step(self, ctx: Any) -> None:
        """Advance the device of `ctx` by one round."""

class DetectionModel(Protocol):
    """
    Interface for proposition/perception components.

    Detection models turn the neighbourhood seen by the device into named
    boolean propositions consumed by logic models.
    """
    def sense(self, ctx: Any) -> Dict[str, bool]:
        """Return the propositions computed for the device of `ctx`."""

class LogicModel(Protocol):
    """
    Interface for monitors evaluated after detection.

    `storage_key` names the storage attribute receiving the verdict.
    """
    storage_key: str

    def evaluate(self, ctx: Any, propositions: Dict[str, bool]) -> bool:
        """Return this round's verdict for the device of `ctx`."""

class ExchangeChannelModel(Protocol):
    """
    Interface for neighbour exchange implementations.

    Channels decide who the neighbours of a device are and keep exported
    values visible for a bounded number of rounds.
    """
    def sync_devices(self, devices: Iterable[Any]) -> None:
        """Rebuild neighbourhoods from the current world snapshot."""

    def neighbours(self, device: int) -> Dict[int, float]:
        """Return `{neighbour: distance}` for `device`."""

    def export(self, device: int, site, partition_path, round_index: int, value: Any) -> None:
        """Stage an export of `device`."""

    def publish(self, device: int) -> None:
        """Make the staged exports of `device` visible."""

    def discard(self, device: int) -> None:
        """Drop the staged exports of `device`."""

    def import_values(self, device: int, site, partition_path, round_index: int) -> Dict[int, Any]:
        """Return the neighbour values visible to `device`."""

    def expire(self, round_index: int) -> int:
        """Drop exports older than the retention window."""

    def close(self) -> None:
        """Release any resources retained by the channel."""

class NavigationOracle(Protocol):
    """
    Interface for map navigation.

    Implementations must be deterministic for an identical map.
    """
    def closest_navigable(self, point: Any) -> Any:
        """Return the navigable point closest to `point`."""

    def shortest_path_waypoint(self, start: Any, goal: Any) -> Optional[Any]:
        """Return the next way-point from `start` towards `goal`, or None when undefined."""
