# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Neighbour exchange between devices (protected core module)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, Iterable, List, Optional, Tuple

from geometry_utils.spatialgrid import SpatialGrid
from plugin_registry import (
    available_exchange_channels,
    get_exchange_channel,
    register_exchange_channel,
)
from round_state import RoundStateError

logger = logging.getLogger("sim.exchange")

ExportKey = Tuple[Tuple[str, ...], Tuple[Hashable, ...]]
ExportRecord = Tuple[int, Any]


class BaseExchangeChannel:
    """
    Base implementation shared by all channels.

    Every device exports at most one value per (call-site, partition path)
    and round. Exports stay private to the exporting device until its round
    is published; once published they are visible to the device's current
    neighbours from the following round on, for `retain` rounds. Derived
    classes only decide who the neighbours are.

    Devices publish one after the other within a round, so each device
    keeps a short history per key: a round-r publish must not hide the
    round r-1 export from neighbours that run later in round r.
    """

    def __init__(self, config: Optional[dict] = None) -> None:
        """Initialize the instance."""
        self.global_config = config or {}
        self.comm_range = float(self.global_config.get("communication_range", 100.0))
        self.retain = int(self.global_config.get("retain_rounds", 1))
        if self.retain < 1:
            raise ValueError(f"Retention window must be at least one round, got {self.retain}")
        self.participants: Dict[int, Any] = {}
        self._neighbours: Dict[int, Dict[int, float]] = {}
        self._records: Dict[ExportKey, Dict[int, List[ExportRecord]]] = {}
        self._staged: Dict[int, Dict[ExportKey, ExportRecord]] = {}

    def sync_devices(self, devices: Iterable[Any]) -> None:
        """Synchronise participants and rebuild every neighbourhood."""
        self.participants = {device.uid: device for device in devices if device is not None}
        self._neighbours = {
            uid: dict(self._select_neighbours(device))
            for uid, device in self.participants.items()
        }
        if logger.isEnabledFor(logging.DEBUG):
            links = sum(len(n) for n in self._neighbours.values())
            logger.debug("Exchange synced %d devices (%d directed links)", len(self.participants), links)

    def neighbours(self, device: int) -> Dict[int, float]:
        """Return `{neighbour uid: distance}` for `device`."""
        return dict(self._neighbours.get(device, {}))

    def export(self, device: int, site, partition_path, round_index: int, value: Any) -> None:
        """Stage `value` as the export of `device` for the given call-site."""
        key = (tuple(site), tuple(partition_path))
        staged = self._staged.setdefault(device, {})
        if key in staged:
            raise RoundStateError(
                f"device {device} exported call-site {'/'.join(key[0])} twice under partition "
                f"{key[1]!r} in round {round_index}"
            )
        staged[key] = (round_index, value)

    def publish(self, device: int) -> None:
        """Make every export staged by `device` visible to its neighbours."""
        for key, record in self._staged.pop(device, {}).items():
            history = self._records.setdefault(key, {}).setdefault(device, [])
            history[:] = [entry for entry in history if entry[0] < record[0]][-1:]
            history.append(record)

    def discard(self, device: int) -> None:
        """Drop the exports staged by `device` in an aborted round."""
        self._staged.pop(device, None)

    def import_values(self, device: int, site, partition_path, round_index: int) -> Dict[int, Any]:
        """
        Return the freshest value exported by each current neighbour of
        `device` at the given call-site, restricted to exports made in
        rounds `[round_index - retain, round_index - 1]`.
        """
        key = (tuple(site), tuple(partition_path))
        records = self._records.get(key)
        if not records:
            return {}
        neighbours = self._neighbours.get(device, {})
        oldest = round_index - self.retain
        values = {}
        for uid, history in records.items():
            if uid == device or uid not in neighbours:
                continue
            for exported_at, value in reversed(history):
                if exported_at <= round_index - 1:
                    if exported_at >= oldest:
                        values[uid] = value
                    break
        return values

    def expire(self, round_index: int) -> int:
        """
        Drop the exports no import from `round_index` on can see: those out
        of the retention window and those superseded by a newer visible
        export of the same device. Return how many were dropped.
        """
        oldest = round_index - self.retain
        dropped = 0
        for key in list(self._records.keys()):
            records = self._records[key]
            for uid in list(records.keys()):
                history = records[uid]
                visible = [entry for entry in history if entry[0] <= round_index - 1]
                keep = [entry for entry in visible[-1:] if entry[0] >= oldest]
                keep.extend(entry for entry in history if entry[0] > round_index - 1)
                dropped += len(history) - len(keep)
                if keep:
                    records[uid] = keep
                else:
                    del records[uid]
            if not records:
                del self._records[key]
        if dropped and logger.isEnabledFor(logging.DEBUG):
            logger.debug("Expired %d exports before round %d", dropped, round_index)
        return dropped

    def close(self) -> None:
        """Close the component resources."""
        self._records.clear()
        self._staged.clear()
        self._neighbours.clear()
        self.participants.clear()

    # ----- Internal utilities -------------------------------------------------

    def _select_neighbours(self, device: Any) -> Iterable[Tuple[int, float]]:
        """Return iterable of `(uid, distance)` pairs for the neighbours of `device`."""
        _ = device
        return []


class SpatialExchangeChannel(BaseExchangeChannel):
    """
    Default channel: devices within a fixed communication range are neighbours.
    """

    def __init__(self, config: Optional[dict] = None) -> None:
        """Initialize the instance."""
        super().__init__(config)
        cell_size = max(self.comm_range, 0.01)
        self.grid = SpatialGrid(cell_size)

    def sync_devices(self, devices: Iterable[Any]) -> None:
        """Sync devices."""
        devices = [device for device in devices if device is not None]
        self.grid.clear()
        for device in devices:
            self.grid.insert(device)
        super().sync_devices(devices)

    def _select_neighbours(self, device: Any) -> Iterable[Tuple[int, float]]:
        """Select the neighbours."""
        return self.grid.neighbors(device, self.comm_range).items()

    def close(self) -> None:
        """Close the component resources."""
        self.grid.close()
        super().close()


class GlobalExchangeChannel(BaseExchangeChannel):
    """
    Channel connecting every live device with every other one.
    """

    def _select_neighbours(self, device: Any) -> Iterable[Tuple[int, float]]:
        """Select the neighbours."""
        position = device.get_position()
        for uid, other in self.participants.items():
            if uid == device.uid:
                continue
            yield uid, other.get_position().distance_to(position)


class ExchangeChannelFactory:
    """Helper responsible for instantiating the appropriate channel."""

    DEFAULT_CHANNEL = "spatial"

    @staticmethod
    def create(config: Optional[dict] = None) -> BaseExchangeChannel:
        """Create value."""
        config = config or {}
        name = str(config.get("channel") or ExchangeChannelFactory.DEFAULT_CHANNEL).strip().lower()
        channel = get_exchange_channel(name, config)
        if channel is None:
            available = ", ".join(sorted(available_exchange_channels().keys()))
            raise ValueError(f"Exchange channel '{name}' is not registered. Available: {available}")
        logger.info(
            "Exchange channel '%s' ready (range=%s, retain=%s rounds)",
            name,
            channel.comm_range,
            channel.retain
        )
        return channel


def _register_builtin_channels() -> None:
    """Register builtin channels."""
    register_exchange_channel("spatial", lambda config: SpatialExchangeChannel(config))
    register_exchange_channel("global", lambda config: GlobalExchangeChannel(config))


_register_builtin_channels()
