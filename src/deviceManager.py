# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""DeviceManager: advances rounds and synchronises devices with the shared stores."""
import logging
from typing import Optional
import numpy as np
from config import Config
from device import DeviceFactory
from exchange_channel import ExchangeChannelFactory
from plugin_registry import available_navigators, get_navigator
from program import DeviceProgram
from round_context import execute_round
from round_state import RoundStateStore
import navigation  # noqa: F401  # ensure built-in navigators register themselves

logger = logging.getLogger("sim.device_manager")

class DeviceManager:
    """
    Device manager.

    Rounds are synchronous: at round r (simulated time r * period) every
    spawned device runs the program against the neighbourhood and positions
    of the start of the round, then its state, exports and position are
    committed. Exports become visible to neighbours from round r + 1.
    """
    def __init__(self, experiment: Config, data_handling=None):
        """Initialize the instance."""
        env = experiment.environment
        self.period = float(env.get("period", 1))
        self.time_limit = float(env.get("time_limit", 0))
        if self.time_limit <= 0:
            raise ValueError("Invalid configuration: 'time_limit' must be positive")
        self.map_cfg = experiment.map
        self.map_size = (float(self.map_cfg["width"]), float(self.map_cfg["height"]))
        self.exchange_cfg = experiment.exchange
        self.groups = experiment.groups
        self.data_handling = data_handling
        self.navigator = get_navigator(self.map_cfg.get("navigator", "open_space"), self.map_cfg)
        if self.navigator is None:
            names = ", ".join(sorted(available_navigators().keys()))
            raise ValueError(f"Navigator '{self.map_cfg.get('navigator')}' is not registered. Available: {names}")
        self.program = DeviceProgram(
            experiment.program,
            {"communication_range": self.exchange_cfg.get("communication_range", 100)}
        )
        self.devices = []
        self.store: Optional[RoundStateStore] = None
        self.channel = None
        logger.info("DeviceManager ready with groups: %s", [g["id"] for g in self.groups])

    @property
    def num_rounds(self) -> int:
        """Rounds in a run, time 0 and `time_limit` included."""
        return int(self.time_limit / self.period + 1e-9) + 1

    def initialize(self, random_seed: int):
        """Spawn fresh devices and empty stores for a new run."""
        logger.info("Initializing devices with random seed %s", random_seed)
        self.close()
        self.devices = []
        for group in self.groups:
            self.devices.extend(DeviceFactory.create_group(group, self.map_size, random_seed))
        self.store = RoundStateStore()
        self.channel = ExchangeChannelFactory.create(self.exchange_cfg)

    def live_devices(self, time: float) -> list:
        """Return the devices spawned at or before `time`."""
        return [device for device in self.devices if device.is_spawned(time)]

    def step(self, round_index: int) -> dict:
        """Run one synchronous round and return its aggregate record."""
        time = round_index * self.period
        live = self.live_devices(time)
        self.channel.sync_devices(live)
        positions = {device.uid: device.get_position() for device in live}
        for device in live:
            execute_round(
                device,
                self.program,
                round_index=round_index,
                time=time,
                period=self.period,
                store=self.store,
                channel=self.channel,
                navigator=self.navigator,
                map_size=self.map_size,
                positions=positions,
            )
        self.channel.expire(round_index + 1)
        record = self.aggregate(time, live)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("t=%.1f devices=%d consistency=%.3f", time, record["devices"], record["consistency"])
        return record

    def aggregate(self, time: float, live: list) -> dict:
        """Mean of the monitor verdicts across the live devices."""
        verdicts = np.array([bool(device.storage.get("consistency", True)) for device in live], dtype=float)
        return {
            "time": time,
            "devices": len(live),
            "consistency": float(verdicts.mean()) if len(verdicts) else 1.0,
        }

    def run(self, run: int, random_seed: int) -> list:
        """Run the simulation routine for one run and return the aggregate series."""
        self.initialize(random_seed)
        if self.data_handling is not None:
            self.data_handling.new_run(run)
        series = []
        logger.info("Run %s starting (%d rounds, period %s)", run, self.num_rounds, self.period)
        try:
            for round_index in range(self.num_rounds):
                record = self.step(round_index)
                series.append(record)
                if self.data_handling is not None:
                    live = self.live_devices(record["time"])
                    self.data_handling.save(
                        record,
                        [device.snapshot() for device in live],
                        force=round_index == self.num_rounds - 1
                    )
        finally:
            if self.data_handling is not None:
                self.data_handling.close()
        logger.info(
            "Run %s completed: final consistency %.3f",
            run,
            series[-1]["consistency"] if series else 1.0
        )
        return series

    def close(self):
        """Close the component resources."""
        if self.channel is not None:
            self.channel.close()
            self.channel = None
        self.store = None
