# tests/conftest.py
#
# Test configuration and shared fixtures for pytest

"""Shared fixtures for the simulator tests.

Puts `src/` (flat module layout) and the repository root (for the example
plugins) on `sys.path`, and provides a small round scheduler that drives
device programs through `execute_round` the same way `DeviceManager` does,
without the config and results layers.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
for path in (project_root / "src", project_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from device import Device  # noqa: E402
from exchange_channel import GlobalExchangeChannel  # noqa: E402
from geometry_utils.vector2D import Vector2D  # noqa: E402
from navigation import OpenSpaceNavigator  # noqa: E402
from round_context import execute_round  # noqa: E402
from round_state import RoundStateStore  # noqa: E402


class RoundHarness:
    """Synchronous scheduler over a fixed set of devices."""

    def __init__(self, devices, channel=None, navigator=None, period=1.0, map_size=(1200.0, 800.0)):
        self.devices = list(devices)
        self.store = RoundStateStore()
        self.channel = channel or GlobalExchangeChannel({"retain_rounds": 3})
        self.navigator = navigator or OpenSpaceNavigator(*map_size)
        self.period = period
        self.map_size = map_size
        self.round = 0

    def step(self, program):
        """Run one round of `program` on every device; return `{uid: program result}`."""
        results = {}
        self.channel.sync_devices(self.devices)
        positions = {device.uid: device.get_position() for device in self.devices}
        for device in self.devices:
            execute_round(
                device,
                lambda ctx: results.__setitem__(ctx.uid, program(ctx)),
                round_index=self.round,
                time=self.round * self.period,
                period=self.period,
                store=self.store,
                channel=self.channel,
                navigator=self.navigator,
                map_size=self.map_size,
                positions=positions,
            )
        self.channel.expire(self.round + 1)
        self.round += 1
        return results

    def run(self, program, rounds):
        """Run `rounds` rounds and return the list of per-round results."""
        return [self.step(program) for _ in range(rounds)]


def make_device(uid, x=0.0, y=0.0, speed=0.0, offset=0.0, seed=0):
    """Build a seeded device at `(x, y)`; `speed` is already in m/s."""
    device = Device(uid, Vector2D(x, y), speed=speed, offset=offset)
    device.set_random_generator(seed)
    return device


@pytest.fixture
def harness_factory():
    """Return the `RoundHarness` class for building schedulers inside tests."""
    return RoundHarness


@pytest.fixture
def device_factory():
    """Return the `make_device` helper."""
    return make_device
