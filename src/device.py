# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Devices taking part in the simulation.

A device is identified by a non-negative uid that also encodes its group:
all devices sharing `uid - uid % MAX_GROUP_SIZE` form a group, and the device
whose uid equals that value leads it.
"""
import hashlib, logging
from random import Random
from geometry_utils.vector2D import Vector2D

logger = logging.getLogger("sim.device")

MAX_GROUP_SIZE = 100

# Storage attributes written by the device program and read by the sink.
STORAGE_DEFAULTS = {
    "speed": 0.0,
    "offset": 0.0,
    "node_color": "green",
    "node_size": 10.0,
    "node_shape": "sphere",
    "consistency": True,
    "debug": "",
}

def splitmix32(x):
    x = (x + 0x9E3779B97F4A7C15) & 0xFFFFFFFFFFFFFFFF
    x = (x ^ (x >> 30)) * 0xBF58476D1CE4E5B9 & 0xFFFFFFFFFFFFFFFF
    x = (x ^ (x >> 27)) * 0x94D049BB133111EB & 0xFFFFFFFFFFFFFFFF
    x = x ^ (x >> 31)
    return x & 0xFFFFFFFF

def make_device_seed(global_seed, stream, uid):
    """Derive an independent, reproducible seed for one random stream of a device."""
    base = f"{global_seed}|{stream}|{uid}"
    h1 = hashlib.sha256(base.encode()).digest()
    h2 = hashlib.blake2s(h1).digest()
    x = int.from_bytes(h2[:8], "little")
    return splitmix32(x)

def kmh_to_mps(speed_kmh: float) -> float:
    """Convert a speed from km/h to m/s."""
    return speed_kmh * 1000.0 / 3600.0

def leader_of(uid: int) -> int:
    """Return the uid of the leader of the group of `uid`."""
    return uid - (uid % MAX_GROUP_SIZE)

def group_of(uid: int) -> int:
    """Return the group key of `uid`."""
    return uid // MAX_GROUP_SIZE

class Device:
    """Simulated mobile device."""
    def __init__(self, uid: int, position: Vector2D, spawn_time: float = 0.0, speed: float = 0.0, offset: float = 0.0):
        """Initialize the instance."""
        if uid < 0:
            raise ValueError(f"Device uid must be non-negative, got {uid}")
        self.uid = int(uid)
        self.spawn_time = float(spawn_time)
        self.position = position
        self.storage = dict(STORAGE_DEFAULTS)
        self.storage["speed"] = float(speed)
        self.storage["offset"] = float(offset)
        self.random_generator = Random()
        self.rounds = 0

    def get_name(self):
        """Return the name."""
        return f"device_{self.uid}"

    @property
    def leader(self) -> int:
        return leader_of(self.uid)

    @property
    def group(self) -> int:
        return group_of(self.uid)

    def is_leader(self) -> bool:
        """Return True if this device leads its group."""
        return self.uid == self.leader

    def get_position(self) -> Vector2D:
        """Return the position."""
        return self.position

    def set_position(self, new_position: Vector2D):
        """Set the position."""
        self.position = new_position

    def is_spawned(self, time: float) -> bool:
        """Return True once the simulated clock reached the spawn time."""
        return time >= self.spawn_time

    def set_random_generator(self, random_seed):
        """Set the random generator."""
        seed = make_device_seed(random_seed, "program", self.uid)
        self.random_generator.seed(seed)
        logger.debug("%s seeded RNG with %s", self.get_name(), seed)

    def get_random_generator(self):
        """Return the random generator."""
        return self.random_generator

    def snapshot(self) -> dict:
        """Return the per-device record handed to the data sink."""
        record = {"uid": self.uid, "x": self.position.x, "y": self.position.y}
        record.update(self.storage)
        return record

    def __repr__(self) -> str:
        return f"Device(uid={self.uid}, position={self.position!r})"

class DeviceFactory:
    """Device factory."""
    @staticmethod
    def create_group(group: dict, map_size: tuple, random_seed: int = 0):
        """
        Create the devices of a spawn group.

        Uids form the arithmetic sequence `MAX_GROUP_SIZE * id + n` and the
        start positions are uniform in the map rectangle.
        """
        width, height = map_size
        base_uid = MAX_GROUP_SIZE * int(group["id"])
        devices = []
        for n in range(int(group["size"])):
            uid = base_uid + n
            rng = Random(make_device_seed(random_seed, "spawn", uid))
            position = Vector2D(rng.uniform(0, width), rng.uniform(0, height))
            device = Device(
                uid,
                position,
                spawn_time=group.get("start_time", 0),
                speed=kmh_to_mps(float(group.get("speed", 0))),
                offset=float(group.get("radius", 0))
            )
            device.set_random_generator(random_seed)
            devices.append(device)
        logger.info(
            "Created group %s: %d devices, radius %s, speed %.2f m/s",
            group["id"],
            len(devices),
            group.get("radius", 0),
            kmh_to_mps(float(group.get("speed", 0)))
        )
        return devices
