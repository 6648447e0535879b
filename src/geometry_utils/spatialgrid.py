# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

from collections import defaultdict

class SpatialGrid:
    """Uniform bucket grid used to find devices within communication range."""
    def __init__(self, cell_size):
        """Initialize the instance."""
        self.cell_size = cell_size
        self.grid = defaultdict(list)

    def _cell_coords(self, pos):
        """Cell coords."""
        return (int(pos.x // self.cell_size), int(pos.y // self.cell_size))

    def clear(self):
        """Clear the stored data."""
        self.grid.clear()

    def insert(self, device):
        """Insert the provided entry."""
        cell = self._cell_coords(device.get_position())
        self.grid[cell].append(device)

    def neighbors(self, device, radius):
        """Return `{uid: distance}` for every other device within `radius`."""
        pos = device.get_position()
        cell_x, cell_y = self._cell_coords(pos)
        reach = max(1, int(radius // self.cell_size) + 1)
        neighbors = {}
        for dx in range(-reach, reach + 1):
            for dy in range(-reach, reach + 1):
                for other in self.grid.get((cell_x + dx, cell_y + dy), []):
                    if other is device:
                        continue
                    dist = other.get_position().distance_to(pos)
                    if dist <= radius:
                        neighbors[other.uid] = dist
        return neighbors

    def close(self):
        """Close the component resources."""
        self.grid.clear()
