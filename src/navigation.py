# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Navigation oracles answering map queries for the movement models.

Both oracles are deterministic: identical maps and queries give identical
answers. An undefined way-point is reported as None.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import List, Optional, Tuple

import numpy as np

from geometry_utils.vector2D import Vector2D
from plugin_registry import register_navigator

logger = logging.getLogger("sim.navigation")

Cell = Tuple[int, int]

_STEPS = [(-1, 0), (1, 0), (0, -1), (0, 1), (-1, -1), (-1, 1), (1, -1), (1, 1)]


class OpenSpaceNavigator:
    """Obstacle-free map: every point of the rectangle is reachable in a straight line."""

    def __init__(self, width: float, height: float) -> None:
        """Initialize the instance."""
        self.low = Vector2D(0, 0)
        self.high = Vector2D(width, height)

    def closest_navigable(self, point: Vector2D) -> Vector2D:
        """Clamp `point` into the map rectangle."""
        return point.clamp(self.low, self.high)

    def shortest_path_waypoint(self, start: Vector2D, goal: Vector2D) -> Optional[Vector2D]:
        """The goal itself is always the next way-point."""
        _ = start
        return goal


class GridNavigator:
    """
    Occupancy-grid map.

    `free[row, col]` is True where the cell of side `cell_size` whose lower
    corner is `(col * cell_size, row * cell_size)` can be crossed.
    """

    def __init__(self, free: np.ndarray, cell_size: float, width: float, height: float) -> None:
        """Initialize the instance."""
        self.free = np.asarray(free, dtype=bool)
        if self.free.ndim != 2:
            raise ValueError(f"Occupancy grid must be two-dimensional, got shape {self.free.shape}")
        if cell_size <= 0:
            raise ValueError(f"Grid cell size must be positive, got {cell_size}")
        self.cell_size = float(cell_size)
        self.low = Vector2D(0, 0)
        self.high = Vector2D(width, height)
        self.rows, self.cols = self.free.shape
        free_rows, free_cols = np.nonzero(self.free)
        self._free_centers = np.column_stack(
            ((free_cols + 0.5) * self.cell_size, (free_rows + 0.5) * self.cell_size)
        )
        logger.info(
            "Grid navigator ready: %dx%d cells of %.1f m, %d free",
            self.cols,
            self.rows,
            self.cell_size,
            len(self._free_centers)
        )

    @classmethod
    def from_image(cls, path: str, cell_size: float, width: float, height: float, threshold: float = 0.5):
        """
        Build the grid from an obstacle image stretched over the map.

        Pixels darker than `threshold` (on a 0-1 scale) are obstacles; the
        first image row lies at y = 0.
        """
        from matplotlib import image as mpimg

        img = np.asarray(mpimg.imread(path), dtype=float)
        if img.ndim == 3:
            img = img[..., :3].mean(axis=2)
        if img.max() > 1.0:
            img = img / 255.0
        rows = max(1, int(math.ceil(height / cell_size)))
        cols = max(1, int(math.ceil(width / cell_size)))
        # sample the pixel under each cell centre
        pix_rows = np.minimum(((np.arange(rows) + 0.5) * cell_size / height * img.shape[0]).astype(int), img.shape[0] - 1)
        pix_cols = np.minimum(((np.arange(cols) + 0.5) * cell_size / width * img.shape[1]).astype(int), img.shape[1] - 1)
        free = img[np.ix_(pix_rows, pix_cols)] >= threshold
        logger.info("Loaded obstacle map %s (%dx%d pixels)", path, img.shape[1], img.shape[0])
        return cls(free, cell_size, width, height)

    def cell_of(self, point: Vector2D) -> Cell:
        """Return the `(row, col)` of the cell containing `point` (clamped to the grid)."""
        col = int(point.x // self.cell_size)
        row = int(point.y // self.cell_size)
        return (min(max(row, 0), self.rows - 1), min(max(col, 0), self.cols - 1))

    def center_of(self, cell: Cell) -> Vector2D:
        row, col = cell
        return Vector2D((col + 0.5) * self.cell_size, (row + 0.5) * self.cell_size)

    def is_free(self, cell: Cell) -> bool:
        row, col = cell
        return 0 <= row < self.rows and 0 <= col < self.cols and bool(self.free[row, col])

    def closest_navigable(self, point: Vector2D) -> Vector2D:
        """Return `point` if it lies on a free cell, else the nearest free cell centre."""
        if point.is_nan():
            return point
        clamped = point.clamp(self.low, self.high)
        if self.is_free(self.cell_of(clamped)) or len(self._free_centers) == 0:
            return clamped
        dists = np.hypot(self._free_centers[:, 0] - clamped.x, self._free_centers[:, 1] - clamped.y)
        x, y = self._free_centers[int(np.argmin(dists))]
        return Vector2D(x, y)

    def shortest_path_waypoint(self, start: Vector2D, goal: Vector2D) -> Optional[Vector2D]:
        """
        Return the farthest cell of the shortest grid path to `goal` that is
        in straight-line sight from `start`, the goal itself when it is in
        sight, or None when no path exists.
        """
        if start.is_nan() or goal.is_nan():
            return None
        start_cell = self.cell_of(start)
        goal_cell = self.cell_of(goal)
        if not self.is_free(goal_cell):
            return None
        if start_cell == goal_cell or self.line_of_sight(start, goal):
            return goal
        path = self._search(start_cell, goal_cell)
        if path is None:
            return None
        waypoint = path[1] if len(path) > 1 else goal_cell
        for cell in path[1:]:
            if not self.line_of_sight(start, self.center_of(cell)):
                break
            waypoint = cell
        if waypoint == goal_cell:
            return goal
        return self.center_of(waypoint)

    def line_of_sight(self, a: Vector2D, b: Vector2D) -> bool:
        """Return True if the segment from `a` to `b` crosses free cells only."""
        dist = a.distance_to(b)
        steps = max(1, int(math.ceil(dist / (self.cell_size * 0.5))))
        for i in range(1, steps + 1):
            t = i / steps
            if not self.is_free(self.cell_of(Vector2D(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t))):
                return False
        return True

    def _search(self, start: Cell, goal: Cell) -> Optional[List[Cell]]:
        """Breadth-first search on the 8-connected grid without corner cutting."""
        parent = {start: start}
        queue = deque([start])
        while queue:
            cell = queue.popleft()
            if cell == goal:
                break
            row, col = cell
            for dr, dc in _STEPS:
                nxt = (row + dr, col + dc)
                if nxt in parent or not self.is_free(nxt):
                    continue
                if dr and dc and not (self.is_free((row + dr, col)) and self.is_free((row, col + dc))):
                    continue
                parent[nxt] = cell
                queue.append(nxt)
        if goal not in parent:
            return None
        path = [goal]
        while path[-1] != start:
            path.append(parent[path[-1]])
        path.reverse()
        return path


def _create_open_space(config: dict) -> OpenSpaceNavigator:
    """Factory registered in the plugin registry."""
    return OpenSpaceNavigator(float(config.get("width", 1200)), float(config.get("height", 800)))


def _create_grid(config: dict) -> GridNavigator:
    """Factory registered in the plugin registry."""
    width = float(config.get("width", 1200))
    height = float(config.get("height", 800))
    cell_size = float(config.get("cell_size", 10))
    obstacles = config.get("obstacles")
    if not obstacles:
        raise ValueError("The 'grid' navigator requires 'map.obstacles' (path to an obstacle image)")
    return GridNavigator.from_image(obstacles, cell_size, width, height, float(config.get("threshold", 0.5)))


register_navigator("open_space", _create_open_space)
register_navigator("grid", _create_grid)
