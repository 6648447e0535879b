# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import math

class Vector2D:
    """Planar vector used for device positions, targets and velocities."""
    __slots__ = ("x", "y")

    def __init__(self, x:float=0, y:float=0):
        """Initialize the instance."""
        self.x = float(x)
        self.y = float(y)

    def __add__(self, other):
        """Provide the add."""
        return Vector2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other):
        """Provide the sub."""
        return Vector2D(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar):
        """Provide the mul."""
        return Vector2D(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar):
        """Provide the truediv."""
        return Vector2D(self.x / scalar, self.y / scalar)

    def __eq__(self, other):
        if not isinstance(other, Vector2D):
            return NotImplemented
        return self.x == other.x and self.y == other.y

    def __hash__(self):
        return hash((self.x, self.y))

    def __iter__(self):
        yield self.x
        yield self.y

    def dot(self, other):
        """Provide the dot."""
        return self.x * other.x + self.y * other.y

    def magnitude(self):
        """Provide the magnitude."""
        return math.hypot(self.x, self.y)

    def distance_to(self, other):
        """Euclidean distance to `other`."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def normalize(self):
        """Normalize the vector."""
        mag = self.magnitude()
        if mag == 0:
            return Vector2D()
        return self / mag

    def is_nan(self):
        """Return True when any coordinate is undefined."""
        return math.isnan(self.x) or math.isnan(self.y)

    def clamp(self, low, high):
        """Clamp both coordinates into the [low, high] rectangle."""
        return Vector2D(
            max(low.x, min(self.x, high.x)),
            max(low.y, min(self.y, high.y))
        )

    def inside(self, low, high):
        """Return True if the point lies in the closed [low, high] rectangle."""
        return low.x <= self.x <= high.x and low.y <= self.y <= high.y

    def to_tuple(self):
        return (self.x, self.y)

    def __repr__(self) -> str:
        """Return the string representation."""
        return f"Vector2D({self.x}, {self.y})"

NAN_VECTOR = Vector2D(math.nan, math.nan)
