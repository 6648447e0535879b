# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

from geometry_utils.vector2D import Vector2D

def random_rectangle_target(ctx, low: Vector2D, high: Vector2D) -> Vector2D:
    """Draw a point uniformly inside the [low, high] rectangle."""
    rng = ctx.random
    return Vector2D(rng.uniform(low.x, high.x), rng.uniform(low.y, high.y))

def follow_target(ctx, target: Vector2D, max_v: float, period: float) -> float:
    """
    Move towards `target` covering at most `max_v * period` this round.

    Returns the distance to `target` measured before moving.
    """
    delta = target - ctx.position
    dist = delta.magnitude()
    step = max_v * period
    if dist > step:
        ctx.position = ctx.position + delta * (step / dist)
    else:
        ctx.position = target
    return dist
