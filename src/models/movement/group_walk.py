# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import logging
from plugin_base import MovementModel
from plugin_registry import register_movement_model
from models.movement.common import follow_target, random_rectangle_target
from geometry_utils.vector2D import Vector2D

logger = logging.getLogger("sim.movement.group_walk")

VELOCITY_SMOOTHING = 0.75
WAYPOINT_EPSILON = 0.01
STUCK_SPEED = 0.1
STUCK_ROUNDS = 10
STUCK_WARMUP_TIME = 50.0

def choose_waypoint(position, target, waypoint, low, high, slow_rounds: int, time: float):
    """
    Pick the point to head to this round.

    The oracle way-point is replaced by the raw target when it is undefined,
    when the target is off the map, when the way-point is already reached, or
    when the device has been crawling for `STUCK_ROUNDS` rounds after the
    warm-up time. Returns the chosen point and the reason of the fallback
    (None when the oracle way-point is kept).
    """
    if waypoint is None or waypoint.is_nan():
        return target, "undefined way-point"
    if not target.inside(low, high):
        return target, "target outside map"
    if position.distance_to(waypoint) < WAYPOINT_EPSILON:
        return target, "way-point reached"
    if slow_rounds >= STUCK_ROUNDS and time > STUCK_WARMUP_TIME:
        return target, "stuck"
    return waypoint, None

def reach_on_streets(ctx, target: Vector2D, max_v: float, period: float) -> float:
    """
    Reach `target` following the navigable map.

    Returns the distance to the chosen way-point before moving.
    """
    with ctx.call("reach_on_streets"):
        last_position = ctx.old("position", ctx.position, ctx.position)
        displacement = ctx.position - last_position
        k = VELOCITY_SMOOTHING
        velocity = ctx.rep("velocity", Vector2D(), lambda v: v * k + displacement * (1 - k))
        slow_rounds = ctx.consecutive("slow", velocity.magnitude() < STUCK_SPEED)
        target = ctx.navigator.closest_navigable(target)
        waypoint = ctx.navigator.shortest_path_waypoint(ctx.position, target)
        waypoint, reason = choose_waypoint(ctx.position, target, waypoint, ctx.low, ctx.high, slow_rounds, ctx.time)
        if reason is not None and logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s heads straight to %s (%s)", ctx.device.get_name(), target, reason)
        return follow_target(ctx, waypoint, max_v, period)

class GroupWalkMovement(MovementModel):
    """
    Leaders wander to random targets on the map; followers chase their
    leader, each keeping its own random offset.
    """
    def __init__(self, config: dict):
        """Initialize the instance."""
        self.config = config

    def step(self, ctx) -> None:
        """Execute the simulation step."""
        with ctx.call("group_walk"):
            max_v = float(ctx.storage.get("speed", 0.0))
            first_round = ctx.old("first_round", True, False)
            if ctx.device.is_leader():
                self._lead(ctx, max_v, first_round)
            else:
                self._follow(ctx, max_v, first_round)

    def _lead(self, ctx, max_v: float, first_round: bool) -> None:
        """Random walk with targets held until reached."""
        if first_round:
            ctx.position = ctx.navigator.closest_navigable(ctx.position)
        with ctx.call("leader"):
            fresh = random_rectangle_target(ctx, ctx.low, ctx.high)

            def retarget(held):
                dist = reach_on_streets(ctx, held, max_v, ctx.period)
                return held if dist > max_v * ctx.period else fresh

            target = ctx.rep("target", fresh, retarget)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s leading towards %s", ctx.device.get_name(), target)

    def _follow(self, ctx, max_v: float, first_round: bool) -> None:
        """Chase the leader's current position up to a fixed random offset."""
        radius = float(ctx.storage.get("offset", 0.0))
        with ctx.call("follower"):
            offset = ctx.constant(
                "offset",
                lambda: random_rectangle_target(ctx, Vector2D(-radius, -radius), Vector2D(radius, radius))
            )
            leader_position = ctx.node_position(ctx.device.leader)
            if leader_position is None:
                logger.debug("%s cannot see leader %s, holding position", ctx.device.get_name(), ctx.device.leader)
                leader_position = ctx.position - offset
            target = (offset + leader_position).clamp(ctx.low, ctx.high)
            if first_round:
                ctx.position = ctx.navigator.closest_navigable(target)
            else:
                reach_on_streets(ctx, target, max_v, ctx.period)

register_movement_model("group_walk", lambda config: GroupWalkMovement(config))
