# tests/test_group_walk.py

import math

import pytest

from conftest import make_device
from device import kmh_to_mps
from geometry_utils.vector2D import NAN_VECTOR, Vector2D
from models.movement.common import follow_target
from models.movement.group_walk import (
    STUCK_ROUNDS,
    STUCK_WARMUP_TIME,
    GroupWalkMovement,
    choose_waypoint,
    reach_on_streets,
)
from plugin_registry import get_movement_model

LOW = Vector2D(0, 0)
HIGH = Vector2D(1200, 800)
EPS = 1e-9


class ScriptedNavigator:
    """Fake oracle: every point is navigable, way-points come from a script."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.queries = []

    def closest_navigable(self, point):
        return point

    def shortest_path_waypoint(self, start, goal):
        self.queries.append((start, goal))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0] if self.responses else None


def _positions(harness, program, rounds):
    """Run `rounds` rounds and record every device position after each round."""
    history = []
    for _ in range(rounds):
        harness.step(program)
        history.append({device.uid: device.get_position() for device in harness.devices})
    return history


class TestChooseWaypoint:

    def test_keeps_oracle_waypoint(self):
        point, reason = choose_waypoint(Vector2D(0, 0), Vector2D(100, 0), Vector2D(10, 10), LOW, HIGH, 0, 0)
        assert point == Vector2D(10, 10)
        assert reason is None

    @pytest.mark.parametrize("waypoint", [None, NAN_VECTOR])
    def test_undefined_waypoint_falls_back_to_target(self, waypoint):
        point, reason = choose_waypoint(Vector2D(0, 0), Vector2D(100, 0), waypoint, LOW, HIGH, 0, 0)
        assert point == Vector2D(100, 0)
        assert reason == "undefined way-point"

    def test_target_outside_map(self):
        point, reason = choose_waypoint(Vector2D(0, 0), Vector2D(-5, 0), Vector2D(1, 1), LOW, HIGH, 0, 0)
        assert point == Vector2D(-5, 0)
        assert reason == "target outside map"

    def test_waypoint_reached(self):
        point, reason = choose_waypoint(Vector2D(3, 3), Vector2D(100, 0), Vector2D(3.001, 3), LOW, HIGH, 0, 0)
        assert point == Vector2D(100, 0)
        assert reason == "way-point reached"

    def test_stuck_after_warmup(self):
        point, reason = choose_waypoint(
            Vector2D(0, 0), Vector2D(100, 0), Vector2D(10, 10), LOW, HIGH, STUCK_ROUNDS, STUCK_WARMUP_TIME + 1
        )
        assert point == Vector2D(100, 0)
        assert reason == "stuck"

    @pytest.mark.parametrize("slow_rounds, time", [(STUCK_ROUNDS - 1, 100.0), (STUCK_ROUNDS, STUCK_WARMUP_TIME)])
    def test_not_stuck_yet(self, slow_rounds, time):
        point, reason = choose_waypoint(Vector2D(0, 0), Vector2D(100, 0), Vector2D(10, 10), LOW, HIGH, slow_rounds, time)
        assert point == Vector2D(10, 10)
        assert reason is None


class TestReachOnStreets:

    def test_no_path_moves_straight_to_target(self, harness_factory):
        navigator = ScriptedNavigator(None)
        harness = harness_factory([make_device(1, 0, 0)], navigator=navigator)
        harness.step(lambda ctx: reach_on_streets(ctx, Vector2D(100, 0), 5.0, ctx.period))
        assert harness.devices[0].get_position().distance_to(Vector2D(5, 0)) == pytest.approx(0)
        assert navigator.queries == [(Vector2D(0, 0), Vector2D(100, 0))]

    def test_follows_oracle_waypoint(self, harness_factory):
        harness = harness_factory([make_device(1, 0, 0)], navigator=ScriptedNavigator(Vector2D(0, 50)))
        seen = harness.step(lambda ctx: reach_on_streets(ctx, Vector2D(100, 0), 5.0, ctx.period))
        assert harness.devices[0].get_position().distance_to(Vector2D(0, 5)) == pytest.approx(0)
        assert seen[1] == pytest.approx(50.0)

    def test_stops_on_the_target(self, harness_factory):
        harness = harness_factory([make_device(1, 0, 0)], navigator=ScriptedNavigator(None))
        harness.step(lambda ctx: reach_on_streets(ctx, Vector2D(3, 4), 10.0, ctx.period))
        assert harness.devices[0].get_position() == Vector2D(3, 4)

    def test_stuck_device_heads_to_target(self, harness_factory):
        # the oracle keeps pointing north while the target lies east
        harness = harness_factory([make_device(1, 0, 0)], navigator=ScriptedNavigator(Vector2D(0, 700)))
        program = lambda ctx: reach_on_streets(ctx, Vector2D(100, 0), 0.05, ctx.period)
        warmup_rounds = int(STUCK_WARMUP_TIME) + 1
        history = _positions(harness, program, warmup_rounds)
        assert all(p[1].x == 0 for p in history)
        assert history[-1][1].y == pytest.approx(0.05 * warmup_rounds)
        harness.step(program)
        assert harness.devices[0].get_position().x > 0


class TestGroupWalk:

    def test_single_leader_scenario(self, harness_factory):
        max_v = kmh_to_mps(20)
        assert max_v == pytest.approx(5.5556, abs=1e-4)
        leader = make_device(0, 600, 400, speed=max_v, seed=3)
        harness = harness_factory([leader])
        movement = GroupWalkMovement({})
        previous = leader.get_position()
        steps = []
        for _ in range(60):
            harness.step(movement.step)
            position = leader.get_position()
            steps.append(position - previous)
            assert position.inside(LOW, HIGH)
            assert (position - previous).magnitude() <= max_v + EPS
            previous = position
        # a held target is chased in a straight line at full speed
        assert steps[0].magnitude() == pytest.approx(max_v)
        assert steps[1].x == pytest.approx(steps[0].x)
        assert steps[1].y == pytest.approx(steps[0].y)

    def test_followers_stay_on_the_map_and_within_speed(self, harness_factory):
        leader = make_device(100, 1190, 790, speed=10.0, seed=1)
        followers = [make_device(100 + n, 20 * n, 30 * n, speed=4.0, offset=80.0, seed=1) for n in range(1, 6)]
        harness = harness_factory([leader] + followers)
        history = _positions(harness, GroupWalkMovement({}).step, 40)
        for before, after in zip(history, history[1:]):
            for follower in followers:
                position = after[follower.uid]
                assert position.inside(LOW, HIGH)
                assert (position - before[follower.uid]).magnitude() <= 4.0 + EPS

    def test_followers_snap_next_to_leader_on_first_round(self, harness_factory):
        leader = make_device(200, 500, 500, speed=1.0)
        follower = make_device(201, 10, 10, speed=1.0, offset=50.0)
        harness = harness_factory([leader, follower])
        harness.step(GroupWalkMovement({}).step)
        assert follower.get_position().distance_to(Vector2D(500, 500)) <= 50 * math.sqrt(2) + EPS

    def test_follower_offset_is_constant(self, harness_factory):
        leader = make_device(300, 500, 500, speed=0.0)
        follower = make_device(301, 10, 10, speed=100.0, offset=50.0)
        harness = harness_factory([leader, follower])
        history = _positions(harness, GroupWalkMovement({}).step, 5)
        assert len({(p[301].x, p[301].y) for p in history}) == 1

    def test_follower_without_leader_holds_position(self, harness_factory):
        follower = make_device(401, 100, 100, speed=5.0, offset=50.0)
        harness = harness_factory([follower])
        history = _positions(harness, GroupWalkMovement({}).step, 5)
        for positions in history:
            assert positions[401].x == pytest.approx(100)
            assert positions[401].y == pytest.approx(100)

    def test_registered_by_name(self):
        assert isinstance(get_movement_model("group_walk", {}), GroupWalkMovement)


def test_follow_target_returns_distance_before_moving(harness_factory):
    harness = harness_factory([make_device(1, 0, 0)])
    seen = harness.step(lambda ctx: follow_target(ctx, Vector2D(30, 40), 10.0, 1.0))
    assert seen[1] == pytest.approx(50.0)
    assert harness.devices[0].get_position().distance_to(Vector2D(6, 8)) == pytest.approx(0)
