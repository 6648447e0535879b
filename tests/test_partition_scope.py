# tests/test_partition_scope.py

import pytest

from conftest import make_device
from partition_scope import PartitionScope


class TestPartitionScope:

    def test_nested_keys_concatenate(self):
        scope = PartitionScope()
        with scope.enter("a") as outer:
            assert outer == ("a",)
            with scope.enter(3) as inner:
                assert inner == ("a", 3)
                assert scope.depth == 2
            assert scope.path == ("a",)
        assert scope.path == ()

    def test_key_is_popped_when_body_raises(self):
        scope = PartitionScope(base=("root",))
        with pytest.raises(KeyError):
            with scope.enter("x"):
                raise KeyError("boom")
        assert scope.path == ("root",)

    def test_with_partition_returns_body_result(self):
        scope = PartitionScope()
        assert scope.with_partition(5, lambda: scope.path) == (5,)


class TestPartitionedState:

    def test_each_key_keeps_its_own_history(self, harness_factory):
        harness = harness_factory([make_device(1)])
        keys = ["a", "a", "b", "a", "b"]

        def program(ctx):
            key = keys[ctx.round]
            return ctx.split(key, lambda: ctx.rep("count", 0, lambda c: c + 1))

        seen = [r[1] for r in harness.run(program, len(keys))]
        # a partition skipped for a round loses its history
        assert seen == [1, 2, 1, 1, 1]

    def test_same_site_in_two_partitions_in_one_round(self, harness_factory):
        harness = harness_factory([make_device(1)])

        def program(ctx):
            first = ctx.split(1, lambda: ctx.rep("count", 0, lambda c: c + 1))
            second = ctx.split(2, lambda: ctx.rep("count", 10, lambda c: c + 1))
            return first, second

        assert [r[1] for r in harness.run(program, 3)] == [(1, 11), (2, 12), (3, 13)]

    def test_exports_are_scoped_by_partition(self, harness_factory):
        harness = harness_factory([make_device(1), make_device(2, 5, 0)])

        def program(ctx):
            with ctx.partition(ctx.uid % 2):
                return ctx.nbr("uid", ctx.uid)

        harness.step(program)
        assert harness.step(program) == {1: {}, 2: {}}
