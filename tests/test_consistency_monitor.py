# tests/test_consistency_monitor.py

from conftest import make_device
from models.logic.consistency_monitor import (
    ConsistencyMonitor,
    GroupWarnedEntryMonitor,
    WarnedEntryMonitor,
    consistency_trace,
)

F, T = False, True


def _since_by_definition(p, q, n):
    return any(q[j] and all(p[k] for k in range(j + 1, n + 1)) for j in range(n + 1))


def _traces(harness_factory, cluster, uids=(1,)):
    harness = harness_factory([make_device(uid, 10 * i, 0) for i, uid in enumerate(uids)])
    rounds = harness.run(lambda ctx: consistency_trace(ctx, cluster[ctx.round]), len(cluster))
    return {uid: [r[uid] for r in rounds] for uid in uids}


class TestConsistencyTrace:

    def test_alert_sequence(self, harness_factory):
        cluster = [F, F, T, T, F]
        trace = _traces(harness_factory, cluster)[1]
        alert_start = [t["alert_start"] for t in trace]
        alert_end = [t["alert_end"] for t in trace]
        all_alerted = [t["all_alerted"] for t in trace]
        assert alert_start == [F, F, T, F, F]
        assert alert_end == [F, F, F, F, T]
        # sticky from the first round: the initial calm rounds keep it false
        assert all_alerted == [F, F, F, F, F]
        no_new = [_since_by_definition([not a for a in alert_start], all_alerted, n) for n in range(5)]
        assert [t["no_new_alarms_after_all_alerted"] for t in trace] == no_new
        assert [t["result"] for t in trace] == [(not e) or s for e, s in zip(alert_end, no_new)]
        assert trace[-1]["result"] is False

    def test_group_alerted_from_the_start_may_calm_down(self, harness_factory):
        cluster = [T, T, F, F]
        trace = _traces(harness_factory, cluster)[1]
        assert [t["all_alerted"] for t in trace] == [T, T, F, F]
        assert [t["alert_end"] for t in trace] == [F, F, T, F]
        assert all(t["result"] for t in trace)

    def test_new_alarm_after_full_alert_is_a_violation(self, harness_factory):
        cluster = [T, F, T, F]
        trace = _traces(harness_factory, cluster)[1]
        assert [t["result"] for t in trace] == [T, T, T, F]

    def test_devices_sharing_history_agree(self, harness_factory):
        cluster = [T, T, F, T, F, F]
        traces = _traces(harness_factory, cluster, uids=(100, 101, 102))
        assert traces[100] == traces[101] == traces[102]


class TestMonitors:

    def test_consistency_monitor_runs_per_group(self, harness_factory):
        harness = harness_factory([make_device(100), make_device(201, 5, 0)])
        monitor = ConsistencyMonitor({})
        cluster = {0: [T, F], 1: [T, T]}

        def program(ctx):
            return monitor.evaluate(ctx, {"cluster": cluster[ctx.round][ctx.uid // 100 - 1]})

        rounds = harness.run(program, 2)
        assert rounds[-1] == {100: True, 201: True}
        keys = {key for key in harness.store.slots(100)}
        assert all(partition == (1,) for _, partition in keys)
        assert all(partition == (2,) for _, partition in harness.store.slots(201))

    def test_warned_entry(self, harness_factory):
        harness = harness_factory([make_device(1)])
        monitor = WarnedEntryMonitor({})
        props = [
            {"cluster": F, "warning": F},
            {"cluster": T, "warning": T},
            {"cluster": F, "warning": T},
            {"cluster": T, "warning": F},
        ]
        rounds = harness.run(lambda ctx: monitor.evaluate(ctx, props[ctx.round]), len(props))
        assert [r[1] for r in rounds] == [T, F, T, T]
        assert monitor.storage_key == "warned_entry"

    def test_group_warned_entry_stays_inside_the_group(self, harness_factory):
        # groups 1 and 2 side by side, only device 101 raises a warning
        uids = (100, 101, 200, 201)
        harness = harness_factory([make_device(uid, 5 * i, 0) for i, uid in enumerate(uids)])
        monitor = GroupWarnedEntryMonitor({})

        def program(ctx):
            return monitor.evaluate(ctx, {"cluster": ctx.round == 2, "warning": ctx.uid == 101 and ctx.round < 2})

        rounds = harness.run(program, 3)
        assert rounds[0] == rounds[1] == {100: T, 101: T, 200: T, 201: T}
        assert rounds[2] == {100: T, 101: T, 200: F, 201: F}
        assert all(partition == (2,) for _, partition in harness.store.slots(200))

    def test_group_warned_entry_without_any_warning(self, harness_factory):
        harness = harness_factory([make_device(300), make_device(301, 5, 0)])
        monitor = GroupWarnedEntryMonitor({})
        cluster = [F, T, T, F, T]
        rounds = harness.run(lambda ctx: monitor.evaluate(ctx, {"cluster": cluster[ctx.round]}), len(cluster))
        assert [r[300] for r in rounds] == [T, F, T, T, F]
        assert monitor.storage_key == "group_warned_entry"
