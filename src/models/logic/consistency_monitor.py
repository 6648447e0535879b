# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import logging
from typing import Dict
from device import group_of
from plugin_base import LogicModel
from plugin_registry import register_logic_model
from models.logic.past_ctl import globally, implies, since, yesterday

logger = logging.getLogger("sim.logic.consistency")

def consistency_trace(ctx, cluster: bool) -> Dict[str, bool]:
    """
    Evaluate the group consistency formula for one round.

    A device may leave the alerted state only if no new alert started since
    the last moment the whole group was alerted. The group-level reading
    assumes every member of the group sees the same `cluster` history.
    """
    alert_start = yesterday(ctx, "was_calm", not cluster) and cluster
    alert_end = yesterday(ctx, "was_clustered", cluster) and not cluster
    all_alerted = globally(ctx, "all_alerted", cluster)
    no_new_alarms = since(ctx, "no_new_alarms", not alert_start, all_alerted)
    return {
        "alert_start": alert_start,
        "alert_end": alert_end,
        "all_alerted": all_alerted,
        "no_new_alarms_after_all_alerted": no_new_alarms,
        "result": implies(alert_end, no_new_alarms),
    }

class ConsistencyMonitor(LogicModel):
    """
    If some device is in cluster alert, it stays alerted until everyone in
    its group becomes alerted. Evaluated independently in every group.
    """
    storage_key = "consistency"

    def __init__(self, config: dict):
        """Initialize the instance."""
        self.config = config

    def evaluate(self, ctx, propositions: Dict[str, bool]) -> bool:
        """Return this round's verdict."""
        cluster = bool(propositions.get("cluster", False))
        with ctx.call("consistency_monitor"):
            trace = ctx.split(group_of(ctx.uid), lambda: consistency_trace(ctx, cluster))
        if not trace["result"]:
            logger.info("%s violates group consistency at t=%.1f", ctx.device.get_name(), ctx.time)
        return trace["result"]

class WarnedEntryMonitor(LogicModel):
    """A device does not enter a cluster without a warning in the previous round."""
    storage_key = "warned_entry"

    def __init__(self, config: dict):
        """Initialize the instance."""
        self.config = config

    def evaluate(self, ctx, propositions: Dict[str, bool]) -> bool:
        cluster = bool(propositions.get("cluster", False))
        warning = bool(propositions.get("warning", False))
        with ctx.call("warned_entry"):
            alert_start = yesterday(ctx, "was_calm", not cluster) and cluster
            return implies(alert_start, yesterday(ctx, "was_warned", warning))

class GroupWarnedEntryMonitor(LogicModel):
    """
    A device does not enter a cluster unless some member of its group had a
    warning in the previous round. Warnings are shared only inside the group.
    """
    storage_key = "group_warned_entry"

    def __init__(self, config: dict):
        """Initialize the instance."""
        self.config = config

    def evaluate(self, ctx, propositions: Dict[str, bool]) -> bool:
        cluster = bool(propositions.get("cluster", False))
        warning = bool(propositions.get("warning", False))

        def body():
            alert_start = yesterday(ctx, "was_calm", not cluster) and cluster
            group_warned = ctx.any_hood("group_warning", warning)
            return implies(alert_start, yesterday(ctx, "group_was_warned", group_warned))

        with ctx.call("group_warned_entry"):
            verdict = ctx.split(group_of(ctx.uid), body)
        if not verdict:
            logger.info("%s entered a cluster with no warning in its group at t=%.1f", ctx.device.get_name(), ctx.time)
        return verdict

register_logic_model("consistency_monitor", lambda config: ConsistencyMonitor(config))
register_logic_model("warned_entry", lambda config: WarnedEntryMonitor(config))
register_logic_model("group_warned_entry", lambda config: GroupWarnedEntryMonitor(config))
