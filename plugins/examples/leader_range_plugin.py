# ------------------------------------------------------------------------------
#  CollectiPy
# Copyright (c) 2025 Fabio Oddi
#
#  Example plugin showing how to add a monitor to the device program. Import
#  this module (e.g. add "plugins.examples.leader_range_plugin" to the
#  `plugins` list in the config) and append "leader_in_range" to
#  `environment.program.logic` to attach the logic model provided below.
# ------------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Any, Dict

from plugin_registry import register_logic_model
from models.logic.past_ctl import since, yesterday

logger = logging.getLogger("sim.plugins.leader_in_range")


class LeaderInRange:
    """
    Follower-side monitor: once a follower has been within communication
    range of its leader, it must not lose contact for two rounds in a row.

    Leaders always satisfy the property. The verdict is stored under
    `leader_in_range` in the device storage, so it ends up in the device
    snapshots next to the consistency verdict.
    """

    storage_key = "leader_in_range"

    def __init__(self, config: Dict[str, Any]) -> None:
        self.communication_range = float(config.get("communication_range", 100.0))

    def evaluate(self, ctx: Any, propositions: Dict[str, bool]) -> bool:
        """Return this round's verdict."""
        _ = propositions
        if ctx.device.is_leader():
            return True
        with ctx.call("leader_in_range"):
            leader_position = ctx.node_position(ctx.device.leader)
            near = leader_position is not None and ctx.position.distance_to(leader_position) <= self.communication_range
            lost_before = not yesterday(ctx, "was_near", near, default=True)
            was_near_once = since(ctx, "met_leader", True, near)
        verdict = not (was_near_once and lost_before and not near)
        if not verdict:
            logger.debug("%s lost its leader at t=%.1f", ctx.device.get_name(), ctx.time)
        return verdict


def _create_leader_in_range(config: Dict[str, Any]) -> LeaderInRange:
    """Factory registered in the plugin registry."""
    return LeaderInRange(config)


register_logic_model("leader_in_range", _create_leader_in_range)
