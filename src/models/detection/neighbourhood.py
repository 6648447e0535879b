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

from plugin_base import DetectionModel
from plugin_registry import register_detection_model

logger = logging.getLogger("sim.detection.neighbourhood")


class NeighbourhoodDensityModel(DetectionModel):
    """
    Density propositions computed from the one-hop neighbourhood.

    - warning: more than `warning_count` devices (self included) closer
      than `warning_fraction * communication_range`;
    - cluster: at least `cluster_count` devices (self included) whose
      latest exchanged `warning` is true.
    """

    def __init__(self, config: dict):
        self.communication_range = float(config.get("communication_range", 100.0))
        self.warning_radius = float(config.get("warning_fraction", 0.25)) * self.communication_range
        self.warning_count = int(config.get("warning_count", 5))
        self.cluster_count = int(config.get("cluster_count", 3))

    def sense(self, ctx) -> Dict[str, bool]:
        with ctx.call("neighbourhood"):
            close = 1 + sum(1 for dist in ctx.nbr_dist().values() if dist < self.warning_radius)
            warning = close > self.warning_count
            cluster = ctx.count_hood("warning", warning) >= self.cluster_count
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s close=%d warning=%s cluster=%s", ctx.device.get_name(), close, warning, cluster)
        return {"warning": warning, "cluster": cluster}


register_detection_model("neighbourhood", lambda config: NeighbourhoodDensityModel(config))
