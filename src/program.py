# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""The aggregate program every device runs once per round."""

import logging
from typing import Dict, List, Optional

from plugin_registry import (
    available_detection_models,
    available_logic_models,
    available_movement_models,
    get_detection_model,
    get_logic_model,
    get_movement_model,
)
import models  # noqa: F401  # ensure built-in models register themselves

logger = logging.getLogger("sim.program")

DEFAULT_PROGRAM = {
    "movement": "group_walk",
    "detection": "neighbourhood",
    "logic": ["consistency_monitor"],
}

def _resolve(kind: str, name: Optional[str], getter, available, config: dict):
    """Instantiate a named model, failing loudly on unknown names."""
    if not name:
        return None
    model = getter(name, config)
    if model is None:
        names = ", ".join(sorted(available().keys()))
        raise ValueError(f"Unknown {kind} model '{name}'. Available: {names}")
    return model

class DeviceProgram:
    """
    Movement, then propositions, then monitors, then display attributes.

    The program is a pure function of the round context: everything it
    remembers goes through the context's round state and exports.
    """
    def __init__(self, program_config: Optional[dict] = None, model_config: Optional[dict] = None):
        """Initialize the instance."""
        program_config = {**DEFAULT_PROGRAM, **(program_config or {})}
        model_config = {**(model_config or {}), **program_config.get("parameters", {})}
        self.movement = _resolve("movement", program_config.get("movement"), get_movement_model, available_movement_models, model_config)
        self.detection = _resolve("detection", program_config.get("detection"), get_detection_model, available_detection_models, model_config)
        logic_names = program_config.get("logic") or []
        if isinstance(logic_names, str):
            logic_names = [logic_names]
        self.logic: List = [
            _resolve("logic", name, get_logic_model, available_logic_models, model_config)
            for name in logic_names
        ]
        logger.info(
            "Device program: movement=%s detection=%s logic=%s",
            program_config.get("movement"),
            program_config.get("detection"),
            logic_names
        )

    def __call__(self, ctx) -> Dict[str, bool]:
        """Run one round for the device of `ctx`."""
        if self.movement is not None:
            self.movement.step(ctx)
        propositions = self.detection.sense(ctx) if self.detection is not None else {}
        verdicts = {}
        for model in self.logic:
            verdicts[model.storage_key] = model.evaluate(ctx, propositions)
            ctx.storage[model.storage_key] = verdicts[model.storage_key]
        consistent = ctx.storage.get("consistency", True)
        ctx.storage["node_size"] = 20 if propositions.get("cluster") else 10
        ctx.storage["node_color"] = "green" if consistent else "red"
        ctx.storage["node_shape"] = "star" if propositions.get("warning") else "sphere"
        return verdicts
