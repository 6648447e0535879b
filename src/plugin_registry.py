# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Simple runtime registry for simulator plugins.

External modules can register models by importing this file and calling
the `register_*` helpers. The device program only ever calls the `get_*`
helpers with names coming from the configuration.
"""

import logging
from typing import Callable, Dict, Any, Optional
from plugin_base import DetectionModel, ExchangeChannelModel, LogicModel, MovementModel, NavigationOracle

logger = logging.getLogger("sim.plugins")

# name -> factory(config) -> MovementModel
_movement_models: Dict[str, Callable[[dict], MovementModel]] = {}
# name -> factory(config) -> DetectionModel
_detection_models: Dict[str, Callable[[dict], DetectionModel]] = {}
# name -> factory(config) -> LogicModel
_logic_models: Dict[str, Callable[[dict], LogicModel]] = {}
# name -> factory(config) -> ExchangeChannelModel
_exchange_channels: Dict[str, Callable[[dict], ExchangeChannelModel]] = {}
# name -> factory(config) -> NavigationOracle
_navigators: Dict[str, Callable[[dict], NavigationOracle]] = {}

def _normalize_name(name: str) -> str:
    """Normalize the name."""
    return (name or "").strip().lower()

def _build(registry: Dict[str, Callable], name: Optional[str], *args):
    """Instantiate the factory registered under `name`, if any."""
    if not name:
        return None
    factory = registry.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(*args)

def register_movement_model(name: str, factory: Callable[[dict], MovementModel]) -> None:
    """
    Register a new movement model.

    Parameters
    ----------
    name:
        Identifier of the model, the string used in `program.movement`.
    factory:
        A callable receiving the program configuration and returning an
        object implementing the `MovementModel` protocol.
    """
    _movement_models[_normalize_name(name)] = factory

def get_movement_model(name: Optional[str], config: Optional[dict] = None) -> Optional[MovementModel]:
    """Return a movement model instance, or None when `name` is unknown."""
    return _build(_movement_models, name, config or {})

def available_movement_models() -> Dict[str, Callable[[dict], MovementModel]]:
    """Return the map of registered movement model factories."""
    return dict(_movement_models)

def register_detection_model(name: str, factory: Callable[[dict], DetectionModel]) -> None:
    """Register a detection/proposition model factory."""
    _detection_models[_normalize_name(name)] = factory

def get_detection_model(name: Optional[str], config: Optional[dict] = None) -> Optional[DetectionModel]:
    """Return a detection model instance if registered."""
    return _build(_detection_models, name, config or {})

def available_detection_models() -> Dict[str, Callable[[dict], DetectionModel]]:
    """Return the map of registered detection model factories."""
    return dict(_detection_models)

def register_logic_model(name: str, factory: Callable[[dict], LogicModel]) -> None:
    """Register a new logic (monitor) model factory."""
    _logic_models[_normalize_name(name)] = factory

def get_logic_model(name: Optional[str], config: Optional[dict] = None) -> Optional[LogicModel]:
    """Return a logic model instance for the given name."""
    return _build(_logic_models, name, config or {})

def available_logic_models() -> Dict[str, Callable[[dict], LogicModel]]:
    """Return the map of registered logic model factories."""
    return dict(_logic_models)

def register_exchange_channel(
    name: str,
    factory: Callable[[dict], ExchangeChannelModel]
) -> None:
    """Register a neighbour exchange implementation."""
    _exchange_channels[_normalize_name(name)] = factory

def get_exchange_channel(
    name: Optional[str],
    config: Optional[dict] = None
) -> Optional[ExchangeChannelModel]:
    """Return an instantiated exchange channel."""
    return _build(_exchange_channels, name, config or {})

def available_exchange_channels() -> Dict[str, Callable[[dict], ExchangeChannelModel]]:
    """Return the map of registered exchange channel factories."""
    return dict(_exchange_channels)

def register_navigator(name: str, factory: Callable[[dict], NavigationOracle]) -> None:
    """Register a navigation oracle factory."""
    _navigators[_normalize_name(name)] = factory

def get_navigator(name: Optional[str], config: Optional[dict] = None) -> Optional[NavigationOracle]:
    """Return an instantiated navigation oracle."""
    return _build(_navigators, name, config or {})

def available_navigators() -> Dict[str, Callable[[dict], NavigationOracle]]:
    """Return the map of registered navigator factories."""
    return dict(_navigators)

def load_plugins_from_config(config: Any) -> None:
    """
    Optional helper that imports plugin modules listed in the config.

    Expected layout (all fields are optional):

    {
      "plugins": ["my_package.my_plugin", ...],
      "environment": {
        "plugins": ["another.plugin.module"]
      }
    }

    Each module is imported for its side effects, typically registration
    of models via the `register_*` helpers.
    """
    import importlib
    modules = []

    data = getattr(config, "data", None)
    if isinstance(data, dict):
        modules.extend(data.get("plugins", []))
        env = data.get("environment", {})
        modules.extend(env.get("plugins", []))

    for mod in modules:
        try:
            importlib.import_module(mod)
        except ImportError as exc:
            # keep going; the program lookup will report the missing model by name
            logger.error("Failed to import plugin module '%s': %s", mod, exc)
