# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import json, itertools, copy, math
from device import MAX_GROUP_SIZE

DEFAULT_MAP = {"width": 1200, "height": 800, "navigator": "open_space", "obstacles": None, "cell_size": 10}
DEFAULT_EXCHANGE = {"channel": "spatial", "communication_range": 100, "retain": 3}
# parameters that may be given as lists to sweep over several experiments
SWEEP_FIELDS = (("environment", "period"), ("exchange", "communication_range"), ("exchange", "retain"))

class Config:
    """Config."""
    def __init__(self, config_path: str = "", new_data: dict = None):
        """Initialize the instance."""
        if config_path:
            self.config_path = config_path
            self.data = self.load_config()
        elif new_data:
            self.data = new_data
        else:
            raise ValueError("Either config_path or new_data must be provided")

    def load_config(self):
        """Load config."""
        with open(self.config_path, 'r') as file:
            return json.load(file)

    @staticmethod
    def _check_number(group: dict, field: str, low=None, high=None, integer=False, low_inclusive=True):
        """Check one numeric group field against its bounds."""
        gid = group.get("id", "?")
        value = group[field]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Field '{field}' of group {gid} must be a number, got {value!r}")
        if integer and not float(value).is_integer():
            raise ValueError(f"Field '{field}' of group {gid} must be an integer, got {value!r}")
        if low is not None and (value < low if low_inclusive else value <= low):
            bound = ">=" if low_inclusive else ">"
            raise ValueError(f"Field '{field}' of group {gid} must be {bound} {low}, got {value}")
        if high is not None and value >= high:
            raise ValueError(f"Field '{field}' of group {gid} must be < {high}, got {value}")

    def _validate_group(self, group: dict) -> dict:
        """Validate a spawn group and fill its optional fields."""
        if not isinstance(group, dict):
            raise ValueError(f"Each group must be a dictionary, got {group!r}")
        for field in ("id", "size"):
            if field not in group:
                raise ValueError(f"Missing required field '{field}' in group {group}")
        self._check_number(group, "id", low=0, integer=True)
        self._check_number(group, "size", low=1, high=MAX_GROUP_SIZE, integer=True)
        checked = {"radius": 0, "speed": 0, "start_time": 0}
        checked.update(group)
        for field in ("radius", "speed", "start_time"):
            self._check_number(checked, field, low=0)
        checked["id"] = int(checked["id"])
        checked["size"] = int(checked["size"])
        return checked

    def _expand_sweeps(self, environment: dict) -> list:
        """Return one environment per combination of the list-valued sweep fields."""
        fields = []
        values = []
        for section, field in SWEEP_FIELDS:
            holder = environment if section == "environment" else environment.get(section, {})
            value = holder.get(field)
            if isinstance(value, list):
                if not value:
                    raise ValueError(f"Field '{field}' must not be an empty list")
                fields.append((section, field))
                values.append(value)
        if not fields:
            return [environment]
        expanded = []
        for combo in itertools.product(*values):
            new_env = copy.deepcopy(environment)
            for (section, field), value in zip(fields, combo):
                holder = new_env if section == "environment" else new_env[section]
                holder[field] = value
            expanded.append(new_env)
        return expanded

    def parse_experiments(self) -> list:
        """Parse experiments."""
        try:
            environment = self.data['environment']
        except KeyError:
            raise ValueError("The 'environment' field is required")

        groups = environment.get("groups")
        if not isinstance(groups, list) or not groups:
            raise ValueError("The 'groups' field is required as a non-empty list of spawn groups")
        checked_groups = [self._validate_group(g) for g in groups]
        ids = [g["id"] for g in checked_groups]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Group ids must be unique, got {ids}")

        map_cfg = {**DEFAULT_MAP, **environment.get("map", {})}
        if map_cfg["width"] <= 0 or map_cfg["height"] <= 0:
            raise ValueError(f"Map size must be positive, got {map_cfg['width']}x{map_cfg['height']}")
        base = copy.deepcopy(environment)
        base["exchange"] = {**DEFAULT_EXCHANGE, **environment.get("exchange", {})}

        experiments = []
        for env in self._expand_sweeps(base):
            period = float(env.get("period", 1))
            if period <= 0:
                raise ValueError(f"Round period must be positive, got {period}")
            exchange = dict(env["exchange"])
            if float(exchange["communication_range"]) <= 0:
                raise ValueError(f"Communication range must be positive, got {exchange['communication_range']}")
            if float(exchange["retain"]) <= 0:
                raise ValueError(f"Retention window must be positive, got {exchange['retain']}")
            exchange["retain_rounds"] = max(1, int(math.ceil(float(exchange["retain"]) / period - 1e-9)))
            experiment = {
                "environment": {
                    "parallel_experiments": env.get("parallel_experiments", False),
                    "time_limit": env.get("time_limit", 0),
                    "period": period,
                    "num_runs": env.get("num_runs", 1),
                    "random_seed": env.get("random_seed", 0),
                    "results": env.get("results", {}),
                    "logging": env.get("logging", {}),
                    "map": copy.deepcopy(map_cfg),
                    "exchange": exchange,
                    "program": env.get("program", {}),
                    "groups": copy.deepcopy(checked_groups),
                }
            }
            experiments.append(Config(new_data=experiment))
        return experiments

    @property
    def environment(self) -> dict:
        """Return the environment configuration."""
        return self.data.get('environment', {})

    @property
    def map(self) -> dict:
        """Return the map configuration."""
        return self.data.get('environment', {}).get('map', {})

    @property
    def exchange(self) -> dict:
        """Return the neighbour exchange configuration."""
        return self.data.get('environment', {}).get('exchange', {})

    @property
    def program(self) -> dict:
        """Return the device program configuration."""
        return self.data.get('environment', {}).get('program', {})

    @property
    def groups(self) -> list:
        """Return the spawn groups."""
        return self.data.get('environment', {}).get('groups', [])

    @property
    def results(self) -> dict:
        """Return the results configuration."""
        return self.data.get('environment', {}).get('results', {})
