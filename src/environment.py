# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Environment: process-level orchestration of the simulation."""
import logging, gc
import multiprocessing as mp
from config import Config
from dataHandling import DataHandling, create_config_folder
from deviceManager import DeviceManager

class EnvironmentFactory():
    """Environment factory."""
    @staticmethod
    def create_environment(config_elem:Config):
        """Create environment."""
        if config_elem.environment.get("parallel_experiments", False):
            return MultiProcessEnvironment(config_elem)
        return SingleProcessEnvironment(config_elem)

class Environment():
    """Environment."""
    def __init__(self,config_elem:Config):
        """Initialize the instance."""
        self.experiments = config_elem.parse_experiments()
        self.num_runs = int(config_elem.environment.get("num_runs",1))
        self.random_seed = int(config_elem.environment.get("random_seed",0))
        if self.num_runs < 1:
            raise ValueError(f"Invalid configuration: 'num_runs' must be at least 1, got {self.num_runs}")
        self.results_enabled = len(config_elem.environment.get("results", {})) > 0

    def run_seed(self, run: int) -> int:
        """Seed of run `run` (runs are numbered from 1)."""
        return self.random_seed + run - 1

    def start(self):
        """Start the process."""
        raise NotImplementedError

def _execute_run(exp: Config, config_folder, run: int, random_seed: int) -> list:
    """Run a single experiment run (also used as a worker entry point)."""
    data_handling = DataHandling(exp, config_folder) if config_folder else None
    manager = DeviceManager(exp, data_handling)
    try:
        return manager.run(run, random_seed)
    finally:
        manager.close()

class SingleProcessEnvironment(Environment):
    """Single process environment."""
    def __init__(self,config_elem:Config):
        """Initialize the instance."""
        super().__init__(config_elem)
        logging.info("Single process environment created successfully")

    def start(self):
        """Start the process."""
        results = []
        for exp in self.experiments:
            config_folder = create_config_folder(exp) if self.results_enabled else None
            series = [
                _execute_run(exp, config_folder, run, self.run_seed(run))
                for run in range(1, self.num_runs + 1)
            ]
            results.append(series)
            gc.collect()
        logging.info("All experiments completed successfully")
        return results

class MultiProcessEnvironment(Environment):
    """Multi process environment: the runs of an experiment share a process pool."""
    def __init__(self,config_elem:Config):
        """Initialize the instance."""
        super().__init__(config_elem)
        self.processes = max(1, min(self.num_runs, mp.cpu_count()))
        logging.info("Multi process environment created successfully (%d workers)", self.processes)

    def start(self):
        """Start the process."""
        results = []
        with mp.Pool(processes=self.processes) as pool:
            for exp in self.experiments:
                config_folder = create_config_folder(exp) if self.results_enabled else None
                jobs = [
                    (Config(new_data=exp.data), config_folder, run, self.run_seed(run))
                    for run in range(1, self.num_runs + 1)
                ]
                results.append(pool.starmap(_execute_run, jobs))
        logging.info("All experiments completed successfully")
        return results
